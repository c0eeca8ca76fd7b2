###############################################################
#
# deckswitch – Stream Deck audio output toggle
#
# Copyright (C) 2026 Peter Damerau
# https://www.talla83.de
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
###############################################################

"""
Configuration file handling

The configuration is a small JSON document:

    {
      "button_index": 0,
      "brightness": 40,
      "outputs": [
        {"description": "HDMI/DisplayPort - HDA NVidia", "icon": {"material": "monitor"}},
        {"description": "Digital Output - A50", "icon": {"path": "icons/a50.svg"}}
      ]
    }

The toggle keys may also live in an "audio_toggle" object. The file is read
once at startup; the resulting Config is immutable.
"""

import json
import os
from dataclasses import dataclass

from deckswitch.errors import ConfigError

CONFIG_ENV = "DECKSWITCH_CONFIG"
CONFIG_NAME = "stream-deck.json"

DEFAULT_BRIGHTNESS = 40

# Icons used when an output has none configured: first output, then the rest
FALLBACK_ICONS = ("monitor", "headphones")


@dataclass(frozen=True)
class MaterialIcon:
    """Built-in icon referenced by name (e.g. 'monitor')"""
    name: str


@dataclass(frozen=True)
class PathIcon:
    """Icon image referenced by filesystem path"""
    path: str


@dataclass(frozen=True)
class OutputSpec:
    description: str
    icon: object
    # pactl sink name; selects the sink instead of the description when set
    name: str = None


@dataclass(frozen=True)
class Config:
    button_index: int
    outputs: tuple
    brightness: int = DEFAULT_BRIGHTNESS
    serial: str = None
    verbose: bool = False
    path: str = None

    @property
    def base_dir(self):
        """Directory relative icon paths are resolved against"""
        if self.path:
            return os.path.dirname(os.path.abspath(self.path))
        return None


def default_config_paths():
    """
    Candidate configuration files, most specific first

    Returns:
        List of paths; none of them need to exist
    """
    paths = []

    explicit = os.environ.get(CONFIG_ENV)
    if explicit:
        paths.append(explicit)

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.append(os.path.join(xdg, "deckswitch", CONFIG_NAME))

    paths.append(os.path.join(os.path.expanduser("~"), ".config", "deckswitch", CONFIG_NAME))
    paths.append(CONFIG_NAME)
    paths.append(os.path.join("config", CONFIG_NAME))
    return paths


def find_config():
    """Return the first existing default config path, or None"""
    for candidate in default_config_paths():
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config(path=None):
    """
    Load and validate the configuration file

    Args:
        path: Explicit file path; searched in the default locations if None

    Returns:
        Config

    Raises:
        ConfigError: file missing, not JSON or structurally invalid
    """
    if path is None:
        path = find_config()
        if path is None:
            raise ConfigError(
                "no configuration found; looked in: {}".format(", ".join(default_config_paths()))
            )

    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as e:
        raise ConfigError("failed to read configuration at {}: {}".format(path, e)) from e
    except ValueError as e:
        raise ConfigError("configuration at {} is not valid JSON: {}".format(path, e)) from e

    try:
        return parse_config(data, path=path)
    except ConfigError as e:
        raise ConfigError("invalid configuration at {}: {}".format(path, e)) from e


def parse_config(data, path=None):
    """
    Build a Config from decoded JSON

    Args:
        data: Decoded JSON document (dict)
        path: Origin of the document, kept for relative icon paths

    Returns:
        Config
    """
    if not isinstance(data, dict):
        raise ConfigError("top level must be an object")

    # Structured layout keeps the toggle settings in their own section
    section = data.get("audio_toggle", data)
    if not isinstance(section, dict):
        raise ConfigError("'audio_toggle' must be an object")

    button_index = section.get("button_index", 0)
    if isinstance(button_index, bool) or not isinstance(button_index, int) or button_index < 0:
        raise ConfigError("'button_index' must be a non-negative integer")

    raw_outputs = section.get("outputs")
    if not isinstance(raw_outputs, list) or not raw_outputs:
        raise ConfigError("'outputs' must be a non-empty list")

    outputs = tuple(_parse_output(entry, index) for index, entry in enumerate(raw_outputs))

    brightness = data.get("brightness", DEFAULT_BRIGHTNESS)
    if isinstance(brightness, bool) or not isinstance(brightness, int) or not 0 <= brightness <= 100:
        raise ConfigError("'brightness' must be an integer between 0 and 100")

    serial = data.get("serial")
    if serial is not None and not isinstance(serial, str):
        raise ConfigError("'serial' must be a string")

    return Config(
        button_index=button_index,
        outputs=outputs,
        brightness=brightness,
        serial=serial,
        verbose=bool(data.get("verbose", False)),
        path=path,
    )


def _parse_output(entry, index):
    if not isinstance(entry, dict):
        raise ConfigError("outputs[{}] must be an object".format(index))

    name = entry.get("name")
    if name is not None and (not isinstance(name, str) or not name.strip()):
        raise ConfigError("outputs[{}].name must be a non-empty string".format(index))

    description = entry.get("description", name)
    if not isinstance(description, str) or not description.strip():
        raise ConfigError("outputs[{}] needs a non-empty 'description' or 'name'".format(index))

    return OutputSpec(
        description=description,
        icon=parse_icon(entry.get("icon"), index),
        name=name,
    )


def parse_icon(raw, index=0):
    """
    Parse an icon entry into MaterialIcon or PathIcon

    Accepted forms: {"material": name}, {"path": path}, a bare material
    name, or None (falls back to a default by output position).
    """
    if raw is None:
        return MaterialIcon(FALLBACK_ICONS[min(index, len(FALLBACK_ICONS) - 1)])

    if isinstance(raw, str):
        return MaterialIcon(raw.lower())

    if isinstance(raw, dict):
        if isinstance(raw.get("material"), str):
            return MaterialIcon(raw["material"].lower())
        if isinstance(raw.get("path"), str):
            return PathIcon(raw["path"])

    raise ConfigError(
        "outputs[{}].icon must be {{\"material\": name}} or {{\"path\": path}}".format(index)
    )
