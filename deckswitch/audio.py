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
Default audio sink control

AudioControl is the interface the output controller depends on.
PulseAudioControl implements it with the pactl command line tool, which
also works against PipeWire's pulse server.
"""

import logging
import shutil
import subprocess
from collections import namedtuple

from deckswitch.errors import AudioSwitchFailed

logger = logging.getLogger(__name__)

SinkInfo = namedtuple("SinkInfo", ["id", "name", "description"])


def sink_matches(expected, sink):
    """
    Check whether a configured description refers to a sink

    Case-insensitive; the sink name must match exactly, the description
    may also just contain the expected text.
    """
    expected = expected.lower()
    if sink.name.lower() == expected:
        return True
    if sink.description:
        description = sink.description.lower()
        return description == expected or expected in description
    return False


def sink_name_matches(expected, sink):
    """Name selector: the sink name, or failing that its description, contains expected"""
    expected = expected.lower()
    if expected in sink.name.lower():
        return True
    return bool(sink.description) and expected in sink.description.lower()


def select_sink(sinks, description, name=None):
    """
    Pick the sink for a configured output

    With a name, the sink is chosen by its pactl name: exact first, then a
    substring of the sink name or description. Otherwise exact description
    matches win over substring matches.

    Raises:
        AudioSwitchFailed: nothing matches
    """
    if name is not None:
        wanted = name.lower()
        for sink in sinks:
            if sink.name.lower() == wanted:
                return sink
        for sink in sinks:
            if sink_name_matches(name, sink):
                return sink
        raise AudioSwitchFailed("no audio sink matches name '{}'".format(name))

    wanted = description.lower()
    for sink in sinks:
        if sink.description and sink.description.lower() == wanted:
            return sink
    for sink in sinks:
        if sink_matches(description, sink):
            return sink
    raise AudioSwitchFailed("no audio sink matches '{}'".format(description))


class AudioControl:
    """Interface to the system's default audio output"""

    def get_default_sink(self):
        """Return the description of the current default sink, or None"""
        raise NotImplementedError

    def get_default_sink_name(self):
        """Return the backend name of the current default sink, or None"""
        return None

    def set_default_sink(self, description, name=None):
        """Make the matching sink the default; raises AudioSwitchFailed"""
        raise NotImplementedError

    def list_sinks(self):
        raise NotImplementedError


class PulseAudioControl(AudioControl):
    """AudioControl backed by pactl"""

    def __init__(self, pactl="pactl", timeout=5.0, move_inputs=True):
        """
        Args:
            pactl: pactl executable
            timeout: Seconds before a pactl call is abandoned
            move_inputs: Move playing streams to the new default sink
        """
        self.pactl = pactl
        self.timeout = timeout
        self.move_inputs = move_inputs

    def is_available(self):
        return shutil.which(self.pactl) is not None

    def _run(self, *args):
        cmd = [self.pactl, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise AudioSwitchFailed("failed to run {}: {}".format(" ".join(cmd), e)) from e

        if result.returncode != 0:
            raise AudioSwitchFailed("{} exited with status {}: {}".format(
                " ".join(cmd), result.returncode, result.stderr.strip()))
        return result.stdout

    def list_sinks(self):
        sinks = parse_sinks(self._run("list", "sinks"))
        if not sinks:
            raise AudioSwitchFailed("no sinks reported by pactl")
        return sinks

    def get_default_sink(self):
        default = parse_default_sink(self._run("info"))
        if default is None:
            return None

        for sink in self.list_sinks():
            if sink.name == default:
                return sink.description or sink.name
        return default

    def get_default_sink_name(self):
        return parse_default_sink(self._run("info"))

    def set_default_sink(self, description, name=None):
        sink = select_sink(self.list_sinks(), description, name=name)
        self._run("set-default-sink", sink.name)
        logger.info("Default sink is now '%s' (%s)", sink.description or sink.name, sink.name)

        if self.move_inputs:
            self._move_inputs(sink.name)
        return sink

    def _move_inputs(self, sink_name):
        """Move running streams; a stream that refuses is only logged"""
        try:
            inputs = parse_sink_inputs(self._run("list", "short", "sink-inputs"))
        except AudioSwitchFailed as e:
            logger.warning("Failed to list sink inputs: %s", e)
            return

        for sink_input in inputs:
            try:
                self._run("move-sink-input", sink_input, sink_name)
            except AudioSwitchFailed as e:
                logger.warning("Failed to move sink input %s to %s: %s", sink_input, sink_name, e)


def parse_sinks(output):
    """
    Parse `pactl list sinks`

    The device.description property is preferred over the Description line,
    since it is the stable, user-visible name.
    """
    sinks = []
    sink_id = None
    name = None
    description = None
    property_description = None

    def flush():
        if name is not None:
            sinks.append(SinkInfo(sink_id, name, property_description or description))

    for line in output.splitlines():
        line = line.strip()

        if line.startswith("Sink #"):
            flush()
            try:
                sink_id = int(line[len("Sink #"):].split()[0])
            except (ValueError, IndexError):
                sink_id = None
            name = description = property_description = None
        elif line.startswith("Name:"):
            name = line[len("Name:"):].strip()
        elif line.startswith("Description:"):
            description = line[len("Description:"):].strip()
        elif line.startswith("device.description ="):
            value = line[len("device.description ="):].strip().strip('"')
            if value:
                property_description = value

    flush()
    return sinks


def parse_default_sink(output):
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("Default Sink:"):
            return line[len("Default Sink:"):].strip() or None
    return None


def parse_sink_inputs(output):
    """First column of `pactl list short sink-inputs`"""
    return [line.split()[0] for line in output.splitlines() if line.strip()]
