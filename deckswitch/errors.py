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
Exception types used across deckswitch

Every error raised on purpose derives from DeckSwitchError, so the
command line entry point can catch them in one place and exit with a
diagnostic instead of a traceback.
"""


class DeckSwitchError(Exception):
    """Base class for all deckswitch errors"""


class ConfigError(DeckSwitchError):
    """Configuration file missing, unreadable or invalid"""


# Device layer

class DeviceError(DeckSwitchError):
    """Base class for Stream Deck communication errors"""


class DeviceNotFound(DeviceError):
    """No matching Stream Deck is connected (transient, worth retrying)"""


class PermissionDenied(DeviceError):
    """The HID device exists but cannot be opened by this user"""

    def __init__(self, message):
        super().__init__(
            "{} (check the udev rules or group membership for the Stream Deck)".format(message)
        )


class ProtocolMismatch(DeviceError):
    """The device answered, but not like a visual Stream Deck"""


class DeviceDisconnected(DeviceError):
    """Transport went away while the device was open"""


class WriteFailed(DeviceError):
    """A key image could not be written"""


class InvalidButtonIndex(DeviceError):
    """Key index outside the range of the open device"""


class DeviceUnavailable(DeviceError):
    """Device could not be (re)opened within the configured number of attempts"""


# Icon layer

class IconError(DeckSwitchError):
    """Base class for icon lookup and rendering errors"""


class AssetNotFound(IconError):
    """The icon spec does not resolve to an existing asset"""


class RenderFailed(IconError):
    """The asset exists but could not be rasterized"""


# Output selection

class ControllerError(DeckSwitchError):
    """Base class for output selection errors"""


class NoOutputsConfigured(ControllerError):
    """The output list is empty"""


class AudioSwitchFailed(ControllerError):
    """The audio backend could not make the requested sink the default"""
