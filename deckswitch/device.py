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
Stream Deck access

DeviceDriver owns the open deck. Report IDs, packet sizes and the native
image encoding of each deck model are handled by the StreamDeck library;
this module only deals with key indices and Bitmaps.
"""

import logging
import queue
from collections import namedtuple

from StreamDeck.DeviceManager import DeviceManager, ProbeError
from StreamDeck.ImageHelpers import PILHelper
from StreamDeck.Transport.Transport import TransportError

from deckswitch.errors import (
    DeviceDisconnected,
    DeviceNotFound,
    InvalidButtonIndex,
    PermissionDenied,
    ProtocolMismatch,
    WriteFailed,
)

logger = logging.getLogger(__name__)

ButtonEvent = namedtuple("ButtonEvent", ["index", "pressed"])


def is_permission_error(error):
    """HID backends only report permission problems in the message text"""
    text = str(error).lower()
    return "permission" in text or "access denied" in text


class DeviceDriver:
    """
    Owns the connection to one visual Stream Deck

    Key events arrive on the StreamDeck library's reader thread through the
    key callback and are queued; read_input_report() hands them to the caller
    one at a time. Image writes hold the deck lock, so only one write is on
    the wire at any time.
    """

    def __init__(self, serial=None, brightness=40, device_manager=DeviceManager):
        """
        Args:
            serial: Only open the deck with this serial number
            brightness: Screen brightness in percent applied after open
            device_manager: Factory returning an object with enumerate()
        """
        self.serial = serial
        self.brightness = brightness
        self.device_manager = device_manager
        self.deck = None
        self._events = queue.Queue()

    # ------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------

    def open(self):
        """
        Find, open and initialize the deck

        Returns:
            The opened StreamDeck object

        Raises:
            DeviceNotFound: no (matching) visual deck is connected
            PermissionDenied: the deck exists but the HID node is not accessible
            ProtocolMismatch: the deck did not accept the initialization
        """
        if self.deck is not None:
            self.close()

        try:
            decks = self.device_manager().enumerate()
        except ProbeError as e:
            raise DeviceNotFound("no usable HID backend: {}".format(e)) from e
        except TransportError as e:
            if is_permission_error(e):
                raise PermissionDenied("cannot enumerate Stream Decks: {}".format(e)) from e
            raise DeviceNotFound("failed to enumerate Stream Decks: {}".format(e)) from e

        # Skip non-visual devices (e.g., Stream Deck Pedal)
        decks = [deck for deck in decks if deck.is_visual()]
        if not decks:
            raise DeviceNotFound("no Stream Deck with key displays is connected")

        for deck in decks:
            try:
                deck.open()
            except TransportError as e:
                if is_permission_error(e):
                    raise PermissionDenied("cannot open {}: {}".format(deck.deck_type(), e)) from e
                logger.debug("Failed to open %s: %s", deck.deck_type(), e)
                continue

            if self.serial and self._serial_of(deck) != self.serial:
                deck.close()
                continue

            self._initialize(deck)
            return deck

        if self.serial:
            raise DeviceNotFound("no Stream Deck with serial {} is connected".format(self.serial))
        raise DeviceNotFound("no Stream Deck could be opened")

    def _serial_of(self, deck):
        try:
            with deck:
                return deck.get_serial_number()
        except TransportError as e:
            logger.debug("Failed to read serial number of %s: %s", deck.deck_type(), e)
            return None

    def _initialize(self, deck):
        try:
            with deck:
                deck.reset()
                deck.set_brightness(self.brightness)
                image_format = deck.key_image_format()
                firmware = deck.get_firmware_version()
        except TransportError as e:
            deck.close()
            raise ProtocolMismatch("{} rejected initialization: {}".format(deck.deck_type(), e)) from e

        if not image_format or not image_format.get("size"):
            deck.close()
            raise ProtocolMismatch("{} reports no key image format".format(deck.deck_type()))

        # Drop events left over from a previous connection
        self._events = queue.Queue()
        deck.set_key_callback(self._on_key_change)
        self.deck = deck

        logger.info("Opened '%s' device (fw: '%s', %d keys, key image %dx%d)",
                    deck.deck_type(), firmware, deck.key_count(), *image_format["size"])

    def close(self):
        """Blank and close the deck; a dead transport is not an error here"""
        deck, self.deck = self.deck, None
        if deck is None:
            return

        try:
            with deck:
                deck.reset()
        except TransportError as e:
            logger.debug("Reset on close failed: %s", e)

        try:
            deck.close()
        except TransportError as e:
            logger.debug("Close failed: %s", e)

    def is_open(self):
        return self.deck is not None and self.deck.is_open()

    # ------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------

    def _require_deck(self):
        if not self.is_open():
            raise DeviceDisconnected("Stream Deck is not connected")
        return self.deck

    def key_count(self):
        return self._require_deck().key_count()

    def key_image_size(self):
        """(width, height) of a key image in pixels"""
        return tuple(self._require_deck().key_image_format()["size"])

    # ------------------------------------------------------------
    # Output
    # ------------------------------------------------------------

    def write_image(self, button_index, bitmap):
        """
        Show a bitmap on one key

        Args:
            button_index: Key index (0-based)
            bitmap: icons.Bitmap, ideally already at key_image_size()

        Raises:
            InvalidButtonIndex: key index outside the deck
            DeviceDisconnected: deck is not open
            WriteFailed: the transport rejected the write
        """
        deck = self._require_deck()

        if not 0 <= button_index < deck.key_count():
            raise InvalidButtonIndex("key {} does not exist on {} ({} keys)".format(
                button_index, deck.deck_type(), deck.key_count()))

        # Convert to native deck format (JPEG/BMP, flipped/rotated per model)
        native = PILHelper.to_native_key_format(deck, bitmap.to_image())

        try:
            with deck:
                deck.set_key_image(button_index, native)
        except TransportError as e:
            raise WriteFailed("failed to write image to key {}: {}".format(button_index, e)) from e

    # ------------------------------------------------------------
    # Input
    # ------------------------------------------------------------

    def _on_key_change(self, deck, key, state):
        """Called by the StreamDeck library on its reader thread"""
        self._events.put(ButtonEvent(key, bool(state)))

    def read_input_report(self, timeout):
        """
        Wait for the next key press or release

        Args:
            timeout: Seconds to wait

        Returns:
            ButtonEvent, or None when nothing happened within timeout

        Raises:
            DeviceDisconnected: the deck was unplugged or closed
        """
        self._require_deck()

        try:
            event = self._events.get(timeout=timeout)
        except queue.Empty:
            # The reader thread closes the deck when the transport fails
            self._require_deck()
            return None

        logger.debug("Key %d = %s", event.index, event.pressed)
        return event
