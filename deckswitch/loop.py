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
Main event loop

    STARTING -> RUNNING -> RECONNECTING -> RUNNING -> ... -> STOPPED

Everything runs on the calling thread. stop() may be called from a signal
handler; it is observed between reads and while waiting to reconnect.
"""

import logging
import threading
from enum import Enum

from deckswitch.errors import (
    AudioSwitchFailed,
    DeviceDisconnected,
    DeviceNotFound,
    DeviceUnavailable,
    IconError,
    PermissionDenied,
    ProtocolMismatch,
    WriteFailed,
)

logger = logging.getLogger(__name__)


class LoopState(Enum):
    STARTING = 0
    RUNNING = 1
    RECONNECTING = 2
    STOPPED = 3


class EventLoop:
    """
    Route key presses to the output controller and keep the deck connected

    Args:
        driver: DeviceDriver
        controller: OutputController
        button_index: Key that cycles the outputs
        read_timeout: Seconds per input read; bounds shutdown latency
        max_attempts: Open attempts before giving up (startup and reconnect)
        backoff: First retry delay in seconds, doubled after each failure
        max_backoff: Upper bound for the retry delay
    """

    def __init__(self, driver, controller, button_index, read_timeout=0.5,
                 max_attempts=10, backoff=0.5, max_backoff=10.0):
        self.driver = driver
        self.controller = controller
        self.button_index = button_index
        self.read_timeout = read_timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.max_backoff = max_backoff
        self.state = LoopState.STOPPED
        self._shutdown = threading.Event()

    def stop(self):
        """Request shutdown; safe to call from a signal handler"""
        self._shutdown.set()

    @property
    def stopping(self):
        return self._shutdown.is_set()

    def run(self):
        """
        Run until stop() is called

        Raises:
            DeviceUnavailable: deck could not be opened within max_attempts
            PermissionDenied: deck is present but not accessible at startup
            IconError: an output's icon cannot be rendered at startup
        """
        self.state = LoopState.STARTING
        try:
            if not self._connect(startup=True):
                return
            self.state = LoopState.RUNNING

            while not self.stopping:
                if self.state == LoopState.RUNNING:
                    self.step()
                elif self.state == LoopState.RECONNECTING:
                    self._reconnect()
        finally:
            self.driver.close()
            self.state = LoopState.STOPPED
            logger.info("Event loop stopped")

    def step(self):
        """One read-timeout cycle of the RUNNING state"""
        try:
            event = self.driver.read_input_report(self.read_timeout)
        except DeviceDisconnected as e:
            logger.warning("Stream Deck disconnected: %s", e)
            self.state = LoopState.RECONNECTING
            return

        if event is None:
            return

        if not event.pressed or event.index != self.button_index:
            return

        try:
            output = self.controller.advance()
        except (AudioSwitchFailed, IconError) as e:
            logger.error("%s", e)
            return
        except WriteFailed as e:
            logger.warning("Audio switched but the key was not redrawn: %s", e)
            return
        except DeviceDisconnected as e:
            logger.warning("Stream Deck disconnected while redrawing: %s", e)
            self.state = LoopState.RECONNECTING
            return

        logger.info("Active output: %s", output.description)

    def _reconnect(self):
        self.driver.close()
        if self._connect(startup=False):
            self.state = LoopState.RUNNING

    def _redraw_after_reconnect(self):
        try:
            self.controller.redraw()
        except IconError as e:
            logger.error("Failed to redraw the active output: %s", e)

    def _connect(self, startup):
        """
        Open the deck with exponential backoff and draw the active output

        Returns:
            True when connected, False when shutdown was requested meanwhile
        """
        delay = self.backoff
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            if self.stopping:
                return False

            try:
                self.driver.open()
                if startup:
                    # Every icon has to render before the first press
                    self.controller.prepare()
                    self.controller.redraw()
                else:
                    self._redraw_after_reconnect()
                    logger.info("Stream Deck reconnected")
                return True
            except PermissionDenied as e:
                # Right after a replug udev may not have applied its rules yet
                if startup:
                    raise
                last_error = e
            except (DeviceNotFound, ProtocolMismatch, DeviceDisconnected, WriteFailed) as e:
                last_error = e

            logger.warning("Failed to open Stream Deck (attempt %d/%d): %s",
                           attempt, self.max_attempts, last_error)
            self.driver.close()

            if attempt < self.max_attempts:
                self._shutdown.wait(delay)
                delay = min(delay * 2, self.max_backoff)

        raise DeviceUnavailable("giving up after {} attempts: {}".format(
            self.max_attempts, last_error))
