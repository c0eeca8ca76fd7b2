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
Output selection

OutputController cycles through the configured outputs. The audio switch
and the key image change together: if the switch fails, neither the
selection nor the key changes.
"""

import logging

from deckswitch.audio import sink_matches, sink_name_matches, SinkInfo
from deckswitch.errors import AudioSwitchFailed, NoOutputsConfigured

logger = logging.getLogger(__name__)


class OutputController:
    """
    Cycle the default sink through an ordered list of outputs

    Args:
        outputs: Sequence of OutputSpec, in cycle order
        audio: AudioControl
        renderer: IconRenderer
        driver: DeviceDriver (write_image, key_image_size)
        button_index: Key that shows the active output
    """

    def __init__(self, outputs, audio, renderer, driver, button_index):
        self.outputs = tuple(outputs)
        self.audio = audio
        self.renderer = renderer
        self.driver = driver
        self.button_index = button_index
        self._active_index = 0

    @property
    def active_index(self):
        return self._active_index

    def current_output(self):
        if not self.outputs:
            raise NoOutputsConfigured("no audio outputs configured")
        return self.outputs[self._active_index]

    def index_for(self, description, sink_name=None):
        """Index of the output matching a sink description (or name), or None"""
        if sink_name is not None:
            named = SinkInfo(None, sink_name, description)
            for index, output in enumerate(self.outputs):
                if output.name and output.name.lower() == sink_name.lower():
                    return index
            for index, output in enumerate(self.outputs):
                if output.name and sink_name_matches(output.name, named):
                    return index

        sink = SinkInfo(None, description, description)
        # Exact matches first, so 'HDMI' does not steal 'HDMI 2'
        for index, output in enumerate(self.outputs):
            if output.description.lower() == description.lower():
                return index
        for index, output in enumerate(self.outputs):
            if sink_matches(output.description, sink):
                return index
        return None

    def sync(self):
        """
        Seed the selection from the system's current default sink

        Falls back to the first output when the default sink is unknown or
        not configured. Called once at startup.
        """
        self._active_index = 0
        sink_name = None
        try:
            current = self.audio.get_default_sink()
            if any(output.name for output in self.outputs):
                sink_name = self.audio.get_default_sink_name()
        except AudioSwitchFailed as e:
            logger.warning("Failed to determine current default sink: %s", e)
            return self._active_index

        if current is None:
            return self._active_index

        index = self.index_for(current, sink_name)
        if index is None:
            logger.warning("Default sink '%s' is not configured; using '%s'",
                           current, self.outputs[0].description if self.outputs else None)
        else:
            self._active_index = index
        return self._active_index

    def _render(self, output):
        return self.renderer.get(output.icon, self.driver.key_image_size(), highlighted=True)

    def prepare(self):
        """
        Render every output's icon at the current key size

        Raises:
            AssetNotFound, RenderFailed: an icon is unusable
        """
        size = self.driver.key_image_size()
        for output in self.outputs:
            for highlighted in (True, False):
                self.renderer.get(output.icon, size, highlighted=highlighted)

    def redraw(self):
        """Draw the current output's icon on the control key"""
        output = self.current_output()
        self.driver.write_image(self.button_index, self._render(output))

    def advance(self):
        """
        Switch to the next output

        Returns:
            The newly active OutputSpec

        Raises:
            NoOutputsConfigured: output list is empty
            AudioSwitchFailed: sink switch failed; nothing changed
            RenderFailed, AssetNotFound: icon unusable; nothing changed
        """
        if not self.outputs:
            raise NoOutputsConfigured("no audio outputs configured")

        next_index = (self._active_index + 1) % len(self.outputs)
        target = self.outputs[next_index]

        # Render before switching so a broken icon cannot leave a stale key
        bitmap = self._render(target)

        logger.info("Switching audio output to '%s'", target.description)
        try:
            self.audio.set_default_sink(target.description, name=target.name)
        except AudioSwitchFailed as e:
            raise AudioSwitchFailed("failed to switch audio output to '{}': {}".format(
                target.description, e)) from e

        self._active_index = next_index
        self.driver.write_image(self.button_index, bitmap)
        return target
