"""Shared fakes and fixtures for deckswitch tests."""

import zlib

import pytest
from PIL import Image

from deckswitch.audio import AudioControl
from deckswitch.config import MaterialIcon, OutputSpec
from deckswitch.errors import AudioSwitchFailed, DeviceDisconnected
from deckswitch.icons import IconRenderer, IconSource

KEY_SIZE = (72, 72)


class FakeDeck:
    """Stand-in for a StreamDeck object from the StreamDeck library."""

    def __init__(self, serial="AL00A000000", keys=15, size=KEY_SIZE, visual=True,
                 open_error=None, reset_error=None):
        self.serial = serial
        self.keys = keys
        self.size = size
        self.visual = visual
        self.open_error = open_error
        self.reset_error = reset_error
        self.write_error = None
        self.images = {}
        self.brightness = None
        self.resets = 0
        self.callback = None
        self._open = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def deck_type(self):
        return "Fake Stream Deck"

    def is_visual(self):
        return self.visual

    def open(self):
        if self.open_error:
            raise self.open_error
        self._open = True

    def close(self):
        self._open = False

    def is_open(self):
        return self._open

    def reset(self):
        if self.reset_error:
            raise self.reset_error
        self.resets += 1
        self.images.clear()

    def set_brightness(self, percent):
        self.brightness = percent

    def key_count(self):
        return self.keys

    def key_image_format(self):
        return {"size": self.size, "format": "BMP", "flip": (False, False), "rotation": 0}

    def get_firmware_version(self):
        return "1.00.000"

    def get_serial_number(self):
        return self.serial

    def set_key_callback(self, callback):
        self.callback = callback

    def set_key_image(self, key, image):
        if self.write_error:
            raise self.write_error
        self.images[key] = image

    # test helpers
    def press(self, key, state=True):
        self.callback(self, key, state)

    def unplug(self):
        self._open = False


class FakeDeviceManager:
    def __init__(self, decks):
        self.decks = decks

    def __call__(self):
        return self

    def enumerate(self):
        return list(self.decks)


class FakeAudio(AudioControl):
    """Audio backend that records switch requests."""

    def __init__(self, default=None, fail=False, default_name=None):
        self.default = default
        self.default_name = default_name
        self.fail = fail
        self.calls = []
        self.names = []

    def get_default_sink(self):
        return self.default

    def get_default_sink_name(self):
        return self.default_name

    def set_default_sink(self, description, name=None):
        self.calls.append(description)
        self.names.append(name)
        if self.fail:
            raise AudioSwitchFailed("pactl exited with status 1")
        self.default = description

    def list_sinks(self):
        return []


class RecordingDriver:
    """Records key writes; enough of DeviceDriver for the controller."""

    def __init__(self, size=KEY_SIZE):
        self.size = size
        self.writes = []
        self.connected = True

    def key_image_size(self):
        if not self.connected:
            raise DeviceDisconnected("Stream Deck is not connected")
        return self.size

    def write_image(self, button_index, bitmap):
        if not self.connected:
            raise DeviceDisconnected("Stream Deck is not connected")
        self.writes.append((button_index, bitmap))

    @property
    def last_bitmap(self):
        return self.writes[-1][1] if self.writes else None


class ScriptedDriver(RecordingDriver):
    """
    Driver whose open() results and input reports come from lists.

    Items in `reads` are ButtonEvents, None (timeout) or exceptions to raise.
    When the reads run out, `on_idle` is called (usually loop.stop).
    """

    def __init__(self, reads=(), opens=(), size=KEY_SIZE):
        super().__init__(size)
        self.reads = list(reads)
        self.opens = list(opens)
        self.open_calls = 0
        self.close_calls = 0
        self.on_idle = None
        self.connected = False

    def open(self):
        self.open_calls += 1
        result = self.opens.pop(0) if self.opens else None
        if isinstance(result, Exception):
            raise result
        self.connected = True
        return object()

    def close(self):
        self.close_calls += 1
        self.connected = False

    def read_input_report(self, timeout):
        if not self.reads:
            if self.on_idle:
                self.on_idle()
            return None
        item = self.reads.pop(0)
        if isinstance(item, Exception):
            self.connected = False
            raise item
        return item


def fake_rasterize(data, size):
    """Solid square whose color depends on the asset bytes."""
    checksum = zlib.crc32(data)
    color = (checksum & 0xFF, (checksum >> 8) & 0xFF, (checksum >> 16) & 0xFF, 255)
    return Image.new("RGBA", size, color)


@pytest.fixture
def icon_dir(tmp_path):
    directory = tmp_path / "assets"
    directory.mkdir()
    for name in ("monitor", "headphones", "speaker"):
        (directory / "{}.svg".format(name)).write_bytes(
            '<svg xmlns="http://www.w3.org/2000/svg"><!-- {} --></svg>'.format(name).encode()
        )
    return directory


@pytest.fixture
def icon_source(icon_dir):
    return IconSource(base_dir=None, assets_dir=None, bundled_dir=str(icon_dir))


@pytest.fixture
def renderer(icon_source):
    return IconRenderer(icon_source, rasterizer=fake_rasterize)


@pytest.fixture
def outputs():
    return (
        OutputSpec("HDMI", MaterialIcon("monitor")),
        OutputSpec("A50", MaterialIcon("headphones")),
    )
