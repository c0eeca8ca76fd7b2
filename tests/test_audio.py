"""Tests for the pactl backed audio control."""

import subprocess

import pytest

from deckswitch import audio
from deckswitch.audio import (
    PulseAudioControl,
    SinkInfo,
    parse_default_sink,
    parse_sink_inputs,
    parse_sinks,
    select_sink,
)
from deckswitch.errors import AudioSwitchFailed

LIST_SINKS = """
Sink #1
    State: RUNNING
    Name: alsa_output.pci-0000_09_00.3.hdmi-stereo-extra2
    Description: HDMI/DisplayPort 3 (HDA NVidia Digital Stereo (HDMI))
    Properties:
        device.description = "HDMI/DisplayPort - HDA NVidia"

Sink #2
    State: IDLE
    Name: alsa_output.usb-SteelSeries_A50-00.iec958-stereo
    Description: Digital Output - A50
"""

INFO = """
Server String: /run/user/1000/pulse/native
Default Sink: alsa_output.usb-SteelSeries_A50-00.iec958-stereo
Default Source: alsa_input.usb-SteelSeries_A50-00.mono-fallback
"""

SINK_INPUTS = """
36  123 sink_b  protocol-native.c  s16le 2ch 44100Hz
37  321 sink_a  protocol-native.c  s16le 2ch 44100Hz
"""

HDMI = "alsa_output.pci-0000_09_00.3.hdmi-stereo-extra2"
A50 = "alsa_output.usb-SteelSeries_A50-00.iec958-stereo"


class FakePactl:
    """Replacement for subprocess.run answering like pactl."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)
        self.outputs = {
            ("list", "sinks"): LIST_SINKS,
            ("info",): INFO,
            ("list", "short", "sink-inputs"): SINK_INPUTS,
        }

    def __call__(self, cmd, **kwargs):
        args = tuple(cmd[1:])
        self.calls.append(args)
        if args[0] in self.fail_on:
            return subprocess.CompletedProcess(cmd, 1, "", "Failure: No such entity")
        return subprocess.CompletedProcess(cmd, 0, self.outputs.get(args, ""), "")


@pytest.fixture
def pactl(monkeypatch):
    fake = FakePactl()
    monkeypatch.setattr(audio.subprocess, "run", fake)
    return fake


class TestParsing:
    def test_parse_sinks_prefers_device_description(self):
        sinks = parse_sinks(LIST_SINKS)
        assert sinks == [
            SinkInfo(1, HDMI, "HDMI/DisplayPort - HDA NVidia"),
            SinkInfo(2, A50, "Digital Output - A50"),
        ]

    def test_parse_default_sink(self):
        assert parse_default_sink(INFO) == A50
        assert parse_default_sink("Server Name: pulseaudio\n") is None

    def test_parse_sink_inputs(self):
        assert parse_sink_inputs(SINK_INPUTS) == ["36", "37"]

    def test_select_prefers_exact_description(self):
        sinks = [SinkInfo(1, "a", "HDMI 2"), SinkInfo(2, "b", "HDMI")]
        assert select_sink(sinks, "hdmi").name == "b"

    def test_select_by_substring(self):
        sinks = parse_sinks(LIST_SINKS)
        assert select_sink(sinks, "a50").name == A50

    def test_select_by_name(self):
        sinks = parse_sinks(LIST_SINKS)
        assert select_sink(sinks, "whatever", name=A50).name == A50
        assert select_sink(sinks, "whatever", name="hdmi-stereo").name == HDMI

    def test_select_by_name_no_match(self):
        with pytest.raises(AudioSwitchFailed, match="bluez"):
            select_sink(parse_sinks(LIST_SINKS), "A50", name="bluez_sink")

    def test_select_no_match(self):
        with pytest.raises(AudioSwitchFailed, match="Speakers"):
            select_sink(parse_sinks(LIST_SINKS), "Speakers")


class TestPulseAudioControl:
    def test_get_default_sink_returns_description(self, pactl):
        assert PulseAudioControl().get_default_sink() == "Digital Output - A50"

    def test_set_default_sink_moves_streams(self, pactl):
        sink = PulseAudioControl().set_default_sink("HDMI/DisplayPort - HDA NVidia")

        assert sink.name == HDMI
        assert ("set-default-sink", HDMI) in pactl.calls
        assert ("move-sink-input", "36", HDMI) in pactl.calls
        assert ("move-sink-input", "37", HDMI) in pactl.calls

    def test_move_failures_are_not_fatal(self, pactl):
        pactl.fail_on.add("move-sink-input")
        assert PulseAudioControl().set_default_sink("A50").name == A50

    def test_get_default_sink_name(self, pactl):
        assert PulseAudioControl().get_default_sink_name() == A50

    def test_set_default_sink_by_name(self, pactl):
        PulseAudioControl().set_default_sink("Speakers", name=HDMI)
        assert ("set-default-sink", HDMI) in pactl.calls

    def test_set_default_failure(self, pactl):
        pactl.fail_on.add("set-default-sink")
        with pytest.raises(AudioSwitchFailed, match="No such entity"):
            PulseAudioControl().set_default_sink("A50")

    def test_unknown_sink(self, pactl):
        with pytest.raises(AudioSwitchFailed):
            PulseAudioControl().set_default_sink("Bluetooth")
        assert not any(call[0] == "set-default-sink" for call in pactl.calls)

    def test_missing_pactl(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", cmd[0])

        monkeypatch.setattr(audio.subprocess, "run", missing)
        with pytest.raises(AudioSwitchFailed, match="pactl"):
            PulseAudioControl().get_default_sink()

    def test_timeout(self, monkeypatch):
        def slow(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(audio.subprocess, "run", slow)
        with pytest.raises(AudioSwitchFailed):
            PulseAudioControl(timeout=0.1).set_default_sink("A50")
