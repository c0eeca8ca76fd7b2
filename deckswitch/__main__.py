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

import argparse
import logging
import signal
import sys

from deckswitch import __version__
from deckswitch.audio import PulseAudioControl
from deckswitch.config import load_config
from deckswitch.controller import OutputController
from deckswitch.device import DeviceDriver
from deckswitch.errors import DeckSwitchError
from deckswitch.icons import IconRenderer, IconSource
from deckswitch.loop import EventLoop

logger = logging.getLogger("deckswitch")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        prog='deckswitch',
        description='Cycle the default audio output with a Stream Deck key'
    )
    ap.add_argument('config', nargs='?', default=None,
                    help='Path to configuration JSON file (default: search the usual locations)')
    ap.add_argument('-v', '--verbose', action='store_true', help='Enable debug output')
    ap.add_argument('--serial', default=None, help='Only use the Stream Deck with this serial number')
    ap.add_argument('--brightness', type=int, default=None, help='Key brightness in percent (0-100)')
    ap.add_argument('--list-sinks', action='store_true',
                    help='Print the audio sink descriptions and exit')
    ap.add_argument('--version', action='version', version='%(prog)s {}'.format(__version__))
    return ap.parse_args(argv)


def list_sinks(audio):
    for sink in audio.list_sinks():
        print("{}\t{}".format(sink.description or sink.name, sink.name))
    return 0


def run(args):
    audio = PulseAudioControl()

    if args.list_sinks:
        return list_sinks(audio)

    config = load_config(args.config)
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    logger.info("Loaded configuration from %s", config.path)

    if not audio.is_available():
        logger.warning("pactl not found; audio switching will fail")

    # Every configured icon has to exist before we touch the device
    source = IconSource(base_dir=config.base_dir)
    for output in config.outputs:
        source.resolve(output.icon)

    brightness = config.brightness if args.brightness is None else args.brightness
    driver = DeviceDriver(serial=args.serial or config.serial, brightness=brightness)
    controller = OutputController(
        config.outputs,
        audio=audio,
        renderer=IconRenderer(source),
        driver=driver,
        button_index=config.button_index,
    )
    controller.sync()
    logger.info("Active output: %s", controller.current_output().description)

    loop = EventLoop(driver, controller, config.button_index)

    def request_stop(signum, frame):
        logger.info("Shutting down...")
        loop.stop()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    loop.run()
    return 0


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        return run(args)
    except DeckSwitchError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
