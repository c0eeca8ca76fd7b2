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
deckswitch – cycle the default audio output with one Stream Deck key

The key shows an icon for the active output and every press switches
to the next configured sink.
"""

__version__ = "0.1.0"
