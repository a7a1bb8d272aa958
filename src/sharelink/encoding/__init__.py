# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from . import base62
from .crc import crc16

__all__ = 'base62', 'crc16'
