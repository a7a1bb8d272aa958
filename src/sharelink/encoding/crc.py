# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer

__all__ = 'crc16',  # noqa: COM818


_POLYNOMIAL = 0x1021
_INITIAL_VALUE = 0xFFFF


def crc16(data: Buffer, /) -> int:
    """
    Compute the CRC-16/CCITT checksum of data (polynomial 0x1021, initial
    value 0xFFFF, no final XOR, most significant bit first).

    It is used to catch transcription errors and truncation in links, it
    is not meant to protect against deliberate modification.
    """
    crc = _INITIAL_VALUE
    for byte in memoryview(data).cast('B'):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ _POLYNOMIAL) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc
