# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Base62 encoding of arbitrary byte strings.

The bytes are interpreted as a big-endian non-negative integer which is
then written in base 62 using the digits, the uppercase and the lowercase
ASCII letters, in this order. The integer conversion drops leading zero
bytes, so each of them is represented by a leading zero symbol.

The alphabet only contains characters that are safe in every part of a
URL, so encoded values never need escaping.
"""

from collections.abc import Buffer

from sharelink.exceptions import InvalidEncodingError

__all__ = 'ALPHABET', 'decode', 'encode', 'is_base62'


ALPHABET = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz'

_base = len(ALPHABET)
_zero = ALPHABET[0]
_index = {char: position for position, char in enumerate(ALPHABET)}


def encode(data: Buffer, /) -> str:
    data = bytes(data)
    number = int.from_bytes(data, byteorder='big')
    digits = []
    while number:
        number, remainder = divmod(number, _base)
        digits.append(ALPHABET[remainder])
    leading_zeros = len(data) - len(data.lstrip(b'\x00'))
    return _zero * leading_zeros + ''.join(reversed(digits))


def decode(text: str, /) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * _base + _index[char]
        except KeyError:
            raise InvalidEncodingError(f'Invalid base62 character: {char!r}') from None
    leading_zeros = len(text) - len(text.lstrip(_zero))
    return bytes(leading_zeros) + number.to_bytes((number.bit_length() + 7) // 8, byteorder='big')


def is_base62(text: str, /) -> bool:
    return all(char in _index for char in text)
