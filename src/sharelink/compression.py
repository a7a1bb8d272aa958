# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Link compression.

A long link (one that carries many hints or a signed invite) can be
shortened by deflating everything after the scheme and writing the
result in base62 behind the compressed marker:

    nightjar://c/{base62(deflate(rest))}

The compressed form is only used when the resulting link is strictly
shorter than the original one, otherwise the original is returned. The
transformation is lossless, decompressing gives back the original link
character for character.
"""

import logging

from sharelink import crypto
from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import DecompressionFailedError, DecompressionUnavailableError, InvalidEncodingError

__all__ = 'compress_link', 'decompress_link', 'is_compressed_link'


logger = logging.getLogger(__name__)


def is_compressed_link(link: str, *, configuration: ShareConfiguration | None = None) -> bool:
    configuration = configuration or ShareConfiguration()
    return link.strip().lower().startswith(configuration.compressed_prefix)


async def compress_link(link: str, *, configuration: ShareConfiguration | None = None) -> str:
    configuration = configuration or ShareConfiguration()
    prefix = configuration.link_prefix
    # decompression always restores the canonical (lowercase) prefix
    if not link.startswith(prefix) or is_compressed_link(link, configuration=configuration):
        return link
    try:
        data = await crypto.deflate(link[len(prefix):].encode('utf-8'))
    except DecompressionUnavailableError:
        logger.warning('Cannot compress link: no deflate implementation is available')
        return link
    compressed = f'{configuration.compressed_prefix}{base62.encode(data)}'
    if len(compressed) < len(link):
        return compressed
    return link


async def decompress_link(link: str, *, configuration: ShareConfiguration | None = None) -> str:
    configuration = configuration or ShareConfiguration()
    link = link.strip()
    if not is_compressed_link(link, configuration=configuration):
        return link
    try:
        data = base62.decode(link[len(configuration.compressed_prefix):])
    except InvalidEncodingError as exc:
        raise DecompressionFailedError(f'Invalid compressed link: {exc}') from exc
    content = await crypto.inflate(data, limit=configuration.max_decompressed_size)
    try:
        text = content.decode('utf-8')
    except UnicodeDecodeError as exc:
        raise DecompressionFailedError('The decompressed link is not valid UTF-8') from exc
    return f'{configuration.link_prefix}{text}'
