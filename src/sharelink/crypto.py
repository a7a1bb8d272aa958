# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Cryptographic and compression primitives used by the links.

The primitives are not implemented here, they come from the cryptography
package (SHA-256 and Ed25519) and from zlib (deflate). They are exposed as
coroutines that run the work in a thread, so they can be awaited from the
event loop without blocking it.
"""

import asyncio
from collections.abc import Buffer

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from sharelink.exceptions import DecompressionFailedError, DecompressionUnavailableError

try:
    import zlib
except ImportError:  # interpreters built without zlib cannot read compressed links
    zlib = None

__all__ = 'deflate', 'deflate_available', 'inflate', 'sha256', 'sign', 'verify'


def _sha256(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()


def _inflate(data: bytes, limit: int) -> bytes:
    decompressor = zlib.decompressobj()
    try:
        result = decompressor.decompress(data, limit + 1)
    except zlib.error as exc:
        raise DecompressionFailedError(f'Invalid compressed data: {exc}') from exc
    if len(result) > limit:
        raise DecompressionFailedError(f'Decompressed data exceeds the maximum size of {limit} bytes')
    if not decompressor.eof:
        raise DecompressionFailedError('Compressed data is truncated')
    return result


def deflate_available() -> bool:
    return zlib is not None


async def sha256(data: Buffer) -> bytes:
    return await asyncio.to_thread(_sha256, bytes(data))


async def sign(private_key: Ed25519PrivateKey, message: Buffer) -> bytes:
    return await asyncio.to_thread(private_key.sign, bytes(message))


async def verify(public_key: Ed25519PublicKey, signature: Buffer, message: Buffer) -> bool:
    """Check an Ed25519 signature, returning False instead of raising if it does not verify"""
    try:
        await asyncio.to_thread(public_key.verify, bytes(signature), bytes(message))
    except InvalidSignature:
        return False
    return True


async def deflate(data: Buffer) -> bytes:
    if zlib is None:
        raise DecompressionUnavailableError('No deflate implementation is available')
    return await asyncio.to_thread(zlib.compress, bytes(data), 9)


async def inflate(data: Buffer, *, limit: int) -> bytes:
    """Inflate zlib data, failing if the result would be larger than limit bytes"""
    if zlib is None:
        raise DecompressionUnavailableError('No deflate implementation is available')
    return await asyncio.to_thread(_inflate, bytes(data), limit)
