# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import unittest
import zlib
from unittest import mock

from sharelink import crypto
from sharelink.compression import compress_link, decompress_link, is_compressed_link
from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import DecompressionFailedError, DecompressionUnavailableError
from sharelink.hints import ConnectionHints
from sharelink.links import LinkFormat, generate_share_link, parse_any_share_link
from sharelink.payload import EntityDescriptor, EntityType


workspace = EntityDescriptor.from_hex(EntityType.workspace, '0123456789abcdef0123456789abcdef')


def compressed(content: bytes, configuration: ShareConfiguration | None = None) -> str:
    configuration = configuration or ShareConfiguration()
    return f'{configuration.compressed_prefix}{base62.encode(zlib.compress(content))}'


class TestCompression(unittest.IsolatedAsyncioTestCase):

    def setUp(self) -> None:
        hints = ConnectionHints(
            address='relay-one.nightjar.example.com:4444',
            relays=tuple(f'wss://relay-{n}.nightjar.example.com/mesh/v1' for n in range(5)),
        )
        self.link = generate_share_link(workspace, encryption_key=bytes(32), hints=hints, server_url='wss://relay-0.nightjar.example.com/sync/v1')

    def test_is_compressed_link(self) -> None:
        self.assertTrue(is_compressed_link('nightjar://c/abc'))
        self.assertTrue(is_compressed_link(' NIGHTJAR://C/abc'))
        self.assertFalse(is_compressed_link('nightjar://w/abc'))
        self.assertFalse(is_compressed_link('https://night-jar.co/join/w/abc'))

    async def test_round_trip(self) -> None:
        result = await compress_link(self.link)
        self.assertTrue(result.startswith('nightjar://c/'))
        self.assertLess(len(result), len(self.link))
        self.assertTrue(base62.is_base62(result.removeprefix('nightjar://c/')))
        self.assertEqual(await decompress_link(result), self.link)

    async def test_not_worth_compressing(self) -> None:
        link = 'nightjar://w/abc'
        self.assertEqual(await compress_link(link), link)

    async def test_other_links_are_unchanged(self) -> None:
        for link in ('https://night-jar.co/join/w/abc', 'NIGHTJAR://w/' + 'a' * 200, 'nightjar://c/abc'):
            self.assertEqual(await compress_link(link), link)
        self.assertEqual(await decompress_link(self.link), self.link)

    async def test_corrupt_data(self) -> None:
        with self.assertRaises(DecompressionFailedError) as context:
            await decompress_link('nightjar://c/abc')
        self.assertTrue(context.exception.terminal)
        with self.assertRaises(DecompressionFailedError):
            await decompress_link('nightjar://c/abc-def')
        with self.assertRaises(DecompressionFailedError):
            await decompress_link(compressed(b'w/abc')[:-4])
        with self.assertRaisesRegex(DecompressionFailedError, 'not valid UTF-8'):
            await decompress_link(compressed(b'w/\xff\xfe'))

    async def test_size_limit(self) -> None:
        content = b'w/' + b'a' * 1000
        configuration = ShareConfiguration(max_decompressed_size=1000)
        with self.assertRaisesRegex(DecompressionFailedError, 'exceeds the maximum size'):
            await decompress_link(compressed(content), configuration=configuration)
        configuration = ShareConfiguration(max_decompressed_size=len(content))
        self.assertEqual(await decompress_link(compressed(content), configuration=configuration), 'nightjar://' + content.decode())

    async def test_parse_compressed_link(self) -> None:
        link = await compress_link(self.link)
        parsed = await parse_any_share_link(link)
        self.assertIs(parsed.format, LinkFormat.COMPRESSED)
        self.assertEqual(parsed.entity, workspace)
        self.assertEqual(parsed.key, bytes(32))
        self.assertEqual(parsed.hints.relays, tuple(f'wss://relay-{n}.nightjar.example.com/mesh/v1' for n in range(5)))
        self.assertEqual(parsed.to_link(), self.link)

        parsed = await parse_any_share_link(self.link)
        self.assertIs(parsed.format, LinkFormat.TYPED)

    async def test_custom_scheme(self) -> None:
        configuration = ShareConfiguration(scheme='example')
        link = self.link.replace('nightjar://', 'example://', 1)
        result = await compress_link(link, configuration=configuration)
        self.assertTrue(result.startswith('example://c/'))
        self.assertEqual(await decompress_link(result, configuration=configuration), link)

    async def test_deflate_unavailable(self) -> None:
        link = await compress_link(self.link)
        with mock.patch('sharelink.crypto.zlib', None):
            self.assertFalse(crypto.deflate_available())
            with self.assertLogs('sharelink.compression', level='WARNING'):
                self.assertEqual(await compress_link(self.link), self.link)
            with self.assertRaises(DecompressionUnavailableError) as context:
                await decompress_link(link)
            self.assertFalse(context.exception.terminal)
            self.assertEqual(context.exception.kind, 'decompression-unavailable')
        self.assertTrue(crypto.deflate_available())
