# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import hashlib
import unittest

import pytest

from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import InvalidEncodingError
from sharelink.fragment import FragmentAnnotations, decode_key, encode_key, percent_decode, percent_encode
from sharelink.hints import ConnectionHints, decode_peer_list, encode_peer_list, is_swarm_key, topic_hash
from sharelink.payload import EntityDescriptor, EntityType, Permission


class TestFragmentHelpers:

    def test_key_encoding(self) -> None:
        assert encode_key(b'\x01\x02\x03') == 'AQID'
        assert encode_key(b'\xfb\xff') == '-_8'
        assert decode_key('-_8') == b'\xfb\xff'
        key = bytes(range(32))
        assert '=' not in encode_key(key)
        assert decode_key(encode_key(key)) == key
        with pytest.raises(InvalidEncodingError, match=r'Invalid URL-safe base64 key'):
            decode_key('a+b/')

    def test_percent_encoding(self) -> None:
        assert percent_encode('a b&c:d#e') == 'a%20b%26c%3Ad%23e'
        assert percent_encode("-_.!~*'()") == "-_.!~*'()"
        assert percent_decode('a%20b%26c') == 'a b&c'
        assert percent_decode(percent_encode('pässwörd')) == 'pässwörd'
        with pytest.raises(UnicodeDecodeError):
            percent_decode('%ff')


class TestFragmentAnnotations:

    def test_empty(self) -> None:
        annotations = FragmentAnnotations.parse('')
        assert annotations == FragmentAnnotations()
        assert annotations.serialize() == ''
        assert annotations.present_keys == frozenset()

    def test_serialize_order(self) -> None:
        annotations = FragmentAnnotations(
            key=b'\x01\x02\x03',
            permission=Permission.viewer,
            address='203.0.113.5:4444',
            topic='ab' * 32,
            expiry=1700000000000,
            signature=bytes(range(64)),
            signer=bytes(range(32)),
        )
        keys = [part.partition(':')[0] for part in annotations.serialize().split('&')]
        assert keys == ['k', 'perm', 'addr', 'topic', 'exp', 'sig', 'by']

    def test_round_trip(self) -> None:
        annotations = FragmentAnnotations(
            password='correct horse & battery: staple',
            permission=Permission.owner,
            address='[2001:db8::1]:4000',
            peers=('192.0.2.1:4000', 'peer.example.com:5000'),
            swarm_peers=('ab' * 32, 'cd' * 32),
            relays=('wss://relay.example.com/mesh?x=1', 'ws://127.0.0.1:8080'),
            server_url='https://sync.example.com/path',
            topic='ef' * 32,
            expiry=1700000000000,
            signature=bytes(64),
            signer=b'\xff' * 32,
            unknown=(('future', 'value'),),
        )
        assert FragmentAnnotations.parse(annotations.serialize()) == annotations
        assert FragmentAnnotations.parse('#' + annotations.serialize()) == annotations

    def test_known_keys(self) -> None:
        signature = bytes(range(64))
        signer = bytes(range(32))
        fragment = f'k:AQID&perm:v&addr:host%3A4000&topic:abcd&exp:1700000000000&sig:{base62.encode(signature)}&by:{base62.encode(signer)}'
        annotations = FragmentAnnotations.parse(fragment)
        assert annotations.key == b'\x01\x02\x03'
        assert annotations.permission is Permission.viewer
        assert annotations.address == 'host:4000'
        assert annotations.topic == 'abcd'
        assert annotations.expiry == 1700000000000
        assert annotations.signature == signature
        assert annotations.signer == signer
        assert annotations.present_keys == {'k', 'perm', 'addr', 'topic', 'exp', 'sig', 'by'}

    def test_password_is_percent_encoded(self) -> None:
        annotations = FragmentAnnotations(password='a b&c')
        assert annotations.serialize() == 'p:a%20b%26c'
        assert FragmentAnnotations.parse('p:a%20b%26c').password == 'a b&c'

    def test_values_with_colons(self) -> None:
        # annotations are split on the first colon only
        annotations = FragmentAnnotations.parse('addr:192.0.2.1:4000&other:a:b:c')
        assert annotations.address == '192.0.2.1:4000'
        assert annotations.unknown == (('other', 'a:b:c'),)

    def test_unknown_keys_are_preserved(self) -> None:
        fragment = 'perm:e&future:x1&other:a:b&empty:'
        annotations = FragmentAnnotations.parse(fragment)
        assert annotations.permission is Permission.editor
        assert annotations.unknown == (('future', 'x1'), ('other', 'a:b'), ('empty', ''))
        assert annotations.serialize() == fragment

    def test_empty_parameters(self) -> None:
        annotations = FragmentAnnotations.parse('&&perm:o&&novalue&')
        assert annotations.permission is Permission.owner
        assert annotations.unknown == ()

    def test_last_value_wins(self) -> None:
        assert FragmentAnnotations.parse('perm:v&perm:o').permission is Permission.owner

    def test_malformed_values_are_dropped(self) -> None:
        annotations = FragmentAnnotations.parse('k:!!!&perm:x&exp:12a&sig:abc&by:&peers:a-b&perm:o')
        assert annotations.key is None
        assert annotations.permission is Permission.owner
        assert annotations.expiry is None
        assert annotations.signature is None
        assert annotations.signer is None
        assert annotations.peers == ()
        assert annotations.malformed == {'k', 'exp', 'sig', 'by', 'peers'}
        # keys with malformed values are still reported as present
        assert {'k', 'exp', 'sig', 'by'} <= annotations.present_keys

    def test_topic_values(self) -> None:
        assert FragmentAnnotations.parse('topic:ABCD').topic == 'abcd'
        for value in ('', 'abc%26perm%3Ao', 'not-hex'):
            annotations = FragmentAnnotations.parse(f'topic:{value}&perm:v')
            assert annotations.topic is None
            assert annotations.malformed == {'topic'}
            assert annotations.permission is Permission.viewer

    def test_expiry_range(self) -> None:
        assert FragmentAnnotations.parse('exp:253402300799999').expiry == 253402300799999
        assert FragmentAnnotations.parse('exp:253402300800000').malformed == {'exp'}
        assert FragmentAnnotations.parse('exp:-1').malformed == {'exp'}

    def test_signature_sizes(self) -> None:
        assert FragmentAnnotations.parse(f'sig:{base62.encode(bytes(63))}').malformed == {'sig'}
        assert FragmentAnnotations.parse(f'by:{base62.encode(bytes(33))}').malformed == {'by'}
        assert FragmentAnnotations.parse(f'by:{base62.encode(bytes(32))}').signer == bytes(32)

    def test_server_url_schemes(self) -> None:
        for server_url in ('http://sync.example.com', 'https://sync.example.com', 'ws://sync.example.com', 'WSS://sync.example.com'):
            annotations = FragmentAnnotations.parse(f'srv:{percent_encode(server_url)}')
            assert annotations.server_url == server_url
        for server_url in ('file:///etc/passwd', 'javascript:alert(1)', 'ftp://example.com', 'sync.example.com'):
            annotations = FragmentAnnotations.parse(f'srv:{percent_encode(server_url)}&perm:e')
            assert annotations.server_url is None
            assert annotations.permission is Permission.editor
            assert 'srv' not in annotations.present_keys

    def test_server_url_schemes_configuration(self) -> None:
        configuration = ShareConfiguration(server_schemes=frozenset({'wss'}))
        assert FragmentAnnotations.parse('srv:wss%3A%2F%2Fsync.example.com', configuration=configuration).server_url == 'wss://sync.example.com'
        assert FragmentAnnotations.parse('srv:https%3A%2F%2Fsync.example.com', configuration=configuration).server_url is None

    def test_swarm_peers(self) -> None:
        key = 'ab' * 32
        annotations = FragmentAnnotations.parse(f'hpeer:{key},short,{'x' * 64},{key.upper()}')
        assert annotations.swarm_peers == (key, key)

    def test_relays(self) -> None:
        annotations = FragmentAnnotations(relays=('wss://relay.example.com/a,b', 'ws://127.0.0.1:8080'))
        serialized = annotations.serialize()
        assert serialized == 'nodes:wss%3A%2F%2Frelay.example.com%2Fa%2Cb,ws%3A%2F%2F127.0.0.1%3A8080'
        assert FragmentAnnotations.parse(serialized).relays == annotations.relays
        assert FragmentAnnotations.parse('nodes:,,ws%3A%2F%2Fa,').relays == ('ws://a',)

    def test_hints(self) -> None:
        hints = ConnectionHints(address='192.0.2.1:4000', peers=('a:1',), swarm_peers=('ab' * 32,), relays=('wss://r',), topic='cd' * 32)
        annotations = FragmentAnnotations(address=hints.address, peers=hints.peers, swarm_peers=hints.swarm_peers, relays=hints.relays, topic=hints.topic)
        assert annotations.hints == hints
        assert FragmentAnnotations.parse(annotations.serialize()).hints == hints


class TestHints:

    def test_peer_list(self) -> None:
        peers = ('192.0.2.1:4000', 'peer.example.com:5000', '[2001:db8::1]:6000')
        encoded = encode_peer_list(peers)
        assert base62.is_base62(encoded)
        assert decode_peer_list(encoded) == peers
        assert decode_peer_list(base62.encode(b'a:1;;b:2;')) == ('a:1', 'b:2')
        assert decode_peer_list('') == ()

    def test_swarm_keys(self) -> None:
        assert is_swarm_key('0123456789abcdef' * 4)
        assert is_swarm_key('0123456789ABCDEF' * 4)
        assert not is_swarm_key('0123456789abcdef' * 2)
        assert not is_swarm_key('g' * 64)

    def test_connection_hints(self) -> None:
        assert not ConnectionHints()
        assert ConnectionHints(topic='ab')
        assert ConnectionHints(peers=['a:1', 'b:2']).peers == ('a:1', 'b:2')  # type: ignore[arg-type]
        with pytest.raises(ValueError, match=r'Swarm peer keys must have 64 hex characters'):
            ConnectionHints(swarm_peers=('abc',))
        assert ConnectionHints(swarm_peers=('AB' * 32,), topic='ABCD') == ConnectionHints(swarm_peers=('ab' * 32,), topic='abcd')
        for topic in ('', 'abc&perm:o', 'xyz', 'ab:cd'):
            with pytest.raises(ValueError, match=r'The topic must be a hex string'):
                ConnectionHints(topic=topic)


class TestTopicHash(unittest.IsolatedAsyncioTestCase):

    async def test_workspace_topic(self) -> None:
        workspace = EntityDescriptor.from_hex(EntityType.workspace, '0123456789abcdef0123456789abcdef')
        expected = hashlib.sha256(b'nightjar-workspace:0123456789abcdef0123456789abcdef').hexdigest()
        self.assertEqual(await topic_hash(workspace), expected)

    async def test_entity_topics(self) -> None:
        folder = EntityDescriptor.from_hex(EntityType.folder, '0123456789abcdef0123456789abcdef')
        document = EntityDescriptor.from_hex(EntityType.document, '0123456789abcdef0123456789abcdef')
        self.assertEqual(await topic_hash(folder), hashlib.sha256(b'nightjar-folder:0123456789abcdef0123456789abcdef').hexdigest())
        self.assertEqual(await topic_hash(document), hashlib.sha256(b'nightjar-document:0123456789abcdef0123456789abcdef').hexdigest())
        self.assertEqual(len(await topic_hash(folder)), 64)
