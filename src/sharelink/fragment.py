# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Link fragment annotations.

   The part of a link after the '#' separator carries the annotations. It
   is never sent to a server when the link is opened in a browser, which
   is why every secret a link carries goes here and never in the path.

     #key:value&key:value&...

   Each annotation is split on the first ':', so values may contain more
   colons. Values that can contain reserved characters are percent-encoded.

     k       the encryption key, URL-safe base64 without padding
     p       a plaintext password, only present when explicitly embedded
     perm    the permission code (o, e or v)
     addr    a direct P2P address (host:port)
     peers   bootstrap peers, joined with ';' and base62 encoded
     hpeer   swarm peer public keys (64 hex characters), comma separated
     nodes   mesh relay URLs, each percent-encoded, comma separated
     srv     a sync server URL, restricted to the allowed URL schemes
     topic   the DHT topic hash, hex encoded
     exp     the invite expiry, in milliseconds since the epoch
     sig     the invite signature, base62 encoded
     by      the public key of the invite signer, base62 encoded

   Annotations with unknown keys are kept in order and written back
   unchanged. A known annotation with a value that cannot be parsed is
   dropped on its own without failing the link, its key is remembered in
   the malformed field so that the signed invite validator can refuse a
   link with a damaged signature instead of treating it as unsigned.

"""

import binascii
import logging
import re
from base64 import b64decode, urlsafe_b64encode
from dataclasses import dataclass, field
from typing import Self
from urllib.parse import quote, unquote, urlsplit

from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import InvalidEncodingError
from sharelink.hints import ConnectionHints, decode_peer_list, encode_peer_list, is_hex, is_swarm_key
from sharelink.payload import Permission

__all__ = 'SECRET_KEYS', 'SIGNATURE_KEYS', 'FragmentAnnotations', 'decode_key', 'encode_key', 'percent_decode', 'percent_encode'


logger = logging.getLogger(__name__)


SECRET_KEYS = frozenset({'k', 'p', 'sig'})
SIGNATURE_KEYS = frozenset({'exp', 'sig', 'by'})

SIGNATURE_SIZE = 64
SIGNER_SIZE = 32

MAX_EXPIRY = 253402300799999  # 9999-12-31T23:59:59.999Z

_known_keys = frozenset({'k', 'p', 'perm', 'addr', 'peers', 'hpeer', 'nodes', 'srv', 'topic', 'exp', 'sig', 'by'})
_base64url_regex = re.compile(r'^[A-Za-z0-9_-]*$')


def percent_encode(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def percent_decode(value: str) -> str:
    return unquote(value, errors='strict')


def encode_key(key: bytes) -> str:
    return urlsafe_b64encode(key).rstrip(b'=').decode('ascii')


def decode_key(text: str) -> bytes:
    if not _base64url_regex.match(text):
        raise InvalidEncodingError('Invalid URL-safe base64 key: unexpected characters')
    try:
        return b64decode(text + '=' * (-len(text) % 4), altchars=b'-_', validate=True)
    except binascii.Error as exc:
        raise InvalidEncodingError(f'Invalid URL-safe base64 key: {exc}') from exc


def _decode_fixed(text: str, size: int) -> bytes:
    data = base62.decode(text)
    if len(data) != size:
        raise InvalidEncodingError(f'Expected {size} bytes, got {len(data)}')
    return data


@dataclass(frozen=True, slots=True, kw_only=True)
class FragmentAnnotations:
    key: bytes | None = None
    password: str | None = None
    permission: Permission | None = None
    address: str | None = None
    peers: tuple[str, ...] = ()
    swarm_peers: tuple[str, ...] = ()
    relays: tuple[str, ...] = ()
    server_url: str | None = None
    topic: str | None = None
    expiry: int | None = None
    signature: bytes | None = None
    signer: bytes | None = None
    unknown: tuple[tuple[str, str], ...] = ()
    malformed: frozenset[str] = field(default=frozenset())

    @property
    def hints(self) -> ConnectionHints:
        return ConnectionHints(address=self.address, peers=self.peers, swarm_peers=self.swarm_peers, relays=self.relays, topic=self.topic)

    @property
    def present_keys(self) -> frozenset[str]:
        """The known annotation keys found in the fragment, including the ones whose values were malformed"""
        values = {
            'k': self.key,
            'p': self.password,
            'perm': self.permission,
            'addr': self.address,
            'peers': self.peers or None,
            'hpeer': self.swarm_peers or None,
            'nodes': self.relays or None,
            'srv': self.server_url,
            'topic': self.topic,
            'exp': self.expiry,
            'sig': self.signature,
            'by': self.signer,
        }
        return frozenset(key for key, value in values.items() if value is not None) | self.malformed

    @classmethod
    def parse(cls, fragment: str, *, configuration: ShareConfiguration | None = None) -> Self:
        configuration = configuration or ShareConfiguration()
        fragment = fragment.removeprefix('#')
        values: dict[str, object] = {}
        unknown: list[tuple[str, str]] = []
        malformed: set[str] = set()
        for parameter in fragment.split('&'):
            if not parameter:
                continue
            name, separator, value = parameter.partition(':')
            if not separator:
                logger.debug('Ignoring fragment annotation without a value: %r', name)
                continue
            if name not in _known_keys:
                unknown.append((name, value))
                continue
            try:
                parsed = cls._parse_value(name, value, configuration)
            except (ValueError, UnicodeError) as exc:
                logger.warning('Dropping malformed %r annotation: %s', name, exc.__class__.__name__)
                values.pop(name, None)
                malformed.add(name)
                continue
            malformed.discard(name)
            if parsed is None:
                values.pop(name, None)
            else:
                values[name] = parsed
        return cls(
            key=values.get('k'),
            password=values.get('p'),
            permission=values.get('perm'),
            address=values.get('addr'),
            peers=values.get('peers', ()),
            swarm_peers=values.get('hpeer', ()),
            relays=values.get('nodes', ()),
            server_url=values.get('srv'),
            topic=values.get('topic'),
            expiry=values.get('exp'),
            signature=values.get('sig'),
            signer=values.get('by'),
            unknown=tuple(unknown),
            malformed=frozenset(malformed),
        )  # type: ignore[arg-type]

    @staticmethod
    def _parse_value(name: str, value: str, configuration: ShareConfiguration) -> object:  # noqa: C901
        match name:
            case 'k':
                return decode_key(value)
            case 'p':
                return percent_decode(value)
            case 'perm':
                return Permission.from_code(value)
            case 'addr':
                return percent_decode(value) or None
            case 'peers':
                return decode_peer_list(value)
            case 'hpeer':
                return tuple(key.lower() for key in value.split(',') if is_swarm_key(key))
            case 'nodes':
                return tuple(relay for relay in map(percent_decode, value.split(',')) if relay)
            case 'srv':
                server_url = percent_decode(value)
                scheme = urlsplit(server_url).scheme.lower()
                if scheme not in configuration.server_schemes:
                    logger.warning('Ignoring server URL with a disallowed scheme: %r', scheme)
                    return None
                return server_url
            case 'topic':
                if not is_hex(value):
                    raise ValueError('the topic must be a hex string')
                return value.lower()
            case 'exp':
                if not value.isascii() or not value.isdigit():
                    raise ValueError('the expiry must be a non-negative integer')
                if int(value) > MAX_EXPIRY:
                    raise ValueError('the expiry is out of range')
                return int(value)
            case 'sig':
                return _decode_fixed(value, SIGNATURE_SIZE)
            case 'by':
                return _decode_fixed(value, SIGNER_SIZE)
            case _:
                raise KeyError(name)

    def serialize(self) -> str:
        parts = []
        if self.key is not None:
            parts.append(f'k:{encode_key(self.key)}')
        if self.password is not None:
            parts.append(f'p:{percent_encode(self.password)}')
        if self.permission is not None:
            parts.append(f'perm:{self.permission.code}')
        if self.address:
            parts.append(f'addr:{percent_encode(self.address)}')
        if self.peers:
            parts.append(f'peers:{encode_peer_list(self.peers)}')
        if self.swarm_peers:
            parts.append(f'hpeer:{','.join(self.swarm_peers)}')
        if self.relays:
            parts.append(f'nodes:{','.join(map(percent_encode, self.relays))}')
        if self.server_url:
            parts.append(f'srv:{percent_encode(self.server_url)}')
        if self.topic:
            parts.append(f'topic:{self.topic}')
        if self.expiry is not None:
            parts.append(f'exp:{self.expiry}')
        if self.signature is not None:
            parts.append(f'sig:{base62.encode(self.signature)}')
        if self.signer is not None:
            parts.append(f'by:{base62.encode(self.signer)}')
        parts.extend(f'{name}:{value}' for name, value in self.unknown)
        return '&'.join(parts)
