# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Peer to peer bootstrap hints.

Links only carry these hints, they never act on them. A hint tells the
receiving side where the entity can be found: a direct address, a few
bootstrap peers, the public keys of swarm peers, mesh relays and the DHT
topic under which the peers of a workspace meet.
"""

import string
from collections.abc import Iterable
from dataclasses import dataclass

from sharelink.crypto import sha256
from sharelink.encoding import base62
from sharelink.payload import EntityDescriptor, EntityType

__all__ = 'ConnectionHints', 'decode_peer_list', 'encode_peer_list', 'is_hex', 'is_swarm_key', 'topic_hash'


SWARM_KEY_LENGTH = 64

_workspace_topic_prefix = 'nightjar-workspace:'


def encode_peer_list(peers: Iterable[str]) -> str:
    """Encode host:port peer addresses as a single base62 string"""
    return base62.encode(';'.join(peers).encode('utf-8'))


def decode_peer_list(text: str) -> tuple[str, ...]:
    joined = base62.decode(text).decode('utf-8')
    return tuple(peer for peer in joined.split(';') if peer)


def is_swarm_key(key: str) -> bool:
    return len(key) == SWARM_KEY_LENGTH and is_hex(key)


def is_hex(text: str) -> bool:
    return bool(text) and all(char in string.hexdigits for char in text)


async def topic_hash(entity: EntityDescriptor) -> str:
    """
    Return the hex encoded DHT topic for an entity.

    Workspace peers meet under the SHA-256 hash of the workspace id with a
    fixed prefix, which does not depend on the workspace password. Folders
    and documents use a prefix derived from their type so their topics
    never collide with a workspace topic.
    """
    match entity.entity_type:
        case EntityType.workspace:
            data = f'{_workspace_topic_prefix}{entity.entity_id.hex()}'
        case entity_type:
            data = f'nightjar-{entity_type.name}:{entity.entity_id.hex()}'
    return (await sha256(data.encode('utf-8'))).hex()


@dataclass(frozen=True, slots=True, kw_only=True)
class ConnectionHints:
    address: str | None = None
    peers: tuple[str, ...] = ()
    swarm_peers: tuple[str, ...] = ()
    relays: tuple[str, ...] = ()
    topic: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'peers', tuple(self.peers))
        object.__setattr__(self, 'swarm_peers', tuple(key.lower() for key in self.swarm_peers))
        object.__setattr__(self, 'relays', tuple(self.relays))
        if invalid_keys := [key for key in self.swarm_peers if not is_swarm_key(key)]:
            raise ValueError(f'Swarm peer keys must have {SWARM_KEY_LENGTH} hex characters: {invalid_keys!r}')
        if self.topic is not None:
            if not is_hex(self.topic):
                raise ValueError(f'The topic must be a hex string: {self.topic!r}')
            object.__setattr__(self, 'topic', self.topic.lower())

    def __bool__(self) -> bool:
        return bool(self.address or self.peers or self.swarm_peers or self.relays or self.topic)
