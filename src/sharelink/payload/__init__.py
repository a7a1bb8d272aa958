# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Link payload

   Every link addresses an entity through a fixed size binary record which
   is written in the link path using the base62 encoding. All integers are
   represented in network byte order.

     +----------------------------------+
     |     Entity ID      (16 bytes)    |
     +----------------------------------+
     |     Version        (1 byte)      |
     +----------------------------------+
     |     Flags          (1 byte)      |
     +----------------------------------+
     |     Checksum       (2 bytes)     |
     +----------------------------------+

   Version:  The protocol version of the link issuer. Versions newer than
      the one supported here are still decoded, as their payload layout
      is the same, but a warning is issued.

   Flags:  bit 0 indicates a password protected entity, bit 1 is the read
      only flag used by links older than the permission annotation and
      bit 2 indicates that the encryption key is embedded in the link
      fragment. The remaining bits are reserved and preserved.

   Checksum:  CRC-16/CCITT of the preceding 18 bytes. Payloads that fail
      the checksum are rejected before any other field is looked at.

"""

import warnings
from dataclasses import dataclass, field
from io import BytesIO
from typing import ClassVar, Self

from sharelink.encoding import base62, crc16
from sharelink.exceptions import ChecksumMismatchError, PayloadTooShortError, UnsupportedVersionWarning

from .datamodel import EntityID, EntityType, PayloadFlags, Permission, UInt8, UInt16, WireData

__all__ = 'PROTOCOL_VERSION', 'EntityDescriptor', 'EntityID', 'EntityType', 'LinkPayload', 'PayloadFlags', 'Permission'


# 1 - bare document payload, 2 - document type prefix, 3 - typed entities with permissions, 4 - P2P bootstrap hints
PROTOCOL_VERSION = 4


@dataclass(frozen=True, slots=True)
class EntityDescriptor:
    entity_type: EntityType
    entity_id: EntityID

    def __post_init__(self) -> None:
        if not isinstance(self.entity_type, EntityType):
            raise TypeError(f'entity_type must be an EntityType, not {self.entity_type.__class__.__qualname__!r}')
        if not isinstance(self.entity_id, EntityID):
            object.__setattr__(self, 'entity_id', EntityID(self.entity_id))

    def __str__(self) -> str:
        return f'{self.entity_type.name}:{self.entity_id.hex()}'

    @classmethod
    def new(cls, entity_type: EntityType) -> Self:
        return cls(entity_type, EntityID.generate())

    @classmethod
    def from_hex(cls, entity_type: EntityType, entity_id: str) -> Self:
        return cls(entity_type, EntityID.from_hex(entity_id))


@dataclass(frozen=True, slots=True)
class LinkPayload:
    entity_id: EntityID
    version: UInt8 = field(default=UInt8(PROTOCOL_VERSION))
    flags: PayloadFlags = field(default=PayloadFlags(0))

    _size_: ClassVar[int] = 20
    _body_size_: ClassVar[int] = 18

    def __post_init__(self) -> None:
        if not isinstance(self.entity_id, EntityID):
            object.__setattr__(self, 'entity_id', EntityID(self.entity_id))
        if not isinstance(self.version, UInt8):
            object.__setattr__(self, 'version', UInt8(self.version))
        if not isinstance(self.flags, PayloadFlags):
            object.__setattr__(self, 'flags', PayloadFlags(self.flags))

    @property
    def password_protected(self) -> bool:
        return PayloadFlags.PASSWORD_PROTECTED in self.flags

    @property
    def read_only(self) -> bool:
        return PayloadFlags.READ_ONLY in self.flags

    @property
    def embedded_key(self) -> bool:
        return PayloadFlags.EMBEDDED_KEY in self.flags

    @property
    def unsupported_version(self) -> bool:
        return self.version > PROTOCOL_VERSION

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        data = buffer.read(cls._size_)
        if len(data) < cls._size_:
            raise PayloadTooShortError(f'Invalid share link: payload too short ({len(data)} < {cls._size_} bytes)')
        body = data[:cls._body_size_]
        checksum = UInt16.from_wire(data[cls._body_size_:])
        if crc16(body) != checksum:
            raise ChecksumMismatchError('Invalid share link: checksum mismatch')
        fields = BytesIO(body)
        instance = cls(entity_id=EntityID.from_wire(fields), version=UInt8.from_wire(fields), flags=PayloadFlags.from_wire(fields))
        if instance.unsupported_version:
            warnings.warn(f'Share link uses newer protocol version {instance.version}, current is {PROTOCOL_VERSION}', UnsupportedVersionWarning, stacklevel=2)
        return instance

    def to_wire(self) -> bytes:
        body = self.entity_id.to_wire() + self.version.to_wire() + self.flags.to_wire()
        return body + UInt16(crc16(body)).to_wire()

    def wire_length(self) -> int:
        return self._size_

    @classmethod
    def decode(cls, text: str) -> Self:
        """Decode a payload from its base62 representation in the link path"""
        return cls.from_wire(base62.decode(text))

    def encode(self) -> str:
        return base62.encode(self.to_wire())
