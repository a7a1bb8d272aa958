# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import enum
from collections.abc import Buffer, Iterable
from io import BytesIO
from secrets import token_bytes as secure_random_bytes
from typing import ClassVar, Protocol, Self, SupportsBytes, SupportsIndex, assert_never, overload, runtime_checkable

__all__ = (  # noqa: RUF022
    # Protocols and types

    'WireData',
    'DataWireProtocol',

    # Abstract types

    'UnsignedInteger',
    'Flag',
    'FixedSize',
    'CodeEnum',

    # Concrete types

    'UInt8',
    'UInt16',

    'EntityType',
    'Permission',
    'PayloadFlags',

    'EntityID',
    'TokenValue',
)


type WireData = bytes | bytearray | memoryview | BytesIO


# Protocols

@runtime_checkable
class DataWireProtocol(Protocol):
    """The wire protocol for link payload data elements"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self: ...

    def to_wire(self) -> bytes: ...

    def wire_length(self) -> int: ...


def _read(buffer: WireData, size: int) -> bytes:
    if isinstance(buffer, BytesIO):
        return buffer.read(size)
    return bytes(buffer[:size])


# Numeric types

class UnsignedInteger(int):
    _bits_: ClassVar[int] = NotImplemented
    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, bits: int = NotImplemented, **kw: object) -> None:
        if bits is not NotImplemented:
            cls._bits_ = bits
            cls._size_ = bits // 8
        super().__init_subclass__(**kw)

    def __new__(cls, *args, **kw) -> Self:
        if cls._bits_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract unsigned integer type {cls.__qualname__!r} that does not define its bit length')
        value = super().__new__(cls, *args, **kw)
        if value < 0 or value.bit_length() > cls._bits_:
            raise ValueError(f'Value is out of range for unsigned {cls._bits_}-bits integer: {value!r}')
        return value

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract unsigned integer type {cls.__qualname__!r} that does not define its bit length')
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls.from_bytes(data, byteorder='big')

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


class UInt8(UnsignedInteger, bits=8):
    pass


class UInt16(UnsignedInteger, bits=16):
    pass


# Enumeration and flag types

class Flag(enum.IntFlag):
    _size_: ClassVar[int]

    def __init_subclass__(cls, *, size: int = 1, **kw: object) -> None:
        cls._size_ = size
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls(int.from_bytes(data, byteorder='big'))

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


class CodeEnum(enum.Enum):
    """An enumeration whose members are written in links as short codes"""

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'

    def __str__(self) -> str:
        return self.name

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: str) -> Self:
        try:
            return cls(code)
        except ValueError:
            raise ValueError(f'Invalid {cls.__qualname__} code: {code!r}') from None

    @classmethod
    def from_name(cls, name: str) -> Self:
        try:
            return cls[name.lower()]
        except KeyError:
            raise ValueError(f'Invalid {cls.__qualname__} name: {name!r}') from None


class EntityType(CodeEnum):
    workspace = 'w'
    folder = 'f'
    document = 'd'


class Permission(CodeEnum):
    owner = 'o'
    editor = 'e'
    viewer = 'v'

    @property
    def level(self) -> int:
        match self:
            case Permission.owner:
                return 3
            case Permission.editor:
                return 2
            case Permission.viewer:
                return 1
            case _:
                assert_never(self)

    def __lt__(self, other: object) -> bool:
        if isinstance(other, Permission):
            return self.level < other.level
        return NotImplemented

    def __le__(self, other: object) -> bool:
        if isinstance(other, Permission):
            return self.level <= other.level
        return NotImplemented

    def __gt__(self, other: object) -> bool:
        if isinstance(other, Permission):
            return self.level > other.level
        return NotImplemented

    def __ge__(self, other: object) -> bool:
        if isinstance(other, Permission):
            return self.level >= other.level
        return NotImplemented


class PayloadFlags(Flag):
    PASSWORD_PROTECTED = 1
    READ_ONLY = 2  # superseded by the permission annotation, still honored for old links
    EMBEDDED_KEY = 4


# Byte strings

class FixedSize(bytes):
    """A fixed size bytes buffer"""

    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, size: int = NotImplemented, **kw: object) -> None:
        if size is not NotImplemented:
            cls._size_ = size
        super().__init_subclass__(**kw)

    @overload
    def __new__(cls) -> Self: ...

    @overload
    def __new__(cls, o: Iterable[SupportsIndex] | SupportsIndex | SupportsBytes | Buffer, /) -> Self: ...

    def __new__(cls, *args, **kw):
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        instance = super().__new__(cls, *args, **kw)
        if len(instance) != cls._size_:
            raise ValueError(f'{cls.__qualname__!r} objects must have {cls._size_} bytes')
        return instance

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls(data)

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return self._size_


class EntityID(FixedSize, size=16):
    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.hex()}>'

    def __str__(self) -> str:
        return self.hex()

    @classmethod
    def generate(cls) -> Self:
        return cls(secure_random_bytes(cls._size_))

    @classmethod
    def from_hex(cls, string: str) -> Self:
        try:
            data = bytes.fromhex(string)
        except ValueError as exc:
            raise ValueError(f'Invalid {cls.__qualname__} hex string: {string!r}') from exc
        if len(data) != cls._size_:
            raise ValueError(f'{cls.__qualname__} must be {cls._size_} bytes ({2 * cls._size_} hex characters), got {len(data)} bytes')
        return cls(data)


class TokenValue(FixedSize, size=16):
    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}>'

    @classmethod
    def generate(cls) -> Self:
        return cls(secure_random_bytes(cls._size_))
