# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, fields
from datetime import timedelta
from ipaddress import ip_address
from os import PathLike
from pathlib import Path
from typing import Any, Self
from urllib.parse import urlsplit

import idna
from lxml import etree

__all__ = 'MAX_INVITE_TTL', 'SERVER_URL_SCHEMES', 'ShareConfiguration', 'idna_encode', 'ns_sharelink'  # noqa: RUF022


ns_sharelink = 'urn:sharelink:params:xml:ns:config'

MAX_INVITE_TTL = timedelta(hours=24)
SERVER_URL_SCHEMES = frozenset({'http', 'https', 'ws', 'wss'})

type ETreeElement = etree._Element  # noqa: SLF001


def idna_encode(string: str, /) -> str:
    """Turn a string into an ASCII representation by encoding it with IDNA"""
    return idna.encode(string, uts46=True).decode('ascii')


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise ValueError(f'invalid value {value!r} for a positive integer')
    return value


def _seconds(text: str) -> timedelta:
    return timedelta(seconds=_positive_int(text))


def _parse_boolean(text: str) -> bool:
    match text.strip():
        case 'true' | '1':
            return True
        case 'false' | '0':
            return False
        case other:
            raise ValueError(f'invalid boolean value {other!r}')


# XML element name, parser, serializer and whether the element can be repeated, for each configuration field
_xml_fields: dict[str, tuple[str, Callable[[str], Any], Callable[[Any], str], bool]] = {
    'scheme': ('scheme', str.strip, str, False),
    'share_host': ('share-host', str.strip, str, False),
    'server_schemes': ('server-scheme', str.strip, str, True),
    'max_invite_ttl': ('max-invite-ttl', _seconds, lambda value: str(int(value.total_seconds())), False),
    'max_bootstrap_peers': ('max-bootstrap-peers', _positive_int, str, False),
    'max_swarm_peers': ('max-swarm-peers', _positive_int, str, False),
    'max_mesh_relays': ('max-mesh-relays', _positive_int, str, False),
    'max_decompressed_size': ('max-decompressed-size', _positive_int, str, False),
    'embed_password': ('embed-password', _parse_boolean, lambda value: 'true' if value else 'false', False),
}


@dataclass(frozen=True, kw_only=True)
class ShareConfiguration:
    """
    The settings that govern how links are built and read.

    The configuration is immutable and is passed explicitly to the link
    functions. It can be stored as an XML document:

        <share-configuration xmlns="urn:sharelink:params:xml:ns:config">
          <scheme>nightjar</scheme>
          <share-host>https://night-jar.co</share-host>
          <server-scheme>https</server-scheme>
          <server-scheme>wss</server-scheme>
          <max-invite-ttl>3600</max-invite-ttl>
        </share-configuration>

    Elements that are missing take their default values.
    """

    scheme: str = 'nightjar'
    share_host: str = 'https://night-jar.co'
    server_schemes: frozenset[str] = field(default=SERVER_URL_SCHEMES)
    max_invite_ttl: timedelta = MAX_INVITE_TTL
    max_bootstrap_peers: int = 5
    max_swarm_peers: int = 3
    max_mesh_relays: int = 5
    max_decompressed_size: int = 64 * 1024
    embed_password: bool = False

    def __post_init__(self) -> None:
        scheme = self.scheme.lower()
        if not scheme or not scheme.isascii() or not scheme.isalpha():
            raise ValueError(f'Invalid link scheme: {self.scheme!r}')
        object.__setattr__(self, 'scheme', scheme)
        object.__setattr__(self, 'share_host', self.normalize_host(self.share_host))
        server_schemes = frozenset(scheme.lower() for scheme in self.server_schemes)
        if not server_schemes.issubset(SERVER_URL_SCHEMES):
            raise ValueError(f'Unsupported server URL schemes: {', '.join(sorted(server_schemes - SERVER_URL_SCHEMES))}')
        object.__setattr__(self, 'server_schemes', server_schemes)
        if not timedelta(0) < self.max_invite_ttl <= MAX_INVITE_TTL:
            raise ValueError(f'The maximum invite TTL must be positive and at most {MAX_INVITE_TTL}')
        for name in ('max_bootstrap_peers', 'max_swarm_peers', 'max_mesh_relays', 'max_decompressed_size'):
            if getattr(self, name) <= 0:
                raise ValueError(f'{name} must be a positive integer')

    @staticmethod
    def normalize_host(url: str) -> str:
        parts = urlsplit(url.strip().rstrip('/'))
        if parts.scheme not in {'http', 'https'} or not parts.hostname:
            raise ValueError(f'The share host must be an http or https URL: {url!r}')
        if parts.path or parts.query or parts.fragment:
            raise ValueError(f'The share host must not have a path, query or fragment: {url!r}')
        try:
            address = ip_address(parts.hostname)
        except ValueError:
            host = idna_encode(parts.hostname)
        else:
            host = f'[{address}]' if address.version == 6 else str(address)
        return f'{parts.scheme}://{host}' if parts.port is None else f'{parts.scheme}://{host}:{parts.port}'

    @property
    def link_prefix(self) -> str:
        return f'{self.scheme}://'

    @property
    def compressed_prefix(self) -> str:
        return f'{self.scheme}://c/'

    # XML serialization

    @classmethod
    def from_element(cls, element: ETreeElement) -> Self:
        if element.tag != f'{{{ns_sharelink}}}share-configuration':
            raise ValueError(f'The etree element tag does not match {cls.__qualname__!r}: {element.tag!r}')
        arguments: dict[str, object] = {}
        for name, (xml_name, parse, _, multiple) in _xml_fields.items():
            children = element.findall(f'{{{ns_sharelink}}}{xml_name}')
            if not children:
                continue
            if not multiple and len(children) > 1:
                raise ValueError(f'Excess elements for {xml_name!r}')
            try:
                values = [parse(child.text or '') for child in children]
            except ValueError as exc:
                raise ValueError(f'Invalid value for element {xml_name!r}: {exc}') from exc
            arguments[name] = frozenset(values) if multiple else values[0]
        return cls(**arguments)  # type: ignore[arg-type]

    @classmethod
    def from_string(cls, data: str | bytes) -> Self:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)
        if isinstance(data, str):
            data = data.encode()
        return cls.from_element(etree.fromstring(data, parser=parser))

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> Self:
        return cls.from_string(Path(path).expanduser().read_bytes())

    def to_element(self) -> ETreeElement:
        element = etree.Element(f'{{{ns_sharelink}}}share-configuration', nsmap={None: ns_sharelink})
        defaults = type(self)()
        for item in fields(self):
            xml_name, _, serialize, multiple = _xml_fields[item.name]
            value = getattr(self, item.name)
            if value == getattr(defaults, item.name):
                continue
            values: Iterable[object] = sorted(value) if multiple else [value]
            for child_value in values:
                etree.SubElement(element, f'{{{ns_sharelink}}}{xml_name}').text = serialize(child_value)
        return element

    def to_string(self) -> bytes:
        return etree.tostring(self.to_element(), xml_declaration=True, encoding='UTF-8', pretty_print=True)
