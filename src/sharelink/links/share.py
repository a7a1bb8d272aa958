# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Self
from urllib.parse import urlsplit

from sharelink.compression import decompress_link
from sharelink.configuration import ShareConfiguration
from sharelink.exceptions import InvalidFormatError, MissingSecretError, ShareLinkError
from sharelink.fragment import FragmentAnnotations
from sharelink.hints import ConnectionHints
from sharelink.payload import PROTOCOL_VERSION, EntityDescriptor, EntityID, EntityType, LinkPayload, PayloadFlags, Permission

from .dispatch import LinkFormat, classify_link

__all__ = (  # noqa: RUF022
    'KeyDerivation',
    'ShareLink',

    'generate_share_link',
    'parse_share_link',
    'parse_any_share_link',
    'is_valid_share_link',

    'extract_share_code',
    'expand_share_code',

    'to_join_url',
    'from_join_url',
    'is_join_url',

    'share_message',
)


logger = logging.getLogger(__name__)


type KeyDerivation = Callable[[str, EntityID], Awaitable[bytes]]


@dataclass(frozen=True, slots=True, kw_only=True)
class ShareLink:
    """A parsed share link"""

    entity: EntityDescriptor
    version: int
    flags: PayloadFlags
    permission: Permission
    annotations: FragmentAnnotations = field(default_factory=FragmentAnnotations)
    format: LinkFormat = LinkFormat.TYPED
    encoded_payload: str = ''

    @property
    def entity_type(self) -> EntityType:
        return self.entity.entity_type

    @property
    def entity_id(self) -> EntityID:
        return self.entity.entity_id

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

    @property
    def key(self) -> bytes | None:
        return self.annotations.key

    @property
    def password(self) -> str | None:
        return self.annotations.password

    @property
    def hints(self) -> ConnectionHints:
        return self.annotations.hints

    @property
    def server_url(self) -> str | None:
        return self.annotations.server_url

    def to_link(self, *, configuration: ShareConfiguration | None = None) -> str:
        """Write the link back in the typed format"""
        configuration = configuration or ShareConfiguration()
        payload = self.encoded_payload or LinkPayload(self.entity_id, version=self.version, flags=self.flags).encode()
        link = f'{configuration.link_prefix}{self.entity_type.code}/{payload}'
        fragment = self.annotations.serialize()
        return f'{link}#{fragment}' if fragment else link

    def with_password(self, password: str) -> Self:
        """Return a copy of the link that carries a password entered by the user"""
        return replace(self, annotations=replace(self.annotations, password=password))

    async def access_key(self, derive_key: KeyDerivation, password: str | None = None) -> bytes:
        """
        Return the encryption key for the linked entity.

        The key embedded in the link has priority. Otherwise the key is
        derived from the given password, or from the password carried by
        the link. MissingSecretError is raised if there is neither, which
        means that the user needs to be asked for the password.
        """
        if self.annotations.key is not None:
            return self.annotations.key
        if password is None:
            password = self.annotations.password
        if password is None:
            raise MissingSecretError('Password required')
        return await derive_key(password, self.entity_id)


def _truncated[T](items: Iterable[T], limit: int, name: str) -> tuple[T, ...]:
    items = tuple(items)
    if len(items) > limit:
        logger.debug('Embedding only the first %d of %d %s', limit, len(items), name)
    return items[:limit]


def generate_share_link(
        entity: EntityDescriptor,
        *,
        permission: Permission = Permission.editor,
        password_protected: bool | None = None,
        password: str | None = None,
        embed_password: bool | None = None,
        encryption_key: bytes | None = None,
        hints: ConnectionHints | None = None,
        server_url: str | None = None,
        read_only: bool = False,
        configuration: ShareConfiguration | None = None) -> str:
    """
    Build a share link for an entity.

    A link either carries the encryption key in its fragment (direct key
    mode) or it is password protected, in which case the key is derived
    from a password by the receiving side. The plaintext password is only
    written in the link when embed_password is true (it defaults to the
    embed_password setting of the configuration, which is off unless
    explicitly turned on).

    Workspace links always carry a DHT topic hint, which falls back to the
    workspace id if the hints do not provide one.
    """
    configuration = configuration or ShareConfiguration()
    if password_protected is None:
        password_protected = encryption_key is None
    if embed_password is None:
        embed_password = configuration.embed_password
    if password_protected and encryption_key is not None:
        raise ValueError('A link cannot carry an encryption key and be password protected at the same time')
    if password is not None and not password_protected:
        raise ValueError('A password can only be used with a password protected link')
    if server_url is not None and urlsplit(server_url).scheme.lower() not in configuration.server_schemes:
        raise ValueError(f'Unsupported server URL scheme: {urlsplit(server_url).scheme!r}')

    flags = PayloadFlags(0)
    if password_protected:
        flags |= PayloadFlags.PASSWORD_PROTECTED
    if read_only:
        flags |= PayloadFlags.READ_ONLY
    if encryption_key is not None:
        flags |= PayloadFlags.EMBEDDED_KEY
    payload = LinkPayload(entity.entity_id, flags=flags)

    hints = hints or ConnectionHints()
    topic = hints.topic
    if entity.entity_type is EntityType.workspace and not topic:
        topic = entity.entity_id.hex()
    annotations = FragmentAnnotations(
        key=encryption_key,
        password=password if embed_password else None,
        permission=permission,
        address=hints.address,
        peers=_truncated(hints.peers, configuration.max_bootstrap_peers, 'bootstrap peers'),
        swarm_peers=_truncated(hints.swarm_peers, configuration.max_swarm_peers, 'swarm peers'),
        relays=_truncated(hints.relays, configuration.max_mesh_relays, 'mesh relays'),
        server_url=server_url,
        topic=topic,
    )
    logger.debug('Generated share link for %s with %s permission', entity, permission)
    return f'{configuration.link_prefix}{entity.entity_type.code}/{payload.encode()}#{annotations.serialize()}'


def _parse_typed_link(text: str, link_format: LinkFormat, configuration: ShareConfiguration) -> ShareLink:
    path, _, fragment = text.partition('#')
    rest = path[len(configuration.link_prefix):]
    if link_format is LinkFormat.TYPED:
        entity_type = EntityType.from_code(rest[0].lower())
        rest = rest[2:]
    else:
        entity_type = EntityType.document
    encoded_payload = re.split(r'[/?]', rest, maxsplit=1)[0]
    payload = LinkPayload.decode(encoded_payload)
    annotations = FragmentAnnotations.parse(fragment, configuration=configuration)
    if annotations.permission is not None:
        permission = annotations.permission
    elif payload.read_only and 'perm' not in annotations.present_keys:
        permission = Permission.viewer
    else:
        permission = Permission.editor
    entity = EntityDescriptor(entity_type, payload.entity_id)
    logger.debug('Parsed %s link for %s (protocol version %d)', link_format.value, entity, payload.version)
    return ShareLink(
        entity=entity,
        version=payload.version,
        flags=payload.flags,
        permission=permission,
        annotations=annotations,
        format=link_format,
        encoded_payload=encoded_payload,
    )


def parse_share_link(link: str, *, configuration: ShareConfiguration | None = None) -> ShareLink:
    """
    Parse a typed link, a legacy link or a join URL.

    Compressed links need to be inflated first, use parse_any_share_link
    for them. Invite URLs and tokens do not carry an entity, they have to
    be resolved by the invite store.
    """
    configuration = configuration or ShareConfiguration()
    text = link.strip()
    match link_format := classify_link(text, configuration=configuration):
        case LinkFormat.TYPED | LinkFormat.LEGACY:
            return _parse_typed_link(text, link_format, configuration)
        case LinkFormat.JOIN_URL:
            return replace(_parse_typed_link(from_join_url(text, configuration=configuration), LinkFormat.TYPED, configuration), format=LinkFormat.JOIN_URL)
        case LinkFormat.COMPRESSED:
            raise InvalidFormatError('Compressed link detected, it needs to be parsed with parse_any_share_link')
        case LinkFormat.INVITE:
            raise InvalidFormatError('Invite links do not carry an entity, they need to be resolved by the invite store')


async def parse_any_share_link(link: str, *, configuration: ShareConfiguration | None = None) -> ShareLink:
    """Parse any kind of share link, including compressed ones"""
    configuration = configuration or ShareConfiguration()
    text = link.strip()
    if classify_link(text, configuration=configuration) is LinkFormat.COMPRESSED:
        inflated = await decompress_link(text, configuration=configuration)
        return replace(parse_share_link(inflated, configuration=configuration), format=LinkFormat.COMPRESSED)
    return parse_share_link(text, configuration=configuration)


def is_valid_share_link(link: str, *, configuration: ShareConfiguration | None = None) -> bool:
    try:
        parse_share_link(link, configuration=configuration)
    except ShareLinkError:
        return False
    return True


def extract_share_code(link: str, *, configuration: ShareConfiguration | None = None) -> str:
    """Return the link without its scheme prefix"""
    configuration = configuration or ShareConfiguration()
    link = link.strip()
    if link.lower().startswith(configuration.link_prefix):
        return link[len(configuration.link_prefix):]
    return link


def expand_share_code(code: str, *, configuration: ShareConfiguration | None = None) -> str:
    configuration = configuration or ShareConfiguration()
    code = code.strip()
    if not code or code.lower().startswith(configuration.link_prefix):
        return code
    return f'{configuration.link_prefix}{code}'


def is_join_url(text: str, *, configuration: ShareConfiguration | None = None) -> bool:
    try:
        return classify_link(text, configuration=configuration) is LinkFormat.JOIN_URL
    except InvalidFormatError:
        return False


def to_join_url(link: str, *, configuration: ShareConfiguration | None = None) -> str:
    """
    Convert a typed link into an HTTPS join URL on the share host.

    The path and the fragment are kept unchanged, so the join URL carries
    its secrets in the fragment just like the link it was made from.
    """
    configuration = configuration or ShareConfiguration()
    link = link.strip()
    if classify_link(link, configuration=configuration) is not LinkFormat.TYPED:
        raise InvalidFormatError('Only typed links can be converted to join URLs')
    rest = link[len(configuration.link_prefix):]
    return f'{configuration.share_host}/join/{rest[0].lower()}{rest[1:]}'


def from_join_url(url: str, *, configuration: ShareConfiguration | None = None) -> str:
    """Convert a join URL from any host into the typed link it was made from"""
    configuration = configuration or ShareConfiguration()
    url = url.strip()
    if classify_link(url, configuration=configuration) is not LinkFormat.JOIN_URL:
        raise InvalidFormatError('Not a join URL')
    _, _, rest = url.partition('://')
    _, _, rest = rest.partition('/')
    rest = rest[len('join/'):]
    return f'{configuration.link_prefix}{rest[0].lower()}{rest[1:]}'


def share_message(link: str, *, workspace_name: str = 'a workspace', permission: Permission = Permission.viewer) -> str:
    """Return a human readable message to send along with a link"""
    match permission:
        case Permission.owner:
            access = 'full owner'
        case Permission.editor:
            access = 'editor'
        case _:
            access = 'view-only'
    return f'Join my Nightjar workspace "{workspace_name}" with {access} access:\n\n{link}\n\nOpen the link in Nightjar to connect.'
