# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Invite tokens.

An invite token is an opaque lookup key made of 16 random bytes written
in base62. The link only carries the token, the entity and permission it
grants live in an external invite store which receives the InviteRecord
built together with the link:

    https://{host}/invite/{token}

Since the permission is not part of the link, it cannot be changed by
editing the URL.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Self

from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import InvalidFormatError
from sharelink.links import LinkFormat, ShareLink, classify_link, invite_token_text, parse_share_link
from sharelink.payload import EntityDescriptor, Permission
from sharelink.payload.datamodel import TokenValue

__all__ = 'InviteRecord', 'InviteToken', 'generate_invite_link', 'parse_invite_link'


logger = logging.getLogger(__name__)

_token_regex = re.compile(r'^[A-Za-z0-9]+$')


class InviteToken(str):
    __slots__ = ()

    def __new__(cls, value: str) -> Self:
        if not _token_regex.match(value):
            raise ValueError(f'Invalid invite token: {value!r}')
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def generate(cls) -> Self:
        return cls(base62.encode(TokenValue.generate()))


@dataclass(frozen=True, slots=True, kw_only=True)
class InviteRecord:
    """The data an invite store keeps for a token"""

    token: InviteToken
    entity: EntityDescriptor
    permission: Permission = Permission.editor
    requires_password: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, object]:
        return {
            'token': str(self.token),
            'entity_type': self.entity.entity_type.name,
            'entity_id': self.entity.entity_id.hex(),
            'permission': self.permission.name,
            'requires_password': self.requires_password,
            'created_at': int(self.created_at.timestamp() * 1000),
        }


def generate_invite_link(
        entity: EntityDescriptor,
        *,
        permission: Permission = Permission.editor,
        requires_password: bool = False,
        host: str | None = None,
        configuration: ShareConfiguration | None = None) -> tuple[str, InviteRecord]:
    """
    Create a new invite token for an entity.

    Return the invite URL, on the given host or on the configured share
    host, together with the record that needs to be saved in the store.
    """
    configuration = configuration or ShareConfiguration()
    host = ShareConfiguration.normalize_host(host) if host is not None else configuration.share_host
    record = InviteRecord(token=InviteToken.generate(), entity=entity, permission=permission, requires_password=requires_password)
    logger.debug('Created invite token for %s with %s permission', entity, permission)
    return f'{host}/invite/{record.token}', record


def parse_invite_link(link: str, *, configuration: ShareConfiguration | None = None) -> InviteToken | ShareLink:
    """
    Extract the token from an invite URL or a bare token.

    Links that address their entity directly are older than the invite
    tokens and are parsed as share links instead.
    """
    configuration = configuration or ShareConfiguration()
    match classify_link(link, configuration=configuration):
        case LinkFormat.INVITE:
            token = invite_token_text(link)
            assert token is not None  # noqa: S101 (used by type checkers)
            return InviteToken(token)
        case LinkFormat.TYPED | LinkFormat.LEGACY | LinkFormat.JOIN_URL:
            return parse_share_link(link, configuration=configuration)
        case link_format:
            raise InvalidFormatError(f'Cannot read an invite from a {link_format.value} link')
