# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Signed invites.

   A signed invite is a workspace link in direct key mode that is only
   valid for a limited time. The issuer signs the message

     {workspace id hex}|{expiry in milliseconds since the epoch}|{permission name}

   with its Ed25519 key and adds three annotations to the link fragment:
   the expiry (exp), the base62 encoded signature (sig) and the base62
   encoded raw public key of the signer (by).

   The validator recomputes the message from the fields of the link it
   received, so changing the workspace, the expiry or the permission in
   the link invalidates the signature. Links without an expiry and a
   signature predate signed invites and are accepted as legacy links that
   never expire. A link that has only some of the signed invite fields is
   rejected, it is never downgraded to a legacy link.

"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Self

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from sharelink import crypto
from sharelink.configuration import ShareConfiguration
from sharelink.exceptions import ExpiredInviteError, MalformedSignedLinkError, ShareLinkError, SignatureInvalidError
from sharelink.fragment import SIGNATURE_KEYS, FragmentAnnotations
from sharelink.hints import ConnectionHints
from sharelink.links import ShareLink, generate_share_link, parse_any_share_link
from sharelink.payload import EntityDescriptor, EntityID, EntityType, Permission
from sharelink.trust import load_signer, signer_bytes

__all__ = 'InviteValidation', 'SignedInvite', 'issue_signed_invite', 'validate_signed_invite'


logger = logging.getLogger(__name__)


EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
DEFAULT_INVITE_TTL = timedelta(hours=1)


def to_milliseconds(timestamp: datetime) -> int:
    return (timestamp - EPOCH) // timedelta(milliseconds=1)


def from_milliseconds(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=value)


def signed_message(entity_id: EntityID, expiry: int, permission: Permission) -> bytes:
    return f'{entity_id.hex()}|{expiry}|{permission.name}'.encode('utf-8')


def _reference_time(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.utcoffset() is None:
        raise ValueError(f'The reference time must be timezone aware: {now!r}')
    return now


@dataclass(frozen=True, slots=True, kw_only=True)
class SignedInvite:
    entity: EntityDescriptor
    permission: Permission
    expiry: datetime
    ttl: timedelta
    signature: bytes
    signer: bytes
    link: str

    @property
    def expiry_ms(self) -> int:
        return to_milliseconds(self.expiry)


@dataclass(frozen=True, slots=True, kw_only=True)
class InviteValidation:
    """
    The outcome of validating a signed invite.

    Problems with the link are reported through the error kind and the
    message instead of being raised, raise_for_error() can be used to turn
    them into the corresponding exception.
    """

    valid: bool
    error: str | None = None
    message: str | None = None
    legacy: bool = False
    expiry: datetime | None = None
    expires_in: timedelta | None = None
    link: ShareLink | None = None
    exception: ShareLinkError | None = field(default=None, repr=False, compare=False)

    @classmethod
    def failure(cls, exception: ShareLinkError, **kw: object) -> Self:
        return cls(valid=False, error=exception.kind, message=str(exception), exception=exception, **kw)  # type: ignore[arg-type]

    @property
    def permission(self) -> Permission | None:
        return self.link.permission if self.link is not None else None

    @property
    def signer(self) -> bytes | None:
        return self.link.annotations.signer if self.link is not None else None

    def raise_for_error(self) -> None:
        if self.exception is not None:
            raise self.exception


async def issue_signed_invite(
        workspace: EntityDescriptor,
        encryption_key: bytes,
        signing_key: Ed25519PrivateKey,
        *,
        permission: Permission = Permission.editor,
        ttl: timedelta = DEFAULT_INVITE_TTL,
        hints: ConnectionHints | None = None,
        server_url: str | None = None,
        now: datetime | None = None,
        configuration: ShareConfiguration | None = None) -> SignedInvite:
    """
    Issue a signed invite for a workspace.

    The requested TTL is clamped between zero and the maximum invite TTL
    of the configuration (24 hours at most).
    """
    configuration = configuration or ShareConfiguration()
    if workspace.entity_type is not EntityType.workspace:
        raise ValueError(f'Signed invites can only be issued for workspaces, not for a {workspace.entity_type}')
    ttl = max(timedelta(0), min(ttl, configuration.max_invite_ttl))
    now = _reference_time(now)
    expiry = to_milliseconds(now + ttl)
    signature = await crypto.sign(signing_key, signed_message(workspace.entity_id, expiry, permission))
    signer = signer_bytes(signing_key)
    link = generate_share_link(
        workspace,
        permission=permission,
        password_protected=False,
        encryption_key=encryption_key,
        hints=hints,
        server_url=server_url,
        configuration=configuration,
    )
    invite_fields = FragmentAnnotations(expiry=expiry, signature=signature, signer=signer)
    logger.debug('Issued signed invite for %s with %s permission, valid for %s', workspace, permission, ttl)
    return SignedInvite(
        entity=workspace,
        permission=permission,
        expiry=from_milliseconds(expiry),
        ttl=ttl,
        signature=signature,
        signer=signer,
        link=f'{link}&{invite_fields.serialize()}',
    )


async def _check_signature(link: ShareLink, expected_signer: bytes | None, now: datetime) -> datetime:
    annotations = link.annotations
    present = annotations.present_keys
    if 'exp' not in present:
        raise MalformedSignedLinkError('Invalid signed invite: missing mandatory expiry')
    if 'sig' not in present:
        raise MalformedSignedLinkError('Invalid signed invite: missing mandatory signature')
    if 'by' not in present:
        raise MalformedSignedLinkError('Invalid signed invite: missing signer')
    if malformed := sorted(SIGNATURE_KEYS & annotations.malformed):
        raise MalformedSignedLinkError(f'Invalid signed invite: malformed {', '.join(malformed)} annotation')
    if link.entity_type is not EntityType.workspace:
        raise MalformedSignedLinkError('Invalid signed invite: only workspaces can be shared with signed invites')
    assert annotations.expiry is not None and annotations.signature is not None and annotations.signer is not None  # noqa: S101 (used by type checkers)

    expiry = from_milliseconds(annotations.expiry)
    if now >= expiry:
        raise ExpiredInviteError('Invite link has expired')
    if expected_signer is not None and annotations.signer != expected_signer:
        raise SignatureInvalidError('Invite was not signed by the expected signer')
    try:
        public_key = load_signer(annotations.signer)
    except ValueError as exc:
        raise SignatureInvalidError('Invalid signer public key') from exc
    message = signed_message(link.entity_id, annotations.expiry, link.permission)
    if not await crypto.verify(public_key, annotations.signature, message):
        raise SignatureInvalidError('Invalid signature - link may have been tampered with')
    return expiry


async def validate_signed_invite(
        link: str,
        *,
        expected_signer: bytes | Ed25519PublicKey | None = None,
        now: datetime | None = None,
        configuration: ShareConfiguration | None = None) -> InviteValidation:
    """
    Validate a link that may be a signed invite.

    The expiry is checked against the current time, unless a different
    (timezone aware) reference time is given. When expected_signer is
    given the invite must have been signed by it, otherwise any signer is
    accepted as long as the signature matches the public key embedded in
    the link.
    """
    now = _reference_time(now)
    if isinstance(expected_signer, Ed25519PublicKey):
        expected_signer = signer_bytes(expected_signer)
    try:
        share_link = await parse_any_share_link(link, configuration=configuration)
    except ShareLinkError as exc:
        logger.info('Rejected invite link: %s', exc.kind)
        return InviteValidation.failure(exc)
    if share_link.annotations.present_keys.isdisjoint(SIGNATURE_KEYS):
        return InviteValidation(valid=True, legacy=True, link=share_link)
    try:
        expiry = await _check_signature(share_link, expected_signer, now)
    except ShareLinkError as exc:
        logger.info('Rejected signed invite for %s: %s', share_link.entity, exc.kind)
        expiry = from_milliseconds(share_link.annotations.expiry) if share_link.annotations.expiry is not None else None
        return InviteValidation.failure(exc, expiry=expiry, link=share_link)
    return InviteValidation(valid=True, expiry=expiry, expires_in=expiry - now, link=share_link)
