# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from typing import ClassVar

__all__ = (  # noqa: RUF022
    'ShareLinkError',

    'InvalidFormatError',
    'InvalidEncodingError',
    'PayloadTooShortError',
    'ChecksumMismatchError',
    'MissingSecretError',
    'ExpiredInviteError',
    'SignatureInvalidError',
    'MalformedSignedLinkError',
    'DecompressionUnavailableError',
    'DecompressionFailedError',

    'UnsupportedVersionWarning',
)


class ShareLinkError(ValueError):
    """
    Base class for all the errors raised while building or reading links.

    The ``terminal`` class attribute indicates if the link that produced
    the error is unusable and should be discarded (the user needs to ask
    for a fresh link), or if the caller may recover by asking the user
    for more input (like a password) or for a newly issued invite.

    """

    terminal: ClassVar[bool] = True
    kind: ClassVar[str] = 'invalid-link'


class InvalidFormatError(ShareLinkError):
    """Raised when a link does not start with any recognized scheme or prefix."""

    kind = 'invalid-format'


class InvalidEncodingError(ShareLinkError):
    """Raised when decoding text that contains characters outside the encoding alphabet."""

    kind = 'invalid-encoding'


class PayloadTooShortError(ShareLinkError):
    """Raised when the decoded payload has fewer bytes than the fixed payload size."""

    kind = 'payload-too-short'


class ChecksumMismatchError(ShareLinkError):
    """
    Raised when the payload checksum does not match its content.

    This indicates a corrupted, truncated or mistyped link. It is not a
    security control, only a transcription check.

    """

    kind = 'checksum-mismatch'


class MissingSecretError(ShareLinkError):
    """
    Raised when accessing a password protected link that carries neither
    an embedded key nor an embedded password and no password was supplied.

    The link itself is fine, the caller should prompt for a password.

    """

    terminal = False
    kind = 'missing-secret'


class ExpiredInviteError(ShareLinkError):
    """Raised when a signed invite is used after its expiry time."""

    terminal = False
    kind = 'expired'


class SignatureInvalidError(ShareLinkError):
    """Raised when the signature of an invite does not verify. The link may have been tampered with."""

    terminal = False
    kind = 'signature-invalid'


class MalformedSignedLinkError(ShareLinkError):
    """
    Raised when a link carries only part of the signed invite fields.

    An expiry without a signature (or a signature without an expiry or a
    signer) is treated as tampering and is never downgraded to a legacy,
    unsigned link.

    """

    kind = 'malformed-signed-link'


class DecompressionUnavailableError(ShareLinkError):
    """Raised when a compressed link is read but no deflate implementation is available."""

    terminal = False
    kind = 'decompression-unavailable'


class DecompressionFailedError(ShareLinkError):
    """Raised when the content of a compressed link cannot be inflated back into a link."""

    kind = 'decompression-failed'


class UnsupportedVersionWarning(UserWarning):
    """
    Issued when a payload declares a protocol version newer than the one
    known by this implementation. The payload is still decoded.
    """
