# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Link format detection.

   Links went through four protocol generations. Versions 1 and 2 only
   addressed documents and used the read only flag, version 3 added the
   entity type to the path and the permission annotation and version 4
   added the P2P bootstrap hints. All of them share the same payload, so
   the format of a link is decided by its prefix alone:

     scheme://{w|f|d}/{payload}#...          typed link
     scheme://{payload}#...                  legacy link, always a document
     scheme://c/{data}                       compressed link
     http(s)://{host}/join/{w|f|d}/{payload}#...   join URL
     http(s)://{host}/invite/{token}         invite URL
     {token}                                 bare invite token

"""

import re
from enum import Enum

from sharelink.configuration import ShareConfiguration
from sharelink.encoding import base62
from sharelink.exceptions import InvalidFormatError

__all__ = 'LinkFormat', 'classify_link', 'invite_token_text'


_join_url_regex = re.compile(r'^https?://[^/?#]+/join/[wfd]/', re.IGNORECASE)
_invite_url_regex = re.compile(r'^https?://[^/?#]+/invite/(?P<token>[A-Za-z0-9]+)/?$', re.IGNORECASE)
_invite_token_regex = re.compile(r'^[A-Za-z0-9]{16,}$')

_type_codes = frozenset('wfd')


class LinkFormat(Enum):
    TYPED = 'typed'
    LEGACY = 'legacy'
    COMPRESSED = 'compressed'
    JOIN_URL = 'join-url'
    INVITE = 'invite'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


def classify_link(text: str, *, configuration: ShareConfiguration | None = None) -> LinkFormat:
    """Return the format of a link, raising InvalidFormatError if it is not recognized"""
    configuration = configuration or ShareConfiguration()
    text = text.strip()
    if text.lower().startswith(configuration.link_prefix):
        rest = text[len(configuration.link_prefix):]
        head, separator, _ = rest.partition('/')
        match head.lower():
            case 'c' if separator:
                return LinkFormat.COMPRESSED
            case code if code in _type_codes and separator:
                return LinkFormat.TYPED
        segment = re.split(r'[/?#]', rest, maxsplit=1)[0]
        if len(segment) > 1 and base62.is_base62(segment):
            return LinkFormat.LEGACY
        raise InvalidFormatError(f'Unrecognized {configuration.scheme} link format')
    if _join_url_regex.match(text):
        return LinkFormat.JOIN_URL
    if _invite_url_regex.match(text) or _invite_token_regex.match(text):
        return LinkFormat.INVITE
    raise InvalidFormatError('Not a share link')


def invite_token_text(text: str) -> str | None:
    """Return the token part of an invite URL or of a bare invite token"""
    text = text.strip()
    if match := _invite_url_regex.match(text):
        return match.group('token')
    if _invite_token_regex.match(text):
        return text
    return None
