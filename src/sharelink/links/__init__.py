# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .dispatch import LinkFormat, classify_link, invite_token_text
from .share import (
    KeyDerivation,
    ShareLink,
    expand_share_code,
    extract_share_code,
    from_join_url,
    generate_share_link,
    is_join_url,
    is_valid_share_link,
    parse_any_share_link,
    parse_share_link,
    share_message,
    to_join_url,
)

__all__ = (  # noqa: RUF022
    'LinkFormat',
    'classify_link',
    'invite_token_text',

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
