# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .keys import SIGNER_KEY_SIZE, generate_signing_key, load_signer, load_signing_key, save_signing_key, signer_bytes

__all__ = 'SIGNER_KEY_SIZE', 'generate_signing_key', 'load_signer', 'load_signing_key', 'save_signing_key', 'signer_bytes'
