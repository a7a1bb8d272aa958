# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer
from os import PathLike
from pathlib import Path
from tempfile import NamedTemporaryFile

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, Encoding, NoEncryption, PrivateFormat, PublicFormat, load_pem_private_key

__all__ = 'SIGNER_KEY_SIZE', 'generate_signing_key', 'load_signer', 'load_signing_key', 'save_signing_key', 'signer_bytes'


SIGNER_KEY_SIZE = 32


def generate_signing_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


def load_signing_key(path: str | PathLike[str], *, password: str | None = None) -> Ed25519PrivateKey:
    key_data = Path(path).expanduser().read_bytes()
    key = load_pem_private_key(key_data, password=password.encode() if password is not None else None)
    match key:
        case Ed25519PrivateKey():
            return key
        case _:
            raise TypeError(f'Unsupported key type: {key.__class__.__qualname__!r} (expected Ed25519PrivateKey)')


def save_signing_key(key: Ed25519PrivateKey, path: str | PathLike[str], *, password: str | None = None) -> None:
    key_encryption = BestAvailableEncryption(password.encode()) if password is not None else NoEncryption()
    key_data = key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, key_encryption)
    path = Path(path).expanduser()
    with NamedTemporaryFile(dir=path.parent, delete=False) as tempfile:
        tempfile.write(key_data)
    Path(tempfile.name).replace(path)


def signer_bytes(key: Ed25519PrivateKey | Ed25519PublicKey) -> bytes:
    """Return the raw 32 bytes public key that identifies the signer of an invite"""
    public_key = key.public_key() if isinstance(key, Ed25519PrivateKey) else key
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)


def load_signer(data: Buffer) -> Ed25519PublicKey:
    data = bytes(data)
    if len(data) != SIGNER_KEY_SIZE:
        raise ValueError(f'Invalid signer public key length: {len(data)} (expected {SIGNER_KEY_SIZE} bytes)')
    return Ed25519PublicKey.from_public_bytes(data)
