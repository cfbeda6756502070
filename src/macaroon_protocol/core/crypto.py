"""Keyed-hash and authenticated-encryption primitives.

Signatures are HMAC-SHA256 chains.  Third-party caveat keys are wrapped with
ChaCha20-Poly1305 using the signature current at the time the caveat is
added as the encryption key, so only a verifier able to re-derive that
signature can recover the discharge root key.

Key management
--------------
Root keys and shared secrets are injected by the caller (see
:mod:`macaroon_protocol.core.config`).  This module only provides the
primitives; it never stores key material.
"""
from __future__ import annotations

import hashlib
import hmac as _hmac
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from macaroon_protocol.core.errors import CryptoError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HASH_LEN = 32
"""Length in bytes of every signature and derived key."""

NONCE_LEN = 12
"""ChaCha20-Poly1305 nonce length."""

TAG_LEN = 16
"""Poly1305 authentication tag length."""

KEY_GENERATOR = b"macaroons-key-generator"
"""HMAC key used to stretch arbitrary root keys to :data:`HASH_LEN` bytes."""

ZERO_KEY = bytes(HASH_LEN)
"""All-zero key used when binding a discharge signature to a root signature."""


# ---------------------------------------------------------------------------
# Keyed hashes
# ---------------------------------------------------------------------------

def keyed_hash(key: bytes, data: bytes) -> bytes:
    """Return ``HMAC-SHA256(key, data)``."""
    return _hmac.new(key, data, hashlib.sha256).digest()


def keyed_hash_n(key: bytes, *parts: bytes) -> bytes:
    """Fold several byte strings into one keyed hash.

    Each part is hashed separately under *key* and the concatenated digests
    are hashed again, so part boundaries cannot be shifted::

        HMAC(key, HMAC(key, p1) || HMAC(key, p2) || ...)
    """
    inner = b"".join(keyed_hash(key, part) for part in parts)
    return keyed_hash(key, inner)


def derive_key(root_key: bytes) -> bytes:
    """Stretch *root_key* into a fixed-length HMAC key."""
    return keyed_hash(KEY_GENERATOR, root_key)


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking timing information."""
    return _hmac.compare_digest(a, b)


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(key: bytes, plaintext: bytes, *, aad: bytes | None = None) -> bytes:
    """Encrypt *plaintext* under the 32-byte *key*.

    Returns ``nonce || ciphertext || tag`` with a fresh random nonce.

    Raises
    ------
    CryptoError
        If the key has the wrong size or the primitive fails.
    """
    nonce = secrets.token_bytes(NONCE_LEN)
    try:
        sealed = ChaCha20Poly1305(key).encrypt(nonce, plaintext, aad)
    except (ValueError, TypeError) as exc:
        raise CryptoError(
            f"Encryption failed: {exc}",
            details={"key_length": len(key)},
        ) from exc
    return nonce + sealed


def decrypt(key: bytes, box: bytes, *, aad: bytes | None = None) -> bytes:
    """Open a box produced by :func:`encrypt`.

    Raises
    ------
    CryptoError
        If the box is truncated, the key is wrong, or the box was altered.
    """
    if len(box) < NONCE_LEN + TAG_LEN:
        raise CryptoError(
            "Encrypted box is too short",
            details={"length": len(box)},
        )
    nonce, sealed = box[:NONCE_LEN], box[NONCE_LEN:]
    try:
        return ChaCha20Poly1305(key).decrypt(nonce, sealed, aad)
    except InvalidTag as exc:
        raise CryptoError("Encrypted box failed authentication") from exc
    except (ValueError, TypeError) as exc:
        raise CryptoError(
            f"Decryption failed: {exc}",
            details={"key_length": len(key)},
        ) from exc
