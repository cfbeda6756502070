"""Caveat chain engine.

Appends first-party and third-party caveats to a macaroon, re-deriving the
signature at each step:

* first-party:  ``sig' = HMAC(sig, caveat_id)``
* third-party:  ``vid = encrypt(key=sig, derive_key(discharge_root_key))``
  then ``sig' = HMAC(sig, HMAC(sig, vid) || HMAC(sig, cid) || HMAC(sig, cl))``

Because every step is keyed by the previous signature, adding, removing,
reordering or altering any caveat changes the final signature.  A verifier
holding only the root key re-derives the chain with
:func:`signature_chain` and compares.
"""
from __future__ import annotations

import logging

from macaroon_protocol.caveats import (
    DeclaredPredicate,
    PermissionsPredicate,
    RawPredicate,
)
from macaroon_protocol.core.crypto import derive_key, encrypt, keyed_hash, keyed_hash_n
from macaroon_protocol.core.errors import InvalidInput
from macaroon_protocol.token import Caveat, Macaroon, to_bytes

logger = logging.getLogger(__name__)

_TYPED = (PermissionsPredicate, DeclaredPredicate, RawPredicate)


# ---------------------------------------------------------------------------
# Signature folding
# ---------------------------------------------------------------------------

def caveat_signature(signature: bytes, caveat: Caveat) -> bytes:
    """Return the signature that follows *signature* once *caveat* is added."""
    if caveat.verification_id is None:
        return keyed_hash(signature, caveat.caveat_id)
    return keyed_hash_n(
        signature,
        caveat.verification_id,
        caveat.caveat_id,
        (caveat.location or "").encode("utf-8"),
    )


def signature_chain(key: bytes, token: Macaroon) -> list[bytes]:
    """Re-derive every intermediate signature of *token*.

    Parameters
    ----------
    key:
        The *derived* HMAC key (see :func:`~macaroon_protocol.core.crypto.derive_key`).
    token:
        The macaroon whose chain to recompute.

    Returns
    -------
    list[bytes]
        ``len(token.caveats) + 1`` signatures.  Element ``i`` is the
        signature in force *before* caveat ``i`` was added; the last element
        is the expected final signature.
    """
    signatures = [keyed_hash(key, token.identifier)]
    for caveat in token.caveats:
        signatures.append(caveat_signature(signatures[-1], caveat))
    return signatures


def derive_signatures(token: Macaroon, root_key: bytes | str) -> list[bytes]:
    """Like :func:`signature_chain` but starting from an underived root key."""
    return signature_chain(derive_key(to_bytes(root_key, "root_key")), token)


# ---------------------------------------------------------------------------
# Caveat addition
# ---------------------------------------------------------------------------

def add_first_party_caveat(
    token: Macaroon,
    predicate: bytes | str | PermissionsPredicate | DeclaredPredicate | RawPredicate,
) -> Macaroon:
    """Return a copy of *token* with a first-party caveat appended.

    Raises
    ------
    InvalidInput
        If the encoded predicate is empty.
    """
    if isinstance(predicate, _TYPED):
        caveat_id = predicate.encode()
    else:
        caveat_id = to_bytes(predicate, "predicate")
    if not caveat_id:
        raise InvalidInput("First-party caveat predicate must not be empty")

    caveat = Caveat(caveat_id=caveat_id)
    return token.with_caveat(caveat, caveat_signature(token.signature, caveat))


def add_third_party_caveat(
    token: Macaroon,
    discharge_root_key: bytes | str,
    caveat_id: bytes | str,
    location: str,
) -> Macaroon:
    """Return a copy of *token* with a third-party caveat appended.

    The discharge root key is encrypted under the current signature to
    form the verification id, so the verifier can recover it while
    re-deriving the chain.

    Raises
    ------
    InvalidInput
        If *discharge_root_key* or *caveat_id* is empty.
    CryptoError
        If encryption fails.
    """
    key = to_bytes(discharge_root_key, "discharge_root_key")
    cid = to_bytes(caveat_id, "caveat_id")
    if not key:
        raise InvalidInput("Discharge root key must not be empty")
    if not cid:
        raise InvalidInput("Third-party caveat id must not be empty")

    verification_id = encrypt(token.signature, derive_key(key))
    caveat = Caveat(caveat_id=cid, verification_id=verification_id, location=location)
    logger.debug(
        "Added third-party caveat to macaroon %r (location=%s)",
        token.identifier_text,
        location,
    )
    return token.with_caveat(caveat, caveat_signature(token.signature, caveat))
