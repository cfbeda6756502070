"""Third-party caveat tickets.

The caveat id of a third-party caveat must tell the Discharger two things
without revealing them to the client carrying the macaroon: the discharge
root key and the condition to prove.  The Issuer seals both under the
secret it shares with the Discharger:

    ``cid = base64url(0x01 || nonce || ChaCha20-Poly1305(derive_key(secret),
    nonce, root_key || condition, aad))``

Only a holder of the shared secret can open the ticket, and any alteration
makes it unopenable.  The ticket is ASCII so it can travel in JSON discharge
requests unchanged.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field

from macaroon_protocol.core.crypto import HASH_LEN, decrypt, derive_key, encrypt
from macaroon_protocol.core.errors import CryptoError, InvalidInput, UnknownCaveat

TICKET_VERSION = 1
_AAD = b"macaroon-protocol caveat ticket"


@dataclass(frozen=True)
class CaveatTicket:
    """The contents of an opened caveat ticket."""

    root_key: bytes = field(repr=False)
    condition: str


def seal_ticket(secret: bytes, root_key: bytes, condition: str) -> bytes:
    """Seal *root_key* and *condition* into a caveat id.

    Raises
    ------
    InvalidInput
        If *root_key* is not :data:`HASH_LEN` bytes or *condition* is empty.
    """
    if len(root_key) != HASH_LEN:
        raise InvalidInput(
            "Discharge root key has the wrong length",
            details={"expected": HASH_LEN, "actual": len(root_key)},
        )
    if not condition:
        raise InvalidInput("Third-party condition must not be empty")
    box = encrypt(derive_key(secret), root_key + condition.encode("utf-8"), aad=_AAD)
    raw = bytes([TICKET_VERSION]) + box
    return base64.urlsafe_b64encode(raw).rstrip(b"=")


def open_ticket(secret: bytes, caveat_id: bytes | str) -> CaveatTicket:
    """Open a caveat id produced by :func:`seal_ticket`.

    Raises
    ------
    UnknownCaveat
        If the id is not a ticket, uses an unknown version, or was not
        sealed with *secret*.
    """
    text = caveat_id.encode("ascii", errors="replace") if isinstance(caveat_id, str) else caveat_id
    try:
        raw = base64.urlsafe_b64decode(text + b"=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise UnknownCaveat("Caveat id is not a caveat ticket") from exc

    if not raw or raw[0] != TICKET_VERSION:
        raise UnknownCaveat(
            "Caveat ticket version is not supported",
            details={"version": raw[0] if raw else None},
        )

    try:
        plaintext = decrypt(derive_key(secret), raw[1:], aad=_AAD)
    except CryptoError as exc:
        raise UnknownCaveat("Caveat ticket was not issued for this discharger") from exc

    root_key, condition = plaintext[:HASH_LEN], plaintext[HASH_LEN:]
    if len(root_key) != HASH_LEN or not condition:
        raise UnknownCaveat("Caveat ticket payload is truncated")
    try:
        return CaveatTicket(root_key=root_key, condition=condition.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise UnknownCaveat("Caveat ticket condition is not UTF-8") from exc
