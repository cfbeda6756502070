"""Macaroon token value types.

A :class:`Macaroon` is an identifier, an advisory location, an ordered list
of :class:`Caveat` objects and a signature.  The signature is the cumulative
keyed hash over the identifier and every caveat in order:

    ``sig0 = HMAC(derive_key(root_key), identifier)``
    ``sigN = fold(sigN-1, caveatN)``

Tokens are immutable values.  Adding a caveat (see
:mod:`macaroon_protocol.chain`) or binding a discharge (see
:mod:`macaroon_protocol.binding`) returns a *new* token, so the signature is
never set independently of the chain it covers.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from macaroon_protocol.core.crypto import HASH_LEN, derive_key, keyed_hash
from macaroon_protocol.core.errors import InvalidInput
from macaroon_protocol.core.types import CaveatKind


def to_bytes(value: bytes | str, name: str) -> bytes:
    """Coerce *value* to ``bytes`` (UTF-8 for text), rejecting other types."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise InvalidInput(
        f"{name} must be bytes or str, got {type(value).__name__}",
        details={"argument": name},
    )


@dataclass(frozen=True)
class Caveat:
    """A single condition attached to a macaroon.

    Parameters
    ----------
    caveat_id:
        For first-party caveats, the predicate checked by the verifier.
        For third-party caveats, the id the discharger resolves to a
        discharge root key.
    verification_id:
        Third-party only: the discharge root key encrypted under the
        signature current when the caveat was added.
    location:
        Third-party only: where to request the discharge.
    """

    caveat_id: bytes
    verification_id: bytes | None = None
    location: str | None = None

    @property
    def kind(self) -> CaveatKind:
        if self.verification_id is None:
            return CaveatKind.FIRST_PARTY
        return CaveatKind.THIRD_PARTY

    @property
    def is_third_party(self) -> bool:
        return self.verification_id is not None

    def caveat_id_text(self) -> str:
        """Return the caveat id decoded as UTF-8 (lossy for binary ids)."""
        return self.caveat_id.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Macaroon:
    """An immutable macaroon.

    Use :meth:`new` to mint one from a root key; the constructor is for
    decoders that already hold a signature.
    """

    identifier: bytes
    location: str
    signature: bytes = field(repr=False)
    caveats: tuple[Caveat, ...] = ()

    def __post_init__(self) -> None:
        if not self.identifier:
            raise InvalidInput("Macaroon identifier must not be empty")
        if len(self.signature) != HASH_LEN:
            raise InvalidInput(
                "Macaroon signature has the wrong length",
                details={"expected": HASH_LEN, "actual": len(self.signature)},
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        root_key: bytes | str,
        identifier: bytes | str,
        location: str = "",
    ) -> Macaroon:
        """Mint a macaroon with no caveats.

        Raises
        ------
        InvalidInput
            If *root_key* or *identifier* is empty.
        """
        key = to_bytes(root_key, "root_key")
        ident = to_bytes(identifier, "identifier")
        if not key:
            raise InvalidInput("Root key must not be empty")
        if not ident:
            raise InvalidInput("Macaroon identifier must not be empty")
        return cls(
            identifier=ident,
            location=location,
            signature=keyed_hash(derive_key(key), ident),
        )

    def with_caveat(self, caveat: Caveat, signature: bytes) -> Macaroon:
        """Return a copy with *caveat* appended and *signature* installed."""
        return dataclasses.replace(
            self, caveats=(*self.caveats, caveat), signature=signature
        )

    def with_signature(self, signature: bytes) -> Macaroon:
        """Return a copy carrying *signature* instead of the current one."""
        return dataclasses.replace(self, signature=signature)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def identifier_text(self) -> str:
        return self.identifier.decode("utf-8", errors="replace")

    def first_party_caveats(self) -> list[Caveat]:
        return [c for c in self.caveats if not c.is_third_party]

    def third_party_caveats(self) -> list[Caveat]:
        return [c for c in self.caveats if c.is_third_party]

    def find_third_party_caveat(self, location: str) -> Caveat | None:
        """Return the first third-party caveat addressed to *location*."""
        for caveat in self.caveats:
            if caveat.is_third_party and caveat.location == location:
                return caveat
        return None

    def inspect(self) -> str:
        """Return a human-readable, line-oriented dump of the token."""
        lines = [
            f"location {self.location}",
            f"identifier {self.identifier_text}",
        ]
        for caveat in self.caveats:
            lines.append(f"cid {caveat.caveat_id_text()}")
            if caveat.verification_id is not None:
                lines.append(f"vid {caveat.verification_id.hex()}")
                lines.append(f"cl {caveat.location or ''}")
        lines.append(f"signature {self.signature.hex()}")
        return "\n".join(lines)
