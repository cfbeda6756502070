"""Root and discharge macaroon verification.

Verification steps:

1. **Root signature** -- re-derive the root chain from the shared secret and
   compare with the presented signature (constant time).
2. **Caveats in order** -- first-party caveats go through the injected
   predicate hook; each third-party caveat must have exactly one presented
   discharge whose identifier equals the caveat id.  The discharge root key
   is recovered from the verification id using the root signature in force
   when the caveat was added; the discharge chain is re-derived from it,
   bound to the root signature, and compared with the presented signature.
   The discharge's own caveats are then checked the same way.
3. **Every discharge used once** -- unused or doubly needed discharges are
   rejected.

If ANY step fails, the request MUST be denied.  Verification keeps no state
between calls.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from macaroon_protocol.binding import bind_for_request
from macaroon_protocol.caveats import (
    CaveatPredicate,
    PermissionsPredicate,
    declared_values,
    default_checker,
    describe,
    parse_predicate,
)
from macaroon_protocol.chain import signature_chain
from macaroon_protocol.core.crypto import constant_time_equal, decrypt, derive_key
from macaroon_protocol.core.errors import (
    CaveatNotSatisfied,
    CryptoError,
    DischargeNotFound,
    DischargeNotUsed,
    DischargeReused,
    DischargeSignatureMismatch,
    InvalidInput,
    SignatureMismatch,
    VerifyError,
)
from macaroon_protocol.core.types import Authorization
from macaroon_protocol.token import Macaroon, to_bytes

logger = logging.getLogger(__name__)


@dataclass
class _Walk:
    """Mutable bookkeeping for a single verification call."""

    root_signature: bytes
    discharges: Sequence[Macaroon]
    used: list[bool]
    declared: dict[str, str] = field(default_factory=dict)
    permissions: list[str] = field(default_factory=list)


class Verifier:
    """Verifies macaroons minted under a single shared root secret.

    Parameters
    ----------
    shared_secret:
        The root key the root macaroons were minted with.
    predicate:
        Hook called with every first-party caveat id.  Defaults to
        :func:`~macaroon_protocol.caveats.default_checker`, which accepts
        the permission-request and ``email=`` caveats and nothing else.
    """

    def __init__(
        self,
        shared_secret: bytes | str,
        predicate: CaveatPredicate | None = None,
    ) -> None:
        secret = to_bytes(shared_secret, "shared_secret")
        if not secret:
            raise InvalidInput("Shared secret must not be empty")
        self._key = derive_key(secret)
        self._predicate: CaveatPredicate = predicate if predicate is not None else default_checker()

    def verify(
        self,
        root: Macaroon,
        discharges: Iterable[Macaroon] = (),
    ) -> Authorization:
        """Verify *root* together with its bound *discharges*.

        Returns
        -------
        Authorization
            Identity facts declared by the discharges and the permissions
            the root macaroon was scoped to.

        Raises
        ------
        SignatureMismatch
            The root chain does not match its signature.
        CaveatNotSatisfied
            A first-party caveat was rejected by the predicate hook.
        DischargeNotFound
            No discharge was presented for a third-party caveat.
        DischargeSignatureMismatch
            A discharge is forged, altered, or bound to another root.
        DischargeReused
            A discharge was needed by more than one caveat.
        DischargeNotUsed
            A presented discharge satisfies no caveat.
        """
        presented = list(discharges)
        chain = signature_chain(self._key, root)
        if not constant_time_equal(chain[-1], root.signature):
            raise _security_event(
                SignatureMismatch(details={"identifier": root.identifier_text}),
                root,
            )

        walk = _Walk(
            root_signature=root.signature,
            discharges=presented,
            used=[False] * len(presented),
        )
        self._check_caveats(root, chain, walk, is_root=True)

        for index, used in enumerate(walk.used):
            if not used:
                raise DischargeNotUsed(
                    details={"identifier": presented[index].identifier_text},
                )

        logger.debug(
            "Verified macaroon %r with %d discharge(s)",
            root.identifier_text,
            len(presented),
        )
        return Authorization(
            identifier=root.identifier_text,
            location=root.location,
            email=walk.declared.get("email"),
            declared=walk.declared,
            permissions=walk.permissions,
            discharge_count=len(presented),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_caveats(
        self,
        token: Macaroon,
        chain: list[bytes],
        walk: _Walk,
        *,
        is_root: bool = False,
    ) -> None:
        for index, caveat in enumerate(token.caveats):
            if caveat.verification_id is None:
                self._check_first_party(token, caveat.caveat_id)
                if is_root:
                    predicate = parse_predicate(caveat.caveat_id)
                    if isinstance(predicate, PermissionsPredicate) and not walk.permissions:
                        walk.permissions = list(predicate.permissions)
                continue

            discharge = self._claim_discharge(caveat.caveat_id, walk)
            try:
                discharge_key = decrypt(chain[index], caveat.verification_id)
            except CryptoError as exc:
                raise _security_event(
                    DischargeSignatureMismatch(
                        "Third-party caveat key could not be recovered",
                        details={"identifier": discharge.identifier_text},
                    ),
                    discharge,
                ) from exc

            discharge_chain = signature_chain(discharge_key, discharge)
            expected = bind_for_request(walk.root_signature, discharge_chain[-1])
            if not constant_time_equal(expected, discharge.signature):
                raise _security_event(
                    DischargeSignatureMismatch(
                        details={"identifier": discharge.identifier_text},
                    ),
                    discharge,
                )

            for key, value in declared_values(
                c.caveat_id for c in discharge.first_party_caveats()
            ).items():
                walk.declared.setdefault(key, value)
            self._check_caveats(discharge, discharge_chain, walk)

    def _check_first_party(self, token: Macaroon, caveat_id: bytes) -> None:
        try:
            satisfied = self._predicate(caveat_id)
        except Exception as exc:  # noqa: BLE001
            raise CaveatNotSatisfied(
                f"Caveat predicate raised {type(exc).__name__}: {exc}",
                details={"identifier": token.identifier_text},
            ) from exc
        if satisfied is False:
            logger.info(
                "Caveat %s on macaroon %r not satisfied",
                describe(caveat_id),
                token.identifier_text,
            )
            raise CaveatNotSatisfied(
                details={"identifier": token.identifier_text},
            )

    @staticmethod
    def _claim_discharge(caveat_id: bytes, walk: _Walk) -> Macaroon:
        matches = [
            i for i, d in enumerate(walk.discharges) if d.identifier == caveat_id
        ]
        if not matches:
            raise DischargeNotFound(
                details={"caveat_id": caveat_id.decode("utf-8", errors="replace")},
            )
        for index in matches:
            if not walk.used[index]:
                walk.used[index] = True
                return walk.discharges[index]
        raise DischargeReused(
            details={"identifier": walk.discharges[matches[0]].identifier_text},
        )


def verify(
    root: Macaroon,
    shared_secret: bytes | str,
    predicate: CaveatPredicate,
    discharges: Iterable[Macaroon] = (),
) -> Authorization:
    """Verify *root* and *discharges* against *shared_secret*.

    Functional form of :meth:`Verifier.verify`.
    """
    return Verifier(shared_secret, predicate).verify(root, discharges)


def _security_event(error: VerifyError, token: Macaroon) -> VerifyError:
    logger.warning(
        "Security event %s (%s) for macaroon %r",
        error.code,
        type(error).__name__,
        token.identifier_text,
    )
    return error
