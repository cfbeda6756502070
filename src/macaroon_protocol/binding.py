"""Discharge binding.

Binding prevents a discharge macaroon obtained for one request from being
replayed alongside a different root macaroon.  Before presenting a request
the client replaces each discharge signature with:

    ``bound = HMAC(0, HMAC(0, root_sig) || HMAC(0, discharge_sig))``

The verifier recomputes the same value from the root macaroon actually
presented, so a discharge bound to root macaroon A never verifies next to
root macaroon B.

Binding is a pure function of ``(discharge, root_signature)``: binding the
same unbound discharge to the same root signature always yields the same
token.  There is no way to unbind.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from macaroon_protocol.core.crypto import HASH_LEN, ZERO_KEY, keyed_hash_n
from macaroon_protocol.core.errors import InvalidInput
from macaroon_protocol.token import Macaroon

logger = logging.getLogger(__name__)


def bind_for_request(root_signature: bytes, discharge_signature: bytes) -> bytes:
    """Return the bound form of *discharge_signature* for *root_signature*.

    A signature bound to itself is returned unchanged, so the root macaroon
    can pass through the same code path as its discharges.
    """
    if root_signature == discharge_signature:
        return discharge_signature
    return keyed_hash_n(ZERO_KEY, root_signature, discharge_signature)


def bind(discharge: Macaroon, root_signature: bytes) -> Macaroon:
    """Bind *discharge* to the root macaroon whose signature is *root_signature*.

    Raises
    ------
    InvalidInput
        If *root_signature* is not a macaroon signature.
    """
    if len(root_signature) != HASH_LEN:
        raise InvalidInput(
            "Root signature has the wrong length",
            details={"expected": HASH_LEN, "actual": len(root_signature)},
        )
    logger.debug("Binding discharge %r to root signature", discharge.identifier_text)
    return discharge.with_signature(bind_for_request(root_signature, discharge.signature))


def prepare_for_request(root: Macaroon, discharges: Iterable[Macaroon]) -> list[Macaroon]:
    """Bind every unbound discharge to *root*.

    Returns
    -------
    list[Macaroon]
        ``[root, *bound_discharges]`` ready to present to the Verifier.
    """
    return [root, *(bind(d, root.signature) for d in discharges)]
