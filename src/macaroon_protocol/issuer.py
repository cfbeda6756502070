"""Issuer role: mints root macaroons and verifies requests that carry them.

Every root macaroon carries, in order:

1. a third-party caveat addressed to the Discharger, whose caveat id is a
   ticket sealing a fresh discharge root key and the condition to prove;
2. a first-party caveat embedding the serialized permission request, so
   the granted scope travels with the token and is checked again at
   verification time.

Minting is purely functional given the request and the injected secrets;
nothing is persisted.
"""
from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable

from macaroon_protocol.caveats import CaveatPredicate, PermissionsPredicate, default_checker
from macaroon_protocol.chain import add_first_party_caveat, add_third_party_caveat
from macaroon_protocol.core.config import IssuerConfig
from macaroon_protocol.core.crypto import HASH_LEN
from macaroon_protocol.core.types import Authorization, PermissionRequest
from macaroon_protocol.ticket import seal_ticket
from macaroon_protocol.token import Macaroon
from macaroon_protocol.verifier import Verifier
from macaroon_protocol.wire.serialization import SerializationFormat, serialize

logger = logging.getLogger(__name__)


class Issuer:
    """Mints root macaroons scoped to a permission request.

    Parameters
    ----------
    config:
        Root and discharge secrets plus the identifier, location and
        third-party condition of every root macaroon.
    """

    def __init__(self, config: IssuerConfig) -> None:
        self._config = config

    @property
    def config(self) -> IssuerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Minting
    # ------------------------------------------------------------------

    def get_root_macaroon(self, request: PermissionRequest) -> Macaroon:
        """Mint a root macaroon for *request*."""
        cfg = self._config
        macaroon = Macaroon.new(
            cfg.root_secret.get_secret_value(),
            cfg.root_identifier,
            cfg.root_location,
        )

        discharge_root_key = secrets.token_bytes(HASH_LEN)
        caveat_id = seal_ticket(
            cfg.discharge_secret.get_secret_value(),
            discharge_root_key,
            cfg.third_party_condition,
        )
        macaroon = add_third_party_caveat(
            macaroon, discharge_root_key, caveat_id, cfg.third_party_location
        )
        macaroon = add_first_party_caveat(
            macaroon, PermissionsPredicate(permissions=list(request.permissions))
        )

        logger.debug(
            "Minted root macaroon %r for %d permission(s)",
            macaroon.identifier_text,
            len(request.permissions),
        )
        return macaroon

    def get_root_macaroon_serialized(
        self,
        request: PermissionRequest,
        fmt: SerializationFormat = SerializationFormat.V1,
    ) -> str:
        """Mint a root macaroon for *request* and serialize it for transport."""
        return serialize(self.get_root_macaroon(request), fmt)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verifier(self, predicate: CaveatPredicate | None = None) -> Verifier:
        """Return a :class:`Verifier` keyed with this issuer's root secret."""
        return Verifier(self._config.root_secret.get_secret_value(), predicate)

    def verify_request(
        self,
        root: Macaroon,
        discharges: Iterable[Macaroon],
        *,
        required: Iterable[str] = (),
        predicate: CaveatPredicate | None = None,
    ) -> Authorization:
        """Verify a request presenting *root* and its bound *discharges*.

        Parameters
        ----------
        required:
            Permissions the requested operation needs.  Ignored when a
            custom *predicate* is supplied.
        predicate:
            Replaces the default predicate hook entirely.
        """
        hook = predicate if predicate is not None else default_checker(required)
        return self.verifier(hook).verify(root, discharges)
