"""Discharger role: proves a delegated condition with a discharge macaroon.

The Discharger shares one secret with the Issuer, never with the client.
Given a third-party caveat id it opens the caveat ticket to learn the
discharge root key and the condition, asks its identity collaborator to
check the caller's credentials, and mints a discharge macaroon whose
identifier is the caveat id.  The authenticated email is attached as an
``email=<value>`` first-party caveat for the Issuer to consume.

The returned discharge is **unbound**.  Binding it to the root signature is
the client's job, so the same proof is never silently reused across
different root macaroons.
"""
from __future__ import annotations

import logging

from macaroon_protocol.caveats import email_predicate
from macaroon_protocol.chain import add_first_party_caveat
from macaroon_protocol.core.config import DischargerConfig
from macaroon_protocol.core.errors import InvalidCredentials, UnknownCaveat
from macaroon_protocol.core.interfaces import IdentityChecker
from macaroon_protocol.core.types import DischargeRequest
from macaroon_protocol.ticket import CaveatTicket, open_ticket
from macaroon_protocol.token import Macaroon

logger = logging.getLogger(__name__)


class Discharger:
    """Discharges third-party caveats after an identity check.

    Parameters
    ----------
    config:
        The shared discharge secret, the location stamped on discharges and
        the conditions this discharger can prove.
    identity_checker:
        Collaborator that validates credentials.  Its verdict is trusted.
    """

    def __init__(self, config: DischargerConfig, identity_checker: IdentityChecker) -> None:
        self._config = config
        self._identity_checker = identity_checker

    def resolve_caveat(self, caveat_id: bytes | str) -> CaveatTicket:
        """Open *caveat_id* and confirm the condition is one this discharger proves.

        Raises
        ------
        UnknownCaveat
            If the id cannot be opened with the shared secret or names a
            condition this discharger is not configured for.
        """
        ticket = open_ticket(self._config.discharge_secret.get_secret_value(), caveat_id)
        if ticket.condition not in self._config.conditions:
            raise UnknownCaveat(
                f"Condition {ticket.condition!r} is not handled by this discharger",
                details={"condition": ticket.condition},
            )
        return ticket

    def discharge_caveat(self, request: DischargeRequest) -> Macaroon:
        """Return an unbound discharge macaroon for *request*.

        Raises
        ------
        UnknownCaveat
            If the caveat id cannot be resolved to a discharge root key.
        InvalidCredentials
            If the identity check rejects the credentials.  No discharge is
            minted in that case.
        """
        try:
            ticket = self.resolve_caveat(request.caveat_id)
        except UnknownCaveat:
            logger.info("Discharge denied: unknown caveat id")
            raise

        if not self._identity_checker.check(request.email, request.password):
            logger.info("Discharge denied: invalid credentials for %r", ticket.condition)
            raise InvalidCredentials(details={"condition": ticket.condition})

        discharge = Macaroon.new(ticket.root_key, request.caveat_id, self._config.location)
        discharge = add_first_party_caveat(discharge, email_predicate(request.email))
        logger.debug("Discharged condition %r for %s", ticket.condition, request.email)
        return discharge
