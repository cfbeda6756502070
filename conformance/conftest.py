"""Shared fixtures for macaroon protocol conformance tests.

Provides an Issuer and Discharger sharing a discharge secret, an identity
backend with one registered user, and a ``client`` helper that walks the
full issue, discharge and bind flow.
"""
from __future__ import annotations

from dataclasses import dataclass

import pytest

from macaroon_protocol.binding import prepare_for_request
from macaroon_protocol.core.config import DischargerConfig, IssuerConfig
from macaroon_protocol.core.interfaces import InMemoryIdentityChecker
from macaroon_protocol.core.types import DischargeRequest, PermissionRequest
from macaroon_protocol.discharger import Discharger
from macaroon_protocol.issuer import Issuer
from macaroon_protocol.token import Macaroon

# ---------------------------------------------------------------------------
# Common secrets and identities used across tests
# ---------------------------------------------------------------------------
ROOT_SECRET = b"conformance-root-secret"
DISCHARGE_SECRET = b"conformance-discharge-secret"
USER_EMAIL = "me@nope.com"
USER_PASSWORD = "conformance-password"


@dataclass
class Client:
    """Plays the client role against an Issuer and a Discharger."""

    issuer: Issuer
    discharger: Discharger

    def request_root(self, permissions: list[str]) -> Macaroon:
        return self.issuer.get_root_macaroon(PermissionRequest(permissions=permissions))

    def discharge(
        self,
        root: Macaroon,
        email: str = USER_EMAIL,
        password: str = USER_PASSWORD,
    ) -> Macaroon:
        caveat = root.find_third_party_caveat(self.issuer.config.third_party_location)
        assert caveat is not None
        return self.discharger.discharge_caveat(
            DischargeRequest(email=email, password=password, caveat_id=caveat.caveat_id_text())
        )

    def prepare(self, permissions: list[str]) -> list[Macaroon]:
        """Return ``[root, bound_discharge]`` for *permissions*."""
        root = self.request_root(permissions)
        return prepare_for_request(root, [self.discharge(root)])


# ---------------------------------------------------------------------------
# Role fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def issuer() -> Issuer:
    return Issuer(IssuerConfig(root_secret=ROOT_SECRET, discharge_secret=DISCHARGE_SECRET))


@pytest.fixture()
def identity_checker() -> InMemoryIdentityChecker:
    return InMemoryIdentityChecker({USER_EMAIL: USER_PASSWORD})


@pytest.fixture()
def discharger(identity_checker: InMemoryIdentityChecker) -> Discharger:
    return Discharger(DischargerConfig(discharge_secret=DISCHARGE_SECRET), identity_checker)


@pytest.fixture()
def client(issuer: Issuer, discharger: Discharger) -> Client:
    return Client(issuer, discharger)
