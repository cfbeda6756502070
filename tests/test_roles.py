"""Tests for the Issuer and Discharger roles."""
from __future__ import annotations

import logging
from collections.abc import Callable

import pytest

from macaroon_protocol.caveats import PermissionsPredicate, parse_predicate
from macaroon_protocol.chain import derive_signatures
from macaroon_protocol.core.config import DischargerConfig, IssuerConfig
from macaroon_protocol.core.errors import InvalidCredentials, UnknownCaveat
from macaroon_protocol.core.interfaces import InMemoryIdentityChecker
from macaroon_protocol.core.types import DischargeRequest, PermissionRequest
from macaroon_protocol.discharger import Discharger
from macaroon_protocol.issuer import Issuer
from macaroon_protocol.ticket import open_ticket
from macaroon_protocol.token import Macaroon
from macaroon_protocol.wire.serialization import SerializationFormat, deserialize

# ---------------------------------------------------------------------------
# Constants & fixtures
# ---------------------------------------------------------------------------

Mint = Callable[..., tuple[Macaroon, Macaroon]]

ROOT_SECRET = b"unit-test-root-secret"
DISCHARGE_SECRET = b"unit-test-discharge-secret"
EMAIL = "me@nope.com"
PASSWORD = "correct horse battery staple"


@pytest.fixture()
def issuer_config() -> IssuerConfig:
    return IssuerConfig(root_secret=ROOT_SECRET, discharge_secret=DISCHARGE_SECRET)


@pytest.fixture()
def issuer(issuer_config: IssuerConfig) -> Issuer:
    return Issuer(issuer_config)


@pytest.fixture()
def identity_checker() -> InMemoryIdentityChecker:
    return InMemoryIdentityChecker({EMAIL: PASSWORD})


@pytest.fixture()
def discharger(identity_checker: InMemoryIdentityChecker) -> Discharger:
    return Discharger(
        DischargerConfig(discharge_secret=DISCHARGE_SECRET),
        identity_checker,
    )


@pytest.fixture()
def mint(issuer: Issuer, discharger: Discharger) -> Mint:
    """Return a helper minting ``(root, unbound_discharge)``."""

    def _mint(
        permissions: list[str] | None = None,
        email: str = EMAIL,
        password: str = PASSWORD,
    ) -> tuple[Macaroon, Macaroon]:
        root = issuer.get_root_macaroon(
            PermissionRequest(permissions=permissions or ["read", "write"])
        )
        caveat = root.third_party_caveats()[0]
        discharge = discharger.discharge_caveat(
            DischargeRequest(
                email=email,
                password=password,
                caveat_id=caveat.caveat_id_text(),
            )
        )
        return root, discharge

    return _mint


# ===================================================================
# Issuer
# ===================================================================

class TestIssuer:
    def test_root_macaroon_shape(self, issuer: Issuer) -> None:
        root = issuer.get_root_macaroon(PermissionRequest(permissions=["read", "write"]))
        assert root.identifier == b"some id"
        assert root.location == "a location"
        third, first = root.caveats
        assert third.is_third_party
        assert third.location == "http://example.com"
        assert not first.is_third_party
        assert parse_predicate(first.caveat_id) == PermissionsPredicate(
            permissions=["read", "write"]
        )

    def test_signed_with_root_secret(self, issuer: Issuer) -> None:
        root = issuer.get_root_macaroon(PermissionRequest(permissions=["read"]))
        assert derive_signatures(root, ROOT_SECRET)[-1] == root.signature

    def test_caveat_id_is_sealed_ticket(self, issuer: Issuer) -> None:
        root = issuer.get_root_macaroon(PermissionRequest(permissions=[]))
        ticket = open_ticket(DISCHARGE_SECRET, root.third_party_caveats()[0].caveat_id)
        assert ticket.condition == "is-authorized-or-whatever"
        assert len(ticket.root_key) == 32

    def test_fresh_discharge_key_per_mint(self, issuer: Issuer) -> None:
        request = PermissionRequest(permissions=["read"])
        a = issuer.get_root_macaroon(request).third_party_caveats()[0]
        b = issuer.get_root_macaroon(request).third_party_caveats()[0]
        assert open_ticket(DISCHARGE_SECRET, a.caveat_id).root_key != open_ticket(
            DISCHARGE_SECRET, b.caveat_id
        ).root_key

    def test_custom_identity(self) -> None:
        issuer = Issuer(
            IssuerConfig(
                root_secret=b"r",
                discharge_secret=b"d",
                root_identifier="svc-42",
                root_location="https://svc.example",
                third_party_location="https://auth.example",
            )
        )
        root = issuer.get_root_macaroon(PermissionRequest(permissions=[]))
        assert root.identifier == b"svc-42"
        assert root.location == "https://svc.example"
        assert root.find_third_party_caveat("https://auth.example") is not None

    @pytest.mark.parametrize("fmt", list(SerializationFormat))
    def test_serialized(self, issuer: Issuer, fmt: SerializationFormat) -> None:
        text = issuer.get_root_macaroon_serialized(PermissionRequest(permissions=["read"]), fmt)
        root = deserialize(text)
        assert root.identifier == b"some id"
        assert derive_signatures(root, ROOT_SECRET)[-1] == root.signature


# ===================================================================
# Discharger
# ===================================================================

class TestDischarger:
    def test_discharge_shape(self, mint: Mint) -> None:
        root, discharge = mint()
        assert discharge.identifier == root.third_party_caveats()[0].caveat_id
        assert discharge.location == "remote"
        assert [c.caveat_id for c in discharge.caveats] == [f"email={EMAIL}".encode()]

    def test_discharge_signed_with_ticket_key(self, mint: Mint) -> None:
        root, discharge = mint()
        ticket = open_ticket(DISCHARGE_SECRET, root.third_party_caveats()[0].caveat_id)
        assert derive_signatures(discharge, ticket.root_key)[-1] == discharge.signature

    def test_denial_log_omits_email(self, mint: Mint, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="macaroon_protocol.discharger"):
            with pytest.raises(InvalidCredentials):
                mint(password="wrong")
        assert "invalid credentials" in caplog.text
        assert EMAIL not in caplog.text

    def test_invalid_credentials(self, mint: Mint) -> None:
        with pytest.raises(InvalidCredentials) as exc_info:
            mint(password="wrong")
        assert exc_info.value.http_status == 401

    def test_unknown_user(self, mint: Mint) -> None:
        with pytest.raises(InvalidCredentials):
            mint(email="nobody@nope.com")

    def test_unknown_caveat_id(self, discharger: Discharger) -> None:
        request = DischargeRequest(email=EMAIL, password=PASSWORD, caveat_id="not-a-ticket")
        with pytest.raises(UnknownCaveat):
            discharger.discharge_caveat(request)

    def test_wrong_shared_secret(self, issuer: Issuer) -> None:
        discharger = Discharger(
            DischargerConfig(discharge_secret=b"not the shared secret"),
            InMemoryIdentityChecker({EMAIL: PASSWORD}),
        )
        root = issuer.get_root_macaroon(PermissionRequest(permissions=[]))
        with pytest.raises(UnknownCaveat):
            discharger.resolve_caveat(root.third_party_caveats()[0].caveat_id)

    def test_unhandled_condition(self, discharger: Discharger) -> None:
        issuer = Issuer(
            IssuerConfig(
                root_secret=ROOT_SECRET,
                discharge_secret=DISCHARGE_SECRET,
                third_party_condition="is-over-18",
            )
        )
        root = issuer.get_root_macaroon(PermissionRequest(permissions=[]))
        with pytest.raises(UnknownCaveat, match="is-over-18"):
            discharger.resolve_caveat(root.third_party_caveats()[0].caveat_id)

    def test_unknown_caveat_checked_before_credentials(self, discharger: Discharger) -> None:
        request = DischargeRequest(email=EMAIL, password="wrong", caveat_id="garbage")
        with pytest.raises(UnknownCaveat):
            discharger.discharge_caveat(request)
