"""Tests for sealed third-party caveat tickets."""
from __future__ import annotations

import base64

import pytest

from macaroon_protocol.core.errors import InvalidInput, UnknownCaveat
from macaroon_protocol.ticket import TICKET_VERSION, open_ticket, seal_ticket

SECRET = b"shared discharge secret"
ROOT_KEY = bytes(range(32))


class TestSealTicket:
    def test_round_trip(self) -> None:
        cid = seal_ticket(SECRET, ROOT_KEY, "is-authorized-or-whatever")
        ticket = open_ticket(SECRET, cid)
        assert ticket.root_key == ROOT_KEY
        assert ticket.condition == "is-authorized-or-whatever"

    def test_ascii_and_unpadded(self) -> None:
        cid = seal_ticket(SECRET, ROOT_KEY, "cond")
        assert cid.decode("ascii")
        assert not cid.endswith(b"=")

    def test_text_caveat_id_accepted(self) -> None:
        cid = seal_ticket(SECRET, ROOT_KEY, "cond").decode("ascii")
        assert open_ticket(SECRET, cid).condition == "cond"

    def test_root_key_hidden(self) -> None:
        cid = seal_ticket(SECRET, ROOT_KEY, "cond")
        raw = base64.urlsafe_b64decode(cid + b"=" * (-len(cid) % 4))
        assert raw[0] == TICKET_VERSION
        assert ROOT_KEY not in raw

    def test_root_key_not_in_repr(self) -> None:
        ticket = open_ticket(SECRET, seal_ticket(SECRET, ROOT_KEY, "cond"))
        assert "root_key" not in repr(ticket)

    def test_bad_root_key_length(self) -> None:
        with pytest.raises(InvalidInput, match="wrong length"):
            seal_ticket(SECRET, b"short", "cond")

    def test_empty_condition(self) -> None:
        with pytest.raises(InvalidInput, match="condition"):
            seal_ticket(SECRET, ROOT_KEY, "")


class TestOpenTicket:
    def test_wrong_secret(self) -> None:
        cid = seal_ticket(SECRET, ROOT_KEY, "cond")
        with pytest.raises(UnknownCaveat, match="not issued for this discharger"):
            open_ticket(b"another secret", cid)

    def test_tampered(self) -> None:
        cid = bytearray(seal_ticket(SECRET, ROOT_KEY, "cond"))
        cid[10] = ord("A") if cid[10] != ord("A") else ord("B")
        with pytest.raises(UnknownCaveat):
            open_ticket(SECRET, bytes(cid))

    def test_unknown_version(self) -> None:
        cid = base64.urlsafe_b64encode(b"\x09" + b"\x00" * 60).rstrip(b"=")
        with pytest.raises(UnknownCaveat, match="version") as exc_info:
            open_ticket(SECRET, cid)
        assert exc_info.value.details["version"] == 9

    @pytest.mark.parametrize("cid", [b"", b"not a ticket", "a location"])
    def test_garbage(self, cid: bytes | str) -> None:
        with pytest.raises(UnknownCaveat):
            open_ticket(SECRET, cid)
