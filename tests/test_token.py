"""Tests for the immutable macaroon and caveat value types."""
from __future__ import annotations

import dataclasses

import pytest

from macaroon_protocol.core.crypto import HASH_LEN, derive_key, keyed_hash
from macaroon_protocol.core.errors import InvalidInput
from macaroon_protocol.core.types import CaveatKind
from macaroon_protocol.token import Caveat, Macaroon, to_bytes


class TestToBytes:
    def test_text_is_utf8(self) -> None:
        assert to_bytes("café", "x") == "café".encode()

    def test_bytes_pass_through(self) -> None:
        assert to_bytes(b"\xff", "x") == b"\xff"

    def test_other_types_rejected(self) -> None:
        with pytest.raises(InvalidInput, match="root_key"):
            to_bytes(42, "root_key")  # type: ignore[arg-type]


class TestMacaroonNew:
    def test_initial_signature(self) -> None:
        token = Macaroon.new(b"root", "some id", "a location")
        assert token.identifier == b"some id"
        assert token.location == "a location"
        assert token.caveats == ()
        assert token.signature == keyed_hash(derive_key(b"root"), b"some id")

    def test_text_and_bytes_keys_agree(self) -> None:
        assert Macaroon.new("root", "id") == Macaroon.new(b"root", b"id")

    def test_empty_root_key_rejected(self) -> None:
        with pytest.raises(InvalidInput, match="Root key"):
            Macaroon.new(b"", "id")

    def test_empty_identifier_rejected(self) -> None:
        with pytest.raises(InvalidInput, match="identifier"):
            Macaroon.new(b"root", "")

    def test_location_defaults_to_empty(self) -> None:
        assert Macaroon.new(b"root", "id").location == ""


class TestMacaroonValue:
    def test_signature_length_enforced(self) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            Macaroon(identifier=b"id", location="", signature=b"short")
        assert exc_info.value.details == {"expected": HASH_LEN, "actual": 5}

    def test_is_immutable(self) -> None:
        token = Macaroon.new(b"root", "id")
        with pytest.raises(dataclasses.FrozenInstanceError):
            token.location = "elsewhere"  # type: ignore[misc]

    def test_with_caveat_returns_new_token(self) -> None:
        token = Macaroon.new(b"root", "id")
        new_sig = bytes(HASH_LEN)
        updated = token.with_caveat(Caveat(caveat_id=b"a"), new_sig)
        assert token.caveats == ()
        assert updated.caveats == (Caveat(caveat_id=b"a"),)
        assert updated.signature == new_sig

    def test_signature_not_in_repr(self) -> None:
        token = Macaroon.new(b"root", "id")
        assert token.signature.hex() not in repr(token)
        assert "signature" not in repr(token)


class TestCaveat:
    def test_first_party(self) -> None:
        caveat = Caveat(caveat_id=b"x")
        assert caveat.kind is CaveatKind.FIRST_PARTY
        assert not caveat.is_third_party

    def test_third_party(self) -> None:
        caveat = Caveat(caveat_id=b"x", verification_id=b"v", location="remote")
        assert caveat.kind is CaveatKind.THIRD_PARTY
        assert caveat.is_third_party

    def test_caveat_id_text_is_lossy(self) -> None:
        assert Caveat(caveat_id=b"\xffok").caveat_id_text() == "�ok"


class TestInspection:
    def _token(self) -> Macaroon:
        return Macaroon(
            identifier=b"id",
            location="loc",
            signature=bytes(HASH_LEN),
            caveats=(
                Caveat(caveat_id=b"first"),
                Caveat(caveat_id=b"third", verification_id=b"\x01\x02", location="remote"),
            ),
        )

    def test_caveat_partitions(self) -> None:
        token = self._token()
        assert [c.caveat_id for c in token.first_party_caveats()] == [b"first"]
        assert [c.caveat_id for c in token.third_party_caveats()] == [b"third"]

    def test_find_third_party_caveat(self) -> None:
        token = self._token()
        found = token.find_third_party_caveat("remote")
        assert found is not None and found.caveat_id == b"third"
        assert token.find_third_party_caveat("nowhere") is None

    def test_inspect(self) -> None:
        lines = self._token().inspect().splitlines()
        assert lines == [
            "location loc",
            "identifier id",
            "cid first",
            "cid third",
            "vid 0102",
            "cl remote",
            f"signature {'00' * HASH_LEN}",
        ]
