"""Macaroon serialization formats.

This module provides:

* **V1** -- the libmacaroons packet format: a sequence of
  ``<4 hex digit length><key> <value>\\n`` packets (``location``,
  ``identifier``, then ``cid`` / ``vid`` / ``cl`` per caveat, then
  ``signature``) wrapped in unpadded URL-safe base64.
* **JSON** -- the macaroon v2 JSON object (``v``, ``l``, ``i`` or ``i64``,
  ``c``, ``s64``).
* **Bundles** -- a JSON array carrying a root macaroon followed by its
  bound discharges, which is what a client presents to the Verifier.

Every format round-trips identifier, location, signature and caveats
exactly.  All helpers are synchronous and side-effect-free.
"""
from __future__ import annotations

import base64
import binascii
import enum
import json
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from macaroon_protocol.core.errors import InvalidInput, MalformedToken, UnsupportedVersion
from macaroon_protocol.token import Caveat, Macaroon

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

class SerializationFormat(enum.StrEnum):
    """Supported serialization formats."""

    V1 = "v1"
    JSON = "json"


JSON_VERSION = 2
"""``v`` field written to and required in JSON macaroons."""

PACKET_HEADER_SIZE = 4
MAX_PACKET_SIZE = 0xFFFF


# ---------------------------------------------------------------------------
# Base64 helpers
# ---------------------------------------------------------------------------

def b64encode(data: bytes) -> str:
    """URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64decode(text: str) -> bytes:
    """Decode standard or URL-safe base64, padded or not.

    Raises
    ------
    MalformedToken
        If *text* is not base64.
    """
    cleaned = text.strip().rstrip("=").replace("+", "-").replace("/", "_")
    try:
        return base64.b64decode(
            cleaned + "=" * (-len(cleaned) % 4), altchars=b"-_", validate=True
        )
    except (binascii.Error, ValueError) as exc:
        raise MalformedToken(f"Invalid base64: {exc}") from exc


# ---------------------------------------------------------------------------
# V1 packet format
# ---------------------------------------------------------------------------

def _packet(key: str, value: bytes) -> bytes:
    body = key.encode("ascii") + b" " + value + b"\n"
    size = PACKET_HEADER_SIZE + len(body)
    if size > MAX_PACKET_SIZE:
        raise InvalidInput(
            f"Field {key!r} is too large for the v1 format",
            details={"field": key, "size": size, "max_size": MAX_PACKET_SIZE},
        )
    return f"{size:04x}".encode("ascii") + body


def _encode_v1(token: Macaroon) -> str:
    parts = [
        _packet("location", token.location.encode("utf-8")),
        _packet("identifier", token.identifier),
    ]
    for caveat in token.caveats:
        parts.append(_packet("cid", caveat.caveat_id))
        if caveat.verification_id is not None:
            parts.append(_packet("vid", caveat.verification_id))
            parts.append(_packet("cl", (caveat.location or "").encode("utf-8")))
    parts.append(_packet("signature", token.signature))
    return b64encode(b"".join(parts))


def _read_packets(data: bytes) -> list[tuple[str, bytes]]:
    packets: list[tuple[str, bytes]] = []
    offset = 0
    while offset < len(data):
        header = data[offset : offset + PACKET_HEADER_SIZE]
        try:
            size = int(header.decode("ascii"), 16)
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedToken(
                "Invalid v1 packet header",
                details={"offset": offset},
            ) from exc
        if size <= PACKET_HEADER_SIZE or offset + size > len(data):
            raise MalformedToken(
                "v1 packet length out of range",
                details={"offset": offset, "size": size},
            )
        body = data[offset + PACKET_HEADER_SIZE : offset + size]
        offset += size
        if not body.endswith(b"\n"):
            raise MalformedToken("v1 packet is not newline terminated")
        key, sep, value = body[:-1].partition(b" ")
        if not sep:
            raise MalformedToken("v1 packet has no key separator")
        packets.append((key.decode("ascii", errors="replace"), value))
    return packets


def _decode_v1(data: bytes) -> Macaroon:
    packets = _read_packets(data)
    if len(packets) < 3:
        raise MalformedToken("v1 macaroon is truncated")

    (k_loc, location), (k_id, identifier) = packets[0], packets[1]
    k_sig, signature = packets[-1]
    if (k_loc, k_id, k_sig) != ("location", "identifier", "signature"):
        raise MalformedToken(
            "v1 macaroon fields are out of order",
            details={"fields": [k for k, _ in packets]},
        )

    caveats: list[dict[str, Any]] = []
    for key, value in packets[2:-1]:
        if key == "cid":
            caveats.append({"caveat_id": value})
        elif key in ("vid", "cl") and caveats:
            field = "verification_id" if key == "vid" else "location"
            if field in caveats[-1]:
                raise MalformedToken(f"Duplicate {key!r} packet in caveat")
            if key == "cl" and "verification_id" not in caveats[-1]:
                raise MalformedToken("Caveat location without a verification id")
            caveats[-1][field] = value if key == "vid" else _utf8(value, "caveat location")
        else:
            raise MalformedToken(f"Unexpected v1 packet {key!r}")

    return _build(identifier, _utf8(location, "location"), signature, caveats)


def _utf8(value: bytes, what: str) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedToken(f"v1 {what} is not UTF-8", details={"field": what}) from exc


# ---------------------------------------------------------------------------
# JSON format
# ---------------------------------------------------------------------------

class CaveatJSON(BaseModel):
    """One caveat of a JSON macaroon."""

    model_config = ConfigDict(extra="forbid")

    i: str | None = None
    i64: str | None = None
    v64: str | None = None
    l: str | None = None  # noqa: E741


class MacaroonJSON(BaseModel):
    """Macaroon v2 JSON object."""

    model_config = ConfigDict(extra="forbid")

    v: int
    l: str = ""  # noqa: E741
    i: str | None = None
    i64: str | None = None
    c: list[CaveatJSON] = []
    s64: str


def _text_or_b64(value: bytes) -> dict[str, str]:
    try:
        return {"i": value.decode("utf-8")}
    except UnicodeDecodeError:
        return {"i64": b64encode(value)}


def _from_text_or_b64(text: str | None, b64: str | None, what: str) -> bytes:
    if (text is None) == (b64 is None):
        raise MalformedToken(f"Exactly one of 'i' and 'i64' is required for the {what}")
    return text.encode("utf-8") if text is not None else b64decode(b64 or "")


def to_json_dict(token: Macaroon) -> dict[str, Any]:
    """Return the JSON-object form of *token*."""
    caveats = []
    for caveat in token.caveats:
        entry: dict[str, Any] = _text_or_b64(caveat.caveat_id)
        if caveat.verification_id is not None:
            entry["v64"] = b64encode(caveat.verification_id)
            entry["l"] = caveat.location or ""
        caveats.append(entry)
    return {
        "v": JSON_VERSION,
        "l": token.location,
        **_text_or_b64(token.identifier),
        "c": caveats,
        "s64": b64encode(token.signature),
    }


def from_json_dict(data: Any) -> Macaroon:
    """Build a :class:`Macaroon` from its JSON-object form.

    Raises
    ------
    MalformedToken
        If the object fails validation.
    UnsupportedVersion
        If ``v`` is not :data:`JSON_VERSION`.
    """
    if not isinstance(data, dict):
        raise MalformedToken("JSON macaroon must be an object")
    if data.get("v") != JSON_VERSION:
        raise UnsupportedVersion(
            f"Unsupported JSON macaroon version: {data.get('v')!r}",
            details={"version": data.get("v"), "supported": [JSON_VERSION]},
        )
    try:
        model = MacaroonJSON.model_validate(data)
    except ValidationError as exc:
        raise MalformedToken(f"JSON macaroon validation failed: {exc}") from exc

    caveats: list[dict[str, Any]] = []
    for entry in model.c:
        caveat: dict[str, Any] = {
            "caveat_id": _from_text_or_b64(entry.i, entry.i64, "caveat id"),
        }
        if entry.v64 is not None:
            caveat["verification_id"] = b64decode(entry.v64)
            caveat["location"] = entry.l or ""
        elif entry.l is not None:
            raise MalformedToken("First-party caveat must not carry a location")
        caveats.append(caveat)

    return _build(
        _from_text_or_b64(model.i, model.i64, "identifier"),
        model.l,
        b64decode(model.s64),
        caveats,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def serialize(token: Macaroon, fmt: SerializationFormat = SerializationFormat.V1) -> str:
    """Serialize *token* as text in the requested format."""
    if fmt is SerializationFormat.V1:
        return _encode_v1(token)
    if fmt is SerializationFormat.JSON:
        return json.dumps(to_json_dict(token), separators=(",", ":"))
    raise UnsupportedVersion(f"Unknown serialization format: {fmt!r}")


def deserialize(text: str | bytes) -> Macaroon:
    """Parse a macaroon serialized in any supported format.

    The format is detected from the first character: ``{`` selects JSON,
    anything else is treated as base64 of the v1 packet format.

    Raises
    ------
    MalformedToken
        If the input cannot be decoded.
    UnsupportedVersion
        If the input uses a format version this module does not support.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as exc:
            raise MalformedToken("Serialized macaroon must be ASCII text") from exc

    text = text.strip()
    if not text:
        raise MalformedToken("Empty macaroon")

    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedToken(f"Invalid JSON: {exc}") from exc
        return from_json_dict(data)

    raw = b64decode(text)
    if raw[:1] == b"\x02":
        raise UnsupportedVersion(
            "Binary v2 macaroons are not supported",
            details={"supported": [f.value for f in SerializationFormat]},
        )
    return _decode_v1(raw)


def serialize_bundle(tokens: Iterable[Macaroon]) -> str:
    """Serialize a root macaroon and its discharges as one JSON array."""
    return json.dumps([to_json_dict(t) for t in tokens], separators=(",", ":"))


def deserialize_bundle(text: str | bytes) -> list[Macaroon]:
    """Parse a bundle produced by :func:`serialize_bundle`.

    Elements may also be strings holding individually serialized
    macaroons in any supported format.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedToken(f"Invalid JSON bundle: {exc}") from exc
    if not isinstance(data, list) or not data:
        raise MalformedToken("Macaroon bundle must be a non-empty JSON array")
    return [deserialize(item) if isinstance(item, str) else from_json_dict(item) for item in data]


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

def _build(
    identifier: bytes,
    location: str,
    signature: bytes,
    caveats: list[dict[str, Any]],
) -> Macaroon:
    try:
        return Macaroon(
            identifier=identifier,
            location=location,
            signature=signature,
            caveats=tuple(Caveat(**c) for c in caveats),
        )
    except InvalidInput as exc:
        raise MalformedToken(exc.message, details=exc.details) from exc
