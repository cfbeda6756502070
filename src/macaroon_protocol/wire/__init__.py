"""Macaroon wire formats.

This subpackage converts macaroons to and from text for transport between
the Issuer, the client, the Discharger and the Verifier.

Public API
----------
- :class:`SerializationFormat` -- ``v1`` packets or v2 ``json``.
- :func:`serialize` / :func:`deserialize` -- single macaroons, with format
  auto-detection on input.
- :func:`serialize_bundle` / :func:`deserialize_bundle` -- a root macaroon
  and its bound discharges as one JSON array.
"""
from __future__ import annotations

from macaroon_protocol.wire.serialization import (
    SerializationFormat,
    deserialize,
    deserialize_bundle,
    from_json_dict,
    serialize,
    serialize_bundle,
    to_json_dict,
)

__all__ = [
    "SerializationFormat",
    "deserialize",
    "deserialize_bundle",
    "from_json_dict",
    "serialize",
    "serialize_bundle",
    "to_json_dict",
]
