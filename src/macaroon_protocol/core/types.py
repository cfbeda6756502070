"""Macaroon protocol shared request and result types.

Key design decisions:
* Request payloads are strict Pydantic **v2** models so that transport
  layers can validate JSON bodies with ``model_validate_json``.
* ``DischargeRequest.password`` is a ``SecretStr`` so credentials are never
  exposed through ``str()``, ``repr()`` or logging.
* Enums use *string* values so they serialise cleanly to JSON.
"""
from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CaveatKind(enum.StrEnum):
    """Whether a caveat is checked locally or delegated to a third party."""

    FIRST_PARTY = "first_party"
    THIRD_PARTY = "third_party"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class PermissionRequest(BaseModel):
    """Permissions a caller asks the Issuer to scope a root macaroon to.

    The compact JSON form of this model is embedded verbatim as a
    first-party caveat of the root macaroon.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    permissions: list[str] = Field(default_factory=list)

    def to_caveat(self) -> bytes:
        """Return the exact first-party caveat bytes for this request."""
        return self.model_dump_json().encode("utf-8")


class DischargeRequest(BaseModel):
    """Credentials plus the third-party caveat id the caller wants discharged.

    Verification of ``email`` / ``password`` is delegated to an
    :class:`~macaroon_protocol.core.interfaces.IdentityChecker`.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    email: str = Field(min_length=1)
    password: SecretStr
    caveat_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class Authorization(BaseModel):
    """Outcome of a successful verification.

    Carries the identity facts declared by discharge macaroons (for example
    the authenticated email) and the permissions the root macaroon was
    scoped to, for the caller's downstream use.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    location: str = ""
    email: str | None = None
    declared: dict[str, str] = Field(default_factory=dict)
    permissions: list[str] = Field(default_factory=list)
    discharge_count: int = 0
