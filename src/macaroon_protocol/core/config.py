"""Macaroon protocol role configuration.

Shared secrets are injected into the Issuer and Discharger at construction
time instead of living in module-level constants.  The discharge secret must
be provisioned identically to both services out of band; that is a
deployment precondition, not protocol logic.

Defaults for identifiers and locations match the demonstration deployment
so that a minimal configuration (just the secrets) is enough for
development.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretBytes, field_validator

DEFAULT_CONDITION = "is-authorized-or-whatever"
"""Condition the Issuer delegates and the Discharger proves by default."""


class IssuerConfig(BaseModel):
    """Configuration for the Issuer (and Verifier) role."""

    model_config = ConfigDict(strict=True, frozen=True)

    root_secret: SecretBytes = Field(
        description="Root key for every macaroon this issuer mints and verifies.",
    )
    discharge_secret: SecretBytes = Field(
        description=(
            "Secret shared with the Discharger, used to seal the discharge "
            "root key into the third-party caveat id."
        ),
    )
    root_identifier: str = Field(
        default="some id",
        min_length=1,
        description="Identifier of every root macaroon.",
    )
    root_location: str = Field(
        default="a location",
        description="Advisory location of every root macaroon.",
    )
    third_party_condition: str = Field(
        default=DEFAULT_CONDITION,
        min_length=1,
        description="Condition the Discharger must prove.",
    )
    third_party_location: str = Field(
        default="http://example.com",
        description="Where the client should request the discharge.",
    )

    @field_validator("root_secret", "discharge_secret")
    @classmethod
    def secret_not_empty(cls, value: SecretBytes) -> SecretBytes:
        if not value.get_secret_value():
            raise ValueError("secret must not be empty")
        return value


class DischargerConfig(BaseModel):
    """Configuration for the Discharger role."""

    model_config = ConfigDict(strict=True, frozen=True)

    discharge_secret: SecretBytes = Field(
        description="Secret shared with the Issuer.",
    )
    location: str = Field(
        default="remote",
        description="Advisory location of every discharge macaroon.",
    )
    conditions: frozenset[str] = Field(
        default=frozenset({DEFAULT_CONDITION}),
        description="Conditions this discharger is able to prove.",
    )

    @field_validator("discharge_secret")
    @classmethod
    def secret_not_empty(cls, value: SecretBytes) -> SecretBytes:
        if not value.get_secret_value():
            raise ValueError("secret must not be empty")
        return value
