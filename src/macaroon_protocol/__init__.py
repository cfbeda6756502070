"""Macaroon Protocol -- delegated authorization with third-party caveats.

A client asks the **Issuer** for a root macaroon scoped to a permission
request.  The root macaroon carries a third-party caveat that only the
**Discharger** can satisfy, by checking the client's credentials and
minting a discharge macaroon.  The client **binds** the discharge to the
root signature and presents both to the **Verifier**, which re-derives
every signature from the shared root secret.

Modules
-------
- :mod:`macaroon_protocol.token` -- immutable macaroon and caveat values.
- :mod:`macaroon_protocol.chain` -- caveat addition and signature chains.
- :mod:`macaroon_protocol.caveats` -- typed predicates and the predicate hook.
- :mod:`macaroon_protocol.ticket` -- sealed third-party caveat ids.
- :mod:`macaroon_protocol.issuer` / :mod:`macaroon_protocol.discharger` --
  the two minting roles.
- :mod:`macaroon_protocol.binding` -- request binding.
- :mod:`macaroon_protocol.verifier` -- verification.
- :mod:`macaroon_protocol.wire` -- serialization.
"""
from __future__ import annotations

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Protocol core -- tokens, caveats, binding, errors, config, types
# ---------------------------------------------------------------------------
from macaroon_protocol.binding import bind, bind_for_request, prepare_for_request
from macaroon_protocol.caveats import (
    DeclaredPredicate,
    PermissionsPredicate,
    PredicateChecker,
    RawPredicate,
    allow_all,
    default_checker,
    parse_predicate,
    require_permissions,
)
from macaroon_protocol.chain import add_first_party_caveat, add_third_party_caveat
from macaroon_protocol.core.config import DischargerConfig, IssuerConfig
from macaroon_protocol.core.errors import (
    CaveatNotSatisfied,
    CryptoError,
    DischargeError,
    DischargeNotFound,
    DischargeNotUsed,
    DischargeReused,
    DischargeSignatureMismatch,
    InvalidCredentials,
    InvalidInput,
    MacaroonError,
    MalformedToken,
    SignatureMismatch,
    UnknownCaveat,
    UnsupportedVersion,
    VerifyError,
)
from macaroon_protocol.core.interfaces import IdentityChecker, InMemoryIdentityChecker
from macaroon_protocol.core.types import (
    Authorization,
    CaveatKind,
    DischargeRequest,
    PermissionRequest,
)

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
from macaroon_protocol.discharger import Discharger
from macaroon_protocol.issuer import Issuer
from macaroon_protocol.token import Caveat, Macaroon
from macaroon_protocol.verifier import Verifier, verify
from macaroon_protocol.wire import (
    SerializationFormat,
    deserialize,
    deserialize_bundle,
    serialize,
    serialize_bundle,
)

__all__ = [
    "Authorization",
    "Caveat",
    "CaveatKind",
    "CaveatNotSatisfied",
    "CryptoError",
    "DeclaredPredicate",
    "DischargeError",
    "DischargeNotFound",
    "DischargeNotUsed",
    "DischargeRequest",
    "DischargeReused",
    "DischargeSignatureMismatch",
    "Discharger",
    "DischargerConfig",
    "IdentityChecker",
    "InMemoryIdentityChecker",
    "InvalidCredentials",
    "InvalidInput",
    "Issuer",
    "IssuerConfig",
    "Macaroon",
    "MacaroonError",
    "MalformedToken",
    "PermissionRequest",
    "PermissionsPredicate",
    "PredicateChecker",
    "RawPredicate",
    "SerializationFormat",
    "SignatureMismatch",
    "UnknownCaveat",
    "UnsupportedVersion",
    "Verifier",
    "VerifyError",
    "__version__",
    "add_first_party_caveat",
    "add_third_party_caveat",
    "allow_all",
    "bind",
    "bind_for_request",
    "default_checker",
    "deserialize",
    "deserialize_bundle",
    "parse_predicate",
    "prepare_for_request",
    "require_permissions",
    "serialize",
    "serialize_bundle",
    "verify",
]
