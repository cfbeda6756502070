"""Macaroon protocol error-code hierarchy.

Every failure the protocol core can produce is represented as a concrete
exception class carrying a stable ``MAC-Exxx`` code.

Hierarchy
---------
::

    MacaroonError
    +-- InvalidInput          (MAC-E1xx)
    |   +-- MalformedToken
    |   +-- UnsupportedVersion
    +-- CryptoError           (MAC-E2xx)
    +-- DischargeError        (MAC-E3xx)
    |   +-- UnknownCaveat
    |   +-- InvalidCredentials
    +-- VerifyError           (MAC-E4xx)
        +-- SignatureMismatch
        +-- DischargeSignatureMismatch
        +-- CaveatNotSatisfied
        +-- DischargeNotFound
        +-- DischargeNotUsed
        +-- DischargeReused

None of these errors is transient.  Each one reflects either bad input or a
failed security check, so callers MUST NOT retry them.

Usage
-----
Raise concrete subclasses directly::

    raise DischargeNotFound(details={"caveat_id": cid})

Catch by category::

    try:
        verifier.verify(root, discharges)
    except VerifyError:
        # handles every rejection reason
        ...
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class MacaroonError(Exception):
    """Base exception for all macaroon protocol errors.

    Attributes
    ----------
    code : str
        Protocol error code, e.g. ``"MAC-E400"``.
    http_status : int
        Recommended HTTP status code for a transport layer surfacing this error.
    message : str
        Human-readable description (MUST NOT contain secrets or signatures).
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the caller.
    security_event : bool
        ``True`` when the failure indicates tampering or a wrong secret and
        should be recorded as a security event by the embedding service.
    """

    code: str = "MAC-E000"
    http_status: int = 500
    message: str = "Unknown macaroon protocol error"
    resolution: str = ""
    security_event: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error to a transport-neutral error object."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# MAC-E1xx  Invalid input
# ===================================================================

class InvalidInput(MacaroonError):
    """MAC-E100 -- Malformed construction arguments."""

    code = "MAC-E100"
    http_status = 400
    message = "Invalid input"
    resolution = "Fix the request; this error is not retryable."


class MalformedToken(InvalidInput):
    """MAC-E101 -- A serialized token could not be decoded."""

    code = "MAC-E101"
    message = "Serialized macaroon is malformed"
    resolution = "Present the token exactly as it was issued."


class UnsupportedVersion(InvalidInput):
    """MAC-E102 -- A serialized token uses an unknown format version."""

    code = "MAC-E102"
    message = "Unsupported macaroon serialization version"
    resolution = "Re-serialize the token with a supported format."


# ===================================================================
# MAC-E2xx  Cryptographic primitive failure
# ===================================================================

class CryptoError(MacaroonError):
    """MAC-E200 -- Signature or encryption primitive failure.

    Signals a configuration or library defect rather than bad input.
    """

    code = "MAC-E200"
    http_status = 500
    message = "Cryptographic operation failed"
    resolution = "Check the configured key material and the cryptography library."


# ===================================================================
# MAC-E3xx  Discharge errors
# ===================================================================

class DischargeError(MacaroonError):
    """MAC-E3xx -- The discharger refused to discharge a caveat."""

    code = "MAC-E3XX"
    http_status = 403
    message = "Discharge denied"


class UnknownCaveat(DischargeError):
    """MAC-E300 -- The caveat id cannot be resolved to a discharge root key."""

    code = "MAC-E300"
    http_status = 403
    message = "Caveat id cannot be resolved by this discharger"
    resolution = (
        "Request the discharge from the location named by the third-party "
        "caveat, passing its caveat id unmodified."
    )


class InvalidCredentials(DischargeError):
    """MAC-E301 -- The identity check rejected the presented credentials."""

    code = "MAC-E301"
    http_status = 401
    message = "Invalid credentials"
    resolution = "Provide valid credentials for the identity being proven."


# ===================================================================
# MAC-E4xx  Verification errors
# ===================================================================

class VerifyError(MacaroonError):
    """MAC-E4xx -- Umbrella for every reason verification rejects a request."""

    code = "MAC-E4XX"
    http_status = 403
    message = "Macaroon verification failed"


class SignatureMismatch(VerifyError):
    """MAC-E400 -- The root token signature does not match its caveat chain."""

    code = "MAC-E400"
    http_status = 401
    message = "Macaroon signature mismatch"
    resolution = "The token was tampered with or minted under a different secret."
    security_event = True


class DischargeSignatureMismatch(VerifyError):
    """MAC-E401 -- A discharge token is not correctly signed or bound."""

    code = "MAC-E401"
    http_status = 401
    message = "Discharge macaroon signature mismatch"
    resolution = (
        "Bind the discharge macaroon to the signature of the root macaroon "
        "being presented."
    )
    security_event = True


class CaveatNotSatisfied(VerifyError):
    """MAC-E402 -- A first-party caveat predicate did not hold."""

    code = "MAC-E402"
    http_status = 403
    message = "Caveat not satisfied"


class DischargeNotFound(VerifyError):
    """MAC-E403 -- No discharge token was presented for a third-party caveat."""

    code = "MAC-E403"
    http_status = 403
    message = "Discharge macaroon not found"
    resolution = "Obtain a discharge from the caveat's location and present it."


class DischargeNotUsed(VerifyError):
    """MAC-E404 -- A presented discharge token satisfies no caveat."""

    code = "MAC-E404"
    http_status = 403
    message = "Discharge macaroon was not used"
    resolution = "Present only the discharges required by the root macaroon."


class DischargeReused(VerifyError):
    """MAC-E405 -- A discharge token was needed by more than one caveat."""

    code = "MAC-E405"
    http_status = 403
    message = "Discharge macaroon was used more than once"
