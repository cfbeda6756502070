"""Macaroon protocol collaborator interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
the external services the protocol core calls, plus lightweight in-memory
implementations suitable for testing and local development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

The protocol core is synchronous, so these interfaces are too.  A service
whose identity backend is remote should resolve credentials before calling
into the core, or wrap a blocking client behind this interface.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Protocol, runtime_checkable

from pydantic import SecretStr

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class IdentityChecker(Protocol):
    """Backend that verifies a user's credentials for the Discharger.

    The Discharger trusts the result; it never inspects passwords itself.
    """

    def check(self, email: str, password: SecretStr) -> bool:
        """Return ``True`` if *password* is valid for *email*."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryIdentityChecker:
    """In-memory credential table for testing and development.

    Only SHA-256 digests of passwords are kept.  This implementation is
    NOT suitable for production use.
    """

    def __init__(self, credentials: dict[str, str] | None = None) -> None:
        self._digests: dict[str, bytes] = {}
        for email, password in (credentials or {}).items():
            self.add(email, password)

    # -- mutation helpers (not part of the Protocol) --------------------

    def add(self, email: str, password: str) -> None:
        """Register *email* with *password* (test helper)."""
        self._digests[email] = _digest(password)

    def remove(self, email: str) -> None:
        """Forget *email* (test helper)."""
        self._digests.pop(email, None)

    # -- Protocol implementation ---------------------------------------

    def check(self, email: str, password: SecretStr) -> bool:
        """Return ``True`` if *password* matches the stored digest."""
        expected = self._digests.get(email)
        if expected is None:
            return False
        return hmac.compare_digest(expected, _digest(password.get_secret_value()))


def _digest(password: str) -> bytes:
    return hashlib.sha256(password.encode("utf-8")).digest()
