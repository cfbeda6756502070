"""Typed first-party caveat predicates and the verifier's predicate hook.

First-party caveat ids are opaque bytes on the wire.  This module parses
them into a tagged union of recognised predicate kinds so that callers never
split strings by hand:

* :class:`PermissionsPredicate` -- ``{"permissions":["read","write"]}``, the
  serialized permission request the Issuer embeds in every root macaroon.
* :class:`DeclaredPredicate` -- ``key=value`` facts, e.g. the
  ``email=me@nope.com`` caveat a Discharger adds after authenticating a user.
* :class:`RawPredicate` -- anything else, kept verbatim.

The exact wire text is produced only by :func:`encode_predicate`; parsing a
canonical encoding and re-encoding it yields the same bytes.

:class:`PredicateChecker` is the injectable predicate hook handed to the
Verifier.  It dispatches each first-party caveat to a handler registered for
its kind and rejects anything it does not recognise.
"""
from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from macaroon_protocol.core.types import PermissionRequest

# ---------------------------------------------------------------------------
# Predicate models
# ---------------------------------------------------------------------------

_DECLARED_KEY = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")


class PermissionsPredicate(BaseModel):
    """The permission request a root macaroon is scoped to."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["permissions"] = "permissions"
    permissions: list[str] = Field(default_factory=list)

    def encode(self) -> bytes:
        return PermissionRequest(permissions=list(self.permissions)).to_caveat()


class DeclaredPredicate(BaseModel):
    """A ``key=value`` fact declared by the party that added the caveat."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["declared"] = "declared"
    key: str = Field(pattern=_DECLARED_KEY.pattern)
    value: str

    def encode(self) -> bytes:
        return f"{self.key}={self.value}".encode()


class RawPredicate(BaseModel):
    """Any caveat id that is not one of the recognised kinds."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    data: bytes

    def encode(self) -> bytes:
        return self.data


Predicate = Annotated[
    PermissionsPredicate | DeclaredPredicate | RawPredicate,
    Field(discriminator="kind"),
]


def email_predicate(email: str) -> DeclaredPredicate:
    """Return the identity caveat a Discharger adds for *email*."""
    return DeclaredPredicate(key="email", value=email)


# ---------------------------------------------------------------------------
# Wire boundary
# ---------------------------------------------------------------------------

def encode_predicate(predicate: Predicate) -> bytes:
    """Return the exact caveat-id bytes for *predicate*."""
    return predicate.encode()


def parse_predicate(caveat_id: bytes) -> Predicate:
    """Parse first-party caveat bytes into a typed predicate.

    Never raises: input that does not round-trip exactly through one of the
    recognised kinds is returned as a :class:`RawPredicate`.
    """
    try:
        text = caveat_id.decode("utf-8")
    except UnicodeDecodeError:
        return RawPredicate(data=caveat_id)

    if text.startswith("{"):
        try:
            request = PermissionRequest.model_validate_json(text)
        except ValidationError:
            return RawPredicate(data=caveat_id)
        predicate: Predicate = PermissionsPredicate(permissions=request.permissions)
    else:
        key, sep, value = text.partition("=")
        if not sep or not _DECLARED_KEY.fullmatch(key):
            return RawPredicate(data=caveat_id)
        predicate = DeclaredPredicate(key=key, value=value)

    if predicate.encode() != caveat_id:
        return RawPredicate(data=caveat_id)
    return predicate


def declared_values(caveat_ids: Iterable[bytes]) -> dict[str, str]:
    """Collect every ``key=value`` declaration from *caveat_ids*.

    When a key is declared more than once the first declaration wins.
    """
    declared: dict[str, str] = {}
    for caveat_id in caveat_ids:
        predicate = parse_predicate(caveat_id)
        if isinstance(predicate, DeclaredPredicate):
            declared.setdefault(predicate.key, predicate.value)
    return declared


# ---------------------------------------------------------------------------
# Predicate hook
# ---------------------------------------------------------------------------

CaveatPredicate = Callable[[bytes], bool | None]
"""Signature of the hook the Verifier calls for every first-party caveat.

Returning ``False`` or raising rejects the caveat; any other return value
accepts it.
"""


def allow_all(caveat_id: bytes) -> bool:
    """Accept every first-party caveat."""
    return True


def require_permissions(*required: str) -> Callable[[list[str]], bool]:
    """Build a permissions handler accepting grants that cover *required*."""
    needed = frozenset(required)

    def check(granted: list[str]) -> bool:
        return needed.issubset(granted)

    return check


class PredicateChecker:
    """Dispatching predicate hook for the Verifier.

    Parameters
    ----------
    allow_unknown:
        Accept raw predicates and undeclared keys that have no handler.
        Defaults to ``False`` (fail closed).

    Examples
    --------
    ::

        checker = (
            PredicateChecker()
            .register_permissions(require_permissions("read"))
            .register_declared("email")
        )
        checker(b"email=me@nope.com")  # True
        checker(b"time-before 2030")   # False
    """

    def __init__(self, *, allow_unknown: bool = False) -> None:
        self._allow_unknown = allow_unknown
        self._permissions: Callable[[list[str]], bool] | None = None
        self._declared: dict[str, Callable[[str], bool] | None] = {}
        self._raw: set[bytes] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_permissions(self, check: Callable[[list[str]], bool]) -> PredicateChecker:
        """Handle permission-request caveats with *check*."""
        self._permissions = check
        return self

    def register_declared(
        self, key: str, check: Callable[[str], bool] | None = None
    ) -> PredicateChecker:
        """Handle ``key=value`` caveats; ``check=None`` accepts any value."""
        if not _DECLARED_KEY.fullmatch(key):
            raise ValueError(f"Invalid declared key: {key!r}")
        self._declared[key] = check
        return self

    def register_raw(self, condition: bytes | str) -> PredicateChecker:
        """Accept the exact caveat id *condition*."""
        self._raw.add(condition.encode() if isinstance(condition, str) else condition)
        return self

    # ------------------------------------------------------------------
    # Hook
    # ------------------------------------------------------------------

    def __call__(self, caveat_id: bytes) -> bool:
        predicate = parse_predicate(caveat_id)

        if isinstance(predicate, PermissionsPredicate):
            if self._permissions is None:
                return self._allow_unknown
            return bool(self._permissions(list(predicate.permissions)))

        if isinstance(predicate, DeclaredPredicate):
            if predicate.key not in self._declared:
                return self._allow_unknown
            check = self._declared[predicate.key]
            return True if check is None else bool(check(predicate.value))

        return caveat_id in self._raw or self._allow_unknown


def default_checker(required: Iterable[str] = ()) -> PredicateChecker:
    """Checker for macaroons minted by :class:`~macaroon_protocol.issuer.Issuer`.

    Accepts the permission-request caveat when it grants every permission
    in *required*, and any ``email=`` identity declaration.
    """
    return (
        PredicateChecker()
        .register_permissions(require_permissions(*required))
        .register_declared("email")
    )


def describe(caveat_id: bytes) -> str:
    """Return a short log-safe description of a caveat id."""
    predicate = parse_predicate(caveat_id)
    if isinstance(predicate, RawPredicate):
        return f"raw({len(predicate.data)} bytes)"
    return json.dumps(predicate.model_dump(exclude={"kind"}), sort_keys=True)
