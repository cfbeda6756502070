#!/usr/bin/env python3
"""Macaroon protocol quickstart.

Walks through the full delegated-authorization flow:

1. Configure an Issuer and a Discharger that share a discharge secret.
2. Request a root macaroon scoped to ``["read", "write"]``.
3. Ask the Discharger to prove identity for the third-party caveat.
4. Bind the discharge to the root macaroon.
5. Ship both over the wire and verify them at the Issuer.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import logging
import secrets

from macaroon_protocol import (
    DischargeRequest,
    Discharger,
    DischargerConfig,
    InMemoryIdentityChecker,
    Issuer,
    IssuerConfig,
    MacaroonError,
    PermissionRequest,
    deserialize,
    deserialize_bundle,
    prepare_for_request,
    serialize_bundle,
)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # -- Step 1: Configure both services --------------------------------------
    discharge_secret = secrets.token_bytes(32)
    issuer = Issuer(
        IssuerConfig(root_secret=secrets.token_bytes(32), discharge_secret=discharge_secret)
    )
    discharger = Discharger(
        DischargerConfig(discharge_secret=discharge_secret),
        InMemoryIdentityChecker({"me@nope.com": "hunter2"}),
    )
    print("[1] Issuer and Discharger configured")

    # -- Step 2: Get a root macaroon ------------------------------------------
    serialized = issuer.get_root_macaroon_serialized(
        PermissionRequest(permissions=["read", "write"])
    )
    root = deserialize(serialized)
    print("[2] Root macaroon:")
    print("    " + root.inspect().replace("\n", "\n    "))

    # -- Step 3: Discharge the third-party caveat -----------------------------
    caveat = root.find_third_party_caveat(issuer.config.third_party_location)
    assert caveat is not None
    discharge = discharger.discharge_caveat(
        DischargeRequest(
            email="me@nope.com",
            password="hunter2",
            caveat_id=caveat.caveat_id_text(),
        )
    )
    print(f"[3] Discharge obtained from {discharge.location!r}")

    # -- Step 4: Bind and transport -------------------------------------------
    bundle = serialize_bundle(prepare_for_request(root, [discharge]))
    print(f"[4] Request bundle: {len(bundle)} bytes")

    # -- Step 5: Verify -------------------------------------------------------
    presented, *discharges = deserialize_bundle(bundle)
    try:
        auth = issuer.verify_request(presented, discharges, required=["read"])
    except MacaroonError as exc:
        print(f"[5] Denied: [{exc.code}] {exc.message}")
        return
    print(f"[5] Authorized {auth.email} with permissions {auth.permissions}")

    # -- Bonus: an unbound discharge is rejected ------------------------------
    try:
        issuer.verify_request(root, [discharge])
    except MacaroonError as exc:
        print(f"\nUnbound discharge rejected: [{exc.code}] {exc.message}")


if __name__ == "__main__":
    main()
