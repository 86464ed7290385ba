#!/usr/bin/env python3
"""
Access Ledger - Basic Flow Demo

Demonstrates the complete flow of:
1. Creating a classified resource
2. Requesting access and approving the request
3. Verifying access below and above the sensitivity ceiling
4. Revoking the permission
5. Checking the signed audit journal

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from access_ledger.audit import AuditJournal
from access_ledger.config import configure_logging, load_settings
from access_ledger.service import AccessControlLedger
from access_ledger.signatures import generate_keypair


def main():
    settings = load_settings()
    configure_logging(settings)

    print("=" * 60)
    print("Access Ledger - Basic Flow Demo")
    print("=" * 60)
    print()

    alice = "principal-alice"
    bob = "principal-bob"
    carol = "principal-carol"

    private_key, _ = generate_keypair()
    journal = AuditJournal(":memory:", signer_id="demo-auditor", private_key=private_key)

    with AccessControlLedger(settings.database_path, observers=[journal]) as ledger:
        # Step 1
        print("[1] Alice creates a resource with sensitivity level 100...")
        resource_id = ledger.create_resource(
            "Quarterly payroll", "Payroll export for Q1", 100, alice
        )
        print(f"    Resource id: {resource_id}")
        print()

        # Step 2
        print("[2] Bob requests level 80; Alice approves...")
        request_id = ledger.submit_request(resource_id, 80, bob)
        ledger.process_request(request_id, True, alice)
        permission_id = ledger.permissions_of(bob)[0]
        permission = ledger.get_permission(permission_id)
        print(f"    Permission {permission_id} expires {permission.expires_at.isoformat()}")
        print()

        # Step 3
        print("[3] Verifying access...")
        for caller, level in [(bob, 80), (bob, 150), (carol, 1), (alice, 255)]:
            granted, decision = ledger.evaluate_access(resource_id, level, caller)
            status = "GRANTED" if granted else "DENIED"
            print(f"    {caller} at level {level}: {status} ({decision.value})")
        print()

        # Step 4
        print("[4] Alice revokes Bob's permission...")
        ledger.revoke_permission(permission_id, alice)
        granted = ledger.verify_access(resource_id, 80, bob)
        print(f"    {bob} at level 80: {'GRANTED' if granted else 'DENIED'}")
        print()

        # Step 5
        print("[5] Audit journal...")
        for entry in journal.entries():
            print(f"    #{entry.sequence} {entry.event_type} {entry.payload}")
        is_valid, _, message = journal.verify_integrity()
        print(f"    Integrity: {'OK' if is_valid else message}")
        print(f"    Counters: {ledger.counters()}")

    journal.close()


if __name__ == "__main__":
    main()
