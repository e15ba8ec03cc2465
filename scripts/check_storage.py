#!/usr/bin/env python3
# =============================================================================
# scripts/check_storage.py - Storage Readiness Check
# =============================================================================
# Runs the storage readiness probe against the configured Supabase project
# and prints the diagnostic events. With --fix, missing buckets are created
# and the probe is run again.
#
# Usage:
#   poetry run python scripts/check_storage.py
#   poetry run python scripts/check_storage.py --fix
#   poetry run python scripts/check_storage.py --user-id <auth user id>
#
# Exit code: 0 when storage is ready, 1 otherwise.
# =============================================================================

import argparse
import asyncio
import json
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from app.config import settings
from core.services import DiagnosticsService, StorageProvisioner, StorageReadinessProbe
from lib.diagnostic_log import DiagnosticLog
from lib.supabase_client import SupabaseAssetBackend


def print_events(log: DiagnosticLog) -> None:
    print(f"\n--- DIAGNOSTIC EVENTS ({len(log)}) ---")
    for event in log.list_events():
        line = f"{event.timestamp} [{event.context}] {event.message}"
        if event.data:
            line += f" {json.dumps(event.data, default=str)}"
        print(line)


async def run(fix: bool, user_id: str | None) -> bool:
    backend = SupabaseAssetBackend(users_table=settings.USERS_TABLE)
    log = DiagnosticLog(capacity=settings.DIAGNOSTIC_LOG_CAPACITY)
    probe = StorageReadinessProbe(backend, log)

    print(f"Checking storage at {settings.SUPABASE_URL}")
    result = await probe.probe()

    if not result.ready and fix:
        print("\n--- PROVISIONING ---")
        provision = await StorageProvisioner(backend, log).provision()
        print(f"Created: {provision.created or '-'}")
        print(f"Already existed: {provision.already_existed or '-'}")
        for bucket, error in provision.failed.items():
            print(f"❌ {bucket}: {error}")
        result = await probe.probe()

    if user_id:
        check = await DiagnosticsService(backend, log).run_comprehensive_check(user_id)
        print("\n--- COMPREHENSIVE CHECK ---")
        for step in check.steps:
            icon = "⏭️" if step.skipped else ("✅" if step.success else "❌")
            print(f"{icon} {step.name}" + (f": {step.error}" if step.error else ""))

    print_events(log)

    print("\n" + "=" * 60)
    if result.ready:
        print("✅ Storage is ready")
        if result.warning:
            print(f"⚠️ {result.warning}")
    else:
        print(f"❌ {result.error}")
        if result.missing_buckets:
            print(f"   Missing: {', '.join(result.missing_buckets)}")
    return result.ready


def main():
    parser = argparse.ArgumentParser(description="Check Supabase storage readiness for image uploads")
    parser.add_argument("--fix", action="store_true", help="create missing buckets, then re-check")
    parser.add_argument("--user-id", default=None, help="also check read/update of this user record")
    args = parser.parse_args()

    ready = asyncio.run(run(args.fix, args.user_id))
    sys.exit(0 if ready else 1)


if __name__ == "__main__":
    main()
