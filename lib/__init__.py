# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - backend.py: AssetBackend protocol and the typed BackendError
# - diagnostic_log.py: Bounded, exportable diagnostic event log
# - supabase_client.py: Supabase implementation of AssetBackend
# - utils.py: Shared utilities (clocks, filename-safe timestamps)
#
# supabase_client is not re-exported here: it reads settings on import, and
# the rest of lib must stay importable without Supabase credentials.
# =============================================================================

from lib.backend import AssetBackend, BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog
from lib.utils import sortable_timestamp, unix_millis, utc_now_iso

__all__ = [
    # Backend contract
    "AssetBackend",
    "BackendError",
    "BackendErrorCategory",
    # Diagnostics
    "DiagnosticLog",
    # Utils
    "sortable_timestamp",
    "unix_millis",
    "utc_now_iso",
]
