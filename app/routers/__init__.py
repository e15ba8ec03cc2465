# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints (liveness, storage readiness)
# - uploaders.py: Image uploader commands (probe, auto-fix, select, confirm)
# - diagnostics.py: Diagnostic log and comprehensive check endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import uploaders
from . import diagnostics

__all__ = [
    "health",
    "uploaders",
    "diagnostics",
]
