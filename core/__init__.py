# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the framework-agnostic upload pipeline:
# - models/: Pydantic schemas for targets, files, readiness and snapshots
# - services/: validator, probe, provisioner, executor, record sync,
#   diagnostics and the uploader state machine
#
# Code in this package should NOT import from FastAPI routers or read
# settings. Everything it needs is passed into constructors, which keeps
# the logic testable against an in-memory backend.
# =============================================================================
