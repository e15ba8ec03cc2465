# =============================================================================
# core/models/record.py - User Record Schema
# =============================================================================
# The slice of the users table the upload pipeline reads and writes.
# Column mapping (Supabase):
#   id -> id, user_id -> external_id, email -> email, avatar_url -> asset_url
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """A user profile row, identified by its external (auth) id."""

    id: str = Field(..., description="Primary key of the row")
    external_id: str = Field(..., description="External identifier (auth user id)")
    email: str | None = Field(default=None, description="Email address")
    asset_url: str | None = Field(default=None, description="Current avatar URL")
    updated_at: str | None = Field(default=None, description="Last modification time")

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "UserRecord":
        """Create UserRecord from a users table row."""
        return cls(
            id=str(row.get("id", "")),
            external_id=str(row.get("user_id", "")),
            email=row.get("email"),
            asset_url=row.get("avatar_url"),
            updated_at=row.get("updated_at"),
        )
