# =============================================================================
# core/models/upload.py - Upload Target, Candidate File and Stored Asset
# =============================================================================
# These models describe one image upload attempt:
# - TargetKind / UploadTarget: who the image belongs to (user, contact, company)
# - BucketSpec: the storage bucket each kind writes into
# - CandidateFile: bytes the user selected, pending validation
# - StoredAsset: the durable result of a successful upload
#
# Flow:
#   UploadTarget + CandidateFile -> validate -> upload -> StoredAsset
# =============================================================================

import base64
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# Accepted image types, shared by validation and bucket provisioning
ALLOWED_IMAGE_TYPES: tuple[str, ...] = (
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
)

# 5 MiB, the default validation limit and the bucket object size limit
DEFAULT_MAX_SIZE_BYTES = 5 * 1024 * 1024


class TargetKind(str, Enum):
    """
    What kind of record the image is attached to.

    - user: profile avatar, also written back into the users table
    - contact: contact photo, the caller stores the URL in its form
    - company: company logo, the caller stores the URL in its form
    """
    USER = "user"
    CONTACT = "contact"
    COMPANY = "company"


class BucketSpec(BaseModel):
    """
    Declaration of one required storage bucket.

    Buckets are provisioned public-read, capped at `file_size_limit` bytes and
    restricted to `allowed_mime_types`.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Bucket id/name in object storage")
    name: str = Field(..., description="Display name")
    kind: TargetKind = Field(..., description="Target kind stored in this bucket")
    path_prefix: str = Field(..., description="File name prefix for stored objects")
    public: bool = Field(default=True, description="Public-read bucket")
    file_size_limit: int = Field(
        default=DEFAULT_MAX_SIZE_BYTES,
        gt=0,
        description="Maximum object size in bytes"
    )
    allowed_mime_types: tuple[str, ...] = Field(
        default=ALLOWED_IMAGE_TYPES,
        description="MIME types the bucket accepts"
    )


# One bucket per target kind, in probe/provision order
REQUIRED_BUCKETS: tuple[BucketSpec, ...] = (
    BucketSpec(id="user-avatars", name="User Avatars", kind=TargetKind.USER, path_prefix="profile"),
    BucketSpec(id="contact-photos", name="Contact Photos", kind=TargetKind.CONTACT, path_prefix="photo"),
    BucketSpec(id="company-logos", name="Company Logos", kind=TargetKind.COMPANY, path_prefix="logo"),
)


def bucket_for(kind: TargetKind, buckets: tuple[BucketSpec, ...] = REQUIRED_BUCKETS) -> BucketSpec:
    """Return the bucket declaration used for a target kind."""
    for bucket in buckets:
        if bucket.kind == kind:
            return bucket
    raise KeyError(f"No bucket declared for target kind: {kind}")


class UploadTarget(BaseModel):
    """
    The logical owner of an uploaded image.

    Immutable for the duration of an upload attempt. `entity_id` may be absent
    while the owning record has not been saved yet; uploads are refused until
    it is set.

    Example:
        {"kind": "company", "entity_id": "c1"}
    """

    model_config = ConfigDict(frozen=True)

    kind: TargetKind = Field(..., description="user, contact or company")

    # External identifier of the owning record (user_id for users)
    entity_id: str | None = Field(
        default=None,
        description="External identifier of the owning record"
    )


class CandidateFile(BaseModel):
    """
    An image selected by the user and not uploaded yet.

    `size` is the declared byte size; it normally equals len(content) but the
    validator trusts the declaration, as browsers do.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Original filename")
    content_type: str = Field(..., description="Declared MIME type")
    size: int = Field(..., ge=0, description="Declared size in bytes")
    content: bytes = Field(default=b"", repr=False, description="File bytes")

    @property
    def extension(self) -> str:
        """Lowercased text after the last dot (whole name if there is none)."""
        return self.name.rsplit(".", 1)[-1].lower()

    @property
    def preview_url(self) -> str:
        """Inline data URL used as a transient preview."""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"

    def summary(self) -> dict[str, object]:
        """Metadata safe to log (no bytes)."""
        return {"name": self.name, "type": self.content_type, "size": self.size}


class StoredAsset(BaseModel):
    """
    A successfully uploaded image.

    Re-uploading for the same target creates a new path; older objects are
    left in place.
    """

    bucket: str = Field(..., description="Bucket the object was written to")
    path: str = Field(..., description="{entity_id}/{prefix}-{millis}.{ext}")
    public_url: str = Field(..., description="Publicly resolvable URL")

    # None when the reachability check was skipped or could not run
    publicly_reachable: bool | None = Field(
        default=None,
        description="Result of the HEAD check on public_url"
    )
