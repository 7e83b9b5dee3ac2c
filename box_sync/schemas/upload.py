"""
Pydantic models for the chunked upload protocol.
"""

from pydantic import BaseModel, Field


class UploadSession(BaseModel):
    """Server-side session coordinating a multi-part upload."""

    session_id: str
    upload_endpoint: str = Field(..., description="URL receiving part PUTs.")
    commit_endpoint: str = Field(..., description="URL committing the session.")
    part_size: int = Field(..., description="Server-assigned part size in bytes.")
    total_size: int


class UploadPart(BaseModel):
    """Acknowledged part, in the shape the commit endpoint expects."""

    part_id: str
    offset: int = Field(..., ge=0)
    size: int = Field(..., gt=0)
    sha1: str = Field(..., description="Hex SHA-1 digest of the part bytes, as Box reports it.")


__all__ = ["UploadPart", "UploadSession"]
