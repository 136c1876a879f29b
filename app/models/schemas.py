"""
Pydantic models for the NautManager tracking API.

Only the fields the watcher reads or writes are declared; anything else the
API returns is kept as extra data.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# =====================================================
# Project Models
# =====================================================

class ProjectCreate(BaseModel):
    """Payload for POST /projects."""
    name: str = Field(min_length=1)
    local_path: str
    concept: Optional[str] = None


class ProjectRecord(BaseModel):
    """Project record returned by the tracking API."""
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    name: Optional[str] = None
    local_path: Optional[str] = None
