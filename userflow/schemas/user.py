"""
User Schemas.

The user message exchanged with the user RPC service, and the work item
carried on the user-creation subject. Both share one JSON shape:

    {"id": "", "name": "...", "description": "...",
     "created_at": null, "updated_at": null}

An empty id asks the callee to issue one.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserMessage(BaseModel):
    """User as sent over RPC and in user-creation work items."""

    id: str = Field(default="", description="User id; empty when the callee should issue one")
    name: str = Field(default="", max_length=255, description="User name")
    description: str = Field(default="", description="Free-form description")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class UserCreate(BaseModel):
    """Body of the gateway's user creation endpoints."""

    id: str = Field(default="", examples=[""])
    name: str = Field(..., min_length=1, max_length=255, examples=["Alice"])
    description: str = Field(default="", examples=["eng"])
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserUpdate(BaseModel):
    """Body of the gateway's user update endpoint."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="")
