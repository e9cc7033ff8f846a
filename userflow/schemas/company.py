"""
Company Schemas.

Pydantic schemas for company API request/response validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CompanyCreate(BaseModel):
    """Schema for creating a new company."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Company name",
        examples=["Acme"],
    )
    description: str = Field(
        default="",
        max_length=10000,
        description="Company description",
        examples=["Makes anvils."],
    )


class CompanyResponse(BaseModel):
    """Schema for company in API responses."""

    id: str = Field(description="Company unique identifier")
    name: str = Field(description="Company name")
    description: str = Field(description="Company description")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)


class CompanyUpdate(CompanyCreate):
    """Replacement name and description; the id comes from the path."""
