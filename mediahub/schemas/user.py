"""Pydantic schemas for users and external identities."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, EmailStr, ConfigDict

from mediahub.models.user import AccountTier


class ExternalProfile(BaseModel):
    """Identity verified by the external provider, trusted as-is."""

    external_id: str = Field(..., min_length=1, description="Provider subject identifier")
    email: EmailStr = Field(..., description="Primary email address")
    name: Optional[str] = Field(default=None, description="Display name")
    picture: Optional[str] = Field(default=None, description="Avatar URL")
    email_verified: bool = Field(default=False, description="Whether the provider verified the email")


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(default=None, description="Display name")
    picture: Optional[str] = Field(default=None, description="Avatar URL")
    tier: AccountTier = Field(..., description="Account tier")
    last_login_at: Optional[datetime] = Field(default=None, description="Most recent login")
    created_at: datetime = Field(..., description="Account creation timestamp")
