"""Schemas related to user profiles."""

from datetime import datetime

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, constr


class PublicUser(BaseModel):
    """Minimal public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    avatar: str | None = None


class UserRead(PublicUser):
    """Detailed representation of an account, without credentials."""

    email: str
    phone: str
    email_verified: bool
    phone_verified: bool
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class UserProfileUpdate(BaseModel):
    """Payload for updating the current profile; at least one field."""

    name: constr(strip_whitespace=True, min_length=2, max_length=100) | None = None
    phone: constr(pattern=r"^\+?[1-9]\d{7,14}$") | None = None
    avatar: AnyHttpUrl | None = Field(default=None, description="Avatar URL")

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        if "avatar" in data and data["avatar"] is not None:
            data["avatar"] = str(data["avatar"])
        return data


class UserStats(BaseModel):
    total_messages: int = Field(..., alias="totalMessages")
    total_calls: int = Field(..., alias="totalCalls")
    last_activity: datetime | None = Field(default=None, alias="lastActivity")

    model_config = ConfigDict(populate_by_name=True)
