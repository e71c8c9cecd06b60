from pydantic import BaseModel, ConfigDict, EmailStr
from datetime import datetime
from typing import Optional
from devicewatch.models.user import UserRole


class UserSchema(BaseModel):
    id: str
    display_name: str
    login: str
    email: EmailStr
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(UserSchema):
    """Profile plus what the device watcher concluded for this request."""
    device_status: Optional[str] = None
    new_device: Optional[bool] = None
