from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

# Request fields are optional so missing values come back as a 400 with a
# readable message instead of a schema error.

class SendVerificationIn(BaseModel):
    email: Optional[str] = None
    type: Optional[str] = None

class VerifyCodeIn(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None

class RegisterIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")

class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class ResetPasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")
    new_password: Optional[str] = Field(default=None, alias="newPassword")

class MessageOut(BaseModel):
    message: str

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    avatar_url: Optional[str] = None

class LoginOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    user: UserOut
    is_manager: bool = Field(alias="isManager")

class ManagerCheckOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_manager: bool = Field(alias="isManager")

class ProfileOut(BaseModel):
    id: int
    username: str
    email: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    post_count: int = 0
    total_likes: int = 0
    total_comments: int = 0

class ProfileUpdateIn(BaseModel):
    # All optional so the client can send only what changed
    username: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, max_length=500)
