from pydantic import BaseModel, Field
from typing import Optional

class SessionPayload(BaseModel):
    username: str
    exp: int # unix seconds

class SessionToken(BaseModel):
    username: str
    token: str
    maxAgeSec: int

class Credentials(BaseModel):
    username: str = Field(..., min_length=2, max_length=32)
    password: str = Field(..., min_length=1)

class UpdateUserRequest(BaseModel):
    newUsername: Optional[str] = Field(None, min_length=2, max_length=32)
    newPassword: Optional[str] = Field(None, min_length=1)
    newAvatar: Optional[str] = None
