from typing import Optional
import uuid
from pydantic import BaseModel, EmailStr
from backoffice.models.enums import StaffRole

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None
    type: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class StaffResponse(BaseModel):
    id: uuid.UUID
    email: EmailStr
    name: str
    role: StaffRole
    gym_id: Optional[uuid.UUID] = None
    company_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True
