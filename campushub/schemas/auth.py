from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
import uuid


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1)
    institution_id: Optional[str] = None  # VTU number for students
    department: Optional[str] = None

    @field_validator("institution_id")
    @classmethod
    def _upper_institution_id(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class LoginRequest(BaseModel):
    identifier: str  # email or institution id
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    full_name: str
    institution_id: Optional[str]
    department: Optional[str]
    roles: List[str] = []


class Actor(BaseModel):
    """The authenticated user as the domain services see it."""

    id: uuid.UUID
    email: str
    name: str
    institution_id: Optional[str] = None
    department: Optional[str] = None
    roles: List[str] = []

    def has_role(self, *names: str) -> bool:
        return any(r in self.roles for r in names)
