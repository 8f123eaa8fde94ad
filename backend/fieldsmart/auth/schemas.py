import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from fieldsmart.auth.models import Role

Password = Annotated[str, Field(min_length=8, max_length=128)]
FullName = Annotated[str, Field(min_length=1, max_length=255)]


class Credentials(BaseModel):
    email: EmailStr
    password: str


class Registration(BaseModel):
    """Sign-up of a new company; the registering person becomes its admin."""

    company_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: Password
    full_name: FullName


class UserInvite(BaseModel):
    email: EmailStr
    password: Password
    full_name: FullName
    role: Role = Role.TECHNICIAN


class ProfileUpdate(BaseModel):
    full_name: FullName | None = None
    password: Password | None = None


class RoleChange(BaseModel):
    role: Role


class RefreshRequest(BaseModel):
    refresh_token: str


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    full_name: str
    role: Role
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class RegistrationOut(BaseModel):
    user: UserOut
    tenant: TenantOut


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
