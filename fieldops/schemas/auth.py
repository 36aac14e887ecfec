from pydantic import BaseModel, Field
from typing import Optional, List


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_driver: bool = False
    customer_id: Optional[str] = None
    roles: List[str] = []
    permissions: List[str] = []


class UserCreate(BaseModel):
    username: str
    email: str
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_driver: bool = False
    customer_id: Optional[str] = None
    roles: List[str] = []
