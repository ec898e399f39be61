"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class MessageResponse(BaseModel):
    message: str


# ──────────────────────────── Users ───────────────────────────────────────

class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    followers: list[str]
    following: list[str]
    created_at: datetime
    updated_at: datetime


class AuthResponse(BaseModel):
    user: UserResponse
    message: str


class FollowResponse(BaseModel):
    message: str
    # True if the caller follows the target after the toggle
    following: bool


# ──────────────────────────── Pins ────────────────────────────────────────

class ImageResponse(BaseModel):
    id: str
    url: Optional[str]   # pre-signed MinIO URL


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: str
    user: str
    name: str
    comment: str
    created_at: datetime


class PinUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    pin: Optional[str] = Field(None, min_length=1)


class PinResponse(BaseModel):
    id: str
    title: str
    pin: str
    owner: str
    image: ImageResponse
    comments: list[CommentResponse]
    created_at: datetime
    updated_at: datetime


class PinMutationResponse(BaseModel):
    message: str
    pin: PinResponse
