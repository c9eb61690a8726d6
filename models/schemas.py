# models/schemas.py
from pydantic import BaseModel, EmailStr
from typing import Optional, List

class UserCreate(BaseModel):
    """For account creation"""
    username: str
    displayName: str
    email: EmailStr
    password: str

class UserLogin(BaseModel):
    username: str
    password: str

class UserUpdate(BaseModel):
    """For updating the logged in user"""
    displayName: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    username: str
    displayName: str
    email: str
    createdAt: Optional[str] = None
    lastLoginAt: Optional[str] = None

class UserLoginResponse(BaseModel):
    success: bool
    user: Optional[UserResponse] = None
    message: Optional[str] = None
    error: Optional[str] = None

class UserListResponse(BaseModel):
    success: bool
    users: List[UserResponse]
    currentUserId: Optional[str] = None
