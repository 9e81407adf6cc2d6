"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class RegisterRequest(BaseModel):
    """Request to register a player account."""

    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    position: Optional[str] = None
    jersey_number: Optional[int] = None


class RegisterAdminRequest(BaseModel):
    """Request to create the first admin account."""

    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    """Request to login with username and password."""

    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request to change the caller's password."""

    model_config = ConfigDict(populate_by_name=True)
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class UpdateProfileRequest(BaseModel):
    """Request to update a player's profile."""

    name: Optional[str] = None
    position: Optional[str] = None
    jersey_number: Optional[int] = None


class AttendanceRequest(BaseModel):
    """Request to mark attendance: "in", "out" or "maybe"."""

    status: Optional[str] = None


class CreateMatchRequest(BaseModel):
    """Request to schedule a match."""

    title: Optional[str] = None
    description: Optional[str] = None
    match_date: Optional[datetime] = None
    location: Optional[str] = None


class UpdateMatchRequest(BaseModel):
    """Request to update a match. Only the fields sent are changed."""

    title: Optional[str] = None
    description: Optional[str] = None
    match_date: Optional[datetime] = None
    location: Optional[str] = None
    status: Optional[str] = None


class SetAdminRequest(BaseModel):
    """Request to grant or revoke admin rights."""

    is_admin: bool


class MatchStatsRequest(BaseModel):
    """Statistics for one player in one match. Omitted numbers are stored as 0."""

    model_config = ConfigDict(populate_by_name=True)
    player_id: int = Field(alias="playerId")
    goals: Optional[int] = None
    assists: Optional[int] = None
    yellow_cards: Optional[int] = None
    red_cards: Optional[int] = None
    minutes_played: Optional[int] = None
