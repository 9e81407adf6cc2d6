"""
SQLAlchemy ORM models for the Matchday team management system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from matchday.database.db import Base


class PlayerPosition(str, enum.Enum):
    """Playing position. ADMIN marks a non-playing administrator account."""

    GOALKEEPER = "GK"
    DEFENDER = "DEF"
    MIDFIELDER = "MID"
    FORWARD = "FWD"
    ADMIN = "ADMIN"


class MatchStatus(str, enum.Enum):
    """Match lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, enum.Enum):
    """A player's answer for a match."""

    IN = "in"
    OUT = "out"
    MAYBE = "maybe"


class NotificationType(str, enum.Enum):
    """Reminder thresholds before kickoff."""

    IMMINENT = "imminent"  # 30 minutes out
    ADVANCE = "advance"  # 24 hours out


class Player(Base):
    """Player accounts and profiles."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    position = Column(String, default=PlayerPosition.MIDFIELDER.value, nullable=False)
    jersey_number = Column(Integer, nullable=True, unique=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    attendance = relationship("MatchAttendance", back_populates="player")
    stats = relationship("PlayerStats", back_populates="player")

    __table_args__ = (
        Index("idx_players_name", "name"),
        Index("idx_players_is_admin", "is_admin"),
    )


class Match(Base):
    """Scheduled matches."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    match_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String, nullable=True)
    created_by = Column(
        Integer, ForeignKey("players.id"), nullable=True
    )  # Admin who scheduled the match
    status = Column(String, default=MatchStatus.SCHEDULED.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship("Player", foreign_keys=[created_by])
    attendance = relationship("MatchAttendance", back_populates="match")
    stats = relationship("PlayerStats", back_populates="match")
    notifications = relationship("Notification", back_populates="match")

    __table_args__ = (
        Index("idx_matches_date", "match_date"),
        Index("idx_matches_status", "status"),
    )


class MatchAttendance(Base):
    """One attendance mark per (match, player); rewritten on every answer."""

    __tablename__ = "match_attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    status = Column(String, default=AttendanceStatus.OUT.value, nullable=False)
    marked_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    match = relationship("Match", back_populates="attendance")
    player = relationship("Player", back_populates="attendance")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_attendance_match_player"),
        CheckConstraint("status IN ('in', 'out', 'maybe')", name="ck_match_attendance_status"),
        Index("idx_match_attendance_player", "player_id"),
        Index("idx_match_attendance_marked_at", "marked_at"),
    )


class PlayerStats(Base):
    """Per-match statistics recorded by an admin after the match."""

    __tablename__ = "player_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    goals = Column(Integer, default=0, nullable=False)
    assists = Column(Integer, default=0, nullable=False)
    yellow_cards = Column(Integer, default=0, nullable=False)
    red_cards = Column(Integer, default=0, nullable=False)
    minutes_played = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    player = relationship("Player", back_populates="stats")
    match = relationship("Match", back_populates="stats")

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_player_stats_player_match"),
        Index("idx_player_stats_match", "match_id"),
    )


class Notification(Base):
    """Marker that a reminder of a given type was already sent for a match."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    message = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    match = relationship("Match", back_populates="notifications")

    __table_args__ = (
        UniqueConstraint("match_id", "type", name="uq_notifications_match_type"),
    )


class AdminBootstrap(Base):
    """Single-row marker claimed by the self-provisioned first admin."""

    __tablename__ = "admin_bootstrap"

    id = Column(Integer, primary_key=True, autoincrement=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_admin_bootstrap_singleton"),
    )
