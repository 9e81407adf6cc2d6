"""
Match reminder scheduler: sends the 30-minute and 24-hour kickoff reminders.

Background worker that wakes once a minute. For every match entering one of
the reminder windows it stores a notification record and pushes a
"match-notification" event to all connected clients. A reminder is sent at
most once per (match, type); the unique constraint on the notifications table
decides which tick wins.
"""

import asyncio
import logging
import os
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database import db
from matchday.database.models import Match, MatchStatus, Notification, NotificationType
from matchday.services.match_service import get_attendance_counts, match_to_dict
from matchday.services.websocket_manager import broadcast_event, get_websocket_manager
from matchday.utils.constants import (
    ADVANCE_REMINDER_HOURS,
    ADVANCE_REMINDER_WINDOW_HOURS,
    IMMINENT_REMINDER_MINUTES,
)
from matchday.utils.datetime_utils import ensure_utc, format_kickoff_time, isoformat_utc, utcnow

logger = logging.getLogger(__name__)

# How often the worker checks for due reminders (seconds)
POLL_INTERVAL_SECONDS = int(os.getenv("MATCH_REMINDER_INTERVAL_SECONDS", "60"))


def reminder_window(notification_type: NotificationType, now: datetime):
    """
    Kickoff range (inclusive) in which a match is due for a reminder type.
    """
    if notification_type == NotificationType.IMMINENT:
        return now, now + timedelta(minutes=IMMINENT_REMINDER_MINUTES)
    end = now + timedelta(hours=ADVANCE_REMINDER_HOURS)
    return end - timedelta(hours=ADVANCE_REMINDER_WINDOW_HOURS), end


def compose_message(
    notification_type: NotificationType, title: str, match_date: datetime, counts: Dict[str, int]
) -> str:
    if notification_type == NotificationType.IMMINENT:
        return (
            f'Match "{title}" starts in {IMMINENT_REMINDER_MINUTES} minutes! '
            f"Status: {counts['in']} in, {counts['out']} out"
        )
    return (
        f'Reminder: match "{title}" is tomorrow at {format_kickoff_time(match_date)} UTC. '
        f"Please mark your attendance! Currently {counts['in']} players confirmed."
    )


class NotificationScheduler:
    """Background service that sends kickoff reminders."""

    def __init__(self, poll_interval: int = POLL_INTERVAL_SECONDS):
        self.poll_interval = poll_interval
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background reminder worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info(f"Match reminder worker started (interval {self.poll_interval}s)")

    def stop(self) -> None:
        """Stop the background reminder worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Match reminder worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: send due reminders, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in match reminder worker: {e}", exc_info=True)

            try:
                await get_websocket_manager().cleanup_stale_connections()
            except Exception as e:
                logger.warning(f"Error cleaning up WebSocket connections: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass

    async def run_once(self, now: Optional[datetime] = None) -> List[Dict]:
        """
        Run a single reminder tick.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            The notification records created during this tick
        """
        now = ensure_utc(now) if now is not None else utcnow()
        created = []
        async with db.AsyncSessionLocal() as session:
            for notification_type in (NotificationType.IMMINENT, NotificationType.ADVANCE):
                window_start, window_end = reminder_window(notification_type, now)
                due = await self._due_matches(session, notification_type, window_start, window_end)
                if due:
                    logger.info(f"Found {len(due)} match(es) due for {notification_type.value} reminder")

                for match, kickoff in due:
                    try:
                        record = await self._send_reminder(session, notification_type, match, kickoff)
                    except Exception as e:
                        logger.error(
                            f"Error sending {notification_type.value} reminder for match {match['id']}: {e}",
                            exc_info=True,
                        )
                        await session.rollback()
                        continue
                    if record is not None:
                        created.append(record)
        return created

    async def _due_matches(
        self,
        session: AsyncSession,
        notification_type: NotificationType,
        window_start: datetime,
        window_end: datetime,
    ) -> List[Tuple[Dict, datetime]]:
        """
        Matches kicking off inside the window that have no record of this type yet.

        Returns:
            (match dict, kickoff datetime) pairs, soonest first. Plain data is
            returned so a rollback for one match cannot expire the others.
        """
        result = await session.execute(
            select(Match)
            .outerjoin(
                Notification,
                and_(
                    Notification.match_id == Match.id,
                    Notification.type == notification_type.value,
                ),
            )
            .where(
                and_(
                    Match.match_date >= window_start,
                    Match.match_date <= window_end,
                    Match.status != MatchStatus.CANCELLED.value,
                    Notification.id.is_(None),
                )
            )
            .order_by(Match.match_date)
        )
        return [(match_to_dict(match), ensure_utc(match.match_date)) for match in result.scalars().all()]

    async def _send_reminder(
        self,
        session: AsyncSession,
        notification_type: NotificationType,
        match: Dict,
        kickoff: datetime,
    ) -> Optional[Dict]:
        """
        Record and broadcast one reminder.

        Returns:
            The stored record, or None if another tick already recorded it
        """
        counts = await get_attendance_counts(session, match["id"])
        message = compose_message(notification_type, match["title"], kickoff, counts)
        sent_at = utcnow()

        stmt = (
            db.dialect_insert(session, Notification.__table__)
            .values(match_id=match["id"], type=notification_type.value, message=message, sent_at=sent_at)
            .on_conflict_do_nothing(index_elements=["match_id", "type"])
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            await session.rollback()
            logger.debug(f"{notification_type.value} reminder for match {match['id']} already sent")
            return None
        await session.commit()

        await broadcast_event(
            "match-notification",
            {
                "type": notification_type.value,
                "match": {**match, "counts": counts},
                "message": message,
                "counts": counts,
            },
        )
        logger.info(f"Sent {notification_type.value} reminder for match {match['id']} ({match['title']!r})")
        return {
            "match_id": match["id"],
            "type": notification_type.value,
            "message": message,
            "sent_at": isoformat_utc(sent_at),
        }


# Global singleton
_scheduler = NotificationScheduler()


def get_notification_scheduler() -> NotificationScheduler:
    """Get the global match reminder scheduler instance."""
    return _scheduler
