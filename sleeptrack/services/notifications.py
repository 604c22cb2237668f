"""Bedtime reminder scheduling"""
import logging
from typing import Optional, Protocol, Union

from telegram.ext import ContextTypes, JobQueue

from sleeptrack.exceptions import NotificationError
from sleeptrack.utils.time_utils import TzLike, get_timezone, parse_reminder_time

logger = logging.getLogger(__name__)


def bedtime_message(target_hours: float) -> str:
    """Reminder text for the user's nightly goal"""
    hours = f"{target_hours:g}"
    return f"🌙 Time for bed! Get your {hours} hours of sleep for a better tomorrow."


class ReminderScheduler(Protocol):
    """What the settings repository needs from a notification service"""

    async def schedule(self, reminder_time: str, target_hours: float) -> Optional[str]:
        """Schedule the daily reminder; returns an identifier or None"""
        ...

    async def cancel_all(self) -> None:
        """Cancel every scheduled reminder"""
        ...


class TelegramReminderScheduler:
    """Daily bedtime reminder delivered through a Telegram JobQueue"""

    def __init__(self, job_queue: JobQueue, chat_id: Union[int, str], tz: TzLike = None):
        self.job_queue = job_queue
        self.chat_id = chat_id
        self.tz = get_timezone(tz)

    @property
    def job_name(self) -> str:
        return f"bedtime_reminder_{self.chat_id}"

    async def schedule(self, reminder_time: str, target_hours: float) -> Optional[str]:
        """
        Replace any existing bedtime reminder with a new daily one

        Args:
            reminder_time: "HH:MM" in the user's local time
            target_hours: Nightly goal quoted in the message

        Returns:
            Job name used as the reminder id

        Raises:
            NotificationError: If the job could not be scheduled
        """
        await self.cancel_all()
        try:
            at = parse_reminder_time(reminder_time).replace(tzinfo=self.tz)
            job = self.job_queue.run_daily(
                self._send_reminder,
                time=at,
                chat_id=self.chat_id,
                name=self.job_name,
                data={"target_hours": target_hours},
            )
        except Exception as e:
            raise NotificationError(
                f"Failed to schedule bedtime reminder: {e}",
                operation="schedule_reminder",
                context={"reminder_time": reminder_time, "chat_id": self.chat_id},
                cause=e,
            )

        logger.info(f"Scheduled bedtime reminder at {reminder_time} for chat {self.chat_id}")
        return job.name

    async def cancel_all(self) -> None:
        """Remove all bedtime reminder jobs for this chat"""
        try:
            jobs = self.job_queue.get_jobs_by_name(self.job_name)
            for job in jobs:
                job.schedule_removal()
        except Exception as e:
            raise NotificationError(
                f"Failed to cancel bedtime reminders: {e}",
                operation="cancel_reminders",
                context={"chat_id": self.chat_id},
                cause=e,
            )
        if jobs:
            logger.info(f"Cancelled {len(jobs)} bedtime reminder(s) for chat {self.chat_id}")

    @staticmethod
    async def _send_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
        """Job callback: send the bedtime message"""
        job = context.job
        target_hours = (job.data or {}).get("target_hours", 8.0)
        await context.bot.send_message(chat_id=job.chat_id, text=bedtime_message(target_hours))
        logger.debug(f"Sent bedtime reminder to chat {job.chat_id}")
