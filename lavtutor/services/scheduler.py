"""
APScheduler Configuration

Manages the periodic expiry sweep and the per-session timers (auto-end and
the "ending soon" warning) for started appointments.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from lavtutor import config
from lavtutor.services.lifecycle import as_aware, session_end, warning_time

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def sweep_expired_sessions():
    """
    Periodic job persisting auto-expiry: stale confirmed sessions are
    cancelled and overrunning started sessions move to awaiting feedback.
    """
    from lavtutor.services.appointment_service import get_appointment_service

    logger.info("Starting appointment expiry sweep")

    try:
        summary = await get_appointment_service().sweep_expired()
        logger.info(
            f"Expiry sweep complete: {summary['cancelled']} cancelled, "
            f"{summary['ended']} ended in {summary['duration_ms']:.2f}ms"
        )
    except Exception as e:
        logger.error(f"Failed to sweep expired appointments: {e}", exc_info=True)


async def fire_auto_end(appointment_id: str):
    """Timer callback: end a started session at its scheduled end time"""
    from lavtutor.services.appointment_service import get_appointment_service

    try:
        await get_appointment_service().auto_end(uuid.UUID(appointment_id))
    except Exception as e:
        logger.error(f"Auto-end failed for appointment {appointment_id}: {e}", exc_info=True)


async def fire_ending_warning(appointment_id: str):
    """Timer callback: tell the tutor the session ends soon"""
    from lavtutor.services.appointment_service import get_appointment_service

    try:
        await get_appointment_service().warn_ending(uuid.UUID(appointment_id))
    except Exception as e:
        logger.error(f"Ending warning failed for appointment {appointment_id}: {e}", exc_info=True)


class SessionTimers:
    """
    Auto-end and warning jobs for started sessions, keyed by appointment id.

    Jobs are in-memory only; they are re-derived from the wall clock every
    time a list of appointments is loaded and the periodic sweep covers any
    that were lost.
    """

    def __init__(self, job_scheduler: AsyncIOScheduler = None):
        self.scheduler = job_scheduler or scheduler
        self._armed: Dict[uuid.UUID, datetime] = {}

    @staticmethod
    def end_job_id(appointment_id) -> str:
        return f"auto-end:{appointment_id}"

    @staticmethod
    def warning_job_id(appointment_id) -> str:
        return f"auto-warn:{appointment_id}"

    def armed(self) -> Dict[uuid.UUID, datetime]:
        return dict(self._armed)

    def arm(self, appointment, now: datetime) -> bool:
        """
        Arm (or re-arm) the timers for a started appointment.

        Returns:
            False when the session end has already passed; the caller ends
            the session directly in that case
        """
        appointment_id = appointment.appointment_id
        end_at = session_end(appointment)
        if end_at <= now:
            self.clear(appointment_id)
            return False

        self.scheduler.add_job(
            fire_auto_end,
            trigger=DateTrigger(run_date=as_aware(end_at)),
            args=[str(appointment_id)],
            id=self.end_job_id(appointment_id),
            name=f"Auto-end appointment {appointment_id}",
            replace_existing=True,
            misfire_grace_time=None,
        )

        warn_at = warning_time(appointment)
        if warn_at > now:
            self.scheduler.add_job(
                fire_ending_warning,
                trigger=DateTrigger(run_date=as_aware(warn_at)),
                args=[str(appointment_id)],
                id=self.warning_job_id(appointment_id),
                name=f"Ending warning for appointment {appointment_id}",
                replace_existing=True,
            )
        else:
            self._remove(self.warning_job_id(appointment_id))

        self._armed[appointment_id] = end_at
        return True

    def _remove(self, job_id: str):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def clear(self, appointment_id):
        self._remove(self.end_job_id(appointment_id))
        self._remove(self.warning_job_id(appointment_id))
        self._armed.pop(appointment_id, None)

    def clear_all(self):
        for appointment_id in list(self._armed):
            self.clear(appointment_id)


_session_timers: Optional[SessionTimers] = None


def get_session_timers() -> SessionTimers:
    """Get or create global SessionTimers instance"""
    global _session_timers
    if _session_timers is None:
        _session_timers = SessionTimers()
    return _session_timers


def configure_scheduler():
    """
    Configure APScheduler with the periodic jobs.

    Jobs:
        - Expiry sweep: every EXPIRY_SWEEP_MINUTES minutes
    """
    scheduler.add_job(
        sweep_expired_sessions,
        trigger=IntervalTrigger(minutes=config.EXPIRY_SWEEP_MINUTES),
        id='appointment_expiry_sweep',
        name='Sweep Expired Appointments',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    logger.info(f"Scheduler configured with expiry sweep every {config.EXPIRY_SWEEP_MINUTES} minutes")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler and drop session timers"""
    get_session_timers().clear_all()
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
