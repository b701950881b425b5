#!/usr/bin/env python
"""
Run Expiry Sweep CLI

Local tool for the appointment expiry sweep outside the scheduler.
Supports --at and --dry-run flags.
"""

import asyncio
import argparse
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Iterable, List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.models.appointment import Appointment, AppointmentStatus
from lavtutor.services.appointment_service import get_appointment_service
from lavtutor.services.lifecycle import effective_status, now_local


def preview_expiry(appointments: Iterable, now: datetime) -> Dict[str, List]:
    """Appointments the sweep would cancel or end at `now`"""
    preview = {"cancelled": [], "ended": []}
    for appointment in appointments:
        current = AppointmentStatus.parse(appointment.status)
        target = effective_status(appointment, now)
        if target == current:
            continue
        if target == AppointmentStatus.CANCELLED:
            preview["cancelled"].append(appointment)
        elif target == AppointmentStatus.AWAITING_FEEDBACK:
            preview["ended"].append(appointment)
    return preview


async def run_sweep(args):
    """Execute the sweep with given arguments"""
    now = datetime.fromisoformat(args.at) if args.at else now_local()

    print("=" * 60)
    print("Appointment Expiry Sweep")
    print("=" * 60)
    print(f"Evaluated at: {now.isoformat(timespec='minutes')} (local)")
    print(f"Dry run: {args.dry_run}")
    print("=" * 60)

    if args.dry_run:
        async with AsyncSessionLocal() as session:
            result = await session.execute(
                select(Appointment).where(
                    Appointment.status.in_([
                        AppointmentStatus.CONFIRMED.value,
                        AppointmentStatus.STARTED.value,
                    ])
                )
            )
            appointments = list(result.scalars().all())

        preview = preview_expiry(appointments, now)
        print(f"\n[DRY RUN MODE] {len(appointments)} confirmed/started appointments checked")
        for appointment in preview["cancelled"]:
            print(f"  would cancel {appointment.appointment_id} ({appointment.date})")
        for appointment in preview["ended"]:
            print(f"  would end    {appointment.appointment_id} ({appointment.date} {appointment.end_time})")
        return

    summary = await get_appointment_service().sweep_expired(now)

    print("\n" + "=" * 60)
    print("Sweep Complete!")
    print("=" * 60)
    print(f"Checked: {summary['checked']}")
    print(f"Cancelled: {summary['cancelled']}")
    print(f"Ended: {summary['ended']}")
    print(f"Duration: {summary['duration_ms']:.2f} ms")


def main():
    parser = argparse.ArgumentParser(description="Run the appointment expiry sweep once")
    parser.add_argument(
        "--at",
        type=str,
        help="Local wall-clock time to evaluate expiry at (YYYY-MM-DDTHH:MM)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing"
    )

    args = parser.parse_args()

    try:
        asyncio.run(run_sweep(args))
    except KeyboardInterrupt:
        print("\n\nSweep interrupted by user")
        sys.exit(0)
    except Exception as e:
        print(f"\n\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
