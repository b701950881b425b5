"""
Tutor profile: teaching subject, background and default session links.

Appointments without their own online_link/file_link show the tutor's
profile values, so editing the profile changes what tutees see on every
session that has not been given links of its own.
"""
import logging
import uuid
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import PermissionDenied, ValidationFailed
from lavtutor.models.user import Profile, Role, User
from lavtutor.services.change_feed import get_data_sync

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("subject", "specialization", "college", "program")
LINK_FIELDS = ("online_link", "file_link")
PROFILE_FIELDS = TEXT_FIELDS + ("year_level",) + LINK_FIELDS

MAX_YEAR_LEVEL = 6


def clean_link(field: str, value: Any) -> Optional[str]:
    link = (value or "").strip()
    if not link:
        return None
    if not link.lower().startswith(("http://", "https://")):
        raise ValidationFailed(
            f"{field.replace('_', ' ').capitalize()} must start with http:// or https://.",
            details={"field": field},
        )
    return link


def clean_year_level(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        year = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("Year level must be a number.", details={"field": "year_level"})
    if not 1 <= year <= MAX_YEAR_LEVEL:
        raise ValidationFailed(
            f"Year level must be between 1 and {MAX_YEAR_LEVEL}.",
            details={"field": "year_level"},
        )
    return year


def clean_profile_fields(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate the submitted subset of profile fields; unknown keys are ignored"""
    cleaned = {}
    for field in TEXT_FIELDS:
        if field in changes:
            cleaned[field] = (changes[field] or "").strip() or None
    if "year_level" in changes:
        cleaned["year_level"] = clean_year_level(changes["year_level"])
    for field in LINK_FIELDS:
        if field in changes:
            cleaned[field] = clean_link(field, changes[field])
    return cleaned


def serialize_profile(user: User, profile: Optional[Profile]) -> Dict[str, Any]:
    data = {"user_id": str(user.user_id), "name": user.name, "profile_id": None}
    data.update({field: None for field in PROFILE_FIELDS})
    if profile is not None:
        data["profile_id"] = str(profile.profile_id)
        data.update({field: getattr(profile, field) for field in PROFILE_FIELDS})
    return data


class ProfileService:

    def __init__(self, session_factory=AsyncSessionLocal, data_sync=None):
        self.session_factory = session_factory
        self.data_sync = data_sync or get_data_sync()

    async def _find(self, session, user_id: uuid.UUID) -> Optional[Profile]:
        result = await session.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalars().first()

    async def get_profile(self, user: User) -> Dict[str, Any]:
        async with self.session_factory() as session:
            profile = await self._find(session, user.user_id)
        return serialize_profile(user, profile)

    async def update_profile(self, tutor: User, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create or update the tutor's profile with the submitted fields.

        Raises:
            PermissionDenied: caller is not a tutor
            ValidationFailed: bad link or year level (nothing is written)
        """
        if tutor.role != Role.TUTOR.value:
            raise PermissionDenied("Only tutors have a tutor profile")
        cleaned = clean_profile_fields(changes)

        async with self.session_factory() as session:
            profile = await self._find(session, tutor.user_id)
            if profile is None:
                profile = Profile(profile_id=uuid.uuid4(), user_id=tutor.user_id)
                session.add(profile)
            for field, value in cleaned.items():
                setattr(profile, field, value)
            await session.commit()

        logger.info(f"Tutor {tutor.user_id} updated profile fields: {', '.join(sorted(cleaned)) or 'none'}")
        await self.data_sync.record_change("profile")
        return serialize_profile(tutor, profile)


_profile_service: Optional[ProfileService] = None


def get_profile_service() -> ProfileService:
    """Get or create global ProfileService instance"""
    global _profile_service
    if _profile_service is None:
        _profile_service = ProfileService()
    return _profile_service
