"""User directory and administrator role changes"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from lavtutor.database import AsyncSessionLocal
from lavtutor.errors import NotFound, PermissionDenied, ValidationFailed
from lavtutor.models.user import Role, User
from lavtutor.services.events import RoleChanged, get_event_bus

logger = logging.getLogger(__name__)


def parse_role(value: Any) -> Role:
    try:
        return Role(str(value or "").strip().lower())
    except ValueError:
        raise ValidationFailed(
            f"Unknown role '{value}'. Use one of: {', '.join(r.value for r in Role)}.",
            details={"field": "role"},
        )


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "user_id": str(user.user_id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
    }


class UserService:

    def __init__(self, session_factory=AsyncSessionLocal, events=None):
        self.session_factory = session_factory
        self.events = events or get_event_bus()

    async def list_users(self, role: Optional[str] = None) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            stmt = select(User)
            if role:
                stmt = stmt.where(User.role == parse_role(role).value)
            result = await session.execute(stmt.order_by(User.name))
            return [serialize_user(user) for user in result.scalars().all()]

    async def change_role(self, admin: User, user_id: uuid.UUID, new_role: str) -> Dict[str, Any]:
        """
        Change a user's role and publish RoleChanged.

        An administrator cannot demote themselves, so at least the acting
        admin keeps access.
        """
        if admin.role != Role.ADMIN.value:
            raise PermissionDenied("Only administrators can change roles")
        role = parse_role(new_role)
        if admin.user_id == user_id and role != Role.ADMIN:
            raise ValidationFailed("You cannot remove your own administrator role.", details={"field": "role"})

        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFound("User not found", details={"user_id": str(user_id)})
            old_role = user.role
            if old_role == role.value:
                return serialize_user(user)
            user.role = role.value
            await session.commit()

        logger.info(f"Admin {admin.user_id} changed role of {user_id}: {old_role} -> {role.value}")
        await self.events.publish(RoleChanged(user_id=user_id, old_role=old_role, new_role=role.value))
        return serialize_user(user)


_user_service: Optional[UserService] = None


def get_user_service() -> UserService:
    """Get or create global UserService instance"""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
