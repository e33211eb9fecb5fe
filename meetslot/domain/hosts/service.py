"""Host service - Business logic for host accounts and meeting types"""

import logging
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import APP_URL
from ...errors import NotFound
from ...models import MeetingType, User
from ...plan_limits import BookingQuotaStatus, get_booking_quota
from ...shared.validators import generate_slug
from .schemas import MeetingTypeCreate

logger = logging.getLogger(__name__)

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    digits = ""
    while True:
        value, remainder = divmod(value, 36)
        digits = BASE36_DIGITS[remainder] + digits
        if value == 0:
            return digits


def booking_url(*parts: str) -> str:
    return "/".join([APP_URL, "book", *parts])


class HostService:
    """Service layer for host business logic"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_host(
        self, firebase_uid: str, email: Optional[str] = None, name: Optional[str] = None
    ) -> User:
        """Find the host by identity id, or create one from the token claims"""
        user = self.db.query(User).filter(User.firebase_uid == firebase_uid).first()
        if user:
            return user

        # Same email signed in through a different provider
        if email:
            existing_user = self.db.query(User).filter(User.email == email).first()
            if existing_user:
                logger.info(f"🔄 Migrating user {email} to Firebase UID {firebase_uid}")
                existing_user.firebase_uid = firebase_uid
                if name and not existing_user.full_name:
                    existing_user.full_name = name
                self.db.commit()
                self.db.refresh(existing_user)
                return existing_user

        logger.info(f"🆕 Creating new host: {email}")
        user = User(firebase_uid=firebase_uid, email=email or "", full_name=name or None)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"❌ Email {email} was taken by another account (race condition)")
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            ) from e
        self.db.refresh(user)
        return user

    def get_or_create_booking_link(self, user: User) -> dict:
        if not user.slug:
            base_slug = generate_slug(user.full_name or "user") or "user"
            user.slug = f"{base_slug}-{to_base36(int(time.time() * 1000))}"
            self.db.commit()
            logger.info(f"✅ Booking slug created for user {user.id}: {user.slug}")

        return {"slug": user.slug, "url": booking_url(user.slug)}

    def booking_link_for_meeting_type(self, user: User, meeting_type_slug: str) -> dict:
        link = self.get_or_create_booking_link(user)
        return {"url": booking_url(link["slug"], meeting_type_slug)}

    def list_meeting_types(self, user: User) -> list[MeetingType]:
        return (
            self.db.query(MeetingType)
            .filter(MeetingType.user_id == user.id)
            .order_by(MeetingType.created_at, MeetingType.id)
            .all()
        )

    def _unique_meeting_type_slug(self, user: User, name: str) -> str:
        """Slug from the name, suffixed -2, -3, ... when the host already uses it"""
        base = generate_slug(name) or "meeting"
        taken = {
            slug
            for (slug,) in self.db.query(MeetingType.slug).filter(MeetingType.user_id == user.id).all()
        }
        slug = base
        suffix = 2
        while slug in taken:
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def create_meeting_type(self, user: User, data: MeetingTypeCreate) -> MeetingType:
        meeting_type = MeetingType(
            user_id=user.id,
            name=data.name,
            slug=self._unique_meeting_type_slug(user, data.name),
            duration_minutes=data.duration,
            description=data.description,
            is_default=data.isDefault,
        )
        self.db.add(meeting_type)
        self.db.commit()
        self.db.refresh(meeting_type)
        logger.info(f"✅ Meeting type {meeting_type.slug} created for user {user.id}")
        return meeting_type

    def get_public_profile(self, host_slug: str) -> tuple[User, list[MeetingType]]:
        host = self.db.query(User).filter(User.slug == host_slug).first()
        if not host:
            raise NotFound("Host not found")
        return host, self.list_meeting_types(host)

    def get_booking_quota(self, user: User) -> BookingQuotaStatus:
        return get_booking_quota(user, self.db)
