"""
Domain records persisted in the document store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # Mongo hands back naive datetimes unless tz_aware is set.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"


@dataclass
class OtpRecord:
    otp: str
    user_phone_number: str
    user_id: str
    status: OtpStatus = OtpStatus.PENDING
    valid_attempts: int = 0
    retry_attempts: int = 0
    creation_date: datetime = field(default_factory=utcnow)
    modification_date: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def touch(self, now: Optional[datetime] = None) -> None:
        """Bump the modification date without ever moving it backwards."""
        now = now or utcnow()
        if now > self.modification_date:
            self.modification_date = now

    def is_expired(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        if self.status == OtpStatus.EXPIRED:
            return True
        now = now or utcnow()
        return (now - self.creation_date).total_seconds() > ttl_seconds

    def to_document(self) -> dict:
        return {
            "otp": self.otp,
            "creationDate": self.creation_date,
            "modificationDate": self.modification_date,
            "status": self.status.value,
            "validAttempts": self.valid_attempts,
            "retryAttempts": self.retry_attempts,
            "userPhoneNumber": self.user_phone_number,
            "userId": self.user_id,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "OtpRecord":
        return cls(
            id=str(doc["_id"]),
            otp=doc["otp"],
            creation_date=_aware(doc["creationDate"]),
            modification_date=_aware(doc["modificationDate"]),
            status=OtpStatus(doc["status"]),
            valid_attempts=doc.get("validAttempts", 0),
            retry_attempts=doc.get("retryAttempts", 0),
            user_phone_number=doc.get("userPhoneNumber", ""),
            user_id=doc.get("userId", ""),
        )

    def as_dict(self) -> dict:
        """Public view of the record; the code itself is never exposed."""
        return {
            "id": self.id,
            "status": self.status.value,
            "valid_attempts": self.valid_attempts,
            "retry_attempts": self.retry_attempts,
            "user_phone_number": self.user_phone_number,
            "user_id": self.user_id,
            "creation_date": self.creation_date,
            "modification_date": self.modification_date,
        }


@dataclass
class ExampleRecord:
    name: str
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def touch(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        if now > self.updated_at:
            self.updated_at = now

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "ExampleRecord":
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            description=doc.get("description", ""),
            created_at=_aware(doc["createdAt"]),
            updated_at=_aware(doc["updatedAt"]),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
