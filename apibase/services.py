"""
Services behind the HTTP routes.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime
from typing import Optional

from apibase.models import ExampleRecord, OtpRecord, OtpStatus, utcnow
from apibase.repositories import ExampleRepository, OtpRepository


class OtpExpiredError(Exception):
    pass


class OtpAlreadyVerifiedError(Exception):
    pass


class ExampleService:
    def __init__(self, logger: logging.Logger, repository: ExampleRepository):
        self.logger = logger
        self.repository = repository

    def create(self, name: str, description: str = "") -> ExampleRecord:
        record = self.repository.create(ExampleRecord(name=name, description=description))
        self.logger.info("Created example %s", record.id)
        return record

    def get(self, example_id: str) -> Optional[ExampleRecord]:
        return self.repository.get(example_id)

    def list(self, limit: int = 100) -> list[ExampleRecord]:
        return self.repository.list(limit=limit)

    def update(
        self,
        example_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[ExampleRecord]:
        """Apply the given fields; ``None`` leaves a field untouched."""
        record = self.repository.get(example_id)
        if record is None:
            return None
        if name is not None:
            record.name = name
        if description is not None:
            record.description = description
        record.touch()
        if not self.repository.save(record):
            return None
        return record

    def delete(self, example_id: str) -> bool:
        deleted = self.repository.delete(example_id)
        if deleted:
            self.logger.info("Deleted example %s", example_id)
        return deleted


class OtpService:
    """
    Issues and verifies one-time passwords.

    A record starts PENDING. A matching code moves it to VERIFIED; wrong codes
    count as retries until ``max_retries`` is reached, after which the record
    is EXPIRED. Records older than ``ttl_seconds`` expire on their next check.
    """

    def __init__(
        self,
        logger: logging.Logger,
        repository: OtpRepository,
        *,
        ttl_seconds: int = 300,
        max_retries: int = 3,
        length: int = 6,
    ):
        self.logger = logger
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self.max_retries = max_retries
        self.length = length

    def _generate_code(self) -> str:
        return str(secrets.randbelow(10**self.length)).zfill(self.length)

    def issue(self, user_phone_number: str, user_id: str) -> OtpRecord:
        record = self.repository.create(
            OtpRecord(
                otp=self._generate_code(),
                user_phone_number=user_phone_number,
                user_id=user_id,
            )
        )
        self.logger.info("Issued otp %s for user %s", record.id, user_id)
        return record

    def get(self, otp_id: str) -> Optional[OtpRecord]:
        return self.repository.get(otp_id)

    def verify(self, otp_id: str, code: str) -> Optional[tuple[OtpRecord, bool]]:
        """
        Check ``code`` against the stored record.

        Returns None when the record does not exist, otherwise the updated
        record and whether the code matched. Every change is a conditional
        update on a PENDING record, so concurrent attempts are all counted.
        """
        record = self.repository.get(otp_id)
        if record is None:
            return None
        if record.status == OtpStatus.VERIFIED:
            raise OtpAlreadyVerifiedError(otp_id)

        now = utcnow()
        if record.is_expired(self.ttl_seconds, now):
            self.repository.expire(otp_id, now)
            raise OtpExpiredError(otp_id)

        if hmac.compare_digest(record.otp.encode(), code.encode()):
            updated = self.repository.mark_verified(otp_id, self.max_retries, now)
            if updated is None:
                self._raise_settled(otp_id, now)
            return updated, True

        updated = self.repository.record_retry(otp_id, self.max_retries, now)
        if updated is None:
            self._raise_settled(otp_id, now)
        if updated.retry_attempts >= self.max_retries:
            updated = self.repository.expire(otp_id, now) or self.repository.get(otp_id)
            self.logger.info("Otp %s expired after %d retries", otp_id, updated.retry_attempts)
        return updated, False

    def _raise_settled(self, otp_id: str, now: datetime) -> None:
        """Raise for a record that stopped accepting attempts after it was read."""
        current = self.repository.get(otp_id)
        if current is not None and current.status == OtpStatus.VERIFIED:
            raise OtpAlreadyVerifiedError(otp_id)
        self.repository.expire(otp_id, now)
        raise OtpExpiredError(otp_id)
