"""
Repositories mapping domain records onto document store collections.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from apibase.db import DocumentStore
from apibase.models import ExampleRecord, OtpRecord, OtpStatus

EXAMPLES_COLLECTION = "examples"
OTP_COLLECTION = "otp"


class ExampleRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, record: ExampleRecord) -> ExampleRecord:
        record.id = self.store.insert_one(EXAMPLES_COLLECTION, record.to_document())
        return record

    def get(self, example_id: str) -> Optional[ExampleRecord]:
        doc = self.store.find_one(EXAMPLES_COLLECTION, example_id)
        return ExampleRecord.from_document(doc) if doc else None

    def list(self, limit: int = 100) -> list[ExampleRecord]:
        return [
            ExampleRecord.from_document(doc)
            for doc in self.store.find(EXAMPLES_COLLECTION, limit=limit)
        ]

    def save(self, record: ExampleRecord) -> bool:
        return self.store.replace_one(
            EXAMPLES_COLLECTION, record.id, record.to_document()
        )

    def delete(self, example_id: str) -> bool:
        return self.store.delete_one(EXAMPLES_COLLECTION, example_id)


class OtpRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, record: OtpRecord) -> OtpRecord:
        record.id = self.store.insert_one(OTP_COLLECTION, record.to_document())
        return record

    def get(self, otp_id: str) -> Optional[OtpRecord]:
        doc = self.store.find_one(OTP_COLLECTION, otp_id)
        return OtpRecord.from_document(doc) if doc else None

    def save(self, record: OtpRecord) -> bool:
        return self.store.replace_one(OTP_COLLECTION, record.id, record.to_document())

    def _update(self, otp_id: str, now: datetime, **changes) -> Optional[OtpRecord]:
        doc = self.store.update_one(
            OTP_COLLECTION,
            otp_id,
            match={"status": OtpStatus.PENDING.value},
            maximum={"modificationDate": now},
            **changes,
        )
        return OtpRecord.from_document(doc) if doc else None

    def record_retry(
        self, otp_id: str, max_retries: int, now: datetime
    ) -> Optional[OtpRecord]:
        """Count a wrong code against a pending record still under the retry limit."""
        return self._update(
            otp_id,
            now,
            below={"retryAttempts": max_retries},
            inc={"retryAttempts": 1},
        )

    def mark_verified(
        self, otp_id: str, max_retries: int, now: datetime
    ) -> Optional[OtpRecord]:
        return self._update(
            otp_id,
            now,
            below={"retryAttempts": max_retries},
            inc={"validAttempts": 1},
            set_fields={"status": OtpStatus.VERIFIED.value},
        )

    def expire(self, otp_id: str, now: datetime) -> Optional[OtpRecord]:
        return self._update(
            otp_id, now, set_fields={"status": OtpStatus.EXPIRED.value}
        )
