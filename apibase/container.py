"""
Composition root: wires the logger, document store, repositories and services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from apibase.config import Settings
from apibase.db import DocumentStore, InMemoryDocumentStore, MongoDocumentStore, connect
from apibase.repositories import ExampleRepository, OtpRepository
from apibase.services import ExampleService, OtpService


@dataclass(frozen=True)
class Container:
    """Process-scoped dependency graph handed to both transports."""

    settings: Settings
    logger: logging.Logger
    store: DocumentStore
    example_repository: ExampleRepository
    otp_repository: OtpRepository
    example_service: ExampleService
    otp_service: OtpService


def build_store(settings: Settings) -> DocumentStore:
    if settings.mongo_uri:
        return MongoDocumentStore(connect(settings.mongo_uri, settings.db_name))
    return InMemoryDocumentStore()


def build_container(
    settings: Settings, store: Optional[DocumentStore] = None
) -> Container:
    logger = logging.getLogger("apibase")
    store = store if store is not None else build_store(settings)
    example_repository = ExampleRepository(store)
    otp_repository = OtpRepository(store)
    return Container(
        settings=settings,
        logger=logger,
        store=store,
        example_repository=example_repository,
        otp_repository=otp_repository,
        example_service=ExampleService(logger, example_repository),
        otp_service=OtpService(
            logger,
            otp_repository,
            ttl_seconds=settings.otp_ttl_seconds,
            max_retries=settings.otp_max_retries,
            length=settings.otp_length,
        ),
    )
