"""
HTTP routes for the example resource and one-time passwords.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from apibase.container import Container
from apibase.schemas import (
    ExampleCreate,
    ExampleListResponse,
    ExamplePatch,
    ExampleReplace,
    ExampleResponse,
    HealthResponse,
    OtpIssueRequest,
    OtpResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from apibase.services import (
    ExampleService,
    OtpAlreadyVerifiedError,
    OtpExpiredError,
    OtpService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_example_service(container: Container = Depends(get_container)) -> ExampleService:
    return container.example_service


def get_otp_service(container: Container = Depends(get_container)) -> OtpService:
    return container.otp_service


def _example_not_found(example_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Example {example_id} not found")


@router.get("/health", response_model=HealthResponse)
def health(container: Container = Depends(get_container)):
    return {"status": "ok", "env": container.settings.env}


@router.get("/examples", response_model=ExampleListResponse)
def list_examples(
    limit: int = Query(default=100, ge=1, le=500),
    service: ExampleService = Depends(get_example_service),
):
    return {"items": [record.as_dict() for record in service.list(limit=limit)]}


@router.post("/examples", response_model=ExampleResponse, status_code=201)
def create_example(
    payload: ExampleCreate,
    service: ExampleService = Depends(get_example_service),
):
    return service.create(payload.name, payload.description).as_dict()


@router.get("/examples/{example_id}", response_model=ExampleResponse)
def get_example(
    example_id: str,
    service: ExampleService = Depends(get_example_service),
):
    record = service.get(example_id)
    if record is None:
        raise _example_not_found(example_id)
    return record.as_dict()


@router.put("/examples/{example_id}", response_model=ExampleResponse)
def replace_example(
    example_id: str,
    payload: ExampleReplace,
    service: ExampleService = Depends(get_example_service),
):
    record = service.update(
        example_id, name=payload.name, description=payload.description
    )
    if record is None:
        raise _example_not_found(example_id)
    return record.as_dict()


@router.patch("/examples/{example_id}", response_model=ExampleResponse)
def patch_example(
    example_id: str,
    payload: ExamplePatch,
    service: ExampleService = Depends(get_example_service),
):
    record = service.update(
        example_id, name=payload.name, description=payload.description
    )
    if record is None:
        raise _example_not_found(example_id)
    return record.as_dict()


@router.delete("/examples/{example_id}", status_code=204)
def delete_example(
    example_id: str,
    service: ExampleService = Depends(get_example_service),
):
    if not service.delete(example_id):
        raise _example_not_found(example_id)
    return Response(status_code=204)


@router.post("/otp", response_model=OtpResponse, status_code=201)
def issue_otp(
    payload: OtpIssueRequest,
    service: OtpService = Depends(get_otp_service),
):
    """
    Create a PENDING verification code. Delivery (SMS) is left to the caller,
    so the code is never echoed back here.
    """
    return service.issue(payload.user_phone_number, payload.user_id).as_dict()


@router.get("/otp/{otp_id}", response_model=OtpResponse)
def get_otp(
    otp_id: str,
    service: OtpService = Depends(get_otp_service),
):
    record = service.get(otp_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Otp {otp_id} not found")
    return record.as_dict()


@router.post("/otp/{otp_id}/verify", response_model=OtpVerifyResponse)
def verify_otp(
    otp_id: str,
    payload: OtpVerifyRequest,
    service: OtpService = Depends(get_otp_service),
):
    try:
        result = service.verify(otp_id, payload.code)
    except OtpExpiredError:
        raise HTTPException(status_code=410, detail=f"Otp {otp_id} has expired")
    except OtpAlreadyVerifiedError:
        raise HTTPException(status_code=409, detail=f"Otp {otp_id} is already verified")
    if result is None:
        raise HTTPException(status_code=404, detail=f"Otp {otp_id} not found")
    record, verified = result
    if not verified:
        logger.info("Wrong code for otp %s (retry %d)", otp_id, record.retry_attempts)
    return {"verified": verified, "otp": record.as_dict()}
