"""
Public certificate validation route
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from models.participant import CertificateValidationRequest, CertificateValidationResponse
from services.sync_coordinator import SyncCoordinator
from utils.auth import get_coordinator
from utils.error_handling import raise_for_result
from utils.helpers import utc_now

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/validate-certificate", response_model=CertificateValidationResponse)
async def validate_certificate(
    request: CertificateValidationRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Look up a certificate number typed by a visitor"""
    certificate_number = request.certificateNumber.strip()
    if not certificate_number:
        raise HTTPException(status_code=400, detail="Certificate number is required")

    logger.info(f"Validating certificate: {certificate_number}")
    result = await coordinator.find_by_certificate(certificate_number)
    raise_for_result(result)

    participant = result.first
    if participant is None:
        raise HTTPException(status_code=404, detail=f"Certificate {certificate_number} not found")

    return CertificateValidationResponse(
        valid=True,
        certificate_number=participant.certificate_number,
        participant=participant,
        checked_at=utc_now()
    )
