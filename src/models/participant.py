"""
Participant-related Pydantic models
"""

from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from utils.helpers import normalize_certificate_number


class Participant(BaseModel):
    """A certificate holder as stored in any of the participant stores"""
    id: int
    certificate_number: str
    name: str
    issue_date: date
    class_name: str
    created_at: datetime
    updated_at: datetime

    @property
    def certificate_key(self) -> str:
        """Key used for case-insensitive uniqueness checks"""
        return normalize_certificate_number(self.certificate_number)


def _strip_required(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("field must be a string")
    value = value.strip()
    if not value:
        raise ValueError("field must not be empty")
    return value


class ParticipantCreate(BaseModel):
    certificate_number: str
    name: str
    issue_date: date
    class_name: str

    @field_validator("certificate_number", "name", "class_name", mode="before")
    @classmethod
    def strip_required_text(cls, value):
        return _strip_required(value)


class ParticipantUpdate(BaseModel):
    certificate_number: Optional[str] = None
    name: Optional[str] = None
    issue_date: Optional[date] = None
    class_name: Optional[str] = None

    @field_validator("certificate_number", "name", "class_name", mode="before")
    @classmethod
    def strip_optional_text(cls, value):
        if value is None:
            return value
        return _strip_required(value)

    def changes(self) -> dict:
        """Only the fields that were actually provided"""
        return self.model_dump(exclude_none=True)


class CertificateValidationRequest(BaseModel):
    certificateNumber: str = Field(..., description="Certificate number as typed by the visitor")


class CertificateValidationResponse(BaseModel):
    valid: bool
    certificate_number: str
    participant: Optional[Participant] = None
    checked_at: datetime


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class AdminTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ImportReport(BaseModel):
    """Outcome of a bulk CSV import"""
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    total_errors: int = 0
    errors: List[str] = Field(default_factory=list)
    imported: List[Participant] = Field(default_factory=list)
