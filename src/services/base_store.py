"""
Base store layer: the record store interface shared by the remote table,
the local cache file and the process memory fallback
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from models.participant import Participant, ParticipantCreate, ParticipantUpdate
from utils.helpers import normalize_certificate_number, utc_now

logger = logging.getLogger(__name__)

# Error types carried by ServiceResult
DUPLICATE_CERTIFICATE = "DUPLICATE_CERTIFICATE"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
EXECUTION_ERROR = "EXECUTION_ERROR"

# Fields a caller may change; id and timestamps are owned by the stores
WRITABLE_FIELDS = ("certificate_number", "name", "issue_date", "class_name")


@dataclass
class ServiceResult:
    """Result from store or coordinator operation"""
    success: bool
    data: Optional[List[Participant]] = None
    count: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def first(self) -> Optional[Participant]:
        """First record of the result, if any"""
        return self.data[0] if self.data else None


def records_result(records: List[Participant]) -> ServiceResult:
    return ServiceResult(success=True, data=records, count=len(records))


def duplicate_result(certificate_number: str) -> ServiceResult:
    return ServiceResult(
        success=False,
        error=f"Certificate number {certificate_number} already exists",
        error_type=DUPLICATE_CERTIFICATE
    )


def not_found_result(record_id: int) -> ServiceResult:
    return ServiceResult(
        success=False,
        error=f"Participant with id {record_id} not found",
        error_type=RESOURCE_NOT_FOUND
    )


def validation_result(message: str) -> ServiceResult:
    return ServiceResult(success=False, error=message, error_type=VALIDATION_ERROR)


def writable_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce partial changes to the writable fields, trimmed and type-coerced.

    Raises:
        ValidationError: If a text field is blank or a value has the wrong type
    """
    filtered = {field: changes[field] for field in WRITABLE_FIELDS if field in changes}
    return ParticipantUpdate.model_validate(filtered).changes()


def newest_first(records: Iterable[Participant]) -> List[Participant]:
    """Registry ordering: creation time descending, id breaking ties"""
    return sorted(records, key=lambda p: (p.created_at, p.id), reverse=True)


class RecordStore(ABC):
    """Interface implemented by every participant store"""

    kind = "abstract"

    @abstractmethod
    async def get_all(self) -> ServiceResult:
        """All participants, newest first"""

    @abstractmethod
    async def find_by_id(self, record_id: int) -> ServiceResult:
        """Single participant by id; an empty result means not found"""

    @abstractmethod
    async def find_by_certificate(self, certificate_number: str) -> ServiceResult:
        """Single participant by trimmed, case-insensitive certificate number"""

    @abstractmethod
    async def add(self, participant: ParticipantCreate) -> ServiceResult:
        """Insert a participant, assigning id and timestamps"""

    @abstractmethod
    async def update(self, record_id: int, changes: Dict[str, Any]) -> ServiceResult:
        """Merge partial field changes into an existing participant"""

    @abstractmethod
    async def delete(self, record_id: int) -> ServiceResult:
        """Remove a participant, returning the removed record"""


class LocalRecordStore(RecordStore):
    """
    Participant store kept in process memory, optionally persisted by a subclass.

    Subclasses override _reload/_persist to back the in-memory state with
    durable storage. The uniqueness and not-found checks live here so every
    fallback store enforces them identically.
    """

    kind = "local"

    def __init__(self, participants: Optional[Iterable[Participant]] = None, next_id: Optional[int] = None):
        self._participants: Dict[int, Participant] = {}
        self._next_id = 1
        self._last_updated: Optional[datetime] = None
        if participants is not None:
            self._set_records(participants, next_id)

    # Persistence hooks

    def _reload(self):
        """Refresh in-memory state from durable storage"""

    def _persist(self):
        """Write in-memory state to durable storage"""

    # Internal helpers

    def _set_records(self, participants: Iterable[Participant], next_id: Optional[int] = None):
        self._participants = {p.id: p for p in participants}
        self._next_id = next_id if next_id is not None else self._recomputed_next_id()

    def _recomputed_next_id(self) -> int:
        return max(self._participants.keys(), default=0) + 1

    def _touch(self):
        self._last_updated = utc_now()
        self._persist()

    def _find_certificate(self, certificate_number: str, exclude_id: Optional[int] = None) -> Optional[Participant]:
        key = normalize_certificate_number(certificate_number)
        for participant in self._participants.values():
            if participant.id != exclude_id and participant.certificate_key == key:
                return participant
        return None

    # RecordStore operations

    async def get_all(self) -> ServiceResult:
        self._reload()
        records = newest_first(self._participants.values())
        logger.debug(f"{self.kind.upper()}: Retrieved {len(records)} participants")
        return records_result(records)

    async def find_by_id(self, record_id: int) -> ServiceResult:
        self._reload()
        participant = self._participants.get(record_id)
        return records_result([participant] if participant else [])

    async def find_by_certificate(self, certificate_number: str) -> ServiceResult:
        self._reload()
        participant = self._find_certificate(certificate_number)
        logger.info(
            f"{self.kind.upper()}: Search for '{certificate_number.strip()}': "
            f"{participant.name if participant else 'not found'}"
        )
        return records_result([participant] if participant else [])

    async def add(self, participant: ParticipantCreate) -> ServiceResult:
        self._reload()
        if self._find_certificate(participant.certificate_number):
            return duplicate_result(participant.certificate_number)

        now = utc_now()
        record = Participant(
            id=self._next_id,
            created_at=now,
            updated_at=now,
            **participant.model_dump()
        )
        self._participants[record.id] = record
        self._next_id += 1
        self._touch()

        logger.info(f"{self.kind.upper()}: Added participant {record.certificate_number} (id {record.id})")
        return records_result([record])

    async def update(self, record_id: int, changes: Dict[str, Any]) -> ServiceResult:
        self._reload()
        existing = self._participants.get(record_id)
        if existing is None:
            return not_found_result(record_id)

        try:
            fields = writable_changes(changes)
        except ValidationError as e:
            return validation_result(str(e))
        if not fields:
            return validation_result("No fields provided to update")

        updated = Participant.model_validate({**existing.model_dump(), **fields, "updated_at": utc_now()})

        if self._find_certificate(updated.certificate_number, exclude_id=record_id):
            return duplicate_result(updated.certificate_number)

        self._participants[record_id] = updated
        self._touch()

        logger.info(f"{self.kind.upper()}: Updated participant {updated.certificate_number} (id {record_id})")
        return records_result([updated])

    async def delete(self, record_id: int) -> ServiceResult:
        self._reload()
        removed = self._participants.pop(record_id, None)
        if removed is None:
            return not_found_result(record_id)
        self._touch()

        logger.info(f"{self.kind.upper()}: Deleted participant {removed.certificate_number} (id {record_id})")
        return records_result([removed])

    # Mirror operations used by the sync coordinator

    async def put(self, record: Participant) -> ServiceResult:
        """Insert or replace a record under its own id, then reseed the id counter"""
        self._reload()
        self._participants[record.id] = record
        self._next_id = self._recomputed_next_id()
        self._touch()
        return records_result([record])

    async def replace_all(self, records: List[Participant]) -> ServiceResult:
        """Overwrite the whole registry with an authoritative snapshot"""
        self._set_records(records)
        self._touch()
        logger.info(f"{self.kind.upper()}: Mirrored {len(records)} participants, next id {self._next_id}")
        return records_result(newest_first(self._participants.values()))

    def get_stats(self) -> Dict[str, Any]:
        self._reload()
        return {
            "total": len(self._participants),
            "last_updated": self._last_updated.isoformat() if self._last_updated else None,
            "next_id": self._next_id,
        }

    @property
    def next_id(self) -> int:
        return self._next_id
