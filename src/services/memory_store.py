"""
Process memory store - in-process participant registry used when no cache file is available
"""

import logging
from datetime import date
from typing import List

from models.participant import Participant
from services.base_store import LocalRecordStore
from utils.helpers import utc_now

logger = logging.getLogger(__name__)

SAMPLE_PARTICIPANTS = [
    ("CERT-2024-001", "John Doe", date(2024, 1, 15), "Web Development Fundamentals"),
    ("CERT-2024-002", "Jane Smith", date(2024, 1, 20), "React Advanced Course"),
    ("CERT-2024-003", "Ahmad Rahman", date(2024, 2, 1), "Digital Marketing Strategy"),
]


def sample_participants() -> List[Participant]:
    """The fixed rows a fresh memory store starts with"""
    now = utc_now()
    return [
        Participant(
            id=index,
            certificate_number=certificate_number,
            name=name,
            issue_date=issue_date,
            class_name=class_name,
            created_at=now,
            updated_at=now,
        )
        for index, (certificate_number, name, issue_date, class_name) in enumerate(SAMPLE_PARTICIPANTS, start=1)
    ]


class MemoryStore(LocalRecordStore):
    """Participant store that lives only as long as the process"""

    kind = "memory"

    def __init__(self, seed: bool = True):
        super().__init__(sample_participants() if seed else [])
        logger.info(f"MEMORY: Storage initialized with {len(self._participants)} participants")
