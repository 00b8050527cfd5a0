"""
Bulk participant import from CSV text
"""

import csv
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from pydantic import ValidationError

from config.settings import IMPORT_ERROR_LIMIT
from models.participant import ImportReport, ParticipantCreate
from services.sync_coordinator import SyncCoordinator
from utils.helpers import parse_issue_date

logger = logging.getLogger(__name__)

COLUMNS = ("certificate_number", "name", "issue_date", "class_name")
HEADER_KEYWORDS = ("certificate", "nomor")
DELIMITERS = (",", ";", "\t")


@dataclass
class ParsedImport:
    """Rows ready to submit plus the reasons other rows were skipped"""
    rows: List[Tuple[int, ParticipantCreate]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _detect_delimiter(line: str) -> str:
    """The accepted delimiter occurring most often in the first line; comma on a tie"""
    return max(DELIMITERS, key=line.count)


def _is_header(columns: List[str]) -> bool:
    first_row = ",".join(columns).lower()
    return any(keyword in first_row for keyword in HEADER_KEYWORDS)


def parse_participant_csv(text: str) -> ParsedImport:
    """
    Parse `certificate_number,name,issue_date,class_name` rows.

    Columns may be separated by commas, semicolons or tabs; the separator
    is taken from the first row.

    Blank lines are ignored and an optional header row is detected by
    keyword. Rows with fewer than four columns, an empty required value or
    an unreadable date are skipped with a reason instead of failing the
    whole file.
    """
    parsed = ParsedImport()
    lines = [(number, line) for number, line in enumerate(text.splitlines(), start=1) if line.strip()]
    if not lines:
        return parsed

    reader = csv.reader((line for _, line in lines), delimiter=_detect_delimiter(lines[0][1]))
    for index, ((line_number, _), raw_columns) in enumerate(zip(lines, reader)):
        columns = [column.strip().replace('"', "") for column in raw_columns]

        if index == 0 and _is_header(columns):
            continue

        if len(columns) < len(COLUMNS):
            parsed.skipped.append(f"line {line_number}: expected {len(COLUMNS)} columns, got {len(columns)}")
            continue

        values = dict(zip(COLUMNS, columns))
        missing = [name for name in COLUMNS if not values[name]]
        if missing:
            parsed.skipped.append(f"line {line_number}: missing {', '.join(missing)}")
            continue

        issue_date = parse_issue_date(values["issue_date"])
        if issue_date is None:
            parsed.skipped.append(f"line {line_number}: invalid issue date '{values['issue_date']}'")
            continue

        try:
            participant = ParticipantCreate(**{**values, "issue_date": issue_date})
        except ValidationError as e:
            parsed.skipped.append(f"line {line_number}: {e.errors()[0].get('msg', 'invalid row')}")
            continue

        parsed.rows.append((line_number, participant))

    return parsed


async def import_participants(
    coordinator: SyncCoordinator,
    text: str,
    error_limit: int = IMPORT_ERROR_LIMIT
) -> ImportReport:
    """Submit every valid row through the coordinator's add, one at a time"""
    parsed = parse_participant_csv(text)
    report = ImportReport(skipped_count=len(parsed.skipped))
    messages = list(parsed.skipped)

    logger.info(f"IMPORT: {len(parsed.rows)} valid rows, {len(parsed.skipped)} skipped")

    for line_number, participant in parsed.rows:
        result = await coordinator.add(participant)
        if result.success:
            report.success_count += 1
            report.imported.append(result.first)
        else:
            report.error_count += 1
            messages.append(f"{participant.certificate_number}: {result.error}")

    report.total_errors = len(messages)
    report.errors = messages[:error_limit]

    logger.info(
        f"IMPORT: Finished - {report.success_count} added, {report.error_count} failed, "
        f"{report.skipped_count} skipped"
    )
    return report
