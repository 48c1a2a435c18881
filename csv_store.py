"""
Flat-file donation store.

Donations live in a comma-delimited text file, one record per line after a
fixed header row. Records are only ever appended; nothing here rewrites or
removes a line.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles

from schemas import DonationCreate, DonationRecord

logger = logging.getLogger(__name__)

DELIMITER = ","
DELIMITER_SUBSTITUTE = ";"
COLUMNS = ("id", "name", "amount", "date", "location", "paymentId", "email")
HEADER = DELIMITER.join(COLUMNS) + "\n"

# id, name, amount, date and location must be present; paymentId and email are optional
MIN_COLUMNS = 5

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class DonationStoreError(Exception):
    """Raised when the backing file cannot be read or written."""

    pass


def sanitize_field(value: Any) -> str:
    """Replace the column delimiter so a text value cannot shift columns."""
    if not value:
        return ""
    return str(value).replace(DELIMITER, DELIMITER_SUBSTITUTE)


def _raw_field(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def parse_leading_int(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    if not match:
        return None
    return int(match.group(0))


def parse_leading_float(text: str) -> Optional[float]:
    match = _LEADING_FLOAT.match(text)
    if not match:
        return None
    return float(match.group(0))


def parse_line(line: str, position: int) -> Optional[DonationRecord]:
    """Parse one data line, or return None when it has too few columns.

    ``position`` is the line's index in the file (the header is 0) and
    stands in for the id when the id column is empty, zero or unparsable.
    """
    values = line.split(DELIMITER)
    if len(values) < MIN_COLUMNS:
        return None

    def column(index: int) -> str:
        return values[index] if index < len(values) else ""

    return DonationRecord(
        id=parse_leading_int(values[0]) or position,
        name=values[1],
        amount=parse_leading_float(values[2]) or 0,
        date=values[3],
        location=values[4],
        payment_id=column(5),
        email=column(6),
    )


def stored_fields(donation: DonationCreate) -> Dict[str, str]:
    """Column values exactly as they are written to the file."""
    return {
        "id": _raw_field(donation.id),
        "name": sanitize_field(donation.name),
        "amount": _raw_field(donation.amount),
        "date": _raw_field(donation.date),
        "location": sanitize_field(donation.location),
        "paymentId": sanitize_field(donation.payment_id),
        "email": sanitize_field(donation.email),
    }


def format_line(donation: DonationCreate) -> str:
    """Build the newline-terminated line appended for a donation."""
    fields = stored_fields(donation)
    return DELIMITER.join(fields[column] for column in COLUMNS) + "\n"


class DonationStore:
    """Append-only donation records backed by a single text file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def initialize(self) -> bool:
        """Create the backing file with its header row if it does not exist.

        Returns True when the file was created. An existing file is left
        untouched, header included.
        """
        if self.path.exists():
            logger.info(f"Donation file found: {self.path}")
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "x", encoding="utf-8") as f:
                await f.write(HEADER)
        except FileExistsError:
            return False
        except OSError as e:
            logger.exception(f"Error creating donation file {self.path}")
            raise DonationStoreError(f"Failed to create {self.path}") from e

        logger.info(f"Donation file created with headers: {self.path}")
        return True

    async def list_records(self) -> List[DonationRecord]:
        """Return every well-formed record in file order.

        Lines with fewer than five columns are skipped without error.
        """
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                text = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.exception(f"Error reading donation file {self.path}")
            raise DonationStoreError("Failed to read donations") from e

        records = []
        lines = text.strip().split("\n")
        for position, raw_line in enumerate(lines):
            if position == 0:
                continue
            line = raw_line.strip()
            if not line:
                continue
            record = parse_line(line, position)
            if record is not None:
                records.append(record)

        logger.info(f"Fetched {len(records)} donations")
        return records

    async def append_record(self, donation: DonationCreate) -> None:
        """Append one record as a single write. No locking is applied."""
        line = format_line(donation)
        try:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line)
        except OSError as e:
            logger.exception(f"Error saving donation to {self.path}")
            raise DonationStoreError("Failed to save donation") from e

        logger.info(f"Donation saved: id={donation.id} name={donation.name} amount={donation.amount}")
