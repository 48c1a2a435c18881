from io import BytesIO
from typing import List, Tuple

import pandas as pd

from csv_store import COLUMNS
from schemas import DonationRecord, DonationStats

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def leaderboard(records: List[DonationRecord]) -> List[DonationRecord]:
    """Largest donations first; equal amounts keep their stored order."""
    return sorted(records, key=lambda record: record.amount, reverse=True)


def donation_stats(records: List[DonationRecord]) -> DonationStats:
    ranked = leaderboard(records)
    return DonationStats(
        total_raised=round(sum(record.amount for record in records), 2),
        donor_count=len(records),
        top_donation=ranked[0] if ranked else None,
    )


def donations_dataframe(records: List[DonationRecord]) -> pd.DataFrame:
    rows = [record.model_dump(by_alias=True) for record in records]
    return pd.DataFrame(rows, columns=list(COLUMNS))


def export_donations(records: List[DonationRecord], format: str = "csv") -> Tuple[BytesIO, str]:
    """Render the donations as a CSV or Excel file held in memory.

    Returns the buffer, rewound, and its media type.
    """
    df = donations_dataframe(records)
    output = BytesIO()

    if format == "excel":
        df.to_excel(output, index=False, engine='openpyxl')
    else:
        df.to_csv(output, index=False)

    output.seek(0)
    return output, EXPORT_MEDIA_TYPES.get(format, EXPORT_MEDIA_TYPES["csv"])
