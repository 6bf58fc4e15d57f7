"""
Synthetic DUR claim rows for demos and load testing.
"""

import csv
import random
from collections.abc import Iterator
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

SAMPLE_HEADER = [
    "Id", "MemberId", "PrescriptionNumber", "NDC", "ServiceDate", "ProviderId",
    "PharmacyId", "DrugName", "DrugStrength", "Quantity", "DaysSupply", "PaidAmount",
    "DurAlertCode", "DurAlertDescription", "Quarter", "Year", "BatchId",
]


def current_period(today: date | None = None) -> tuple[str, int]:
    """Quarter and year of the given (or current) date."""
    today = today or date.today()
    return f"Q{(today.month - 1) // 3 + 1}", today.year


def generate_rows(
    count: int,
    quarter: str | None = None,
    year: int | None = None,
    batch_tag: str | None = None,
    seed: int | None = None,
    today: date | None = None,
) -> Iterator[list[str]]:
    """
    Yield `count` sample rows in SAMPLE_HEADER order.

    About one row in five carries a DUR alert. A fixed seed gives the same
    rows on every call.
    """
    rng = random.Random(seed)
    today = today or date.today()
    default_quarter, default_year = current_period(today)
    quarter = quarter or default_quarter
    year = year or default_year

    for i in range(1, count + 1):
        has_alert = rng.randint(1, 10) <= 2
        paid = Decimal(rng.randint(0, 50000)) / 100
        yield [
            str(i),
            f"MBR{i:06d}",
            f"RX{rng.randint(100000, 999999)}",
            f"{rng.randint(10000, 99999):05d}{rng.randint(1000, 9999):04d}{rng.randint(10, 99):02d}",
            (today - timedelta(days=rng.randint(1, 90))).isoformat(),
            f"PRV{rng.randint(1000, 9999)}",
            f"PHM{rng.randint(100, 999)}",
            f"Drug{rng.randint(1, 100)}",
            f"{rng.randint(5, 100)}mg",
            str(rng.randint(30, 90)),
            str(rng.randint(30, 90)),
            f"{paid:.2f}",
            f"D{rng.randint(1, 5)}" if has_alert else "",
            "Drug interaction detected" if has_alert else "",
            quarter,
            str(year),
            batch_tag or "",
        ]


def write_sample_csv(
    output_path: str | Path,
    count: int,
    quarter: str | None = None,
    year: int | None = None,
    batch_tag: str | None = None,
    delimiter: str = ",",
    seed: int | None = None,
) -> int:
    """
    Write a sample file with a header row.

    Returns:
        Number of data rows written
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    written = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(SAMPLE_HEADER)
        for row in generate_rows(count, quarter, year, batch_tag, seed):
            writer.writerow(row)
            written += 1
    return written
