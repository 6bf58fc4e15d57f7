"""
DurRecord model representing one DUR claim line (ephemeral).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

QUARTERS = ("Q1", "Q2", "Q3", "Q4")
MIN_YEAR = 2020
MAX_YEAR = 2099

# Largest values the target columns hold: INTEGER, BIGINT and NUMERIC(10, 2)
MAX_INTEGER = 2**31 - 1
MAX_BIGINT = 2**63 - 1
MAX_AMOUNT = Decimal("99999999.99")


class RecordStatus(str, Enum):
    """Processing status of a record, mirrored in the STATUS column."""

    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    PROCESSED = "PROCESSED"
    ERROR = "ERROR"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Period(BaseModel):
    """Reporting quarter a record belongs to."""

    quarter: Literal["Q1", "Q2", "Q3", "Q4"]
    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)

    def __str__(self) -> str:
        return f"{self.year}-{self.quarter}"


class DurRecord(BaseModel):
    """
    A single Drug Utilization Review claim line.

    Built by RecordValidator from one source row and discarded once the
    batch holding it has been written. Field aliases are the canonical
    field names used by the header alias table.

    Attributes:
        identifier: Record id (defaults to the data-row number)
        member_id: Member the claim belongs to (required)
        national_drug_code: NDC, at most 11 characters
        period: Reporting quarter and year
        batch_tag: Load run the record was written by
        status: PENDING -> VALIDATED -> PROCESSED | ERROR
        extra_data: Opaque payload stored as-is
    """

    identifier: int = Field(..., ge=1, le=MAX_BIGINT)
    member_id: str = Field(..., min_length=1, max_length=50, alias="memberId")
    prescription_number: str | None = Field(None, max_length=50, alias="prescriptionNumber")
    national_drug_code: str | None = Field(None, max_length=11, alias="nationalDrugCode")
    service_date: date | None = Field(None, alias="serviceDate")
    provider_id: str | None = Field(None, max_length=50, alias="providerId")
    pharmacy_id: str | None = Field(None, max_length=50, alias="pharmacyId")
    drug_name: str | None = Field(None, max_length=255, alias="drugName")
    drug_strength: str | None = Field(None, max_length=50, alias="drugStrength")
    quantity: Decimal | None = Field(None, ge=0, le=MAX_AMOUNT)
    days_supply: int | None = Field(None, ge=0, le=MAX_INTEGER, alias="daysSupply")
    paid_amount: Decimal | None = Field(None, ge=0, le=MAX_AMOUNT, alias="paidAmount")
    alert_code: str | None = Field(None, max_length=10, alias="alertCode")
    alert_description: str | None = Field(None, max_length=500, alias="alertDescription")
    period: Period
    batch_tag: str | None = Field(None, max_length=50, alias="batchTag")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")
    status: RecordStatus = RecordStatus.PENDING
    error_message: str | None = Field(None, max_length=1000, alias="errorMessage")
    extra_data: str | None = Field(None, alias="extraData")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "identifier": 1,
                "memberId": "MBR000001",
                "prescriptionNumber": "RX482913",
                "nationalDrugCode": "00093015001",
                "serviceDate": "2024-02-14",
                "drugName": "Atorvastatin",
                "drugStrength": "20mg",
                "quantity": "30.00",
                "daysSupply": 30,
                "paidAmount": "12.47",
                "period": {"quarter": "Q1", "year": 2024},
                "batchTag": "CSV_20240401_093000",
                "status": "VALIDATED",
            }
        }

    @property
    def quarter(self) -> str:
        return self.period.quarter

    @property
    def year(self) -> int:
        return self.period.year

    def mark_processed(self) -> None:
        self.status = RecordStatus.PROCESSED
        self.updated_at = utc_now()

    def mark_failed(self, message: str) -> None:
        self.status = RecordStatus.ERROR
        self.error_message = message[:1000]
        self.updated_at = utc_now()
