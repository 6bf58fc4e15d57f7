"""
Field rules for DUR claim rows.

FIELD_TYPES drives parsing; DUR_RULES lists the constraint rules in the
order their rejection reasons are reported. Each rule has the same shape
the validators are built from: rule_name, rule_type, field_name and
optional parameters.
"""

from typing import Any

from durloader.core.models.dur_record import (
    MAX_AMOUNT,
    MAX_BIGINT,
    MAX_INTEGER,
    MAX_YEAR,
    MIN_YEAR,
    QUARTERS,
    RecordStatus,
)
from durloader.core.schema.aliases import CanonicalField as F

FIELD_TYPES: dict[F, str] = {
    F.IDENTIFIER: "integer",
    F.SERVICE_DATE: "date",
    F.QUANTITY: "decimal",
    F.DAYS_SUPPLY: "integer",
    F.PAID_AMOUNT: "decimal",
    F.YEAR: "integer",
    F.CREATED_AT: "datetime",
    F.UPDATED_AT: "datetime",
}

MAX_LENGTHS: dict[F, int] = {
    F.MEMBER_ID: 50,
    F.PRESCRIPTION_NUMBER: 50,
    F.NATIONAL_DRUG_CODE: 11,
    F.PROVIDER_ID: 50,
    F.PHARMACY_ID: 50,
    F.DRUG_NAME: 255,
    F.DRUG_STRENGTH: 50,
    F.ALERT_CODE: 10,
    F.ALERT_DESCRIPTION: 500,
    F.BATCH_TAG: 50,
    F.ERROR_MESSAGE: 1000,
}


def _rule(rule_type: str, field: F, **parameters: Any) -> dict[str, Any]:
    return {
        "rule_name": f"{field.value}_{rule_type}",
        "rule_type": rule_type,
        "field_name": field.value,
        "parameters": parameters,
    }


DUR_RULES: list[dict[str, Any]] = [
    _rule("required_field", F.MEMBER_ID),
    _rule("required_field", F.QUARTER),
    _rule("allowed_values", F.QUARTER, values=QUARTERS),
    _rule("required_field", F.YEAR),
    _rule("range", F.YEAR, min=MIN_YEAR, max=MAX_YEAR, message="year out of range"),
    _rule("range", F.IDENTIFIER, min=0, max=MAX_BIGINT),
    _rule("range", F.QUANTITY, min=0, max=MAX_AMOUNT),
    _rule("range", F.DAYS_SUPPLY, min=0, max=MAX_INTEGER),
    _rule("range", F.PAID_AMOUNT, min=0, max=MAX_AMOUNT),
    _rule("allowed_values", F.STATUS, values=[s.value for s in RecordStatus]),
    *(_rule("max_length", field, max_length=limit) for field, limit in MAX_LENGTHS.items()),
]
