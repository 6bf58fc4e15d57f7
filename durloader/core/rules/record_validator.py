"""
RecordValidator: turns one row's raw cells into a DurRecord or a list of
rejection reasons.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError as ModelValidationError

from durloader.core.models import DurRecord, Period, RecordStatus, RowResult
from durloader.core.schema import CanonicalField, SchemaMapper
from durloader.core.validators import (
    AllowedValuesValidator,
    BaseValidator,
    LengthValidator,
    RangeValidator,
    RequiredFieldValidator,
    TypeValidator,
    ValidationError,
)
from durloader.observability.logger import get_logger

from .dur_rules import DUR_RULES, FIELD_TYPES

FIELD_COUNT_MISMATCH = "field count mismatch"

# Canonical field -> DurRecord attribute, for everything except the period
RECORD_ATTRIBUTES: dict[CanonicalField, str] = {
    CanonicalField.MEMBER_ID: "member_id",
    CanonicalField.PRESCRIPTION_NUMBER: "prescription_number",
    CanonicalField.NATIONAL_DRUG_CODE: "national_drug_code",
    CanonicalField.SERVICE_DATE: "service_date",
    CanonicalField.PROVIDER_ID: "provider_id",
    CanonicalField.PHARMACY_ID: "pharmacy_id",
    CanonicalField.DRUG_NAME: "drug_name",
    CanonicalField.DRUG_STRENGTH: "drug_strength",
    CanonicalField.QUANTITY: "quantity",
    CanonicalField.DAYS_SUPPLY: "days_supply",
    CanonicalField.PAID_AMOUNT: "paid_amount",
    CanonicalField.ALERT_CODE: "alert_code",
    CanonicalField.ALERT_DESCRIPTION: "alert_description",
    CanonicalField.BATCH_TAG: "batch_tag",
    CanonicalField.UPDATED_AT: "updated_at",
    CanonicalField.ERROR_MESSAGE: "error_message",
    CanonicalField.EXTRA_DATA: "extra_data",
}


class RecordValidator:
    """
    Validates source rows against the DUR field rules.

    Every rule is evaluated on its own, so a row breaking several rules
    reports all of them. Rejections are returned, never raised; use
    RowResult.unwrap() to get an exception instead.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "range": RangeValidator,
        "max_length": LengthValidator,
        "allowed_values": AllowedValuesValidator,
    }

    def __init__(
        self,
        mapper: SchemaMapper,
        validate_data: bool = True,
        rules: list[dict[str, Any]] | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Args:
            mapper: Column mapping resolved from the source header
            validate_data: Run constraint rules; when False only parse
                failures and short rows are rejected
            rules: Constraint rules (defaults to DUR_RULES)
            logger: Logger for rejection diagnostics
        """
        self.mapper = mapper
        self.validate_data = validate_data
        self.logger = logger or get_logger("durloader.validator")

        self.parsers = {
            field: TypeValidator(field.value, {"expected_type": expected})
            for field, expected in FIELD_TYPES.items()
        }
        self.validators: list[BaseValidator] = self._build_validators(
            DUR_RULES if rules is None else rules
        )

    def _build_validators(self, rules: list[dict[str, Any]]) -> list[BaseValidator]:
        validators = []
        for rule in rules:
            if not rule.get("enabled", True):
                continue

            validator_class = self.VALIDATOR_REGISTRY.get(rule["rule_type"])
            if validator_class is None:
                raise ValueError(f"Unknown rule type: {rule['rule_type']}")

            try:
                validators.append(validator_class(rule["field_name"], rule.get("parameters", {})))
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule['rule_name']}': {e}") from e
        return validators

    def validate(
        self,
        line_number: int,
        fields: Sequence[str],
        raw_text: str = "",
        source_line: int | None = None,
    ) -> RowResult:
        """
        Validate one source row.

        Args:
            line_number: Data-row number, also the default record identifier
            fields: Raw cells of the row
            raw_text: Row text as read, kept for the error report
            source_line: Physical line the row starts on

        Returns:
            RowResult holding either the record or the rejection reasons
        """
        if len(fields) <= self.mapper.max_index:
            return self._reject(line_number, [FIELD_COUNT_MISMATCH], raw_text, source_line)

        raw = self.mapper.extract(fields)
        reasons: list[str] = []
        unparsed: set[str] = set()
        values: dict[str, Any] = {}

        for field in CanonicalField:
            parser = self.parsers.get(field)
            if parser is None:
                values[field.value] = raw[field]
                continue
            try:
                values[field.value] = parser.coerce(raw[field])
            except ValidationError as e:
                reasons.append(e.message)
                unparsed.add(field.value)
                values[field.value] = None

        if self.validate_data:
            for validator in self.validators:
                if validator.field_name in unparsed:
                    continue
                try:
                    validator.validate(values[validator.field_name], values)
                except ValidationError as e:
                    if e.message not in reasons:
                        reasons.append(e.message)

        if reasons:
            return self._reject(line_number, reasons, raw_text, source_line)

        try:
            record = self._build_record(line_number, values)
        except ModelValidationError as e:
            reasons = [f"invalid {'.'.join(str(p) for p in err['loc'])}" for err in e.errors()]
            return self._reject(line_number, reasons, raw_text, source_line)

        return RowResult.accepted(line_number, record, raw_text=raw_text, source_line=source_line)

    def _build_record(self, line_number: int, values: dict[str, Any]) -> DurRecord:
        data: dict[str, Any] = {
            attribute: values[field.value] for field, attribute in RECORD_ATTRIBUTES.items()
        }

        identifier = values[CanonicalField.IDENTIFIER.value]
        data["identifier"] = identifier if identifier else line_number

        status = values[CanonicalField.STATUS.value]
        statuses = {s.value for s in RecordStatus}
        data["status"] = RecordStatus(status) if status in statuses else RecordStatus.VALIDATED

        created_at = values[CanonicalField.CREATED_AT.value]
        if created_at is not None:
            data["created_at"] = created_at

        quarter = values[CanonicalField.QUARTER.value]
        year = values[CanonicalField.YEAR.value]

        if not self.validate_data:
            data["period"] = Period.model_construct(quarter=quarter, year=year)
            return DurRecord.model_construct(**data)

        data["period"] = Period(quarter=quarter, year=year)
        return DurRecord(**data)

    def _reject(
        self, line_number: int, reasons: list[str], raw_text: str, source_line: int | None
    ) -> RowResult:
        self.logger.debug(
            f"Rejected row {line_number}: {'; '.join(reasons)}",
            extra={"line_number": line_number, "reasons": reasons},
        )
        return RowResult.rejected(line_number, reasons, raw_text=raw_text, source_line=source_line)
