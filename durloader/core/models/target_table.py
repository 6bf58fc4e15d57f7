"""
Target table descriptor: table name, ordered columns and per-column types.

The descriptor is store-agnostic; the SQL type names are what the bulk
writer casts each bound array to.
"""

from typing import Any

from pydantic import BaseModel, Field

from .dur_record import DurRecord


class ColumnSpec(BaseModel):
    """
    One target column.

    Attributes:
        name: Column name in the store
        sql_type: Element type the column array is cast to
        attribute: Dotted DurRecord attribute path feeding the column
        nullable: Whether the column accepts NULL
    """

    name: str = Field(..., min_length=1)
    sql_type: str = Field(..., min_length=1)
    attribute: str = Field(..., min_length=1)
    nullable: bool = True

    def value_of(self, record: DurRecord) -> Any:
        value: Any = record
        for part in self.attribute.split("."):
            value = getattr(value, part)
        # Enums are stored by value
        return getattr(value, "value", value)


class TargetTable(BaseModel):
    """Fixed, versioned column list of a target table."""

    name: str = Field(..., min_length=1)
    version: int = 1
    columns: list[ColumnSpec] = Field(..., min_length=1)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> ColumnSpec:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(name)


DUR_QUARTERLY_LOAD = TargetTable(
    name="dur_quarterly_load",
    version=1,
    columns=[
        ColumnSpec(name="id", sql_type="bigint", attribute="identifier", nullable=False),
        ColumnSpec(name="member_id", sql_type="varchar", attribute="member_id", nullable=False),
        ColumnSpec(name="prescription_number", sql_type="varchar", attribute="prescription_number"),
        ColumnSpec(name="ndc", sql_type="varchar", attribute="national_drug_code"),
        ColumnSpec(name="service_date", sql_type="date", attribute="service_date"),
        ColumnSpec(name="provider_id", sql_type="varchar", attribute="provider_id"),
        ColumnSpec(name="pharmacy_id", sql_type="varchar", attribute="pharmacy_id"),
        ColumnSpec(name="drug_name", sql_type="varchar", attribute="drug_name"),
        ColumnSpec(name="drug_strength", sql_type="varchar", attribute="drug_strength"),
        ColumnSpec(name="quantity", sql_type="numeric", attribute="quantity"),
        ColumnSpec(name="days_supply", sql_type="integer", attribute="days_supply"),
        ColumnSpec(name="paid_amount", sql_type="numeric", attribute="paid_amount"),
        ColumnSpec(name="dur_alert_code", sql_type="varchar", attribute="alert_code"),
        ColumnSpec(name="dur_alert_description", sql_type="varchar", attribute="alert_description"),
        ColumnSpec(name="quarter", sql_type="varchar", attribute="period.quarter", nullable=False),
        ColumnSpec(name="year", sql_type="integer", attribute="period.year", nullable=False),
        ColumnSpec(name="batch_id", sql_type="varchar", attribute="batch_tag"),
        ColumnSpec(name="created_date", sql_type="timestamptz", attribute="created_at", nullable=False),
        ColumnSpec(name="updated_date", sql_type="timestamptz", attribute="updated_at"),
        ColumnSpec(name="status", sql_type="varchar", attribute="status", nullable=False),
        ColumnSpec(name="error_message", sql_type="varchar", attribute="error_message"),
        ColumnSpec(name="additional_data", sql_type="text", attribute="extra_data"),
    ],
)
