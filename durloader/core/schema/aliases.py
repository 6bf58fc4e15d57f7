"""
Static header alias table.

Maps every canonical field to the header spellings accepted for it.
Comparison is case-insensitive; the table is resolved once per source by
SchemaMapper and never consulted per row.
"""

from enum import Enum


class CanonicalField(str, Enum):
    """Canonical record fields, in positional (headerless) column order."""

    IDENTIFIER = "identifier"
    MEMBER_ID = "memberId"
    PRESCRIPTION_NUMBER = "prescriptionNumber"
    NATIONAL_DRUG_CODE = "nationalDrugCode"
    SERVICE_DATE = "serviceDate"
    PROVIDER_ID = "providerId"
    PHARMACY_ID = "pharmacyId"
    DRUG_NAME = "drugName"
    DRUG_STRENGTH = "drugStrength"
    QUANTITY = "quantity"
    DAYS_SUPPLY = "daysSupply"
    PAID_AMOUNT = "paidAmount"
    ALERT_CODE = "alertCode"
    ALERT_DESCRIPTION = "alertDescription"
    QUARTER = "quarter"
    YEAR = "year"
    BATCH_TAG = "batchTag"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    STATUS = "status"
    ERROR_MESSAGE = "errorMessage"
    EXTRA_DATA = "extraData"


REQUIRED_FIELDS = (CanonicalField.MEMBER_ID, CanonicalField.QUARTER, CanonicalField.YEAR)


DEFAULT_ALIASES: dict[CanonicalField, tuple[str, ...]] = {
    CanonicalField.IDENTIFIER: ("Id", "ID", "RecordId", "Record_Id"),
    CanonicalField.MEMBER_ID: ("MemberId", "Member_Id", "MemberID", "Member ID"),
    CanonicalField.PRESCRIPTION_NUMBER: (
        "PrescriptionNumber", "Prescription_Number", "PrescriptionID", "Prescription ID", "RxNumber",
    ),
    CanonicalField.NATIONAL_DRUG_CODE: ("Ndc", "NDC", "NationalDrugCode", "National_Drug_Code"),
    CanonicalField.SERVICE_DATE: ("ServiceDate", "Service_Date", "DateOfService", "Date_Of_Service"),
    CanonicalField.PROVIDER_ID: ("ProviderId", "Provider_Id", "ProviderID", "Provider ID", "PrescriberID"),
    CanonicalField.PHARMACY_ID: ("PharmacyId", "Pharmacy_Id", "PharmacyID", "Pharmacy ID"),
    CanonicalField.DRUG_NAME: ("DrugName", "Drug_Name", "DrugBrandName", "Drug Brand Name", "ProductName"),
    CanonicalField.DRUG_STRENGTH: ("DrugStrength", "Drug_Strength", "Strength", "Dosage"),
    CanonicalField.QUANTITY: ("Quantity", "QtyDispensed", "Qty_Dispensed", "QuantityDispensed"),
    CanonicalField.DAYS_SUPPLY: ("DaysSupply", "Days_Supply", "DaySupply", "Day_Supply"),
    CanonicalField.PAID_AMOUNT: ("PaidAmount", "Paid_Amount", "AmountPaid", "Amount_Paid", "TotalPaid"),
    CanonicalField.ALERT_CODE: ("DurAlertCode", "DUR_Alert_Code", "AlertCode", "Alert_Code"),
    CanonicalField.ALERT_DESCRIPTION: (
        "DurAlertDescription", "DUR_Alert_Description", "AlertDescription", "Alert_Description",
    ),
    CanonicalField.QUARTER: ("Quarter", "Qtr", "Q"),
    CanonicalField.YEAR: ("Year", "Yr", "LoadYear", "Load_Year"),
    CanonicalField.BATCH_TAG: ("BatchId", "Batch_Id", "BatchID", "Batch ID", "LoadBatch"),
    CanonicalField.CREATED_AT: ("CreatedDate", "Created_Date", "CreateDate", "Create_Date"),
    CanonicalField.UPDATED_AT: ("UpdatedDate", "Updated_Date", "UpdateDate", "Update_Date"),
    CanonicalField.STATUS: ("Status", "RecordStatus", "Record_Status"),
    CanonicalField.ERROR_MESSAGE: ("ErrorMessage", "Error_Message", "Error", "ErrorText"),
    CanonicalField.EXTRA_DATA: ("AdditionalData", "Additional_Data", "ExtraData", "Extra_Data", "Notes"),
}


def normalize_header(value: str) -> str:
    """Normalize a header cell for alias comparison."""
    return value.replace("\ufeff", "").strip().casefold()


def build_lookup(
    aliases: dict[CanonicalField, tuple[str, ...]] | None = None,
) -> dict[str, CanonicalField]:
    """
    Invert an alias table into normalized spelling -> canonical field.

    Raises:
        ValueError: If one spelling is claimed by two canonical fields
    """
    aliases = aliases or DEFAULT_ALIASES
    lookup: dict[str, CanonicalField] = {}
    for field, spellings in aliases.items():
        # The canonical name itself is always accepted
        for spelling in (field.value, *spellings):
            key = normalize_header(spelling)
            owner = lookup.get(key)
            if owner is not None and owner != field:
                raise ValueError(
                    f"Alias '{spelling}' maps to both {owner.value} and {field.value}"
                )
            lookup[key] = field
    return lookup
