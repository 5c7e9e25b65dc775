"""
Details Models

Field contracts for Plant Code and Company Code request details.

Canonical field names are camelCase (the wire format and the names used by change
detection); database columns are the snake_case equivalents.
"""

from decimal import Decimal
from decimal import InvalidOperation
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel
from pydantic.alias_generators import to_snake

from ccas_api.errors import ValidationError
from ccas_api.workflow.enums import RequestType

PLANT_FIELDS: Tuple[str, ...] = (
    "companyCode",
    "gstNumber",
    "gstCertificate",
    "plantCode",
    "nameOfPlant",
    "addressOfPlant",
    "purchaseOrganization",
    "nameOfPurchaseOrganization",
    "salesOrganization",
    "nameOfSalesOrganization",
    "profitCenter",
    "nameOfProfitCenter",
    "costCenters",
    "nameOfCostCenters",
    "projectCode",
    "projectCodeDescription",
    "storageLocationCode",
    "storageLocationDescription",
)

COMPANY_FIELDS: Tuple[str, ...] = (
    "companyCode",
    "nameOfCompanyCode",
    "shareholdingPercentage",
    "gstNumber",
    "cinNumber",
    "panNumber",
    "gstCertificate",
    "cin",
    "pan",
    "segment",
    "nameOfSegment",
)

FIELDS_BY_TYPE: Dict[RequestType, Tuple[str, ...]] = {
    RequestType.PLANT: PLANT_FIELDS,
    RequestType.COMPANY: COMPANY_FIELDS,
}

REQUIRED_FIELDS: Dict[RequestType, Tuple[str, ...]] = {
    RequestType.PLANT: ("companyCode", "plantCode", "nameOfPlant"),
    RequestType.COMPANY: ("companyCode", "nameOfCompanyCode"),
}

DETAILS_TABLES: Dict[RequestType, str] = {
    RequestType.PLANT: "plant_code_details",
    RequestType.COMPANY: "company_code_details",
}

DECIMAL_FIELDS = {"shareholdingPercentage"}


def column_name(field: str) -> str:
    """Database column for a canonical field name (nameOfPlant -> name_of_plant)."""
    return to_snake(field)


def field_name(column: str) -> str:
    """Canonical field name for a database column (name_of_plant -> nameOfPlant)."""
    return to_camel(column)


def _parse_percentage(value: Any) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"shareholdingPercentage must be a number, got {value!r}")
    if not parsed.is_finite() or parsed < 0 or parsed > 100:
        raise ValidationError(f"shareholdingPercentage must be between 0 and 100, got {value!r}")
    if parsed != parsed.quantize(Decimal("0.01")):
        raise ValidationError(f"shareholdingPercentage allows at most two decimals, got {value!r}")
    return parsed.quantize(Decimal("0.01"))


def normalize_details(request_type: RequestType, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate submitted details and return them keyed by canonical field name.

    Unknown keys are dropped, strings are stripped and empty strings become None.

    Raises:
        ValidationError: a required field is missing/empty or a number is malformed
    """
    normalized: Dict[str, Any] = {}
    for name in FIELDS_BY_TYPE[request_type]:
        value = fields.get(name)
        if name in DECIMAL_FIELDS:
            normalized[name] = _parse_percentage(value)
            continue
        if isinstance(value, str):
            value = value.strip() or None
        elif value is not None:
            value = str(value)
        normalized[name] = value

    missing = [name for name in REQUIRED_FIELDS[request_type] if not normalized.get(name)]
    if missing:
        raise ValidationError(f"Missing required {request_type.value} fields: {', '.join(missing)}")

    return normalized


def build_title(request_type: RequestType, fields: Mapping[str, Any], is_change_request: bool = False) -> str:
    """Human-readable request title, regenerated whenever details change."""
    if request_type == RequestType.PLANT:
        title = f"Plant Code: {fields.get('plantCode') or ''} - {fields.get('nameOfPlant') or ''}"
    else:
        title = f"Company Code: {fields.get('companyCode') or ''} - {fields.get('nameOfCompanyCode') or ''}"
    return f"Change Request - {title}" if is_change_request else title


# ════════════════════════════════════════════════════════════════════════════
# Request Bodies
# ════════════════════════════════════════════════════════════════════════════


class _DetailsFields(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_fields(self) -> Dict[str, Any]:
        """Field values keyed by canonical (camelCase) name."""
        return self.model_dump(by_alias=True)


class PlantCodeFields(_DetailsFields):
    """Plant code details as submitted by the requestor."""

    company_code: Optional[str] = None
    gst_number: Optional[str] = None
    gst_certificate: Optional[str] = None
    plant_code: Optional[str] = None
    name_of_plant: Optional[str] = None
    address_of_plant: Optional[str] = None
    purchase_organization: Optional[str] = None
    name_of_purchase_organization: Optional[str] = None
    sales_organization: Optional[str] = None
    name_of_sales_organization: Optional[str] = None
    profit_center: Optional[str] = None
    name_of_profit_center: Optional[str] = None
    cost_centers: Optional[str] = None
    name_of_cost_centers: Optional[str] = None
    project_code: Optional[str] = None
    project_code_description: Optional[str] = None
    storage_location_code: Optional[str] = None
    storage_location_description: Optional[str] = None


class CompanyCodeFields(_DetailsFields):
    """Company code details as submitted by the requestor."""

    company_code: Optional[str] = None
    name_of_company_code: Optional[str] = None
    shareholding_percentage: Optional[Union[Decimal, str]] = None
    gst_number: Optional[str] = None
    cin_number: Optional[str] = None
    pan_number: Optional[str] = None
    gst_certificate: Optional[str] = None
    cin: Optional[str] = None
    pan: Optional[str] = None
    segment: Optional[str] = None
    name_of_segment: Optional[str] = None
