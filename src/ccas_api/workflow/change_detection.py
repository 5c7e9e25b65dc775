"""
Change Detection

Compares two complete details snapshots of the same request type and reports which
fields differ, with human-readable labels for approvers.

Used at submission time (prior latest version vs. submitted fields, stored in the
history log) and at display time (two newest stored versions).
"""

import re
from decimal import Decimal
from decimal import InvalidOperation
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Set

from pydantic import BaseModel
from pydantic import Field

from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.models.details import DECIMAL_FIELDS
from ccas_api.workflow.models.details import FIELDS_BY_TYPE

EMPTY = ""

LABEL_OVERRIDES: Dict[str, str] = {
    "gstNumber": "GST Number",
    "gstCertificate": "GST Certificate",
    "cinNumber": "CIN Number",
    "panNumber": "PAN Number",
    "cin": "CIN",
    "pan": "PAN",
    "shareholdingPercentage": "Shareholding Percentage (%)",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class FieldChange(BaseModel):
    """One changed field."""

    field: str
    label: str
    old_value: str = Field(serialization_alias="oldValue")
    new_value: str = Field(serialization_alias="newValue")


class ChangeSet(BaseModel):
    """Result of comparing two snapshots."""

    has_changes: bool = False
    changes: List[FieldChange] = Field(default_factory=list)

    @property
    def changed_field_names(self) -> Set[str]:
        return {change.field for change in self.changes}

    def to_metadata(self) -> List[Dict[str, str]]:
        """Changes as JSON-ready dicts (camelCase keys) for history metadata."""
        return [change.model_dump(by_alias=True) for change in self.changes]


def field_label(field: str) -> str:
    """
    Human label for a canonical field name.

    nameOfPlant -> "Name Of Plant", unless LABEL_OVERRIDES has an entry.
    """
    if field in LABEL_OVERRIDES:
        return LABEL_OVERRIDES[field]
    spaced = _CAMEL_BOUNDARY.sub(" ", field)
    return spaced[:1].upper() + spaced[1:]


def display_value(value: Any) -> str:
    """Value as shown to approvers: the stored text, or "" for None."""
    return EMPTY if value is None else str(value)


def normalize_value(field: str, value: Any) -> str:
    """
    Normalize a field value for comparison.

    None and "" both map to the empty sentinel. Decimal fields (shareholdingPercentage)
    compare by value so that 12.50 and "12.5" are equal; every other field compares by
    its text, so codes like "10.10" and "10.1" stay distinct.
    """
    text = display_value(value)
    if text == EMPTY or field not in DECIMAL_FIELDS:
        return text
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        return text
    if not number.is_finite():
        return text
    return _format_number(number)


def _format_number(number: Decimal) -> str:
    normalized = number.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def compare(
    old_snapshot: Optional[Mapping[str, Any]],
    new_snapshot: Optional[Mapping[str, Any]],
    request_type: RequestType,
) -> ChangeSet:
    """
    Compare two details snapshots field by field.

    A missing snapshot (None or empty) is a baseline: there is nothing to compare
    against, so no changes are reported. A field is changed when its normalized values
    differ; a field empty on both sides never counts. Reported values are the stored text.

    Args:
        old_snapshot: Prior version, keyed by canonical field name
        new_snapshot: Newer version, keyed by canonical field name
        request_type: Determines the canonical field list

    Returns:
        ChangeSet in canonical field order
    """
    if not old_snapshot or not new_snapshot:
        return ChangeSet()

    changes: List[FieldChange] = []
    for field in FIELDS_BY_TYPE[RequestType(request_type)]:
        old_value = old_snapshot.get(field)
        new_value = new_snapshot.get(field)
        if normalize_value(field, old_value) == normalize_value(field, new_value):
            continue
        changes.append(
            FieldChange(
                field=field,
                label=field_label(field),
                old_value=display_value(old_value),
                new_value=display_value(new_value),
            )
        )

    return ChangeSet(has_changes=bool(changes), changes=changes)


def format_changes_summary(changes: List[FieldChange]) -> str:
    """One line per change: Label: "old" → "new"."""
    lines = []
    for change in changes:
        old_value = change.old_value if change.old_value else "(empty)"
        new_value = change.new_value if change.new_value else "(empty)"
        lines.append(f'{change.label}: "{old_value}" → "{new_value}"')
    return "\n".join(lines)
