"""
Workflow Models Module

Pydantic models shared by the workflow core:
- Caller identity
- Plant Code / Company Code details field contracts
"""

from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.models.details import COMPANY_FIELDS
from ccas_api.workflow.models.details import FIELDS_BY_TYPE
from ccas_api.workflow.models.details import PLANT_FIELDS
from ccas_api.workflow.models.details import REQUIRED_FIELDS
from ccas_api.workflow.models.details import CompanyCodeFields
from ccas_api.workflow.models.details import PlantCodeFields
from ccas_api.workflow.models.details import build_title
from ccas_api.workflow.models.details import normalize_details

__all__ = [
    "Caller",
    "COMPANY_FIELDS",
    "FIELDS_BY_TYPE",
    "PLANT_FIELDS",
    "REQUIRED_FIELDS",
    "CompanyCodeFields",
    "PlantCodeFields",
    "build_title",
    "normalize_details",
]
