"""
Caller Model

Identity of the user performing an operation, supplied by the authentication provider.
"""

from pydantic import BaseModel
from pydantic import ConfigDict

from ccas_api.workflow.enums import Role


class Caller(BaseModel):
    """Authenticated caller (email + role). Trusted as given."""

    model_config = ConfigDict(frozen=True)

    email: str
    role: Role
