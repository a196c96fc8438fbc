from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    """Organization scope of a single request.

    Built per request from headers and passed explicitly to the services;
    there is no process-wide tenant state.
    """

    company_id: str
    experience_id: Optional[str] = None
