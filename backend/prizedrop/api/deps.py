from typing import Optional

from fastapi import Header, HTTPException, Request

from prizedrop.config import settings
from prizedrop.context import TenantContext
from prizedrop.services.giveaway_service import GiveawayService


def get_giveaway_service(request: Request) -> GiveawayService:
    return request.app.state.giveaway_service


def get_tenant_context(
    x_company_id: str = Header(...),
    x_experience_id: Optional[str] = Header(default=None),
) -> TenantContext:
    return TenantContext(company_id=x_company_id, experience_id=x_experience_id)


def verify_callback_secret(x_callback_secret: Optional[str] = Header(default=None)) -> None:
    """Only the scheduler may trigger lifecycle callbacks when a secret is configured"""
    if settings.CALLBACK_SECRET and x_callback_secret != settings.CALLBACK_SECRET:
        raise HTTPException(status_code=401, detail="Invalid callback secret")
