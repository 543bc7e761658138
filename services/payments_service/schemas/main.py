import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# COMMISSION SCHEMAS
# ============================================================================


class CommissionRateUpdate(BaseModel):
    commission_rate: Decimal = Field(..., ge=0, le=1)
    effective_from: Optional[datetime] = None


class CommissionRateResponse(BaseModel):
    commission_rate: Decimal
    version: int
    effective_from: Optional[datetime] = None


class CommissionRateVersionResponse(BaseModel):
    id: uuid.UUID
    version: int
    rate: Decimal
    effective_from: datetime
    created_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# STRIPE CONNECT SCHEMAS
# ============================================================================


class ConnectLinkResponse(BaseModel):
    url: Optional[str] = None
    message: Optional[str] = None


class ConnectStatusResponse(BaseModel):
    connected: bool
    account_id: Optional[str] = None
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    onboarding_completed: bool = False


class WebhookAck(BaseModel):
    received: bool = True
    outcome: Optional[str] = None
