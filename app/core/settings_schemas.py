from typing import Optional
from datetime import datetime
import uuid
from pydantic import BaseModel, Field


class CardPolicyBase(BaseModel):
    """Base schema for the card policy"""
    card_validity_days: Optional[int] = Field(
        None,
        ge=1,
        le=3650,
        description="Days a card stays valid after activation"
    )
    grace_period_days: Optional[int] = Field(
        None,
        ge=0,
        le=365,
        description="Additional days before an expired card is suspended"
    )
    auto_suspend: Optional[bool] = Field(
        None,
        description="Automatically suspend expired cards"
    )
    payment_reminder_days: Optional[int] = Field(
        None,
        ge=0,
        le=365,
        description="Days before expiry to remind about payment"
    )


class CardPolicyUpdate(CardPolicyBase):
    """Schema for updating the card policy - all fields optional"""
    pass


class CardPolicyResponse(BaseModel):
    """Schema for card policy response"""
    id: int
    card_validity_days: int
    grace_period_days: int
    auto_suspend: bool
    payment_reminder_days: int
    created_at: datetime
    updated_at: datetime
    updated_by_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}
