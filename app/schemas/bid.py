from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.enums.rejection_reason import RejectionReason
from app.schemas.auction import AuctionResponse, AuctionSnapshot


class BidRecord(BaseModel):
    """Принятая ставка. Никогда не изменяется после создания."""
    id: str
    auction_id: str
    bidder_id: str
    amount: Decimal = Field(..., gt=0)
    created_at: datetime
    sequence: int = Field(..., ge=1)
    is_auto: bool = False

    model_config = ConfigDict(frozen=True, from_attributes=True)


class AutoBidRecord(BaseModel):
    auction_id: str
    bidder_id: str
    max_amount: Decimal = Field(..., gt=0)
    is_active: bool = True
    created_at: datetime

    model_config = ConfigDict(frozen=True, from_attributes=True)


class BidDecision(BaseModel):
    """Outcome of the admissibility check: accepted, or rejected with a reason"""
    accepted: bool
    reason: Optional[RejectionReason] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def accept(cls) -> "BidDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "BidDecision":
        return cls(accepted=False, reason=reason)


class BidResult(BaseModel):
    """Typed outcome of a bid submission as seen by the caller"""
    accepted: bool
    reason: Optional[RejectionReason] = None
    auction: Optional[AuctionSnapshot] = None
    bid: Optional[BidRecord] = None
    auto_bid: Optional[AutoBidRecord] = None

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None


class BidCreate(BaseModel):
    """Schema for placing a bid"""
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Bid amount, must be positive")


class AutoBidCreate(BaseModel):
    """Schema for registering an auto-bid"""
    max_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Maximum amount the system may bid on your behalf")


class BidResponse(BaseModel):
    """Schema for bid response"""
    id: str
    auction_id: str
    bidder_id: str
    amount: Decimal
    created_at: datetime
    sequence: int
    is_auto: bool

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("amount")
    def serialize_amount(self, v: Decimal, _info):
        return float(v)


class BidHistoryResponse(BaseModel):
    """Schema for paginated bid history"""
    total: int
    page: int
    page_size: int
    bids: list[BidResponse]


class PlaceBidResponse(BaseModel):
    bid: BidResponse
    auction: AuctionResponse


class AutoBidResponse(BaseModel):
    auction_id: str
    bidder_id: str
    max_amount: Decimal
    is_active: bool
    created_at: datetime
    auction: Optional[AuctionResponse] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("max_amount")
    def serialize_amount(self, v: Decimal, _info):
        return float(v)


class RejectionDetail(BaseModel):
    code: RejectionReason
    message: str

    @classmethod
    def from_reason(cls, reason: RejectionReason) -> "RejectionDetail":
        return cls(code=reason, message=reason.message)
