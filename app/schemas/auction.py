from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from app.enums.auction_status import AuctionStatus
from app.schemas.countdown import RemainingTime


class AuctionSnapshot(BaseModel):
    """
    Денормализованное состояние аукциона (лота) на момент чтения.

    current_bid равен стартовой цене, пока ставок нет.
    """
    id: str
    seller_id: str

    # Vehicle
    brand: str
    model: str
    year: int
    vehicle_type: str
    color: str
    mileage: int = 0
    description: str = ""
    images: list[str] = Field(default_factory=list)
    location: Optional[str] = None

    # Pricing
    starting_price: Decimal = Field(..., gt=0)
    reserve_price: Optional[Decimal] = None
    min_increment: Optional[Decimal] = None
    current_bid: Decimal
    bid_count: int = Field(0, ge=0)

    # Lifecycle
    status: AuctionStatus = AuctionStatus.active
    created_at: datetime
    end_time: Optional[datetime] = None
    version: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @model_validator(mode="after")
    def check_invariants(self):
        if self.current_bid < self.starting_price:
            raise ValueError("current_bid cannot be lower than starting_price")
        if self.end_time is not None and self.end_time <= self.created_at:
            raise ValueError("end_time must be after created_at")
        if self.min_increment is not None and self.min_increment <= 0:
            raise ValueError("min_increment must be positive")
        return self

    @property
    def reserve_met(self) -> bool:
        if self.bid_count == 0:
            return False
        return self.reserve_price is None or self.current_bid >= self.reserve_price

    def is_expired(self, now: datetime) -> bool:
        return self.end_time is not None and now >= self.end_time


class AuctionCreate(BaseModel):
    """Schema for listing a vehicle for auction"""
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1886, le=2100)
    vehicle_type: str = Field(..., max_length=50)
    color: str = Field(..., max_length=50)
    mileage: int = Field(0, ge=0)
    description: str = ""
    images: list[str] = Field(default_factory=list)
    location: Optional[str] = Field(None, max_length=255)
    starting_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Starting price, must be positive")
    reserve_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    min_increment: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    end_time: Optional[datetime] = None


class AuctionStatusUpdate(BaseModel):
    """Schema for an explicit status change by the seller"""
    status: AuctionStatus


class AuctionResponse(BaseModel):
    """Schema for auction response"""
    id: str
    seller_id: str
    brand: str
    model: str
    year: int
    vehicle_type: str
    color: str
    mileage: int
    description: str
    images: list[str]
    location: Optional[str]
    starting_price: Decimal
    reserve_price: Optional[Decimal]
    min_increment: Optional[Decimal]
    current_bid: Decimal
    bid_count: int
    reserve_met: bool
    status: AuctionStatus
    created_at: datetime
    end_time: Optional[datetime]
    time_remaining: Optional[RemainingTime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("starting_price", "current_bid")
    def serialize_amount(self, v: Decimal, _info):
        return float(v)

    @field_serializer("reserve_price", "min_increment")
    def serialize_optional_amount(self, v: Optional[Decimal], _info):
        return float(v) if v is not None else None


class AuctionListResponse(BaseModel):
    """Schema for paginated auction list"""
    total: int
    page: int
    page_size: int
    auctions: list[AuctionResponse]
