from tortoise import fields, models

from app.enums.auction_status import AuctionStatus


class Auction(models.Model):
    """
    Лот аукциона: автомобиль, выставленный продавцом.

    current_bid / bid_count / status / version изменяются только через
    DatabaseAuctionStore.transactionally_update.
    """
    id = fields.CharField(pk=True, max_length=64)
    seller_id = fields.CharField(max_length=255, index=True)

    # Vehicle
    brand = fields.CharField(max_length=100)
    vehicle_model = fields.CharField(max_length=100)
    year = fields.IntField()
    vehicle_type = fields.CharField(max_length=50)
    color = fields.CharField(max_length=50)
    mileage = fields.IntField(default=0)
    description = fields.TextField(default="")
    images = fields.JSONField(default=list)
    location = fields.CharField(max_length=255, null=True)

    # Pricing
    starting_price = fields.DecimalField(max_digits=12, decimal_places=2)
    reserve_price = fields.DecimalField(max_digits=12, decimal_places=2, null=True)
    min_increment = fields.DecimalField(max_digits=12, decimal_places=2, null=True)
    current_bid = fields.DecimalField(max_digits=12, decimal_places=2)
    bid_count = fields.IntField(default=0)

    # Lifecycle
    status = fields.CharEnumField(AuctionStatus, default=AuctionStatus.active, index=True)
    end_time = fields.DatetimeField(null=True, index=True)
    version = fields.IntField(default=0)

    # Timestamps
    created_at = fields.DatetimeField()
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "auctions"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Auction {self.id} - {self.year} {self.brand} {self.vehicle_model} ({self.status})"
