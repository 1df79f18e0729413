import uuid
from tortoise import fields, models


class AutoBid(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    auction = fields.ForeignKeyField("models.Auction", related_name="auto_bids", on_delete=fields.CASCADE)
    bidder_id = fields.CharField(max_length=255)
    max_amount = fields.DecimalField(max_digits=12, decimal_places=2)
    is_active = fields.BooleanField(default=True)

    # Registration time from the service clock; breaks ties between equal maxima
    created_at = fields.DatetimeField()
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "auto_bids"
        unique_together = (("auction", "bidder_id"),)
        ordering = ["created_at"]

    def __str__(self):
        return f"AutoBid {self.bidder_id} on {self.auction_id} up to {self.max_amount}"
