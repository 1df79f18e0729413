from tortoise import fields
from tortoise.models import Model


class Bid(Model):
    id = fields.CharField(pk=True, max_length=64)

    auction = fields.ForeignKeyField("models.Auction", related_name="bids", on_delete=fields.CASCADE)
    bidder_id = fields.CharField(max_length=255, index=True)

    amount = fields.DecimalField(max_digits=12, decimal_places=2)
    sequence = fields.IntField()
    is_auto = fields.BooleanField(default=False)

    created_at = fields.DatetimeField()

    class Meta:
        table = "bids"
        # Second line of defence against two commits claiming the same slot
        unique_together = (("auction", "sequence"),)

    async def save(self, *args, **kwargs):
        if self.amount <= 0:
            raise ValueError("Amount must be greater than 0")
        await super().save(*args, **kwargs)
