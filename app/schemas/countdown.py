from pydantic import BaseModel, ConfigDict, Field


class RemainingTime(BaseModel):
    """Time left until an auction ends, split into whole units"""
    days: int = Field(0, ge=0)
    hours: int = Field(0, ge=0, lt=24)
    minutes: int = Field(0, ge=0, lt=60)
    seconds: int = Field(0, ge=0, lt=60)
    expired: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def total_seconds(self) -> int:
        return ((self.days * 24 + self.hours) * 60 + self.minutes) * 60 + self.seconds
