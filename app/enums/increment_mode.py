from enum import Enum


class IncrementMode(str, Enum):
    flat = "flat"
    percent_of_reserve = "percent_of_reserve"
    none = "none"
