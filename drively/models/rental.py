import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def rental_days(start: datetime, end: datetime) -> int:
    """Whole days billed for [start, end); any started day counts, minimum one."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_DAY))


@dataclass
class Rental:
    """A booking of one car by one renter over the half-open interval [start, end)."""
    id: str
    car_id: str
    owner_id: str
    renter_id: Optional[str]
    start: datetime
    end: datetime
    status: str
    total_amount: float = 0.0

    @property
    def days(self) -> int:
        return rental_days(self.start, self.end)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """
        Check overlap between [self.start, self.end) and [start, end).
        Back-to-back bookings (one ends exactly when the other starts) do not overlap.
        """
        return self.start < end and start < self.end
