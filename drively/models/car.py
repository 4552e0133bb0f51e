from dataclasses import dataclass, field
from typing import Iterable, Optional

from drively.models.pricing import PricingRule, PriceCalculation, calculate_rental_price


@dataclass
class Car:
    """
    Listed vehicle. `daily_rate` is the public price per day before any
    duration discount.
    """
    id: str
    owner_id: str
    make: str
    model: str
    year: int
    daily_rate: float
    is_active: bool = True
    plate_number: str = ""
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    seats: Optional[int] = None
    location: Optional[str] = None
    features: list[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{self.year} {self.make} {self.model}".strip()

    def price_for_days(self, days: int, rules: Optional[Iterable[PricingRule]] = None) -> PriceCalculation:
        return calculate_rental_price(self.daily_rate, days, rules)
