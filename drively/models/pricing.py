from dataclasses import dataclass
from typing import Iterable, Optional

from drively.utils.constants import DiscountType


@dataclass
class PricingRule:
    """
    Duration discount attached to a car. Applies once the rental lasts at
    least `min_days`; subclasses decide how much comes off the base price.
    """
    id: str
    car_id: str
    min_days: int
    discount_value: float
    is_active: bool = True
    rule_type: str = "duration_discount"

    discount_type = ""

    def applies_to(self, days: int) -> bool:
        return self.is_active and self.min_days <= days

    def discount_on(self, base_price: float) -> float:
        return 0.0

    def describe(self) -> str:
        return f"{self.min_days}+ days"


class PercentageDiscountRule(PricingRule):
    discount_type = DiscountType.PERCENTAGE

    def discount_on(self, base_price: float) -> float:
        return base_price * (self.discount_value / 100.0)

    def describe(self) -> str:
        return f"{self.min_days}+ days: {self.discount_value:g}% off"


class FixedDiscountRule(PricingRule):
    discount_type = DiscountType.FIXED

    def discount_on(self, base_price: float) -> float:
        return self.discount_value

    def describe(self) -> str:
        return f"{self.min_days}+ days: ₱{self.discount_value:,.2f} off"


@dataclass
class PriceCalculation:
    base_price: float
    discount: float
    discount_percentage: float
    final_price: float
    applied_rule: Optional[PricingRule] = None

    def to_dict(self) -> dict:
        return {
            "base_price": round(self.base_price, 2),
            "discount": round(self.discount, 2),
            "discount_percentage": round(self.discount_percentage, 2),
            "final_price": round(self.final_price, 2),
            "applied_rule_id": self.applied_rule.id if self.applied_rule else None,
        }


def calculate_rental_price(daily_rate: float, rental_days: int,
                           pricing_rules: Optional[Iterable[PricingRule]] = None) -> PriceCalculation:
    """
    Price a rental and apply the best duration discount.
    The best rule is the active one with the highest qualifying `min_days`;
    the final price never goes below zero.
    """
    base_price = float(daily_rate) * rental_days
    applicable = [r for r in (pricing_rules or []) if r.applies_to(rental_days)]
    if not applicable:
        return PriceCalculation(base_price, 0.0, 0.0, base_price)

    best = max(applicable, key=lambda r: r.min_days)
    discount = best.discount_on(base_price)
    final_price = max(0.0, base_price - discount)
    pct = (discount / base_price) * 100 if base_price > 0 else 0.0
    return PriceCalculation(base_price, discount, pct, final_price, best)
