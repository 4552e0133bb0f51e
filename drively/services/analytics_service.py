from __future__ import annotations

from collections import Counter

from drively.services.common import _now, _store, rental_from_dict
from drively.utils.constants import RentalStatus, VerificationStatus


class AnalyticsService:
    """Aggregations for the per-role dashboards."""

    @staticmethod
    def admin_summary():
        store = _store()
        rentals = store.select("rentals")
        status_cnt = Counter(r.get("status") for r in rentals)
        role_cnt = Counter(role for p in store.select("profiles") for role in (p.get("roles") or []))
        revenue = sum(float(r.get("total_amount") or 0) for r in rentals
                      if r.get("status") == RentalStatus.COMPLETED)
        return {
            "totals": {
                "users": store.count("profiles"),
                "cars": store.count("cars"),
                "active_rentals": status_cnt[RentalStatus.CONFIRMED] + status_cnt[RentalStatus.ACTIVE],
                "pending_verifications": store.count("verification_documents",
                                                     status=VerificationStatus.PENDING),
                "revenue": round(revenue, 2),
            },
            "rentals_by_status": dict(status_cnt),
            "users_by_role": [{"role": k, "count": v} for k, v in role_cnt.items()],
        }

    @staticmethod
    def owner_summary(owner_id: str):
        store = _store()
        rentals = store.select("rentals", owner_id=owner_id)
        earnings = sum(float(r.get("total_amount") or 0) for r in rentals
                       if r.get("status") == RentalStatus.COMPLETED)
        return {
            "cars": store.count("cars", owner_id=owner_id),
            "active_cars": store.count("cars", owner_id=owner_id, is_active=True),
            "active_rentals": sum(1 for r in rentals
                                  if r.get("status") in (RentalStatus.CONFIRMED, RentalStatus.ACTIVE)),
            "pending_requests": sum(1 for r in rentals if r.get("status") == RentalStatus.PENDING),
            "earnings": round(earnings, 2),
        }

    @staticmethod
    def renter_summary(renter_id: str):
        store = _store()
        now = _now()
        rentals = store.select("rentals", renter_id=renter_id, order_by="start_datetime")
        upcoming = []
        for r in rentals:
            parsed = rental_from_dict(r)
            # malformed rows are left off the dashboard
            if parsed is None:
                continue
            if parsed.status in (RentalStatus.PENDING, RentalStatus.CONFIRMED) and parsed.end > now:
                upcoming.append(r)
        return {
            "total_bookings": len(rentals),
            "upcoming": upcoming[:5],
            "active": [r for r in rentals if r.get("status") == RentalStatus.ACTIVE],
            "completed": sum(1 for r in rentals if r.get("status") == RentalStatus.COMPLETED),
        }
