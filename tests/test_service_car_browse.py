"""Browse filters and pagination over active listings."""

from drively.services.car_service import CarService
from drively.services.common import paginate
from drively.services.rental_service import RentalService
from drively.utils.constants import DiscountType


def _fleet(owner, make_car):
    return {
        "vios": make_car(owner, "Toyota", "Vios", 1800, location="Makati City"),
        "montero": make_car(owner, "Mitsubishi", "Montero", 3500, seats=7, fuel_type="diesel",
                            location="Quezon City"),
        "city": make_car(owner, "Honda", "City", 1500, transmission="manual", location="Cebu City"),
        "hidden": make_car(owner, "Ford", "Ranger", 2500, is_active=False),
    }


def _ids(result):
    return {c["id"] for c in result["data"]}


def test_only_active_cars_are_listed(parties, make_car):
    fleet = _fleet(parties["owner"], make_car)
    ids = _ids(CarService.browse())
    assert fleet["hidden"] not in ids
    assert fleet["vios"] in ids


def test_search_is_partial_and_case_insensitive(parties, make_car):
    fleet = _fleet(parties["owner"], make_car)
    assert _ids(CarService.browse({"search": "mont"})) == {fleet["montero"]}
    assert _ids(CarService.browse({"search": "cebu"})) == {fleet["city"]}


def test_exact_and_range_filters(parties, make_car):
    fleet = _fleet(parties["owner"], make_car)
    assert _ids(CarService.browse({"transmission": "manual"})) == {fleet["city"]}
    assert _ids(CarService.browse({"fuel_type": "diesel"})) == {fleet["montero"]}
    assert _ids(CarService.browse({"seats": "6"})) == {fleet["montero"]}
    cheap = _ids(CarService.browse({"min_price": "1500", "max_price": "1800"}))
    assert fleet["vios"] in cheap and fleet["city"] in cheap and fleet["montero"] not in cheap


def test_invalid_price_filters_are_ignored(parties, make_car):
    _fleet(parties["owner"], make_car)
    assert CarService.browse({"min_price": "cheap"})["count"] == 4  # three + the parties car


def test_date_window_hides_booked_cars(parties, make_car, future):
    _fleet(parties["owner"], make_car)
    RentalService.create_booking(parties["renter"], {
        "car_id": parties["car"], "owner_id": parties["owner"], "renter_id": parties["renter"],
        "start_datetime": future(24), "end_datetime": future(72), "total_amount": 2000,
    })
    ids = _ids(CarService.browse({"start_date": future(48), "end_date": future(96)}))
    assert parties["car"] not in ids
    ids = _ids(CarService.browse({"start_date": future(72), "end_date": future(96)}))
    assert parties["car"] in ids


def test_active_discounts_are_described(parties):
    CarService.add_pricing_rule(parties["owner"], parties["car"], 3, DiscountType.PERCENTAGE, 10)
    row = CarService.browse()["data"][0]
    assert row["active_discounts"] == ["3+ days: 10% off"]
    assert row["image"] is None


def test_pagination_math():
    rows = list(range(23))
    first = paginate(rows, 1, 10)
    assert first["data"] == list(range(10))
    assert first["count"] == 23 and first["pages"] == 3
    assert paginate(rows, 3, 10)["data"] == [20, 21, 22]
    assert paginate(rows, 9, 10)["data"] == []
    assert paginate(rows, "junk", 10)["page"] == 1
    assert paginate([], 1, 10)["pages"] == 1


def test_browse_pages_with_configured_size(app, parties, make_car):
    for i in range(12):
        make_car(parties["owner"], model=f"Model {i}")
    app.config["ITEMS_PER_PAGE"] = 5
    result = CarService.browse(page=3)
    assert result["count"] == 13
    assert result["pages"] == 3
    assert len(result["data"]) == 3
