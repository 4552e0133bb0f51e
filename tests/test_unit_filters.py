from drively.utils.filters import fmt_currency, fmt_iso_local, fmt_label


def test_iso_is_shown_in_manila_time(app):
    assert fmt_iso_local("2030-11-01T02:00:00+00:00") == "01/11/2030 10:00"
    assert fmt_iso_local("2030-11-01T16:30:00Z", use_12h=True) == "02 Nov 2030, 12:30 AM"


def test_date_only_and_bad_values():
    assert fmt_iso_local("2030-11-01") == "01/11/2030"
    assert fmt_iso_local(None) == ""
    assert fmt_iso_local("soon") == "soon"


def test_currency_and_label():
    assert fmt_currency(1250) == "₱1,250.00"
    assert fmt_currency(None) == "₱0.00"
    assert fmt_label("car_owner") == "Car Owner"
