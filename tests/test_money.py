from decimal import Decimal

from app.core.money import percent_of, round_money, sum_money, to_decimal, to_minor_units


def test_round_money_rounds_half_up():
    assert round_money(Decimal("0.125")) == Decimal("0.13")
    assert round_money(Decimal("0.124")) == Decimal("0.12")
    assert round_money(Decimal("2.675")) == Decimal("2.68")


def test_to_decimal_avoids_float_artifacts():
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")
    assert to_decimal(None) == Decimal("0")


def test_percent_of_is_unrounded():
    assert percent_of(Decimal("33.33"), Decimal("15")) == Decimal("4.9995")


def test_sum_money_is_exact():
    assert sum_money(["0.10"] * 10) == Decimal("1.00")


def test_to_minor_units():
    assert to_minor_units(Decimal("198.00")) == 19800
    assert to_minor_units(Decimal("0.015")) == 2
