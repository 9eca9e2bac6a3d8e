from datetime import date
from decimal import Decimal

import pytest

from courier.core.exceptions import UnknownServiceType
from courier.services.booking_service import chargeable_weight_kg
from courier.services.rate_calculator import RateCalculator, expected_delivery, money


def test_express_with_insurance():
    breakdown = RateCalculator().calculate("Express", 2.5, declared_value=5000).rounded()

    assert breakdown.shipping == Decimal("125.00")
    assert breakdown.insurance == Decimal("100.00")
    assert breakdown.cod == Decimal("0.00")
    assert breakdown.fuel_surcharge == Decimal("12.50")
    assert breakdown.subtotal == Decimal("237.50")
    assert breakdown.gst == Decimal("42.75")
    assert breakdown.total == Decimal("280.25")


def test_cod_only_charged_for_cod_bookings():
    calculator = RateCalculator()

    cod = calculator.calculate("Standard", 1, cod_amount=1000, payment_mode="COD")
    prepaid = calculator.calculate("Standard", 1, cod_amount=1000, payment_mode="Prepaid")

    assert cod.cod == Decimal("20.00")
    assert prepaid.cod == Decimal("0")
    assert cod.total > prepaid.total


def test_quote_without_payment_mode_charges_given_cod():
    breakdown = RateCalculator().calculate("Economy", 1, cod_amount=500)
    assert breakdown.cod == Decimal("10.00")


def test_unknown_service_type_falls_back_to_default_rate():
    breakdown = RateCalculator(strict=False).calculate("Hyperloop", 1)
    assert breakdown.base_rate == Decimal("70")
    assert breakdown.shipping == Decimal("80")


def test_unknown_service_type_rejected_in_strict_mode():
    with pytest.raises(UnknownServiceType):
        RateCalculator(strict=True).calculate("Hyperloop", 1)


def test_custom_rate_card():
    calculator = RateCalculator(
        base_rates={"Express": 200},
        per_kg_rate=20,
        fuel_surcharge_rate=0,
        gst_rate=0,
    )
    breakdown = calculator.calculate("Express", 3)
    assert breakdown.total == Decimal("260")


def test_total_is_sum_of_components_before_rounding():
    breakdown = RateCalculator().calculate("Same Day", Decimal("1.333"), declared_value=Decimal("999.99"))
    assert breakdown.subtotal == (
        breakdown.shipping + breakdown.insurance + breakdown.cod + breakdown.fuel_surcharge
    )
    assert breakdown.total == breakdown.subtotal + breakdown.gst


def test_money_rounds_half_up():
    assert money(Decimal("2.345")) == Decimal("2.35")
    assert money(Decimal("2.344")) == Decimal("2.34")
    assert money(None) == Decimal("0.00")


def test_pounds_are_converted_to_kilograms():
    assert chargeable_weight_kg(Decimal("10"), "lb") == Decimal("4.5359237")
    assert chargeable_weight_kg(Decimal("10"), "kg") == Decimal("10")


def test_expected_delivery_by_service():
    booked = date(2026, 10, 19)
    assert expected_delivery("Express", booked) == date(2026, 10, 20)
    assert expected_delivery("Same Day", booked) == booked
    assert expected_delivery("International", booked) == date(2026, 10, 26)
    assert expected_delivery("Unknown", booked) == date(2026, 10, 22)
