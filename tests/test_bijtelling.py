from datetime import date

import pytest
from hypothesis import given, strategies as st

import bijtelling
from bijtelling import (
    ThresholdPair, annual_benefit, bijtelling_to_dict, blended_rate, calculate_bijtelling,
    calculate_vehicle_bijtelling, describe_percentage, get_rule_for_year,
)
from constants import BIJTELLING_RULES
from errors import InvalidVehicleDataError
from vehicle import Classification, FuelCategory, VehicleFacts

DET_2021 = date(2021, 3, 15)


# =============================================================================
# 60-MAANDENTERMIJN
# =============================================================================


@pytest.mark.parametrize("on", [date(2026, 3, 14), date(2026, 4, 14)])
def test_electric_2021_locked_before_protection_end(on):
    result = calculate_bijtelling(DET_2021, FuelCategory.ELECTRIC, 38000, on=on)

    assert result.protected
    assert result.protection_end_date == date(2026, 4, 15)
    assert result.percentage == ThresholdPair(low_rate=12, high_rate=22, threshold=40000)
    assert result.effective_percentage == pytest.approx(12.0)
    assert result.gross_annual_benefit == pytest.approx(4560)
    assert result.regime_label == "2021"


@pytest.mark.parametrize("on", [date(2026, 4, 15), date(2026, 5, 1)])
def test_electric_2021_uses_current_regime_after_protection_end(on):
    result = calculate_bijtelling(DET_2021, FuelCategory.ELECTRIC, 38000, on=on)

    assert not result.protected
    assert result.percentage == 22
    assert result.effective_percentage == pytest.approx(22.0)
    assert result.gross_annual_benefit == pytest.approx(8360)
    assert "60-maandentermijn verlopen" in result.rule_applied


def test_petrol_2016_switches_to_current_rate_after_lock():
    det = date(2016, 5, 1)

    locked = calculate_bijtelling(det, FuelCategory.PETROL, 30000, on=date(2021, 5, 31))
    assert locked.percentage == 25

    expired = calculate_bijtelling(det, FuelCategory.PETROL, 30000, on=date(2021, 6, 1))
    assert expired.percentage == 22


def test_electric_before_2017_is_zero_while_locked():
    result = calculate_bijtelling(date(2015, 9, 1), FuelCategory.ELECTRIC, 50000, on=date(2018, 1, 1))

    assert result.percentage == 0
    assert result.gross_annual_benefit == 0


# =============================================================================
# DREMPELS
# =============================================================================


def test_threshold_blend_2023():
    result = calculate_bijtelling(date(2023, 2, 1), FuelCategory.ELECTRIC, 45000, on=date(2025, 6, 1))

    # 30.000 * 16% + 15.000 * 22% = 8.100
    assert result.effective_percentage == pytest.approx(18.0)
    assert result.gross_annual_benefit == pytest.approx(8100)


def test_threshold_blend_2019():
    result = calculate_bijtelling(date(2019, 1, 10), FuelCategory.ELECTRIC, 60000, on=date(2023, 6, 1))

    assert result.effective_percentage == pytest.approx(7.0)
    assert result.gross_annual_benefit == pytest.approx(4200)


def test_price_below_threshold_gets_low_rate():
    result = calculate_bijtelling(date(2022, 6, 1), FuelCategory.ELECTRIC, 30000, on=date(2024, 1, 1))

    assert result.effective_percentage == pytest.approx(16.0)


def test_without_catalog_price_reports_low_rate():
    result = calculate_bijtelling(date(2022, 6, 1), FuelCategory.ELECTRIC, None, on=date(2024, 1, 1))

    assert result.effective_percentage == 16.0
    assert result.gross_annual_benefit == 0


def test_blended_rate_and_annual_benefit_helpers():
    pair = ThresholdPair(low_rate=8, high_rate=22, threshold=45000)

    assert blended_rate(pair, 90000) == pytest.approx(15.0)
    assert annual_benefit(pair, 90000) == pytest.approx(13500)
    assert blended_rate(22, 90000) == 22.0
    assert annual_benefit(22, 0) == 0


def test_describe_percentage():
    assert describe_percentage(ThresholdPair(16, 22, 30000)) == "16% tot €30.000, 22% daarboven"
    assert describe_percentage(22) == "22%"


# =============================================================================
# BRANDSTOF
# =============================================================================


def test_hydrogen_keeps_17_percent_from_2026():
    on = date(2026, 6, 1)
    det = date(2026, 2, 1)

    assert calculate_bijtelling(det, FuelCategory.HYDROGEN, 70000, on=on).percentage == 17
    assert calculate_bijtelling(det, FuelCategory.ELECTRIC, 70000, on=on).percentage == 22
    assert calculate_bijtelling(det, FuelCategory.PETROL, 70000, on=on).percentage == 22


def test_hydrogen_before_2026_follows_electric_column():
    result = calculate_bijtelling(date(2022, 5, 1), FuelCategory.HYDROGEN, 70000, on=date(2024, 1, 1))

    assert result.percentage == ThresholdPair(16, 22, 35000)


@pytest.mark.parametrize("fuel", [FuelCategory.HYBRID, FuelCategory.PLUGIN_HYBRID, FuelCategory.LPG])
def test_non_electric_fuels_use_standard_rate(fuel):
    result = calculate_bijtelling(date(2022, 5, 1), fuel, 40000, on=date(2024, 1, 1))

    assert result.percentage == 22


def test_unknown_fuel_uses_standard_rate_and_warns(capsys):
    result = calculate_bijtelling(date(2022, 5, 1), "steenkool", 40000, on=date(2024, 1, 1))

    assert result.fuel_category is FuelCategory.UNKNOWN
    assert result.percentage == 22
    assert "[BIJTELLING]" in capsys.readouterr().out


def test_fuel_category_accepts_string_value():
    result = calculate_bijtelling(date(2022, 5, 1), "electric", 30000, on=date(2024, 1, 1))

    assert result.fuel_category is FuelCategory.ELECTRIC


# =============================================================================
# YOUNGTIMER / OLDTIMER
# =============================================================================


def test_youngtimer_boundary_at_15_years():
    det = date(2010, 6, 1)

    before = calculate_bijtelling(det, FuelCategory.PETROL, 20000, on=date(2025, 5, 31))
    assert before.classification is Classification.STANDARD
    assert before.percentage == 22

    on_day = calculate_bijtelling(det, FuelCategory.PETROL, 20000, on=date(2025, 6, 1))
    assert on_day.classification is Classification.YOUNGTIMER
    assert on_day.percentage == 35
    assert on_day.protection_end_date is None


def test_youngtimer_uses_estimated_market_value():
    result = calculate_bijtelling(date(2008, 1, 1), FuelCategory.DIESEL, 20000, on=date(2025, 1, 1))

    assert result.basis == pytest.approx(12000)
    assert result.gross_annual_benefit == pytest.approx(4200)


def test_youngtimer_uses_supplied_market_value():
    result = calculate_bijtelling(
        date(2008, 1, 1), FuelCategory.DIESEL, 20000, on=date(2025, 1, 1), market_value=8000
    )

    assert result.gross_annual_benefit == pytest.approx(2800)


def test_oldtimer_boundary_at_30_years():
    det = date(1990, 6, 1)

    at_30 = calculate_bijtelling(det, FuelCategory.PETROL, 15000, on=date(2020, 6, 1))
    assert at_30.classification is Classification.YOUNGTIMER

    after_30 = calculate_bijtelling(det, FuelCategory.PETROL, 15000, on=date(2020, 6, 2))
    assert after_30.classification is Classification.OLDTIMER
    assert after_30.percentage == 0
    assert after_30.gross_annual_benefit == 0


# =============================================================================
# FOUTEN
# =============================================================================


def test_missing_registration_date_raises():
    with pytest.raises(InvalidVehicleDataError):
        calculate_bijtelling(None, FuelCategory.PETROL, 30000, on=date(2025, 1, 1))


def test_future_registration_date_raises():
    with pytest.raises(InvalidVehicleDataError):
        calculate_bijtelling(date(2025, 2, 1), FuelCategory.PETROL, 30000, on=date(2025, 1, 1))


def test_negative_catalog_price_raises():
    with pytest.raises(InvalidVehicleDataError):
        calculate_bijtelling(date(2022, 2, 1), FuelCategory.PETROL, -1, on=date(2025, 1, 1))


def test_negative_market_value_raises():
    with pytest.raises(InvalidVehicleDataError, match="Dagwaarde"):
        calculate_bijtelling(
            date(2008, 2, 1), FuelCategory.PETROL, 30000, on=date(2025, 1, 1), market_value=-8000
        )


# =============================================================================
# TABEL
# =============================================================================


def test_rule_lookup_is_open_ended():
    assert get_rule_for_year(1985) is BIJTELLING_RULES[0]
    assert get_rule_for_year(2040) is BIJTELLING_RULES[-1]
    assert get_rule_for_year(2024)["label"] == "2023-2024"


def test_rule_table_validation_rejects_gap():
    broken = [dict(rule) for rule in BIJTELLING_RULES]
    del broken[3]

    with pytest.raises(ValueError):
        bijtelling._validate_rules(broken)


def test_rule_table_validation_rejects_incomplete_threshold_row():
    broken = [dict(rule) for rule in BIJTELLING_RULES]
    broken[2]["electric_rate_above_cap"] = None

    with pytest.raises(ValueError):
        bijtelling._validate_rules(broken)


# =============================================================================
# PRESENTATIE
# =============================================================================


def test_bijtelling_to_dict_threshold():
    result = calculate_bijtelling(date(2023, 2, 1), FuelCategory.ELECTRIC, 45000, on=date(2025, 6, 1))
    d = bijtelling_to_dict(result)

    assert d["percentage"] == {"lowRate": 16, "highRate": 22, "threshold": 30000}
    assert d["effectivePercentage"] == 18.0
    assert d["grossAnnualBenefit"] == 8100
    assert d["grossMonthlyBenefit"] == 675
    assert d["protectionEndDate"] == "2028-03-01"
    assert d["classification"] == "standard"
    assert d["fuelCategory"] == "electric"


def test_vehicle_bijtelling_uses_vehicle_facts():
    vehicle = VehicleFacts(
        plate_id="AB123C",
        make="TESLA",
        model="MODEL 3",
        first_registration_date=DET_2021,
        catalog_price=38000,
        fuel_description="Elektriciteit",
    )

    result = calculate_vehicle_bijtelling(vehicle, on=date(2026, 3, 14))

    assert result.gross_annual_benefit == pytest.approx(4560)


# =============================================================================
# EIGENSCHAPPEN
# =============================================================================


@given(
    det=st.dates(min_value=date(1960, 1, 1), max_value=date(2030, 12, 31)),
    days_later=st.integers(min_value=0, max_value=30000),
    fuel=st.sampled_from(list(FuelCategory)),
    price=st.one_of(st.none(), st.integers(min_value=0, max_value=250000)),
)
def test_percentage_in_range_and_deterministic(det, days_later, fuel, price):
    on = date.fromordinal(min(det.toordinal() + days_later, date(2099, 12, 31).toordinal()))

    first = calculate_bijtelling(det, fuel, price, on=on)
    second = calculate_bijtelling(det, fuel, price, on=on)

    assert first == second
    assert 0 <= first.effective_percentage <= 35
    if price:
        assert first.gross_annual_benefit <= price * 0.35 + 1e-6
