"""
Tests for register date, cost and amount parsing.
"""

from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from services.finance_service import parse_amount
from services.inventory_service import parse_register_date, parse_unit_cost


class TestParseRegisterDate:
    @pytest.mark.parametrize("raw, expected", [
        ("15/03/2024", date(2024, 3, 15)),
        ("1/2/2023", date(2023, 2, 1)),
        ("mar 2024", date(2024, 3, 1)),
        ("ott-23", date(2023, 10, 1)),
        ("DIC.2022", date(2022, 12, 1)),
    ])
    def test_valid_dates(self, raw, expected):
        assert parse_register_date(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "31/02/2024", "boh", "2024"])
    def test_invalid_dates(self, raw):
        assert parse_register_date(raw) is None


class TestParseUnitCost:
    def test_comma_decimal(self):
        assert parse_unit_cost("12,50") == Decimal("12.50")

    def test_empty(self):
        assert parse_unit_cost("") is None
        assert parse_unit_cost(None) is None

    def test_negative(self):
        with pytest.raises(HTTPException) as exc_info:
            parse_unit_cost("-1")
        assert exc_info.value.status_code == 400


class TestParseAmount:
    def test_valid_amounts(self):
        assert parse_amount("80,5") == Decimal("80.50")
        assert parse_amount(120) == Decimal("120.00")

    def test_missing_amount(self):
        with pytest.raises(HTTPException) as exc_info:
            parse_amount("  ")
        assert exc_info.value.detail == "Dati mancanti"

    @pytest.mark.parametrize("raw", ["abc", "0", "-5", "nan"])
    def test_invalid_amounts(self, raw):
        with pytest.raises(HTTPException) as exc_info:
            parse_amount(raw)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Dati non validi"
