"""
Tests for phone and person name normalization, and email placeholders.
"""

import pytest

from utils.name_utils import normalize_person_name
from utils.phone_validator import clean_phone_number, normalize_italian_phone
from utils.template_utils import create_button, extract_placeholders, replace_placeholders


class TestPhoneNormalization:
    def test_clean_phone_number(self):
        assert clean_phone_number("(333) 123-45 67") == "3331234567"
        assert clean_phone_number("+39 333 1234567") == "+393331234567"

    @pytest.mark.parametrize("raw, expected", [
        ("333 1234567", "+393331234567"),
        ("+39 333 1234567", "+393331234567"),
        ("0039 333 1234567", "+393331234567"),
        ("393331234567", "+393331234567"),
        ("+41 79 123 45 67", "+41791234567"),
    ])
    def test_normalize_italian_phone(self, raw, expected):
        assert normalize_italian_phone(raw) == expected

    def test_empty_phone(self):
        assert normalize_italian_phone(None) is None
        assert normalize_italian_phone("   ") is None


class TestPersonNames:
    @pytest.mark.parametrize("raw, expected", [
        ("ROSSI", "Rossi"),
        ("mario   rossi", "Mario Rossi"),
        ("d'angelo", "D'Angelo"),
        ("rossi-bianchi", "Rossi-Bianchi"),
        ("maria DE luca", "Maria de Luca"),
        ("de luca", "De Luca"),
    ])
    def test_normalize_person_name(self, raw, expected):
        assert normalize_person_name(raw) == expected

    def test_empty_name(self):
        assert normalize_person_name(None) == ""
        assert normalize_person_name("") == ""


class TestPlaceholders:
    def test_replace_known_placeholders(self):
        text = "Gentile {{patientName}}, appuntamento il {{ appointmentDate }}."
        result = replace_placeholders(text, {"patientName": "Rossi Mario", "appointmentDate": "19/10/2026"})
        assert result == "Gentile Rossi Mario, appuntamento il 19/10/2026."

    def test_unknown_placeholders_are_kept(self):
        assert replace_placeholders("Ciao {{firstName}} {{missing}}", {"firstName": "Mario"}) == "Ciao Mario {{missing}}"

    def test_empty_text(self):
        assert replace_placeholders(None, {"a": "b"}) == ""

    def test_extract_placeholders(self):
        text = "{{patientName}} {{button}} {{patientName}} {{doctorName}}"
        assert extract_placeholders(text) == ["patientName", "button", "doctorName"]

    def test_create_button_escapes_values(self):
        button = create_button("Conferma <subito>", "https://studio.it/?a=1&b=2", "#123456")
        assert 'href="https://studio.it/?a=1&amp;b=2"' in button
        assert "Conferma &lt;subito&gt;" in button
        assert "background:#123456" in button
