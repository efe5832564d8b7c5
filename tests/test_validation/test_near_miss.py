"""Tests for near-miss suggestion policies."""

from __future__ import annotations

from src.validation.near_miss import Clamp, EnumDistance, NearMissPolicy, PhraseHints
from src.validation.schemas import get_field_spec


class TestEnumDistance:
    def test_exact_match(self):
        assert EnumDistance({"avr": "AVR"}).suggest("AVR") == "AVR"

    def test_distance_threshold_is_inclusive(self):
        policy = EnumDistance({"bayern": "Bayern"}, max_distance=2)
        assert policy.suggest("bajer") == "Bayern"
        assert policy.suggest("bxyxrx") is None

    def test_nearest_of_several(self):
        policy = EnumDistance({"hessen": "Hessen", "bremen": "Bremen"})
        assert policy.suggest("hesen") == "Hessen"

    def test_closest_label(self):
        policy = EnumDistance({"tvoed": "TVöD", "avr": "AVR"})
        assert policy.suggest("tvod") == "TVöD"

    def test_too_far(self):
        policy = EnumDistance({"tvoed": "TVöD"}, max_distance=1)
        assert policy.suggest("metall") is None

    def test_blank(self):
        assert EnumDistance({"avr": "AVR"}).suggest("  ") is None


class TestClamp:
    def test_above_maximum(self):
        assert Clamp(1, 48, render="{value:g} Stunden").suggest("60 Stunden") == "48 Stunden"

    def test_below_minimum(self):
        assert Clamp(1, 6).suggest("0") == "1"

    def test_in_range_no_suggestion(self):
        assert Clamp(1, 6).suggest("3") is None

    def test_no_number(self):
        assert Clamp(1, 6).suggest("viele") is None


class TestPhraseHints:
    def test_fragment_match(self):
        policy = PhraseHints({("weiß", "unsicher"): "Schau auf deine Gehaltsabrechnung."})
        assert policy.suggest("Weiß ich nicht") == "Schau auf deine Gehaltsabrechnung."

    def test_fallback(self):
        policy = PhraseHints({("x",): "hint"}, fallback=Clamp(1, 6))
        assert policy.suggest("9") == "6"

    def test_default_fallback_is_silent(self):
        assert PhraseHints({}).suggest("anything") is None
        assert NearMissPolicy().suggest("anything") is None


class TestFieldPolicies:
    def test_tarif_typo(self):
        assert get_field_spec("tarif").near_miss.suggest("TVÖ") == "TVöD"

    def test_tax_class_unsure(self):
        hint = get_field_spec("taxClass").near_miss.suggest("keine Ahnung")
        assert "Gehaltsabrechnung" in hint

    def test_experience_clamped(self):
        assert get_field_spec("experience").near_miss.suggest("9") == "Stufe 6"
