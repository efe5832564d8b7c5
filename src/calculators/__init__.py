"""Salary calculators: tariff table lookup and net salary."""

from src.calculators.tariff import TariffLookupError, lookup
from src.calculators.tax import CalculationError, calculate

__all__ = [
    "CalculationError",
    "TariffLookupError",
    "calculate",
    "lookup",
]
