"""Pydantic schemas for the salary calculators.

Pure data classes, no business logic. Amounts are Decimal internally and
serialize as plain floats, so a dumped result can go straight into JSON
columns and the FormState.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Euro = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="always")]


class TariffLookupResult(BaseModel):
    """Gross salary for one tariff / group / Stufe, scaled to the weekly hours."""

    tarif: str
    group: str
    stufe: str
    hours: float
    monthly_gross: Euro
    yearly_gross: Euro
    source: Literal["table", "retrieval"] = "table"


class SalaryInput(BaseModel):
    """Input of the net-salary calculation."""

    yearly_salary: Euro = Field(gt=0)
    tax_class: int = Field(ge=1, le=6)
    church_tax: bool = False
    child_count: int = Field(default=0, ge=0, le=10)
    state: str = ""
    year: int = 2025
    health_insurance_add_on: Euro = Decimal("2.5")

    @property
    def has_children(self) -> bool:
        return self.child_count > 0


class TaxBreakdown(BaseModel):
    """Monthly tax deductions."""

    lohnsteuer: Euro
    soli: Euro
    kirchensteuer: Euro


class SocialSecurityBreakdown(BaseModel):
    """Monthly employee social-security shares."""

    kv: Euro
    rv: Euro
    av: Euro
    pv: Euro


class TaxResult(BaseModel):
    """Monthly net salary and its deductions."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    brutto: Euro
    netto: Euro
    taxes: TaxBreakdown
    social_security: SocialSecurityBreakdown


class SalaryResult(TaxResult):
    """What the interview stores in ``calculation_result`` and persists."""

    tarif: str
    group: str
    stufe: str
    hours: float
    year: int
    yearly_gross: Euro
    source: Literal["table", "retrieval"] = "table"
