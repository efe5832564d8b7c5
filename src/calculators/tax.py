"""Net salary calculator for employees (Lohnsteuer 2025, simplified).

Pure Python, Decimal arithmetic. Implements:
- Income tax per §32a EStG 2025 zones on the annual taxable income
- Tax class rules: splitting for class 3, single-parent relief for class 2,
  the class 5/6 table (no basic allowance, 14 % minimum rate)
- Solidarity surcharge: 5.5 % above the exemption threshold with the
  11.9 % mitigation zone
- Church tax: 8 % of income tax in Bayern and Baden-Württemberg, 9 % elsewhere
- Employee social-security shares with 2025 contribution ceilings

Allowances (all annual):
  Arbeitnehmer-Pauschbetrag   1.230 €   (classes 1-5)
  Sonderausgaben-Pauschbetrag    36 €   (classes 1-5)
  Entlastungsbetrag           4.260 €   (class 2)
  Kinderfreibetrag            9.600 €   per child, Soli/church base only
                                        (half in class 4, none in 5/6)
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

from src.schemas.calculators import SalaryInput, SocialSecurityBreakdown, TaxBreakdown, TaxResult

logger = logging.getLogger(__name__)

SUPPORTED_YEARS = {2025}

GRUNDFREIBETRAG = Decimal("12096")
WERBUNGSKOSTEN_PAUSCHALE = Decimal("1230")
SONDERAUSGABEN_PAUSCHALE = Decimal("36")
ENTLASTUNGSBETRAG = Decimal("4260")
KINDERFREIBETRAG = Decimal("9600")
SOLI_FREIGRENZE = Decimal("19950")

# Class 5/6 table boundaries
W1_STKL5 = Decimal("13785")
W2_STKL5 = Decimal("34240")
W3_STKL5 = Decimal("222260")

# Monthly contribution ceilings 2025
BBG_RV_MONTHLY = Decimal("96600") / 12
BBG_KV_MONTHLY = Decimal("66150") / 12

RV_RATE = Decimal("0.093")
AV_RATE = Decimal("0.013")
KV_RATE = Decimal("0.073")
PV_RATE = Decimal("0.017")
PV_RATE_SACHSEN = Decimal("0.022")
PV_CHILDLESS_SURCHARGE = Decimal("0.006")
PV_CHILD_DISCOUNT = Decimal("0.0025")

CHURCH_RATE_REDUCED_STATES = {"Bayern", "Baden-Württemberg"}


class CalculationError(ValueError):
    """The calculation cannot be performed for this input."""


def _to_euro(value: Decimal) -> Decimal:
    """Round to 2 decimal places."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _floor(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_DOWN)


def income_tax(zve: Decimal) -> Decimal:
    """Annual income tax for a single person (§32a EStG 2025)."""
    x = _floor(zve)
    if x <= GRUNDFREIBETRAG:
        return Decimal("0")
    if x < 17444:
        y = (x - GRUNDFREIBETRAG) / 10000
        return _floor((Decimal("932.30") * y + 1400) * y)
    if x < 68481:
        z = (x - 17443) / 10000
        return _floor((Decimal("176.64") * z + 2397) * z + Decimal("1015.13"))
    if x < 277826:
        return _floor(x * Decimal("0.42") - Decimal("10911.92"))
    return _floor(x * Decimal("0.45") - Decimal("19246.67"))


def _class_5_6_base(zx: Decimal) -> Decimal:
    diff = (income_tax(zx * Decimal("1.25")) - income_tax(zx * Decimal("0.75"))) * 2
    minimum = _floor(zx * Decimal("0.14"))
    return max(diff, minimum)


def income_tax_class_5_6(zve: Decimal) -> Decimal:
    """Annual income tax for tax classes 5 and 6."""
    x = _floor(zve)
    if x > W2_STKL5:
        tax = _class_5_6_base(W2_STKL5)
        if x > W3_STKL5:
            tax += (W3_STKL5 - W2_STKL5) * Decimal("0.42")
            tax += (x - W3_STKL5) * Decimal("0.45")
        else:
            tax += (x - W2_STKL5) * Decimal("0.42")
        return _floor(tax)
    tax = _class_5_6_base(x)
    if x > W1_STKL5:
        capped = _floor(_class_5_6_base(W1_STKL5) + (x - W1_STKL5) * Decimal("0.42"))
        tax = min(tax, capped)
    return tax


def _tax_for_class(zve: Decimal, tax_class: int) -> Decimal:
    if tax_class == 3:
        return income_tax(zve / 2) * 2
    if tax_class in (5, 6):
        return income_tax_class_5_6(zve)
    return income_tax(zve)


def social_security(salary: SalaryInput) -> SocialSecurityBreakdown:
    """Monthly employee shares of pension, unemployment, health and care insurance."""
    gross = salary.yearly_salary / 12
    rv_base = min(gross, BBG_RV_MONTHLY)
    kv_base = min(gross, BBG_KV_MONTHLY)

    kv_rate = KV_RATE + salary.health_insurance_add_on / 100 / 2

    pv_rate = PV_RATE_SACHSEN if salary.state == "Sachsen" else PV_RATE
    if not salary.has_children:
        pv_rate += PV_CHILDLESS_SURCHARGE
    elif salary.child_count > 1:
        pv_rate -= PV_CHILD_DISCOUNT * min(4, salary.child_count - 1)
    pv_rate = max(Decimal("0"), pv_rate)

    return SocialSecurityBreakdown(
        kv=_to_euro(kv_base * kv_rate),
        rv=_to_euro(rv_base * RV_RATE),
        av=_to_euro(rv_base * AV_RATE),
        pv=_to_euro(kv_base * pv_rate),
    )


def _taxable_income(salary: SalaryInput, social: SocialSecurityBreakdown) -> Decimal:
    """Annual taxable income after allowances and the simplified Vorsorgepauschale."""
    zve = salary.yearly_salary
    if salary.tax_class != 6:
        zve -= WERBUNGSKOSTEN_PAUSCHALE + SONDERAUSGABEN_PAUSCHALE
    if salary.tax_class == 2:
        zve -= ENTLASTUNGSBETRAG
    # Vorsorgepauschale: employee pension, health and care contributions
    zve -= (social.rv + social.kv + social.pv) * 12
    return max(Decimal("0"), zve)


def _child_allowance(salary: SalaryInput) -> Decimal:
    if salary.tax_class in (5, 6):
        return Decimal("0")
    allowance = KINDERFREIBETRAG * salary.child_count
    return allowance / 2 if salary.tax_class == 4 else allowance


def _solidarity_surcharge(base_tax: Decimal, tax_class: int) -> Decimal:
    threshold = SOLI_FREIGRENZE * (2 if tax_class == 3 else 1)
    if base_tax <= threshold:
        return Decimal("0")
    full = base_tax * Decimal("0.055")
    mitigated = (base_tax - threshold) * Decimal("0.119")
    return min(full, mitigated)


def calculate(salary: SalaryInput) -> TaxResult:
    """Calculate the monthly net salary.

    Args:
        salary: Annual gross salary and personal tax attributes.

    Returns:
        TaxResult with monthly gross, net and all deductions.

    Raises:
        CalculationError: Unsupported tax year or a result that is not a
            plausible net salary.
    """
    if salary.year not in SUPPORTED_YEARS:
        msg = f"Steuerjahr {salary.year} wird nicht unterstützt"
        raise CalculationError(msg)

    social = social_security(salary)
    zve = _taxable_income(salary, social)

    lohnsteuer = _tax_for_class(zve, salary.tax_class)
    base_tax = _tax_for_class(max(Decimal("0"), zve - _child_allowance(salary)), salary.tax_class)
    soli = _solidarity_surcharge(base_tax, salary.tax_class)

    church = Decimal("0")
    if salary.church_tax:
        rate = Decimal("0.08") if salary.state in CHURCH_RATE_REDUCED_STATES else Decimal("0.09")
        church = base_tax * rate

    taxes = TaxBreakdown(
        lohnsteuer=_to_euro(lohnsteuer / 12),
        soli=_to_euro(soli / 12),
        kirchensteuer=_to_euro(church / 12),
    )
    gross = _to_euro(salary.yearly_salary / 12)
    netto = gross - taxes.lohnsteuer - taxes.soli - taxes.kirchensteuer
    netto -= social.kv + social.rv + social.av + social.pv

    if netto <= 0:
        msg = f"Unplausibles Nettogehalt {netto} für Brutto {gross}"
        raise CalculationError(msg)

    logger.debug(
        "Net salary: gross=%s net=%s class=%d children=%d",
        gross,
        netto,
        salary.tax_class,
        salary.child_count,
    )
    return TaxResult(brutto=gross, netto=_to_euro(netto), taxes=taxes, social_security=social)
