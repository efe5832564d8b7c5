"""Salary calculation service: FormState data -> tariff lookup -> net salary.

The gross salary comes from the static tariff tables first. When the tables
cannot answer (e.g. a P9 in TV-L), the service asks the retrieval service for
the tariff table of the uploaded documents and lets the oracle read the
monthly amount from the excerpts. If neither source answers, the calculation
fails with CalculationError and the interview stays in the summary.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ValidationError

from src.calculators.tariff import TariffLookupError, lookup, normalize_group, scale_to_hours
from src.calculators.tax import CalculationError, calculate
from src.config import settings
from src.llm.oracle import Err, Oracle, oracle
from src.retrieval.gateway import RetrievalGateway, build_grounding_context, retrieval_gateway
from src.schemas.calculators import SalaryInput, SalaryResult, TariffLookupResult
from src.schemas.form import FormData
from src.validation.schemas import TARIF_LABELS

logger = logging.getLogger(__name__)

TARIFF_FALLBACK_PROMPT = """You read German collective-agreement salary tables.
From the excerpts below, find the full-time monthly gross amount (Tabellenentgelt)
for the requested group and Stufe. Respond with a single JSON object:
{"monthly_gross": <number in euro, e.g. 3447.24>}
If the excerpts do not contain this exact value, respond with {"monthly_gross": null}.
Never estimate or interpolate."""


class _GrossAnswer(BaseModel):
    monthly_gross: float | None = None


def _salary_input(data: FormData, yearly_gross: Decimal) -> SalaryInput:
    td = data.tax_details
    return SalaryInput(
        yearly_salary=yearly_gross,
        tax_class=int(td["taxClass"]),
        church_tax=bool(td["churchTax"]),
        child_count=int(td["numberOfChildren"]),
        state=str(data.job_details.get("state", "")),
        year=settings.calculation.tax_year,
        health_insurance_add_on=Decimal(str(settings.calculation.health_insurance_add_on)),
    )


class SalaryCalculationService:
    """Maps collected interview data onto the calculation collaborators."""

    def __init__(
        self,
        gateway: RetrievalGateway | None = None,
        client: Oracle | None = None,
    ) -> None:
        self._gateway = gateway or retrieval_gateway
        self._oracle = client or oracle

    async def calculate(
        self,
        data: FormData,
        tenant_id: str | None = None,
        session_id: str | None = None,
    ) -> SalaryResult:
        """Calculate gross and net salary for complete interview data.

        Raises:
            CalculationError: Missing data, no gross salary from any source,
                or a failing tax calculation.
        """
        jd = data.job_details
        try:
            tarif, group, stufe, hours = str(jd["tarif"]), str(jd["group"]), str(jd["experience"]), float(jd["hours"])
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Unvollständige Jobdaten: {exc}"
            raise CalculationError(msg) from exc

        try:
            tariff = lookup(tarif, group, stufe, hours)
        except TariffLookupError as exc:
            logger.info("Static tariff lookup failed (%s), trying retrieval", exc.message)
            fallback = await self._lookup_via_retrieval(tarif, group, stufe, hours, tenant_id, session_id)
            if fallback is None:
                raise CalculationError(exc.message) from exc
            tariff = fallback

        try:
            salary = _salary_input(data, tariff.yearly_gross)
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            msg = f"Unvollständige Steuerdaten: {exc}"
            raise CalculationError(msg) from exc

        tax = calculate(salary)
        return SalaryResult(
            brutto=tax.brutto,
            netto=tax.netto,
            taxes=tax.taxes,
            social_security=tax.social_security,
            tarif=tariff.tarif,
            group=tariff.group,
            stufe=tariff.stufe,
            hours=tariff.hours,
            year=salary.year,
            yearly_gross=tariff.yearly_gross,
            source=tariff.source,
        )

    async def _lookup_via_retrieval(
        self,
        tarif: str,
        group: str,
        stufe: str,
        hours: float,
        tenant_id: str | None,
        session_id: str | None,
    ) -> TariffLookupResult | None:
        group = normalize_group(group)
        label = TARIF_LABELS.get(tarif, tarif)
        question = f"Entgelttabelle {label} Entgeltgruppe {group} Stufe {stufe} monatliches Tabellenentgelt"
        chunks = await self._gateway.retrieve(question, tenant_id, session_id=session_id)
        if not chunks:
            return None

        result = await self._oracle.ask_json(
            TARIFF_FALLBACK_PROMPT,
            f"{build_grounding_context(chunks)}\n\nGesucht: {label} {group} Stufe {stufe}",
            schema=_GrossAnswer,
            session_id=session_id,
        )
        if isinstance(result, Err):
            logger.warning("Tariff fallback oracle failed: %s", result.error.kind)
            return None
        answer: _GrossAnswer = result.value
        if answer.monthly_gross is None or answer.monthly_gross <= 0:
            return None

        monthly, yearly = scale_to_hours(Decimal(str(answer.monthly_gross)), hours)
        return TariffLookupResult(
            tarif=tarif,
            group=group,
            stufe=stufe,
            hours=hours,
            monthly_gross=monthly,
            yearly_gross=yearly,
            source="retrieval",
        )


def result_payload(result: SalaryResult) -> dict[str, Any]:
    """JSON-ready dict for ``FormData.calculation_result`` and persistence."""
    return result.model_dump(mode="json", by_alias=True)


# Module-level singleton
salary_service = SalaryCalculationService()
