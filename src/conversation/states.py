"""Interview phase definitions, transition map and completeness rules.

The interview is a strictly forward state machine:

    job_details --job_complete--> tax_details --tax_complete--> summary
    summary --confirmed--> completed

Every trigger has a guard evaluated against the FormState, so a phase can
only be left once its required fields are all present and valid. The LLM
never decides transitions.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from src.schemas.form import FormData, FormState, Section
from src.validation.schemas import FieldParseError, fields_for_phase, get_field_spec

# Transition map: {current_section: {trigger_name: next_section}}
TRANSITIONS: dict[Section, dict[str, Section]] = {
    Section.JOB_DETAILS: {
        "job_complete": Section.TAX_DETAILS,
    },
    Section.TAX_DETAILS: {
        "tax_complete": Section.SUMMARY,
    },
    Section.SUMMARY: {
        "confirmed": Section.COMPLETED,
    },
    Section.COMPLETED: {},
}

# Trigger used to leave a data-collection phase once it is complete.
ADVANCE_TRIGGERS: dict[Section, str] = {
    Section.JOB_DETAILS: "job_complete",
    Section.TAX_DETAILS: "tax_complete",
}

COLLECTION_PHASES: tuple[Section, ...] = (Section.JOB_DETAILS, Section.TAX_DETAILS)


def _phase_values(data: FormData, section: Section) -> dict[str, Any]:
    if section == Section.JOB_DETAILS:
        return data.job_details
    if section == Section.TAX_DETAILS:
        return data.tax_details
    return {}


def flat_values(data: FormData) -> dict[str, Any]:
    """All collected values keyed by field name."""
    return {**data.job_details, **data.tax_details}


def _is_valid(field: str, value: Any, context: Mapping[str, Any]) -> bool:
    if value is None or value == "":
        return False
    try:
        get_field_spec(field).parse(value, context)
    except FieldParseError:
        return False
    return True


def compute_missing_fields(section: Section, data: FormData) -> list[str]:
    """Required fields of ``section`` that are absent or invalid, in asking order.

    Authoritative: a client-supplied ``missingFields`` is never trusted.
    """
    values = _phase_values(data, section)
    context = flat_values(data)
    return [f for f in fields_for_phase(section) if not _is_valid(f, values.get(f), context)]


def is_phase_complete(section: Section, data: FormData) -> bool:
    return not compute_missing_fields(section, data)


def all_collection_complete(data: FormData) -> bool:
    return all(is_phase_complete(s, data) for s in COLLECTION_PHASES)


def progress(form_state: FormState) -> int:
    """0-100, share of required fields filled across all collection phases."""
    if form_state.section == Section.COMPLETED:
        return 100
    total = sum(len(fields_for_phase(s)) for s in COLLECTION_PHASES)
    missing = sum(len(compute_missing_fields(s, form_state.data)) for s in COLLECTION_PHASES)
    return round((total - missing) * 100 / total)


# Guards evaluated before a trigger fires.
GUARDS: dict[str, Callable[[FormState], bool]] = {
    "job_complete": lambda fs: is_phase_complete(Section.JOB_DETAILS, fs.data),
    "tax_complete": lambda fs: all_collection_complete(fs.data),
    "confirmed": lambda fs: all_collection_complete(fs.data) and fs.data.calculation_result is not None,
}
