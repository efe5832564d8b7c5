"""Shared fixtures."""

from __future__ import annotations

import pytest

from src.admin import events
from src.schemas.form import FormData, FormState, Section

JOB_COMPLETE: dict = {
    "tarif": "tvoed",
    "group": "P7",
    "experience": "3",
    "hours": 38.5,
    "state": "Bayern",
}
TAX_COMPLETE: dict = {"taxClass": 1, "churchTax": False, "numberOfChildren": 0}


@pytest.fixture(autouse=True)
def _isolated_event_bus(monkeypatch):
    """Each test gets its own event queue, bound to its own event loop."""
    monkeypatch.setattr(events, "_queue", None)
    monkeypatch.setattr(events, "_worker_task", None)


@pytest.fixture()
def summary_state() -> FormState:
    """All fields collected, waiting for confirmation."""
    return FormState(
        section=Section.SUMMARY,
        data=FormData(job_details=dict(JOB_COMPLETE), tax_details=dict(TAX_COMPLETE)),
    )
