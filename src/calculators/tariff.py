"""Tariff table lookup: monthly gross salary by tariff, group and Stufe.

Pure Python, Decimal arithmetic. Tables hold the full-time (38.5 h) monthly
Tabellenentgelt for 2025; part-time salaries scale linearly with the weekly
hours. TV-L and AVR only cover the groups listed; anything else raises
TariffLookupError so the caller can fall back to another source.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from src.schemas.calculators import TariffLookupResult

FULL_TIME_HOURS = Decimal("38.5")

# {tarif: {group: (Stufe 1, ..., Stufe 6)}}
TARIFF_TABLES: dict[str, dict[str, tuple[float, ...]]] = {
    "tvoed": {
        "P5": (2758.72, 2896.51, 2996.04, 3096.58, 3196.12, 3296.66),
        "P6": (2896.51, 3046.29, 3146.83, 3272.41, 3397.00, 3496.54),
        "P7": (3096.58, 3272.41, 3447.24, 3622.07, 3797.90, 3947.68),
        "P8": (3347.37, 3547.25, 3747.13, 3947.01, 4146.89, 4346.77),
        "P9": (3597.16, 3847.04, 4096.92, 4346.80, 4596.68, 4796.56),
        "P10": (3897.05, 4146.93, 4446.81, 4746.69, 5046.57, 5296.45),
        "P11": (4096.92, 4396.80, 4696.68, 4996.56, 5346.44, 5646.32),
        "P12": (4346.80, 4646.68, 4996.56, 5346.44, 5696.32, 6046.20),
        "P13": (4596.68, 4946.56, 5346.44, 5746.32, 6146.20, 6496.08),
        "P14": (4946.56, 5346.44, 5796.32, 6246.20, 6696.08, 7095.96),
        "P15": (5346.44, 5796.32, 6296.20, 6796.08, 7295.96, 7745.84),
        "E5": (2896.51, 3046.29, 3146.83, 3272.41, 3397.00, 3496.54),
        "E6": (2996.04, 3146.83, 3272.41, 3422.19, 3546.77, 3671.35),
        "E7": (3096.58, 3272.41, 3447.24, 3622.07, 3797.90, 3947.68),
        "E8": (3347.37, 3547.25, 3747.13, 3947.01, 4146.89, 4346.77),
        "E9a": (3447.24, 3672.17, 3897.10, 4097.03, 4296.96, 4496.89),
        "E9b": (3597.16, 3847.04, 4096.92, 4346.80, 4596.68, 4796.56),
        "E9c": (3697.10, 3947.01, 4196.92, 4446.83, 4696.74, 4946.65),
        "E10": (3897.05, 4146.93, 4446.81, 4746.69, 5046.57, 5296.45),
        "E11": (4096.92, 4396.80, 4696.68, 4996.56, 5346.44, 5646.32),
        "E12": (4346.80, 4646.68, 4996.56, 5346.44, 5696.32, 6046.20),
        "E13": (4596.68, 4946.56, 5346.44, 5746.32, 6146.20, 6496.08),
        "E14": (4946.56, 5346.44, 5796.32, 6246.20, 6696.08, 7095.96),
        "E15": (5346.44, 5796.32, 6296.20, 6796.08, 7295.96, 7745.84),
    },
    "tv-l": {
        "P5": (2708.72, 2846.51, 2946.04, 3046.58, 3146.12, 3246.66),
        "P6": (2846.51, 2996.29, 3096.83, 3222.41, 3347.00, 3446.54),
        "P7": (3046.58, 3222.41, 3397.24, 3572.07, 3747.90, 3897.68),
        "P8": (3297.37, 3497.25, 3697.13, 3897.01, 4096.89, 4296.77),
        "E5": (2846.51, 2996.29, 3096.83, 3222.41, 3347.00, 3446.54),
        "E6": (2946.04, 3096.83, 3222.41, 3372.19, 3496.77, 3621.35),
        "E7": (3046.58, 3222.41, 3397.24, 3572.07, 3747.90, 3897.68),
        "E8": (3297.37, 3497.25, 3697.13, 3897.01, 4096.89, 4296.77),
        "E9": (3547.16, 3797.04, 4046.92, 4296.80, 4546.68, 4746.56),
        "E10": (3847.05, 4096.93, 4396.81, 4696.69, 4996.57, 5246.45),
        "E11": (4046.92, 4346.80, 4646.68, 4946.56, 5296.44, 5596.32),
        "E12": (4296.80, 4596.68, 4946.56, 5296.44, 5646.32, 5996.20),
        "E13": (4546.68, 4896.56, 5296.44, 5696.32, 6096.20, 6446.08),
        "E14": (4896.56, 5296.44, 5746.32, 6196.20, 6646.08, 7045.96),
        "E15": (5296.44, 5746.32, 6246.20, 6746.08, 7245.96, 7695.84),
    },
    "avr": {
        "P5": (2778.72, 2916.51, 3016.04, 3116.58, 3216.12, 3316.66),
        "P6": (2916.51, 3066.29, 3166.83, 3292.41, 3417.00, 3516.54),
        "P7": (3116.58, 3292.41, 3467.24, 3642.07, 3817.90, 3967.68),
        "P8": (3367.37, 3567.25, 3767.13, 3967.01, 4166.89, 4366.77),
        "E5": (2916.51, 3066.29, 3166.83, 3292.41, 3417.00, 3516.54),
        "E6": (3016.04, 3166.83, 3292.41, 3442.19, 3566.77, 3691.35),
        "E7": (3116.58, 3292.41, 3467.24, 3642.07, 3817.90, 3967.68),
        "E8": (3367.37, 3567.25, 3767.13, 3967.01, 4166.89, 4366.77),
    },
}


class TariffLookupError(LookupError):
    """The static tables cannot answer this tariff / group / Stufe."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


def _to_euro(value: Decimal) -> Decimal:
    """Round to 2 decimal places."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def normalize_group(group: str) -> str:
    """'p7' -> 'P7', 'E9A' -> 'E9a'."""
    group = group.strip()
    if not group:
        return group
    head, tail = group[:-1], group[-1]
    if tail.isalpha() and head[1:].isdigit():
        return f"{head.upper()}{tail.lower()}"
    return group.upper()


def _resolve_group(table: dict[str, tuple[float, ...]], group: str) -> str | None:
    if group in table:
        return group
    # TVöD splits E9 into E9a/E9b/E9c; a bare E9 means the entry level.
    if f"{group}a" in table:
        return f"{group}a"
    return None


def scale_to_hours(full_time_monthly: Decimal, hours: float) -> tuple[Decimal, Decimal]:
    """Return (monthly, yearly) gross for ``hours`` per week."""
    monthly = full_time_monthly * Decimal(str(hours)) / FULL_TIME_HOURS
    return _to_euro(monthly), _to_euro(monthly * 12)


def lookup(tarif: str, group: str, stufe: str | int, hours: float = 38.5) -> TariffLookupResult:
    """Look up the monthly gross salary.

    Args:
        tarif: Canonical tariff ("tvoed", "tv-l", "avr").
        group: Entgeltgruppe including its prefix ("P7", "E9a").
        stufe: Stufe 1-6.
        hours: Weekly working hours; 38.5 is full time.

    Raises:
        TariffLookupError: Unknown tariff, group not in the tariff's table,
            Stufe outside 1-6, or non-positive hours.
    """
    table = TARIFF_TABLES.get(tarif)
    if table is None:
        raise TariffLookupError("tarif", f"Tarifvertrag '{tarif}' nicht gefunden")

    normalized = normalize_group(group)
    resolved = _resolve_group(table, normalized)
    if resolved is None:
        available = ", ".join(table)
        raise TariffLookupError(
            "group",
            f"Entgeltgruppe '{normalized}' nicht im Tarif {tarif} gefunden (verfügbar: {available})",
        )

    try:
        index = int(stufe) - 1
    except (TypeError, ValueError):
        index = -1
    salaries = table[resolved]
    if not 0 <= index < len(salaries):
        raise TariffLookupError("stufe", f"Stufe {stufe} ungültig, erlaubt sind 1 bis {len(salaries)}")

    if hours <= 0:
        raise TariffLookupError("hours", f"Wochenstunden {hours} ungültig")

    monthly, yearly = scale_to_hours(Decimal(str(salaries[index])), hours)
    return TariffLookupResult(
        tarif=tarif,
        group=resolved,
        stufe=str(index + 1),
        hours=hours,
        monthly_gross=monthly,
        yearly_gross=yearly,
    )
