"""Near-miss suggestion policies.

Each field carries one policy that turns a rejected raw answer into an
optional hint ("Meinst du TVöD?"). Policies are heuristics: they never
change what the validator accepts, only what it suggests.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein


class NearMissPolicy:
    """Base policy: no suggestion."""

    def suggest(self, raw: object) -> str | None:
        return None


@dataclass(frozen=True)
class EnumDistance(NearMissPolicy):
    """Suggest the closest canonical value within ``max_distance`` edits.

    ``choices`` maps the lowercase comparison form to the display label
    offered to the user.
    """

    choices: dict[str, str]
    max_distance: int = 2

    def suggest(self, raw: object) -> str | None:
        text = str(raw).lower().strip()
        if not text:
            return None
        match = process.extractOne(
            text,
            list(self.choices),
            scorer=Levenshtein.distance,
            score_cutoff=self.max_distance,
        )
        if match is None:
            return None
        candidate, _distance, _index = match
        return self.choices[candidate]


@dataclass(frozen=True)
class Clamp(NearMissPolicy):
    """Suggest the nearest bound for an out-of-range number."""

    minimum: float
    maximum: float
    render: str = "{value:g}"

    def suggest(self, raw: object) -> str | None:
        match = re.search(r"-?\d+(?:[.,]\d+)?", str(raw))
        if match is None:
            return None
        value = float(match.group().replace(",", "."))
        if value < self.minimum:
            return self.render.format(value=self.minimum)
        if value > self.maximum:
            return self.render.format(value=self.maximum)
        return None


@dataclass(frozen=True)
class PhraseHints(NearMissPolicy):
    """Map tolerant phrase fragments to guidance text.

    Falls through to ``fallback`` (another policy) when no fragment matches.
    """

    hints: dict[tuple[str, ...], str]
    fallback: NearMissPolicy = field(default_factory=NearMissPolicy)

    def suggest(self, raw: object) -> str | None:
        text = str(raw).lower()
        for fragments, hint in self.hints.items():
            if any(fragment in text for fragment in fragments):
                return hint
        return self.fallback.suggest(raw)
