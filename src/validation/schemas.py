"""Field registry: per-field parsing, normalization and presentation rules.

Every interview field is declared once as a FieldSpec. The spec bundles the
pydantic TypeAdapter that turns a raw answer into its canonical value, the
German error messages keyed by pydantic error type, the cross-field
dependency (group needs tarif), the escalation options and the near-miss
policy. Nothing here holds state.

Canonical values:
    tarif             "tvoed" | "tv-l" | "avr"
    group             "P5".."P15", "E5".."E15" (E9a/E9b/E9c accepted)
    experience        "1".."6" (Stufe)
    hours             float 1..48
    state             full Bundesland name
    taxClass          int 1..6
    churchTax         bool
    numberOfChildren  int 0..10
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field, StrictBool, TypeAdapter, ValidationError

from src.schemas.form import Section
from src.validation.near_miss import Clamp, EnumDistance, NearMissPolicy, PhraseHints

FULL_TIME_HOURS = 38.5
PART_TIME_HOURS = 20.0

# ── Domain vocabulary ────────────────────────────────────────────────

GERMAN_NUMBER_WORDS: dict[str, int] = {
    "null": 0,
    "keine": 0,
    "kein": 0,
    "nein": 0,
    "eins": 1,
    "ein": 1,
    "eine": 1,
    "einem": 1,
    "einer": 1,
    "zwei": 2,
    "zwo": 2,
    "drei": 3,
    "vier": 4,
    "fuenf": 5,
    "fünf": 5,
    "sechs": 6,
    "sieben": 7,
    "acht": 8,
    "neun": 9,
    "zehn": 10,
}

BUNDESLAENDER: dict[str, str] = {
    "bw": "Baden-Württemberg",
    "baden-württemberg": "Baden-Württemberg",
    "baden-wuerttemberg": "Baden-Württemberg",
    "bayern": "Bayern",
    "by": "Bayern",
    "berlin": "Berlin",
    "be": "Berlin",
    "brandenburg": "Brandenburg",
    "bb": "Brandenburg",
    "bremen": "Bremen",
    "hb": "Bremen",
    "hamburg": "Hamburg",
    "hh": "Hamburg",
    "hessen": "Hessen",
    "he": "Hessen",
    "mecklenburg-vorpommern": "Mecklenburg-Vorpommern",
    "mv": "Mecklenburg-Vorpommern",
    "niedersachsen": "Niedersachsen",
    "ni": "Niedersachsen",
    "nordrhein-westfalen": "Nordrhein-Westfalen",
    "nrw": "Nordrhein-Westfalen",
    "rheinland-pfalz": "Rheinland-Pfalz",
    "rp": "Rheinland-Pfalz",
    "saarland": "Saarland",
    "sl": "Saarland",
    "sachsen": "Sachsen",
    "sn": "Sachsen",
    "sachsen-anhalt": "Sachsen-Anhalt",
    "st": "Sachsen-Anhalt",
    "schleswig-holstein": "Schleswig-Holstein",
    "sh": "Schleswig-Holstein",
    "thüringen": "Thüringen",
    "thueringen": "Thüringen",
    "th": "Thüringen",
}

STATE_NAMES: tuple[str, ...] = tuple(sorted(set(BUNDESLAENDER.values())))

# Ordered: the first matching phrase wins, so specific titles precede generic ones.
JOB_TITLE_GROUPS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("stationsleitung", "pflegedienstleitung", "wohnbereichsleitung", "leitung"), "10"),
    (("fachweiterbildung", "intensiv", "anästhesie", "anaesthesie", "op-pflege", "fachkrankenpfleg"), "9"),
    (("pflegehelfer", "pflegeassistent", "krankenpflegehelfer", "altenpflegehelfer"), "6"),
    (
        (
            "pflegefachkraft",
            "pflegefachfrau",
            "pflegefachmann",
            "krankenschwester",
            "krankenpfleger",
            "altenpfleger",
            "examiniert",
        ),
        "7",
    ),
    (("helfer", "hilfskraft", "ungelernt", "ohne ausbildung"), "5"),
)

TARIF_LABELS: dict[str, str] = {"tvoed": "TVöD", "tv-l": "TV-L", "avr": "AVR"}

# Bare grade numbers get their letter from the tariff: care tariffs use P.
TARIF_GROUP_PREFIX: dict[str, str] = {"tvoed": "P", "avr": "P", "tv-l": "E"}

_WORD_RE = re.compile(r"[a-zäöüß]+")
_PREFIXED_GROUP_RE = re.compile(r"(?<![a-zA-Z])([PEpe])\s?(\d{1,2})([abcABC])?(?![0-9])")
_BARE_GROUP_RE = re.compile(r"(?<![a-zA-Z0-9])(\d{1,2})([abcABC])?(?![0-9])")
_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


def _replace_number_words(text: str) -> str:
    return _WORD_RE.sub(
        lambda m: str(GERMAN_NUMBER_WORDS[m.group()]) if m.group() in GERMAN_NUMBER_WORDS else m.group(),
        text,
    )


def _first_number(text: str) -> float | None:
    match = _NUMBER_RE.search(text)
    if match is None:
        return None
    return float(match.group().replace(",", "."))


def years_to_stufe(years: float) -> str:
    """Map years of professional experience to a Stufe."""
    if years <= 1:
        return "1"
    if years <= 3:
        return "2"
    if years <= 6:
        return "3"
    if years <= 10:
        return "4"
    if years <= 15:
        return "5"
    return "6"


# ── Normalizers (run before pydantic validation) ─────────────────────


def _normalize_tarif(value: Any) -> Any:
    text = str(value).lower().strip()
    if any(k in text for k in ("tvöd", "tvoed", "tv-öd", "öffentlich", "oeffentlich", "kommun", "bundeswehr")):
        return "tvoed"
    if any(k in text for k in ("tv-l", "tvl", "tv l", "länder", "laender", "landes", "uniklinik")):
        return "tv-l"
    if any(k in text for k in ("avr", "kirchlich", "diakonie", "caritas", "kirche")):
        return "avr"
    return value


def _normalize_group(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value))
    text = str(value).strip()
    lowered = text.lower()
    if lowered in GERMAN_NUMBER_WORDS:
        return str(GERMAN_NUMBER_WORDS[lowered])
    match = _PREFIXED_GROUP_RE.search(text)
    if match is not None:
        prefix, number, suffix = match.groups()
        return f"{prefix.upper()}{int(number)}{(suffix or '').lower()}"
    for phrases, grade in JOB_TITLE_GROUPS:
        if any(p in lowered for p in phrases):
            return grade
    match = _BARE_GROUP_RE.search(text)
    if match is not None:
        number, suffix = match.groups()
        return f"{int(number)}{(suffix or '').lower()}"
    return text


def _normalize_experience(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    text = _replace_number_words(str(value).lower().strip())
    number = _first_number(text)
    if number is not None:
        if "jahr" in text or "erfahrung" in text:
            return years_to_stufe(number)
        if number == int(number) and 1 <= number <= 6:
            return str(int(number))
        return text
    if any(k in text for k in ("einstieg", "anfänger", "anfaenger", "frisch")):
        return "1"
    return text


def _normalize_hours(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).lower().strip()
    number = _first_number(text)
    if number is not None:
        return number
    if "voll" in text:
        return FULL_TIME_HOURS
    if "teil" in text:
        return PART_TIME_HOURS
    return value


def _normalize_state(value: Any) -> Any:
    text = re.sub(r"\s+", "-", str(value).lower().strip())
    if text in BUNDESLAENDER:
        return BUNDESLAENDER[text]
    for key in sorted(BUNDESLAENDER, key=len, reverse=True):
        if len(key) > 3 and key in text:
            return BUNDESLAENDER[key]
    return value


def _normalize_tax_class(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    text = _replace_number_words(str(value).lower().strip())
    number = _first_number(text)
    if number is not None and number == int(number):
        return int(number)
    if "ledig" in text or "unverheiratet" in text or "single" in text:
        return 1
    if "alleinerziehend" in text:
        return 2
    # "verheiratet" alone is ambiguous (3, 4 or 5)
    return value


_CHURCH_NO_WORDS = {"nein", "no", "false", "n", "nö", "ne"}
_CHURCH_YES_WORDS = {"ja", "yes", "true", "j", "jo", "jup"}


def _normalize_church_tax(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    text = str(value).lower().strip()
    words = _WORD_RE.findall(text)
    first = words[0] if words else ""
    # Negatives first: "keine Kirche" must not match "kirche".
    if first in _CHURCH_NO_WORDS or any(
        k in text for k in ("konfessionslos", "ausgetreten", "keine kirche", "kein mitglied", "keiner kirche")
    ) or first in {"kein", "keine"}:
        return False
    if first in _CHURCH_YES_WORDS or any(
        k in text for k in ("evangelisch", "katholisch", "kirche", "mitglied")
    ):
        return True
    return value


def _normalize_children(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    text = _replace_number_words(str(value).lower().strip())
    number = _first_number(text)
    if number is not None:
        return int(number) if number == int(number) else number
    return value


# ── Typed field shapes ───────────────────────────────────────────────

Tarif = Annotated[Literal["tvoed", "tv-l", "avr"], BeforeValidator(_normalize_tarif)]
Group = Annotated[
    str,
    BeforeValidator(_normalize_group),
    Field(pattern=r"^[PE]?(?:[5-8]|9[abc]?|1[0-5])$"),
]
Experience = Annotated[Literal["1", "2", "3", "4", "5", "6"], BeforeValidator(_normalize_experience)]
Hours = Annotated[float, BeforeValidator(_normalize_hours), Field(ge=1, le=48)]
State = Annotated[Literal[STATE_NAMES], BeforeValidator(_normalize_state)]  # type: ignore[valid-type]
TaxClass = Annotated[Literal[1, 2, 3, 4, 5, 6], BeforeValidator(_normalize_tax_class)]
ChurchTax = Annotated[StrictBool, BeforeValidator(_normalize_church_tax)]
Children = Annotated[int, BeforeValidator(_normalize_children), Field(ge=0, le=10)]


# ── Registry ─────────────────────────────────────────────────────────


class FieldParseError(ValueError):
    """Raised by FieldSpec.parse with a user-facing German message."""

    def __init__(self, message: str, error_type: str = "invalid") -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type


def _format_hours(value: Any) -> str:
    return f"{float(value):g}".replace(".", ",") + " Std."


def _format_group_prefix(value: str, context: Mapping[str, Any]) -> str:
    if value[0].isdigit():
        return TARIF_GROUP_PREFIX.get(str(context.get("tarif")), "P") + value
    return value


@dataclass(frozen=True)
class FieldSpec:
    """Everything the interview knows about one field."""

    name: str
    phase: Section
    label: str
    question: str
    hint: str
    adapter: TypeAdapter[Any]
    messages: dict[str, str]
    options: tuple[str, ...]
    chips: tuple[str, ...] = ()
    near_miss: NearMissPolicy = field(default_factory=NearMissPolicy)
    depends_on: str | None = None
    dependency_message: str = ""
    canonicalize: Callable[[Any, Mapping[str, Any]], Any] | None = None
    display: Callable[[Any], str] = str

    def message_for(self, error_type: str, received: Any) -> str:
        template = self.messages.get(error_type, self.messages["default"])
        return template.replace("{input}", str(received))

    def parse(self, raw: Any, context: Mapping[str, Any] | None = None) -> Any:
        """Return the canonical value for ``raw`` or raise FieldParseError.

        ``context`` holds already-collected values (flat, keyed by field name)
        and is only consulted by fields with a cross-field dependency.
        """
        context = context or {}
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise FieldParseError(self.message_for("missing", raw), "missing")
        try:
            value = self.adapter.validate_python(raw)
        except ValidationError as exc:
            error_type = exc.errors()[0]["type"]
            raise FieldParseError(self.message_for(error_type, raw), error_type) from exc
        if self.canonicalize is not None:
            value = self.canonicalize(value, context)
        return value


FIELD_SPECS: dict[str, FieldSpec] = {
    spec.name: spec
    for spec in (
        FieldSpec(
            name="tarif",
            phase=Section.JOB_DETAILS,
            label="Tarifvertrag",
            question=(
                "Arbeitest du im öffentlichen Dienst, bei einer kirchlichen Einrichtung "
                "(z.B. Caritas oder Diakonie) oder an einer Landeseinrichtung wie einer Uniklinik?"
            ),
            hint="'tvoed' (öffentlicher Dienst, Kommune, Bund), 'tv-l' (Länder, Uniklinik), 'avr' (kirchlich)",
            adapter=TypeAdapter(Tarif),
            messages={
                "default": (
                    "Hmm, '{input}' kenne ich nicht als Tarifvertrag. Arbeitest du im öffentlichen "
                    "Dienst (TVöD), bei den Ländern (TV-L) oder kirchlich (AVR)?"
                ),
            },
            options=("TVöD", "TV-L", "AVR"),
            chips=("TVöD", "TV-L", "AVR"),
            near_miss=EnumDistance({"tvoed": "TVöD", "tvöd": "TVöD", "tv-l": "TV-L", "tvl": "TV-L", "avr": "AVR"}),
            display=lambda v: TARIF_LABELS.get(v, str(v)),
        ),
        FieldSpec(
            name="group",
            phase=Section.JOB_DETAILS,
            label="Entgeltgruppe",
            question="Was hast du gelernt, bzw. als was arbeitest du aktuell?",
            hint=(
                "Entgeltgruppe. Berufsbezeichnungen übersetzen: Helfer ohne Ausbildung -> '5', "
                "Pflegehelfer (1 Jahr Ausbildung) -> '6', Pflegefachkraft (3 Jahre Ausbildung) -> '7', "
                "Fachweiterbildung (Intensiv, OP) -> '9', Leitungsposition -> '10'. "
                "Eine direkt genannte Gruppe wie 'P8' oder 'E9' unverändert übernehmen."
            ),
            adapter=TypeAdapter(Group),
            messages={
                "default": (
                    "Die Entgeltgruppe '{input}' kenne ich nicht. Pflege ist meist P5 bis P15, "
                    "andere Bereiche E5 bis E15."
                ),
            },
            options=("P5", "P6", "P7", "P8", "P9", "P10", "E5", "E6", "E7", "E8", "E9", "E10"),
            depends_on="tarif",
            dependency_message=(
                "Ich brauche erst deinen Tarifvertrag, um die Entgeltgruppe richtig einzuordnen. "
                "Arbeitest du im TVöD, TV-L oder AVR?"
            ),
            canonicalize=_format_group_prefix,
        ),
        FieldSpec(
            name="experience",
            phase=Section.JOB_DETAILS,
            label="Erfahrungsstufe",
            question="Wie lange arbeitest du schon in diesem Beruf?",
            hint=(
                "Berufserfahrung. Jahresangaben wörtlich mit 'Jahre' übernehmen (z.B. '5 Jahre'), "
                "eine genannte Stufe als Zahl (z.B. '3')."
            ),
            adapter=TypeAdapter(Experience),
            messages={
                "default": (
                    "Die Erfahrungsstufe '{input}' verstehe ich nicht. Wie lange bist du schon dabei? "
                    "(z.B. '3 Jahre' oder 'Stufe 2')"
                ),
            },
            options=("Stufe 1", "Stufe 2", "Stufe 3", "Stufe 4", "Stufe 5", "Stufe 6"),
            chips=("Berufseinstieg", "2 Jahre", "5 Jahre", "über 15 Jahre"),
            near_miss=Clamp(1, 6, render="Stufe {value:g}"),
            display=lambda v: f"Stufe {v}",
        ),
        FieldSpec(
            name="hours",
            phase=Section.JOB_DETAILS,
            label="Wochenstunden",
            question="Arbeitest du Vollzeit oder Teilzeit? Wie viele Stunden pro Woche sind es?",
            hint="Wochenstunden als Zahl. 'Vollzeit' -> 38.5, 'Teilzeit' ohne Zahl -> 20",
            adapter=TypeAdapter(Hours),
            messages={
                "default": "Wie viele Stunden arbeitest du pro Woche? (z.B. '38,5' oder 'Teilzeit')",
                "greater_than_equal": "Hmm, weniger als 1 Stunde pro Woche? Das klingt sehr ungewöhnlich.",
                "less_than_equal": (
                    "Hmm, {input} Stunden pro Woche? Das klingt ungewöhnlich. Vollzeit ist meist 38 bis 40 Stunden."
                ),
            },
            options=("Vollzeit (38,5 Std.)", "Teilzeit (20 Std.)", "30 Stunden"),
            chips=("Vollzeit", "Teilzeit"),
            near_miss=Clamp(1, 48, render="{value:g} Stunden"),
            display=_format_hours,
        ),
        FieldSpec(
            name="state",
            phase=Section.JOB_DETAILS,
            label="Bundesland",
            question="In welchem Bundesland arbeitest du?",
            hint="Bundesland, voller Name (z.B. 'Bayern', 'Nordrhein-Westfalen')",
            adapter=TypeAdapter(State),
            messages={"default": "'{input}' kenne ich nicht als Bundesland."},
            options=("Nordrhein-Westfalen", "Bayern", "Baden-Württemberg", "Hessen", "Berlin"),
            chips=("NRW", "Bayern", "Baden-Württemberg", "Hessen"),
            near_miss=EnumDistance({name.lower(): name for name in STATE_NAMES}),
        ),
        FieldSpec(
            name="taxClass",
            phase=Section.TAX_DETAILS,
            label="Steuerklasse",
            question=(
                "Bist du verheiratet oder ledig? Wenn du deine Steuerklasse kennst, "
                "kannst du sie mir auch direkt nennen."
            ),
            hint="Steuerklasse als Zahl 1-6. 'ledig' -> 1, 'alleinerziehend' -> 2",
            adapter=TypeAdapter(TaxClass),
            messages={
                "default": (
                    "Steuerklasse '{input}' gibt es nicht, bitte wähle 1 bis 6. Zum Beispiel: "
                    "1 (ledig), 3 (verheiratet, höheres Einkommen) oder 4 (verheiratet, gleich)."
                ),
            },
            options=("1", "2", "3", "4", "5", "6"),
            chips=("1", "3", "4", "5"),
            near_miss=PhraseHints(
                {
                    ("weiß", "weiss", "unsicher", "keine ahnung"): (
                        "Die Steuerklasse steht auf deiner Gehaltsabrechnung. Ledig ist meist 1."
                    ),
                    ("verheiratet",): "Verheiratet ist meist 3, 4 oder 5",
                },
                fallback=Clamp(1, 6),
            ),
        ),
        FieldSpec(
            name="churchTax",
            phase=Section.TAX_DETAILS,
            label="Kirchensteuer",
            question="Bist du Mitglied in einer Kirche, zahlst du also Kirchensteuer?",
            hint="true wenn Kirchenmitglied (evangelisch, katholisch), sonst false",
            adapter=TypeAdapter(ChurchTax),
            messages={
                "default": (
                    "Bei der Kirchensteuer verstehe ich '{input}' nicht. Bist du Mitglied in einer Kirche? (ja/nein)"
                ),
            },
            options=("Ja", "Nein"),
            chips=("Ja", "Nein"),
            near_miss=PhraseHints(
                {("weiß", "weiss", "unsicher"): "Bist du in der Kirche? Dann ja, sonst nein"},
            ),
            display=lambda v: "ja" if v else "nein",
        ),
        FieldSpec(
            name="numberOfChildren",
            phase=Section.TAX_DETAILS,
            label="Kinder",
            question="Hast du Kinder? Wenn ja, wie viele?",
            hint="Anzahl der Kinder als Zahl, 'keine' -> 0",
            adapter=TypeAdapter(Children),
            messages={
                "default": (
                    "Die Kinderanzahl '{input}' verstehe ich nicht. Wie viele Kinder hast du? (z.B. '2' oder 'keine')"
                ),
                "greater_than_equal": "Die Kinderanzahl kann nicht negativ sein.",
            },
            options=("0", "1", "2", "3"),
            chips=("0", "1", "2", "3"),
            near_miss=PhraseHints({("viel", "mehr"): "3 oder mehr"}, fallback=Clamp(0, 10)),
        ),
    )
}

REQUIRED_FIELDS: dict[Section, tuple[str, ...]] = {
    Section.JOB_DETAILS: tuple(n for n, s in FIELD_SPECS.items() if s.phase == Section.JOB_DETAILS),
    Section.TAX_DETAILS: tuple(n for n, s in FIELD_SPECS.items() if s.phase == Section.TAX_DETAILS),
    Section.SUMMARY: (),
    Section.COMPLETED: (),
}


def get_field_spec(name: str) -> FieldSpec:
    """Look up a field. Unknown names raise KeyError."""
    try:
        return FIELD_SPECS[name]
    except KeyError:
        msg = f"Unknown interview field: {name!r}"
        raise KeyError(msg) from None


def fields_for_phase(section: Section) -> tuple[str, ...]:
    """Required fields for ``section``, in asking order."""
    return REQUIRED_FIELDS[section]
