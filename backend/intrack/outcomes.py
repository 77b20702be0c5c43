"""QC outcome classification.

A record's detail list depends on its outcome: needs-improvement carries
defects, modified carries modifications, rejected carries rejection reasons
and first-time-through carries nothing. The variants below make that a
property of the type instead of a set of optional fields.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from intrack.errors import ValidationError


class Outcome(str, Enum):
    FIRST_TIME_THROUGH = "first_time_through"
    NEEDS_IMPROVEMENT = "needs_improvement"
    MODIFIED = "modified"
    REJECTED = "rejected"


# outcome -> name of the detail list it carries
DETAIL_FIELDS: Dict[Outcome, str] = {
    Outcome.NEEDS_IMPROVEMENT: "defects",
    Outcome.MODIFIED: "modifications",
    Outcome.REJECTED: "rejection_reasons",
}


class _Variant(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def outcome(self) -> Outcome:
        return Outcome(self.type)  # type: ignore[attr-defined]

    @property
    def labels(self) -> Tuple[str, ...]:
        return ()


class FirstTimeThrough(_Variant):
    type: Literal["first_time_through"] = "first_time_through"


class NeedsImprovement(_Variant):
    type: Literal["needs_improvement"] = "needs_improvement"
    defects: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return self.defects


class Modified(_Variant):
    type: Literal["modified"] = "modified"
    modifications: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return self.modifications


class Rejected(_Variant):
    type: Literal["rejected"] = "rejected"
    rejection_reasons: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return self.rejection_reasons


OutcomeDetail = Annotated[
    Union[FirstTimeThrough, NeedsImprovement, Modified, Rejected],
    Field(discriminator="type"),
]

_VARIANTS = {
    Outcome.FIRST_TIME_THROUGH: FirstTimeThrough,
    Outcome.NEEDS_IMPROVEMENT: NeedsImprovement,
    Outcome.MODIFIED: Modified,
    Outcome.REJECTED: Rejected,
}


def parse_outcome(value: Any) -> Outcome:
    if isinstance(value, Outcome):
        return value
    try:
        return Outcome(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(o.value for o in Outcome)
        raise ValidationError(f"Unknown outcome {value!r}; expected one of: {allowed}")


def _clean_labels(field: str, values: Iterable[Any]) -> Tuple[str, ...]:
    out = []
    for v in values:
        if not isinstance(v, str) or not v.strip():
            raise ValidationError(f"{field} entries must be non-empty strings")
        out.append(v.strip())
    return tuple(out)


def build_outcome(
    type: Any,
    defects: Optional[Iterable[str]] = None,
    modifications: Optional[Iterable[str]] = None,
    rejection_reasons: Optional[Iterable[str]] = None,
) -> OutcomeDetail:
    """Turn the flat wire shape into its variant.

    Only the list matching ``type`` may be non-empty; supplying any other
    list raises :class:`ValidationError`.
    """
    kind = parse_outcome(type)
    supplied = {
        name: list(values)
        for name, values in (
            ("defects", defects),
            ("modifications", modifications),
            ("rejection_reasons", rejection_reasons),
        )
        if values
    }
    expected = DETAIL_FIELDS.get(kind)
    extra = sorted(name for name in supplied if name != expected)
    if extra:
        raise ValidationError(
            f"{kind.value} records do not accept {', '.join(extra)}"
        )

    variant = _VARIANTS[kind]
    if expected is None:
        return variant()
    return variant(**{expected: _clean_labels(expected, supplied.get(expected, []))})


def load_labels(raw: Optional[str]) -> List[str]:
    """Decode a stored detail list. Raises ``ValueError`` on malformed payloads."""
    if raw is None or raw == "":
        return []
    data = json.loads(raw)
    if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
        raise ValueError(f"expected a JSON list of strings, got {type(data).__name__}")
    return data


def dump_labels(labels: Iterable[str]) -> str:
    return json.dumps(list(labels), ensure_ascii=False)
