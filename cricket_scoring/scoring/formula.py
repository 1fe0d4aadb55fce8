"""Typed, season-scoped scoring formula.

Every rule value is optional: ``None`` means the club never configured the
rule, ``0`` means it was configured with a zero value. Neither produces a
points event, but the distinction survives a round trip through the
database so admins can see what was deliberately zeroed.

Formulas are stored as JSON. Both the sectioned layout and a flat layout are
accepted, as are the legacy key names used by older club configurations:

    >>> ScoringFormula.from_json({"run": 1, "duck": -5, "wicket": 15})
    >>> ScoringFormula.from_json({"batting": {"per_run": 1, "duck_penalty": -5}})

The list forms of that layout are read too: batting ``milestones`` at 50 and
100 runs, and bowling ``economy_bands`` with one bonus and one penalty band.

    >>> ScoringFormula.from_json({"economy_bands": [{"max": 3.0, "bonus": 10}]})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from cricket_scoring.logging import WARN, get_logger
from cricket_scoring.types import FormulaError

logger = get_logger(__name__)

# Run tiers a stored ``milestones`` list may name
_MILESTONE_KEYS: dict[int, str] = {50: "milestone_50", 100: "milestone_100"}


class BattingFormula(BaseModel):
    """Batting rule values."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    run: float | None = Field(default=None, validation_alias=AliasChoices("run", "per_run"))
    four: float | None = Field(default=None, validation_alias=AliasChoices("four", "boundary_4"))
    six: float | None = Field(default=None, validation_alias=AliasChoices("six", "boundary_6"))
    milestone_50: float | None = None
    milestone_100: float | None = None
    duck: float | None = Field(default=None, validation_alias=AliasChoices("duck", "duck_penalty"))

    @model_validator(mode="before")
    @classmethod
    def _expand_milestones(cls, data: Any) -> Any:
        """Spread a ``milestones`` list of ``{"at": runs, "bonus": points}`` tiers."""
        if not isinstance(data, dict) or "milestones" not in data:
            return data
        data = dict(data)
        for tier in data.pop("milestones") or []:
            key = _MILESTONE_KEYS.get(tier.get("at")) if isinstance(tier, dict) else None
            if key is None:
                raise ValueError(f"unsupported batting milestone {tier!r}")
            data.setdefault(key, tier.get("bonus"))
        return data


class BowlingFormula(BaseModel):
    """Bowling rule values, including the economy bands."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    wicket: float | None = Field(
        default=None, validation_alias=AliasChoices("wicket", "per_wicket")
    )
    maiden: float | None = Field(
        default=None, validation_alias=AliasChoices("maiden", "maiden_over")
    )
    milestone_3_wickets: float | None = Field(
        default=None, validation_alias=AliasChoices("milestone_3_wickets", "three_for_bonus")
    )
    milestone_5_wickets: float | None = Field(
        default=None, validation_alias=AliasChoices("milestone_5_wickets", "five_for_bonus")
    )
    economy_bonus_threshold: float | None = Field(default=None, ge=0.0)
    economy_bonus_points: float | None = None
    economy_penalty_threshold: float | None = Field(default=None, ge=0.0)
    economy_penalty_points: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _expand_economy_bands(cls, data: Any) -> Any:
        """Read ``economy_bands``: ``{"max", "bonus"}`` below, ``{"min", "penalty"}`` above."""
        if not isinstance(data, dict) or "economy_bands" not in data:
            return data
        data = dict(data)
        for band in data.pop("economy_bands") or []:
            if not isinstance(band, dict):
                raise ValueError(f"unsupported economy band {band!r}")
            if "max" in band and "bonus" in band:
                data.setdefault("economy_bonus_threshold", band["max"])
                data.setdefault("economy_bonus_points", band["bonus"])
            elif "min" in band and "penalty" in band:
                data.setdefault("economy_penalty_threshold", band["min"])
                data.setdefault("economy_penalty_points", band["penalty"])
            else:
                raise ValueError(f"unsupported economy band {band!r}")
        return data


class FieldingFormula(BaseModel):
    """Fielding rule values. Drops and misfields are usually negative."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    catch: float | None = None
    stumping: float | None = None
    run_out: float | None = Field(default=None, validation_alias=AliasChoices("run_out", "runout"))
    drop: float | None = Field(default=None, validation_alias=AliasChoices("drop", "drop_penalty"))
    misfield: float | None = Field(
        default=None, validation_alias=AliasChoices("misfield", "misfield_penalty")
    )


_SECTIONS: dict[str, type[BaseModel]] = {
    "batting": BattingFormula,
    "bowling": BowlingFormula,
    "fielding": FieldingFormula,
}


def _section_keys(model: type[BaseModel]) -> set[str]:
    keys: set[str] = set()
    for name, info in model.model_fields.items():
        keys.add(name)
        if isinstance(info.validation_alias, AliasChoices):
            keys.update(str(choice) for choice in info.validation_alias.choices)
    return keys


_FLAT_KEYS: dict[str, str] = {
    key: section for section, model in _SECTIONS.items() for key in _section_keys(model)
}
_FLAT_KEYS.update(milestones="batting", economy_bands="bowling")


class ScoringFormula(BaseModel):
    """Complete scoring configuration of a season."""

    model_config = ConfigDict(extra="forbid")

    batting: BattingFormula = Field(default_factory=BattingFormula)
    bowling: BowlingFormula = Field(default_factory=BowlingFormula)
    fielding: FieldingFormula = Field(default_factory=FieldingFormula)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_keys(cls, data: Any) -> Any:
        """Move top-level rule keys into their section."""
        if not isinstance(data, dict):
            return data
        lifted: dict[str, Any] = {
            key: dict(value) if key in _SECTIONS and isinstance(value, dict) else value
            for key, value in data.items()
            if key not in _FLAT_KEYS
        }
        for key, value in data.items():
            section = _FLAT_KEYS.get(key)
            if section is None:
                continue
            target = lifted.setdefault(section, {})
            if isinstance(target, dict):
                target.setdefault(key, value)
        # "meta" blocks carried by older configs hold display-only settings
        lifted.pop("meta", None)
        return lifted

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ScoringFormula:
        """Validate stored formula JSON.

        Raises:
            FormulaError: If the JSON does not describe a valid formula.
        """
        try:
            formula = cls.model_validate(data)
        except ValidationError as exc:
            raise FormulaError(f"Invalid scoring formula: {exc}") from exc
        if formula.economy_thresholds_overlap:
            logger.warning(
                f"{WARN} Economy thresholds overlap "
                f"(bonus <= {formula.bowling.economy_bonus_threshold}, "
                f"penalty >= {formula.bowling.economy_penalty_threshold}); "
                "bowlers in the overlap receive both events"
            )
        return formula

    def to_json(self) -> dict[str, Any]:
        """Serialize for storage, omitting unconfigured rules."""
        return self.model_dump(mode="json", exclude_none=True)

    def is_configured(self, section: str, key: str) -> bool:
        """True when the rule is present in the formula, even with value 0."""
        return getattr(getattr(self, section), key) is not None

    def rule_value(self, section: str, key: str) -> float | None:
        """Value of a rule that can fire, or None when absent or zero."""
        value = getattr(getattr(self, section), key)
        if value is None or value == 0:
            return None
        return value

    @property
    def economy_thresholds_overlap(self) -> bool:
        """Bonus and penalty thresholds can both be satisfied by one economy."""
        bonus = self.bowling.economy_bonus_threshold
        penalty = self.bowling.economy_penalty_threshold
        return bonus is not None and penalty is not None and bonus >= penalty


@dataclass(frozen=True)
class ActiveFormula:
    """The active formula version of a season.

    Attributes:
        id: Primary key of the stored version, recorded on each points event.
        season_id: Season the formula belongs to.
        version: Monotonic version number within the season.
        name: Admin-facing label.
        formula: Parsed rule values.
    """

    id: int
    season_id: int
    version: int
    name: str
    formula: ScoringFormula


# Club standard formula
DEFAULT_FORMULA = ScoringFormula(
    batting=BattingFormula(
        run=1, four=1, six=2, milestone_50=10, milestone_100=25, duck=-10
    ),
    bowling=BowlingFormula(
        wicket=15,
        maiden=5,
        milestone_3_wickets=10,
        milestone_5_wickets=25,
        economy_bonus_threshold=3.0,
        economy_bonus_points=10,
        economy_penalty_threshold=8.0,
        economy_penalty_points=-10,
    ),
    fielding=FieldingFormula(catch=5, stumping=8, run_out=6, drop=-5, misfield=-2),
)
