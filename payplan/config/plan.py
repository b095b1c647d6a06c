"""
Compensation plan configuration.

Immutable plan values built once from settings and passed explicitly
to the evaluator, distributor and matching engine.
"""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from payplan.config.level_unlocks import (
    DEFAULT_LEVEL_PERCENTAGES,
    LEVEL_UNLOCK_MILESTONES,
    MAX_LEVEL,
    UnlockMilestone,
)


class BinaryMatchingConfig(BaseModel):
    """Binary matching parameters."""

    model_config = ConfigDict(frozen=True)

    payout_percentage: Decimal = Field(
        ..., ge=0, le=100, description="Payout percentage of matched volume"
    )
    min_match_volume: Decimal = Field(
        default=Decimal("0"), ge=0, description="Minimum matchable volume"
    )
    max_daily_match: Decimal | None = Field(
        default=None, ge=0, description="Daily matched volume cap per node"
    )
    daily_cap_window: Literal["calendar", "rolling"] = "calendar"
    daily_cap_timezone: str = "UTC"
    node_timeout_seconds: float = Field(default=30.0, gt=0)
    max_tree_depth: int = Field(default=10_000, gt=0)


class LevelIncomeConfig(BaseModel):
    """Level income parameters."""

    model_config = ConfigDict(frozen=True)

    level_percentages: tuple[Decimal, ...] = Field(
        default=DEFAULT_LEVEL_PERCENTAGES,
        description="Commission percentage for levels 1..30",
    )
    milestones: tuple[UnlockMilestone, ...] = LEVEL_UNLOCK_MILESTONES
    max_depth: int = Field(default=MAX_LEVEL, ge=1, le=MAX_LEVEL)

    @field_validator("level_percentages", mode="before")
    @classmethod
    def pad_level_percentages(cls, v: object) -> object:
        """Missing trailing levels pay nothing."""
        values = tuple(Decimal(str(p)) for p in v)  # type: ignore[union-attr]
        if len(values) > MAX_LEVEL:
            raise ValueError(f"At most {MAX_LEVEL} level percentages allowed")
        if any(p < 0 for p in values):
            raise ValueError("Level percentages must be non-negative")
        return values + (Decimal("0"),) * (MAX_LEVEL - len(values))

    def percentage_for(self, level: int) -> Decimal:
        """
        Get commission percentage for a level.

        Args:
            level: Level number (1-30)

        Returns:
            Percentage, 0 for levels outside the table
        """
        if level < 1 or level > len(self.level_percentages):
            return Decimal("0")
        return self.level_percentages[level - 1]


class CompensationPlan(BaseModel):
    """Complete plan: binary matching and level income."""

    model_config = ConfigDict(frozen=True)

    binary: BinaryMatchingConfig
    level_income: LevelIncomeConfig
    binary_enabled: bool = True
    level_income_enabled: bool = True


def load_plan(settings) -> CompensationPlan:
    """
    Build immutable plan from application settings.

    Args:
        settings: Settings instance

    Returns:
        CompensationPlan
    """
    return CompensationPlan(
        binary=BinaryMatchingConfig(
            payout_percentage=settings.binary_payout_percentage,
            min_match_volume=settings.binary_min_match_volume,
            max_daily_match=settings.binary_max_daily_match,
            daily_cap_window=settings.binary_daily_cap_window,
            daily_cap_timezone=settings.binary_daily_cap_timezone,
            node_timeout_seconds=settings.matching_node_timeout_seconds,
            max_tree_depth=settings.binary_max_tree_depth,
        ),
        level_income=LevelIncomeConfig(
            level_percentages=tuple(settings.level_percentages),
        ),
        binary_enabled=settings.binary_plan_enabled,
        level_income_enabled=settings.level_income_enabled,
    )
