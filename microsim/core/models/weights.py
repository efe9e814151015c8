"""Weighting models.

This module contains:
- WeightEntry: mutable numerator/denominator pair for one factor level
- AdjustmentSpec: one row of a categorical adjustment batch specification
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field


class WeightEntry(BaseModel):
    """Weight of one factor level.

    The denominator is the level's proportion in the source distribution
    and never changes. The numerator is the user-adjusted proportion and
    starts equal to the denominator. The numerators of a valid set sum to 1.
    """

    model_config = ConfigDict(validate_assignment=True)

    label: str = Field(description="Factor level as named by the source distribution")
    numerator: float = Field(ge=0, description="Adjusted proportion")
    denominator: float = Field(gt=0, description="Source proportion")

    @property
    def fraction(self) -> float:
        """The effective weight: the adjusted proportion of this level."""
        return self.numerator

    @property
    def ratio(self) -> float:
        """Adjusted proportion relative to the source proportion."""
        return self.numerator / self.denominator

    def reset(self) -> None:
        self.numerator = self.denominator


class AdjustmentSpec(BaseModel):
    """Specification of one categorical variable adjustment."""

    model_config = ConfigDict(populate_by_name=True)

    matrix_varname: str = Field(
        alias="rMatrixVarname",
        description="Existing engine matrix holding the values, e.g. 'scenario.catadjs.fsmoke'",
    )
    variable: str = Field(
        alias="rVariable", description="Variable name, used to look up a description"
    )
    display_adj_factor: float = Field(
        alias="displayAdjFactor",
        allow_inf_nan=False,
        description="Multiplier applied for display, 1 for no adjustment",
    )


def load_adjustment_specs(path: Path | str) -> list[AdjustmentSpec]:
    """Load a YAML list of adjustment specs."""
    path = Path(path)

    with open(path) as f:
        data = yaml.safe_load(f)

    if not isinstance(data, list):
        raise ValueError("Adjustment YAML must parse to a list")

    return [AdjustmentSpec.model_validate(item) for item in data]
