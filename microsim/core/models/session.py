"""Session spec: everything needed to run a bridged simulation from the CLI."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .lifecycle import BridgeCommands
from .weights import AdjustmentSpec


class WeightSpec(BaseModel):
    """Single-variable weighting to build from the population."""

    variable: str = Field(description="Engine expression for the variable, e.g. 'people.sol1'")
    name: str = Field(description="Column name looked up in each agent's variables")
    description: str = Field(default="", description="Display description")


class SessionSpec(BaseModel):
    """A simulation session driven through the lifecycle bridge."""

    population: Path = Field(description="CSV file with one row per agent")
    runs: int = Field(default=1, ge=1)
    iterations: int = Field(default=1, ge=1)
    snapshot_name: str | None = Field(
        default=None,
        description="Engine variable the population is snapshotted to, "
        "bridge.snapshot_name from config when unset",
    )
    setup: list[str] = Field(
        default_factory=list,
        description="Engine commands evaluated once before the first run",
    )
    commands: BridgeCommands = Field(default_factory=BridgeCommands)
    weights: list[WeightSpec] = Field(default_factory=list)
    adjustments: list[AdjustmentSpec] = Field(default_factory=list)

    def to_yaml(self, path: Path | str) -> None:
        """Save session spec to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", by_alias=True)

        with open(path, "w") as f:
            yaml.dump(
                data, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "SessionSpec":
        """Load session spec from YAML file.

        A relative population path is resolved against the YAML file's folder.
        """
        path = Path(path)

        with open(path) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError("Session YAML must parse to an object")

        spec = cls.model_validate(data)
        if not spec.population.is_absolute():
            spec.population = path.parent / spec.population
        return spec
