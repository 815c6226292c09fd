from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ftsim.analysis.capacitance import CapacitanceParams
from ftsim.io.series_reader import InputLayout

RESULTS_FILE = "capacitance_results.csv"


class SweepConfig(BaseModel):
    data_dir: Path = Field(description="Directory with per-group displacement CSV files")
    mesh_dir: Path = Field(description="Directory with electrode OBJ meshes")
    output_path: Optional[Path] = Field(default=None, description="Results CSV path")
    layout: InputLayout = InputLayout.auto
    max_ray_distance: float = Field(default=2.0, gt=0, description="Near-field cutoff in mm")
    relative_permittivity: float = Field(default=42.28, gt=0, description="Dielectric constant of the medium")
    plot: bool = False

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, value: Path) -> Path:
        if not value.exists():
            raise ValueError(f"Data directory does not exist: {value}")
        if not value.is_dir():
            raise ValueError(f"Data path is not a directory: {value}")
        return value

    @field_validator("mesh_dir")
    @classmethod
    def validate_mesh_dir(cls, value: Path) -> Path:
        if not value.exists():
            raise ValueError(f"Mesh directory does not exist: {value}")
        if not value.is_dir():
            raise ValueError(f"Mesh path is not a directory: {value}")
        return value

    @model_validator(mode="after")
    def default_output_path(self) -> SweepConfig:
        if self.output_path is None:
            self.output_path = result_paths_for_data_dir(self.data_dir)["results_csv"]
        elif self.output_path.exists() and self.output_path.is_dir():
            raise ValueError(f"Output path is a directory: {self.output_path}")
        return self

    def capacitance_params(self) -> CapacitanceParams:
        return CapacitanceParams(
            relative_permittivity=self.relative_permittivity,
            max_ray_distance=self.max_ray_distance,
        )

    def plot_path(self) -> Path:
        return Path(str(self.output_path)).with_suffix(".png")

    def as_summary(self) -> dict[str, Any]:
        return {
            "data_dir": str(self.data_dir),
            "mesh_dir": str(self.mesh_dir),
            "output_path": str(self.output_path),
            "layout": self.layout.value,
            "max_ray_distance": self.max_ray_distance,
            "relative_permittivity": self.relative_permittivity,
            "plot": self.plot,
        }


def result_paths_for_data_dir(data_dir: str | Path) -> dict[str, Path]:
    directory = Path(data_dir)
    return {
        "data_dir": directory,
        "results_csv": directory / RESULTS_FILE,
    }
