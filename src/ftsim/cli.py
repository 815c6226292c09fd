from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ftsim.analysis.capacitance import CapacitanceEstimator, CapacitanceParams, format_results_table
from ftsim.analysis.driver import RowApplication, TimeSeriesDriver
from ftsim.analysis.envelope import format_envelope_table
from ftsim.config import SweepConfig
from ftsim.electrodes.layout import MOVING_GROUPS
from ftsim.errors import LoadError, ResultsWriteError, RowOutOfRangeError, SetupError
from ftsim.io.series_reader import InputLayout, combined_path, detect_layout, load_group_series, sphere_paths
from ftsim.logging_config import setup_logging
from ftsim.meshes.obj_meshes import ObjDirectoryMeshProvider, mesh_paths_for_dir
from ftsim.pose.store import PoseStore
from ftsim.runtime_paths import get_data_dir, get_mesh_dir
from ftsim.viz.capacitance_plot import save_capacitance_plot

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="FT_Sim capacitance estimation from tracked sphere displacements.",
)
sweep_app = typer.Typer(help="Bulk processing of every displacement row.")
app.add_typer(sweep_app, name="sweep")
console = Console()

STEP_HELP = "Commands: n (next), p (previous), g <row> (goto), c (capacitance), i (row info), q (quit)"

CONFIG_PARAM_HINTS = {
    "data_dir": "--data-dir",
    "mesh_dir": "--mesh-dir",
    "output_path": "--output",
    "layout": "--layout",
    "max_ray_distance": "--max-ray-distance",
    "relative_permittivity": "--permittivity",
}


def _bool_mark(value: bool) -> str:
    return "ok" if value else "missing"


def _build_estimator(mesh_dir: Path, pose_store: PoseStore, params: CapacitanceParams) -> CapacitanceEstimator:
    try:
        provider = ObjDirectoryMeshProvider(mesh_dir)
        estimator = CapacitanceEstimator(pose_store, provider, params=params)
        estimator.setup()
    except (FileNotFoundError, ValueError, SetupError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--mesh-dir") from exc
    return estimator


def _capacitance_params(max_ray_distance: float, permittivity: float) -> CapacitanceParams:
    try:
        return CapacitanceParams(relative_permittivity=permittivity, max_ray_distance=max_ray_distance)
    except ValueError as exc:
        message = str(exc)
        if "max_ray_distance" in message:
            raise typer.BadParameter(message, param_hint="--max-ray-distance") from exc
        raise typer.BadParameter(message, param_hint="--permittivity") from exc


def _load_driver(driver: TimeSeriesDriver, data_dir: Path, layout: InputLayout) -> None:
    try:
        driver.load_directory(data_dir, layout)
    except LoadError as exc:
        raise typer.BadParameter(str(exc), param_hint="--data-dir") from exc


def _print_application(application: RowApplication, max_rows: int) -> None:
    applied = ", ".join(group.value for group in application.applied_groups) or "-"
    console.print(f"[bold]Row {application.row}[/bold] of 0..{max_rows - 1}: applied {applied}")
    if application.held_groups:
        held = ", ".join(group.value for group in application.held_groups)
        console.print(f"- holding last pose: {held}")
    if application.degenerate_groups:
        degenerate = ", ".join(group.value for group in application.degenerate_groups)
        console.print(f"[yellow]- collinear spheres (translation only): {degenerate}[/yellow]")


def _print_row_info(driver: TimeSeriesDriver, row: int) -> None:
    table = Table(title=f"Displacement offsets at row {row} (mm)")
    table.add_column("Group")
    table.add_column("A")
    table.add_column("B")
    table.add_column("C")
    for group, offsets in driver.row_info(row).items():
        if offsets is None:
            table.add_row(group.value, "(held)", "(held)", "(held)")
            continue
        table.add_row(group.value, *("(" + ", ".join(f"{v:.4f}" for v in point) + ")" for point in offsets))
    console.print(table)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable debug logging.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write log messages to this file.",
    ),
) -> None:
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file=log_file)


@app.command("status")
def status(
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory with displacement CSV files. Defaults to csv_data/.",
    ),
    mesh_dir: Optional[Path] = typer.Option(
        None,
        "--mesh-dir",
        "-m",
        help="Directory with electrode OBJ meshes. Defaults to models/.",
    ),
) -> None:
    data_dir = data_dir or get_data_dir()
    mesh_dir = mesh_dir or get_mesh_dir()

    table = Table(title="Input status")
    table.add_column("Item")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Source")
    for group in MOVING_GROUPS:
        layout = detect_layout(data_dir, group)
        if layout is None:
            table.add_row(group.value, _bool_mark(False), "-", combined_path(data_dir, group).name)
            continue
        if layout is InputLayout.combined:
            files = combined_path(data_dir, group).name
        else:
            files = ", ".join(path.name for path in sphere_paths(data_dir, group).values())
        try:
            rows = str(len(load_group_series(data_dir, group, layout)))
        except LoadError as exc:
            rows = "error"
            console.print(f"[yellow]{exc}[/yellow]")
        table.add_row(group.value, _bool_mark(rows != "error"), rows, f"{files} ({layout.value})")
    for name, path in mesh_paths_for_dir(mesh_dir).items():
        table.add_row(name, _bool_mark(path.exists()), "-", path.name)
    console.print(f"Data directory: {data_dir}")
    console.print(f"Mesh directory: {mesh_dir}")
    console.print(table)


@app.command("evaluate")
def evaluate(
    mesh_dir: Optional[Path] = typer.Option(
        None,
        "--mesh-dir",
        "-m",
        help="Directory with electrode OBJ meshes. Defaults to models/.",
    ),
    max_ray_distance: float = typer.Option(
        2.0,
        "--max-ray-distance",
        help="Near-field cutoff in mm.",
    ),
    permittivity: float = typer.Option(
        42.28,
        "--permittivity",
        help="Relative permittivity of the medium between the electrodes.",
    ),
) -> None:
    params = _capacitance_params(max_ray_distance, permittivity)
    estimator = _build_estimator(mesh_dir or get_mesh_dir(), PoseStore(), params)
    console.print(format_results_table(estimator.evaluate(), title="Baseline capacitance (rest pose)"))


@sweep_app.command("run")
def sweep_run(
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory with displacement CSV files. Defaults to csv_data/.",
    ),
    mesh_dir: Optional[Path] = typer.Option(
        None,
        "--mesh-dir",
        "-m",
        help="Directory with electrode OBJ meshes. Defaults to models/.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Results CSV path. Defaults to <data-dir>/capacitance_results.csv.",
    ),
    layout: InputLayout = typer.Option(
        InputLayout.auto,
        "--layout",
        help="Input file layout: auto, combined, per-sphere.",
    ),
    max_ray_distance: float = typer.Option(
        2.0,
        "--max-ray-distance",
        help="Near-field cutoff in mm.",
    ),
    permittivity: float = typer.Option(
        42.28,
        "--permittivity",
        help="Relative permittivity of the medium between the electrodes.",
    ),
    plot: bool = typer.Option(
        False,
        "--plot/--no-plot",
        help="Also save a PNG plot next to the results CSV.",
    ),
) -> None:
    try:
        config = SweepConfig(
            data_dir=data_dir or get_data_dir(),
            mesh_dir=mesh_dir or get_mesh_dir(),
            output_path=output,
            layout=layout,
            max_ray_distance=max_ray_distance,
            relative_permittivity=permittivity,
            plot=plot,
        )
    except ValidationError as exc:
        error = exc.errors()[0]
        message = error.get("msg", "Invalid input")
        field = str(error["loc"][0]) if error.get("loc") else "output_path"
        raise typer.BadParameter(message, param_hint=CONFIG_PARAM_HINTS.get(field, "--output")) from exc

    console.print_json(data=config.as_summary())

    pose_store = PoseStore()
    driver = TimeSeriesDriver(pose_store)
    _load_driver(driver, config.data_dir, config.layout)
    driver.estimator = _build_estimator(config.mesh_dir, pose_store, config.capacitance_params())

    try:
        result = driver.sweep(config.output_path)
    except ResultsWriteError as exc:
        console.print(f"[bold red]Failed[/bold red]: {exc}")
        raise typer.Exit(code=2) from exc

    console.print(format_envelope_table(result.envelopes))
    if result.rows:
        console.print(format_results_table(result.rows[-1], title=f"Capacitance at row {result.row_count}"))
    console.print(f"Saved results CSV to {result.output_path}")

    if config.plot:
        plot_path = save_capacitance_plot(result.rows, config.plot_path())
        console.print(f"Saved capacitance plot to {plot_path}")


@app.command("step")
def step(
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory with displacement CSV files. Defaults to csv_data/.",
    ),
    mesh_dir: Optional[Path] = typer.Option(
        None,
        "--mesh-dir",
        "-m",
        help="Directory with electrode OBJ meshes. Enables the c command.",
    ),
    layout: InputLayout = typer.Option(
        InputLayout.auto,
        "--layout",
        help="Input file layout: auto, combined, per-sphere.",
    ),
    start_row: int = typer.Option(
        0,
        "--start-row",
        min=0,
        help="Row applied when the session starts.",
    ),
    max_ray_distance: float = typer.Option(
        2.0,
        "--max-ray-distance",
        help="Near-field cutoff in mm.",
    ),
    permittivity: float = typer.Option(
        42.28,
        "--permittivity",
        help="Relative permittivity of the medium between the electrodes.",
    ),
) -> None:
    pose_store = PoseStore()
    driver = TimeSeriesDriver(pose_store)
    _load_driver(driver, data_dir or get_data_dir(), layout)
    if mesh_dir is not None:
        params = _capacitance_params(max_ray_distance, permittivity)
        driver.estimator = _build_estimator(mesh_dir, pose_store, params)

    try:
        application = driver.start_stepping(start_row)
    except RowOutOfRangeError as exc:
        raise typer.BadParameter(str(exc), param_hint="--start-row") from exc
    _print_application(application, driver.max_rows)
    console.print(STEP_HELP)

    while True:
        parts = typer.prompt("step").strip().split()
        if not parts:
            continue
        action = parts[0].lower()
        if action == "q":
            break
        if action == "i":
            _print_row_info(driver, driver.current_row)
            continue
        if action == "c":
            if driver.estimator is None:
                console.print("[yellow]Capacitance needs --mesh-dir.[/yellow]")
                continue
            driver.estimator.refresh()
            samples = driver.estimator.evaluate()
            console.print(format_results_table(samples, title=f"Capacitance at row {driver.current_row}"))
            continue

        target: int | None = None
        if action == "g":
            if len(parts) != 2 or not parts[1].lstrip("-").isdigit():
                console.print("Usage: g <row>")
                continue
            target = int(parts[1])
        elif action not in ("n", "p"):
            console.print(f"Unknown command: {action}")
            console.print(STEP_HELP)
            continue

        try:
            if action == "n":
                application = driver.next_row()
            elif action == "p":
                application = driver.previous_row()
            else:
                application = driver.goto_row(target)
        except RowOutOfRangeError as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            continue
        _print_application(application, driver.max_rows)

    driver.stop_stepping()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
