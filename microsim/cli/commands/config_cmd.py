"""Config command for viewing and managing microsim configuration."""

import typer

from ..app import app, console
from ...config import CONFIG_FILE, get_config, reset_config


VALID_KEYS = {
    "bridge.iteration_end",
    "bridge.run_begin",
    "bridge.run_end",
    "bridge.sim_end",
    "bridge.snapshot_name",
    "engine.prompt",
    "engine.echo",
    "engine.intermediate_var",
    "weights.tolerance",
    "defaults.prefs_path",
}

FLOAT_FIELDS = {"tolerance"}
BOOL_FIELDS = {"echo"}


@app.command("config")
def config_command(
    action: str = typer.Argument(
        ...,
        help="Action: show, set, reset",
    ),
    key: str | None = typer.Argument(
        None,
        help="Config key (e.g. bridge.run_end, weights.tolerance)",
    ),
    value: str | None = typer.Argument(
        None,
        help="Value to set",
    ),
):
    """View or modify microsim configuration.

    Examples:
        microsim config show
        microsim config set bridge.iteration_end "print(table(people.sol1))"
        microsim config set weights.tolerance 1e-6
        microsim config reset
    """
    if action == "show":
        _show_config()
    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage:[/red] microsim config set <key> <value>")
            console.print()
            _print_valid_keys()
            raise typer.Exit(1)
        _set_config(key, value)
    elif action == "reset":
        _reset_config()
    else:
        console.print(f"[red]Unknown action:[/red] {action}")
        console.print("Valid actions: show, set, reset")
        raise typer.Exit(1)


def _print_valid_keys():
    console.print("Available keys:")
    for k in sorted(VALID_KEYS):
        console.print(f"  {k}")


def _show_config():
    """Display current resolved configuration."""
    config = get_config()
    unset = "[dim](none)[/dim]"

    console.print()
    console.print("[bold]Microsim Configuration[/bold]")
    console.print("─" * 40)

    console.print()
    console.print("[bold cyan]Bridge[/bold cyan] (engine commands per lifecycle event)")
    console.print(f"  iteration_end = {config.bridge.iteration_end or unset}")
    console.print(f"  run_begin     = {config.bridge.run_begin or unset}")
    console.print(f"  run_end       = {config.bridge.run_end or unset}")
    console.print(f"  sim_end       = {config.bridge.sim_end or unset}")
    console.print(f"  snapshot_name = {config.bridge.snapshot_name}")

    console.print()
    console.print("[bold cyan]Engine[/bold cyan]")
    console.print(f"  prompt           = {config.engine.prompt!r}")
    console.print(f"  echo             = {config.engine.echo}")
    console.print(f"  intermediate_var = {config.engine.intermediate_var}")

    console.print()
    console.print("[bold cyan]Weights[/bold cyan]")
    console.print(f"  tolerance = {config.weights.tolerance:g}")

    console.print()
    console.print("[bold cyan]Defaults[/bold cyan]")
    console.print(f"  prefs_path = {config.defaults.prefs_path}")

    console.print()
    if CONFIG_FILE.exists():
        console.print(f"Config file: {CONFIG_FILE}")
    else:
        console.print(f"Config file: [dim]not created yet[/dim] ({CONFIG_FILE})")
    console.print()


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(value)


def _set_config(key: str, value: str):
    """Set a config value and save."""
    if key not in VALID_KEYS:
        console.print(f"[red]Unknown key:[/red] {key}")
        console.print()
        _print_valid_keys()
        raise typer.Exit(1)

    config = get_config()
    zone, field_name = key.split(".", 1)
    target = getattr(config, zone)

    if field_name in FLOAT_FIELDS:
        try:
            setattr(target, field_name, float(value))
        except ValueError:
            console.print(f"[red]Invalid number:[/red] {value}")
            raise typer.Exit(1)
    elif field_name in BOOL_FIELDS:
        try:
            setattr(target, field_name, _parse_bool(value))
        except ValueError:
            console.print(f"[red]Invalid boolean:[/red] {value}")
            raise typer.Exit(1)
    else:
        setattr(target, field_name, value)

    config.save()
    reset_config()  # Clear cached singleton so next get_config() reloads

    console.print(f"[green]✓[/green] Set {key} = {value}")
    console.print(f"  Saved to {CONFIG_FILE}")


def _reset_config():
    """Reset config to defaults."""
    if CONFIG_FILE.exists():
        CONFIG_FILE.unlink()
        reset_config()
        console.print("[green]✓[/green] Config reset to defaults")
        console.print(f"  Removed {CONFIG_FILE}")
    else:
        console.print("Config already at defaults (no config file exists)")
