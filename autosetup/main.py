"""
podman-autosetup — CLI entrypoint.

Usage:
    podman-autosetup --help
    podman-autosetup apply
    podman-autosetup deploy web-haloeats --dry-run
    podman-autosetup status
    podman-autosetup config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from autosetup import __version__
from autosetup.core.config.loader import ConfigError, load_config
from autosetup.core.models.deployment import AutosetupConfig
from autosetup.core.observability.log_sink import LogSink
from autosetup.core.observability.logging_config import setup_logging
from autosetup.core.observability.progress import NullProgress, select_progress


@click.group()
@click.version_option(version=__version__, prog_name="podman-autosetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to autosetup.yml (default: $AUTOSETUP_CONFIG, /etc/podman-autosetup, bundled).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Run transcript (default: log_file from config).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """podman-autosetup — provision a host and deploy Quadlet applications."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["log_file"] = Path(log_file) if log_file else None

    # ── Logging level (handlers are installed once a command knows its sink) ──
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "WARNING"
    else:
        level = os.environ.get("AUTOSETUP_LOG_LEVEL", "INFO")
    ctx.obj["log_level"] = level


# ── Helpers ─────────────────────────────────────────────────────


def _load(ctx: click.Context) -> AutosetupConfig:
    """Load configuration or exit 1 with the reason."""
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    if ctx.obj.get("log_file") is not None:
        config = config.model_copy(update={"log_file": ctx.obj["log_file"]})
    return config


def _start_run(ctx: click.Context, config: AutosetupConfig, *, dry_run: bool, as_json: bool):
    """Install logging with the transcript and build the run context."""
    from autosetup.core.context import build_context

    sink = LogSink(config.log_file)
    # JSON goes to stdout alone; human-facing logs move to stderr.
    stream = sys.stderr if as_json else sys.stdout
    setup_logging(level=ctx.obj["log_level"], sink=sink, stream=stream)
    progress = NullProgress() if as_json else select_progress(sys.stdout)
    return build_context(config, dry_run=dry_run, progress=progress, sink=sink)


def _run_use_case(ctx: click.Context, fn, *, dry_run: bool, as_json: bool, **kwargs) -> None:
    """Shared body of apply / host / deploy."""
    from autosetup.core.services.host_setup import PreflightError
    from autosetup.core.use_cases.apply import EXIT_ABORTED

    config = _load(ctx)
    run_ctx = _start_run(ctx, config, dry_run=dry_run, as_json=as_json)

    try:
        result = fn(run_ctx, **kwargs)
    except (ConfigError, PreflightError) as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "exit_code": EXIT_ABORTED}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_ABORTED)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(ctx, result, run_ctx.sink.path)

    if result.exit_code:
        sys.exit(result.exit_code)


def _state_color(state: str) -> str:
    return {"active": "green", "activating": "yellow", "unknown": "white"}.get(state, "red")


def _print_summary(summary) -> None:
    click.secho("\n☕ Summary", fg="cyan", bold=True)
    click.echo(f"   Podman : {summary.podman_version or 'N/A'}")
    for name, state in summary.host_services.items():
        click.echo(f"   {name:<15}: ", nl=False)
        click.secho(state, fg=_state_color(state))

    for target, services in summary.target_services.items():
        if not services:
            continue
        click.echo()
        click.secho(f"   {target}:", bold=True)
        for service, state in services.items():
            click.echo(f"     - {service} : ", nl=False)
            click.secho(state, fg=_state_color(state))
        for image, present in summary.target_images.get(target, {}).items():
            if not present:
                click.secho(f"     ! image not in local storage: {image}", fg="yellow")

    click.echo()
    click.echo(f"   Quadlet dir: {summary.scan_dir}")
    for entry in summary.published:
        click.echo(f"     {entry}")


def _print_result(ctx: click.Context, result, log_path: Path) -> None:
    quiet = ctx.obj.get("quiet", False)

    if result.summary is not None and not quiet:
        _print_summary(result.summary)

    click.echo()
    if result.error:
        click.secho(f"❌ Aborted: {result.error}", fg="red", bold=True)
    if result.failures:
        click.secho(f"⚠️  {len(result.failures)} step(s) failed:", fg="yellow", bold=True)
        for failure in result.failures:
            click.echo(f"   • {failure}")
        click.echo(f"   Check the log: {log_path}")
    elif not result.error:
        mode = "[dry-run] " if result.dry_run else ""
        click.secho(f"✅ {mode}Finished without errors. Log: {log_path}", fg="green", bold=True)
    click.echo()


# ── Run commands ────────────────────────────────────────────────


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be done without doing it.")
@click.option("--skip-host", is_flag=True, help="Skip host provisioning (deploy only).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(ctx: click.Context, dry_run: bool, skip_host: bool, as_json: bool) -> None:
    """Provision the host, deploy every target and print a summary.

    Exit status: 0 clean, 2 finished with failed steps, 1 aborted.
    """
    from autosetup.core.use_cases.apply import run_apply

    _run_use_case(
        ctx,
        run_apply,
        dry_run=dry_run,
        as_json=as_json,
        host=not skip_host,
        command="deploy" if skip_host else "apply",
    )


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be done without doing it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def host(ctx: click.Context, dry_run: bool, as_json: bool) -> None:
    """Provision the host only: packages, podman, Cockpit, SNMP, chrony, SSH banner."""
    from autosetup.core.use_cases.apply import run_host_setup

    _run_use_case(ctx, run_host_setup, dry_run=dry_run, as_json=as_json)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--dry-run", is_flag=True, help="Show what would be done without doing it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deploy(ctx: click.Context, targets: tuple[str, ...], dry_run: bool, as_json: bool) -> None:
    """Deploy targets (default: all) without touching the host setup.

    Examples:

        podman-autosetup deploy

        podman-autosetup deploy zabbix npm --dry-run
    """
    from autosetup.core.use_cases.apply import run_deploy

    _run_use_case(
        ctx,
        run_deploy,
        dry_run=dry_run,
        as_json=as_json,
        target_names=list(targets) or None,
    )


@cli.command()
@click.argument("unit_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--pull", is_flag=True, help="Pull the images as well.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def images(ctx: click.Context, unit_dir: Path, pull: bool, as_json: bool) -> None:
    """List (and optionally pull) the images used by the units in UNIT_DIR."""
    from autosetup.core.services.unit_images import resolve_unit_images
    from autosetup.core.use_cases.apply import exit_status

    config = _load(ctx)
    run_ctx = _start_run(ctx, config, dry_run=False, as_json=as_json)
    refs = resolve_unit_images(unit_dir, run_ctx.ledger)
    receipts = run_ctx.podman.prefetch_all(refs) if pull else []

    if as_json:
        click.echo(
            json.dumps(
                {
                    "unit_dir": str(unit_dir),
                    "images": refs,
                    "pulled": [r.model_dump(mode="json") for r in receipts],
                    "failures": run_ctx.ledger.summary(),
                },
                indent=2,
            )
        )
    else:
        if not refs:
            click.secho("   No images referenced.", fg="yellow")
        for ref in refs:
            click.echo(f"   {ref}")

    code = exit_status(run_ctx.ledger)
    if code:
        sys.exit(code)


# ── Read-only commands ──────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show podman version, service states and published units."""
    from autosetup.core.context import build_context
    from autosetup.core.use_cases.status import collect_status

    config = _load(ctx)
    setup_logging(level=ctx.obj["log_level"], stream=sys.stderr if as_json else sys.stdout)
    run_ctx = build_context(config, progress=NullProgress())
    report = collect_status(run_ctx)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return
    _print_summary(report)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def doctor(ctx: click.Context, as_json: bool) -> None:
    """Check that the tools a run needs are installed."""
    from autosetup.core.context import build_context

    config = _load(ctx)
    setup_logging(level=ctx.obj["log_level"], stream=sys.stderr if as_json else sys.stdout)
    run_ctx = build_context(config, progress=NullProgress())
    tools = run_ctx.registry.adapter_status()
    is_root = os.geteuid() == 0
    healthy = is_root and all(t["available"] for t in tools.values())

    if as_json:
        click.echo(json.dumps({"root": is_root, "healthy": healthy, "adapters": tools}, indent=2))
        if not healthy:
            sys.exit(1)
        return

    click.secho("\n🩺 Doctor", fg="cyan", bold=True)
    icon, color = ("✓", "green") if is_root else ("✗", "red")
    click.secho(f"   {icon} root privileges", fg=color)
    for name, info in tools.items():
        if info["available"]:
            click.secho(f"   ✓ {name}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {name}", fg="red", nl=False)
        click.echo(f"  ({info['type']})")
    click.echo()

    if not healthy:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate autosetup.yml configuration."""
    from autosetup.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path}")
        click.echo(f"   Targets: {len(result.config.targets)}")
        for target in result.config.targets:
            click.echo(f"     • {target.name}  → {target.workdir} ({len(target.units)} units)")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


if __name__ == "__main__":
    cli()
