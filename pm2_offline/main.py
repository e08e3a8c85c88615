"""
pm2-offline — CLI entrypoint.

Usage:
    pm2-offline --help
    pm2-offline install ./packages 4
    pm2-offline plan ./packages
    pm2-offline verify
"""

from __future__ import annotations

import contextlib
import json
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Iterator

import click

from pm2_offline import __version__
from pm2_offline.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="pm2-offline")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to pm2-offline.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Install PM2 offline from a directory of npm .tgz archives."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
    )


def _load_config(ctx: click.Context):
    """Load configuration or exit 1 with the error in red."""
    from pm2_offline.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@contextlib.contextmanager
def _cancel_on_interrupt(cancel: threading.Event) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation request for running batches."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        cancel.set()
        click.secho(
            "\n⚠️  Interrupted, waiting for running installs to finish...",
            fg="yellow",
            err=True,
        )

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_plan(plan, quiet: bool = False) -> None:
    from pm2_offline.core.models.archive import Stage

    for stage in Stage:
        archives = plan.stage(stage)
        click.secho(f"   {stage.label}: {len(archives)}", fg="white", bold=True)
        if quiet:
            continue
        for archive in archives:
            click.echo(f"     • {archive.display_name}  → {archive.path.name}")

    for archive in plan.displaced_main:
        click.secho(f"   ⚠️  ignored main candidate: {archive.path.name}", fg="yellow")


# ── install ─────────────────────────────────────────────────────


@cli.command()
@click.argument("archive_dir", required=False, type=click.Path(path_type=Path))
@click.argument("jobs", required=False, type=int)
@click.option("--no-skip", is_flag=True, help="Install even if the same or newer PM2 is present.")
@click.option("--no-kill", is_flag=True, help="Don't stop a running PM2 daemon first.")
@click.option("--dry-run", is_flag=True, help="Classify archives but don't install.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real npm calls).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--audit-log",
    type=click.Path(path_type=Path),
    default=None,
    help="Append a JSON line describing this run to the given file.",
)
@click.pass_context
def install(
    ctx: click.Context,
    archive_dir: Path | None,
    jobs: int | None,
    no_skip: bool,
    no_kill: bool,
    dry_run: bool,
    mock: bool,
    as_json: bool,
    audit_log: Path | None,
) -> None:
    """Install PM2 and its dependencies from ARCHIVE_DIR.

    ARCHIVE_DIR defaults to ./packages when it exists, else the current
    directory. JOBS defaults to half the CPU count, clamped to 2..8.

    Examples:

        pm2-offline install

        pm2-offline install ./packages 4

        pm2-offline install --dry-run
    """
    from pm2_offline.core.use_cases.install import run_install

    config = _load_config(ctx)
    quiet = ctx.obj.get("quiet", False)
    verbose = ctx.obj.get("verbose", False)

    tool = verifier = None
    if mock:
        from pm2_offline.adapters.mock import MockVerifier, ScriptedInstallTool

        tool = ScriptedInstallTool(tool_name="mock-npm")
        verifier = MockVerifier()

    def on_stage(stage, archives) -> None:
        if as_json:
            return
        click.secho(f"\n📦 Installing {stage.label} ({len(archives)})", fg="cyan", bold=True)

    def on_outcome(outcome) -> None:
        if as_json or (quiet and not outcome.failed):
            return
        name = outcome.archive.display_name
        timing = f" ({outcome.duration_ms}ms)" if verbose and outcome.duration_ms else ""
        if outcome.forced:
            click.secho(f"   ✓ {name} (forced){timing}", fg="yellow")
        elif outcome.installed:
            click.secho(f"   ✓ {name}{timing}", fg="green")
        else:
            click.secho(f"   ✗ {name}", fg="red")
            if outcome.error:
                for line in outcome.error.split("\n")[:5]:
                    click.echo(f"     │ {line}")

    cancel = threading.Event()
    with _cancel_on_interrupt(cancel):
        result = run_install(
            archive_dir,
            jobs,
            config,
            tool=tool,
            verifier=verifier,
            dry_run=dry_run,
            skip_if_current=False if no_skip else None,
            stop_daemon=False if no_kill else None,
            audit_path=audit_log,
            cancel=cancel,
            on_stage=on_stage,
            on_outcome=on_outcome,
        )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    plan = result.plan
    assert plan is not None and plan.main is not None

    if dry_run:
        click.secho(
            f"\n📋 [dry-run] {plan.main.display_name} from {result.archive_dir}",
            fg="cyan",
            bold=True,
        )
        click.echo(f"   Archives: {plan.total} | Jobs: {result.jobs}")
        click.echo()
        _print_plan(plan, quiet=quiet)
        click.echo()
        return

    report = result.report
    assert report is not None

    click.echo()
    if report.skipped:
        click.secho(
            f"⊘ {config.main_package} {report.current_version} already installed "
            f"(target {report.target_version}), nothing to do",
            fg="yellow",
        )
    else:
        status_color = {"ok": "green", "degraded": "yellow", "failed": "red"}.get(
            report.status, "white"
        )
        click.secho(
            f"   Result: {report.installed}/{report.total} installed"
            f" ({report.forced} forced, {report.failed} failed)",
            fg=status_color,
            bold=True,
        )
        if cancel.is_set():
            click.secho("   Run was interrupted", fg="yellow")

    if report.verified:
        click.secho(f"✅ {config.main_package} is functional", fg="green", bold=True)
        if report.failed:
            click.secho(
                f"⚠️  {report.failed} package(s) failed to install, "
                f"{config.main_package} may have reduced functionality",
                fg="yellow",
            )
    else:
        click.secho(f"❌ {config.main_package} verification failed", fg="red", bold=True)

    if not report.ok:
        click.echo()
        sys.exit(1)

    click.echo()


# ── plan ────────────────────────────────────────────────────────


@cli.command()
@click.argument("archive_dir", required=False, type=click.Path(path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, archive_dir: Path | None, as_json: bool) -> None:
    """Show how the archives in ARCHIVE_DIR would be staged."""
    from pm2_offline.core.use_cases.install import run_install

    config = _load_config(ctx)
    result = run_install(archive_dir, config=config, dry_run=True)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.plan is not None and result.plan.main is not None
    click.secho(f"\n📋 {result.archive_dir}", fg="cyan", bold=True)
    click.echo(f"   Archives: {result.plan.total}")
    click.echo()
    _print_plan(result.plan, quiet=ctx.obj.get("quiet", False))
    click.echo()


# ── verify ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, as_json: bool) -> None:
    """Check that PM2 is installed and functional."""
    from pm2_offline.adapters.node.npm import NpmAdapter
    from pm2_offline.adapters.node.pm2 import Pm2Adapter

    config = _load_config(ctx)
    npm = NpmAdapter(timeout=config.attempt_timeout, scope=config.main_package)
    verifier = Pm2Adapter(
        install_tool=npm if npm.is_available() else None,
        command=config.main_package,
    )

    version = verifier.current_version()
    functional = verifier.is_functional()

    if as_json:
        click.echo(json.dumps(
            {"package": config.main_package, "version": version, "functional": functional},
            indent=2,
        ))
        sys.exit(0 if functional else 1)

    if functional:
        label = f" {version}" if version else ""
        click.secho(f"✅ {config.main_package}{label} is functional", fg="green", bold=True)
        return

    click.secho(f"❌ {config.main_package} is not functional", fg="red", bold=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
