"""
deploybot — CLI entrypoint.

Usage:
    python -m deploybot.main --help
    python -m deploybot.main setup demo --repo-url git@github.com:acme/demo.git --deploy-type shell
    python -m deploybot.main deploy demo --branch topic --env staging --box web1
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
import yaml

from deploybot import __version__
from deploybot.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


def _parse_pairs(pairs: tuple[str, ...], typed: bool = False) -> dict:
    """Turn ('KEY=value', ...) into a dict."""
    result = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        result[key.strip()] = yaml.safe_load(value) if typed and value else value
    return result


@click.group()
@click.version_option(version=__version__, prog_name="deploybot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to deploybot.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """deploybot — deploy any branch of any project."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


@cli.command()
@click.argument("app")
@click.option("--branch", "-b", default=None, help="Branch to deploy (default: master).")
@click.option("--actions", "-a", default=None, help="Comma-separated deploy actions.")
@click.option("--env", "environment", default=None, help="Target environment.")
@click.option("--box", default=None, help="Target box within the environment.")
@click.option("--var", "variables", multiple=True, help="Deploy variable KEY=VALUE (repeatable).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deploy(
    ctx: click.Context,
    app: str,
    branch: str | None,
    actions: str | None,
    environment: str | None,
    box: str | None,
    variables: tuple[str, ...],
    as_json: bool,
) -> None:
    """Deploy the latest commit of a branch."""
    from deploybot.core.use_cases.deploy import run_deploy

    result = run_deploy(
        app,
        branch=branch,
        actions=actions,
        environment=environment,
        box=box,
        variables=_parse_pairs(variables) or None,
        via="cli",
        config_path=ctx.obj.get("config_path"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    outcome = result.outcome
    assert outcome is not None  # guaranteed after error check above

    if outcome.ok:
        click.secho(f"✅ {outcome.summary}", fg="green")
        return

    click.secho(f"❌ {outcome.message or outcome.failure_reason}", fg="red")
    if outcome.summary and not ctx.obj.get("quiet"):
        click.echo(f"   {outcome.summary}")
    sys.exit(1)


@cli.command()
@click.argument("app")
@click.option("--repo-url", "--repo", "repo_url", default=None, help="Repository to deploy from.")
@click.option("--deploy-type", "--type", "deploy_type", default=None, help="Deployer key.")
@click.option("--description", default="", help="Project description.")
@click.option("--option", "options", multiple=True, help="Deployer option KEY=VALUE (repeatable).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def setup(
    ctx: click.Context,
    app: str,
    repo_url: str | None,
    deploy_type: str | None,
    description: str,
    options: tuple[str, ...],
    as_json: bool,
) -> None:
    """Set up a new project."""
    from deploybot.core.use_cases.setup import setup_project

    result = setup_project(
        app,
        repo_url=repo_url,
        deploy_type=deploy_type,
        options=_parse_pairs(options, typed=True),
        description=description,
        config_path=ctx.obj.get("config_path"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"✅ {result.message}", fg="green")
    for warn in result.warnings:
        click.secho(f"⚠️  {warn}", fg="yellow")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def projects(ctx: click.Context, as_json: bool) -> None:
    """List configured projects."""
    from deploybot.core.config.loader import ConfigError, load_config

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([p.model_dump(mode="json") for p in config.projects], indent=2))
        return

    if not config.projects:
        click.echo("No projects yet. Add one with 'deploybot setup'.")
        return

    for project in config.projects:
        click.echo(f"  • {project.name} [{project.deploy_type}]  → {project.repo_url}")


@cli.command()
@click.argument("app")
@click.pass_context
def branches(ctx: click.Context, app: str) -> None:
    """List the branches a project can deploy."""
    from deploybot.adapters.vcs.git import RepositoryInaccessible
    from deploybot.core.config.loader import (
        ConfigError,
        config_root,
        find_config_file,
        load_config,
    )
    from deploybot.core.use_cases.deploy import default_resolver

    config_path = ctx.obj.get("config_path") or find_config_file()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    project = config.get_project(app)
    if project is None:
        click.secho(f"❌ No project called '{app}'", fg="red")
        sys.exit(1)

    resolver = default_resolver(config.settings.resolved(config_root(config_path)))
    try:
        names = resolver.branches(project)
    except RepositoryInaccessible as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    for name in names:
        click.echo(name)


@cli.command()
@click.argument("app", required=False)
@click.option("-n", "--limit", default=20, show_default=True, help="Number of deploys.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, app: str | None, limit: int, as_json: bool) -> None:
    """Show recent deploys."""
    from deploybot.core.config.loader import (
        ConfigError,
        config_root,
        find_config_file,
        load_config,
    )
    from deploybot.core.persistence.deploy_log import DeployLedger

    config_path = ctx.obj.get("config_path") or find_config_file()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    settings = config.settings.resolved(config_root(config_path))
    records = DeployLedger(Path(settings.ledger_path)).read_recent(limit, project=app)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.echo("No deploys yet.")
        return

    for record in reversed(records):
        marker = "✓" if record.status == "ok" else "✗"
        commit = (record.commit or "-------")[:7]
        target = f" to {record.environment}" if record.environment else ""
        if record.environment and record.box:
            target += f"/{record.box}"
        line = f"  {marker} {record.timestamp[:19]}  deploy {record.project}/{record.branch}@{commit}{target}"
        if record.via:
            line += f" via {record.via}"
        color = "green" if record.status == "ok" else "red"
        click.secho(line, fg=color)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def adapters(ctx: click.Context, as_json: bool) -> None:
    """Show the built-in deploy types and whether they can run here."""
    from deploybot.core.config.loader import Settings
    from deploybot.core.use_cases.deploy import default_registry

    status = default_registry(Settings()).adapter_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    for name, info in status.items():
        marker = "✓" if info["available"] else "✗"
        click.echo(f"  {marker} {name} ({info['type']})")


if __name__ == "__main__":
    cli()
