#!/usr/bin/env python3
"""
Main CLI entry point for Decision Trail.
"""
import asyncio
import json
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass

import click
import httpx
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from decision_trail import __version__
from decision_trail.api.client import AnalysisError, ImpactAssistClient
from decision_trail.core.config import (
    ENV_ACCESS_TOKEN,
    ENV_ANON_KEY,
    ENV_SUPABASE_URL,
    AppConfig,
    RevealTiming,
    configure_logging,
    load_config,
    mask_secret,
)
from decision_trail.core.projection import project
from decision_trail.integrations.supabase import (
    SupabaseAuthSession,
    SupabaseError,
    SupabaseImpactStore,
)
from decision_trail.ui.chat_cli import DecisionChatCLI, render_area_inventory, render_summary

console = Console()


@dataclass
class Components:
    session: SupabaseAuthSession
    gateway: ImpactAssistClient
    store: SupabaseImpactStore


@asynccontextmanager
async def open_components(config: AppConfig):
    """Build the collaborators around one shared HTTP client."""
    http_client = httpx.AsyncClient(timeout=config.gateway.timeout_seconds)
    session = SupabaseAuthSession(config.gateway, config.access_token, http_client)
    try:
        yield Components(
            session=session,
            gateway=ImpactAssistClient(config.gateway, session, http_client),
            store=SupabaseImpactStore(config.gateway, session, http_client)
        )
    finally:
        await http_client.aclose()


def check_config(config: AppConfig) -> bool:
    """Check if configuration is properly set up."""
    ok = True
    if not config.gateway.supabase_url:
        console.print(f"[red]❌ {ENV_SUPABASE_URL} not configured[/red]")
        ok = False
    if not config.gateway.anon_key:
        console.print(f"[red]❌ {ENV_ANON_KEY} not configured[/red]")
        ok = False
    if not config.access_token:
        console.print(f"[red]❌ {ENV_ACCESS_TOKEN} not configured[/red]")
        ok = False
    if not ok:
        console.print("Set them in a .env file or in config.yaml, e.g.:")
        console.print(f"  echo '{ENV_SUPABASE_URL}=https://<project>.supabase.co' >> .env")
    return ok


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', default="config.yaml", help="Path to config file")
@click.pass_context
def cli(ctx, config_path):
    """Decision Trail - assess the impact of organizational decisions."""
    config = load_config(config_path)
    configure_logging(config.log_level)
    ctx.obj = config


@cli.command()
@click.option('--workspace', '-w', required=True, help="Workspace id")
@click.option('--no-typing', is_flag=True, help="Reveal messages at once")
@click.pass_obj
def new(config: AppConfig, workspace, no_typing):
    """Start the interactive New Decision flow."""
    if not check_config(config):
        sys.exit(1)
    record_id = asyncio.run(_new_async(config, workspace, no_typing))
    if record_id is None:
        console.print("[dim]No decision created[/dim]")


async def _new_async(config: AppConfig, workspace_id: str, no_typing: bool):
    """Async wrapper for new command."""
    timing = config.reveal
    if no_typing:
        timing = RevealTiming.instant()

    async with open_components(config) as components:
        chat = DecisionChatCLI(workspace_id, components.gateway, components.store, timing)
        return await chat.start()


@cli.command()
@click.option('--workspace', '-w', required=True, help="Workspace id")
@click.option('--json', 'as_json', is_flag=True, help="Print the sanitized analysis as JSON")
@click.argument('text')
@click.pass_obj
def analyze(config: AppConfig, workspace, as_json, text):
    """Analyze TEXT once and print the result."""
    if not check_config(config):
        sys.exit(1)
    try:
        analysis = asyncio.run(_analyze_async(config, workspace, text))
    except AnalysisError as e:
        console.print(f"[red]❌ {e.kind.value}: {escape(str(e))}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))
        return

    render_summary(project(analysis), analysis.summary, analysis.context, console)
    if analysis.clarifying_questions:
        console.print("[bold]Clarifying questions[/bold]")
    for i, question in enumerate(analysis.clarifying_questions, 1):
        console.print(f"  [cyan]{i}.[/cyan] {escape(question)}")
    render_area_inventory(analysis.area_suggestions, console)


async def _analyze_async(config: AppConfig, workspace_id: str, text: str):
    async with open_components(config) as components:
        return await components.gateway.analyze(text, workspace_id)


@cli.command()
@click.pass_obj
def workspaces(config: AppConfig):
    """List the workspaces of the configured user."""
    if not check_config(config):
        sys.exit(1)
    try:
        rows = asyncio.run(_workspaces_async(config))
    except (SupabaseError, httpx.HTTPError) as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        sys.exit(1)

    table = Table(title="Workspaces")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Role", style="yellow")
    table.add_column("Members", justify="right")
    for ws in rows:
        table.add_row(ws.id, ws.name, ws.role, str(ws.member_count))
    console.print(table)


async def _workspaces_async(config: AppConfig):
    async with open_components(config) as components:
        return await components.store.list_workspaces_for_user()


@cli.command(name="config")
@click.option('--show-key', is_flag=True, help="Show full keys (be careful!)")
@click.pass_obj
def show_config(config: AppConfig, show_key):
    """Show current configuration."""
    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")

    secrets = {('gateway', 'anon_key'), ('session', 'access_token')}
    for section, settings in config.to_dict().items():
        for key, value in settings.items():
            if (section, key) in secrets and not show_key:
                value = mask_secret(value)
            elif value is None:
                value = "[red]NOT SET[/red]"
            table.add_row(f"{section}.{key}", str(value))

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
