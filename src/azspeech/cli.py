"""azspeech command line interface.

Commands:
    login / logout / status       sign-in management
    subscriptions                 list visible subscriptions
    resources                     list Speech-capable resources
    create                        create a new resource end-to-end
    configure [PROJECT_DIR]       write a resource's key and region into a project
    show RESOURCE_ID              resource properties and portal link

Every command ends in exactly one outcome: success, cancellation (dim
"Cancelled." line, no error banner) or failure (red error line). The
outcome is recorded through the TelemetryReporter.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from azspeech import __version__
from azspeech.account_context import AccountContext
from azspeech.account_directory import AccountDirectory
from azspeech.auth_models import AuthMethod
from azspeech.click_group import SpeechToolkitGroup
from azspeech.config_manager import ConfigManager, SpeechToolkitConfig
from azspeech.env_sync import EnvSynchronizer
from azspeech.errors import (
    SpeechToolkitError,
    UnknownSubscriptionError,
    UserCancelledError,
)
from azspeech.interaction_handler import CLIInteractionHandler, InteractionHandler
from azspeech.models import AccountType, SubscriptionInfo, parse_subscription_id
from azspeech.provisioning import ProvisioningOrchestrator
from azspeech.resource_manager import ResourceManager
from azspeech.selection_resolver import SelectionResolver
from azspeech.session_provider import SessionProvider
from azspeech.speech_resources import SpeechResourceManager
from azspeech.telemetry import TelemetryEvent, TelemetryProperty, TelemetryReporter

logger = logging.getLogger(__name__)
console = Console()

SHOWN_PROPERTIES = (
    "resource_group",
    "location",
    "sku",
    "endpoint",
    "custom_sub_domain_name",
    "provisioning_state",
)


@dataclass
class Toolkit:
    """Components wired for one CLI invocation."""

    config: SpeechToolkitConfig
    config_path: str | None
    interaction: InteractionHandler
    session_provider: SessionProvider
    context: AccountContext
    directory: AccountDirectory
    resource_manager: ResourceManager
    speech_resources: SpeechResourceManager
    resolver: SelectionResolver
    orchestrator: ProvisioningOrchestrator
    telemetry: TelemetryReporter


def build_toolkit(
    config_path: str | None = None, interaction: InteractionHandler | None = None
) -> Toolkit:
    """Load the settings and wire all components.

    Raises:
        ConfigError: If the settings file is invalid
    """
    config = ConfigManager.load_config(config_path)
    interaction = interaction or CLIInteractionHandler()
    target_type = config.target_type()

    session_provider = SessionProvider(config.auth_config(), interaction=interaction)
    context = AccountContext(session_provider)
    directory = AccountDirectory(session_provider)
    resource_manager = ResourceManager(session_provider, account_type=target_type)
    speech_resources = SpeechResourceManager(
        session_provider, resource_manager, account_type=target_type
    )
    resolver = SelectionResolver(
        context, directory, resource_manager, speech_resources, interaction
    )
    orchestrator = ProvisioningOrchestrator(resolver, resource_manager, speech_resources)
    return Toolkit(
        config=config,
        config_path=config_path,
        interaction=interaction,
        session_provider=session_provider,
        context=context,
        directory=directory,
        resource_manager=resource_manager,
        speech_resources=speech_resources,
        resolver=resolver,
        orchestrator=orchestrator,
        telemetry=TelemetryReporter(),
    )


@contextmanager
def report_outcome(toolkit: Toolkit, event: TelemetryEvent) -> Iterator[dict[str, Any]]:
    """Record the outcome of a command and present failures.

    Yields a properties dict the command can fill in for the outcome event.
    """
    properties: dict[str, Any] = {}
    try:
        yield properties
    except UserCancelledError as e:
        toolkit.telemetry.send_cancelled(event, properties)
        logger.debug(f"{event} cancelled: {e.message}")
        console.print("[dim]Cancelled.[/dim]")
        sys.exit(1)
    except SpeechToolkitError as e:
        toolkit.telemetry.send_error(event, e, properties)
        logger.debug(f"{event} failed [{e.error_code}]", exc_info=True)
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)
    else:
        toolkit.telemetry.send_success(event, properties)


def _toolkit(ctx: click.Context) -> Toolkit:
    toolkit = ctx.obj.get("toolkit") if ctx.obj else None
    if toolkit is None:
        try:
            toolkit = build_toolkit(ctx.obj.get("config_path") if ctx.obj else None)
        except SpeechToolkitError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            sys.exit(1)
        ctx.ensure_object(dict)["toolkit"] = toolkit
    return toolkit


def _resolve_subscription(toolkit: Toolkit, subscription_id: str | None) -> SubscriptionInfo:
    """Explicit id, then the last used subscription, then an interactive choice."""
    if subscription_id:
        subscription = toolkit.resolver.set_subscription(subscription_id)
    elif toolkit.config.last_subscription_id:
        try:
            subscription = toolkit.resolver.set_subscription(toolkit.config.last_subscription_id)
        except UnknownSubscriptionError:
            logger.info("Last used subscription is no longer available")
            subscription = toolkit.resolver.select_subscription(reuse_current=False)
    else:
        subscription = toolkit.resolver.select_subscription(reuse_current=False)

    if subscription.id != toolkit.config.last_subscription_id:
        toolkit.config = ConfigManager.update_config(
            toolkit.config_path, last_subscription_id=subscription.id
        )
    return subscription


def _resource_properties(resource: Any) -> dict[str, Any]:
    return {
        TelemetryProperty.AZURE_SUBSCRIPTION_ID: resource.subscription_id,
        TelemetryProperty.RESOURCE_GROUP: resource.resource_group,
        TelemetryProperty.SERVICE_REGION: resource.region,
        TelemetryProperty.SPEECH_RESOURCE_SKU: resource.sku,
        TelemetryProperty.SPEECH_RESOURCE_NAME: resource.name,
    }


@click.group(cls=SpeechToolkitGroup)
@click.version_option(version=__version__, prog_name="azspeech")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Settings file (default: ~/.azspeech/config.toml)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """Provision Azure AI Speech resources and wire them into sample projects.

    \b
    EXAMPLES:
        $ azspeech login
        $ azspeech resources
        $ azspeech create
        $ azspeech configure ./my-sample
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    # Azure SDK request logging is noisy at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
    ctx.ensure_object(dict)["config_path"] = config_path


@main.command()
@click.option("--tenant", "tenant_id", help="Tenant to sign in to")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def login(ctx: click.Context, tenant_id: str | None, yes: bool) -> None:
    """Sign in to Azure."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.AZURE_LOGIN):
        toolkit.session_provider.login(confirm=not yes, tenant_id=tenant_id)
        email = toolkit.session_provider.get_status().email or "unknown account"
        console.print(f"[green]Signed in as {email}[/green]")


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def logout(ctx: click.Context, yes: bool) -> None:
    """Sign out and forget the last used subscription."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.AZURE_LOGOUT):
        if not toolkit.session_provider.is_signed_in():
            console.print("Not signed in.")
            return

        toolkit.session_provider.logout(confirm=not yes)
        toolkit.config = ConfigManager.update_config(
            toolkit.config_path, last_subscription_id=None
        )
        console.print("[green]Signed out.[/green]")
        if toolkit.session_provider.auth_config.method == AuthMethod.AZURE_CLI:
            console.print(
                "[dim]The Azure CLI is still signed in; run 'az logout' to sign out of it.[/dim]"
            )


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the sign-in status."""
    toolkit = _toolkit(ctx)
    try:
        toolkit.session_provider.refresh_status()
    except SpeechToolkitError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)

    info = toolkit.session_provider.get_status()
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", str(info.status))
    table.add_row("Account", info.email or "-")
    table.add_row("Tenant", str((info.account_info or {}).get("tid", "-")))
    table.add_row("Auth method", str(toolkit.session_provider.auth_config.method))
    table.add_row("Last subscription", toolkit.config.last_subscription_id or "-")
    console.print(table)


@main.command()
@click.pass_context
def subscriptions(ctx: click.Context) -> None:
    """List the subscriptions visible to the signed-in account."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.LIST_SUBSCRIPTIONS):
        found = toolkit.directory.list_subscriptions()
        if not found:
            console.print("[yellow]No subscription found.[/yellow]")
            return

        table = Table(title="Azure Subscriptions")
        table.add_column("Current", style="cyan", width=8)
        table.add_column("Name", style="green")
        table.add_column("Subscription ID", style="blue")
        table.add_column("Tenant ID", style="blue")
        for sub in found:
            marker = "*" if sub.id == toolkit.config.last_subscription_id else ""
            table.add_row(marker, sub.name, sub.id, sub.tenant_id)
        console.print(table)


@main.command()
@click.option("--subscription", "subscription_id", help="Subscription ID")
@click.option(
    "--type",
    "kinds",
    multiple=True,
    type=click.Choice([t.value for t in AccountType], case_sensitive=False),
    help="Account kind to list (repeatable, default: configured kinds)",
)
@click.pass_context
def resources(ctx: click.Context, subscription_id: str | None, kinds: tuple[str, ...]) -> None:
    """List Speech-capable resources grouped by kind."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.LIST_RESOURCES) as props:
        account_types = (
            [AccountType.from_kind(kind) for kind in kinds]
            if kinds
            else toolkit.config.selectable_types()
        )
        subscription = _resolve_subscription(toolkit, subscription_id)
        props[TelemetryProperty.AZURE_SUBSCRIPTION_ID] = subscription.id

        grouped = toolkit.speech_resources.list_instances_by_type(subscription, account_types)
        table = Table(title=f"Speech resources in {subscription.name}")
        table.add_column("Type", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Resource group")
        table.add_column("Region")
        table.add_column("SKU")
        for account_type, items in grouped.items():
            for resource in items:
                table.add_row(
                    account_type.display_name,
                    resource.name,
                    resource.resource_group,
                    resource.region,
                    resource.sku,
                )
        if not any(grouped.values()):
            console.print(f"[yellow]No Speech resource found in {subscription.name}.[/yellow]")
            return
        console.print(table)


@main.command()
@click.option("--subscription", "subscription_id", help="Subscription ID")
@click.pass_context
def create(ctx: click.Context, subscription_id: str | None) -> None:
    """Create a new Azure AI Service resource."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.CREATE_AZURE_AI_SERVICE) as props:
        toolkit.session_provider.login(confirm=True)
        subscription = _resolve_subscription(toolkit, subscription_id)
        resource = toolkit.orchestrator.create_new(subscription)
        props.update(_resource_properties(resource))

        console.print(f"[green]Created {resource.name} in {resource.resource_group}.[/green]")
        console.print(f"Portal: {toolkit.speech_resources.portal_url(resource)}")
        console.print("[dim]Next: run 'azspeech configure' to use it in a project.[/dim]")


@main.command()
@click.argument(
    "project_dir",
    required=False,
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option("--subscription", "subscription_id", help="Subscription ID")
@click.pass_context
def configure(ctx: click.Context, project_dir: Path | None, subscription_id: str | None) -> None:
    """Write a resource's key and region into a sample project.

    Selects an existing resource (or creates one), fetches its key and
    region and writes them to the project's env file and config.json.
    """
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.CONFIGURE_RESOURCE) as props:
        if project_dir is None:
            project_dir = toolkit.interaction.select_folder(
                "Project folder", default=Path.cwd()
            )

        toolkit.session_provider.login(confirm=True)
        subscription = _resolve_subscription(toolkit, subscription_id)
        props[TelemetryProperty.AZURE_SUBSCRIPTION_ID] = subscription.id

        resource = toolkit.orchestrator.select_existing(
            subscription, toolkit.config.selectable_types()
        )
        if resource is None:
            if not toolkit.interaction.confirm(
                f"No Speech resource found in {subscription.name}. Create a new Azure AI Service?"
            ):
                raise UserCancelledError(source="configure")
            resource = toolkit.orchestrator.create_new(subscription)
        props.update(_resource_properties(resource))

        credentials = toolkit.orchestrator.fetch_credentials(resource)
        result = EnvSynchronizer.sync_project(
            project_dir,
            resource,
            credentials,
            env_folder=toolkit.config.env_folder,
            env_file_name=toolkit.config.env_file_name,
            config_json_name=toolkit.config.config_json_name,
        )

        console.print(f"[green]Configured {resource.name} in {result.env_file}[/green]")
        if result.updated_config_fields:
            console.print(
                f"Updated {', '.join(result.updated_config_fields)} in {result.config_file}"
            )
        if result.config_error is not None:
            console.print(
                f"[yellow]Warning:[/yellow] {result.config_file} was not updated: "
                f"{result.config_error.message}"
            )


@main.command()
@click.argument("resource_id")
@click.pass_context
def show(ctx: click.Context, resource_id: str) -> None:
    """Show the properties of a resource (never its key)."""
    toolkit = _toolkit(ctx)
    with report_outcome(toolkit, TelemetryEvent.VIEW_SPEECH_RESOURCE_PROPERTIES) as props:
        subscription = toolkit.resolver.set_subscription(parse_subscription_id(resource_id))
        resource = toolkit.speech_resources.get_instance_by_id(subscription, resource_id)
        props.update(_resource_properties(resource))

        properties = toolkit.speech_resources.get_instance(resource)
        table = Table(title=resource.name, show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Type", resource.account_type.display_name)
        table.add_row("Subscription", f"{subscription.name} ({subscription.id})")
        for key in SHOWN_PROPERTIES:
            table.add_row(key.replace("_", " ").capitalize(), str(properties.get(key) or "-"))
        table.add_row("Portal", toolkit.speech_resources.portal_url(resource))
        console.print(table)


if __name__ == "__main__":
    main()
