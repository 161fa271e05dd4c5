"""
Command-line interface for contact_ops.

Provides CLI commands for authenticating against Google Contacts and running
permission-gated contact and group operations.

Usage:
    # Show help
    contact-ops --help

    # Authenticate
    contact-ops auth

    # Fetch contacts
    contact-ops contacts get people/c123 --field emailAddresses

    # Manage groups
    contact-ops group get Favorites --create
    contact-ops group add-members Favorites people/c1 people/c2
    contact-ops group remove-members Favorites people/c1
    contact-ops group delete Favorites
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click

from contact_ops import __version__
from contact_ops.auth.google_auth import AuthenticationError, GoogleAuth
from contact_ops.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from contact_ops.errors import DomainTaskFailedError
from contact_ops.models import (
    ALL_CONTACT_KEYS,
    Contact,
    ContactPredicate,
    ContainerID,
)
from contact_ops.operations import (
    ContactsTask,
    TaskQueue,
    add_contacts_to_group,
    get_contacts,
    get_contacts_group,
    remove_contacts_from_group,
    remove_contacts_group,
)
from contact_ops.operations.queue import DEFAULT_MAX_WORKERS
from contact_ops.store.base import ContactStore, EntityType
from contact_ops.store.people_store import PeopleContactStore
from contact_ops.utils import resolve_config_dir
from contact_ops.utils.logging import cleanup_old_logs, get_logger, setup_logging

# Default seconds to wait for an operation (includes the consent flow)
DEFAULT_TASK_TIMEOUT = 300.0


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def build_store(ctx: click.Context) -> ContactStore:
    """Create the Google People store from CLI context and configuration."""
    config = ctx.obj["config"]
    return PeopleContactStore(
        GoogleAuth(config_dir=ctx.obj["config_dir"]),
        page_size=config.get("api_page_size", 100),
        max_retries=config.get("api_max_retries", 5),
        initial_retry_delay=config.get("api_initial_retry_delay", 1.0),
        max_retry_delay=config.get("api_max_retry_delay", 60.0),
    )


def container_id_from(config: dict[str, Any]) -> ContainerID:
    container = config.get("container_id")
    return ContainerID.with_identifier(container) if container else ContainerID.default()


def run_task(ctx: click.Context, task: ContactsTask) -> None:
    """
    Run one task to completion and exit with status 1 if it failed.

    Tasks still running when the timeout elapses are cancelled.
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    timeout = config.get("task_timeout", DEFAULT_TASK_TIMEOUT)

    with TaskQueue(max_workers=config.get("max_workers", DEFAULT_MAX_WORKERS)) as queue:
        queue.add_task(task)
        if not task.wait(timeout):
            logger.error(f"'{task.name}' did not finish within {timeout}s")
            task.cancel()

    if task.error is None:
        return

    error = task.error
    if isinstance(error, DomainTaskFailedError):
        error = error.underlying
    click.echo(click.style(f"✗ {task.name} failed: {error}", fg="red"), err=True)
    sys.exit(1)


def format_contact(contact: Contact, keys: frozenset[str]) -> str:
    parts = [contact.identifier]
    if contact.display_name:
        parts.append(contact.display_name)
    for key, values in (
        ("emailAddresses", contact.emails),
        ("phoneNumbers", contact.phones),
        ("organizations", contact.organizations),
    ):
        if key in keys and values:
            parts.append(", ".join(values))
    return "  ".join(parts)


@click.group()
@click.version_option(version=__version__, prog_name="contact-ops")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="CONTACT_OPS_CONFIG_DIR",
    help="Configuration directory path (default: ~/.contact-ops).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="CONTACT_OPS_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Permission-gated Google Contacts operations.

    Fetch contacts and manage contact groups. Every command checks that
    access to contacts has been granted before touching them.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = (
        Path(config["log_dir"])
        if config.get("log_dir")
        else resolved_config_dir / "logs"
    )
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Auth Commands
# =============================================================================


@cli.command("auth")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force re-authentication even if already authenticated.",
)
@click.pass_context
def auth_command(ctx: click.Context, force: bool) -> None:
    """
    Authenticate with Google.

    Opens a browser window to complete the OAuth flow and stores the
    credentials for future use.
    """
    logger = get_logger(__name__)
    auth = GoogleAuth(config_dir=ctx.obj["config_dir"])

    try:
        auth.authenticate(force_reauth=force)
    except FileNotFoundError as e:
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        sys.exit(1)
    except AuthenticationError as e:
        logger.debug(f"Authentication error: {e}")
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("✓ Authenticated", fg="green"))


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show the current authorization status."""
    auth = GoogleAuth(config_dir=ctx.obj["config_dir"])
    status = auth.get_auth_status()

    click.echo(f"Authorization:   {status['authorization_status']}")
    click.echo(f"Config dir:      {status['config_dir']}")
    click.echo(
        f"Client secrets:  {status['credentials_path']}"
        f"{'' if status['credentials_exist'] else ' (missing)'}"
    )
    click.echo(
        f"Token:           {status['token_path']}"
        f"{'' if status['token_exists'] else ' (missing)'}"
    )


# =============================================================================
# Contact Commands
# =============================================================================


@cli.group("contacts")
def contacts_group() -> None:
    """Fetch contacts."""


@contacts_group.command("get")
@click.argument("identifiers", nargs=-1)
@click.option("--name", "-n", help="Select contacts whose name contains TEXT.")
@click.option(
    "--field",
    "fields",
    multiple=True,
    type=click.Choice(sorted(ALL_CONTACT_KEYS)),
    help="Contact key to fetch (repeatable, default: all).",
)
@click.pass_context
def contacts_get_command(
    ctx: click.Context,
    identifiers: tuple[str, ...],
    name: str | None,
    fields: tuple[str, ...],
) -> None:
    """Fetch contacts by IDENTIFIERS or by --name."""
    if bool(identifiers) == bool(name):
        raise click.UsageError("Give either contact identifiers or --name")

    predicate = (
        ContactPredicate.matching_name(name)
        if name
        else ContactPredicate.with_identifiers(identifiers)
    )
    keys = frozenset(fields) if fields else ALL_CONTACT_KEYS

    task = get_contacts(
        build_store(ctx),
        predicate,
        keys,
        container_id=container_id_from(ctx.obj["config"]),
        entity_type=EntityType.CONTACTS,
    )
    run_task(ctx, task)

    if not task.contacts:
        click.echo("No contacts found")
        return
    for contact in task.contacts:
        click.echo(format_contact(contact, keys))


# =============================================================================
# Group Commands
# =============================================================================


@cli.group("group")
def group_group() -> None:
    """Resolve, create and delete groups and change their members."""


@group_group.command("get")
@click.argument("name")
@click.option(
    "--create/--no-create",
    default=None,
    help="Create the group if it does not exist (default: create).",
)
@click.pass_context
def group_get_command(ctx: click.Context, name: str, create: bool | None) -> None:
    """Resolve the group called NAME."""
    config = ctx.obj["config"]
    if create is None:
        create = config.get("group_create_if_necessary", True)

    task = get_contacts_group(
        build_store(ctx),
        name,
        create_if_necessary=create,
        container_id=container_id_from(config),
    )
    run_task(ctx, task)

    if task.group is None:
        click.echo(f"No group named '{name}'")
        return
    click.echo(f"{task.group.identifier or '<unsaved>'}  {task.group.name}")


@group_group.command("delete")
@click.argument("name")
@click.pass_context
def group_delete_command(ctx: click.Context, name: str) -> None:
    """Delete the first group called NAME."""
    task = remove_contacts_group(
        build_store(ctx), name, container_id=container_id_from(ctx.obj["config"])
    )
    run_task(ctx, task)
    click.echo(click.style(f"✓ {task.name}", fg="green"))


@group_group.command("add-members")
@click.argument("name")
@click.argument("identifiers", nargs=-1, required=True)
@click.option(
    "--create/--no-create",
    default=None,
    help="Create the group if it does not exist (default: create).",
)
@click.pass_context
def group_add_members_command(
    ctx: click.Context, name: str, identifiers: tuple[str, ...], create: bool | None
) -> None:
    """Add contacts with IDENTIFIERS to the group called NAME."""
    config = ctx.obj["config"]
    if create is None:
        create = config.get("group_create_if_necessary", True)

    task = add_contacts_to_group(
        build_store(ctx),
        name,
        identifiers,
        create_if_necessary=create,
        container_id=container_id_from(config),
    )
    run_task(ctx, task)
    click.echo(click.style(f"✓ {task.name} ({len(identifiers)} contact(s))", fg="green"))


@group_group.command("remove-members")
@click.argument("name")
@click.argument("identifiers", nargs=-1, required=True)
@click.pass_context
def group_remove_members_command(
    ctx: click.Context, name: str, identifiers: tuple[str, ...]
) -> None:
    """Remove contacts with IDENTIFIERS from the group called NAME."""
    task = remove_contacts_from_group(
        build_store(ctx),
        name,
        identifiers,
        container_id=container_id_from(ctx.obj["config"]),
    )
    run_task(ctx, task)

    if task.group is None:
        click.echo(f"No group named '{name}'; nothing removed")
        return
    click.echo(click.style(f"✓ {task.name} ({len(identifiers)} contact(s))", fg="green"))
