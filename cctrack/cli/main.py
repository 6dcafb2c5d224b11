"""Command line interface for cctrack.

Provides the ``announce`` and ``query`` commands against a tracker.
"""

from __future__ import annotations

import asyncio
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cctrack.cli.verbosity import VerbosityManager, get_verbosity_from_ctx
from cctrack.config.config import ConfigManager, init_config
from cctrack.core.content import PeerId
from cctrack.core.specifier import (
    ContentSpecifier,
    parse_specifier,
    plan_announces,
    resolve_address,
    ticket_addresses,
)
from cctrack.protocol.messages import Announce, AnnounceKind, Query, QueryFlags, QueryResponse
from cctrack.tracker.client import TrackerClient
from cctrack.transport.endpoint import Endpoint, parse_socket_addr
from cctrack.utils.exceptions import CCTrackError, SpecifierParseError
from cctrack.utils.logging_config import setup_logging


class NodeIdType(click.ParamType):
    """A node id in base32 or hex."""

    name = "node_id"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> PeerId:
        if isinstance(value, PeerId):
            return value
        try:
            return PeerId.from_str(value)
        except ValueError as e:
            self.fail(f"{value!r} is not a valid node id: {e}", param, ctx)


class ContentSpecifierType(click.ParamType):
    """Content given as a hash, a hash and format, or a blob ticket."""

    name = "content"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> ContentSpecifier:
        if isinstance(value, ContentSpecifier):
            return value
        try:
            return parse_specifier(value)
        except SpecifierParseError:
            self.fail(
                f"{value!r} is not a hash, hash and format, or blob ticket",
                param,
                ctx,
            )


NODE_ID = NodeIdType()
CONTENT = ContentSpecifierType()


def _get_config_manager(ctx: click.Context) -> ConfigManager:
    if ctx.obj and ctx.obj.get("config_manager") is not None:
        return ctx.obj["config_manager"]
    return init_config(ctx.obj.get("config") if ctx.obj else None)


def _resolve_tracker(cfg_mgr: ConfigManager, tracker: PeerId | None) -> PeerId:
    if tracker is not None:
        return tracker
    default = cfg_mgr.default_tracker()
    if default is None:
        msg = "No --tracker given and tracker.default_tracker is not configured"
        raise click.UsageError(msg)
    return default


def _create_endpoint(
    cfg_mgr: ConfigManager,
    tracker: PeerId,
    tracker_addrs: tuple[str, ...],
    specifiers: list[ContentSpecifier],
    bind_port: int | None = None,
) -> Endpoint:
    """Endpoint from config, plus addresses given on the command line or in tickets."""
    endpoint = cfg_mgr.create_endpoint()
    if bind_port is not None:
        endpoint.bind_port = bind_port
    for addr in tracker_addrs:
        endpoint.address_book.add(tracker, [parse_socket_addr(addr)])
    for node, addrs in ticket_addresses(specifiers).items():
        endpoint.address_book.add(node, addrs)
    return endpoint


def _report_error(console: Console, verbosity: VerbosityManager, error: CCTrackError) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    if verbosity.should_show_stack_trace():
        console.print_exception()
    raise click.ClickException(error.message) from error


async def _announce_all(client: TrackerClient, tracker: PeerId, announces: list[Announce]) -> None:
    for request in announces:
        await client.announce(tracker, request)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: verbose, -vv: debug, -vvv: trace)",
)
@click.pass_context
def cli(ctx, config, verbose):
    """cctrack - announce content to and query content trackers."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbosity"] = verbose

    verbosity = VerbosityManager.from_count(verbose)
    try:
        config_manager = init_config(config)
    except CCTrackError as e:
        raise click.ClickException(e.message) from e
    ctx.obj["config_manager"] = config_manager

    # Verbosity only raises the console level, the config keeps its own
    observability = config_manager.config.observability
    effective_level = verbosity.log_level(observability.log_level)
    if effective_level != observability.log_level:
        setup_logging(observability.model_copy(update={"log_level": effective_level}))


@cli.command()
@click.option("--tracker", "-t", type=NODE_ID, help="Tracker to announce to")
@click.option(
    "--tracker-addr",
    multiple=True,
    help="Address of the tracker as host:port (repeatable)",
)
@click.option(
    "--host",
    type=NODE_ID,
    help="Host to announce. Not needed if all content is given as tickets",
)
@click.option(
    "--bind-port",
    type=click.IntRange(0, 65535),
    help="Local port to dial the tracker from (overrides network.bind_port)",
)
@click.option("--partial", is_flag=True, help="Announce that the host has only part of the data")
@click.argument("content", nargs=-1, type=CONTENT)
@click.pass_context
def announce(ctx, tracker, tracker_addr, host, bind_port, partial, content):
    """Announce that a host has CONTENT.

    Content can be a hash, a hash and format, or a blob ticket. A bare hash
    means a raw blob. Unless every item is a ticket, --host is required.
    """
    console = Console()
    verbosity = get_verbosity_from_ctx(ctx.obj)
    cfg_mgr = _get_config_manager(ctx)
    specifiers = list(content)
    tracker_id = _resolve_tracker(cfg_mgr, tracker)

    try:
        announces = plan_announces(specifiers, host, AnnounceKind.from_complete(not partial))
        client = TrackerClient(_create_endpoint(cfg_mgr, tracker_id, tracker_addr, specifiers, bind_port))
        asyncio.run(_announce_all(client, tracker_id, announces))
    except CCTrackError as e:
        _report_error(console, verbosity, e)

    for request in announces:
        console.print(
            f"[green]Announced[/green] {len(request.content)} item(s) "
            f"as {request.kind.name.lower()} for host {request.host} "
            f"to tracker {tracker_id}"
        )
        if verbosity.is_verbose():
            for item in sorted(request.content):
                console.print(f"  {item}")


@cli.command()
@click.option("--tracker", "-t", type=NODE_ID, help="Tracker to query")
@click.option(
    "--tracker-addr",
    multiple=True,
    help="Address of the tracker as host:port (repeatable)",
)
@click.option(
    "--bind-port",
    type=click.IntRange(0, 65535),
    help="Local port to dial the tracker from (overrides network.bind_port)",
)
@click.option("--partial", is_flag=True, help="Also return hosts that announced partial data")
@click.option("--verified", is_flag=True, help="Only return hosts the tracker has verified")
@click.argument("content", type=CONTENT)
@click.pass_context
def query(ctx, tracker, tracker_addr, bind_port, partial, verified, content):
    """Ask a tracker which hosts have CONTENT."""
    console = Console()
    verbosity = get_verbosity_from_ctx(ctx.obj)
    cfg_mgr = _get_config_manager(ctx)
    tracker_id = _resolve_tracker(cfg_mgr, tracker)
    request = Query(
        content=resolve_address(content),
        flags=QueryFlags(complete=not partial, verified=verified),
    )

    try:
        client = TrackerClient(_create_endpoint(cfg_mgr, tracker_id, tracker_addr, [content], bind_port))
        response = asyncio.run(client.query(tracker_id, request))
    except CCTrackError as e:
        _report_error(console, verbosity, e)

    _print_query_response(console, response)


def _print_query_response(console: Console, response: QueryResponse) -> None:
    if not response.hosts:
        console.print(f"[yellow]No hosts found for {response.content}[/yellow]")
        return
    table = Table(title=f"Hosts for {response.content}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Host", style="magenta", no_wrap=True)
    for index, host in enumerate(response.hosts, start=1):
        table.add_row(str(index), str(host))
    console.print(table)


def main() -> None:
    """Entry point for the ``cctrack`` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
