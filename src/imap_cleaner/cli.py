"""CLI entry point for IMAP Cleaner."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import click
from rich.markup import escape

from . import __version__
from .config import CleanerConfig
from .constants import ENV_EMAIL, ENV_PASSWORD, GROUP_FIELDS
from .display import console, setup_logging
from .errors import CleanerError, UserDeclined
from .mailbox import MailboxService
from .session import open_mailbox


def connection_options(func):
    """Options shared by every command that talks to the server."""
    options = [
        click.option("--email", required=True, envvar=ENV_EMAIL, help="Account address (also the login name)."),
        click.option(
            "--password",
            envvar=ENV_PASSWORD,
            prompt=True,
            hide_input=True,
            help="Account password; prompted for when not given.",
        ),
        click.option(
            "--imap",
            "server",
            default=None,
            metavar="HOST:PORT",
            help="IMAP server; guessed from the address when omitted.",
        ),
        click.option("--allow-plain", is_flag=True, help="Allow unencrypted IMAP on port 143 if TLS fails."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@contextmanager
def _session(config: CleanerConfig) -> Iterator[MailboxService]:
    """Open the mailbox, turning fatal errors into a one-line diagnostic."""
    try:
        with open_mailbox(config) as service:
            yield service
    except CleanerError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="imap-cleaner")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging on stderr.")
def cli(verbose: bool) -> None:
    """IMAP Cleaner - inspect, back up, restore and bulk-delete mail over IMAP."""
    setup_logging(verbose)


@cli.command()
@connection_options
@click.option(
    "-f",
    "--field",
    "group_field",
    type=click.Choice(GROUP_FIELDS),
    default="from",
    show_default=True,
    help="Header to group messages by.",
)
@click.option("--size", is_flag=True, help="Add an MB column (fetches message sizes).")
@click.option("--export", "export_path", default=None, help="Write the ranked groups to this file.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Export format.",
)
@click.option("--no-delete", is_flag=True, help="Show the top groups and exit without prompting.")
def stats(
    email: str,
    password: str,
    server: str | None,
    allow_plain: bool,
    group_field: str,
    size: bool,
    export_path: str | None,
    fmt: str,
    no_delete: bool,
) -> None:
    """Group messages by sender, recipient or subject and delete whole groups."""
    from .aggregator import rank_groups
    from .cleaner import PageState, interactive_clean
    from .display import display_group_page
    from .export import export_scan
    from .scanner import scan_mailbox

    config = CleanerConfig(
        email=email,
        password=password,
        server=server,
        group_field=group_field,
        count_sizes=size,
        allow_plain=allow_plain,
    )
    with _session(config) as service:
        result = scan_mailbox(service, config)

        if export_path:
            export_scan(result, format=fmt, output_path=export_path)

        if no_delete:
            if not result.groups:
                console.print("Mailbox empty")
                return
            pages = PageState(rank_groups(result.groups), page_size=config.page_size)
            display_group_page(pages.view(), config.group_field, size_accounting=config.size_accounting)
            return

        interactive_clean(service, result, config)


@cli.command()
@connection_options
@click.argument("text")
@click.option(
    "-f",
    "--field",
    "group_field",
    type=click.Choice(GROUP_FIELDS),
    default="from",
    show_default=True,
    help="Header to match against.",
)
def match(email: str, password: str, server: str | None, allow_plain: bool, text: str, group_field: str) -> None:
    """Find messages whose FIELD contains TEXT and delete them after one confirmation."""
    from .cleaner import match_clean
    from .scanner import scan_mailbox

    if not text.strip():
        raise click.BadParameter("match text must not be empty", param_hint="TEXT")

    config = CleanerConfig(
        email=email,
        password=password,
        server=server,
        group_field=group_field,
        match=text,
        allow_plain=allow_plain,
    )
    with _session(config) as service:
        result = scan_mailbox(service, config)
        try:
            match_clean(service, result, config)
        except UserDeclined:
            console.print("[dim]Cancelled.[/dim]")


@cli.command()
@connection_options
@click.argument("path", type=click.Path(dir_okay=False, writable=True))
def backup(email: str, password: str, server: str | None, allow_plain: bool, path: str) -> None:
    """Back up every folder to a .tar.gz archive at PATH."""
    from .archive import backup_mailbox

    config = CleanerConfig(email=email, password=password, server=server, allow_plain=allow_plain)
    with _session(config) as service:
        backup_mailbox(service, path)


@cli.command()
@connection_options
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def restore(email: str, password: str, server: str | None, allow_plain: bool, path: str) -> None:
    """Restore the messages of a backup archive at PATH."""
    from .archive import restore_mailbox

    config = CleanerConfig(email=email, password=password, server=server, allow_plain=allow_plain)
    with _session(config) as service:
        restore_mailbox(service, path)


@cli.command()
@connection_options
def check(email: str, password: str, server: str | None, allow_plain: bool) -> None:
    """Test connecting and logging in."""
    from .folders import list_selectable_folders

    config = CleanerConfig(email=email, password=password, server=server, allow_plain=allow_plain)
    with _session(config) as service:
        folders = list_selectable_folders(service)
        console.print(
            f"Authenticated as [bold]{email}[/bold] on [bold]{escape(service.server or '?')}[/bold] "
            f"({service.tier}, {len(folders)} folders)"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
