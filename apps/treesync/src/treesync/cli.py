"""CLI for treesync."""

import asyncio
import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from ghgit import GitHubClient, GitHubError

from .config import SyncConfig, build_description, load_config
from .diff import Diff
from .exceptions import TreeSyncError
from .gateway import GitHubGateway
from .location import short_sha
from .syncer import Syncer, SyncOutput

logger = logging.getLogger(__name__)


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def make_syncer(client: GitHubClient, config: SyncConfig) -> Syncer:
    return Syncer(
        GitHubGateway(client),
        commit_message=config.commit_message,
        branch_prefix=config.branch_prefix,
    )


def echo_diff(diff: Diff) -> None:
    """Print the planned changes."""
    created = updated = 0
    for source, destinations in diff.to_be_added_or_updated.items():
        for destination in destinations:
            if destination.sha is None:
                created += 1
                click.echo(f"  create {destination.url} ({short_sha(source.sha)})")
            else:
                updated += 1
                click.echo(
                    f"  update {destination.url} ({short_sha(destination.sha)} -> {short_sha(source.sha)})"
                )
    for destination in diff.to_be_removed:
        click.echo(f"  remove {destination.url} ({short_sha(destination.sha)})")
    click.echo(f"{created} to create, {updated} to update, {len(diff.to_be_removed)} to remove")


# ============ CLI Group ============

@click.group()
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--retries", "-r", type=int, default=3, help="Retry attempts")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(ctx: click.Context, token: str | None, use_gh_cli: bool, retries: int, verbose: int) -> None:
    """Synchronize files and directories between GitHub repositories."""
    load_dotenv()
    setup_logging(verbose)
    ctx.ensure_object(dict)
    if "client" not in ctx.obj:
        ctx.obj["client"] = GitHubClient(token=token, use_gh_cli=use_gh_cli, max_retries=retries)


# ============ Commands ============

@cli.command()
@click.argument("sync_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def diff(ctx, sync_file):
    """Show what a sync would change."""
    config = load_config(sync_file)
    syncer = make_syncer(ctx.obj["client"], config)
    try:
        result = asyncio.run(syncer.diff(config.to_diff_map()))
    except (TreeSyncError, GitHubError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if result.is_empty:
        click.echo("Everything up to date!")
        return
    echo_diff(result)


@cli.command()
@click.argument("sync_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Choice([mode.value for mode in SyncOutput]),
    help="Override the output of the sync file",
)
@click.option("-l", "--label", "labels", multiple=True, help="Pull request label (repeatable)")
@click.option("--prune/--no-prune", default=None, help="Remove destination entries listed for removal")
@click.pass_context
def sync(ctx, sync_file, output, labels, prune):
    """Diff then push the changes as commits, branches or pull requests."""
    config = load_config(sync_file)
    output = SyncOutput(output) if output else config.output
    labels = list(labels) or config.labels
    prune = config.prune if prune is None else prune
    if labels and output is not SyncOutput.CREATE_PULL_REQUEST:
        raise click.UsageError(f"Labels can only be applied with --output {SyncOutput.CREATE_PULL_REQUEST.value}")
    syncer = make_syncer(ctx.obj["client"], config)

    async def run() -> list[str]:
        result = await syncer.diff(config.to_diff_map())
        if result.is_empty:
            return []
        echo_diff(result)
        urls = []
        async for url in syncer.sync(result, output, labels, build_description(config), prune):
            click.echo(url)
            urls.append(url)
        return urls

    try:
        urls = asyncio.run(run())
    except (TreeSyncError, GitHubError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not urls:
        click.echo("Everything up to date!")


if __name__ == "__main__":
    cli()
