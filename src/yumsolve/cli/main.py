"""
Main CLI entry point for yumsolve.

This module provides the Click-based command-line interface for yumsolve.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from yumsolve import __version__
from yumsolve.core.config import BACKEND_KINDS, GlobalConfig, load_config
from yumsolve.core.downloader import Downloader
from yumsolve.core.output import OutputLevel, Outputter
from yumsolve.errors import YumError
from yumsolve.yum.backend import available_backends, register_default_backends
from yumsolve.yum.repository import Repository, RepositoryGroup
from yumsolve.yum.rpm import FLAGS, Requires

# Click context settings to enable -h as alias for --help
CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def repository_options(func):
    """Options selecting the repositories a command works on."""
    func = click.option(
        "--backend",
        type=click.Choice(BACKEND_KINDS),
        default="sqlite",
        show_default=True,
        help="Catalog backend for --baseurl",
    )(func)
    func = click.option(
        "--baseurl",
        default=None,
        help="Query this repository instead of the configured ones",
    )(func)
    func = click.option(
        "--repo-id",
        "repo_ids",
        multiple=True,
        help="Only use this configured repository (repeatable)",
    )(func)
    return func


def build_repositories(
    config: GlobalConfig,
    repo_ids: Tuple[str, ...] = (),
    baseurl: Optional[str] = None,
    backend: str = "sqlite",
) -> RepositoryGroup:
    """Create the repositories selected on the command line.

    The repositories share one downloader, closed together with the group.

    Raises:
        click.UsageError: If a repository ID is unknown or nothing is selected
    """
    if baseurl:
        downloader = Downloader(config.download, config.proxy, config.ssl)
        return RepositoryGroup(
            [
                Repository(
                    "cmdline",
                    baseurl,
                    config.get_cache_path("cmdline"),
                    backend=backend,
                    downloader=downloader,
                )
            ],
            downloader=downloader,
        )

    if repo_ids:
        repo_configs = []
        for repo_id in repo_ids:
            repo_config = config.get_repository(repo_id)
            if repo_config is None:
                raise click.UsageError(f"Repository '{repo_id}' not found in configuration")
            repo_configs.append(repo_config)
    else:
        repo_configs = config.get_enabled_repositories()

    if not repo_configs:
        raise click.UsageError(
            "No repositories configured. Add repositories to your config file or use --baseurl."
        )

    downloader = Downloader(config.download, config.proxy, config.ssl)
    return RepositoryGroup(
        [Repository.from_config(repo_config, config, downloader) for repo_config in repo_configs],
        downloader=downloader,
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: /etc/yumsolve/config.yaml, or $YUMSOLVE_CONFIG)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output (debug logging)")
@click.option("--quiet", "-q", is_flag=True, help="Only print results and errors")
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], verbose: bool, quiet: bool) -> None:
    """yumsolve - find the packages of a YUM repository satisfying a requirement."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if quiet:
        level = OutputLevel.QUIET
    elif verbose:
        level = OutputLevel.VERBOSE
    else:
        level = OutputLevel.NORMAL
    ctx.obj["output"] = Outputter(level)

    # Load configuration
    try:
        ctx.obj["config"] = load_config(config)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    except ValueError as e:
        # YAML syntax error or validation error
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    register_default_backends()


@cli.command()
@repository_options
@click.pass_context
def update(
    ctx: click.Context, repo_ids: Tuple[str, ...], baseurl: Optional[str], backend: str
) -> None:
    """Download the latest catalog of each repository."""
    config: GlobalConfig = ctx.obj["config"]
    output: Outputter = ctx.obj["output"]

    group = build_repositories(config, repo_ids, baseurl, backend)
    failed = 0
    total = 0
    with group:
        for repository in group.repositories:
            output.header(repository.name, repository.backend.kind, repository.base_url)
            try:
                repository.refresh()
            except YumError as e:
                output.error(f"{repository.name}: {e}")
                failed += 1
                continue
            count = len(repository.get_packages())
            total += count
            output.success(f"{repository.name}: {count} package(s)")

    output.summary(repositories=len(group.repositories), failed=failed, packages=total)
    if failed:
        ctx.exit(1)


@cli.command()
@click.argument("name")
@click.argument("version", required=False, default="")
@click.argument("release", required=False, default="")
@repository_options
@click.option("--update", "force_update", is_flag=True, help="Refresh catalogs before searching")
@click.pass_context
def find(
    ctx: click.Context,
    name: str,
    version: str,
    release: str,
    repo_ids: Tuple[str, ...],
    baseurl: Optional[str],
    backend: str,
    force_update: bool,
) -> None:
    """Find the latest package called NAME.

    VERSION and RELEASE restrict the search to that exact version.
    """
    config: GlobalConfig = ctx.obj["config"]
    output: Outputter = ctx.obj["output"]

    group = build_repositories(config, repo_ids, baseurl, backend)
    try:
        with group:
            group.setup(update=force_update)
            output.package(group.find_latest_matching_name(name, version, release))
    except YumError as e:
        output.error(str(e))
        ctx.exit(1)


@cli.command()
@click.argument("capability")
@click.option("--version", "req_version", default="", help="Required version")
@click.option("--release", "req_release", default="", help="Required release")
@click.option("--epoch", "req_epoch", default="", help="Required epoch")
@click.option(
    "--flags",
    type=click.Choice(FLAGS),
    default=None,
    help="Comparison operator (default: EQ)",
)
@repository_options
@click.option("--update", "force_update", is_flag=True, help="Refresh catalogs before searching")
@click.pass_context
def provides(
    ctx: click.Context,
    capability: str,
    req_version: str,
    req_release: str,
    req_epoch: str,
    flags: Optional[str],
    repo_ids: Tuple[str, ...],
    baseurl: Optional[str],
    backend: str,
    force_update: bool,
) -> None:
    """Find the latest package providing CAPABILITY.

    CAPABILITY is either a bare name, combined with --version, --release and
    --flags, or a requirement string such as "libfoo.so.1 >= 1.2".
    """
    config: GlobalConfig = ctx.obj["config"]
    output: Outputter = ctx.obj["output"]

    if req_version or req_release or req_epoch or flags:
        requirement = Requires(capability, req_version, req_release, req_epoch, flags or "")
    else:
        try:
            requirement = Requires.parse(capability)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="CAPABILITY")

    group = build_repositories(config, repo_ids, baseurl, backend)
    try:
        with group:
            group.setup(update=force_update)
            output.verbose(f"Looking for {requirement}")
            output.package(group.find_latest_matching_require(requirement))
    except YumError as e:
        output.error(str(e))
        ctx.exit(1)


@cli.command("list")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]),
              default="table", help="Output format")
@click.option("--name", "name_filter", default=None, help="Only list packages with this name")
@repository_options
@click.option("--update", "force_update", is_flag=True, help="Refresh catalogs before listing")
@click.pass_context
def list_packages(
    ctx: click.Context,
    output_format: str,
    name_filter: Optional[str],
    repo_ids: Tuple[str, ...],
    baseurl: Optional[str],
    backend: str,
    force_update: bool,
) -> None:
    """List the packages of the repositories."""
    config: GlobalConfig = ctx.obj["config"]
    output: Outputter = ctx.obj["output"]

    group = build_repositories(config, repo_ids, baseurl, backend)
    try:
        with group:
            group.setup(update=force_update)
            packages = group.get_packages()
            if name_filter:
                packages = [pkg for pkg in packages if pkg.name == name_filter]

            if output_format == "json":
                result = []
                for pkg in packages:
                    repo = pkg.repository
                    result.append({
                        "name": pkg.name,
                        "epoch": pkg.epoch,
                        "version": pkg.version,
                        "release": pkg.release,
                        "arch": pkg.arch,
                        "location": pkg.location,
                        "repository": repo.name if repo is not None else None,
                    })
                click.echo(json.dumps(result, indent=2))
            else:
                output.package_table(packages)
    except YumError as e:
        output.error(str(e))
        ctx.exit(1)


@cli.command("backends")
def list_backends() -> None:
    """List the available catalog backends."""
    for kind in available_backends():
        click.echo(kind)


if __name__ == "__main__":
    cli()
