from __future__ import annotations

"""Centralized console output for CLI commands."""

from enum import Enum
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from yumsolve.yum.rpm import Package


class OutputLevel(Enum):
    """Output verbosity level."""

    QUIET = 0  # Only errors and results
    NORMAL = 1
    VERBOSE = 2  # All details


class Outputter:
    """Output handler shared by the CLI commands.

    Results (package lines, tables) are always printed; status messages
    follow the verbosity level; errors go to stderr.
    """

    def __init__(
        self,
        level: OutputLevel = OutputLevel.NORMAL,
        console: Console | None = None,
        err_console: Console | None = None,
    ):
        """Initialize outputter.

        Args:
            level: Output verbosity level
            console: Console for regular output (default: stdout)
            err_console: Console for errors (default: stderr)
        """
        self.level = level
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def header(self, repo_id: str, backend: str, base_url: str, **kwargs: Any) -> None:
        """Show repository header.

        Args:
            repo_id: Repository ID
            backend: Backend kind (sqlite, xml)
            base_url: Repository base URL
            **kwargs: Additional key-value pairs to display
        """
        if self.level == OutputLevel.QUIET:
            return

        self.console.print(f"Repository: {repo_id} ({backend})", style="bold")
        self.console.print(f"Base URL: {base_url}")
        for key, value in kwargs.items():
            display_key = key.replace("_", " ").title()
            self.console.print(f"{display_key}: {value}")

    def phase(self, name: str) -> None:
        if self.level == OutputLevel.QUIET:
            return
        self.console.print(f"\n=== {name} ===", style="bold cyan")

    def info(self, message: str) -> None:
        if self.level == OutputLevel.QUIET:
            return
        self.console.print(message)

    def verbose(self, message: str) -> None:
        if self.level != OutputLevel.VERBOSE:
            return
        self.console.print(message)

    def success(self, message: str) -> None:
        if self.level == OutputLevel.QUIET:
            return
        self.console.print(f"✓ {message}", style="green")

    def warning(self, message: str) -> None:
        if self.level == OutputLevel.QUIET:
            return
        self.console.print(f"⚠️  {message}", style="yellow")

    def error(self, message: str) -> None:
        """Show error message (always shown, even in quiet mode)."""
        self.err_console.print(f"✗ {message}", style="red", markup=False)

    def package(self, pkg: Package) -> None:
        """Print one resolved package.

        Quiet mode prints the bare NEVRA so the output can be piped.
        """
        if self.level == OutputLevel.QUIET:
            self.console.print(pkg.nevra, markup=False, highlight=False)
            return

        repo = pkg.repository
        origin = f" [dim]({repo.name})[/dim]" if repo is not None else ""
        self.console.print(f"[bold]{pkg.nevra}[/bold]{origin}")
        if self.level == OutputLevel.VERBOSE:
            if pkg.url:
                self.console.print(f"  Location: {pkg.url}", markup=False)
            for req in pkg.requires:
                pre = " (pre)" if req.pre else ""
                self.console.print(f"  Requires: {req}{pre}", markup=False)
            for prov in pkg.provides:
                self.console.print(f"  Provides: {prov}", markup=False)

    def package_table(self, packages: Iterable[Package], title: str | None = None) -> None:
        """Print packages as a table sorted by name."""
        table = Table(title=title)
        table.add_column("Name", style="bold")
        table.add_column("Epoch", justify="right")
        table.add_column("Version")
        table.add_column("Release")
        table.add_column("Arch")
        table.add_column("Repository")

        count = 0
        for pkg in sorted(packages, key=lambda p: (p.name, p.arch)):
            repo = pkg.repository
            table.add_row(
                pkg.name,
                pkg.epoch or "0",
                pkg.version,
                pkg.release,
                pkg.arch,
                repo.name if repo is not None else "",
            )
            count += 1

        self.console.print(table)
        self.info(f"Total: {count} package(s)")

    def summary(self, **stats: Any) -> None:
        """Show summary statistics.

        Args:
            **stats: Statistics as key-value pairs
        """
        if self.level == OutputLevel.QUIET:
            return

        self.console.print("\n=== Summary ===", style="bold")
        for key, value in stats.items():
            display_key = key.replace("_", " ").title()
            self.console.print(f"  {display_key}: {value}")
