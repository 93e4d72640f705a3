"""
Root Typer application for the jobq CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from jobq.cli.run import run

app = Typer(
    name="jobq",
    help="jobq — bounded-concurrency job runner.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from jobq import __version__

        typer.echo(f"jobq {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """jobq CLI — run work items through a bounded-concurrency queue."""


app.command("run")(run)


if __name__ == "__main__":
    app()
