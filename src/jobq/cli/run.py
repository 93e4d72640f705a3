"""
CLI: ``jobq run`` — run a shell command once per input line.

Each non-blank line of the input becomes one job. ``{}`` in the command is
replaced by the (shell-quoted) line; without ``{}`` the line is appended as
the last argument. Jobs run through a :class:`~jobq.JobQ` with the requested
concurrency, like ``xargs -P``.
"""

from __future__ import annotations

import asyncio
import functools
import shlex
import sys
from dataclasses import asdict, dataclass
from typing import Any

import typer

from jobq.cli.utils import console, output_summary, read_items
from jobq.core.errors import CommandFailedError, JobQError, categorize_error
from jobq.core.logging import configure_logging, get_logger
from jobq.core.settings import get_settings
from jobq.core.timestamps import elapsed_seconds
from jobq.execution.engine import QueueConfig
from jobq.execution.models import EngineEvent
from jobq.queue import JobQ

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one successful command."""

    item: str
    command: str
    returncode: int
    stdout: str


def build_command(template: str, item: str) -> str:
    """Substitute *item* into *template*.

    Example:
        >>> build_command("gzip {}", "a b.txt")
        "gzip 'a b.txt'"
        >>> build_command("echo", "x")
        'echo x'
    """
    quoted = shlex.quote(item)
    if "{}" in template:
        return template.replace("{}", quoted)
    return f"{template} {quoted}"


async def run_command(template: str, item: str) -> CommandResult:
    """Run the command for one item; non-zero exit raises CommandFailedError."""
    command = build_command(template, item)
    proc = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise CommandFailedError(
            command,
            proc.returncode,
            stderr.decode(errors="replace").strip(),
        ).with_context(item=item)
    return CommandResult(
        item=item,
        command=command,
        returncode=proc.returncode,
        stdout=stdout.decode(errors="replace").strip(),
    )


async def execute(
    template: str,
    items: list[str],
    *,
    concurrency: int,
    stop_on_error: bool,
    debug: bool,
) -> dict[str, Any]:
    """Run *template* over *items*; returns the summary printed by the CLI."""
    results: list[dict[str, Any]] = []
    failures: list[dict[str, Any]] = []

    def on_finish(payload: dict[str, Any]) -> None:
        results.append(asdict(payload["result"]))

    def on_error(error: Any) -> None:
        if isinstance(error, JobQError):
            failures.append(error.to_dict())
        else:
            failures.append(
                {
                    "error_type": type(error).__name__,
                    "message": str(error),
                    "category": categorize_error(error).value,
                }
            )

    config = QueueConfig(
        process=functools.partial(run_command, template),
        source=items,
        concurrency_limit=concurrency,
        stop_on_error=stop_on_error,
        debug=debug,
    )
    queue = JobQ(config).on(EngineEvent.JOB_FINISH, on_finish).on(EngineEvent.ERROR, on_error)
    snapshot = await queue.run()

    return {
        "status": snapshot["status"],
        "processed": snapshot["processed"],
        "errors": snapshot["errors"],
        "concurrency_limit": snapshot["concurrency_limit"],
        "duration_seconds": elapsed_seconds(snapshot["start_time"], snapshot["end_time"]),
        "results": results,
        "failures": failures,
    }


def run(
    command: str = typer.Argument(..., help="Shell command; {} is replaced by the item"),
    input_path: str = typer.Option("-", "--input", "-i", help="File with one item per line ('-' for stdin)"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=0, help="Max parallel jobs (0 = unbounded)"),  # noqa: UP007
    stop_on_error: bool | None = typer.Option(None, "--stop-on-error/--keep-going", help="Stop dispatching after the first failure"),  # noqa: UP007
    debug: bool | None = typer.Option(None, "--debug", help="Log every engine event"),  # noqa: UP007
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Run COMMAND once per input line with bounded concurrency.

    Example::

        jobq run "gzip {}" --input files.txt --concurrency 4
        find . -name '*.log' | jobq run "wc -l" -c 0 --json
    """
    settings = get_settings()
    configure_logging(
        level="DEBUG" if debug else settings.log_level,
        json_format=settings.json_logs,
        stream=sys.stderr,
    )

    try:
        items = read_items(input_path)
    except OSError as exc:
        console.print(f"[red]Cannot read input: {exc}[/red]")
        raise typer.Exit(code=2)

    summary = asyncio.run(
        execute(
            command,
            items,
            concurrency=settings.concurrency_limit if concurrency is None else concurrency,
            stop_on_error=settings.stop_on_error if stop_on_error is None else stop_on_error,
            debug=settings.debug if debug is None else debug,
        )
    )
    logger.debug("jobq.cli.run_complete", processed=summary["processed"], errors=summary["errors"])
    output_summary(summary, as_json=as_json)
    if summary["errors"]:
        raise typer.Exit(code=1)
