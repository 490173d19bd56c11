"""Command-line interface for playspace.

Usage:
    playspace pytest -x                                  # Run in a fresh temp dir
    playspace -e APP_ENV=test -u HOME -- env             # Adjust environment
    playspace -f config.toml='debug = true' -- cat config.toml
    playspace --no-wait -- make check                    # Fail if busy
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from playspace import (
    AlreadyInPlayspaceError,
    AsyncPlayspace,
    ExitError,
    OutsidePlayspaceError,
    PlayspaceConfig,
    __version__,
)
from playspace._logging import configure_logging, flush_logging
from playspace.constants import (
    DEFAULT_DIR_PREFIX,
    EXIT_CLI_ERROR,
    EXIT_COMMAND_NOT_FOUND,
    EXIT_CONTENTION,
    EXIT_PLAYSPACE_ERROR,
)
from playspace.core import EnvOverrides
from playspace.platform_utils import ProcessWrapper
from playspace.resource_cleanup import cleanup_process


def parse_assignments(values: tuple[str, ...], param_hint: str) -> list[tuple[str, str]]:
    """Parse KEY=VALUE strings.

    Args:
        values: Tuple of "KEY=VALUE" strings
        param_hint: Option name for error messages

    Returns:
        (key, value) pairs in the order given

    Raises:
        click.BadParameter: If format is invalid
    """
    result: list[tuple[str, str]] = []
    for item in values:
        if "=" not in item:
            raise click.BadParameter(
                f"Invalid format: '{item}'. Use KEY=VALUE format.",
                param_hint=param_hint,
            )
        key, value = item.split("=", 1)
        if not key:
            raise click.BadParameter(
                f"Empty key in: '{item}'. Use KEY=VALUE format.",
                param_hint=param_hint,
            )
        result.append((key, value))
    return result


def build_env_overrides(env_vars: tuple[str, ...], unset_vars: tuple[str, ...]) -> list[tuple[str, str | None]]:
    """Combine -e and -u options into ordered overrides (unsets applied last)."""
    overrides: list[tuple[str, str | None]] = list(parse_assignments(env_vars, "'-e' / '--env'"))
    overrides.extend((name, None) for name in unset_vars)
    return overrides


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern."""
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]

    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)

    return "\n".join(lines)


async def run_command(
    command: list[str],
    env_overrides: EnvOverrides,
    files: list[tuple[str, str]],
    config: PlayspaceConfig,
    wait: bool,
    quiet: bool,
) -> int:
    """Run command inside a playspace and return the exit code to report.

    Args:
        command: Program and arguments
        env_overrides: Environment changes applied inside the playspace
        files: (path, content) pairs written before the command starts
        config: Scratch directory settings
        wait: Wait for a busy playspace instead of failing
        quiet: Suppress the summary footer

    Returns:
        Exit code to return from CLI
    """
    try:
        space = await AsyncPlayspace.enter(config=config) if wait else AsyncPlayspace.try_enter(config=config)
    except AlreadyInPlayspaceError:
        click.echo(
            format_error(
                "Playspace busy",
                "Another playspace is active in this process.",
                ["Run again without --no-wait to wait for it"],
            ),
            err=True,
        )
        return EXIT_CONTENTION
    except OSError as e:
        click.echo(
            format_error(
                "Cannot create playspace",
                str(e),
                ["Check that the temp root exists and is writable", "Set PLAYSPACE_TEMP_ROOT or --temp-root"],
            ),
            err=True,
        )
        return EXIT_PLAYSPACE_ERROR

    try:
        async with space:
            space.set_envs(env_overrides)
            for path, content in files:
                await space.write_file(path, content)

            try:
                proc = await asyncio.create_subprocess_exec(*command, cwd=space.directory)
            except (FileNotFoundError, PermissionError) as e:
                click.echo(format_error("Cannot run command", f"{command[0]}: {e.strerror or e}"), err=True)
                return EXIT_COMMAND_NOT_FOUND

            child = ProcessWrapper(proc)
            try:
                exit_code = await child.wait()
            finally:
                # Interrupted: the child must be gone before teardown
                if child.returncode is None:
                    await cleanup_process(child, command[0])

            if not quiet and sys.stderr.isatty():
                click.echo(
                    click.style(f"✓ {command[0]} exited {exit_code} in {space.directory}", dim=True),
                    err=True,
                )
            return exit_code

    except OutsidePlayspaceError as e:
        click.echo(
            format_error(
                "File outside playspace",
                e.message,
                ["Use a path relative to the playspace directory"],
            ),
            err=True,
        )
        return EXIT_PLAYSPACE_ERROR

    except ExitError as e:
        click.echo(
            format_error(
                "Playspace teardown failed",
                e.message,
                [f"Remove {space.directory} manually if it still exists"],
            ),
            err=True,
        )
        return EXIT_PLAYSPACE_ERROR


@click.command(context_settings={"help_option_names": ["-h", "--help"], "allow_interspersed_args": False})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("-e", "--env", "env_vars", multiple=True, help="Set environment variable (KEY=VALUE, repeatable)")
@click.option("-u", "--unset", "unset_vars", multiple=True, help="Unset environment variable (repeatable)")
@click.option("-f", "--file", "files", multiple=True, help="Write file before running (PATH=CONTENT, repeatable)")
@click.option("--no-wait", is_flag=True, help="Fail instead of waiting if a playspace is active")
@click.option(
    "--temp-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Parent directory for the scratch directory",
)
@click.option("--prefix", default=DEFAULT_DIR_PREFIX, show_default=True, help="Scratch directory name prefix")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.option("-v", "--verbose", is_flag=True, help="Log playspace lifecycle events")
@click.version_option(__version__, "-V", "--version", prog_name="playspace")
def main(
    command: tuple[str, ...],
    env_vars: tuple[str, ...],
    unset_vars: tuple[str, ...],
    files: tuple[str, ...],
    no_wait: bool,
    temp_root: Path | None,
    prefix: str,
    quiet: bool,
    verbose: bool,
) -> NoReturn:
    """Run COMMAND in a fresh temporary directory.

    The environment changes given with -e/-u apply to COMMAND only; the
    directory and everything written to it is removed afterwards.
    Put -- before COMMAND if it has options of its own.

    Examples:

    \b
      playspace pytest tests/
      playspace -e APP_ENV=test -- python -c 'import os; print(os.getcwd())'
      playspace -f input.txt=hello -- cat input.txt
    """
    try:
        env_overrides = build_env_overrides(env_vars, unset_vars)
        file_contents = parse_assignments(files, "'-f' / '--file'")
    except click.BadParameter as exc:
        raise click.UsageError(str(exc)) from exc

    try:
        config = PlayspaceConfig(temp_root=temp_root, prefix=prefix)
    except ValueError as exc:
        click.echo(format_error("Invalid option", str(exc)), err=True)
        sys.exit(EXIT_CLI_ERROR)

    configure_logging(level=logging.DEBUG if verbose else None, quiet=quiet)
    try:
        exit_code = asyncio.run(
            run_command(
                command=list(command),
                env_overrides=env_overrides,
                files=file_contents,
                config=config,
                wait=not no_wait,
                quiet=quiet,
            )
        )
    finally:
        flush_logging()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
