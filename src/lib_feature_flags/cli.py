"""CLI adapter for ``lib_feature_flags`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators inspect how a key resolves across flag files, environment
variables, and ad-hoc overrides without writing Python code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_env_prefix` – exposes :func:`default_env_prefix`.
* :func:`cli_get` – resolves one key and prints it, optionally coerced.
* :func:`cli_children` – resolves a prefix and prints the child map as JSON.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
Outermost layer. It only talks to :func:`lib_feature_flags.core.build_provider`
and the :class:`FlagValue` accessors; conversion errors surface through
``lib_cli_exit_tools`` as a non-zero exit code.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .application.ports import FlagProvider
from .core import build_provider
from .core import default_env_prefix as _default_env_prefix
from .domain.value import FlagValue

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
_DIST_NAME: Final[str] = "lib_feature_flags"

_COERCIONS: Final[dict[str, Callable[[FlagValue], Any]]] = {
    "string": FlagValue.as_string,
    "boolean": FlagValue.as_boolean,
    "int": FlagValue.as_int,
    "long": FlagValue.as_long,
    "double": FlagValue.as_double,
}
COERCION_CHOICES: Final[tuple[str, ...]] = tuple(_COERCIONS)


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` for source checkouts."""

    try:
        return metadata.version(_DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _source_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the flag source options shared by ``get`` and ``children``."""

    decorators = [
        click.option(
            "--file",
            "files",
            multiple=True,
            type=click.Path(path_type=Path, dir_okay=False),
            help="Flag document (TOML/JSON/YAML); repeatable, earlier files win",
        ),
        click.option("--env-prefix", default=None, help="Read environment variables carrying this prefix"),
        click.option(
            "--set",
            "assignments",
            multiple=True,
            metavar="KEY=VALUE",
            help="Override a flag; repeatable, wins over every other source",
        ),
    ]
    for decorator in reversed(decorators):
        command = decorator(command)
    return command


@click.group(
    help="Layered feature flag resolver",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=_DIST_NAME,
    message="lib_feature_flags version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata(_DIST_NAME)
    except metadata.PackageNotFoundError:
        click.echo("lib_feature_flags (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', _DIST_NAME)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.11')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("env-prefix", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("slug")
def cli_env_prefix(slug: str) -> None:
    """Compute the canonical environment prefix for *slug*.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> result = CliRunner().invoke(cli, ["env-prefix", "checkout-service"])
    >>> result.output.strip()
    'CHECKOUT_SERVICE'
    """

    click.echo(_default_env_prefix(slug))


@cli.command("get", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("key")
@_source_options
@click.option(
    "--as",
    "coerce_as",
    type=click.Choice(COERCION_CHOICES, case_sensitive=False),
    default="string",
    show_default=True,
    help="Type the value is coerced to before printing",
)
@click.option("--default", "default", default=None, help="Value printed when the key is absent")
def cli_get(
    key: str,
    files: Sequence[Path],
    env_prefix: Optional[str],
    assignments: Sequence[str],
    coerce_as: str,
    default: Optional[str],
) -> None:
    """Resolve KEY and print the coerced value.

    ``--default`` is only consulted, and only coerced, when KEY is absent.
    Prints nothing (exit code 0) when the key is absent and no ``--default``
    is given for ``--as string``. A value that cannot be coerced raises
    :class:`~lib_feature_flags.domain.errors.TypeConversionError`.
    """

    provider = _build(files, env_prefix, assignments, short_circuit=False)
    try:
        value = FlagValue.of(provider.resolve(key))
    finally:
        provider.shutdown()
    if value.is_null():
        value = FlagValue.of(default)
    result = _COERCIONS[coerce_as.lower()](value)
    if result is None:
        return
    click.echo(_render(result))


@cli.command("children", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("prefix")
@_source_options
@click.option(
    "--short-circuit/--merge",
    default=False,
    help="Return only the first source with matching children instead of merging all sources",
)
@click.option(
    "--indent",
    type=int,
    default=None,
    help="Pretty-print JSON output with the provided indent size",
)
def cli_children(
    prefix: str,
    files: Sequence[Path],
    env_prefix: Optional[str],
    assignments: Sequence[str],
    short_circuit: bool,
    indent: Optional[int],
) -> None:
    """Print the flags below PREFIX as a JSON object keyed by child name.

    Pass an empty string to list every flag.
    """

    provider = _build(files, env_prefix, assignments, short_circuit=short_circuit)
    try:
        children = provider.resolve_children(prefix)
    finally:
        provider.shutdown()
    payload = {name: value.raw for name, value in sorted(children.items())}
    click.echo(json.dumps(payload, indent=indent, separators=(",", ":"), default=str, ensure_ascii=False))


def _build(
    files: Sequence[Path],
    env_prefix: Optional[str],
    assignments: Sequence[str],
    *,
    short_circuit: bool,
) -> FlagProvider:
    overrides = _parse_assignments(assignments)
    return build_provider(
        files=files,
        env_prefix=env_prefix,
        overrides=overrides or None,
        short_circuit=short_circuit,
        cache=False,
    )


def _parse_assignments(values: Sequence[str]) -> dict[str, str]:
    """Split ``KEY=VALUE`` pairs; the value may itself contain ``=``.

    Examples
    --------
    >>> _parse_assignments(["beta=on", "query=a=b"])
    {'beta': 'on', 'query': 'a=b'}
    """

    parsed: dict[str, str] = {}
    for entry in values:
        key, separator, value = entry.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got {entry!r}", param_hint="--set")
        parsed[key.strip()] = value
    return parsed


def _render(result: Any) -> str:
    """Format a coerced value for output; booleans print lower-case.

    Examples
    --------
    >>> _render(True), _render(3), _render("on")
    ('true', '3', 'on')
    """

    if isinstance(result, bool):
        return "true" if result else "false"
    return str(result)


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=_DIST_NAME,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
