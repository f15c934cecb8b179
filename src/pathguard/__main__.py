"""Command-line interface (CLI) for pathguard."""

# pylint: disable=no-value-for-parameter
from __future__ import annotations

import os
from typing import TypedDict

import click
from pydantic import ValidationError
from typing_extensions import Unpack

from pathguard.config import BASE_DIR_ENV_VAR, DEFAULT_ENCODING
from pathguard.schemas import CheckResult, ConfinementPolicy
from pathguard.utils.exceptions import InvalidBaseDirectoryError, PathGuardError

# Import logging configuration first to intercept all logging
from pathguard.utils.logging_config import get_logger
from pathguard.validator import PathConfinementValidator

# Initialize logger for this module
logger = get_logger(__name__)


class _CLIArgs(TypedDict):
    candidates: tuple[str, ...]
    base: str
    encoding: str
    as_bytes: bool
    as_json: bool


@click.command()
@click.argument("candidates", nargs=-1, required=True)
@click.option(
    "--base",
    "-b",
    envvar=BASE_DIR_ENV_VAR,
    required=True,
    help=f"Directory candidates must stay inside. Defaults to the {BASE_DIR_ENV_VAR} environment variable.",
)
@click.option(
    "--encoding",
    "-e",
    default=DEFAULT_ENCODING,
    show_default=True,
    help="Encoding used for byte candidates and the round-trip check.",
)
@click.option(
    "--bytes",
    "as_bytes",
    is_flag=True,
    default=False,
    help="Pass each candidate to the validator as raw bytes instead of text.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print one JSON result per candidate.")
def main(**cli_kwargs: Unpack[_CLIArgs]) -> None:
    """Check that every CANDIDATE resolves inside the base directory.

    Accepted candidates are printed as canonical paths on ``stdout``; rejections go to ``stderr`` together with
    their error kind. The exit status is ``1`` if any candidate was rejected.

    Parameters
    ----------
    **cli_kwargs : Unpack[_CLIArgs]
        A dictionary of keyword arguments forwarded to ``_check``.

    Examples
    --------
    Basic usage:
        $ pathguard --base /srv/data reports/q1.csv
        $ PATHGUARD_BASE_DIR=/srv/data pathguard reports/q1.csv ../etc/passwd

    Machine-readable output:
        $ pathguard -b /srv/data --json reports/q1.csv

    """
    rejected = _check(**cli_kwargs)
    if rejected:
        raise click.exceptions.Exit(1)


def _check(
    candidates: tuple[str, ...],
    *,
    base: str,
    encoding: str = DEFAULT_ENCODING,
    as_bytes: bool = False,
    as_json: bool = False,
) -> int:
    """Validate ``candidates`` against ``base`` and report each outcome.

    Parameters
    ----------
    candidates : tuple[str, ...]
        Candidate paths as given on the command line.
    base : str
        The allowed base directory.
    encoding : str
        Encoding of byte candidates (default: ``"utf-8"``).
    as_bytes : bool
        If ``True``, candidates are converted with ``os.fsencode`` before validation (default: ``False``).
    as_json : bool
        If ``True``, print a ``CheckResult`` JSON document per candidate (default: ``False``).

    Returns
    -------
    int
        The number of rejected candidates.

    Raises
    ------
    click.BadParameter
        If the base directory or the encoding is unusable.

    """
    try:
        policy = ConfinementPolicy(base_directory=base, encoding=encoding)
        validator = PathConfinementValidator.from_policy(policy)
    except ValidationError as exc:
        errors = "; ".join(error["msg"] for error in exc.errors())
        raise click.BadParameter(errors) from exc
    except InvalidBaseDirectoryError as exc:
        raise click.BadParameter(str(exc), param_hint="'--base'") from exc

    rejected = 0
    for candidate in candidates:
        value = os.fsencode(candidate) if as_bytes else candidate
        try:
            path = validator.validate(value)
        except PathGuardError as exc:
            rejected += 1
            result = CheckResult(candidate=candidate, accepted=False, error_kind=exc.kind, message=str(exc))
        else:
            result = CheckResult(candidate=candidate, accepted=True, path=path)

        _report(result, as_json=as_json)

    logger.info(
        "Path check complete",
        extra={"base_directory": validator.base_directory, "checked": len(candidates), "rejected": rejected},
    )
    return rejected


def _report(result: CheckResult, *, as_json: bool) -> None:
    if as_json:
        click.echo(result.model_dump_json())
    elif result.accepted:
        click.echo(result.path)
    else:
        click.echo(f"{result.error_kind}: {result.message}", err=True)


if __name__ == "__main__":
    main()
