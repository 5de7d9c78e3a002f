# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("main",)

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import click

from ..acsis import HardwareMap
from ..bin.summarize import process_files as summarize_files
from ..bin.writeconfig import write_config_files
from ..config import CONFIGS
from ..file_helpers import read_config

if TYPE_CHECKING:
    from ..config import Config

# Default regex for finding configuration files
re_default = r"\.xml$"

regex_option = click.option(
    "-r",
    "--regex",
    default=re_default,
    help="When looking in a directory, regular expression to use to determine whether"
    f" a file should be examined. Default: '{re_default}'",
)


def _report_failures(failed: Sequence, okay: Sequence) -> None:
    if failed:
        click.echo("Files that could not be processed:", err=True)
        for f in failed:
            click.echo(f"\t{f}", err=True)

    if not okay:
        # Good status if anything was returned in okay
        raise click.exceptions.Exit(1)


def _load_config(ctx: click.Context, file: str) -> Config:
    config = read_config(
        file,
        print_trace=ctx.obj["TRACEBACK"],
        telescope=ctx.obj["TELESCOPE"],
        hw_map=ctx.obj["HW_MAP"],
    )
    if config is None:
        raise click.exceptions.Exit(1)
    return config


@click.group(name="ocsconfig", context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"], case_sensitive=False),
    default="INFO",
    help="Python logging level to use.",
)
@click.option(
    "--traceback/--no-traceback", default=False, help="Give detailed trace back when any errors encountered."
)
@click.option("-t", "--telescope", default="JCMT", help="Telescope the configurations are written for.")
@click.option(
    "--hw-map",
    default=None,
    help="YAML file mapping correlator modules to correlator tasks. Required to derive ACSIS task names.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str, traceback: bool, telescope: str, hw_map: str | None) -> None:
    """Execute main click command-line."""
    ctx.ensure_object(dict)

    logging.basicConfig(level=log_level.upper())

    # Needed by every subcommand
    ctx.obj["TRACEBACK"] = traceback
    ctx.obj["TELESCOPE"] = telescope
    ctx.obj["HW_MAP"] = HardwareMap.from_yaml(hw_map) if hw_map else None


@main.command(help="Summarize the target, instrument, mode and duration of each configuration.")
@click.argument("files", nargs=-1)
@regex_option
@click.pass_context
def summary(ctx: click.Context, files: Sequence[str], regex: str) -> None:
    """Summarize configurations."""
    okay, failed = summarize_files(
        files, regex, ctx.obj["TRACEBACK"], telescope=ctx.obj["TELESCOPE"], hw_map=ctx.obj["HW_MAP"]
    )
    _report_failures(failed, okay)


@main.command(help="List the tasks taking part in the observation.")
@click.argument("file")
@click.pass_context
def tasks(ctx: click.Context, file: str) -> None:
    """Report configuration tasks."""
    config = _load_config(ctx, file)
    for task in config.tasks():
        click.echo(task)


@main.command(help="Write the configuration to standard output in canonical form.")
@click.argument("file")
@click.option(
    "-c",
    "--config",
    "configs",
    multiple=True,
    type=click.Choice(CONFIGS),
    help="Only include this component (and the components it requires). Can be given multiple times.",
)
@click.pass_context
def dump(ctx: click.Context, file: str, configs: Sequence[str]) -> None:
    """Dump a configuration."""
    config = _load_config(ctx, file)
    click.echo(config.to_xml(configs=configs if configs else None), nl=False)


@main.command(help="Verify configurations and write them into the output directory tree.")
@click.argument("files", nargs=-1)
@regex_option
@click.option(
    "-o",
    "--outdir",
    type=str,
    default=None,
    help="Output directory. Defaults to the $OCS_CONFIG_OUTPUT_DIR environment variable"
    " or /jcmtdata/orac_data/ocsconfigs.",
)
@click.option("--chmod", type=str, default=None, help="Octal permissions for the written files.")
@click.pass_context
def write(ctx: click.Context, files: Sequence[str], regex: str, outdir: str | None, chmod: str | None) -> None:
    """Write configurations."""
    okay, failed = write_config_files(
        files,
        regex,
        ctx.obj["TRACEBACK"],
        outdir=outdir,
        chmod=int(chmod, 8) if chmod is not None else None,
        telescope=ctx.obj["TELESCOPE"],
        hw_map=ctx.obj["HW_MAP"],
    )
    _report_failures(failed, okay)
