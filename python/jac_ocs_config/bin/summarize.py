# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Implementation of the ``ocsconfig summary`` command.

Read configuration files and report the target, instrument, observing mode
and estimated duration of each.
"""

from __future__ import annotations

__all__ = ("process_files", "summarize_file")

import logging
import sys
import traceback
from collections.abc import Sequence
from typing import IO

from lsst.resources import ResourcePath

from ..acsis import HardwareMap
from ..errors import FatalError
from ..file_helpers import find_config_files, read_config

log = logging.getLogger(__name__)


def summarize_file(
    file: ResourcePath,
    print_trace: bool,
    outstream: IO | None = None,
    errstream: IO | None = None,
    telescope: str | None = None,
    hw_map: HardwareMap | None = None,
) -> bool:
    """Read the specified configuration and summarize it.

    Parameters
    ----------
    file : `lsst.resources.ResourcePath`
        The configuration file.
    print_trace : `bool`
        If there is an error reading the file and this parameter is `True`,
        a full traceback of the exception will be reported. If `False` prints
        a one line summary of the error condition.
    outstream : `io.StringIO` or `None`, optional
        Output stream to use for the summary.
    errstream : `io.StringIO` or `None`, optional
        Stream to receive error reports.
    telescope : `str`, optional
        Telescope to associate with the configuration.
    hw_map : `~jac_ocs_config.acsis.HardwareMap`, optional
        Correlator hardware map.

    Returns
    -------
    success : `bool`
        `True` if the file was summarized.
    """
    try:
        config = read_config(file, telescope=telescope, hw_map=hw_map)
        assert config is not None
        try:
            duration = f"{config.duration().to_value('s'):8.1f} s"
        except FatalError as e:
            log.warning("Unable to estimate duration of %s: %s", file, e)
            duration = "       - s"
        print(f"{config.qsummary()} {duration}", file=outstream)
    except Exception as e:
        if print_trace:
            traceback.print_exc(file=errstream or sys.stderr)
        else:
            print(f"Failure processing {file}: {e}", file=errstream or sys.stderr)
        return False
    return True


def process_files(
    files: Sequence[str],
    regex: str,
    print_trace: bool,
    outstream: IO | None = None,
    errstream: IO | None = None,
    telescope: str | None = None,
    hw_map: HardwareMap | None = None,
) -> tuple[list[ResourcePath], list[ResourcePath]]:
    """Summarize the specified configuration files.

    Parameters
    ----------
    files : iterable of `str`
        The files or directories to summarize.
    regex : `str`
        Regular expression string used to filter files when a directory is
        scanned.
    print_trace : `bool`
        Report full tracebacks on failure.
    outstream : `io.StringIO` or `None`, optional
        Output stream to use for standard messages.
    errstream : `io.StringIO` or `None`, optional
        Stream to receive error reports.
    telescope : `str`, optional
        Telescope to associate with each configuration.
    hw_map : `~jac_ocs_config.acsis.HardwareMap`, optional
        Correlator hardware map.

    Returns
    -------
    okay : `list` of `lsst.resources.ResourcePath`
        All the files that were processed successfully.
    failed : `list` of `lsst.resources.ResourcePath`
        All the files that could not be processed.
    """
    okay = []
    failed = []
    for path in sorted(find_config_files(files, regex)):
        if summarize_file(path, print_trace, outstream, errstream, telescope=telescope, hw_map=hw_map):
            okay.append(path)
        else:
            failed.append(path)
    return okay, failed
