# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Implementation of the ``ocsconfig write`` command."""

from __future__ import annotations

__all__ = ("write_config_files",)

import sys
import traceback
from collections.abc import Sequence
from typing import IO

from lsst.resources import ResourcePath

from ..acsis import HardwareMap
from ..file_helpers import find_config_files, read_config
from ..settings import OutputSettings, get_default_settings


def write_config_files(
    files: Sequence[str],
    regex: str,
    print_trace: bool,
    outdir: str | None = None,
    chmod: int | None = None,
    outstream: IO | None = None,
    errstream: IO | None = None,
    telescope: str | None = None,
    hw_map: HardwareMap | None = None,
) -> tuple[list[ResourcePath], list[ResourcePath]]:
    """Verify configurations and write them to the output directory tree.

    Parameters
    ----------
    files : iterable of `str`
        The files or directories to process.
    regex : `str`
        Regular expression string used to filter files when a directory is
        scanned.
    print_trace : `bool`
        Report full tracebacks on failure.
    outdir : `str`, optional
        Output directory. Defaults to the configured default.
    chmod : `int`, optional
        Permissions applied to each written file.
    outstream : `io.StringIO` or `None`, optional
        Stream receiving the name of each file written.
    errstream : `io.StringIO` or `None`, optional
        Stream to receive error reports.
    telescope : `str`, optional
        Telescope to associate with each configuration.
    hw_map : `~jac_ocs_config.acsis.HardwareMap`, optional
        Correlator hardware map.

    Returns
    -------
    okay : `list` of `lsst.resources.ResourcePath`
        All the files that were written successfully.
    failed : `list` of `lsst.resources.ResourcePath`
        All the files that could not be processed.
    """
    settings: OutputSettings = get_default_settings()
    okay = []
    failed = []
    for path in sorted(find_config_files(files, regex)):
        try:
            config = read_config(path, telescope=telescope, hw_map=hw_map)
            assert config is not None
            config.verify()
            written = config.write_file(outdir, settings=settings, chmod=chmod)
            print(f"{path} -> {written}", file=outstream)
        except Exception as e:
            if print_trace:
                traceback.print_exc(file=errstream or sys.stderr)
            else:
                print(f"Failure processing {path}: {e}", file=errstream or sys.stderr)
            failed.append(path)
        else:
            okay.append(path)
    return okay, failed
