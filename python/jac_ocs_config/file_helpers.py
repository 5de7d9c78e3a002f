# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Support functions for locating, reading and writing configuration files.

These functions should not be treated as part of the public API.
"""

from __future__ import annotations

__all__ = ("config_file_name", "find_config_files", "read_config", "write_config")

import datetime
import logging
import os
import re
import traceback
from collections.abc import Iterable
from typing import IO, TYPE_CHECKING

from lsst.resources import ResourcePath

from .errors import ConfigIOError
from .settings import get_default_settings

if TYPE_CHECKING:
    from lsst.resources import ResourcePathExpression

    from .acsis import HardwareMap
    from .config import Config
    from .settings import OutputSettings

log = logging.getLogger(__name__)

# Task directory receiving the reduced IF-only document.
IFTASK = "IFTASK"


def find_config_files(files: Iterable[ResourcePathExpression], regex: str) -> list[ResourcePath]:
    """Find configuration files for processing.

    Parameters
    ----------
    files : iterable of `lsst.resources.ResourcePathExpression`
        The files or directories to examine.
    regex : `str`
        Regular expression string used to filter files when a directory is
        scanned.

    Returns
    -------
    found_files : `list` of `lsst.resources.ResourcePath`
        The files that were found.
    """
    file_regex = re.compile(regex)
    found_files: list[ResourcePath] = []

    for candidate in files:
        uri = ResourcePath(candidate, forceAbsolute=False)
        if uri.isdir():
            found_files.extend(ResourcePath.findFileResources([uri], file_filter=file_regex, grouped=False))
        else:
            found_files.append(uri)

    return found_files


def read_config(
    file: ResourcePathExpression,
    print_trace: bool | None = None,
    telescope: str | None = None,
    hw_map: HardwareMap | None = None,
    outstream: IO | None = None,
) -> Config | None:
    """Read a configuration from a file.

    Parameters
    ----------
    file : `str` or `lsst.resources.ResourcePathExpression`
        The file to read.
    print_trace : `bool` or `None`
        If there is an error reading the file and this parameter is `True`,
        a full traceback of the exception will be reported. If `False` prints
        a one line summary of the error condition. If `None` the exception
        will be allowed to propagate.
    telescope : `str`, optional
        Telescope to associate with the configuration.
    hw_map : `~jac_ocs_config.acsis.HardwareMap`, optional
        Correlator hardware map.
    outstream : `io.StringIO` or `None`, optional
        Output stream to use for error messages.

    Returns
    -------
    config : `~jac_ocs_config.config.Config` or `None`
        The configuration. `None` if there was a problem and
        ``print_trace`` is not `None`.
    """
    from .config import Config

    try:
        return Config.from_file(file, telescope=telescope, hw_map=hw_map)
    except Exception as e:
        if print_trace is None:
            raise e
        if print_trace:
            traceback.print_exc(file=outstream)
        else:
            print(repr(e), file=outstream)
    return None


def config_file_name(config: Config, now: datetime.datetime | None = None) -> str:
    """Return the name to use when writing a configuration.

    Parameters
    ----------
    config : `~jac_ocs_config.config.Config`
        The configuration to be written.
    now : `datetime.datetime`, optional
        Time to embed in the name. Defaults to the current time.

    Returns
    -------
    name : `str`
        Name of the form ``backend_YYYYMMDD_HHMMSS_uuuuuu.xml``.
    """
    if config.acsis is not None:
        backend = "acsis"
    elif config.scuba2 is not None:
        backend = "scuba2"
    else:
        backend = "unknown"
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    # Microseconds avoid collisions between rapidly written files.
    return f"{backend}_{now.strftime('%Y%m%d_%H%M%S_%f')}.xml"


def write_config(
    config: Config,
    directory: ResourcePathExpression | None = None,
    settings: OutputSettings | None = None,
    chmod: int | None = None,
) -> ResourcePath:
    """Write a configuration to an output directory tree.

    The full configuration is written to ``directory``. Every
    subdirectory named after one of the configuration's tasks also
    receives a copy containing the components used by that task. Tasks
    requiring the full configuration get the whole document and the
    ``IFTASK`` directory gets the instrument setup plus the IF and
    mapping sections of the ACSIS configuration.

    Parameters
    ----------
    config : `~jac_ocs_config.config.Config`
        The configuration to write.
    directory : `str` or `lsst.resources.ResourcePathExpression`, optional
        Output directory. Defaults to the directory in ``settings``.
    settings : `~jac_ocs_config.settings.OutputSettings`, optional
        Output settings. Defaults to the process-wide settings.
    chmod : `int`, optional
        Permissions to apply to each written local file.

    Returns
    -------
    path : `lsst.resources.ResourcePath`
        The file written in ``directory`` itself.

    Raises
    ------
    ConfigIOError
        Raised if a file can not be written. Files already written are
        left in place.
    """
    if settings is None:
        settings = get_default_settings()
    if directory is None:
        directory = settings.output_dir
    root = ResourcePath(directory, forceDirectory=True)

    _, inverse_map = config.task_map()
    full_configs = set(config.requires_full_config())

    # Only a handful of task names are possible so check for each
    # rather than scanning the directory.
    task_dirs = [t for t in inverse_map if root.join(t, forceDirectory=True).exists()]

    filename = config_file_name(config)
    # The header records the name of the file it is written to.
    if config.header is not None:
        config.header.set_ocscfg_filename(filename)

    primary: ResourcePath | None = None
    for task_dir in [None, *task_dirs]:
        dest_dir = root if task_dir is None else root.join(task_dir, forceDirectory=True)
        dest = dest_dir.join(filename)
        settings.report(f"Writing config to {dest}")
        log.debug("Writing configuration for %s to %s", task_dir or "all tasks", dest)

        if task_dir == IFTASK and config.acsis is not None:
            # The IF task struggles with large documents.
            xml = config.stripped_for_iftask().to_xml()
        elif task_dir is not None and task_dir not in full_configs:
            xml = config.to_xml(configs=inverse_map[task_dir])
        else:
            xml = config.to_xml()

        try:
            dest.write(xml.encode(), overwrite=True)
            if chmod is not None and dest.isLocal:
                os.chmod(dest.ospath, chmod)
        except OSError as e:
            raise ConfigIOError(f"Error writing config output file {dest}: {e}") from e

        if primary is None:
            primary = dest

    assert primary is not None
    return primary
