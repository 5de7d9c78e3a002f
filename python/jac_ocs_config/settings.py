# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Process-wide defaults used when writing configurations."""

from __future__ import annotations

__all__ = ("OutputSettings", "get_default_settings", "reset_default_settings", "ENV_VAR_NAME")

import os
import sys
from dataclasses import dataclass, field
from typing import IO

ENV_VAR_NAME = "OCS_CONFIG_OUTPUT_DIR"
"""Name of environment variable overriding the default output directory."""

DEFAULT_OUTPUT_DIR = "/jcmtdata/orac_data/ocsconfigs"
"""Directory used for writing configurations if nothing else is given."""


@dataclass
class OutputSettings:
    """Settings controlling where and how configurations are written.

    Parameters
    ----------
    output_dir : `str`
        Root directory for written configuration files.
    debug : `bool`
        Enable additional debugging output.
    verbose : `bool`
        Report progress messages to ``output``.
    output : `io.TextIOBase`
        Stream receiving verbose messages.
    """

    output_dir: str = DEFAULT_OUTPUT_DIR
    debug: bool = False
    verbose: bool = False
    output: IO = field(default_factory=lambda: sys.stdout)

    @classmethod
    def from_environment(cls) -> OutputSettings:
        """Construct settings honoring the ``$OCS_CONFIG_OUTPUT_DIR``
        environment variable."""
        output_dir = os.environ.get(ENV_VAR_NAME) or DEFAULT_OUTPUT_DIR
        return cls(output_dir=output_dir)

    def report(self, message: str) -> None:
        """Write a message to the output stream if verbose."""
        if self.verbose:
            print(message, file=self.output)


_DEFAULT_SETTINGS: OutputSettings | None = None


def get_default_settings() -> OutputSettings:
    """Return the process-wide default settings.

    Returns
    -------
    settings : `OutputSettings`
        The shared settings, created on first use.
    """
    global _DEFAULT_SETTINGS
    if _DEFAULT_SETTINGS is None:
        _DEFAULT_SETTINGS = OutputSettings.from_environment()
    return _DEFAULT_SETTINGS


def reset_default_settings(settings: OutputSettings | None = None) -> OutputSettings:
    """Replace the process-wide default settings.

    Parameters
    ----------
    settings : `OutputSettings`, optional
        New settings. If `None` the defaults are rebuilt from the
        environment.

    Returns
    -------
    settings : `OutputSettings`
        The settings now in force.
    """
    global _DEFAULT_SETTINGS
    _DEFAULT_SETTINGS = settings if settings is not None else OutputSettings.from_environment()
    return _DEFAULT_SETTINGS
