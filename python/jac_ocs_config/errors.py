# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Exceptions raised when reading, validating or writing OCS
configurations.
"""

from __future__ import annotations

__all__ = (
    "OCSConfigError",
    "XMLConfigMissing",
    "XMLBadStructure",
    "XMLEmpty",
    "XMLSurfeit",
    "BadArgs",
    "ConfigIOError",
    "FatalError",
    "MissingTarget",
)


class OCSConfigError(Exception):
    """Base class for all configuration errors."""


class XMLConfigMissing(OCSConfigError):
    """The requested configuration root element could not be found."""


class XMLBadStructure(OCSConfigError):
    """The XML is malformed or a required child element is missing."""


class XMLEmpty(XMLBadStructure):
    """An element that must have children has none."""


class XMLSurfeit(XMLBadStructure):
    """More elements were found than are allowed."""


class BadArgs(OCSConfigError, ValueError):
    """Incorrect arguments were supplied by the caller."""


class ConfigIOError(OCSConfigError, OSError):
    """A configuration file could not be read or written."""


class FatalError(OCSConfigError):
    """The configuration is internally inconsistent."""


class MissingTarget(FatalError):
    """A science target is required but none has been defined."""
