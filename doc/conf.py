"""Sphinx configuration file for the jac_ocs_config package.

This configuration only affects single-package Sphinx documenation builds.
"""

from documenteer.conf.pipelinespkg import *  # noqa: F403, import *

project = "jac_ocs_config"
html_theme_options["logotext"] = project  # noqa: F405, unknown name
html_title = project
html_short_title = project
doxylink = {}

# Remove jac_ocs_config from the default intersphinx configuration
try:
    del intersphinx_mapping["jac_ocs_config"]  # noqa
except KeyError:
    pass

# Coordinate and unit types are documented by astropy.
intersphinx_mapping["astropy"] = ("https://docs.astropy.org/en/stable/", None)  # noqa

nitpick_ignore_regex = [
    ("py:.*", r"lsst\..*"),  # Ignore warnings from links to other lsst packages.
    ("py:class", "ResourcePathExpression"),
    ("py:class", "ResourcePath"),
    ("py:class", r"xml\.etree\.ElementTree\..*"),
]
