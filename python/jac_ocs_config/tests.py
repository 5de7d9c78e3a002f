# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("read_test_config", "ConfigAssertHelper")

import os
from typing import TYPE_CHECKING, Any, NoReturn

import astropy.units as u

from jac_ocs_config import CONFIGS, Config, HardwareMap


def read_test_config(
    filename: str,
    dir: str | None = None,
    hw_map: HardwareMap | str | None = None,
    telescope: str | None = None,
) -> Config:
    """Read the named test configuration.

    Parameters
    ----------
    filename : `str`
        Name of file in the data directory.
    dir : `str`, optional.
        Directory from which to read file. Current directory used if none
        specified.
    hw_map : `~jac_ocs_config.acsis.HardwareMap` or `str`, optional
        Correlator hardware map, or the name of a YAML file holding one
        (relative to ``dir``).
    telescope : `str`, optional
        Telescope to associate with the configuration.

    Returns
    -------
    config : `~jac_ocs_config.config.Config`
        Configuration read from file.
    """
    if dir is not None and not os.path.isabs(filename):
        filename = os.path.join(dir, filename)
    if isinstance(hw_map, str):
        if dir is not None and not os.path.isabs(hw_map):
            hw_map = os.path.join(dir, hw_map)
        hw_map = HardwareMap.from_yaml(hw_map)
    if not filename.endswith(".xml"):
        raise RuntimeError(f"Unrecognized file format: {filename}")
    return Config.from_file(filename, telescope=telescope, hw_map=hw_map)


class ConfigAssertHelper:
    """Class with helpful asserts that can be used for testing OCS
    configurations.
    """

    # This class is assumed to be combined with unittest.TestCase but mypy
    # does not know this. We need to teach mypy about the APIs we are using.
    if TYPE_CHECKING:

        def assertAlmostEqual(  # noqa: N802
            self,
            a: float,
            b: float,
            places: int | None = None,
            msg: str | None = None,
            delta: float | None = None,
        ) -> None:
            pass

        def assertIsNotNone(self, a: Any, msg: str | None = None) -> None:  # noqa: N802
            pass

        def assertIsNone(self, a: Any, msg: str | None = None) -> None:  # noqa: N802
            pass

        def assertEqual(self, a: Any, b: Any, msg: str | None = None) -> None:  # noqa: N802
            pass

        def assertLess(self, a: Any, b: Any, msg: str | None = None) -> None:  # noqa: N802
            pass

        def fail(self, msg: str) -> NoReturn:
            pass

    def assertConfig(self, config: Config, **kwargs: Any) -> None:  # noqa: N802
        """Check properties of a configuration.

        Parameters
        ----------
        config : `~jac_ocs_config.config.Config`
            Configuration to check.
        kwargs : `dict`
            Keys matching `~jac_ocs_config.config.Config` attributes with
            values to be tested. Methods are called without arguments.

        Raises
        ------
        AssertionError
            A value in the configuration is inconsistent.
        """
        for name, expected in kwargs.items():
            calculated = getattr(config, name)
            if callable(calculated):
                calculated = calculated()
            msg = f"Comparing property {name}"
            if isinstance(expected, u.Quantity):
                if not isinstance(calculated, u.Quantity):
                    self.fail(f"Expected Quantity {expected} but got {calculated!r}: {msg}")
                self.assertAlmostEqual(calculated.to_value(expected.unit), expected.to_value(), msg=msg)
            elif isinstance(calculated, u.Quantity):
                # Only happens if the test is not a quantity when it should be
                self.fail(f"Expected {expected!r} but got Quantity '{calculated}': {msg}")
            elif isinstance(expected, float) and calculated is not None:
                self.assertAlmostEqual(calculated, expected, msg=msg)
            else:
                self.assertEqual(calculated, expected, msg=msg)

    def assertConfigRoundTrip(self, config: Config) -> Config:  # noqa: N802
        """Check that a configuration survives conversion to XML.

        The rendered document includes the time it was rendered so the
        comparison is made on the re-read configuration rather than on
        the text.

        Parameters
        ----------
        config : `~jac_ocs_config.config.Config`
            Configuration to check.

        Returns
        -------
        new : `~jac_ocs_config.config.Config`
            The configuration read back from the XML.
        """
        new = Config.from_xml(config.to_xml(), telescope=config.telescope, hw_map=config.hw_map)

        for name in CONFIGS:
            if getattr(config, name) is None:
                self.assertIsNone(getattr(new, name), f"Unexpected {name} after round trip")
            else:
                self.assertIsNotNone(getattr(new, name), f"Lost {name} in round trip")

        self.assertEqual(new.tasks(), config.tasks())
        self.assertEqual(new.qsummary(), config.qsummary())

        if config.jos is not None:
            self.assertEqual(new.jos.parameters(), config.jos.parameters())
            self.assertEqual(new.jos.tasks, config.jos.tasks)
        if config.header is not None:
            self.assertEqual(
                [(i.keyword, i.value, i.source) for i in new.header.items],
                [(i.keyword, i.value, i.source) for i in config.header.items],
            )
        if config.instrument_setup is not None:
            self.assertEqual(new.instrument_setup.receptor_ids(), config.instrument_setup.receptor_ids())
            self.assertAlmostEqual(new.instrument_setup.bandwidth, config.instrument_setup.bandwidth, delta=1.0)
        if config.tcs is not None:
            self.assertEqual(new.tcs.get_tags(), config.tcs.get_tags())
        return new
