# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Represent a complete OCS configuration.

An OCS configuration is a single ``OCS_CONFIG`` document aggregating the
configuration of every subsystem taking part in an observation. Each
subsystem configuration is optional. The document is always regenerated
from the in-memory model when written.
"""

from __future__ import annotations

__all__ = ("Config", "CONFIGS")

import logging
import platform
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import astropy.units as u
from astropy.time import Time

from .acsis import ACSIS, HardwareMap
from .cfgbase import ConfigBase, HasDtdRequires, HasTasks, RequiresFullConfig
from .duration import estimate_duration
from .errors import FatalError, MissingTarget
from .file_helpers import write_config
from .frontend import Frontend
from .header import Header, read_header_exclusion_file
from .instrument import Instrument
from .jos import JOS
from .obssummary import ObsSummary
from .pol import POL
from .rts import RTS
from .scuba2 import SCUBA2
from .tcs import TCS
from .version import __version__
from .xmlhelper import indent_xml_string

if TYPE_CHECKING:
    from lsst.resources import ResourcePath, ResourcePathExpression

    from .settings import OutputSettings

log = logging.getLogger(__name__)

CONFIGS = (
    "obs_summary",
    "jos",
    "header",
    "rts",
    "scuba2",
    "frontend",
    "pol",
    "instrument_setup",
    "tcs",
    "acsis",
)
"""Names of the component configurations, in the order in which they
are written."""

XML_PROLOG = (
    '<?xml version="1.0" encoding="US-ASCII"?>'
    '<!DOCTYPE OCS_CONFIG  SYSTEM  "/jac_sw/itsroot//ICD/001/ocs.dtd">\n'
)

# Observing modes that can not be executed without a science target.
_TARGET_MODES = ("scan", "dream", "stare", "raster", "jiggle", "grid")


class Config(ConfigBase, HasTasks, RequiresFullConfig):
    """A complete OCS configuration.

    Parameters
    ----------
    telescope : `str`, optional
        Name of the telescope. Passed to the TCS configuration so that
        telescope-dependent coordinates can be interpreted.
    hw_map : `~jac_ocs_config.acsis.HardwareMap`, optional
        Correlator hardware map passed to the ACSIS configuration.
    comment : `str`, optional
        Text to be included at the top of the rendered document.

    Notes
    -----
    ACSIS and SCUBA-2 configurations can not coexist, nor can SCUBA-2
    and a heterodyne frontend. Attempting to store conflicting
    configurations raises `~jac_ocs_config.errors.FatalError`.
    """

    root_element_names = ("OCS_CONFIG",)

    def __init__(
        self, telescope: str | None = None, hw_map: HardwareMap | None = None, comment: str | None = None
    ):
        self._telescope = telescope
        self.hw_map = hw_map
        self.comment = comment
        self._obs_summary: ObsSummary | None = None
        self._jos: JOS | None = None
        self._header: Header | None = None
        self._rts: RTS | None = None
        self._scuba2: SCUBA2 | None = None
        self._frontend: Frontend | None = None
        self._pol: POL | None = None
        self._instrument_setup: Instrument | None = None
        self._tcs: TCS | None = None
        self._acsis: ACSIS | None = None

    def __str__(self) -> str:
        return self.qsummary()

    @property
    def obs_summary(self) -> ObsSummary | None:
        """Observation summary."""
        return self._obs_summary

    @obs_summary.setter
    def obs_summary(self, value: ObsSummary | None) -> None:
        self._obs_summary = _check_type(value, ObsSummary)

    @property
    def jos(self) -> JOS | None:
        """Sequencer configuration."""
        return self._jos

    @jos.setter
    def jos(self, value: JOS | None) -> None:
        self._jos = _check_type(value, JOS)

    @property
    def header(self) -> Header | None:
        """Header configuration."""
        return self._header

    @header.setter
    def header(self, value: Header | None) -> None:
        self._header = _check_type(value, Header)

    @property
    def rts(self) -> RTS | None:
        """Realtime sequencer configuration."""
        return self._rts

    @rts.setter
    def rts(self, value: RTS | None) -> None:
        self._rts = _check_type(value, RTS)

    @property
    def scuba2(self) -> SCUBA2 | None:
        """SCUBA-2 configuration. Can not be present with ACSIS or a
        heterodyne frontend."""
        return self._scuba2

    @scuba2.setter
    def scuba2(self, value: SCUBA2 | None) -> None:
        if value is not None:
            if self._acsis is not None:
                raise FatalError("ACSIS configuration already present")
            if self._frontend is not None:
                raise FatalError("Heterodyne frontend configuration already present")
        self._scuba2 = _check_type(value, SCUBA2)

    @property
    def frontend(self) -> Frontend | None:
        """Heterodyne frontend configuration.

        If the frontend has no name it is taken from the instrument setup.
        """
        return self._frontend

    @frontend.setter
    def frontend(self, value: Frontend | None) -> None:
        if value is not None and self._scuba2 is not None:
            raise FatalError("SCUBA-2 configuration already present")
        self._frontend = _check_type(value, Frontend)
        self._sync_frontend_name()

    @property
    def pol(self) -> POL | None:
        """Polarimeter configuration."""
        return self._pol

    @pol.setter
    def pol(self, value: POL | None) -> None:
        self._pol = _check_type(value, POL)

    @property
    def instrument_setup(self) -> Instrument | None:
        """Instrument setup."""
        return self._instrument_setup

    @instrument_setup.setter
    def instrument_setup(self, value: Instrument | None) -> None:
        self._instrument_setup = _check_type(value, Instrument)
        self._sync_frontend_name()

    @property
    def tcs(self) -> TCS | None:
        """Telescope configuration."""
        return self._tcs

    @tcs.setter
    def tcs(self, value: TCS | None) -> None:
        self._tcs = _check_type(value, TCS)
        if value is not None and value.telescope is None and self._telescope is not None:
            value.telescope = self._telescope

    @property
    def acsis(self) -> ACSIS | None:
        """ACSIS configuration. Can not be present with SCUBA-2."""
        return self._acsis

    @acsis.setter
    def acsis(self, value: ACSIS | None) -> None:
        if value is not None and self._scuba2 is not None:
            raise FatalError("SCUBA-2 configuration already present")
        self._acsis = _check_type(value, ACSIS)
        if value is not None and value.hw_map is None and self.hw_map is not None:
            value.hw_map = self.hw_map

    @property
    def telescope(self) -> str | None:
        """Name of the telescope.

        The telescope known to the TCS configuration takes precedence.
        Setting the telescope also updates the TCS configuration.
        """
        if self._tcs is not None and self._tcs.telescope is not None:
            return self._tcs.telescope
        return self._telescope

    @telescope.setter
    def telescope(self, value: str | None) -> None:
        self._telescope = value
        if self._tcs is not None:
            self._tcs.telescope = value

    def _sync_frontend_name(self) -> None:
        # Receptors in the instrument are not checked against the frontend.
        if self._frontend is not None and self._frontend.frontend is None and self._instrument_setup is not None:
            self._frontend.frontend = self._instrument_setup.name

    def _sync_cont_status(self) -> None:
        if self._pol is not None:
            self._pol.is_cont = self.is_cont()

    def _components(self) -> Iterable[tuple[str, Any]]:
        for name in CONFIGS:
            component = getattr(self, name)
            if component is not None:
                yield name, component

    def tasks(self) -> list[str]:
        """Return the tasks involved in this observation.

        The JOS is not included. Tasks are reported in the order of the
        component configurations with duplicates removed.

        Returns
        -------
        tasks : `list` of `str`
            The task names.
        """
        tasks: list[str] = []
        for name, component in self._components():
            if name == "jos" or not isinstance(component, HasTasks):
                continue
            for t in component.tasks():
                if t not in tasks:
                    tasks.append(t)
        return tasks

    def requires_full_config(self) -> list[str]:
        """Return the tasks that must be given the complete document."""
        full: list[str] = []
        for _, component in self._components():
            if isinstance(component, RequiresFullConfig):
                full.extend(component.requires_full_config())
        return full

    def task_map(self) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """Return the relationship between components and tasks.

        Returns
        -------
        task_map : `dict` [`str`, `list` [`str`]]
            The tasks associated with each component name.
        inverse_map : `dict` [`str`, `list` [`str`]]
            The component names associated with each task, in the order
            the components are written.
        """
        forward: dict[str, list[str]] = {}
        for name, component in self._components():
            if name == "jos":
                forward[name] = ["JOS"]
            elif isinstance(component, HasTasks):
                forward[name] = component.tasks()

        inverse: dict[str, list[str]] = {}
        for name, tasks in forward.items():
            for t in tasks:
                inverse.setdefault(t, [])
                if name not in inverse[t]:
                    inverse[t].append(name)
        return forward, inverse

    def is_cont(self) -> bool | None:
        """Return whether this is a continuum observation.

        Returns
        -------
        is_cont : `bool` or `None`
            `True` for SCUBA-2, `False` for heterodyne observations and
            `None` if the mode can not be determined.
        """
        if self._scuba2 is not None:
            return True
        if self._acsis is not None or self._frontend is not None:
            return False
        return None

    @property
    def instrument(self) -> str:
        """Name of the instrument, empty if there is no instrument setup."""
        if self._instrument_setup is None:
            return ""
        return self._instrument_setup.name or ""

    def _header_value(self, keyword: str) -> Any:
        if self._header is None:
            return None
        item = self._header.item(keyword)
        return item.value if item is not None else None

    @property
    def projectid(self) -> str | None:
        """Project ID from the PROJECT header item."""
        return self._header_value("PROJECT")

    @property
    def msbid(self) -> str | None:
        """MSB ID from the MSBID header item."""
        return self._header_value("MSBID")

    @property
    def msbtid(self) -> str | None:
        """MSB transaction ID from the MSBTID header item.

        Can only be set if the header already has an MSBTID item.
        """
        return self._header_value("MSBTID")

    @msbtid.setter
    def msbtid(self, value: str | None) -> None:
        item = self._header.item("MSBTID") if self._header is not None else None
        if item is None:
            log.debug("No MSBTID header item available to receive transaction ID")
            return
        item.value = value

    @property
    def obsmode(self) -> str:
        """Observing mode summary as ``mapping_switching_type``."""
        summary = self._obs_summary
        if summary is None:
            return "UNKNOWN"
        return "_".join(
            v if v is not None else "unknown"
            for v in (summary.mapping_mode, summary.switching_mode, summary.obs_type)
        )

    @property
    def waveband(self) -> u.Quantity | None:
        """Observed rest frequency of the heterodyne frontend.

        `None` if there is no frontend or it has no rest frequency. Use
        `astropy.units.spectral` to convert to a wavelength.
        """
        if self._frontend is None or self._frontend.rest_frequency is None:
            return None
        return self._frontend.rest_frequency * u.GHz

    def duration(self) -> u.Quantity:
        """Estimate the duration of the observation.

        Returns
        -------
        duration : `astropy.units.Quantity`
            Estimated duration.

        Raises
        ------
        FatalError
            Raised if the configuration lacks the information required to
            estimate a duration.
        """
        if self._tcs is None:
            raise FatalError("Unable to determine duration without a TCS configuration")
        seconds = estimate_duration(
            self._obs_summary, self._jos, self._tcs.get_obs_area(), self._tcs.get_secondary()
        )
        return seconds * u.s

    def verify(self) -> None:
        """Check that the configuration is ready to be executed.

        Raises
        ------
        MissingTarget
            Raised if the observing mode needs a science target but none
            is defined.
        FatalError
            Raised if the observing mode needs a target but there is no
            TCS configuration.
        """
        obsmode = self.obsmode.lower()
        if any(m in obsmode for m in _TARGET_MODES):
            if self._tcs is None:
                raise FatalError("No TCS definition available in this configuration")
            if self._tcs.get_target() is None:
                raise MissingTarget("No science target defined in configuration")

    def _cal_flags(self) -> tuple[bool, bool, bool]:
        # (generic calibration, science calibration, science)
        summary = self._obs_summary
        if summary is None:
            return False, False, False
        if (summary.obs_type or "").lower() != "science":
            return True, False, False
        if self._header is None:
            return False, False, False
        std = self._header.item("STANDARD")
        if std is not None and std.value not in (None, "", "0", "F", "False", False, 0):
            return False, True, False
        return False, False, True

    def iscal(self) -> bool:
        """Return `True` for a science calibration such as a flux
        standard."""
        return self._cal_flags()[1]

    def is_generic_cal(self) -> bool:
        """Return `True` for a generic calibration such as pointing or
        focus."""
        return self._cal_flags()[0]

    def is_science_obs(self) -> bool:
        """Return `True` for a science observation that is not a
        calibration."""
        return self._cal_flags()[2]

    def qsummary(self) -> str:
        """Return a one line summary of the target, instrument and mode."""
        target = "NONE"
        if self._tcs is not None:
            coords = self._tcs.get_target()
            name = coords.name if coords is not None else None
            target = (name or "").rstrip() or "EMPTY"
        obsmode = self.obsmode.replace("_", " ")
        return f"{target:<10s} {self.instrument:<7s} {obsmode}"

    def header_exclusions(self, file: ResourcePathExpression) -> list[str]:
        """Apply a header exclusion file to the header configuration.

        Parameters
        ----------
        file : `str` or `lsst.resources.ResourcePathExpression`
            The exclusion file. A missing file excludes nothing.

        Returns
        -------
        excluded : `list` of `str`
            The keywords that were excluded.
        """
        excluded = read_header_exclusion_file(file)
        if self._header is not None and excluded:
            self._header.remove_excluded_headers(excluded)
        return excluded

    def to_xml(self, indent: bool = True, configs: Iterable[str] | None = None) -> str:
        """Render the configuration as an XML document.

        Parameters
        ----------
        indent : `bool`, optional
            If `True` the result is re-indented for readability.
        configs : iterable of `str`, optional
            Names of the components to include. Components required by
            the selected components are added automatically. If `None`
            every component is included.

        Returns
        -------
        xml : `str`
            The XML document.

        Raises
        ------
        FatalError
            Raised if an unknown component name is requested.

        Notes
        -----
        If the JOS has no tasks, it is given the tasks derived from this
        configuration.
        """
        self._sync_cont_status()
        if self._jos is not None and not self._jos.tasks:
            self._jos.tasks = self.tasks()

        selected = set(CONFIGS)
        if configs is not None:
            selected = set()
            for name in configs:
                if name not in CONFIGS:
                    raise FatalError(f"Supplied configuration '{name}' is not supported")
                selected.add(name)
                component = getattr(self, name)
                if isinstance(component, HasDtdRequires):
                    selected.update(component.dtdrequires())

        xml = XML_PROLOG
        xml += f"<{self.get_root_element_name()}>\n"
        comment = (
            f"Rendered as XML on {Time.now().utc.isot} UT using jac_ocs_config\n"
            f"{type(self).__name__} version {__version__} Python version {platform.python_version()}\n"
        )
        if self.comment:
            comment = f"{self.comment}\n{comment}"
        xml += f"  <!-- \n{comment}\n -->\n"

        for name in CONFIGS:
            component = getattr(self, name)
            if name in selected and component is not None:
                xml += component.to_xml(indent=False)
        xml += f"</{self.get_root_element_name()}>\n"
        return indent_xml_string(xml) if indent else xml

    def stripped_for_iftask(self) -> Config:
        """Return a configuration holding only what the IF task reads.

        The result has the instrument setup and an ACSIS configuration
        holding just the IF and correlator mapping sections.
        """
        cfg = Config(telescope=self.telescope, hw_map=self.hw_map, comment=self.comment)
        cfg.instrument_setup = self._instrument_setup
        if self._acsis is not None:
            cfg.acsis = self._acsis.stripped()
        return cfg

    def write_file(
        self,
        directory: ResourcePathExpression | None = None,
        settings: OutputSettings | None = None,
        chmod: int | None = None,
    ) -> ResourcePath:
        """Write the configuration to disk.

        Parameters
        ----------
        directory : `str` or `lsst.resources.ResourcePathExpression`, optional
            Output directory. Defaults to the directory given in the
            settings.
        settings : `~jac_ocs_config.settings.OutputSettings`, optional
            Output settings. Defaults to the process-wide settings.
        chmod : `int`, optional
            Permissions to apply to each written file.

        Returns
        -------
        path : `lsst.resources.ResourcePath`
            The file written to the output directory itself. Copies are
            also written to any subdirectory named after a task.
        """
        return write_config(self, directory=directory, settings=settings, chmod=chmod)

    def _process_dom(self, el: ET.Element) -> None:
        self.obs_summary = ObsSummary.find_in(el)
        self.jos = JOS.find_in(el)
        self.header = Header.find_in(el)
        self.tcs = TCS.find_in(el, telescope=self.telescope)
        self.acsis = ACSIS.find_in(el, hw_map=self.hw_map)
        self.instrument_setup = Instrument.find_in(el)
        self.frontend = Frontend.find_in(el)
        self.rts = RTS.find_in(el)
        self.pol = POL.find_in(el)
        self.scuba2 = SCUBA2.find_in(el)
        self._sync_cont_status()

    def _to_xml(self) -> str:
        return self.to_xml(indent=False)


def _check_type(value: Any, cls: type) -> Any:
    if value is not None and not isinstance(value, cls):
        raise FatalError(f"Supplied object must be of type {cls.__name__} not {type(value).__name__}")
    return value
