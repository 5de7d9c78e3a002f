# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""ACSIS correlator configuration.

The correlator task associated with each correlator module (CM) is not part
of the configuration and must be supplied as a `HardwareMap`, usually read
from a YAML file of the form::

    modules:
      - cm_id: 0
        dcm_id: 0
        corr_task: 1
        quadrant: 1
"""

from __future__ import annotations

__all__ = ("ACSIS", "ACSISCorr", "ACSISIF", "ACSISMap", "CMMapEntry", "HardwareMap", "MAX_CORRELATOR_MODULES")

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml
from lsst.resources import ResourcePath

from .cfgbase import ConfigBase, HasDtdRequires, HasTasks, RequiresFullConfig
from .errors import ConfigIOError, FatalError, XMLBadStructure
from .xmlhelper import find_attr, find_children, get_pcdata, xml_attr

if TYPE_CHECKING:
    from lsst.resources import ResourcePathExpression

log = logging.getLogger(__name__)

MAX_CORRELATOR_MODULES = 32
"""Number of correlator modules available."""


class HardwareMap:
    """Mapping from correlator module to the hardware that drives it.

    Parameters
    ----------
    modules : iterable of `dict`
        One entry per correlator module. Each entry must contain
        ``cm_id`` and ``corr_task`` and may contain other items such as
        ``dcm_id`` or ``quadrant``.
    """

    def __init__(self, modules: Iterable[Mapping[str, Any]]):
        self._modules: dict[int, dict[str, Any]] = {}
        for m in modules:
            if "cm_id" not in m or "corr_task" not in m:
                raise FatalError(f"Hardware map entry {m} must define cm_id and corr_task")
            self._modules[int(m["cm_id"])] = dict(m)

    @classmethod
    def from_yaml(cls, file: ResourcePathExpression) -> HardwareMap:
        """Read a hardware map from a YAML file.

        Raises
        ------
        ConfigIOError
            Raised if the file can not be read.
        """
        uri = ResourcePath(file, forceDirectory=False)
        try:
            content = yaml.safe_load(uri.read())
        except FileNotFoundError as e:
            raise ConfigIOError(f"Could not open hardware map '{uri}': {e}") from e
        if not isinstance(content, Mapping) or "modules" not in content:
            raise FatalError(f"Hardware map file {uri} does not contain a modules list")
        log.debug("Read hardware map for %d modules from %s", len(content["modules"]), uri)
        return cls(content["modules"])

    def __len__(self) -> int:
        return len(self._modules)

    def by_cm_id(self, key: str, *cm_ids: int) -> list[Any]:
        """Return the requested property of each correlator module.

        Unknown modules are skipped.
        """
        return [self._modules[c][key] for c in cm_ids if c in self._modules and key in self._modules[c]]

    def corr_tasks(self, cm_ids: Iterable[int]) -> list[int]:
        """Return the sorted unique correlator task numbers driving the
        given modules."""
        return sorted({int(t) for t in self.by_cm_id("corr_task", *cm_ids)})


@dataclass
class CMMapEntry:
    """Routing of a single correlator module."""

    cm_id: int
    dcm_id: int
    receptor: str
    spw_id: str


class ACSISMap(ConfigBase, HasTasks):
    """Correlator module to receptor and spectral window mapping.

    Parameters
    ----------
    cm_map : iterable of `CMMapEntry`, optional
        The module mapping.
    hw_map : `HardwareMap`, optional
        Hardware map used to determine the correlator tasks.
    """

    root_element_names = ("ACSIS_map",)

    def __init__(self, cm_map: Iterable[CMMapEntry] = (), hw_map: HardwareMap | None = None):
        self.cm_map = list(cm_map)
        self.hw_map = hw_map

    def tasks(self) -> list[str]:
        """Return the correlator tasks configured by this mapping.

        Raises
        ------
        FatalError
            Raised if no hardware map is available.
        """
        if self.hw_map is None:
            raise FatalError("Can not determine task list without a hardware mapping")
        return [f"CORRTASK{t}" for t in self.hw_map.corr_tasks(e.cm_id for e in self.cm_map)]

    def _process_dom(self, el: ET.Element) -> None:
        entries = []
        for m in find_children(el, "map_id", min=1):
            attr = find_attr(m, "cm_id", "dcm_id", "receptor_id", "spw_id")
            if len(attr) != 4:
                raise XMLBadStructure("map_id element must define cm_id, dcm_id, receptor_id and spw_id")
            entries.append(
                CMMapEntry(
                    cm_id=int(attr["cm_id"]),
                    dcm_id=int(attr["dcm_id"]),
                    receptor=attr["receptor_id"],
                    spw_id=attr["spw_id"],
                )
            )
        self.cm_map = entries

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        for e in self.cm_map:
            xml += (
                f'<map_id cm_id="{e.cm_id}" dcm_id="{e.dcm_id}"'
                f" receptor_id={xml_attr(e.receptor)} spw_id={xml_attr(e.spw_id)} />\n"
            )
        xml += f"</{root}>\n"
        return xml


class ACSISCorr(ConfigBase):
    """Bandwidth mode of each correlator module."""

    root_element_names = ("ACSIS_corr",)

    def __init__(self, bw_modes: Mapping[int, str] | None = None):
        self._bw_modes: dict[int, str] = {}
        if bw_modes:
            self.bw_modes = bw_modes

    @property
    def bw_modes(self) -> dict[int, str]:
        """Bandwidth modes indexed by correlator module ID."""
        return dict(self._bw_modes)

    @bw_modes.setter
    def bw_modes(self, modes: Mapping[int, str]) -> None:
        if len(modes) > MAX_CORRELATOR_MODULES:
            log.warning("More than %d bandwidth modes specified!", MAX_CORRELATOR_MODULES)
        self._bw_modes = {int(k): v for k, v in modes.items()}

    def _process_dom(self, el: ET.Element) -> None:
        modes = {}
        for cm in find_children(el, "cm", min=1, max=MAX_CORRELATOR_MODULES):
            attr = find_attr(cm, "id", "bw_mode")
            modes[int(attr["id"])] = attr["bw_mode"]
        self.bw_modes = modes

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        for cm_id in sorted(self._bw_modes):
            xml += f'<cm id="{cm_id}" bw_mode={xml_attr(self._bw_modes[cm_id])} />\n'
        xml += '<rts_parms int_interval="50" timing_src="RTS_SOFT" />\n'
        xml += f"</{root}>\n"
        return xml


class ACSISIF(ConfigBase):
    """IF configuration: second and third local oscillator frequencies
    in Hz."""

    root_element_names = ("ACSIS_IF",)

    def __init__(self, lo2: Mapping[int, float] | None = None, lo3: float | None = None):
        self.lo2 = dict(lo2) if lo2 else {}
        self.lo3 = lo3

    def _process_dom(self, el: ET.Element) -> None:
        self.lo2 = {}
        for lo in find_children(el, "lo2"):
            attr = find_attr(lo, "id", "freq")
            if len(attr) != 2:
                raise XMLBadStructure("lo2 element must define id and freq")
            self.lo2[int(attr["id"])] = float(attr["freq"])
        lo3 = get_pcdata(el, "lo3_freq")
        self.lo3 = float(lo3) if lo3 is not None else None

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        for lo_id in sorted(self.lo2):
            xml += f'<lo2 id="{lo_id}" freq="{self.lo2[lo_id]}" />\n'
        if self.lo3 is not None:
            xml += f"<lo3_freq>{self.lo3}</lo3_freq>\n"
        xml += f"</{root}>\n"
        return xml


class ACSIS(ConfigBase, HasTasks, HasDtdRequires, RequiresFullConfig):
    """The ACSIS backend configuration.

    Parameters
    ----------
    hw_map : `HardwareMap`, optional
        Hardware map passed to the correlator module mapping.
    """

    root_element_names = ("ACSIS_CONFIG",)

    def __init__(self, hw_map: HardwareMap | None = None):
        self._hw_map = hw_map
        self.corr: ACSISCorr | None = None
        self.if_config: ACSISIF | None = None
        self._map: ACSISMap | None = None

    @property
    def hw_map(self) -> HardwareMap | None:
        """Hardware map used to calculate the correlator tasks."""
        return self._hw_map

    @hw_map.setter
    def hw_map(self, hw_map: HardwareMap | None) -> None:
        self._hw_map = hw_map
        if self._map is not None:
            self._map.hw_map = hw_map

    @property
    def acsis_map(self) -> ACSISMap | None:
        """Correlator module mapping."""
        return self._map

    @acsis_map.setter
    def acsis_map(self, acsis_map: ACSISMap | None) -> None:
        self._map = acsis_map
        if acsis_map is not None and acsis_map.hw_map is None:
            acsis_map.hw_map = self._hw_map

    def tasks(self) -> list[str]:
        tasks = ["IFTASK"]
        if self._map is not None:
            tasks.extend(self._map.tasks())
        tasks.append("SPECWRITER")
        return tasks

    def dtdrequires(self) -> list[str]:
        return ["instrument_setup"]

    def requires_full_config(self) -> list[str]:
        return ["SPECWRITER"]

    def stripped(self) -> ACSIS:
        """Return a copy holding only the IF and mapping sections."""
        acsis = ACSIS(hw_map=self._hw_map)
        acsis.if_config = self.if_config
        acsis.acsis_map = self._map
        return acsis

    def _process_dom(self, el: ET.Element) -> None:
        self.corr = ACSISCorr.find_in(el)
        self.if_config = ACSISIF.find_in(el)
        self.acsis_map = ACSISMap.find_in(el, hw_map=self._hw_map)

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        for section in (self.corr, self.if_config, self._map):
            if section is not None:
                xml += section.to_xml(indent=False)
        xml += f"</{root}>\n"
        return xml
