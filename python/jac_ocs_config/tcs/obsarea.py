# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Observing area: either a scanned map area or a set of offsets."""

from __future__ import annotations

__all__ = ("ObsArea",)

import xml.etree.ElementTree as ET
from collections.abc import Sequence

import astropy.units as u
from astropy.coordinates import Angle

from ..cfgbase import ConfigBase
from ..errors import FatalError, XMLBadStructure
from ..xmlhelper import find_attr, find_child, xml_attr
from .generic import Offset, find_offsets, find_pa, offset_to_xml, pa_to_xml

_SCAN_ATTRS = ("VELOCITY", "DY", "SYSTEM", "TYPE", "PATTERN", "REVERSAL")


class ObsArea(ConfigBase):
    """The area of sky covered by an observation.

    In ``area`` mode the observation scans a rectangular map. In ``offsets``
    mode the telescope visits each offset position in turn.
    """

    root_element_names = ("obsArea",)

    def __init__(self) -> None:
        self.posang = Angle(0.0, unit=u.deg)
        self._maparea: dict[str, float] = {}
        self._scan: dict = {}
        self._offsets: list[Offset] = []

    def mode(self) -> str:
        """Return ``area``, ``offsets`` or an empty string if unset."""
        if self._maparea:
            return "area"
        if self._offsets:
            return "offsets"
        return ""

    def maparea(self) -> dict[str, float]:
        """Return the map HEIGHT and WIDTH in arcsec."""
        return dict(self._maparea)

    def set_maparea(self, height: float, width: float) -> None:
        """Define a map area, switching to area mode."""
        self._maparea = {"HEIGHT": float(height), "WIDTH": float(width)}
        self._offsets = []

    def scan(self) -> dict:
        """Return the scan parameters.

        The mapping contains VELOCITY (arcsec/s), DY (arcsec), optional
        SYSTEM, TYPE, PATTERN and REVERSAL strings and a PA list of
        `~astropy.coordinates.Angle`.
        """
        return dict(self._scan)

    def set_scan(
        self, velocity: float, dy: float, pa: Sequence[Angle] = (), system: str = "TRACKING", **kwargs: str
    ) -> None:
        """Set the scan parameters."""
        self._scan = {"VELOCITY": float(velocity), "DY": float(dy), "SYSTEM": system, "PA": list(pa)}
        for k, v in kwargs.items():
            self._scan[k.upper()] = v

    def offsets(self) -> list[Offset]:
        """Return the offset positions."""
        return list(self._offsets)

    def set_offsets(self, offsets: Sequence[Offset]) -> None:
        """Define the offsets, switching to offsets mode."""
        self._offsets = list(offsets)
        self._maparea = {}
        self._scan = {}

    def _process_dom(self, el: ET.Element) -> None:
        pas = find_pa(el, max=1)
        if pas:
            self.posang = pas[0]

        self._offsets = find_offsets(el)

        scan_area = find_child(el, "SCAN_AREA")
        if scan_area is not None:
            area = find_child(scan_area, "AREA", required=True)
            scan = find_child(scan_area, "SCAN", required=True)
            assert area is not None and scan is not None
            dims = find_attr(area, "HEIGHT", "WIDTH")
            if len(dims) != 2:
                raise XMLBadStructure("AREA element must have HEIGHT and WIDTH")
            self._maparea = {k: float(v) for k, v in dims.items()}

            attr = find_attr(scan, *_SCAN_ATTRS)
            if "VELOCITY" not in attr or "DY" not in attr:
                raise XMLBadStructure("SCAN element must have VELOCITY and DY")
            self._scan = dict(attr)
            self._scan["VELOCITY"] = float(attr["VELOCITY"])
            self._scan["DY"] = float(attr["DY"])
            self._scan["PA"] = find_pa(scan)

    def _to_xml(self) -> str:
        mode = self.mode()
        xml = "<obsArea>\n"
        xml += self._introductory_xml()
        xml += pa_to_xml(self.posang)
        if mode == "offsets":
            for o in self._offsets:
                xml += offset_to_xml(o)
        elif mode == "area":
            if not self._scan:
                raise FatalError("Map area is defined but no scan parameters are present")
            xml += "<SCAN_AREA>\n"
            xml += f"<AREA HEIGHT=\"{self._maparea['HEIGHT']}\" WIDTH=\"{self._maparea['WIDTH']}\" />\n"
            xml += "<SCAN"
            for k in _SCAN_ATTRS:
                if self._scan.get(k) is not None:
                    xml += f" {k}={xml_attr(self._scan[k])}"
            xml += " >\n"
            for pa in self._scan.get("PA", []):
                xml += pa_to_xml(pa)
            xml += "</SCAN>\n"
            xml += "</SCAN_AREA>\n"
        xml += "</obsArea>\n"
        return xml
