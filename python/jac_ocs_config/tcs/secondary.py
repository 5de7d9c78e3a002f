# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Secondary mirror (SMU) configuration."""

from __future__ import annotations

__all__ = ("Jiggle", "Secondary")

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import astropy.units as u
from astropy.coordinates import Angle

from ..cfgbase import ConfigBase, HasTasks
from ..errors import FatalError, XMLBadStructure
from ..xmlhelper import find_attr, find_child, find_children, get_pcdata, get_this_pcdata, xml_attr
from .generic import find_pa, pa_to_xml

log = logging.getLogger(__name__)

# Number of points in named jiggle patterns that do not follow the
# NxM naming scheme.
KNOWN_JIGGLE_PATTERNS = {
    "HARP4": 16,
    "HARP4_MC": 16,
    "HARP5": 25,
    "HARP5_MC": 25,
    "SPARSE_CELL": 25,
    "SPARSE_CELL_16": 16,
}


@dataclass
class Jiggle:
    """A jiggle pattern.

    Parameters
    ----------
    name : `str`
        Name of the pattern, for example ``5x5`` or ``HARP4``.
    system : `str`
        Coordinate system of the pattern.
    scale : `float`
        Scale factor in arcsec.
    posang : `astropy.coordinates.Angle`
        Position angle of the pattern.
    pattern : `list` of `tuple`, optional
        Explicit pattern offsets. If given this defines the number of
        points.
    """

    name: str
    system: str = "TRACKING"
    scale: float = 1.0
    posang: Angle = field(default_factory=lambda: Angle(0.0, unit=u.deg))
    pattern: list[tuple[float, float]] | None = None

    def npts(self) -> int:
        """Return the number of points in the pattern.

        Raises
        ------
        FatalError
            Raised if the size of the pattern can not be determined.
        """
        if self.pattern:
            return len(self.pattern)
        upper = self.name.upper()
        if upper in KNOWN_JIGGLE_PATTERNS:
            return KNOWN_JIGGLE_PATTERNS[upper]
        match = re.search(r"(\d+)X(\d+)", upper)
        if match:
            return int(match.group(1)) * int(match.group(2))
        raise FatalError(f"Unable to determine number of points in jiggle pattern {self.name}")


class Secondary(ConfigBase, HasTasks):
    """Secondary mirror chop and jiggle configuration.

    The operating mode is derived from which of the chop, jiggle and timing
    parameters have been set.
    """

    root_element_names = ("SECONDARY",)

    def __init__(self) -> None:
        self.motion: str | None = None
        self.jiggle: Jiggle | None = None
        self._chop: dict = {}
        self._timing: dict = {}

    def tasks(self) -> list[str]:
        return ["SMU"]

    def chop(self) -> dict:
        """Return the chop parameters (SYSTEM, THROW in arcsec, and PA)."""
        return dict(self._chop)

    def set_chop(self, system: str | None = None, throw: float | None = None, pa: Angle | None = None) -> None:
        """Set the chop parameters.

        Calling with no parameters removes chopping.
        """
        if system is None and throw is None and pa is None:
            self.clear_chop()
            return
        self._chop = {"SYSTEM": system, "THROW": throw, "PA": pa}

    def clear_chop(self) -> None:
        """Remove chopping."""
        self._chop = {}

    def timing(self) -> dict:
        """Return the combined chop/jiggle timing parameters."""
        return dict(self._timing)

    def set_timing(
        self, chops_per_jig: int | None = None, n_jigs_on: int | None = None, n_cyc_off: int | None = None
    ) -> None:
        """Set timing parameters for simultaneous chopping and jiggling.

        Parameters
        ----------
        chops_per_jig : `int`, optional
            Number of chops per jiggle position. A positive value implies
            chop_jiggle mode.
        n_jigs_on : `int`, optional
            Number of jiggle positions per chop on.
        n_cyc_off : `int`, optional
            Number of cycles spent in the off beam.
        """
        self._timing = {"CHOPS_PER_JIG": chops_per_jig, "N_JIGS_ON": n_jigs_on, "N_CYC_OFF": n_cyc_off}

    def smu_mode(self) -> str:
        """Return the mode implemented by the secondary.

        Returns
        -------
        mode : `str`
            One of ``none``, ``chop``, ``jiggle``, ``jiggle_chop`` or
            ``chop_jiggle``.
        """
        if self._chop and self.jiggle is not None:
            cpj = self._timing.get("CHOPS_PER_JIG")
            if cpj is not None and cpj > 0:
                return "chop_jiggle"
            return "jiggle_chop"
        elif self._chop:
            return "chop"
        elif self.jiggle is not None:
            return "jiggle"
        return "none"

    def _process_dom(self, el: ET.Element) -> None:
        self.motion = el.attrib.get("MOTION") or None

        jchop = find_child(el, "JIGGLE_CHOP")
        if jchop is not None:
            self._chop = _find_chop(jchop, min=1, max=1)[0]
            self.jiggle = _find_jiggle(jchop, min=1, max=1)[0]

            timing_el = find_child(jchop, "TIMING", required=True)
            assert timing_el is not None
            cpj = find_child(timing_el, "CHOPS_PER_JIG")
            jpc = find_child(timing_el, "JIGS_PER_CHOP")
            if cpj is not None:
                value = get_this_pcdata(cpj)
                if value is None:
                    raise XMLBadStructure("Timing indicates CHOPS_PER_JIG but no content available")
                self.set_timing(chops_per_jig=int(value))
            elif jpc is not None:
                attr = find_attr(jpc, "N_JIGS_ON", "N_CYC_OFF")
                self.set_timing(
                    n_jigs_on=int(attr["N_JIGS_ON"]) if "N_JIGS_ON" in attr else None,
                    n_cyc_off=int(attr["N_CYC_OFF"]) if "N_CYC_OFF" in attr else None,
                )
            else:
                raise XMLBadStructure("JIGGLE_CHOP must have either CHOPS_PER_JIG or JIGS_PER_CHOP defined")

        if self.jiggle is None:
            jiggles = _find_jiggle(el, min=0, max=1)
            if jiggles:
                self.jiggle = jiggles[0]
        if not self._chop:
            chops = _find_chop(el, min=0, max=1)
            if chops:
                self._chop = chops[0]

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}"
        if self.motion is not None:
            xml += f" MOTION={xml_attr(self.motion)}"
        xml += ">\n"
        xml += self._introductory_xml()

        mode = self.smu_mode()
        combined = mode in ("jiggle_chop", "chop_jiggle")
        if combined:
            xml += "<JIGGLE_CHOP>\n"
        if mode in ("jiggle", "jiggle_chop", "chop_jiggle"):
            j = self.jiggle
            if j is None:
                raise FatalError(f"We have a jiggle configuration ({mode}) but no jiggle information")
            xml += f"<JIGGLE NAME={xml_attr(j.name)}\n"
            xml += f"        SYSTEM={xml_attr(j.system)}\n"
            xml += f"        SCALE={xml_attr(j.scale)}\n"
            xml += ">\n"
            xml += pa_to_xml(j.posang)
            xml += "</JIGGLE>\n"
        if mode in ("chop", "jiggle_chop", "chop_jiggle"):
            c = self._chop
            xml += f"<CHOP SYSTEM={xml_attr(c.get('SYSTEM'))} >\n"
            xml += f"<THROW>{c.get('THROW')}</THROW>\n"
            pa = c.get("PA")
            xml += pa_to_xml(pa if pa is not None else Angle(0.0, unit=u.deg))
            xml += "</CHOP>\n"
        if combined:
            t = self._timing
            xml += "<TIMING>\n"
            if t.get("CHOPS_PER_JIG") is not None:
                xml += f"<CHOPS_PER_JIG>{t['CHOPS_PER_JIG']}</CHOPS_PER_JIG>\n"
            elif t.get("N_JIGS_ON") is not None and t.get("N_CYC_OFF") is not None:
                xml += f"<JIGS_PER_CHOP N_JIGS_ON=\"{t['N_JIGS_ON']}\"\n"
                xml += f"               N_CYC_OFF=\"{t['N_CYC_OFF']}\" />\n"
            else:
                log.warning("No timing information for SMU")
            xml += "</TIMING>\n"
            xml += "</JIGGLE_CHOP>\n"
        xml += f"</{root}>\n"
        return xml


def _find_chop(el: ET.Element, min: int | None = None, max: int | None = None) -> list[dict]:
    chops = []
    for c in find_children(el, "CHOP", min=min, max=max):
        throw = get_pcdata(c, "THROW")
        chops.append(
            {
                "THROW": float(throw) if throw is not None else None,
                "SYSTEM": find_attr(c, "SYSTEM").get("SYSTEM"),
                "PA": find_pa(c, min=1, max=1)[0],
            }
        )
    return chops


def _find_jiggle(el: ET.Element, min: int | None = None, max: int | None = None) -> list[Jiggle]:
    jiggles = []
    for j in find_children(el, "JIGGLE", min=min, max=max):
        attr = find_attr(j, "SYSTEM", "SCALE", "NAME")
        jiggles.append(
            Jiggle(
                name=attr.get("NAME", ""),
                system=attr.get("SYSTEM", "TRACKING"),
                scale=float(attr.get("SCALE", 1.0)),
                posang=find_pa(j, min=1, max=1)[0],
            )
        )
    return jiggles
