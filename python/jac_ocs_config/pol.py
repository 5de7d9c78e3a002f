# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Polarimeter configuration."""

from __future__ import annotations

__all__ = ("POL",)

import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence

import astropy.units as u
from astropy.coordinates import Angle

from .cfgbase import ConfigBase, HasTasks
from .errors import XMLBadStructure
from .xmlhelper import find_attr, find_children, get_this_pcdata

log = logging.getLogger(__name__)


class POL(ConfigBase, HasTasks):
    """Polarimeter waveplate configuration.

    The waveplate either spins continuously at a given speed or steps
    through a list of position angles. Whether the backend is a continuum
    instrument is not part of the polarimeter definition; it is pushed in
    by the root configuration.
    """

    root_element_names = ("POL_CONFIG",)

    def __init__(self, is_cont: bool | None = None):
        self.is_cont = is_cont
        self.spin_speed: float | None = None
        self.pos_ang: list[Angle] = []

    def tasks(self) -> list[str]:
        return ["POL"]

    def mode(self) -> str:
        """Return ``spin``, ``step`` or an empty string."""
        if self.spin_speed is not None:
            return "spin"
        if self.pos_ang:
            return "step"
        return ""

    def set_spin(self, speed: float) -> None:
        """Spin the waveplate at the given speed in degrees per second."""
        self.spin_speed = float(speed)
        self.pos_ang = []

    def set_steps(self, angles: Sequence[Angle]) -> None:
        """Step the waveplate through the given angles."""
        self.pos_ang = list(angles)
        self.spin_speed = None

    def _process_dom(self, el: ET.Element) -> None:
        cont = el.attrib.get("CONTINUUM")
        if cont is not None and self.is_cont is None:
            self.is_cont = cont.strip() not in ("0", "")
        spin = find_children(el, "SPIN", max=1)
        if spin:
            speed = find_attr(spin[0], "SPEED").get("SPEED")
            if speed is None:
                raise XMLBadStructure("SPIN element requires a SPEED")
            self.set_spin(float(speed))
            return
        step = find_children(el, "STEP_INTEGRATE", max=1)
        if step:
            angles = []
            for pa in find_children(step[0], "POS_ANG", min=1):
                value = get_this_pcdata(pa)
                if value is None:
                    raise XMLBadStructure("POS_ANG element has no content")
                angles.append(Angle(float(value), unit=u.deg))
            self.set_steps(angles)

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}"
        if self.is_cont is not None:
            xml += f' CONTINUUM="{int(self.is_cont)}"'
        xml += ">\n"
        xml += self._introductory_xml()
        mode = self.mode()
        if mode == "spin":
            xml += f'<SPIN SPEED="{self.spin_speed}" />\n'
        elif mode == "step":
            xml += "<STEP_INTEGRATE>\n"
            for pa in self.pos_ang:
                xml += f"<POS_ANG>{float(pa.degree)}</POS_ANG>\n"
            xml += "</STEP_INTEGRATE>\n"
        else:
            log.warning("Polarimeter has neither spin nor step configuration")
        xml += f"</{root}>\n"
        return xml
