# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Instrument setup configuration."""

from __future__ import annotations

__all__ = ("Instrument", "Receptor", "POINTING_MODEL")

import logging
import math
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass, field

import astropy.units as u
from astropy.coordinates import Angle

from .cfgbase import ConfigBase
from .errors import FatalError
from .tcs.generic import Offset
from .xmlhelper import find_attr, find_children, get_pcdata, xml_attr, xml_escape

log = logging.getLogger(__name__)

POINTING_MODEL = ("CA", "IE")
"""Pointing model terms that an instrument can override."""


@dataclass
class Receptor:
    """A single receptor (pixel) of an instrument.

    Positions are focal plane offsets in arcsec.
    """

    health: str = "ON"
    xypos: tuple[float, float] = (0.0, 0.0)
    pol_type: str | None = None
    refpix: str | None = None
    sensitivity: float = 1.0
    angle: Angle = field(default_factory=lambda: Angle(0.0, unit=u.rad))
    band: str | None = None

    @property
    def is_working(self) -> bool:
        """Whether the receptor is usable."""
        return self.health != "OFF"


class Instrument(ConfigBase):
    """Instrument setup: name, location in the focal plane and receptors.

    Parameters
    ----------
    name : `str`, optional
        Generic name of the instrument, for example ``HARP``.
    serial : `str`, optional
        Serial name of the instrument.
    """

    root_element_names = ("INSTRUMENT",)

    def __init__(self, name: str | None = None, serial: str | None = None):
        self.name = name
        self.serial = serial
        self._focal_station: str | None = None
        self.position: tuple[float, float] = (0.0, 0.0)
        self.wavelength: float | None = None
        self.if_center_freq: float | None = None
        self.bandwidth: float | None = None
        self.smu_offset: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._pointing: dict[str, float] = {}
        self.receptors: dict[str, Receptor] = {}

    @property
    def focal_station(self) -> str | None:
        """Location of the instrument: DIRECT, NASMYTH_L or NASMYTH_R."""
        return self._focal_station

    @focal_station.setter
    def focal_station(self, value: str | None) -> None:
        self._focal_station = value.upper() if value is not None else None

    def pointing(self) -> dict[str, float]:
        """Return the pointing model offsets in arcsec."""
        return dict(self._pointing)

    def set_pointing(self, offsets: Mapping[str, float]) -> None:
        """Set pointing model offsets. Unrecognized terms are dropped."""
        self._pointing = {k: float(v) for k, v in offsets.items() if k in POINTING_MODEL}

    def receptor(self, receptor_id: str) -> Receptor | None:
        """Return the named receptor, or `None` if it does not exist."""
        return self.receptors.get(receptor_id)

    def receptor_ids(self) -> list[str]:
        """Return the IDs of all receptors."""
        return list(self.receptors)

    def working_receptor_ids(self) -> list[str]:
        """Return the IDs of the receptors that are not switched off."""
        return [r for r, rec in self.receptors.items() if rec.is_working]

    def contains_id(self, receptor_id: str) -> bool:
        """Return `True` if the receptor exists on this instrument."""
        return receptor_id.upper() in self.receptors

    def receptor_offset(self, receptor_id: str) -> Offset:
        """Return the focal plane position of a receptor.

        Raises
        ------
        FatalError
            Raised if the receptor does not exist.
        """
        rec = self.receptors.get(receptor_id.upper())
        if rec is None:
            raise FatalError(
                f"Supplied receptor '{receptor_id}' does not exist in this instrument configuration"
            )
        return Offset.from_arcsec(*rec.xypos, system="FPLANE")

    def receptor_offsets(self, *receptor_ids: str) -> list[Offset]:
        """Return the focal plane positions of the working receptors.

        Parameters
        ----------
        *receptor_ids : `str`
            If given, only these receptors are considered.
        """
        ids = receptor_ids if receptor_ids else tuple(self.receptors)
        return [
            Offset.from_arcsec(*self.receptors[r].xypos, system="FPLANE")
            for r in ids
            if r in self.receptors and self.receptors[r].is_working
        ]

    def footprint_radius(self) -> tuple[Angle, Angle, Angle]:
        """Return the centre and radius of a circle enclosing every working
        receptor.

        Returns
        -------
        xcen, ycen, radius : `astropy.coordinates.Angle`
            Centre of the footprint and its radius.
        """
        positions = [o.arcsec() for o in self.receptor_offsets()]
        if not positions:
            raise FatalError("No working receptors available to calculate a footprint")
        xs = [p[0] for p in positions]
        ys = [p[1] for p in positions]
        xcen = (max(xs) + min(xs)) / 2
        ycen = (max(ys) + min(ys)) / 2
        radius = math.hypot(max(xs) - xcen, max(ys) - ycen)
        return tuple(Angle(v, unit=u.arcsec) for v in (xcen, ycen, radius))  # type: ignore[return-value]

    def reference_receptors(self) -> list[str]:
        """Return the reference receptors used by the working receptors.

        Some instruments have several bands and so several references.
        """
        refs: list[str] = []
        for r in self.working_receptor_ids():
            ref = self.receptors[r].refpix
            if ref is not None and ref not in refs:
                refs.append(ref)
        return refs

    def reference_receptor(self) -> str | None:
        """Return a reference receptor, or `None` if there is none."""
        refs = self.reference_receptors()
        return refs[0] if refs else None

    def _process_dom(self, el: ET.Element) -> None:
        attr = find_attr(el, "NAME", "SERIAL", "FOC_STATION", "X", "Y", "WAVELENGTH")
        self.name = attr.get("NAME")
        self.serial = attr.get("SERIAL")
        self.focal_station = attr.get("FOC_STATION")
        self.position = (float(attr.get("X", 0.0)), float(attr.get("Y", 0.0)))
        self.wavelength = float(attr["WAVELENGTH"]) if "WAVELENGTH" in attr else None

        if_freq = get_pcdata(el, "IF_CENTER_FREQ")
        self.if_center_freq = float(if_freq) if if_freq is not None else None

        bw = find_attr(find_children(el, "bw", min=1, max=1)[0], "units", "value")
        mult = 1.0
        if "units" in bw:
            try:
                mult = u.Unit(bw["units"]).to(u.Hz)
            except (ValueError, u.UnitConversionError):
                log.warning("Unable to parse units '%s' in Instrument", bw["units"])
        self.bandwidth = float(bw["value"]) * mult

        smu = find_attr(find_children(el, "smu_offset", min=1, max=1)[0], "X", "Y", "Z")
        self.smu_offset = (float(smu.get("X", 0.0)), float(smu.get("Y", 0.0)), float(smu.get("Z", 0.0)))

        pointing = find_children(el, "pointing_offset", max=1)
        if pointing:
            self.set_pointing({k: float(v) for k, v in find_attr(pointing[0], *POINTING_MODEL).items()})

        receptors = {}
        for r in find_children(el, "receptor", min=1):
            rattr = find_attr(r, "id", "health", "x", "y", "pol_type", "band")
            sens = find_attr(find_children(r, "sensitivity", min=1, max=1)[0], "reference", "value")
            ang = find_attr(find_children(r, "angle", min=1, max=1)[0], "units", "value")
            receptors[rattr["id"]] = Receptor(
                health=rattr.get("health", "ON"),
                xypos=(float(rattr.get("x", 0.0)), float(rattr.get("y", 0.0))),
                pol_type=rattr.get("pol_type"),
                refpix=sens.get("reference"),
                sensitivity=float(sens.get("value", 1.0)),
                angle=Angle(float(ang.get("value", 0.0)), unit=ang.get("units", "rad")),
                band=rattr.get("band"),
            )
        self.receptors = receptors

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root} NAME={xml_attr(self.name or '')}\n"
        if self.serial:
            xml += f"            SERIAL={xml_attr(self.serial)}\n"
        if self._focal_station is not None:
            xml += f"            FOC_STATION={xml_attr(self._focal_station)}\n"
        xml += f'            X="{self.position[0]}"\n'
        xml += f'            Y="{self.position[1]}"\n'
        if self.wavelength is not None:
            xml += f'            WAVELENGTH="{self.wavelength}"\n'
        xml += ">\n"
        xml += self._introductory_xml()
        if self.if_center_freq is not None:
            xml += f"<IF_CENTER_FREQ>{xml_escape(self.if_center_freq)}</IF_CENTER_FREQ>\n"
        bw_mhz = (self.bandwidth or 0.0) * u.Hz.to(u.MHz)
        xml += f'<bw units="MHz" value="{bw_mhz}" />\n'
        x, y, z = self.smu_offset
        xml += f'<smu_offset X="{x}" Y="{y}" Z="{z}" />\n'
        if self._pointing:
            terms = " ".join(f'{p}="{self._pointing.get(p, 0.0)}"' for p in POINTING_MODEL)
            xml += f"<pointing_offset {terms} />\n"

        for rid, rec in self.receptors.items():
            if rec.refpix is None or rec.refpix not in self.receptors:
                raise FatalError(f"Reference pixel ({rec.refpix}) is not available to this instrument configuration")
            xml += f"<receptor id={xml_attr(rid)}\n"
            xml += f"          health={xml_attr(rec.health)}\n"
            xml += f'          x="{rec.xypos[0]}"\n'
            xml += f'          y="{rec.xypos[1]}"\n'
            if rec.band is not None:
                xml += f"          band={xml_attr(rec.band)}\n"
            xml += f"          pol_type={xml_attr(rec.pol_type or '')} >\n"
            xml += f"<sensitivity reference={xml_attr(rec.refpix)}\n"
            xml += f'             value="{rec.sensitivity}" />\n'
            xml += f'<angle units="rad" value="{rec.angle.radian}" />\n'
            xml += "</receptor>\n"
        xml += f"</{root}>\n"
        return xml
