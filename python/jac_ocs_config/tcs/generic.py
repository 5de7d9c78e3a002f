# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Offset and position angle helpers shared by the TCS components."""

from __future__ import annotations

__all__ = ("Offset", "find_offsets", "offset_to_xml", "find_pa", "pa_to_xml")

import xml.etree.ElementTree as ET
from dataclasses import dataclass

import astropy.units as u
from astropy.coordinates import Angle

from ..errors import XMLBadStructure
from ..xmlhelper import find_attr, find_children, get_pcdata, get_this_pcdata, xml_attr


@dataclass
class Offset:
    """A tangent plane offset.

    Parameters
    ----------
    dc1, dc2 : `astropy.coordinates.Angle`
        Offsets in the two axes.
    system : `str`, optional
        Coordinate system of the offset.
    projection : `str`, optional
        Projection used for the offset.
    """

    dc1: Angle
    dc2: Angle
    system: str = "TRACKING"
    projection: str = "TAN"

    @classmethod
    def from_arcsec(cls, dc1: float, dc2: float, **kwargs) -> Offset:
        """Create an offset from values in arcseconds."""
        return cls(Angle(dc1, unit=u.arcsec), Angle(dc2, unit=u.arcsec), **kwargs)

    def arcsec(self) -> tuple[float, float]:
        """Return the offsets in arcseconds."""
        return float(self.dc1.arcsec), float(self.dc2.arcsec)

    def is_zero(self) -> bool:
        """Return `True` if both offsets are zero."""
        return self.dc1.arcsec == 0.0 and self.dc2.arcsec == 0.0


def find_offsets(el: ET.Element, min: int | None = None, max: int | None = None) -> list[Offset]:
    """Read the ``OFFSET`` children of an element.

    Parameters
    ----------
    el : `xml.etree.ElementTree.Element`
        Parent element.
    min, max : `int`, optional
        Allowed number of offsets.

    Returns
    -------
    offsets : `list` of `Offset`
        Offsets in document order.
    """
    offsets = []
    for o in find_children(el, "OFFSET", min=min, max=max):
        attr = find_attr(o, "SYSTEM", "TYPE")
        dc1 = get_pcdata(o, "DC1")
        dc2 = get_pcdata(o, "DC2")
        if dc1 is None or dc2 is None:
            raise XMLBadStructure("OFFSET element must contain DC1 and DC2")
        offsets.append(
            Offset.from_arcsec(
                float(dc1),
                float(dc2),
                system=attr.get("SYSTEM", "TRACKING"),
                projection=attr.get("TYPE", "TAN"),
            )
        )
    return offsets


def offset_to_xml(offset: Offset) -> str:
    """Convert an offset to XML."""
    dc1, dc2 = offset.arcsec()
    return (
        f"<OFFSET SYSTEM={xml_attr(offset.system)} TYPE={xml_attr(offset.projection)}>\n"
        f"<DC1>{dc1}</DC1>\n"
        f"<DC2>{dc2}</DC2>\n"
        "</OFFSET>\n"
    )


def find_pa(el: ET.Element, min: int | None = None, max: int | None = None) -> list[Angle]:
    """Read the ``PA`` children of an element as angles in degrees."""
    angles = []
    for pa in find_children(el, "PA", min=min, max=max):
        value = get_this_pcdata(pa)
        if value is None:
            raise XMLBadStructure(f"PA element in {el.tag} has no content")
        angles.append(Angle(float(value), unit=u.deg))
    return angles


def pa_to_xml(pa: Angle) -> str:
    """Convert a position angle to XML."""
    return f"<PA>{float(pa.degree)}</PA>\n"
