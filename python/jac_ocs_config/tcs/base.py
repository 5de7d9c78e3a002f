# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""A single tagged telescope position."""

from __future__ import annotations

__all__ = ("TargetBase",)

import xml.etree.ElementTree as ET

from ..cfgbase import ConfigBase
from ..coords import CoordinateValue, decode_coords, encode_coords, native_tracking_system
from ..errors import FatalError, XMLBadStructure
from ..xmlhelper import find_attr, find_child, xml_attr
from .generic import Offset, find_offsets, offset_to_xml


class TargetBase(ConfigBase):
    """A named telescope position (``BASE`` element).

    Parameters
    ----------
    tag : `str`, optional
        Role of this position, for example SCIENCE or REFERENCE.
    coords : `FixedCoords`, `OrbitalElements` or `NamedBody`, optional
        The coordinates.
    offset : `Offset`, optional
        Offset from the coordinates.
    tracking_system : `str`, optional
        Coordinate system to use for tracking. The special value
        ``TRACKING`` means the native system of the coordinates.
    telescope : `str`, optional
        Telescope name, required to decode HADEC coordinates.
    """

    root_element_names = ("BASE", "base")

    def __init__(
        self,
        tag: str | None = None,
        coords: CoordinateValue | None = None,
        offset: Offset | None = None,
        tracking_system: str | None = None,
        telescope: str | None = None,
    ):
        self._tag: str | None = None
        self.tag = tag
        self.coords = coords
        self.offset = offset
        self.tracking_system = tracking_system
        self.telescope = telescope

    @property
    def tag(self) -> str | None:
        """Role of this position (always upper case)."""
        return self._tag

    @tag.setter
    def tag(self, value: str | None) -> None:
        self._tag = value.upper() if value is not None else None

    @classmethod
    def from_coord(cls, coords: CoordinateValue | TargetBase, tag: str = "SCIENCE") -> TargetBase:
        """Wrap a coordinate value in a `TargetBase`.

        Parameters
        ----------
        coords : `TargetBase` or coordinate value
            If already a `TargetBase` it is returned unchanged.
        tag : `str`, optional
            Tag to use for a new position.

        Returns
        -------
        base : `TargetBase`
            The tagged position with a ``TRACKING`` tracking system.
        """
        if isinstance(coords, TargetBase):
            return coords
        return cls(tag=tag, coords=coords, tracking_system="TRACKING", telescope=coords.telescope)

    def _process_dom(self, el: ET.Element) -> None:
        if el.tag == "BASE":
            self.tag = find_attr(el, "TYPE").get("TYPE")
            target = find_child(el, "target", required=True)
        else:
            # Old style has the tag as an attribute of the target
            target = find_child(el, "target", required=True)
            assert target is not None
            self.tag = find_attr(target, "type").get("type")
        if self.tag is None:
            raise XMLBadStructure(f"Unable to determine the tag of a {el.tag} element")
        assert target is not None
        self.coords = decode_coords(target, telescope=self.telescope)

        offsets = find_offsets(el, max=1)
        if offsets:
            self.offset = offsets[0]

        tracking = find_child(el, "TRACKING_SYSTEM")
        if tracking is not None:
            self.tracking_system = find_attr(tracking, "SYSTEM").get("SYSTEM")

    def _to_xml(self) -> str:
        if self.coords is None:
            raise FatalError(f"Position {self.tag} has no coordinates")
        tag = "Base" if self.tag == "BASE" else self.tag

        xml = self._introductory_xml()
        xml += f"<BASE TYPE={xml_attr(tag)}>\n"
        xml += encode_coords(self.coords)
        if self.offset is not None:
            xml += offset_to_xml(self.offset)
        if self.tracking_system is not None:
            ts = self.tracking_system
            if ts == "TRACKING":
                ts = native_tracking_system(self.coords)
            xml += f"<TRACKING_SYSTEM SYSTEM={xml_attr(ts)} />\n"
        xml += "</BASE>\n"
        return xml
