# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Telescope control system configuration."""

from __future__ import annotations

__all__ = ("TCS", "TAG_SYNONYMS", "SYNC_TOLERANCE", "DOME_MODES")

import copy
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping, Sequence

import astropy.units as u
from astropy.coordinates import Angle

from ..cfgbase import ConfigBase, HasDtdRequires, HasTasks
from ..coords import CoordinateValue, coords_separation
from ..errors import BadArgs, FatalError, XMLBadStructure
from ..xmlhelper import find_attr, find_child, xml_attr
from .base import TargetBase
from .generic import Offset, find_pa, pa_to_xml
from .obsarea import ObsArea
from .secondary import Secondary

log = logging.getLogger(__name__)

TAG_SYNONYMS = {
    "BASE": "SCIENCE",
    "SCIENCE": "BASE",
    "REFERENCE": "SKY",
    "SKY": "REFERENCE",
}
"""Tags that refer to the same logical position."""

SYNC_TOLERANCE = Angle(1.0, unit=u.arcsec)
"""Positions closer than this to the science position move with it."""

DOME_MODES = ("CURRENT", "TELESCOPE", "STOPPED", "NEXT", "BASE")
"""Allowed dome tracking modes."""

SLEW_OPTIONS = ("SHORTEST_SLEW", "LONGEST_TRACK", "TRACK_TIME", "CYCLE")


class TCS(ConfigBase, HasTasks, HasDtdRequires):
    """Telescope configuration: target positions, observing area, secondary
    mirror, slew, rotator, dome and instrument aperture.

    Parameters
    ----------
    telescope : `str`, optional
        Name of the telescope.
    """

    root_element_names = ("TCS_CONFIG", "SpTelescopeObsComp")

    def __init__(self, telescope: str | None = None):
        self._telescope: str | None = None
        self._tags: dict[str, TargetBase] = {}
        self._obs_area: ObsArea | None = None
        self._secondary: Secondary | None = None
        self._slew: dict = {}
        self._rotator: dict = {}
        self._dome_mode: str | None = None
        self._dome_azel: tuple[float, float] | None = None
        self.aperture_name: str | None = None
        self._aperture_xy: tuple[float, float] | None = None
        self.telescope = telescope

    @property
    def telescope(self) -> str | None:
        """Name of the telescope, shared with every target position."""
        return self._telescope

    @telescope.setter
    def telescope(self, value: str | None) -> None:
        self._telescope = value
        if value is not None:
            for base in self._tags.values():
                self._thread_telescope(base)

    def _thread_telescope(self, base: TargetBase) -> None:
        if self._telescope is None:
            return
        base.telescope = self._telescope
        if base.coords is not None:
            base.coords.telescope = self._telescope

    def tasks(self) -> list[str]:
        tasks = ["PTCS"]
        if self._secondary is not None:
            tasks.extend(self._secondary.tasks())
        return tasks

    def dtdrequires(self) -> list[str]:
        return ["instrument_setup"]

    # Tag handling

    def resolve_tag(self, tag: str, allow_synthetic: bool = False) -> str | None:
        """Translate a tag into the name used to store it.

        Parameters
        ----------
        tag : `str`
            Requested tag.
        allow_synthetic : `bool`, optional
            If `True` the requested tag is returned even if neither it nor
            its synonym is currently defined.

        Returns
        -------
        resolved : `str` or `None`
            The tag in use, or `None` if it is not present and synthetic
            tags are not allowed.
        """
        tag = tag.upper()
        if tag in self._tags:
            return tag
        synonym = TAG_SYNONYMS.get(tag)
        if synonym is not None and synonym in self._tags:
            return synonym
        if allow_synthetic:
            return tag
        return None

    def get_tags(self) -> list[str]:
        """Return all the defined tags."""
        return list(self._tags)

    def get_non_sci_tags(self) -> list[str]:
        """Return the tags that do not refer to the science position."""
        return [t for t in self._tags if t not in ("SCIENCE", "BASE")]

    def get_sci_tag(self) -> TargetBase | None:
        """Return the science position."""
        return self._get_base("SCIENCE")

    def _get_base(self, tag: str) -> TargetBase | None:
        resolved = self.resolve_tag(tag)
        if resolved is None:
            return None
        return self._tags[resolved]

    def get_target(self) -> CoordinateValue | None:
        """Return the science target coordinates."""
        return self.get_coords("SCIENCE")

    def get_coords(self, tag: str) -> CoordinateValue | None:
        """Return the coordinates associated with a tag."""
        base = self._get_base(tag)
        return base.coords if base is not None else None

    def get_offset(self, tag: str) -> Offset | None:
        """Return the offset associated with a tag."""
        base = self._get_base(tag)
        return base.offset if base is not None else None

    def get_tracking_system(self, tag: str) -> str | None:
        """Return the tracking system associated with a tag."""
        base = self._get_base(tag)
        return base.tracking_system if base is not None else None

    def get_all_target_info(self) -> dict[str, TargetBase]:
        """Return a copy of the mapping of tag to position."""
        return dict(self._tags)

    def set_all_target_info(self, info: TCS | Mapping[str, TargetBase]) -> None:
        """Replace all the positions.

        Parameters
        ----------
        info : `TCS` or `dict`
            Either another TCS configuration whose positions are copied or
            a mapping of tag to `TargetBase`.
        """
        tags = info.get_all_target_info() if isinstance(info, TCS) else info
        new_tags: dict[str, TargetBase] = {}
        for tag, base in tags.items():
            tag = tag.upper()
            if TAG_SYNONYMS.get(tag) in new_tags:
                raise FatalError(f"Positions {tag} and {TAG_SYNONYMS[tag]} can not both be defined")
            base = copy.copy(base)
            base.tag = tag
            self._thread_telescope(base)
            new_tags[tag] = base
        self._tags = new_tags

    def set_target(self, coords: CoordinateValue | TargetBase) -> None:
        """Set the science position."""
        self.set_coords("SCIENCE", coords)

    def set_coords(self, tag: str | TCS | None, coords: CoordinateValue | TargetBase | None = None) -> None:
        """Set the coordinates for a tag.

        Parameters
        ----------
        tag : `str`, `TCS` or `None`
            The tag to set. If a `TCS` is given all its positions are
            copied. If `None` the tag of ``coords`` is used.
        coords : `TargetBase` or coordinate value, optional
            The position. Required unless ``tag`` is a `TCS`.
        """
        if isinstance(tag, TCS):
            self.set_all_target_info(tag)
            return
        if coords is None:
            raise FatalError("Usage: set_coords(tag, coords)")

        default_tag = self.resolve_tag("SCIENCE", allow_synthetic=True)
        assert default_tag is not None
        if isinstance(coords, TargetBase):
            base = copy.copy(coords)
        else:
            base = TargetBase.from_coord(coords, default_tag)
        if tag is None:
            tag = base.tag or default_tag
        resolved = self.resolve_tag(tag, allow_synthetic=True)
        assert resolved is not None
        base.tag = resolved
        self._thread_telescope(base)
        self._tags[resolved] = base

    def clear_target(self) -> None:
        """Remove the science position."""
        self.clear_coords("SCIENCE")

    def clear_coords(self, tag: str) -> None:
        """Remove the position associated with a tag."""
        resolved = self.resolve_tag(tag)
        if resolved is not None:
            del self._tags[resolved]

    def clear_all_coords(self) -> None:
        """Remove all the positions."""
        self._tags = {}

    def set_target_sync(self, new: CoordinateValue | TargetBase | TCS) -> list[str]:
        """Change the science position and move any attached positions.

        Positions within `SYNC_TOLERANCE` of the current science position
        are given the new coordinates (retaining their own offsets). If no
        science position exists every position is updated, but positions
        with a nonzero offset can not be synchronized.

        Parameters
        ----------
        new : `TCS`, `TargetBase` or coordinate value
            The new science position. A `TCS` with more than one position
            replaces every position.

        Returns
        -------
        untouched : `list` of `str`
            The tags that were not modified.

        Raises
        ------
        FatalError
            Raised if there is no science position and a position to be
            synchronized has a nonzero offset.
        """
        if new is None:
            raise FatalError("Please supply a coordinate")

        if isinstance(new, TCS):
            tags = new.get_tags()
            if len(tags) > 1:
                self.set_coords(new)
                return []
            if not tags:
                raise FatalError("Supplied telescope configuration has no positions")
            new_coords = new.get_coords(tags[0])
            assert new_coords is not None
            new = new_coords

        default_tag = self.resolve_tag("SCIENCE", allow_synthetic=True)
        assert default_tag is not None
        new_base = TargetBase.from_coord(new, default_tag)

        untouched = []
        if self._tags:
            science = self.get_sci_tag()
            # The science position itself is updated within the loop
            science_coords = science.coords if science is not None else None
            for tag, base in self._tags.items():
                if science_coords is not None:
                    if base.coords is None:
                        # Nothing to compare so it can not be attached
                        untouched.append(tag)
                        continue
                    distance = coords_separation(base.coords, science_coords)
                    modify = distance is not None and distance < SYNC_TOLERANCE
                else:
                    if base.offset is not None and not base.offset.is_zero():
                        raise FatalError(
                            "Can not sync target positions if no SCIENCE/BASE is available"
                            f" and tag {tag} contains a nonzero offset"
                        )
                    modify = True
                if modify:
                    base.coords = new_base.coords
                    self._thread_telescope(base)
                else:
                    untouched.append(tag)
                log.debug("Synchronization of tag %s: %s", tag, "modified" if modify else "untouched")

        self.set_target(new_base)
        return untouched

    # Components

    def get_obs_area(self) -> ObsArea | None:
        """Return the observing area."""
        return self._obs_area

    def set_obs_area(self, obs_area: ObsArea | None) -> None:
        """Set the observing area."""
        self._obs_area = obs_area

    def get_secondary(self) -> Secondary | None:
        """Return the secondary mirror configuration."""
        return self._secondary

    def set_secondary(self, secondary: Secondary | None) -> None:
        """Set the secondary mirror configuration."""
        self._secondary = secondary

    def slew(self) -> dict:
        """Return the slew options (OPTION, TRACK_TIME and CYCLE)."""
        return dict(self._slew)

    def set_slew(self, option: str | None = None, track_time: float | None = None, cycle: int | None = None):
        """Set the slew options."""
        self._slew = {
            k: v for k, v in (("OPTION", option), ("TRACK_TIME", track_time), ("CYCLE", cycle)) if v is not None
        }

    def rotator(self) -> dict:
        """Return the rotator options (SYSTEM, SLEW_OPTION, MOTION, PA)."""
        return dict(self._rotator)

    def set_rotator(
        self,
        system: str,
        slew_option: str | None = None,
        motion: str | None = None,
        pa: Sequence[Angle] = (),
    ) -> None:
        """Configure the instrument rotator."""
        self._rotator = {"SYSTEM": system}
        if slew_option is not None:
            self._rotator["SLEW_OPTION"] = slew_option
        if motion is not None:
            self._rotator["MOTION"] = motion
        if pa:
            self._rotator["PA"] = list(pa)

    @property
    def dome_mode(self) -> str | None:
        """Dome tracking mode."""
        return self._dome_mode

    @dome_mode.setter
    def dome_mode(self, mode: str | None) -> None:
        if mode is not None:
            mode = mode.upper()
            if mode not in DOME_MODES:
                raise BadArgs(f"Dome mode '{mode}' not recognized; must be one of {', '.join(DOME_MODES)}")
        self._dome_mode = mode

    @property
    def dome_azel(self) -> tuple[float, float] | None:
        """Dome azimuth and elevation in degrees, only used when the
        dome is STOPPED."""
        return self._dome_azel

    @dome_azel.setter
    def dome_azel(self, azel: tuple[float, float] | None) -> None:
        self._dome_azel = (float(azel[0]), float(azel[1])) if azel is not None else None

    @property
    def aperture_xy(self) -> tuple[float, float] | None:
        """Instrument aperture position in arcsec."""
        return self._aperture_xy

    @aperture_xy.setter
    def aperture_xy(self, xy: tuple[float, float] | None) -> None:
        self._aperture_xy = (float(xy[0]), float(xy[1])) if xy is not None else None
        if xy is not None and self.aperture_name is None:
            self.aperture_name = "UNNAMED_AP"

    # XML

    def _process_dom(self, el: ET.Element) -> None:
        if self._telescope is None:
            self._telescope = el.attrib.get("TELESCOPE") or None

        ap = find_child(el, "INST_AP")
        if ap is not None:
            attr = find_attr(ap, "NAME", "X", "Y")
            self.aperture_name = attr.get("NAME")
            if "X" in attr and "Y" in attr:
                self.aperture_xy = (float(attr["X"]), float(attr["Y"]))

        tags: dict[str, TargetBase] = {}
        for b in [*el.iter("BASE"), *el.iter("base")]:
            base = TargetBase.from_element(b, telescope=self._telescope)
            assert base.tag is not None
            if TAG_SYNONYMS.get(base.tag) in tags:
                raise XMLBadStructure(
                    f"Positions {base.tag} and {TAG_SYNONYMS[base.tag]} can not both be defined"
                )
            tags[base.tag] = base
        self._tags = tags

        slew = find_child(el, "SLEW")
        if slew is not None:
            self._slew = find_attr(slew, "OPTION", "TRACK_TIME", "CYCLE")

        self._obs_area = ObsArea.find_in(el)
        self._secondary = Secondary.find_in(el)

        rot = find_child(el, "ROTATOR")
        if rot is not None:
            self._rotator = find_attr(rot, "SYSTEM", "SLEW_OPTION", "MOTION")
            pas = find_pa(rot)
            if pas:
                self._rotator["PA"] = pas

        dome = find_child(el, "DOME")
        if dome is not None:
            attr = find_attr(dome, "MODE", "AZ", "EL")
            self.dome_mode = attr.get("MODE")
            if self._dome_mode == "STOPPED" and "AZ" in attr and "EL" in attr:
                self.dome_azel = (float(attr["AZ"]), float(attr["EL"]))

    def _slew_to_xml(self) -> str:
        slew = dict(self._slew)
        option = slew.get("OPTION")
        if not option:
            if slew.get("CYCLE") is not None and slew.get("TRACK_TIME") is not None:
                raise FatalError(
                    "No explicit Slew option but CYCLE and TRACK_TIME are specified. Please fix ambiguity."
                )
            elif slew.get("CYCLE") is not None:
                option = "CYCLE"
            elif slew.get("TRACK_TIME") is not None:
                option = "TRACK_TIME"
            else:
                option = "SHORTEST_SLEW"
        if option == "CYCLE" and slew.get("CYCLE") is None:
            raise FatalError("Slew option says CYCLE but cycle is not specified")
        if option == "TRACK_TIME" and slew.get("TRACK_TIME") is None:
            raise FatalError("Slew option says TRACK_TIME but track time is not specified")

        xml = "<!-- Set up the SLEW method here -->\n"
        xml += f"<SLEW OPTION={xml_attr(option)}"
        if option == "TRACK_TIME":
            xml += f" TRACK_TIME={xml_attr(slew['TRACK_TIME'])}"
        if option == "CYCLE":
            xml += f" CYCLE={xml_attr(slew['CYCLE'])}"
        xml += " />\n"
        return xml

    def _rotator_to_xml(self) -> str:
        if not self._rotator:
            return ""
        rot = self._rotator
        if rot.get("SLEW_OPTION") == "TRACK_TIME" and "TRACK_TIME" not in self._slew:
            raise FatalError(
                "Rotator is attempting to use TRACK_TIME slew option but no track time has been"
                " defined in the SLEW parameter"
            )
        xml = "<!-- Configure the instrument rotator here -->\n"
        xml += f"<ROTATOR SYSTEM={xml_attr(rot.get('SYSTEM', 'TRACKING'))}\n"
        if "SLEW_OPTION" in rot:
            xml += f"         SLEW_OPTION={xml_attr(rot['SLEW_OPTION'])}\n"
        if "MOTION" in rot:
            xml += f"         MOTION={xml_attr(rot['MOTION'])}\n"
        xml += ">\n"
        for pa in rot.get("PA", []):
            xml += pa_to_xml(pa)
        xml += "</ROTATOR>\n"
        return xml

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}"
        if self._telescope:
            xml += f" TELESCOPE={xml_attr(self._telescope)}"
        xml += ">\n"
        xml += self._introductory_xml()

        for base in self._tags.values():
            xml += base.to_xml(indent=False)
        xml += self._slew_to_xml()
        if self._obs_area is not None:
            xml += "<!-- Set up observing area here -->\n"
            xml += self._obs_area.to_xml(indent=False)
        if self._secondary is not None:
            xml += "<!-- Set up Secondary mirror behaviour here -->\n"
            xml += self._secondary.to_xml(indent=False)
        xml += self._rotator_to_xml()

        if self.aperture_name is not None:
            xml += f"<INST_AP NAME={xml_attr(self.aperture_name)}"
            if self._aperture_xy is not None:
                xml += f' X="{self._aperture_xy[0]}" Y="{self._aperture_xy[1]}"'
            xml += " />\n"

        if self._dome_mode is not None:
            xml += f"<DOME MODE={xml_attr(self._dome_mode)}"
            if self._dome_mode == "STOPPED" and self._dome_azel is not None:
                xml += f' AZ="{self._dome_azel[0]}" EL="{self._dome_azel[1]}"'
            xml += " />\n"

        xml += f"</{root}>\n"
        return xml
