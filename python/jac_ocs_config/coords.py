# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Coordinate values used for telescope targets and their XML encoding.

Target coordinates can be specified in several XML dialects. They are all
decoded into one of three coordinate value types:

- `FixedCoords` for anything with a fixed spherical position.
- `OrbitalElements` for comets and minor planets.
- `NamedBody` for solar system bodies that the telescope knows by name.

`encode_coords` always writes the modern (canonical) dialect.
"""

from __future__ import annotations

__all__ = (
    "FixedCoords",
    "OrbitalElements",
    "NamedBody",
    "CoordinateValue",
    "TELESCOPE_LOCATIONS",
    "telescope_location",
    "decode_coords",
    "encode_coords",
    "coords_separation",
    "native_tracking_system",
)

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Union

import astropy.units as u
from astropy.coordinates import Angle, EarthLocation, HADec, SkyCoord

from .errors import FatalError
from .xmlhelper import find_attr, find_children, get_pcdata, xml_attr, xml_escape

log = logging.getLogger(__name__)

TELESCOPE_LOCATIONS = {
    "JCMT": EarthLocation.from_geodetic(lon=-155.477 * u.deg, lat=19.822808 * u.deg, height=4092.0 * u.m),
    "UKIRT": EarthLocation.from_geodetic(lon=-155.470278 * u.deg, lat=19.8225 * u.deg, height=4194.0 * u.m),
}
"""Locations of the telescopes that can be configured."""

CELESTIAL_FRAMES = ("icrs", "fk5", "fk4", "galactic")
"""Frames that can be compared with each other without a time."""

# Orbital element names as used in the XML and internally, plus whether
# the element is an angle given in degrees in the XML.
CONIC_ELEMENTS = (
    ("EPOCH", "epoch", False),
    ("ORBINC", "inclination", True),
    ("ANODE", "anode", True),
    ("PERIH", "perihelion", True),
    ("AORQ", "aorq", False),
    ("E", "e", False),
    ("AORL", "LorM", True),
    ("DM", "n", True),
    ("EPOCHPERIH", "epochPerih", False),
)


def telescope_location(telescope: str) -> EarthLocation:
    """Return the location of the named telescope.

    Raises
    ------
    FatalError
        Raised if the telescope is not known.
    """
    try:
        return TELESCOPE_LOCATIONS[telescope.upper()]
    except KeyError:
        raise FatalError(f"Telescope '{telescope}' is not a known telescope") from None


@dataclass
class FixedCoords:
    """A target with a fixed spherical position.

    Parameters
    ----------
    coord : `astropy.coordinates.SkyCoord`
        The position.
    system : `str`
        TCS name of the coordinate system (J2000, B1950, ICRS, GAL, AZEL
        or HADEC, or any ``Bnnnn``/``Jnnnn`` equinox).
    name : `str`, optional
        Name of the target.
    """

    coord: SkyCoord
    system: str
    name: str | None = None
    epoch: float | None = None
    pm: tuple[u.Quantity, u.Quantity] | None = None
    parallax: u.Quantity | None = None
    velocity: u.Quantity | None = None
    redshift: float | None = None
    vel_defn: str | None = None
    vel_frame: str | None = None
    telescope: str | None = None

    @classmethod
    def from_strings(
        cls, c1: str | float, c2: str | float, system: str = "J2000", telescope: str | None = None, **kwargs
    ) -> FixedCoords:
        """Create coordinates from the two values used in the XML.

        Parameters
        ----------
        c1, c2 : `str` or `float`
            Longitude and latitude. Right ascension and hour angle are
            in hours, all others in degrees. Strings may be sexagesimal.
        system : `str`, optional
            The TCS coordinate system name.
        telescope : `str`, optional
            Telescope name. Required for HADEC.
        **kwargs
            Other parameters for the constructor.

        Returns
        -------
        coords : `FixedCoords`
            The new coordinates.
        """
        system = system.upper()
        if system.startswith("GAL"):
            coord = SkyCoord(l=Angle(c1, unit=u.deg), b=Angle(c2, unit=u.deg), frame="galactic")
            system = "GAL"
        elif system in ("AZEL", "AZ/EL"):
            coord = SkyCoord(az=Angle(c1, unit=u.deg), alt=Angle(c2, unit=u.deg), frame="altaz")
            system = "AZEL"
        elif system == "HADEC":
            if telescope is None:
                raise FatalError("HADEC coordinates require a telescope")
            frame = HADec(location=telescope_location(telescope))
            coord = SkyCoord(ha=Angle(c1, unit=u.hourangle), dec=Angle(c2, unit=u.deg), frame=frame)
        elif system == "ICRS":
            coord = SkyCoord(ra=Angle(c1, unit=u.hourangle), dec=Angle(c2, unit=u.deg), frame="icrs")
        elif re.match(r"^[BJ]\d{4}", system):
            frame = "fk4" if system.startswith("B") else "fk5"
            coord = SkyCoord(
                ra=Angle(c1, unit=u.hourangle), dec=Angle(c2, unit=u.deg), frame=frame, equinox=system
            )
        else:
            raise FatalError(f"Coordinate system '{system}' not recognized")
        return cls(coord=coord, system=system, telescope=telescope, **kwargs)

    def c1_c2(self) -> tuple[str, str]:
        """Return the longitude and latitude formatted for the XML."""
        if self.system == "GAL":
            return f"{self.coord.l.degree:.8f}", f"{self.coord.b.degree:.8f}"
        if self.system == "AZEL":
            return f"{self.coord.az.degree:.8f}", f"{self.coord.alt.degree:.8f}"
        if self.system == "HADEC":
            lon = self.coord.ha
            lat = self.coord.dec
        else:
            lon = self.coord.ra
            lat = self.coord.dec
        return (
            lon.to_string(unit=u.hourangle, sep=":", precision=3, pad=True),
            lat.to_string(unit=u.deg, sep=":", precision=2, pad=True, alwayssign=True),
        )


@dataclass
class OrbitalElements:
    """Orbital elements of a moving target.

    Angular elements (ORBINC, ANODE, PERIH, AORL and DM) are in radians.
    """

    element_type: str
    elements: dict[str, float] = field(default_factory=dict)
    name: str | None = None
    telescope: str | None = None


@dataclass
class NamedBody:
    """A solar system body known to the telescope by name."""

    name: str
    telescope: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise FatalError("A named body requires a name")


CoordinateValue = Union[FixedCoords, OrbitalElements, NamedBody]


def native_tracking_system(coords: CoordinateValue) -> str:
    """Return the TCS tracking system matching the native system of a
    coordinate value."""
    if isinstance(coords, FixedCoords):
        if coords.system in ("J2000", "ICRS"):
            return "ICRS"
        if coords.system in ("B1950", "GAL", "HADEC", "AZEL"):
            return coords.system
        return "J2000"
    return "APP"


def _float_or_none(value: str | None) -> float | None:
    return float(value) if value is not None else None


def _decode_sphere(system_el: ET.Element, system: str, name: str | None, telescope: str | None) -> FixedCoords:
    c1 = get_pcdata(system_el, "c1")
    c2 = get_pcdata(system_el, "c2")
    if c1 is None or c2 is None:
        raise FatalError(f"Target {name} is missing a coordinate in system {system}")

    kwargs: dict = {"name": name}
    upper = system.upper()
    if re.match(r"^[BJ]\d{4}", upper) or upper == "ICRS":
        kwargs["epoch"] = _float_or_none(get_pcdata(system_el, "epoch"))
        pm1 = get_pcdata(system_el, "pm1")
        pm2 = get_pcdata(system_el, "pm2")
        if pm1 is not None or pm2 is not None:
            kwargs["pm"] = (float(pm1 or 0.0) * u.arcsec / u.yr, float(pm2 or 0.0) * u.arcsec / u.yr)
        parallax = get_pcdata(system_el, "parallax")
        if parallax is not None:
            kwargs["parallax"] = float(parallax) * u.arcsec
    elif upper.startswith("GAL") or upper in ("AZEL", "AZ/EL"):
        if upper in ("AZEL", "AZ/EL") and ":" not in c1 + c2:
            c1, c2 = float(c1), float(c2)
    elif upper == "HADEC":
        if telescope is None:
            raise FatalError(f"Unable to decode HADEC coordinates for target {name} without a telescope")
    else:
        raise FatalError(f"Coordinate system '{system}' for target {name} not recognized")

    rvs = find_children(system_el, "rv", max=1)
    if rvs:
        vel = find_attr(rvs[0], "defn", "frame")
        value = get_pcdata(system_el, "rv")
        if vel.get("defn") == "REDSHIFT":
            kwargs["redshift"] = _float_or_none(value)
        else:
            kwargs["velocity"] = float(value or 0.0) * u.km / u.s
            kwargs["vel_defn"] = vel.get("defn")
            kwargs["vel_frame"] = vel.get("frame")

    if find_children(system_el, "diffRates"):
        log.warning("Differential tracking rates for target %s are not supported and have been ignored", name)

    return FixedCoords.from_strings(c1, c2, system=upper, telescope=telescope, **kwargs)


def _decode_conic(system_el: ET.Element, name: str | None, telescope: str | None) -> OrbitalElements:
    el_type = find_attr(system_el, "TYPE").get("TYPE") or find_attr(system_el, "type").get("type") or ""
    el_type = el_type.upper()
    elements = {}
    for key, xml_name, is_angle in CONIC_ELEMENTS:
        if key == "DM" and el_type in ("COMET", "MINOR"):
            continue
        if key == "AORL" and el_type == "COMET":
            continue
        value = get_pcdata(system_el, xml_name)
        if value is None:
            continue
        number = float(value)
        if is_angle:
            number = math.radians(number)
        elements[key] = number
    return OrbitalElements(element_type=el_type, elements=elements, name=name, telescope=telescope)


def decode_coords(target: ET.Element, telescope: str | None = None) -> CoordinateValue:
    """Decode a ``target`` element into a coordinate value.

    Parameters
    ----------
    target : `xml.etree.ElementTree.Element`
        The ``target`` element, containing a ``targetName`` and an element
        whose name includes ``System``.
    telescope : `str`, optional
        Name of the telescope. Needed for HADEC coordinates.

    Returns
    -------
    coords : `FixedCoords`, `OrbitalElements` or `NamedBody`
        The decoded coordinates.

    Raises
    ------
    FatalError
        Raised if the coordinates can not be understood.
    """
    name = get_pcdata(target, "targetName")
    systems = find_children(target, re.compile("System"), min=1, max=1)
    system_el = systems[0]
    sysname = system_el.tag

    if sysname in ("spherSystem", "hmsdegSystem", "degdegSystem"):
        if sysname == "spherSystem":
            attr = find_attr(system_el, "SYSTEM")
            system = attr.get("SYSTEM")
        else:
            attr = find_attr(system_el, "TYPE", "type")
            system = attr.get("TYPE", attr.get("type"))
        if system is None:
            raise FatalError(f"Unable to determine coordinate system for target {name}")
        return _decode_sphere(system_el, system, name, telescope)
    elif sysname == "conicSystem":
        return _decode_conic(system_el, name, telescope)
    elif sysname == "namedSystem":
        if not name:
            raise FatalError("No planet name supplied for namedSystem")
        return NamedBody(name=name, telescope=telescope)
    raise FatalError(f"Target system ({sysname}) not recognized")


def encode_coords(coords: CoordinateValue) -> str:
    """Encode a coordinate value as a ``target`` element.

    Parameters
    ----------
    coords : `FixedCoords`, `OrbitalElements` or `NamedBody`
        Coordinates to encode.

    Returns
    -------
    xml : `str`
        The XML, one element per line.
    """
    xml = "<target>\n"
    if coords.name:
        xml += f"<targetName>{xml_escape(coords.name)}</targetName>\n"

    if isinstance(coords, FixedCoords):
        c1, c2 = coords.c1_c2()
        xml += f"<spherSystem SYSTEM={xml_attr(coords.system)}>\n"
        xml += f"<c1>{c1}</c1>\n"
        xml += f"<c2>{c2}</c2>\n"
        if coords.epoch is not None:
            xml += f"<epoch>{coords.epoch}</epoch>\n"
        if coords.pm is not None:
            xml += f"<pm1>{coords.pm[0].to_value(u.arcsec / u.yr)}</pm1>\n"
            xml += f"<pm2>{coords.pm[1].to_value(u.arcsec / u.yr)}</pm2>\n"
        if coords.parallax is not None:
            xml += f"<parallax>{coords.parallax.to_value(u.arcsec)}</parallax>\n"
        if coords.redshift is not None:
            xml += f'<rv defn="REDSHIFT" frame="HEL">{coords.redshift}</rv>\n'
        elif coords.velocity is not None:
            defn = coords.vel_defn or "RADIO"
            frame = coords.vel_frame or "LSRK"
            xml += f'<rv defn="{defn}" frame="{frame}">{coords.velocity.to_value(u.km / u.s)}</rv>\n'
        xml += "</spherSystem>\n"
    elif isinstance(coords, OrbitalElements):
        xml += f"<conicSystem TYPE={xml_attr(coords.element_type)}>\n"
        for key, xml_name, is_angle in CONIC_ELEMENTS:
            if key not in coords.elements:
                continue
            value = coords.elements[key]
            if is_angle:
                value = math.degrees(value)
            xml += f"<{xml_name}>{value}</{xml_name}>\n"
        xml += "</conicSystem>\n"
    elif isinstance(coords, NamedBody):
        xml += '<namedSystem TYPE="major" />\n'
    else:
        raise FatalError(f"Unable to encode coordinates of type {type(coords)}")
    xml += "</target>\n"
    return xml


def coords_separation(a: CoordinateValue, b: CoordinateValue) -> Angle | None:
    """Calculate the angular separation of two coordinate values.

    Parameters
    ----------
    a, b : `FixedCoords`, `OrbitalElements` or `NamedBody`
        The coordinates to compare.

    Returns
    -------
    separation : `astropy.coordinates.Angle` or `None`
        The separation, or `None` if the two coordinates can not be
        compared without an observation time.
    """
    if isinstance(a, FixedCoords) and isinstance(b, FixedCoords):
        frame_a = a.coord.frame.name
        frame_b = b.coord.frame.name
        if frame_a in CELESTIAL_FRAMES and frame_b in CELESTIAL_FRAMES:
            return a.coord.separation(b.coord)
        if frame_a == frame_b:
            # Same horizon based frame so compare the raw spherical values
            sa = a.coord.frame.represent_as("unitspherical")
            sb = b.coord.frame.represent_as("unitspherical")
            return Angle(
                SkyCoord(sa.lon, sa.lat, frame="icrs").separation(SkyCoord(sb.lon, sb.lat, frame="icrs"))
            )
        return None
    if isinstance(a, NamedBody) and isinstance(b, NamedBody):
        return Angle(0.0, unit=u.deg) if a.name.upper() == b.name.upper() else None
    if isinstance(a, OrbitalElements) and isinstance(b, OrbitalElements):
        return Angle(0.0, unit=u.deg) if a.elements == b.elements else None
    return None
