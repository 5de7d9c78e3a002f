# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Heterodyne frontend configuration and the mask shared with SCUBA-2."""

from __future__ import annotations

__all__ = ("Frontend", "MaskHelper", "MASK_STATES")

import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import ClassVar

from .cfgbase import ConfigBase, HasDtdRequires, HasTasks
from .errors import BadArgs, XMLBadStructure
from .xmlhelper import find_attr, find_children, get_pcdata, xml_attr, xml_escape

MASK_STATES = ("ON", "OFF", "NEED", "ANY")
"""Allowed states of a receptor or subarray mask entry."""

SIDEBANDS = ("USB", "LSB", "BEST")
SIDEBAND_MODES = ("SSB", "DSB", "2SB")


class MaskHelper:
    """Mixin handling a mask of named elements, each ON, OFF, NEED or ANY.

    Subclasses set ``mask_element_name`` to the XML element used for each
    entry.
    """

    mask_element_name: ClassVar[str] = "RECEPTOR"

    _mask: dict[str, str]

    def mask(self) -> dict[str, str]:
        """Return the mask, keyed by element name."""
        return dict(self._mask)

    def set_mask(self, mask: Mapping[str, str]) -> None:
        """Replace the mask.

        Raises
        ------
        BadArgs
            Raised if a state is not one of `MASK_STATES`.
        """
        new_mask = {}
        for k, v in mask.items():
            state = v.upper()
            if state not in MASK_STATES:
                raise BadArgs(f"Mask state for {k} must be one of {', '.join(MASK_STATES)} not '{v}'")
            new_mask[k] = state
        self._mask = new_mask

    def active_elements(self) -> list[str]:
        """Return the masked elements that are not OFF."""
        return [k for k, v in self._mask.items() if v != "OFF"]

    def _process_mask(self, el: ET.Element) -> None:
        mask = {}
        for m in find_children(el, self.mask_element_name):
            attr = find_attr(m, "NAME", "VALUE")
            if "NAME" not in attr:
                raise XMLBadStructure(f"{self.mask_element_name} mask element has no NAME")
            mask[attr["NAME"]] = attr.get("VALUE", "ON")
        self.set_mask(mask)

    def _mask_to_xml(self) -> str:
        return "".join(
            f"<{self.mask_element_name} NAME={xml_attr(k)} VALUE={xml_attr(v)} />\n" for k, v in self._mask.items()
        )


class Frontend(ConfigBase, MaskHelper, HasTasks, HasDtdRequires):
    """Heterodyne receiver configuration.

    Parameters
    ----------
    frontend : `str`, optional
        Name of the receiver. Normally filled in from the instrument
        setup.
    """

    root_element_names = ("FRONTEND_CONFIG",)
    mask_element_name = "RECEPTOR"

    def __init__(self, frontend: str | None = None):
        self.frontend = frontend
        self.rest_frequency: float | None = None
        self._sideband: str | None = None
        self._sb_mode: str | None = None
        self._mask = {}

    @property
    def sideband(self) -> str | None:
        """Sideband to tune: USB, LSB or BEST."""
        return self._sideband

    @sideband.setter
    def sideband(self, value: str | None) -> None:
        self._sideband = _validate(value, SIDEBANDS, "sideband")

    @property
    def sb_mode(self) -> str | None:
        """Sideband mode: SSB, DSB or 2SB."""
        return self._sb_mode

    @sb_mode.setter
    def sb_mode(self, value: str | None) -> None:
        self._sb_mode = _validate(value, SIDEBAND_MODES, "sideband mode")

    def tasks(self) -> list[str]:
        if not self.frontend:
            return []
        return [f"FE_{self.frontend}"]

    def dtdrequires(self) -> list[str]:
        return ["instrument_setup"]

    def _process_dom(self, el: ET.Element) -> None:
        rest = get_pcdata(el, "REST_FREQUENCY")
        self.rest_frequency = float(rest) if rest is not None else None
        self.sideband = get_pcdata(el, "SIDEBAND")
        self.sb_mode = get_pcdata(el, "SB_MODE")
        self._process_mask(el)

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        if self.rest_frequency is not None:
            xml += f"<REST_FREQUENCY>{self.rest_frequency}</REST_FREQUENCY>\n"
        if self._sideband is not None:
            xml += f"<SIDEBAND>{xml_escape(self._sideband)}</SIDEBAND>\n"
        if self._sb_mode is not None:
            xml += f"<SB_MODE>{xml_escape(self._sb_mode)}</SB_MODE>\n"
        xml += self._mask_to_xml()
        xml += f"</{root}>\n"
        return xml


def _validate(value: str | None, allowed: tuple[str, ...], what: str) -> str | None:
    if value is None:
        return None
    value = value.upper()
    if value not in allowed:
        raise BadArgs(f"Unrecognized {what} '{value}'; must be one of {', '.join(allowed)}")
    return value
