# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""SCUBA-2 configuration."""

from __future__ import annotations

__all__ = ("SCUBA2", "SUBARRAYS")

import xml.etree.ElementTree as ET
from collections.abc import Mapping

from .cfgbase import ConfigBase, HasDtdRequires, HasTasks
from .frontend import MaskHelper

SUBARRAYS = ("s8a", "s8b", "s8c", "s8d", "s4a", "s4b", "s4c", "s4d")
"""Names of the SCUBA-2 subarrays."""


class SCUBA2(ConfigBase, MaskHelper, HasTasks, HasDtdRequires):
    """SCUBA-2 bolometer camera configuration.

    Parameters
    ----------
    mask : `dict`, optional
        Subarray mask: subarray name to ON, OFF, NEED or ANY.
    """

    root_element_names = ("SCUBA2_CONFIG",)
    mask_element_name = "SUBARRAY"

    def __init__(self, mask: Mapping[str, str] | None = None):
        self._mask = {}
        if mask:
            self.set_mask(mask)

    def tasks(self) -> list[str]:
        return ["SCUBA2"]

    def dtdrequires(self) -> list[str]:
        return ["instrument_setup", "header", "obs_summary"]

    def active_subarrays(self) -> list[str]:
        """Return the subarrays that are not switched off."""
        return self.active_elements()

    def _process_dom(self, el: ET.Element) -> None:
        self._process_mask(el)

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        xml += self._mask_to_xml()
        xml += f"</{root}>\n"
        return xml
