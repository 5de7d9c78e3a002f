# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Observation summary configuration."""

from __future__ import annotations

__all__ = ("ObsSummary",)

import xml.etree.ElementTree as ET
from collections.abc import Sequence

from .cfgbase import ConfigBase
from .xmlhelper import find_children, get_pcdata, get_this_pcdata, xml_escape


class ObsSummary(ConfigBase):
    """Summary of the observing mode.

    Parameters
    ----------
    mapping_mode : `str`, optional
        Mapping mode, usually one of ``scan``, ``dream``, ``stare``,
        ``jiggle`` or ``grid``.
    switching_mode : `str`, optional
        Switching mode, usually one of ``none``, ``pssw``, ``chop``,
        ``freqsw_slow``, ``freqsw_fast``, ``self`` or ``spin``.
    obs_type : `str`, optional
        Observation type, usually one of ``science``, ``pointing``,
        ``focus``, ``skydip`` or ``flatfield``.
    in_beam : sequence of `str`, optional
        Additional hardware that must be in the beam.
    comment : `str`, optional
        Free text comment.
    """

    root_element_names = ("OBS_SUMMARY",)

    def __init__(
        self,
        mapping_mode: str | None = None,
        switching_mode: str | None = None,
        obs_type: str | None = None,
        in_beam: Sequence[str] = (),
        comment: str | None = None,
    ):
        self.mapping_mode = mapping_mode
        self.switching_mode = switching_mode
        self.obs_type = obs_type
        self.in_beam = list(in_beam)
        self.comment = comment

    def _process_dom(self, el: ET.Element) -> None:
        self.mapping_mode = get_pcdata(el, "mapping_mode")
        self.switching_mode = get_pcdata(el, "switching_mode")
        self.obs_type = get_pcdata(el, "obs_type")
        self.comment = get_pcdata(el, "obs_comment") or get_pcdata(el, "comment")

        in_beam = []
        for item in find_children(el, "in_beam"):
            content = get_this_pcdata(item)
            if content:
                in_beam.extend(content.split())
        self.in_beam = in_beam

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        xml += f"<mapping_mode>{xml_escape(self.mapping_mode or '')}</mapping_mode>\n"
        xml += f"<switching_mode>{xml_escape(self.switching_mode or '')}</switching_mode>\n"
        xml += f"<obs_type>{xml_escape(self.obs_type or '')}</obs_type>\n"
        for item in self.in_beam:
            xml += f"<in_beam>{xml_escape(item)}</in_beam>\n"
        if self.comment:
            xml += f"<obs_comment>{xml_escape(self.comment)}</obs_comment>\n"
        xml += f"</{root}>\n"
        return xml
