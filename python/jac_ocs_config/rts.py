# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Realtime sequencer (RTS) configuration."""

from __future__ import annotations

__all__ = ("RTS", "RTSInstruction")

import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass

from .cfgbase import ConfigBase
from .errors import XMLBadStructure
from .xmlhelper import find_attr, find_children, xml_attr


@dataclass
class RTSInstruction:
    """A wait or put declaration within a sequence position.

    Parameters
    ----------
    name : `str`
        Element name, starting with ``wait`` or ``put``.
    channel : `str`
        Input (for wait) or output (for put) channel.
    value : `str`
        Value to wait for or to put.
    """

    name: str
    channel: str
    value: str

    @property
    def is_put(self) -> bool:
        return self.name.startswith("put")


class RTS(ConfigBase):
    """RTS timeouts, operating mode and instruction sequence.

    Operating modes are 0 (FIX_SAMP), 1 (FIX_ITG) and 2 (SLAVE_EXTCLK).
    """

    root_element_names = ("RTS_CONFIG",)

    def __init__(
        self,
        st_timeout: str | None = None,
        samp_timeout: str | None = None,
        opmode: str | None = None,
        sequence: Sequence[Sequence[RTSInstruction]] = (),
    ):
        self.st_timeout = st_timeout
        self.samp_timeout = samp_timeout
        self.opmode = opmode
        self.sequence = [list(s) for s in sequence]

    def _process_dom(self, el: ET.Element) -> None:
        values = []
        for name in ("stTimeout", "sampTimeout", "opMode"):
            child = find_children(el, name, min=1, max=1)[0]
            values.append(find_attr(child, "value").get("value"))
        self.st_timeout, self.samp_timeout, self.opmode = values

        seq_el = find_children(el, "Sequence", min=1, max=1)[0]
        size = int(seq_el.attrib.get("size", 0) or 0)
        sequence = []
        if size:
            for position in find_children(seq_el, "position", min=size, max=size):
                waits = [c for c in position.iter() if "wait" in c.tag]
                puts = [c for c in position.iter() if "put" in c.tag]
                instructions = []
                for c in waits + puts:
                    attr = find_attr(c, "input", "output", "value")
                    channel = attr.get("output") if c.tag.startswith("put") else attr.get("input")
                    if channel is None or "value" not in attr:
                        raise XMLBadStructure(f"RTS declaration {c.tag} is missing its channel or value")
                    instructions.append(RTSInstruction(c.tag, channel, attr["value"]))
                sequence.append(instructions)
        self.sequence = sequence

    def _to_xml(self) -> str:
        xml = "<RTS_CONFIG>\n"
        xml += f"<stTimeout value={xml_attr(self.st_timeout or '')} />\n"
        xml += f"<sampTimeout value={xml_attr(self.samp_timeout or '')} />\n"
        xml += f"<opMode value={xml_attr(self.opmode or '')} />\n"
        if not self.sequence:
            xml += "<Sequence />\n"
        else:
            xml += f'<Sequence size="{len(self.sequence)}">\n'
            for num, position in enumerate(self.sequence, start=1):
                xml += f'<position num="{num}">\n'
                for i in position:
                    direction = "output" if i.is_put else "input"
                    xml += f"<{i.name} {direction}={xml_attr(i.channel)} value={xml_attr(i.value)} />\n"
                xml += "</position>\n"
            xml += "</Sequence>\n"
        xml += "</RTS_CONFIG>\n"
        return xml
