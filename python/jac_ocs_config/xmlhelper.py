# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Generic helpers for navigating and emitting configuration XML.

These functions operate on `xml.etree.ElementTree.Element` trees and are
shared by all the configuration classes.
"""

from __future__ import annotations

__all__ = (
    "find_children",
    "find_child",
    "find_attr",
    "get_pcdata",
    "get_pcdata_multi",
    "get_this_pcdata",
    "indent_xml_string",
    "parse_xml",
    "read_xml",
    "find_config_root",
    "xml_escape",
    "xml_attr",
)

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

from lsst.resources import ResourcePath

from .errors import ConfigIOError, XMLBadStructure, XMLConfigMissing, XMLEmpty, XMLSurfeit

if TYPE_CHECKING:
    from lsst.resources import ResourcePathExpression

log = logging.getLogger(__name__)

_INDENT = "   "


def _matches(el: ET.Element, tag: str | re.Pattern) -> bool:
    if isinstance(tag, re.Pattern):
        return tag.search(el.tag) is not None
    return el.tag == tag


def find_children(
    el: ET.Element, tag: str | re.Pattern, min: int | None = None, max: int | None = None
) -> list[ET.Element]:
    """Find the direct children of an element with the given name.

    Parameters
    ----------
    el : `xml.etree.ElementTree.Element`
        Parent element.
    tag : `str` or `re.Pattern`
        Element name to match exactly, or a compiled regular expression
        searched against each child name.
    min : `int`, optional
        Minimum number of matches required.
    max : `int`, optional
        Maximum number of matches allowed.

    Returns
    -------
    children : `list` of `xml.etree.ElementTree.Element`
        Matching children in document order.

    Raises
    ------
    XMLEmpty
        Raised if no children were found but at least one was required.
    XMLBadStructure
        Raised if fewer than ``min`` children were found.
    XMLSurfeit
        Raised if more than ``max`` children were found.
    """
    children = [child for child in el if _matches(child, tag)]
    name = tag.pattern if isinstance(tag, re.Pattern) else tag
    if min is not None and len(children) < min:
        if not children:
            raise XMLEmpty(f"No element named '{name}' found in '{el.tag}' (need at least {min})")
        raise XMLBadStructure(
            f"Found {len(children)} elements named '{name}' in '{el.tag}' but need at least {min}"
        )
    if max is not None and len(children) > max:
        raise XMLSurfeit(f"Found {len(children)} elements named '{name}' in '{el.tag}' but expected {max}")
    return children


def find_child(el: ET.Element, tag: str | re.Pattern, required: bool = False) -> ET.Element | None:
    """Return the single child element with the given name.

    Parameters
    ----------
    el : `xml.etree.ElementTree.Element`
        Parent element.
    tag : `str` or `re.Pattern`
        Element name to match.
    required : `bool`, optional
        If `True` an exception is raised if the element is missing.

    Returns
    -------
    child : `xml.etree.ElementTree.Element` or `None`
        The matching child, or `None` if it is absent and not required.
    """
    children = find_children(el, tag, min=1 if required else 0, max=1)
    return children[0] if children else None


def find_attr(el: ET.Element, *keys: str) -> dict[str, str]:
    """Return the requested attributes of an element.

    Missing attributes are not included in the result.
    """
    return {k: el.attrib[k] for k in keys if k in el.attrib}


def get_this_pcdata(el: ET.Element) -> str | None:
    """Return the text content of the element itself, or `None`."""
    if el.text is None:
        return None
    text = el.text.strip()
    return text if text else None


def get_pcdata(el: ET.Element, tag: str) -> str | None:
    """Return the text content of a named child element.

    If several children match, the last one is used.
    """
    matches = find_children(el, tag)
    if not matches:
        return None
    return get_this_pcdata(matches[-1])


def get_pcdata_multi(el: ET.Element, *tags: str) -> dict[str, str]:
    """Run `get_pcdata` for each tag, omitting those without content."""
    results = {}
    for t in tags:
        value = get_pcdata(el, t)
        if value is not None:
            results[t] = value
    return results


def indent_xml_string(xml: str) -> str:
    """Re-indent an XML string that has one element per line.

    Parameters
    ----------
    xml : `str`
        XML to indent. The algorithm is line based and assumes that
        elements are not packed onto a single line.

    Returns
    -------
    indented : `str`
        XML indented by three spaces per level.
    """
    out: list[str] = []
    indent = 0
    for line in xml.split("\n"):
        if "<" in line:
            line = line.lstrip()
        this_indent = indent
        if re.match(r"^<[?!]", line):
            # Declarations never open an element
            pass
        elif ">" in line and "/>" not in line and "</" not in line and "->" not in line:
            indent += 1
        elif "</" in line and not re.search(r"<\w", line):
            indent = max(indent - 1, 0)
            this_indent = indent

        if re.match(r"^\s*>\s*$", line) and out:
            out[-1] += " >"
        else:
            out.append(_INDENT * this_indent + line)
    # A trailing newline in the input gives an empty final line
    if out and out[-1].strip() == "":
        out.pop()
    return "\n".join(out) + "\n"


def xml_escape(value: object) -> str:
    """Escape a value for use as element content."""
    return escape(str(value))


def xml_attr(value: object) -> str:
    """Quote a value for use as an attribute (includes the quotes)."""
    return quoteattr(str(value))


def parse_xml(xml: str) -> ET.Element:
    """Parse an XML string.

    Raises
    ------
    XMLBadStructure
        Raised if the XML can not be parsed.
    """
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        raise XMLBadStructure(f"Unable to parse XML: {e}") from e


def read_xml(file: ResourcePathExpression, wrapper: str | None = None) -> ET.Element:
    """Read and parse an XML file.

    Parameters
    ----------
    file : `str` or `lsst.resources.ResourcePathExpression`
        File to read.
    wrapper : `str`, optional
        If given the content is treated as an entity file and wrapped
        in an element of this name before parsing, allowing files that
        contain multiple top-level elements.

    Returns
    -------
    root : `xml.etree.ElementTree.Element`
        The root of the parsed tree.
    """
    uri = ResourcePath(file, forceDirectory=False)
    try:
        content = uri.read().decode()
    except FileNotFoundError as e:
        raise ConfigIOError(f"Could not open file '{uri}': {e}") from e
    if wrapper is not None:
        # Strip any XML declaration from the entity content
        content = re.sub(r"^\s*<\?xml[^>]*\?>", "", content)
        content = f"<{wrapper}>{content}</{wrapper}>"
    log.debug("Parsing XML from %s", uri)
    return parse_xml(content)


def find_config_root(
    el: ET.Element, names: Sequence[str] | Iterable[str], required: bool = True
) -> ET.Element | None:
    """Locate the configuration element within a tree.

    Parameters
    ----------
    el : `xml.etree.ElementTree.Element`
        Element to search. If it already has one of the requested names
        it is returned directly.
    names : iterable of `str`
        Acceptable element names, in order of preference.
    required : `bool`, optional
        If `False`, `None` is returned when no element is found rather
        than raising.

    Returns
    -------
    root : `xml.etree.ElementTree.Element` or `None`
        The configuration element.

    Raises
    ------
    XMLConfigMissing
        Raised if no matching element exists and one is required.
    XMLSurfeit
        Raised if more than one matching element exists.
    """
    names = list(names)
    if el.tag in names:
        return el
    for name in names:
        matches = [m for m in el.iter(name) if m is not el]
        if len(matches) > 1:
            raise XMLSurfeit(f"More than one '{name}' element found in '{el.tag}'")
        if matches:
            return matches[0]
    if not required:
        return None
    raise XMLConfigMissing(f"Could not find any of {', '.join(names)} in '{el.tag}'")
