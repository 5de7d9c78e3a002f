# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Header configuration and the source definition file language.

Source definition files override the provenance of header items. The
comment character is ``#`` and each remaining line is one of::

    INCLUDE other.defs
    TASKMAP GENERIC_TASK SPECIFIC_TASK
    KEYWORD UNDEF
    KEYWORD DERIVED TASK=X METHOD=Y Optional replacement comment
    <KEYWORD DRAMA_MONITOR TASK="X" PARAM="Y" />

Definitions read from an included file override earlier ones. A task map
applies to DERIVED and DRAMA definitions that follow it, including those in
files included later, but a task map defined in an included file does not
affect the including file. ``UNDEF`` removes the provenance of a keyword.

Header exclusion files list one keyword per line. ``INCLUDE file`` reads
another exclusion file and a leading ``+`` removes the keyword (or the
included keywords) from the exclusion list built so far.
"""

from __future__ import annotations

__all__ = (
    "HeaderItem",
    "Header",
    "SOURCE_TYPES",
    "normalize_source",
    "parse_source_definitions",
    "read_source_definitions",
    "read_header_exclusion_file",
)

import logging
import os
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING

from lsst.resources import ResourcePath

from .cfgbase import ConfigBase
from .errors import BadArgs, ConfigIOError, FatalError, OCSConfigError, XMLBadStructure
from .xmlhelper import find_attr, find_children, xml_attr

if TYPE_CHECKING:
    import astropy.io.fits
    from lsst.resources import ResourcePathExpression

log = logging.getLogger(__name__)

SOURCE_TYPES = ("DRAMA", "GLISH", "DERIVED", "SELF")
"""Recognized provenance sources of a header value."""

_SOURCE_ELEMENTS = {
    "DRAMA": "DRAMA_MONITOR",
    "GLISH": "GLISH_PARAMETER",
    "DERIVED": "DERIVED",
    "SELF": "SELF",
}

_SOURCE_ATTRS = {
    "DRAMA": ("TASK", "PARAM", "EVENT", "MULT"),
    "GLISH": ("TASK", "PARAM", "EVENT"),
    "DERIVED": ("TASK", "METHOD", "EVENT"),
    "SELF": ("PARAM", "ALT"),
}

_SOURCE_REQUIRED = {
    "DRAMA": ("TASK", "PARAM"),
    "GLISH": ("TASK", "PARAM"),
    "DERIVED": ("TASK", "METHOD"),
    "SELF": ("PARAM",),
}

# Header types and the python types astropy uses for the corresponding
# FITS values.
_FITS_TYPES: dict[str, tuple[type, ...]] = {
    "STRING": (str,),
    "INT": (int,),
    "FLOAT": (float, int),
    "LOGICAL": (bool,),
}


def normalize_source(source: str) -> str:
    """Convert a source given either as an XML element name or as a short
    name into the short name.

    Parameters
    ----------
    source : `str`
        Source such as ``DRAMA_MONITOR`` or ``drama``.

    Returns
    -------
    normalized : `str`
        One of `SOURCE_TYPES`.

    Raises
    ------
    BadArgs
        Raised if the source is not recognized.
    """
    upper = source.upper()
    if upper in _SOURCE_ELEMENTS:
        return upper
    for short, element in _SOURCE_ELEMENTS.items():
        if upper == element:
            return short
    raise BadArgs(f"Unrecognized header source '{source}'")


class HeaderItem:
    """A single header card definition.

    Parameters
    ----------
    type : `str`
        Data type of the header, for example STRING, INT, FLOAT, LOGICAL,
        BLANKFIELD or COMMENT.
    keyword : `str`, optional
        The header keyword. BLANKFIELD and COMMENT items have no keyword.
    value : `str`, optional
        Fixed value of the header.
    comment : `str`, optional
        Header comment.
    is_sub_header : `bool`, optional
        Whether the header is written to every sub-scan.
    source : `str`, optional
        Provenance of the header value.
    **fields : `str`
        Provenance fields (TASK, PARAM, EVENT, MULT, METHOD, ALT).
    """

    def __init__(
        self,
        type: str = "STRING",
        keyword: str | None = None,
        value: str | None = None,
        comment: str | None = None,
        is_sub_header: bool = False,
        source: str | None = None,
        **fields: str,
    ):
        if type.upper() in ("BLANKFIELD", "COMMENT") and keyword is not None:
            raise BadArgs(f"Header items of type {type} can not have a keyword")
        self.type = type
        self.keyword = keyword
        self.value = value
        self.comment = comment
        self.is_sub_header = is_sub_header
        self.source: str | None = None
        self.source_fields: dict[str, str] = {}
        if source is not None:
            self.set_source(source, **fields)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.type!r}, keyword={self.keyword!r}, source={self.source!r})"

    @property
    def method(self) -> str | None:
        """Method used to derive the value, if the source is DERIVED."""
        return self.source_fields.get("METHOD")

    @property
    def task(self) -> str | None:
        """Task supplying the value."""
        return self.source_fields.get("TASK")

    def set_source(self, source: str, **fields: str) -> None:
        """Set the provenance of this item.

        Fields that are not relevant to the source are ignored.
        """
        source = normalize_source(source)
        allowed = _SOURCE_ATTRS[source]
        self.source = source
        self.source_fields = {k.upper(): str(v) for k, v in fields.items() if k.upper() in allowed}

    def unset_source(self) -> None:
        """Remove the provenance of this item."""
        self.source = None
        self.source_fields = {}

    def undefine(self) -> None:
        """Clear the value and provenance so that the card is written
        without a value."""
        self.value = None
        self.unset_source()

    def to_xml(self) -> str:
        """Render the item as XML.

        Raises
        ------
        FatalError
            Raised if the provenance is missing a required field.
        """
        element = "SUBHEADER" if self.is_sub_header else "HEADER"
        xml = f"<{element} TYPE={xml_attr(self.type)}"
        for attr, value in (("KEYWORD", self.keyword), ("COMMENT", self.comment), ("VALUE", self.value)):
            if value is not None:
                xml += f" {attr}={xml_attr(value)}"
        if self.source is None:
            return xml + " />\n"

        missing = [k for k in _SOURCE_REQUIRED[self.source] if k not in self.source_fields]
        if missing:
            raise FatalError(
                f"Header {self.keyword} with source {self.source} is missing required fields: {', '.join(missing)}"
            )
        xml += ">\n"
        xml += f"<{_SOURCE_ELEMENTS[self.source]}"
        for attr in _SOURCE_ATTRS[self.source]:
            if attr in self.source_fields:
                xml += f" {attr}={xml_attr(self.source_fields[attr])}"
        xml += " />\n"
        xml += f"</{element}>\n"
        return xml


class Header(ConfigBase):
    """The HEADER_CONFIG: an ordered list of `HeaderItem`.

    Parameters
    ----------
    items : iterable of `HeaderItem`, optional
        Initial items.
    """

    root_element_names = ("HEADER_CONFIG",)

    def __init__(self, items: Iterable[HeaderItem] = ()):
        self.items = list(items)

    def __len__(self) -> int:
        return len(self.items)

    def find_items(self, match: int | str | re.Pattern | Callable[[HeaderItem], bool]) -> list[HeaderItem]:
        """Return the items matching the argument.

        Parameters
        ----------
        match : `int`, `str`, `re.Pattern` or callable
            An index into the item list, an exact keyword, a regular
            expression searched against the keyword or a function that
            returns `True` for matching items.

        Returns
        -------
        items : `list` of `HeaderItem`
            Matching items in header order. Empty if nothing matched.
        """
        if isinstance(match, int):
            if 0 <= match < len(self.items):
                return [self.items[match]]
            return []
        if isinstance(match, re.Pattern):
            return [i for i in self.items if i.keyword is not None and match.search(i.keyword)]
        if callable(match):
            return [i for i in self.items if match(i)]
        return [i for i in self.items if i.keyword is not None and i.keyword == match]

    def item(self, match: int | str | re.Pattern | Callable[[HeaderItem], bool]) -> HeaderItem | None:
        """Return the first item matching the argument, or `None`.

        See `find_items` for the accepted arguments.
        """
        found = self.find_items(match)
        return found[0] if found else None

    def set_ocscfg_filename(self, filename: str) -> None:
        """Force the OCSCFG header to contain the supplied file name.

        The item is located either by its keyword or by the ``getOCSCFG``
        derivation method. Its provenance is cleared.
        """
        magic = "OCSCFG"
        for item in self.find_items(lambda i: i.keyword == magic or i.method == f"get{magic}"):
            item.value = filename
            item.unset_source()

    def apply_source_definitions(self, definitions: Mapping[str, dict[str, str] | None]) -> None:
        """Update item provenance from parsed source definitions.

        Parameters
        ----------
        definitions : `dict`
            Mapping of keyword to definition as returned by
            `parse_source_definitions`. A value of `None` clears the
            provenance of that keyword.
        """
        for item in self.items:
            if item.keyword is None or item.keyword not in definitions:
                continue
            defn = definitions[item.keyword]
            if defn is None:
                item.unset_source()
                continue
            fields = {k: v for k, v in defn.items() if k not in ("SOURCE", "COMMENT")}
            item.set_source(defn["SOURCE"], **fields)
            if "COMMENT" in defn:
                item.comment = defn["COMMENT"]

    def read_source_definitions(self, file: ResourcePathExpression) -> None:
        """Read a source definition file and apply it to this header."""
        self.apply_source_definitions(read_source_definitions(file))

    def remove_excluded_headers(self, keywords: Iterable[str]) -> None:
        """Undefine the items with the given keywords.

        Keywords not present in the header are reported and skipped.
        """
        for keyword in keywords:
            item = self.item(keyword)
            if item is None:
                log.info("Asked to exclude header card '%s' but it is not part of the header", keyword)
                continue
            log.debug("Clearing header %s", keyword)
            item.undefine()

    def verify_header_types(self, fits_header: astropy.io.fits.Header) -> None:
        """Check the values in a FITS header against the declared types.

        Parameters
        ----------
        fits_header : `astropy.io.fits.Header`
            Header to verify. Exclusion is assumed to have been applied.

        Raises
        ------
        OCSConfigError
            Raised listing every header whose value does not match the
            declared type.
        """
        errors = {}
        for item in self.items:
            if item.keyword is None or item.keyword not in fits_header:
                continue
            expected = item.type.upper()
            allowed = _FITS_TYPES.get(expected)
            if allowed is None:
                continue
            value = fits_header[item.keyword]
            # bool is an int subclass but never a valid INT or FLOAT
            if isinstance(value, allowed) and not (isinstance(value, bool) and expected != "LOGICAL"):
                continue
            errors[item.keyword] = (expected, type(value).__name__)

        if errors:
            raise OCSConfigError(
                "\n".join(
                    f"For header '{k}', type expected '{exp}' but found '{act}'."
                    for k, (exp, act) in sorted(errors.items())
                )
            )

    def _process_dom(self, el: ET.Element) -> None:
        items = []
        for child in find_children(el, re.compile(r"^(SUBHEADER|HEADER|HEADER_INCLUDE)"), min=1):
            if child.tag.endswith("_INCLUDE"):
                subitems = find_children(child, re.compile(r"^(SUB)?HEADER$"), min=1)
            elif child.tag in ("HEADER", "SUBHEADER"):
                subitems = [child]
            else:
                raise FatalError(f"Unexpected element {child.tag} in HEADER_CONFIG")

            for i in subitems:
                attr = find_attr(i, "TYPE", "KEYWORD", "COMMENT", "VALUE")
                try:
                    item = HeaderItem(
                        type=attr.get("TYPE", "STRING"),
                        keyword=attr.get("KEYWORD"),
                        value=attr.get("VALUE"),
                        comment=attr.get("COMMENT"),
                        is_sub_header=i.tag.startswith("SUB"),
                    )
                except BadArgs as e:
                    raise XMLBadStructure(str(e)) from e
                for source in SOURCE_TYPES:
                    found = find_children(i, _SOURCE_ELEMENTS[source], min=0, max=1)
                    if found:
                        item.set_source(source, **find_attr(found[0], *_SOURCE_ATTRS[source]))
                        break
                items.append(item)
        self.items = items

        defn = find_children(el, "SOURCE_DEFINITION", min=0, max=1)
        if defn:
            file = defn[0].attrib.get("FILE")
            if file:
                self.read_source_definitions(file)

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        for item in self.items:
            xml += item.to_xml()
        xml += f"</{root}>\n"
        return xml


def _read_lines(file: ResourcePathExpression) -> tuple[ResourcePath, list[str]]:
    uri = ResourcePath(file, forceDirectory=False)
    try:
        content = uri.read().decode()
    except FileNotFoundError as e:
        raise ConfigIOError(f"Could not open file '{uri}': {e}") from e
    return uri, content.splitlines()


def _strip_line(line: str) -> str:
    return line.split("#", 1)[0].strip()


def _resolve_include(base_dir: str | None, path: str) -> str:
    if base_dir is None:
        return path
    return os.path.join(base_dir, path)


def parse_source_definitions(
    lines: Iterable[str], taskmap: Mapping[str, str] | None = None, base_dir: str | None = None
) -> dict[str, dict[str, str] | None]:
    """Parse the lines of a source definition file.

    Parameters
    ----------
    lines : iterable of `str`
        Content of the definition file.
    taskmap : `dict`, optional
        Task mapping inherited from an including file.
    base_dir : `str`, optional
        Directory used to resolve relative INCLUDE paths.

    Returns
    -------
    definitions : `dict`
        Mapping of keyword to a definition dict holding SOURCE, any
        provenance fields and optionally COMMENT. `None` indicates that
        the provenance of the keyword should be removed.

    Raises
    ------
    XMLBadStructure
        Raised if a line can not be understood.
    """
    taskmap = dict(taskmap) if taskmap else {}
    definitions: dict[str, dict[str, str] | None] = {}

    for line in lines:
        line = _strip_line(line)
        if not re.search(r"\w", line):
            continue
        line = line.replace("<", "", 1).replace("/>", "", 1)
        parts = line.split()
        command = parts.pop(0).upper()

        if command == "INCLUDE":
            if not parts:
                raise XMLBadStructure(f"INCLUDE without a file name in line '{line}'")
            included = read_source_definitions(_resolve_include(base_dir, parts[0]), taskmap=taskmap)
            definitions.update(included)
        elif command == "TASKMAP":
            if len(parts) >= 2:
                taskmap[parts[0]] = parts[1]
            else:
                log.warning("TASKMAP requires two values, not %d", len(parts))
        elif len(parts) == 1 and parts[0] == "UNDEF":
            definitions[command] = None
        else:
            if len(parts) < 2:
                raise XMLBadStructure(f"Unrecognized format for line '{line}'")
            defn = {"SOURCE": normalize_source(parts.pop(0))}
            while parts:
                part = parts.pop(0)
                if "=" in part:
                    key, value = part.split("=", 1)
                    defn[key.upper()] = value.replace('"', "")
                else:
                    defn["COMMENT"] = " ".join([part, *parts])
                    break
            if defn["SOURCE"] in ("DERIVED", "DRAMA") and defn.get("TASK") in taskmap:
                defn["TASK"] = taskmap[defn["TASK"]]
            definitions[command] = defn

    return definitions


def read_source_definitions(
    file: ResourcePathExpression, taskmap: Mapping[str, str] | None = None
) -> dict[str, dict[str, str] | None]:
    """Read a source definition file.

    Parameters
    ----------
    file : `str` or `lsst.resources.ResourcePathExpression`
        The file to read. Relative INCLUDE paths are resolved against the
        directory holding this file.
    taskmap : `dict`, optional
        Task mapping inherited from an including file.

    Returns
    -------
    definitions : `dict`
        See `parse_source_definitions`.

    Raises
    ------
    ConfigIOError
        Raised if the file can not be read.
    """
    if not file:
        raise BadArgs("Must supply a definition file name")
    uri, lines = _read_lines(file)
    log.debug("Reading header source definitions from %s", uri)
    base_dir = os.path.dirname(uri.ospath) if uri.isLocal else None
    return parse_source_definitions(lines, taskmap=taskmap, base_dir=base_dir)


def read_header_exclusion_file(file: ResourcePathExpression) -> list[str]:
    """Read a header exclusion file.

    Parameters
    ----------
    file : `str` or `lsst.resources.ResourcePathExpression`
        The file to read.

    Returns
    -------
    keywords : `list` of `str`
        Sorted keywords to exclude. Empty if the file does not exist.
    """
    uri = ResourcePath(file, forceDirectory=False)
    if not uri.exists():
        log.debug("Header exclusion file %s does not exist", uri)
        return []
    log.info("Processing header exclusion file '%s'", uri)
    base_dir = os.path.dirname(uri.ospath) if uri.isLocal else None

    _, lines = _read_lines(uri)
    excluded: set[str] = set()
    for line in lines:
        line = _strip_line(line)
        if not re.search(r"\w", line):
            continue
        addback = line.startswith("+")
        if addback:
            line = line[1:].strip()

        match = re.match(r"^INCLUDE\s+(.*)$", line)
        if match:
            keys = read_header_exclusion_file(_resolve_include(base_dir, match.group(1)))
        else:
            keys = [line]

        if addback:
            excluded.difference_update(keys)
        else:
            excluded.update(keys)
    return sorted(excluded)
