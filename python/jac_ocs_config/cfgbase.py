# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Base class shared by every configuration component.

Each component can be constructed empty, from an XML element, from an XML
string or from a file, and can render itself back to XML. Components
advertise optional behavior by inheriting from the capability interfaces
defined here.
"""

from __future__ import annotations

__all__ = ("ConfigBase", "HasTasks", "HasDtdRequires", "RequiresFullConfig")

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from .version import __version__
from .xmlhelper import find_config_root, indent_xml_string, parse_xml, read_xml

if TYPE_CHECKING:
    from lsst.resources import ResourcePathExpression

log = logging.getLogger(__name__)

_C = TypeVar("_C", bound="ConfigBase")


class HasTasks(ABC):
    """Interface for components that require OCS tasks."""

    @abstractmethod
    def tasks(self) -> list[str]:
        """Return the names of the tasks that use this configuration."""
        raise NotImplementedError()


class HasDtdRequires(ABC):
    """Interface for components whose XML needs other components to be
    present in the same document."""

    @abstractmethod
    def dtdrequires(self) -> list[str]:
        """Return the root configuration attribute names that must be
        written alongside this component."""
        raise NotImplementedError()


class RequiresFullConfig(ABC):
    """Interface for components with tasks that need the whole document."""

    @abstractmethod
    def requires_full_config(self) -> list[str]:
        """Return the tasks that must receive the full configuration."""
        raise NotImplementedError()


class ConfigBase:
    """Base class for configuration components.

    Subclasses define the acceptable root element names and implement
    ``_process_dom`` to populate themselves from an element and
    ``_to_xml`` to render themselves.
    """

    root_element_names: ClassVar[tuple[str, ...]] = ()
    """Names of the XML element holding this configuration. The first
    entry is used when writing."""

    @classmethod
    def get_root_element_name(cls) -> str:
        """Return the element name used when writing."""
        return cls.root_element_names[0]

    @classmethod
    def from_element(cls: type[_C], el: ET.Element, **kwargs: Any) -> _C:
        """Construct from a parsed XML tree.

        Parameters
        ----------
        el : `xml.etree.ElementTree.Element`
            Either the configuration element itself or an ancestor
            containing exactly one such element.
        **kwargs
            Additional parameters passed to the constructor.

        Returns
        -------
        cfg : `ConfigBase`
            The populated configuration.

        Raises
        ------
        XMLConfigMissing
            Raised if the configuration element can not be found.
        """
        root = find_config_root(el, cls.root_element_names)
        assert root is not None
        return cls._from_root(root, **kwargs)

    @classmethod
    def find_in(cls: type[_C], el: ET.Element, **kwargs: Any) -> _C | None:
        """Construct from a tree if the configuration is present.

        Returns `None` if the tree contains no matching element.
        """
        root = find_config_root(el, cls.root_element_names, required=False)
        if root is None:
            return None
        return cls._from_root(root, **kwargs)

    @classmethod
    def from_xml(cls: type[_C], xml: str, **kwargs: Any) -> _C:
        """Construct from a string of XML."""
        return cls.from_element(parse_xml(xml), **kwargs)

    @classmethod
    def from_file(cls: type[_C], file: ResourcePathExpression, **kwargs: Any) -> _C:
        """Construct from an XML file."""
        return cls.from_element(read_xml(file), **kwargs)

    @classmethod
    def from_entity_file(cls: type[_C], file: ResourcePathExpression, **kwargs: Any) -> _C:
        """Construct from an XML entity file.

        Entity files are fragments that may lack a single root element.
        """
        return cls.from_element(read_xml(file, wrapper="EntityWrapper"), **kwargs)

    @classmethod
    def _from_root(cls: type[_C], root: ET.Element, **kwargs: Any) -> _C:
        cfg = cls(**kwargs)
        cfg._process_dom(root)
        return cfg

    def _process_dom(self, el: ET.Element) -> None:
        raise NotImplementedError()

    def _to_xml(self) -> str:
        raise NotImplementedError()

    def _introductory_xml(self) -> str:
        return f"<!-- {type(self).__name__} rendered by jac_ocs_config {__version__} -->\n"

    def to_xml(self, indent: bool = True) -> str:
        """Render the configuration as XML.

        Parameters
        ----------
        indent : `bool`, optional
            If `True` the result is re-indented for readability.

        Returns
        -------
        xml : `str`
            The XML representation.
        """
        xml = self._to_xml()
        return indent_xml_string(xml) if indent else xml
