# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Configuration of the Observation Sequencer (JOS)."""

from __future__ import annotations

__all__ = ("JOS", "JOS_PARAMETERS", "OBSOLETE_PARAMETERS")

import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .cfgbase import ConfigBase, HasDtdRequires
from .errors import BadArgs, XMLEmpty
from .xmlhelper import find_attr, find_children, get_pcdata, xml_attr, xml_escape

log = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    return int(float(value))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


def _to_upper(value: Any) -> str:
    return str(value).upper()


JOS_PARAMETERS: dict[str, Callable[[Any], Any]] = {
    "NUM_CYCLES": _to_int,
    "NUM_NOD_SETS": _to_int,
    "STEP_TIME": float,
    "SHAREOFF": _to_bool,
    "JOS_MULT": _to_int,
    "JOS_MIN": _to_int,
    "N_CALSAMPLES": _to_int,
    "NUM_FOCUS_STEPS": _to_int,
    "FOCUS_STEP": float,
    "FOCUS_AXIS": _to_upper,
    "STEPS_BTWN_REFS": _to_int,
    "STEPS_BTWN_CALS": _to_int,
    "START_INDEX": _to_int,
}
"""Recognized recipe parameters and the converter applied to each value."""

OBSOLETE_PARAMETERS = {
    "STEPS_PER_REF": "STEPS_BTWN_REFS",
    "STEPS_PER_CAL": "STEPS_BTWN_CALS",
    "START_ROW": "START_INDEX",
}
"""Legacy parameter names and their replacements."""


def _parameter(name: str, doc: str) -> property:
    def getter(self: JOS) -> Any:
        return self._parameters.get(name)

    def setter(self: JOS, value: Any) -> None:
        self.set_parameters({name: value})

    return property(getter, setter, doc=doc)


def _obsolete_parameter(old: str) -> property:
    new = OBSOLETE_PARAMETERS[old]

    def getter(self: JOS) -> Any:
        log.warning("%s is deprecated. Use %s instead", old.lower(), new.lower())
        return self._parameters.get(new)

    def setter(self: JOS, value: Any) -> None:
        log.warning("%s is deprecated. Use %s instead", old.lower(), new.lower())
        self.set_parameters({new: value})

    return property(getter, setter, doc=f"Deprecated alias for ``{new.lower()}``.")


class JOS(ConfigBase, HasDtdRequires):
    """Sequencing recipe and its parameters.

    Parameters
    ----------
    recipe : `str`, optional
        Name of the JOS recipe.
    tasks : sequence of `str`, optional
        Tasks participating in this configuration, in the order they are
        written.
    **parameters
        Recipe parameters, see `set_parameters`.
    """

    root_element_names = ("JOS_CONFIG",)

    num_cycles = _parameter("NUM_CYCLES", "Number of complete loops round the sequence.")
    num_nod_sets = _parameter("NUM_NOD_SETS", "Number of nod repeats.")
    step_time = _parameter("STEP_TIME", "Step time in seconds.")
    shareoff = _parameter("SHAREOFF", "Whether the reference position is shared among on positions.")
    jos_mult = _parameter("JOS_MULT", "Number of steps to integrate in a single nod position.")
    jos_min = _parameter("JOS_MIN", "Minimum number of sequence steps.")
    n_calsamples = _parameter("N_CALSAMPLES", "Number of samples to integrate for the cal observation.")
    num_focus_steps = _parameter("NUM_FOCUS_STEPS", "Number of SMU positions in a focus observation.")
    focus_step = _parameter("FOCUS_STEP", "Size of each focus SMU movement in mm.")
    focus_axis = _parameter("FOCUS_AXIS", "Focus axis to move (X, Y or Z).")
    steps_btwn_refs = _parameter("STEPS_BTWN_REFS", "Maximum number of steps between sky references.")
    steps_btwn_cals = _parameter("STEPS_BTWN_CALS", "Number of steps allowed before a new CAL.")
    start_index = _parameter("START_INDEX", "Initial raster row or grid offset position.")

    steps_per_ref = _obsolete_parameter("STEPS_PER_REF")
    steps_per_cal = _obsolete_parameter("STEPS_PER_CAL")
    start_row = _obsolete_parameter("START_ROW")

    def __init__(self, recipe: str | None = None, tasks: Sequence[str] = (), **parameters: Any):
        self.recipe = recipe
        self.tasks = list(tasks)
        self._parameters: dict[str, Any] = {}
        if parameters:
            self.set_parameters(parameters)

    def dtdrequires(self) -> list[str]:
        return ["instrument_setup"]

    def parameters(self) -> dict[str, Any]:
        """Return the defined recipe parameters keyed by upper case name."""
        return {k: self._parameters[k] for k in JOS_PARAMETERS if k in self._parameters}

    def set_parameters(self, parameters: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        """Update recipe parameters.

        Legacy names are mapped to their replacements. If both the legacy
        and the current name are supplied the current name wins.

        Parameters
        ----------
        parameters : `dict`, optional
            Parameter values keyed by name (case insensitive).
        **kwargs
            Additional parameter values.

        Raises
        ------
        BadArgs
            Raised if a value can not be converted to the parameter type.
        """
        given = {k.upper(): v for k, v in {**(parameters or {}), **kwargs}.items()}
        for old, new in OBSOLETE_PARAMETERS.items():
            if old in given and new in given:
                del given[old]

        for name, value in given.items():
            if name in OBSOLETE_PARAMETERS:
                name = OBSOLETE_PARAMETERS[name]
            converter = JOS_PARAMETERS.get(name)
            if converter is None:
                log.debug("Ignoring unrecognized JOS parameter %s", name)
                continue
            if value is None:
                self._parameters.pop(name, None)
                continue
            try:
                self._parameters[name] = converter(value)
            except (TypeError, ValueError) as e:
                raise BadArgs(f"Bad value for JOS parameter {name}: {value!r}") from e

    def _process_dom(self, el: ET.Element) -> None:
        task_list = get_pcdata(el, "tasks")
        tasks = task_list.split() if task_list else []
        if not tasks:
            raise XMLEmpty("No tasks specified in JOS_CONFIG")
        self.tasks = tasks

        recipe = find_children(el, "recipe", min=1, max=1)[0]
        self.recipe = find_attr(recipe, "NAME").get("NAME")
        par = find_children(recipe, "parameters", min=1, max=1)[0]
        self._parameters = {}
        self.set_parameters(find_attr(par, *OBSOLETE_PARAMETERS, *JOS_PARAMETERS))

    def _to_xml(self) -> str:
        root = self.get_root_element_name()
        xml = f"<{root}>\n"
        xml += self._introductory_xml()
        xml += f"<tasks>{xml_escape(' '.join(self.tasks))}</tasks>\n"
        xml += f"<recipe NAME={xml_attr(self.recipe or '')}>\n"
        xml += "<parameters\n"
        for name, value in self.parameters().items():
            if isinstance(value, bool):
                value = int(value)
            xml += f"            {name}={xml_attr(value)}\n"
        xml += "/>\n"
        xml += "</recipe>\n"
        xml += f"</{root}>\n"
        return xml
