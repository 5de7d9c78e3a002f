# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Estimate the duration of an observation from its configuration.

The estimate counts the integration steps on and off source for the
observing mode and adds fixed overheads for telescope moves, sequence
starts, nods, focus moves and calibrations.
"""

from __future__ import annotations

__all__ = (
    "estimate_duration",
    "SEQUENCE_OVERHEAD",
    "OBSERVATION_OVERHEAD",
    "TELESCOPE_REFERENCE_OVERHEAD",
    "TELESCOPE_NOD_OVERHEAD",
    "SMU_OVERHEAD",
    "CALIBRATION_OVERHEAD",
)

import logging
import math
from typing import TYPE_CHECKING

from .errors import FatalError

if TYPE_CHECKING:
    from .jos import JOS
    from .obssummary import ObsSummary
    from .tcs.obsarea import ObsArea
    from .tcs.secondary import Secondary

log = logging.getLogger(__name__)

SEQUENCE_OVERHEAD = 5.0
"""Seconds to start each sequence."""

OBSERVATION_OVERHEAD = 40.0
"""Seconds of start up and shut down per observation."""

TELESCOPE_REFERENCE_OVERHEAD = 5.0
"""Seconds for each telescope move to or from a reference position."""

TELESCOPE_NOD_OVERHEAD = 2.0
"""Seconds for each telescope nod."""

SMU_OVERHEAD = 2.0
"""Seconds for each secondary mirror focus move."""

CALIBRATION_OVERHEAD = TELESCOPE_REFERENCE_OVERHEAD
"""Seconds of overhead for each calibration."""


def _offsets_mode(obs_area: ObsArea, what: str) -> int:
    mode = obs_area.mode()
    if mode != "offsets":
        raise FatalError(
            f"Inconsistency in configuration. {what} requested but obsArea does not specify "
            f"offset mode (mode='{mode}' not 'offsets')"
        )
    return len(obs_area.offsets())


def _jiggle_points(secondary: Secondary | None) -> int:
    if secondary is None:
        raise FatalError("Unable to determine duration since there is no secondary mirror information")
    if secondary.jiggle is None:
        raise FatalError("Unable to determine duration since the secondary mirror has no jiggle pattern")
    return secondary.jiggle.npts()


def _nods(jos: JOS, obs_type: str, noffsets: int) -> int:
    # AB for focus, ABBA otherwise
    nod_set_size = 1 if obs_type.startswith("focus") else 2
    return (jos.num_nod_sets or 0) * nod_set_size * noffsets


def estimate_duration(
    obs_summary: ObsSummary, jos: JOS, obs_area: ObsArea, secondary: Secondary | None = None
) -> float:
    """Estimate the duration of an observation.

    Parameters
    ----------
    obs_summary : `ObsSummary`
        Observing mode summary.
    jos : `JOS`
        Sequencer parameters.
    obs_area : `ObsArea`
        Observing area.
    secondary : `Secondary`, optional
        Secondary mirror configuration. Required for jiggle modes.

    Returns
    -------
    duration : `float`
        Estimated duration in seconds.

    Raises
    ------
    FatalError
        Raised if the configuration is inconsistent, if the observing mode
        is not supported or if a required parameter is missing.

    Notes
    -----
    Skydips are not modelled and only incur the fixed overheads.
    """
    if obs_summary is None or jos is None or obs_area is None:
        raise FatalError("Unable to determine duration without observation summary, JOS and observing area")

    map_mode = (obs_summary.mapping_mode or "").lower()
    sw_mode = (obs_summary.switching_mode or "").lower()
    obs_type = (obs_summary.obs_type or "").lower()

    step = jos.step_time
    if step is None or step <= 0:
        raise FatalError("JOS Steptime must be positive")

    nsteps: float = 0
    nrefs = 0
    ntel_ref_moves = 0
    nsteps_ref: float = 0
    nnods = 0
    nsmu = 1
    nseq = 0

    if "skydip" in obs_type:
        log.debug("Skydip duration only includes overheads")

    elif "raster" in map_mode or "scan" in map_mode:
        mode = obs_area.mode()
        if mode != "area":
            raise FatalError(
                "Inconsistency in configuration. Scan map requested but obsArea does not specify "
                f"a map area (mode='{mode}' not 'area')"
            )
        dims = obs_area.maparea()
        scan = obs_area.scan()
        dx = scan["VELOCITY"] * step
        dy = scan["DY"]
        nsteps = dims["HEIGHT"] * dims["WIDTH"] / (dx * dy)
        log.debug("Number of steps for map = %f (%f x %f in %f x %f)", nsteps, dx, dy, dims["HEIGHT"], dims["WIDTH"])

        if dims["HEIGHT"] == dims["WIDTH"]:
            rowlen = dims["HEIGHT"]
            ysize = dims["WIDTH"]
        else:
            # Scan along the longest row implied by any scan angle
            map_pa = obs_area.posang.degree
            rowlen = None
            ysize = None
            for pa in scan.get("PA", []):
                ang = (map_pa - pa.degree + 180.0) % 360.0 - 180.0
                key, okey = ("WIDTH", "HEIGHT") if abs(90 - ang) <= 45 else ("HEIGHT", "WIDTH")
                if rowlen is None or rowlen < dims[key]:
                    rowlen = dims[key]
                    ysize = dims[okey]
            if rowlen is None or ysize is None:
                rowlen = dims["HEIGHT"]
                ysize = dims["WIDTH"]

        nscans = math.ceil(ysize / dy)
        rsteps = math.ceil(rowlen / dx)
        nrows_per_ref = max(1, int((jos.steps_btwn_refs or 0) / rsteps))
        nrefs = math.ceil(nscans / nrows_per_ref)
        nsteps_ref = math.ceil(math.sqrt(nrows_per_ref * rsteps))
        # The final reference does not need a return move
        ntel_ref_moves = max(2, 2 * nrefs - 1)
        nseq = nrefs + nscans

    elif map_mode == "jiggle" and (sw_mode == "chop" or sw_mode.startswith("freqsw")):
        noffsets = _offsets_mode(obs_area, "Jiggle")
        njigs = _jiggle_points(secondary)
        assert secondary is not None

        smu_mode = secondary.smu_mode()
        jos_mult = jos.jos_mult or 0
        if smu_mode == "chop_jiggle":
            nsteps = jos_mult * njigs * 2
        elif smu_mode == "jiggle_chop":
            timing = secondary.timing()
            if not timing.get("N_JIGS_ON") or timing.get("N_CYC_OFF") is None:
                raise FatalError("Jiggle chop timing requires N_JIGS_ON and N_CYC_OFF")
            nsteps = jos_mult * njigs
            nsteps += (njigs / timing["N_JIGS_ON"]) * timing["N_CYC_OFF"]
        elif smu_mode == "jiggle":
            nsteps = jos_mult * njigs
        else:
            raise FatalError(f"Unexpected smu mode: {smu_mode}")
        log.debug("Nsteps = %f", nsteps)

        if sw_mode == "chop":
            nnods = _nods(jos, obs_type, noffsets)
            log.debug("Number of nods = %d", nnods)
            nsteps *= nnods * 2
            nseq = nnods * 2
        else:
            log.debug("No nodding")
            nseq = jos.num_cycles or 0

    elif map_mode == "grid" and sw_mode == "chop":
        noffsets = _offsets_mode(obs_area, "Grid")
        nsteps = (jos.jos_mult or 0) * 2
        nnods = _nods(jos, obs_type, noffsets)
        nsteps *= nnods * 2
        nseq = nnods * 2

    elif ("grid" in map_mode or "jiggle" in map_mode) and sw_mode == "pssw":
        noffsets = _offsets_mode(obs_area, "Grid")
        is_jiggle = "jiggle" in map_mode
        njigs = _jiggle_points(secondary) if is_jiggle else 1

        jos_min = jos.jos_min or 0
        if jos_min <= 0:
            raise FatalError("JOS_MIN must be positive for position switched observations")
        nchunks = (jos.num_cycles or 0) * noffsets
        nsteps = nchunks * jos_min
        log.debug("Nchunks = %d NStepsOn = %f", nchunks, nsteps)

        n_chunks_per_ref = 1
        if noffsets > 1:
            min_per_ref = int((jos.steps_btwn_refs or 0) / jos_min)
            if min_per_ref > 1 and jos.shareoff:
                n_chunks_per_ref = min_per_ref
        nrefs = math.ceil(nchunks / n_chunks_per_ref)

        if jos.shareoff:
            if is_jiggle:
                nsteps_ref = (jos_min / njigs) * math.sqrt(njigs)
            else:
                nsteps_ref = jos_min * math.sqrt(n_chunks_per_ref)
        else:
            # An unshared reference can not be spread across offsets
            nsteps_ref = jos_min

        # OFF ON ON OFF OFF ON ON OFF
        ntel_ref_moves = nrefs
        nseq = nrefs + nchunks

    else:
        raise FatalError(f"Unrecognized mapping mode for duration calculation: {map_mode}/{sw_mode}")

    npercyc = nsteps + nrefs * nsteps_ref + nnods * nsteps_ref
    log.debug("Steps on+off = %f, refs * steps = %d * %f", npercyc, nrefs, nsteps_ref)

    if obs_type.startswith("focus"):
        nsmu = jos.num_focus_steps or 1

    ntot = npercyc * nsmu

    # A cal is at least as long as a reference
    n_calsamples = jos.n_calsamples or 0
    cal_len: float = n_calsamples
    if cal_len:
        cal_len = max(nsteps_ref, cal_len)
    ncals = 0
    if n_calsamples > 0:
        if not jos.steps_btwn_cals:
            raise FatalError("JOS STEPS_BTWN_CALS must be positive when calibrations are requested")
        ncals = math.ceil(ntot / jos.steps_btwn_cals)

    # The sky cal shares the reference so only the excess counts
    if nrefs:
        cal_len -= nsteps_ref
    cal_len = max(cal_len, 0)
    nsteps_cal = cal_len * ncals

    if "focus" in obs_type or "pointing" in obs_type:
        ncals = 0
    log.debug(
        "NCals = %d Nrefs = %d nsteps_cal = %f Tel moves = %d", ncals, nrefs, nsteps_cal, ntel_ref_moves
    )

    duration = (
        npercyc * step
        + ntel_ref_moves * TELESCOPE_REFERENCE_OVERHEAD
        + nseq * SEQUENCE_OVERHEAD
        + nnods * TELESCOPE_NOD_OVERHEAD
    )

    duration *= nsmu
    duration += (nsmu - 1) * SMU_OVERHEAD

    if ncals > 0:
        duration += nsteps_cal * step + ncals * CALIBRATION_OVERHEAD

    duration += OBSERVATION_OVERHEAD
    log.debug("Estimated duration: %f sec", duration)
    return duration
