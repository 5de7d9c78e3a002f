# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

import os.path
import unittest

import astropy.units as u
from astropy.coordinates import Angle

from jac_ocs_config import (
    TCS,
    BadArgs,
    FatalError,
    FixedCoords,
    NamedBody,
    Offset,
    TargetBase,
    XMLBadStructure,
)
from jac_ocs_config.tcs import Jiggle, Secondary

TESTDIR = os.path.abspath(os.path.dirname(__file__))


class TCSTestCase(unittest.TestCase):
    """Test telescope configuration parsing and manipulation."""

    def setUp(self):
        self.grid = TCS.from_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"))
        self.scan = TCS.from_file(os.path.join(TESTDIR, "data", "scuba2_scan.xml"))

    def test_parse(self):
        tcs = self.grid
        self.assertEqual(tcs.telescope, "JCMT")
        self.assertEqual(tcs.get_tags(), ["SCIENCE", "REFERENCE"])
        self.assertEqual(tcs.get_non_sci_tags(), ["REFERENCE"])
        self.assertEqual(tcs.get_target().name, "OMC1")
        self.assertEqual(tcs.get_tracking_system("SCIENCE"), "J2000")
        self.assertEqual(tcs.get_offset("REFERENCE").arcsec(), (-600.0, 0.0))
        self.assertIsNone(tcs.get_offset("SCIENCE"))
        self.assertEqual(tcs.get_coords("SCIENCE").telescope, "JCMT")

        self.assertEqual(tcs.slew(), {"OPTION": "SHORTEST_SLEW"})
        rotator = tcs.rotator()
        self.assertEqual(rotator["SYSTEM"], "FPLANE")
        self.assertEqual(rotator["SLEW_OPTION"], "LONGEST_TRACK")
        self.assertEqual(rotator["PA"][0].degree, 0.0)
        self.assertEqual(tcs.dome_mode, "STOPPED")
        self.assertEqual(tcs.dome_azel, (120.0, 45.0))

        obs_area = tcs.get_obs_area()
        self.assertEqual(obs_area.mode(), "offsets")
        self.assertEqual(len(obs_area.offsets()), 4)
        self.assertEqual(obs_area.offsets()[1].arcsec(), (30.0, -30.0))

        secondary = tcs.get_secondary()
        self.assertEqual(secondary.smu_mode(), "chop")
        self.assertEqual(secondary.motion, "CONTINUOUS")
        self.assertEqual(secondary.chop()["THROW"], 60.0)
        self.assertEqual(secondary.chop()["PA"].degree, 90.0)
        self.assertEqual(tcs.tasks(), ["PTCS", "SMU"])
        self.assertEqual(tcs.dtdrequires(), ["instrument_setup"])

    def test_legacy_parse(self):
        tcs = self.scan
        # Old style targets give the tag on the target element
        self.assertEqual(tcs.get_tags(), ["SCIENCE", "SKY"])
        self.assertIsInstance(tcs.get_target(), NamedBody)
        self.assertEqual(tcs.get_target().name, "Mars")
        self.assertEqual(tcs.get_coords("SKY").system, "AZEL")
        self.assertEqual(tcs.slew(), {"OPTION": "TRACK_TIME", "TRACK_TIME": "600"})
        self.assertEqual(tcs.aperture_name, "UNNAMED_AP")
        self.assertEqual(tcs.aperture_xy, (0.0, 0.0))
        self.assertIsNone(tcs.get_secondary())
        self.assertEqual(tcs.tasks(), ["PTCS"])

        obs_area = tcs.get_obs_area()
        self.assertEqual(obs_area.mode(), "area")
        self.assertEqual(obs_area.maparea(), {"HEIGHT": 600.0, "WIDTH": 600.0})
        scan = obs_area.scan()
        self.assertEqual(scan["VELOCITY"], 60.0)
        self.assertEqual(scan["DY"], 30.0)
        self.assertEqual(scan["PATTERN"], "RASTER")
        self.assertEqual([pa.degree for pa in scan["PA"]], [0.0, 90.0])

        # Written in the modern dialect
        xml = tcs.to_xml()
        self.assertIn('<BASE TYPE="SKY">', xml)
        self.assertIn("<SCAN_AREA>", xml)
        self.assertIn('<SLEW OPTION="TRACK_TIME" TRACK_TIME="600" />', xml)
        self.assertIn('<INST_AP NAME="UNNAMED_AP" X="0.0" Y="0.0" />', xml)
        again = TCS.from_xml(xml)
        self.assertEqual(again.get_tags(), ["SCIENCE", "SKY"])
        self.assertEqual(again.get_target().name, "Mars")

    def test_round_trip(self):
        xml = self.grid.to_xml()
        self.assertIn('<TCS_CONFIG TELESCOPE="JCMT">', xml)
        self.assertIn('<TRACKING_SYSTEM SYSTEM="J2000" />', xml)
        self.assertIn('<DOME MODE="STOPPED" AZ="120.0" EL="45.0" />', xml)
        again = TCS.from_xml(xml)
        self.assertEqual(again.get_tags(), self.grid.get_tags())
        self.assertEqual(again.get_offset("REFERENCE").arcsec(), (-600.0, 0.0))
        self.assertEqual(again.get_secondary().smu_mode(), "chop")
        self.assertEqual(len(again.get_obs_area().offsets()), 4)

    def test_tag_synonyms(self):
        tcs = self.grid
        self.assertEqual(tcs.resolve_tag("BASE"), "SCIENCE")
        self.assertEqual(tcs.resolve_tag("sky"), "REFERENCE")
        self.assertIsNone(tcs.resolve_tag("OTHER"))
        self.assertEqual(tcs.resolve_tag("OTHER", allow_synthetic=True), "OTHER")
        self.assertEqual(tcs.get_coords("BASE").name, "OMC1")
        self.assertEqual(tcs.get_offset("SKY").arcsec(), (-600.0, 0.0))

        # Setting with a synonym replaces the existing tag
        tcs.set_coords("SKY", FixedCoords.from_strings("05:00:00", "-05:00:00", name="OFF"))
        self.assertEqual(tcs.get_tags(), ["SCIENCE", "REFERENCE"])
        self.assertEqual(tcs.get_coords("REFERENCE").name, "OFF")

        tcs.clear_coords("SKY")
        self.assertEqual(tcs.get_tags(), ["SCIENCE"])
        tcs.clear_target()
        self.assertIsNone(tcs.get_target())

    def test_duplicate_synonyms(self):
        xml = """<TCS_CONFIG TELESCOPE="JCMT">
  <BASE TYPE="SCIENCE">
    <target><targetName>Mars</targetName><namedSystem TYPE="major" /></target>
  </BASE>
  <BASE TYPE="Base">
    <target><targetName>Jupiter</targetName><namedSystem TYPE="major" /></target>
  </BASE>
</TCS_CONFIG>
"""
        with self.assertRaises(XMLBadStructure):
            TCS.from_xml(xml)

        tcs = TCS()
        with self.assertRaises(FatalError):
            tcs.set_all_target_info(
                {
                    "REFERENCE": TargetBase(coords=NamedBody("Mars")),
                    "sky": TargetBase(coords=NamedBody("Jupiter")),
                }
            )

        # Distinct logical positions are accepted
        tcs.set_all_target_info(
            {"BASE": TargetBase(coords=NamedBody("Mars")), "SKY": TargetBase(coords=NamedBody("Jupiter"))}
        )
        self.assertEqual(tcs.get_tags(), ["BASE", "SKY"])
        self.assertEqual(tcs.get_target().name, "Mars")
        self.assertEqual(tcs.get_coords("REFERENCE").name, "Jupiter")

    def test_target_sync(self):
        tcs = self.grid
        new = FixedCoords.from_strings("18:00:00", "+10:00:00", name="NEWSRC")
        untouched = tcs.set_target_sync(new)
        self.assertEqual(untouched, [])
        self.assertEqual(tcs.get_target().name, "NEWSRC")
        # The reference was at the science position so it moves but keeps
        # its offset
        self.assertEqual(tcs.get_coords("REFERENCE").name, "NEWSRC")
        self.assertEqual(tcs.get_offset("REFERENCE").arcsec(), (-600.0, 0.0))

        # A distant position is not touched
        tcs.set_coords("REFERENCE", FixedCoords.from_strings("01:00:00", "+60:00:00", name="FAR"))
        untouched = tcs.set_target_sync(FixedCoords.from_strings("18:30:00", "+10:00:00", name="OTHER"))
        self.assertEqual(untouched, ["REFERENCE"])
        self.assertEqual(tcs.get_coords("REFERENCE").name, "FAR")

        # A position without coordinates can not follow the target
        tcs.set_coords(None, TargetBase(tag="GUIDE"))
        untouched = tcs.set_target_sync(NamedBody("Saturn"))
        self.assertEqual(untouched, ["REFERENCE", "GUIDE"])
        self.assertIsNone(tcs.get_coords("GUIDE"))
        self.assertEqual(tcs.get_target().name, "Saturn")

    def test_target_sync_without_science(self):
        tcs = TCS(telescope="JCMT")
        off = TargetBase(
            tag="REFERENCE",
            coords=FixedCoords.from_strings("01:00:00", "+60:00:00", name="OFF"),
            offset=Offset.from_arcsec(10.0, 0.0),
        )
        tcs.set_coords(None, off)
        with self.assertRaises(FatalError):
            tcs.set_target_sync(FixedCoords.from_strings("18:00:00", "+10:00:00"))

        tcs = TCS(telescope="JCMT")
        tcs.set_coords("REFERENCE", FixedCoords.from_strings("01:00:00", "+60:00:00", name="OFF"))
        self.assertEqual(tcs.set_target_sync(NamedBody("Jupiter")), [])
        self.assertEqual(tcs.get_coords("REFERENCE").name, "Jupiter")
        self.assertEqual(tcs.get_target().name, "Jupiter")
        self.assertEqual(tcs.get_target().telescope, "JCMT")

    def test_slew(self):
        tcs = TCS()
        tcs.set_target(NamedBody("Mars"))
        self.assertIn('<SLEW OPTION="SHORTEST_SLEW" />', tcs.to_xml())

        tcs.set_slew(track_time=120)
        self.assertIn('<SLEW OPTION="TRACK_TIME" TRACK_TIME="120" />', tcs.to_xml())

        tcs.set_slew(cycle=2)
        self.assertIn('<SLEW OPTION="CYCLE" CYCLE="2" />', tcs.to_xml())

        tcs.set_slew(cycle=2, track_time=120)
        with self.assertRaises(FatalError):
            tcs.to_xml()

        tcs.set_slew(option="CYCLE")
        with self.assertRaises(FatalError):
            tcs.to_xml()

        tcs.set_slew(option="SHORTEST_SLEW")
        tcs.set_rotator("TRACKING", slew_option="TRACK_TIME")
        with self.assertRaises(FatalError):
            tcs.to_xml()

    def test_dome(self):
        tcs = TCS()
        tcs.dome_mode = "current"
        self.assertEqual(tcs.dome_mode, "CURRENT")
        with self.assertRaises(BadArgs):
            tcs.dome_mode = "SPINNING"

    def test_secondary(self):
        secondary = Secondary()
        self.assertEqual(secondary.smu_mode(), "none")
        secondary.jiggle = Jiggle("5x5", scale=7.5)
        self.assertEqual(secondary.smu_mode(), "jiggle")
        secondary.set_chop(system="AZEL", throw=30.0, pa=Angle(90.0, unit=u.deg))
        self.assertEqual(secondary.smu_mode(), "jiggle_chop")
        secondary.set_timing(chops_per_jig=4)
        self.assertEqual(secondary.smu_mode(), "chop_jiggle")

        again = Secondary.from_xml(secondary.to_xml())
        self.assertEqual(again.smu_mode(), "chop_jiggle")
        self.assertEqual(again.timing()["CHOPS_PER_JIG"], 4)
        self.assertEqual(again.jiggle.name, "5x5")
        self.assertEqual(again.jiggle.scale, 7.5)

        secondary.set_timing(n_jigs_on=5, n_cyc_off=2)
        again = Secondary.from_xml(secondary.to_xml())
        self.assertEqual(again.smu_mode(), "jiggle_chop")
        self.assertEqual(again.timing()["N_JIGS_ON"], 5)
        self.assertEqual(again.timing()["N_CYC_OFF"], 2)

        secondary.clear_chop()
        self.assertEqual(secondary.smu_mode(), "jiggle")

        secondary.set_chop(system="AZEL", throw=30.0)
        self.assertEqual(secondary.smu_mode(), "jiggle_chop")
        secondary.set_chop()
        self.assertEqual(secondary.chop(), {})
        self.assertEqual(secondary.smu_mode(), "jiggle")
        empty = Secondary()
        empty.set_chop()
        self.assertEqual(empty.smu_mode(), "none")

    def test_jiggle_points(self):
        self.assertEqual(Jiggle("5x5").npts(), 25)
        self.assertEqual(Jiggle("SMU_3x7").npts(), 21)
        self.assertEqual(Jiggle("HARP4").npts(), 16)
        self.assertEqual(Jiggle("custom", pattern=[(0.0, 0.0), (1.0, 0.0)]).npts(), 2)
        with self.assertRaises(FatalError):
            Jiggle("mystery").npts()


if __name__ == "__main__":
    unittest.main()
