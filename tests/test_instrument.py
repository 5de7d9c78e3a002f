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

from jac_ocs_config import POL, SCUBA2, BadArgs, FatalError, Frontend, Instrument, Receptor

TESTDIR = os.path.abspath(os.path.dirname(__file__))


class InstrumentTestCase(unittest.TestCase):
    """Test the instrument setup."""

    def setUp(self):
        self.harp = Instrument.from_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"))

    def test_parse(self):
        harp = self.harp
        self.assertEqual(harp.name, "HARPB")
        self.assertEqual(harp.focal_station, "NASMYTH_R")
        self.assertAlmostEqual(harp.bandwidth, 1.9e9)
        self.assertEqual(harp.if_center_freq, 5.0)
        self.assertEqual(harp.receptor_ids(), ["H00", "H01", "H02"])
        self.assertEqual(harp.working_receptor_ids(), ["H00", "H01"])
        self.assertTrue(harp.contains_id("h01"))
        self.assertFalse(harp.contains_id("H99"))
        self.assertEqual(harp.reference_receptor(), "H00")
        self.assertEqual(harp.receptor("H01").xypos, (15.0, -15.0))
        self.assertEqual(harp.receptor_offset("H02").arcsec(), (-15.0, 15.0))
        with self.assertRaises(FatalError):
            harp.receptor_offset("H99")

    def test_footprint(self):
        offsets = self.harp.receptor_offsets()
        # H02 is switched off
        self.assertEqual(len(offsets), 2)
        xcen, ycen, radius = self.harp.footprint_radius()
        self.assertAlmostEqual(xcen.arcsec, 0.0)
        self.assertAlmostEqual(ycen.arcsec, -15.0)
        self.assertAlmostEqual(radius.arcsec, 15.0)

    def test_round_trip(self):
        xml = self.harp.to_xml()
        self.assertIn('<bw units="MHz"', xml)
        again = Instrument.from_xml(xml)
        self.assertEqual(again.receptor_ids(), self.harp.receptor_ids())
        self.assertAlmostEqual(again.bandwidth, self.harp.bandwidth, delta=1.0)
        self.assertEqual(again.receptor("H02").health, "OFF")

    def test_pointing(self):
        self.harp.set_pointing({"CA": 1.5, "XX": 3.0})
        self.assertEqual(self.harp.pointing(), {"CA": 1.5})
        self.assertIn('<pointing_offset CA="1.5" IE="0.0" />', self.harp.to_xml())

    def test_bad_reference(self):
        self.harp.receptors["H03"] = Receptor(refpix="H10", angle=Angle(0.0, unit=u.rad))
        with self.assertRaises(FatalError):
            self.harp.to_xml()


class FrontendTestCase(unittest.TestCase):
    """Test heterodyne frontend and SCUBA-2 masks."""

    def test_frontend(self):
        fe = Frontend.from_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"))
        self.assertAlmostEqual(fe.rest_frequency, 345.79599)
        self.assertEqual(fe.sideband, "USB")
        self.assertEqual(fe.sb_mode, "SSB")
        self.assertEqual(fe.mask(), {"H00": "ON", "H01": "NEED", "H02": "OFF"})
        self.assertEqual(fe.active_elements(), ["H00", "H01"])
        # Name comes from the instrument setup
        self.assertEqual(fe.tasks(), [])
        fe.frontend = "HARPB"
        self.assertEqual(fe.tasks(), ["FE_HARPB"])

        again = Frontend.from_xml(fe.to_xml())
        self.assertEqual(again.mask(), fe.mask())
        self.assertEqual(again.sideband, "USB")

        with self.assertRaises(BadArgs):
            fe.sideband = "MIDDLE"
        with self.assertRaises(BadArgs):
            fe.set_mask({"H00": "MAYBE"})

    def test_scuba2(self):
        scuba2 = SCUBA2.from_file(os.path.join(TESTDIR, "data", "scuba2_scan.xml"))
        self.assertEqual(scuba2.mask(), {"s8a": "ON", "s8b": "NEED", "s4a": "OFF"})
        self.assertEqual(scuba2.active_subarrays(), ["s8a", "s8b"])
        self.assertEqual(scuba2.tasks(), ["SCUBA2"])
        self.assertEqual(scuba2.dtdrequires(), ["instrument_setup", "header", "obs_summary"])
        self.assertIn('<SUBARRAY NAME="s8b" VALUE="NEED" />', scuba2.to_xml())

        scuba2 = SCUBA2(mask={"s4d": "any"})
        self.assertEqual(scuba2.mask(), {"s4d": "ANY"})


class POLTestCase(unittest.TestCase):
    """Test the polarimeter configuration."""

    def test_spin(self):
        pol = POL.from_file(os.path.join(TESTDIR, "data", "scuba2_scan.xml"))
        self.assertEqual(pol.mode(), "spin")
        self.assertEqual(pol.spin_speed, 2.0)
        self.assertIsNone(pol.is_cont)
        self.assertEqual(pol.tasks(), ["POL"])

        pol.is_cont = True
        xml = pol.to_xml()
        self.assertIn('<POL_CONFIG CONTINUUM="1">', xml)
        self.assertIn('<SPIN SPEED="2.0" />', xml)
        self.assertTrue(POL.from_xml(xml).is_cont)

    def test_step(self):
        pol = POL(is_cont=False)
        pol.set_steps([Angle(a, unit=u.deg) for a in (0.0, 22.5, 45.0)])
        self.assertEqual(pol.mode(), "step")
        again = POL.from_xml(pol.to_xml())
        self.assertEqual([a.degree for a in again.pos_ang], [0.0, 22.5, 45.0])
        self.assertIs(again.is_cont, False)

        with self.assertLogs(level="WARNING"):
            POL().to_xml()


if __name__ == "__main__":
    unittest.main()
