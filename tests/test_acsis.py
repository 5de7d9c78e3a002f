# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

import logging
import os.path
import unittest

from jac_ocs_config import ACSIS, ACSISCorr, ConfigIOError, FatalError, HardwareMap

TESTDIR = os.path.abspath(os.path.dirname(__file__))


class HardwareMapTestCase(unittest.TestCase):
    """Test the correlator hardware map."""

    def test_yaml(self):
        hw_map = HardwareMap.from_yaml(os.path.join(TESTDIR, "data", "hwmap.yaml"))
        self.assertEqual(len(hw_map), 2)
        self.assertEqual(hw_map.by_cm_id("quadrant", 0, 1, 5), [1, 2])
        self.assertEqual(hw_map.corr_tasks([1, 0, 1]), [1, 2])

    def test_errors(self):
        with self.assertRaises(ConfigIOError):
            HardwareMap.from_yaml(os.path.join(TESTDIR, "data", "nomap.yaml"))
        with self.assertRaises(FatalError):
            HardwareMap([{"cm_id": 0}])


class ACSISTestCase(unittest.TestCase):
    """Test the ACSIS configuration."""

    def setUp(self):
        self.hw_map = HardwareMap.from_yaml(os.path.join(TESTDIR, "data", "hwmap.yaml"))
        self.acsis = ACSIS.from_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"), hw_map=self.hw_map)

    def test_parse(self):
        acsis = self.acsis
        self.assertEqual(acsis.corr.bw_modes, {0: "1GHzx1024", 1: "1GHzx1024"})
        self.assertEqual(acsis.if_config.lo2, {1: 6.5e9, 2: 6.5e9})
        self.assertEqual(acsis.if_config.lo3, 2.0e9)
        self.assertEqual([e.receptor for e in acsis.acsis_map.cm_map], ["H00", "H01"])
        self.assertIs(acsis.acsis_map.hw_map, self.hw_map)

    def test_tasks(self):
        self.assertEqual(self.acsis.tasks(), ["IFTASK", "CORRTASK1", "CORRTASK2", "SPECWRITER"])
        self.assertEqual(self.acsis.requires_full_config(), ["SPECWRITER"])
        self.assertEqual(self.acsis.dtdrequires(), ["instrument_setup"])

        self.acsis.hw_map = None
        with self.assertRaises(FatalError):
            self.acsis.tasks()

    def test_round_trip(self):
        again = ACSIS.from_xml(self.acsis.to_xml(), hw_map=self.hw_map)
        self.assertEqual(again.corr.bw_modes, self.acsis.corr.bw_modes)
        self.assertEqual(again.if_config.lo2, self.acsis.if_config.lo2)
        self.assertEqual(again.tasks(), self.acsis.tasks())

    def test_stripped(self):
        stripped = self.acsis.stripped()
        self.assertIsNone(stripped.corr)
        xml = stripped.to_xml()
        self.assertNotIn("ACSIS_corr", xml)
        self.assertIn("<ACSIS_IF>", xml)
        self.assertIn("<ACSIS_map>", xml)

    def test_too_many_modes(self):
        with self.assertLogs(level=logging.WARNING):
            ACSISCorr(bw_modes={i: "250MHzx8192" for i in range(33)})


if __name__ == "__main__":
    unittest.main()
