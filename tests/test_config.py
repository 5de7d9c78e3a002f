# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

import datetime
import io
import os.path
import stat
import tempfile
import unittest

import astropy.units as u

from jac_ocs_config import (
    ACSIS,
    JOS,
    POL,
    SCUBA2,
    TCS,
    Config,
    FatalError,
    Frontend,
    MissingTarget,
    NamedBody,
    ObsSummary,
    OutputSettings,
)
from jac_ocs_config.file_helpers import config_file_name
from jac_ocs_config.tests import ConfigAssertHelper, read_test_config

TESTDIR = os.path.abspath(os.path.dirname(__file__))
DATADIR = os.path.join(TESTDIR, "data")

ACSIS_TASKS = ["FE_HARPB", "PTCS", "SMU", "IFTASK", "CORRTASK1", "CORRTASK2", "SPECWRITER"]


class ConfigTestCase(unittest.TestCase, ConfigAssertHelper):
    """Test the complete OCS configuration."""

    def setUp(self):
        self.acsis = read_test_config("acsis_grid_chop.xml", dir=DATADIR, hw_map="hwmap.yaml")
        self.scuba2 = read_test_config("scuba2_scan.xml", dir=DATADIR)

    def test_acsis(self):
        self.assertConfig(
            self.acsis,
            tasks=ACSIS_TASKS,
            requires_full_config=["SPECWRITER"],
            obsmode="grid_chop_science",
            instrument="HARPB",
            telescope="JCMT",
            projectid="M09BU01",
            msbid="abcdef0123",
            msbtid="",
            is_cont=False,
            iscal=False,
            is_generic_cal=False,
            is_science_obs=True,
            duration=360.0 * u.s,
            qsummary="OMC1       HARPB   grid chop science",
        )
        self.assertEqual(self.acsis.frontend.frontend, "HARPB")
        self.assertEqual(str(self.acsis), self.acsis.qsummary())
        self.assertAlmostEqual(self.acsis.waveband.to_value(u.GHz), 345.79599)
        self.assertAlmostEqual(self.acsis.waveband.to_value(u.mm, equivalencies=u.spectral()), 0.86696, places=4)
        self.assertIsNone(self.scuba2.waveband)
        self.assertEqual(self.acsis.obs_summary.comment, "Four point grid")
        self.assertIsNone(self.acsis.scuba2)
        self.assertIsNone(self.acsis.pol)

    def test_scuba2(self):
        self.assertConfig(
            self.scuba2,
            tasks=["SCUBA2", "POL", "PTCS"],
            requires_full_config=[],
            obsmode="scan_self_science",
            instrument="SCUBA2",
            projectid="JCMTCAL",
            msbid=None,
            is_cont=True,
            iscal=True,
            is_science_obs=False,
            duration=685.0 * u.s,
            qsummary="Mars       SCUBA2  scan self science",
        )
        # Continuum status is pushed to the polarimeter
        self.assertTrue(self.scuba2.pol.is_cont)

    def test_round_trip(self):
        for config in (self.acsis, self.scuba2):
            with self.subTest(config=str(config)):
                self.assertConfigRoundTrip(config)

        xml = self.acsis.to_xml()
        self.assertTrue(xml.startswith('<?xml version="1.0" encoding="US-ASCII"?>'))
        self.assertIn('<!DOCTYPE OCS_CONFIG  SYSTEM  "/jac_sw/itsroot//ICD/001/ocs.dtd">', xml)
        self.assertIn("using jac_ocs_config", xml)
        # Components are written in a fixed order
        positions = [xml.index(f"<{root}") for root in ("OBS_SUMMARY", "JOS_CONFIG", "FRONTEND_CONFIG", "TCS_CONFIG")]
        self.assertEqual(positions, sorted(positions))

    def test_telescope(self):
        config = read_test_config("acsis_grid_chop.xml", dir=DATADIR, telescope="UKIRT")
        self.assertEqual(config.telescope, "UKIRT")
        self.assertEqual(config.tcs.get_target().telescope, "UKIRT")
        # No hardware map so the correlator tasks are unknown
        with self.assertRaises(FatalError):
            config.tasks()

    def test_exclusion(self):
        with self.assertRaises(FatalError) as cm:
            self.acsis.scuba2 = SCUBA2()
        self.assertIn("ACSIS configuration already present", str(cm.exception))

        with self.assertRaises(FatalError):
            self.scuba2.acsis = ACSIS()
        with self.assertRaises(FatalError):
            self.scuba2.frontend = Frontend()

        # Replacing a backend with the same kind is allowed
        self.scuba2.scuba2 = SCUBA2()
        self.assertEqual(self.scuba2.scuba2.mask(), {})
        self.acsis.acsis = ACSIS()
        self.assertIs(self.acsis.acsis.hw_map, self.acsis.hw_map)

        # Once the ACSIS configuration is removed the frontend still blocks
        self.acsis.acsis = None
        with self.assertRaises(FatalError) as cm:
            self.acsis.scuba2 = SCUBA2()
        self.assertIn("Heterodyne frontend", str(cm.exception))

        with self.assertRaises(FatalError):
            self.acsis.jos = ObsSummary()

    def test_filtered_xml(self):
        xml = self.acsis.to_xml(configs=["tcs"])
        self.assertIn("<TCS_CONFIG", xml)
        # Required by the TCS
        self.assertIn("<INSTRUMENT", xml)
        self.assertNotIn("<ACSIS_CONFIG", xml)
        self.assertNotIn("<HEADER_CONFIG", xml)

        xml = self.scuba2.to_xml(configs=["scuba2"])
        for root in ("SCUBA2_CONFIG", "INSTRUMENT", "HEADER_CONFIG", "OBS_SUMMARY"):
            self.assertIn(f"<{root}", xml)
        self.assertNotIn("<TCS_CONFIG", xml)
        self.assertNotIn("<JOS_CONFIG", xml)

        with self.assertRaises(FatalError):
            self.acsis.to_xml(configs=["bogus"])

    def test_task_map(self):
        forward, inverse = self.acsis.task_map()
        self.assertEqual(forward["jos"], ["JOS"])
        self.assertEqual(forward["tcs"], ["PTCS", "SMU"])
        self.assertNotIn("header", forward)
        self.assertEqual(inverse["PTCS"], ["tcs"])
        self.assertEqual(inverse["FE_HARPB"], ["frontend"])
        self.assertEqual(inverse["CORRTASK2"], ["acsis"])

    def test_verify(self):
        self.acsis.verify()
        self.scuba2.verify()

        self.acsis.tcs.clear_target()
        with self.assertRaises(MissingTarget):
            self.acsis.verify()
        self.assertTrue(self.acsis.qsummary().startswith("EMPTY "))

        self.acsis.tcs = None
        with self.assertRaises(FatalError):
            self.acsis.verify()
        with self.assertRaises(FatalError):
            self.acsis.duration()
        self.assertTrue(self.acsis.qsummary().startswith("NONE "))

    def test_header_access(self):
        self.acsis.msbtid = "tx-0001"
        self.assertEqual(self.acsis.msbtid, "tx-0001")
        self.assertIn('VALUE="tx-0001"', self.acsis.to_xml())

        # No MSBTID item so nothing happens
        self.scuba2.msbtid = "tx-0002"
        self.assertIsNone(self.scuba2.msbtid)

        excluded = self.acsis.header_exclusions(os.path.join(DATADIR, "exclusions.txt"))
        self.assertEqual(excluded, ["AMSTART", "LOFREQS", "PROJECT"])
        self.assertIsNone(self.acsis.projectid)
        self.assertIsNone(self.acsis.header.item("LOFREQS").source)

    def test_stripped(self):
        stripped = self.acsis.stripped_for_iftask()
        self.assertIsNone(stripped.tcs)
        self.assertIsNone(stripped.header)
        self.assertEqual(stripped.instrument_setup.name, "HARPB")
        self.assertIsNone(stripped.acsis.corr)
        self.assertEqual(stripped.tasks(), ["IFTASK", "CORRTASK1", "CORRTASK2", "SPECWRITER"])

    def test_construct(self):
        config = Config(telescope="JCMT", comment="Built by hand")
        config.obs_summary = ObsSummary("stare", "none", "science")
        config.jos = JOS(recipe="stare", STEP_TIME=1.0)
        config.scuba2 = SCUBA2(mask={"s8a": "ON"})
        config.pol = POL()
        config.pol.set_spin(2.0)
        tcs = TCS()
        tcs.set_target(NamedBody("Mars"))
        config.tcs = tcs

        self.assertEqual(tcs.telescope, "JCMT")
        self.assertEqual(tcs.get_target().telescope, "JCMT")
        self.assertEqual(config.instrument, "")
        self.assertEqual(config.qsummary(), "Mars               stare none science")

        xml = config.to_xml()
        # Empty JOS task list is filled in from the configuration
        self.assertEqual(config.jos.tasks, ["SCUBA2", "POL", "PTCS"])
        self.assertIn("<tasks>SCUBA2 POL PTCS</tasks>", xml)
        self.assertIn('<POL_CONFIG CONTINUUM="1">', xml)
        self.assertIn("Built by hand", xml)

        again = Config.from_xml(xml)
        self.assertEqual(again.tasks(), config.tasks())
        self.assertEqual(again.telescope, "JCMT")

    def test_file_name(self):
        now = datetime.datetime(2024, 1, 2, 3, 4, 5, 6)
        self.assertEqual(config_file_name(self.acsis, now=now), "acsis_20240102_030405_000006.xml")
        self.assertEqual(config_file_name(self.scuba2, now=now), "scuba2_20240102_030405_000006.xml")
        self.assertEqual(config_file_name(Config(), now=now), "unknown_20240102_030405_000006.xml")
        self.assertRegex(config_file_name(Config()), r"^unknown_\d{8}_\d{6}_\d{6}\.xml$")

    def test_write(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for task in ("PTCS", "IFTASK", "SPECWRITER", "FE_HARPB", "UNRELATED"):
                os.mkdir(os.path.join(tmpdir, task))

            output = io.StringIO()
            settings = OutputSettings(output_dir=tmpdir, verbose=True, output=output)
            written = self.acsis.write_file(settings=settings, chmod=0o644)
            name = written.basename()
            self.assertRegex(name, r"^acsis_\d{8}_\d{6}_\d{6}\.xml$")
            self.assertEqual(written.ospath, os.path.join(tmpdir, name))
            self.assertIn("Writing config to", output.getvalue())

            def _read(*parts):
                with open(os.path.join(tmpdir, *parts)) as fh:
                    return fh.read()

            full = _read(name)
            self.assertIn(f'VALUE="{name}"', full)
            self.assertIn("<ACSIS_corr>", full)
            self.assertEqual(stat.S_IMODE(os.stat(os.path.join(tmpdir, name)).st_mode), 0o644)

            ptcs = _read("PTCS", name)
            self.assertIn("<TCS_CONFIG", ptcs)
            self.assertIn("<INSTRUMENT", ptcs)
            self.assertNotIn("<ACSIS_CONFIG", ptcs)

            fe = _read("FE_HARPB", name)
            self.assertIn("<FRONTEND_CONFIG", fe)
            self.assertNotIn("<TCS_CONFIG", fe)

            iftask = _read("IFTASK", name)
            self.assertIn("<ACSIS_IF>", iftask)
            self.assertNotIn("<ACSIS_corr>", iftask)
            self.assertNotIn("<TCS_CONFIG", iftask)

            # The spectrum writer needs everything
            specwriter = _read("SPECWRITER", name)
            self.assertIn("<ACSIS_corr>", specwriter)
            self.assertIn("<TCS_CONFIG", specwriter)

            self.assertEqual(os.listdir(os.path.join(tmpdir, "UNRELATED")), [])

            # The written file can be read back
            again = Config.from_file(written, hw_map=self.acsis.hw_map)
            self.assertEqual(again.header.item("OCSCFG").value, name)
            self.assertEqual(again.tasks(), ACSIS_TASKS)


if __name__ == "__main__":
    unittest.main()
