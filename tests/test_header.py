# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

import os.path
import re
import unittest

from astropy.io import fits

from jac_ocs_config import (
    BadArgs,
    FatalError,
    Header,
    HeaderItem,
    OCSConfigError,
    XMLBadStructure,
    normalize_source,
    parse_source_definitions,
    read_header_exclusion_file,
    read_source_definitions,
)

TESTDIR = os.path.abspath(os.path.dirname(__file__))


class HeaderTestCase(unittest.TestCase):
    """Test header configuration."""

    def setUp(self):
        self.header = Header.from_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"))

    def test_parse(self):
        header = self.header
        self.assertEqual(len(header), 7)
        self.assertEqual(header.item("PROJECT").value, "M09BU01")
        self.assertEqual(header.item("MSBTID").value, "")

        ocscfg = header.item("OCSCFG")
        self.assertEqual(ocscfg.source, "DERIVED")
        self.assertEqual(ocscfg.method, "getOCSCFG")
        self.assertEqual(ocscfg.task, "JOS")

        lofreqs = header.item("LOFREQS")
        self.assertTrue(lofreqs.is_sub_header)
        self.assertEqual(lofreqs.source, "DRAMA")
        self.assertEqual(lofreqs.source_fields, {"TASK": "FE_HARPB", "PARAM": "LO_FREQUENCY", "EVENT": "START"})

        blank = header.item(4)
        self.assertEqual(blank.type, "BLANKFIELD")
        self.assertIsNone(blank.keyword)
        self.assertEqual(header.find_items(99), [])

    def test_find(self):
        header = self.header
        self.assertEqual([i.keyword for i in header.find_items(re.compile("^MSB"))], ["MSBID", "MSBTID"])
        self.assertEqual([i.keyword for i in header.find_items(lambda i: i.source == "DRAMA")], ["LOFREQS", "AMSTART"])
        self.assertIsNone(header.item("NOTTHERE"))

    def test_round_trip(self):
        xml = self.header.to_xml()
        self.assertIn('<SUBHEADER TYPE="FLOAT" KEYWORD="LOFREQS"', xml)
        self.assertIn('<DRAMA_MONITOR TASK="FE_HARPB" PARAM="LO_FREQUENCY" EVENT="START" />', xml)
        self.assertIn('<HEADER TYPE="BLANKFIELD" />', xml)
        again = Header.from_xml(xml)
        self.assertEqual(
            [(i.keyword, i.value, i.source, i.source_fields) for i in again.items],
            [(i.keyword, i.value, i.source, i.source_fields) for i in self.header.items],
        )

    def test_ocscfg(self):
        self.header.set_ocscfg_filename("acsis_20240101_000000_000000.xml")
        item = self.header.item("OCSCFG")
        self.assertEqual(item.value, "acsis_20240101_000000_000000.xml")
        self.assertIsNone(item.source)
        self.assertIn('VALUE="acsis_20240101_000000_000000.xml" />', self.header.to_xml())

    def test_missing_fields(self):
        item = HeaderItem("FLOAT", "TAU", source="DERIVED", TASK="JOS")
        with self.assertRaises(FatalError):
            item.to_xml()
        # Irrelevant fields are dropped
        item.set_source("SELF", PARAM="TAU", TASK="JOS")
        self.assertEqual(item.source_fields, {"PARAM": "TAU"})
        self.assertIn('<SELF PARAM="TAU" />', item.to_xml())

    def test_keywordless_types(self):
        with self.assertRaises(BadArgs):
            HeaderItem("COMMENT", "FOO")
        with self.assertRaises(BadArgs):
            HeaderItem("blankfield", "FOO")
        item = HeaderItem("COMMENT", comment="A comment card")
        self.assertIsNone(item.keyword)

        xml = '<HEADER_CONFIG><HEADER TYPE="BLANKFIELD" KEYWORD="FOO" /></HEADER_CONFIG>'
        with self.assertRaises(XMLBadStructure):
            Header.from_xml(xml)

    def test_normalize_source(self):
        self.assertEqual(normalize_source("DRAMA_MONITOR"), "DRAMA")
        self.assertEqual(normalize_source("glish_parameter"), "GLISH")
        self.assertEqual(normalize_source("derived"), "DERIVED")
        with self.assertRaises(BadArgs):
            normalize_source("TELEPATHY")

    def test_source_definitions(self):
        defs = read_source_definitions(os.path.join(TESTDIR, "data", "defs", "main.defs"))
        self.assertEqual(
            defs["LOFREQS"],
            {"SOURCE": "DRAMA", "TASK": "FE_HARPB", "PARAM": "LO_FREQ", "EVENT": "END", "COMMENT": "Frequency at end"},
        )
        self.assertIsNone(defs["AMSTART"])
        # Included file overrides the earlier definition and uses the
        # inherited task map
        self.assertEqual(defs["OCSCFG"], {"SOURCE": "DERIVED", "TASK": "FE_HARPB", "METHOD": "getOtherOCSCFG"})
        self.assertEqual(defs["MSBID"], {"SOURCE": "SELF", "PARAM": "MSB_ID"})
        # Task map from the included file does not leak out
        self.assertEqual(defs["WVMTAUST"]["TASK"], "JOS")

        amstart = self.header.item("AMSTART")
        amstart.value = "1.2"
        self.assertIn("<DRAMA_MONITOR", amstart.to_xml())

        self.header.read_source_definitions(os.path.join(TESTDIR, "data", "defs", "main.defs"))
        lofreqs = self.header.item("LOFREQS")
        self.assertEqual(lofreqs.source_fields["EVENT"], "END")
        self.assertEqual(lofreqs.comment, "Frequency at end")
        # UNDEF removes only the provenance
        self.assertIsNone(amstart.source)
        self.assertEqual(amstart.value, "1.2")
        self.assertEqual(amstart.comment, "Airmass at start of observation")
        self.assertEqual(
            amstart.to_xml(),
            '<HEADER TYPE="FLOAT" KEYWORD="AMSTART" COMMENT="Airmass at start of observation" VALUE="1.2" />\n',
        )
        self.assertEqual(self.header.item("OCSCFG").method, "getOtherOCSCFG")
        self.assertEqual(self.header.item("MSBID").source, "SELF")

    def test_parse_definitions(self):
        defs = parse_source_definitions(["TASKMAP SMU SMU_X", "SMUX DRAMA TASK=SMU PARAM=X", "# comment", ""])
        self.assertEqual(defs, {"SMUX": {"SOURCE": "DRAMA", "TASK": "SMU_X", "PARAM": "X"}})

        with self.assertLogs(level="WARNING"):
            parse_source_definitions(["TASKMAP ONLYONE"])
        with self.assertRaises(OCSConfigError):
            parse_source_definitions(["BROKEN DRAMA"])
        with self.assertRaises(BadArgs):
            read_source_definitions("")

    def test_exclusions(self):
        excluded = read_header_exclusion_file(os.path.join(TESTDIR, "data", "exclusions.txt"))
        self.assertEqual(excluded, ["AMSTART", "LOFREQS", "PROJECT"])
        self.assertEqual(read_header_exclusion_file(os.path.join(TESTDIR, "data", "missing.txt")), [])

        with self.assertLogs(level="INFO") as cm:
            self.header.remove_excluded_headers(["AMSTART", "NOTTHERE"])
        self.assertTrue(any("NOTTHERE" in line for line in cm.output))
        amstart = self.header.item("AMSTART")
        self.assertIsNone(amstart.source)
        self.assertIsNone(amstart.value)

    def test_verify_types(self):
        fits_header = fits.Header()
        fits_header["PROJECT"] = "M09BU01"
        fits_header["AMSTART"] = 1.2
        fits_header["LOFREQS"] = 345
        self.header.verify_header_types(fits_header)

        fits_header["AMSTART"] = "high"
        fits_header["PROJECT"] = True
        with self.assertRaises(OCSConfigError) as cm:
            self.header.verify_header_types(fits_header)
        message = str(cm.exception)
        self.assertIn("For header 'AMSTART', type expected 'FLOAT' but found 'str'.", message)
        self.assertIn("For header 'PROJECT', type expected 'STRING' but found 'bool'.", message)


if __name__ == "__main__":
    unittest.main()
