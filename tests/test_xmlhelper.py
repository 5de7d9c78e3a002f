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

from jac_ocs_config import (
    ConfigIOError,
    ObsSummary,
    XMLBadStructure,
    XMLConfigMissing,
    XMLEmpty,
    XMLSurfeit,
)
from jac_ocs_config.xmlhelper import (
    find_attr,
    find_child,
    find_children,
    find_config_root,
    get_pcdata,
    get_pcdata_multi,
    get_this_pcdata,
    indent_xml_string,
    parse_xml,
    read_xml,
    xml_attr,
)

TESTDIR = os.path.abspath(os.path.dirname(__file__))

SIMPLE = """<ROOT>
<ITEM NAME="a" VALUE="1"> first </ITEM>
<ITEM NAME="b">second</ITEM>
<OTHER><ITEM>nested</ITEM></OTHER>
<EMPTY />
</ROOT>"""


class XMLHelperTestCase(unittest.TestCase):
    """Test XML navigation helpers."""

    def setUp(self):
        self.root = parse_xml(SIMPLE)

    def test_find_children(self):
        items = find_children(self.root, "ITEM")
        # Only direct children are found
        self.assertEqual(len(items), 2)
        self.assertEqual(len(find_children(self.root, re.compile("^(ITEM|OTHER)$"))), 3)

        with self.assertRaises(XMLEmpty):
            find_children(self.root, "MISSING", min=1)
        with self.assertRaises(XMLBadStructure):
            find_children(self.root, "ITEM", min=3)
        with self.assertRaises(XMLSurfeit):
            find_children(self.root, "ITEM", max=1)

        self.assertIsNone(find_child(self.root, "MISSING"))
        self.assertEqual(find_child(self.root, "OTHER").tag, "OTHER")
        with self.assertRaises(XMLEmpty):
            find_child(self.root, "MISSING", required=True)

    def test_pcdata(self):
        first = find_children(self.root, "ITEM")[0]
        self.assertEqual(get_this_pcdata(first), "first")
        # Last match wins
        self.assertEqual(get_pcdata(self.root, "ITEM"), "second")
        self.assertIsNone(get_pcdata(self.root, "EMPTY"))
        self.assertIsNone(get_pcdata(self.root, "MISSING"))
        self.assertEqual(get_pcdata_multi(self.root, "ITEM", "EMPTY"), {"ITEM": "second"})

    def test_attributes(self):
        first = find_children(self.root, "ITEM")[0]
        self.assertEqual(find_attr(first, "NAME", "VALUE", "MISSING"), {"NAME": "a", "VALUE": "1"})
        self.assertEqual(xml_attr('a "quoted" value'), "'a \"quoted\" value'")
        self.assertEqual(xml_attr(3.5), '"3.5"')

    def test_config_root(self):
        self.assertIs(find_config_root(self.root, ["ROOT"]), self.root)
        self.assertEqual(find_config_root(self.root, ["OTHER"]).tag, "OTHER")
        with self.assertRaises(XMLSurfeit):
            find_config_root(self.root, ["ITEM"])
        with self.assertRaises(XMLConfigMissing):
            find_config_root(self.root, ["MISSING"])
        self.assertIsNone(find_config_root(self.root, ["MISSING"], required=False))

    def test_parse_errors(self):
        with self.assertRaises(XMLBadStructure):
            parse_xml("<ROOT><ITEM></ROOT>")
        with self.assertRaises(ConfigIOError):
            read_xml(os.path.join(TESTDIR, "data", "does_not_exist.xml"))

    def test_entity_file(self):
        summary = ObsSummary.from_entity_file(os.path.join(TESTDIR, "data", "acsis_grid_chop.xml"))
        self.assertEqual(summary.mapping_mode, "grid")

    def test_indent(self):
        xml = '<?xml version="1.0"?>\n<A>\n<B X="1" />\n<C>\n<D>text</D>\n</C>\n<!-- note -->\n</A>\n'
        indented = indent_xml_string(xml)
        self.assertEqual(
            indented,
            '<?xml version="1.0"?>\n'
            "<A>\n"
            '   <B X="1" />\n'
            "   <C>\n"
            "      <D>text</D>\n"
            "   </C>\n"
            "   <!-- note -->\n"
            "</A>\n",
        )

        # A lone closing bracket is merged into the previous line
        indented = indent_xml_string('<A X="1"\n>\n<B />\n</A>\n')
        self.assertEqual(indented, '<A X="1" >\n   <B />\n</A>\n')


if __name__ == "__main__":
    unittest.main()
