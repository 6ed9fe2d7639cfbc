#!/usr/bin/env python3
"""
  linstorvol - management of LINSTOR-backed DRBD volumes
  Copyright (C) 2018   LINBIT HA-Solutions GmbH

  This program is free software: you can redistribute it and/or modify
  it under the terms of the GNU General Public License as published by
  the Free Software Foundation, either version 3 of the License, or
  (at your option) any later version.

  This program is distributed in the hope that it will be useful,
  but WITHOUT ANY WARRANTY; without even the implied warranty of
  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
  GNU General Public License for more details.

  You should have received a copy of the GNU General Public License
  along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""
import json
import unittest

import linstorvol.exceptions as LVE
from linstorvol.views import ResourceList

from linstorvol_fakes import rsc, rsc_state, vlm_state, rsc_list_reply


class ResourceListDecodeTests(unittest.TestCase):

    def test_from_json(self):
        """decodes resources and resource states"""
        output = rsc_list_reply(
            [rsc("r0", "alpha", minor=1001), rsc("r0", "bravo", diskless=True)],
            [rsc_state("r0", "alpha", [vlm_state(minor=1001)])]
        )

        snapshot = ResourceList.from_json(output)

        self.assertEqual(len(snapshot.resources), 2)
        alpha, bravo = snapshot.resources
        self.assertEqual(alpha.node_name, "alpha")
        self.assertEqual(alpha.props, {"StorPoolName": "DfltStorPool"})
        self.assertEqual(alpha.vlms[0].vlm_minor_nr, 1001)
        self.assertFalse(alpha.is_diskless())
        self.assertTrue(bravo.is_diskless())
        state = snapshot.get_resource_state("r0", "alpha")
        self.assertTrue(state.get_volume_state(0).has_disk)
        self.assertEqual(state.get_volume_state(0).net_size, 1048576)

    def test_from_json_empty(self):
        """an empty reply is an empty snapshot"""
        for output in ["[]", rsc_list_reply(), '[{}]']:
            snapshot = ResourceList.from_json(output)
            self.assertEqual(snapshot.resources, [])
            self.assertEqual(snapshot.resource_states, [])

    def test_from_json_merges_entries(self):
        """resources of all entries are merged"""
        output = json.dumps([
            {"resources": [rsc("r0", "alpha")]},
            {"resources": [rsc("r1", "bravo")],
             "resource_states": [rsc_state("r1", "bravo", [vlm_state()])]}
        ])

        snapshot = ResourceList.from_json(output)

        self.assertTrue(snapshot.has_resource("r0"))
        self.assertTrue(snapshot.has_resource("r1"))
        self.assertIsNotNone(snapshot.get_resource_state("r1", "bravo"))

    def test_from_json_invalid(self):
        """raises DecodeException on malformed output"""
        invalid = [
            "", "ls-rsc: command not found", '{"resources": []}', '["r0"]',
            '[{"resources": {}}]',
            '[{"resources": [{"name": 7}]}]',
            '[{"resource_states": [{"rsc_name": "r0", "vlm_states": [{"vlm_minor_nr": "7"}]}]}]',
            '[{"resource_states": [{"rsc_name": "r0", "vlm_states": [{"has_disk": 1}]}]}]',
            '[{"resources": [{"name": "r0", "rsc_flags": [1]}]}]'
        ]
        for output in invalid:
            with self.assertRaises(LVE.DecodeException) as ctx:
                ResourceList.from_json(output)
            self.assertEqual(ctx.exception.output, output)


class ResourceListQueryTests(unittest.TestCase):

    def setUp(self):
        self.snapshot = ResourceList.from_json(rsc_list_reply(
            [rsc("r0", "alpha"), rsc("r0", "bravo", diskless=True), rsc("r1", "alpha")],
            [
                rsc_state("r0", "bravo", [vlm_state(minor=1000, has_disk=False)]),
                rsc_state("r0", "alpha", [vlm_state(minor=1000)]),
                rsc_state("r1", "alpha", [vlm_state(vlm_nr=1, minor=1003)])
            ]
        ))

    def tearDown(self):
        self.snapshot = None

    def test_has_resource(self):
        """finds resources by name"""
        self.assertTrue(self.snapshot.has_resource("r0"))
        self.assertFalse(self.snapshot.has_resource("r2"))

    def test_has_resource_on_node(self):
        """finds resources by name and node"""
        self.assertTrue(self.snapshot.has_resource_on_node("r1", "alpha"))
        self.assertFalse(self.snapshot.has_resource_on_node("r1", "bravo"))
        self.assertFalse(self.snapshot.has_resource_on_node("r2", "alpha"))

    def test_find_volume_state(self):
        """returns the first volume state in reply order"""
        first = self.snapshot.find_volume_state("r0", 0)
        self.assertFalse(first.has_disk)

        on_alpha = self.snapshot.find_volume_state("r0", 0, node_name="alpha")
        self.assertTrue(on_alpha.has_disk)

        self.assertIsNone(self.snapshot.find_volume_state("r1", 0))
        self.assertEqual(self.snapshot.find_volume_state("r1", 1).vlm_minor_nr, 1003)

    def test_is_client(self):
        """a node without a local disk is a client"""
        self.assertTrue(self.snapshot.is_client("r0", "bravo"))
        self.assertFalse(self.snapshot.is_client("r0", "alpha"))

    def test_is_client_unknown(self):
        """resources without volume 0 state on the node are not clients"""
        self.assertFalse(self.snapshot.is_client("r0", "charlie"))
        self.assertFalse(self.snapshot.is_client("r1", "alpha"))
        self.assertFalse(self.snapshot.is_client("r2", "alpha"))


if __name__ == "__main__":
    unittest.main()
