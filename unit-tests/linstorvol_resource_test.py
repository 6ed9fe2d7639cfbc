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
import os
import shutil
import sys
import tempfile
import unittest
import unittest.mock as mock

import linstorvol.exceptions as LVE
from linstorvol.controlplane import LinstorCli
from linstorvol.resource import Resource
from linstorvol.utils import CommandExecutor

from linstorvol_fakes import (
    FakeExecutor, RC_OK, RC_ERROR, RC_RSC_DFN_CREATED, EMPTY_RSC_LIST,
    rsc, rsc_state, vlm_state, rsc_list_reply, status_reply
)

LS_RSC = ["linstor", "-m", "ls-rsc"]
CREATE_RSC_DFN = ["linstor", "-m", "create-resource-definition"]
CREATE_VLM_DFN = ["linstor", "-m", "create-volume-definition"]
CREATE_RSC = ["linstor", "-m", "create-resource"]


class ResourceTestCase(unittest.TestCase):

    def setUp(self):
        self.executor = FakeExecutor()
        self.linstor = LinstorCli(self.executor)

    def tearDown(self):
        self.executor = None
        self.linstor = None

    def _resource(self, **kwargs):
        return Resource("r0", linstor=self.linstor, settle_delay=0, **kwargs)


class CreateTests(ResourceTestCase):

    @mock.patch("linstorvol.resource.time")
    def test_create(self, mock_time):
        """creates the resource definition, waits, then the volume definition"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_RSC_DFN_CREATED))
        self.executor.add_reply(CREATE_VLM_DFN, status_reply(RC_OK))
        res = Resource("r0", size_kib=1048576, linstor=self.linstor, settle_delay=2)

        res.create()

        self.assertEqual(self.executor.calls, [
            CREATE_RSC_DFN + ["r0"],
            CREATE_VLM_DFN + ["r0", "1048576kib"]
        ])
        mock_time.sleep.assert_called_once_with(2)

    @mock.patch("linstorvol.resource.time")
    def test_create_without_settle_delay(self, mock_time):
        """a zero settle delay does not sleep"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_OK))
        self.executor.add_reply(CREATE_VLM_DFN, status_reply(RC_OK))

        self._resource(size_kib=4096).create()

        self.assertFalse(mock_time.sleep.called)

    @mock.patch("linstorvol.resource.time")
    def test_create_error_status_stops(self, mock_time):
        """an error status of the definition stops creation"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_OK, RC_ERROR))
        res = Resource("r0", size_kib=1048576, linstor=self.linstor, settle_delay=2)

        with self.assertRaises(LVE.StatusException) as ctx:
            res.create()

        self.assertEqual(len(self.executor.calls), 1)
        self.assertEqual(self.executor.calls_of(*CREATE_VLM_DFN), [])
        self.assertFalse(mock_time.sleep.called)
        self.assertTrue(str(ctx.exception).startswith("unable to reserve resource name r0: "))

    def test_create_command_failure(self):
        """a failing linstor client is reported with its output"""
        self.executor.add_reply(
            CREATE_RSC_DFN,
            LVE.CommandExecException("failed", exit_code=10, output="no controller")
        )

        with self.assertRaises(LVE.CommandExecException) as ctx:
            self._resource().create()

        self.assertIn("no controller", str(ctx.exception))

    def test_create_volume_definition_failure(self):
        """a failed volume definition names the resource"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_OK))
        self.executor.add_reply(CREATE_VLM_DFN, status_reply(RC_ERROR))

        with self.assertRaises(LVE.StatusException) as ctx:
            self._resource(size_kib=1).create()

        self.assertIn("unable to create volume definition for resource r0", str(ctx.exception))


class AssignTests(ResourceTestCase):

    def test_assign_without_definition(self):
        """fails fast if the resource is unknown"""
        self.executor.add_reply(LS_RSC, EMPTY_RSC_LIST)

        with self.assertRaises(LVE.NoResourceDefinitionException) as ctx:
            self._resource(node_list=["alpha"]).assign()

        self.assertEqual(str(ctx.exception), "No resource definition for resource r0")
        self.assertEqual(self.executor.calls_of(*CREATE_RSC), [])

    def test_assign(self):
        """assigns missing replicas with a storage pool and clients as diskless"""
        self.executor.add_reply(LS_RSC, rsc_list_reply([rsc("r0", "alpha")]))
        self.executor.add_reply(CREATE_RSC, status_reply(RC_OK))
        res = self._resource(
            node_list=["alpha", "bravo"], client_list=["charlie"],
            stor_pool_name="thinpool"
        )

        res.assign()

        self.assertEqual(self.executor.calls_of(*CREATE_RSC), [
            CREATE_RSC + ["r0", "bravo", "-s", "thinpool"],
            CREATE_RSC + ["r0", "charlie", "--diskless"]
        ])

    def test_assign_twice(self):
        """a second assignment issues no create commands"""
        self.executor.add_reply(
            LS_RSC,
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([
                rsc("r0", "alpha"), rsc("r0", "bravo"),
                rsc("r0", "charlie", diskless=True)
            ])
        )
        self.executor.add_reply(CREATE_RSC, status_reply(RC_OK))
        res = self._resource(node_list=["alpha", "bravo"], client_list=["charlie"])

        res.assign()
        created = len(self.executor.calls_of(*CREATE_RSC))
        res.assign()

        self.assertEqual(created, 2)
        self.assertEqual(len(self.executor.calls_of(*CREATE_RSC)), 2)

    def test_assign_resumes_after_failure(self):
        """a retried assignment continues where the failed one stopped"""
        self.executor.add_reply(
            LS_RSC,
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha")]),
            rsc_list_reply([rsc("r0", "alpha"), rsc("r0", "bravo")])
        )
        self.executor.add_reply(
            CREATE_RSC, status_reply(RC_OK), status_reply(RC_ERROR), status_reply(RC_OK)
        )
        res = self._resource(node_list=["bravo", "charlie"])

        with self.assertRaises(LVE.StatusException) as ctx:
            res.assign()
        self.assertIn("failed to assign resource r0 to node charlie", str(ctx.exception))

        res.assign()

        self.assertEqual(self.executor.calls_of(*CREATE_RSC), [
            CREATE_RSC + ["r0", "bravo", "-s", "DfltStorPool"],
            CREATE_RSC + ["r0", "charlie", "-s", "DfltStorPool"],
            CREATE_RSC + ["r0", "charlie", "-s", "DfltStorPool"]
        ])

    def test_assign_list_failure(self):
        """a failed presence check is reported for the node"""
        self.executor.add_reply(
            LS_RSC, rsc_list_reply([rsc("r0", "alpha")]), "not json"
        )

        with self.assertRaises(LVE.DecodeException) as ctx:
            self._resource(node_list=["bravo"]).assign()

        self.assertIn("already present on node bravo", str(ctx.exception))
        self.assertEqual(self.executor.calls_of(*CREATE_RSC), [])

    @mock.patch("linstorvol.resource.time")
    def test_create_and_assign(self, mock_time):
        """creates, then assigns"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_OK))
        self.executor.add_reply(CREATE_VLM_DFN, status_reply(RC_OK))
        self.executor.add_reply(
            LS_RSC, rsc_list_reply([rsc("r0", "alpha")])
        )
        self.executor.add_reply(CREATE_RSC, status_reply(RC_OK))

        self._resource(size_kib=1024, node_list=["bravo"]).create_and_assign()

        self.assertEqual(self.executor.calls[0], CREATE_RSC_DFN + ["r0"])
        self.assertEqual(self.executor.calls[1], CREATE_VLM_DFN + ["r0", "1024kib"])
        self.assertEqual(self.executor.calls[-1], CREATE_RSC + ["r0", "bravo", "-s", "DfltStorPool"])

    def test_create_and_assign_create_fails(self):
        """nothing is assigned if creating fails"""
        self.executor.add_reply(CREATE_RSC_DFN, status_reply(RC_ERROR))

        self.assertRaises(
            LVE.StatusException,
            self._resource(node_list=["alpha"]).create_and_assign
        )
        self.assertEqual(len(self.executor.calls), 1)


class RemoveTests(ResourceTestCase):

    def test_unassign(self):
        """deletes the resource from one node"""
        self.executor.add_reply(["linstor", "-m", "delete-resource"], status_reply(RC_OK))

        self._resource().unassign("alpha")

        self.assertEqual(
            self.executor.calls, [["linstor", "-m", "delete-resource", "r0", "alpha"]]
        )

    def test_unassign_failure(self):
        """a logical error of the controller is reported"""
        self.executor.add_reply(["linstor", "-m", "delete-resource"], status_reply(RC_ERROR))

        with self.assertRaises(LVE.StatusException) as ctx:
            self._resource().unassign("alpha")

        self.assertIn("failed to unassign resource r0 from node alpha", str(ctx.exception))

    def test_delete(self):
        """deletes the resource definition"""
        self.executor.add_reply(
            ["linstor", "-m", "delete-resource-definition"], status_reply(RC_OK)
        )

        self._resource().delete()

        self.assertEqual(
            self.executor.calls, [["linstor", "-m", "delete-resource-definition", "r0"]]
        )


class QueryTests(ResourceTestCase):

    def test_exists(self):
        """the resource exists if it is listed"""
        self.executor.add_reply(
            LS_RSC, rsc_list_reply([rsc("r0", "alpha")]), EMPTY_RSC_LIST
        )

        self.assertTrue(self._resource().exists())
        self.assertFalse(self._resource().exists())

    def test_exists_decode_error(self):
        """malformed output is an error, not a negative answer"""
        self.executor.add_reply(LS_RSC, "{")

        self.assertRaises(LVE.DecodeException, self._resource().exists)

    def test_on_node(self):
        """name and node must match the same record"""
        self.executor.add_reply(
            LS_RSC, rsc_list_reply([rsc("r0", "alpha"), rsc("r1", "bravo")])
        )

        self.assertTrue(self._resource().on_node("alpha"))
        self.assertFalse(self._resource().on_node("bravo"))

    def test_is_client(self):
        """answers from the volume 0 disk state on the node"""
        self.executor.add_reply(LS_RSC, rsc_list_reply(
            [rsc("r0", "alpha"), rsc("r0", "bravo", diskless=True)],
            [
                rsc_state("r0", "alpha", [vlm_state()]),
                rsc_state("r0", "bravo", [vlm_state(has_disk=False)])
            ]
        ))

        self.assertTrue(self._resource().is_client("bravo"))
        self.assertFalse(self._resource().is_client("alpha"))
        self.assertFalse(self._resource().is_client("charlie"))

    @mock.patch("linstorvol.resource.logging")
    def test_is_client_error(self, mock_logging):
        """errors are logged and answered with False"""
        self.executor.add_reply(
            LS_RSC, "garbage",
            LVE.CommandExecException("failed", exit_code=1, output="")
        )

        self.assertFalse(self._resource().is_client("alpha"))
        self.assertFalse(self._resource().is_client("alpha"))
        self.assertEqual(mock_logging.warning.call_count, 2)


class CommandOutputTests(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.linstor_cmd = os.path.join(self.tmp_dir, "linstor")
        with open(self.linstor_cmd, "w") as script:
            script.write(
                "#!%s\n"
                "import sys\n"
                "sys.stdout.buffer.write(b\"\\xff\\xfe\\n\")\n" % (sys.executable)
            )
        os.chmod(self.linstor_cmd, 0o755)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    @mock.patch("linstorvol.resource.logging")
    def test_is_client_undecodable_output(self, mock_logging):
        """output that is not UTF-8 is answered with False"""
        linstor = LinstorCli(CommandExecutor(), linstor_cmd=self.linstor_cmd)

        self.assertFalse(Resource("r0", linstor=linstor).is_client("alpha"))
        self.assertTrue(mock_logging.warning.called)

    def test_exists_undecodable_output(self):
        """output that is not UTF-8 is a decode error"""
        linstor = LinstorCli(CommandExecutor(), linstor_cmd=self.linstor_cmd)

        self.assertRaises(LVE.DecodeException, Resource("r0", linstor=linstor).exists)


if __name__ == "__main__":
    unittest.main()
