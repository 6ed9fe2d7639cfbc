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

"""
Canned controller replies and a fake command executor for the unit tests
"""

import json

RC_OK    = 0
RC_ERROR = 1 << 63
RC_WARN  = 1 << 62
RC_INFO  = 1 << 61

# A real-world return code of a successful 'create-resource-definition'
RC_RSC_DFN_CREATED = 0x0000000000510001


class FakeExecutor(object):

    """
    Stands in for linstorvol.utils.CommandExecutor

    Replies are registered for a command prefix. If several replies are
    registered for the same prefix, they are returned in order and the last
    one is repeated. A reply that is an exception instance is raised.
    """

    def __init__(self):
        self.calls = []
        self._rules = []

    def add_reply(self, prefix, *replies):
        self._rules.append([list(prefix), list(replies)])

    def execute(self, exec_args):
        self.calls.append(list(exec_args))
        for prefix, replies in self._rules:
            if exec_args[:len(prefix)] == prefix:
                if len(replies) > 1:
                    reply = replies.pop(0)
                else:
                    reply = replies[0]
                if isinstance(reply, Exception):
                    raise reply
                return reply
        raise AssertionError("unexpected command: %s" % (" ".join(exec_args)))

    def calls_of(self, *prefix):
        prefix = list(prefix)
        return [call for call in self.calls if call[:len(prefix)] == prefix]


def status_reply(*ret_codes):
    statuses = []
    for ret_code in ret_codes:
        statuses.append({
            "ret_code": ret_code,
            "message_format": "Operation %x" % (ret_code),
            "details_format": "",
            "obj_refs": [{"key": "RscDfn", "value": "r0"}],
            "variables": []
        })
    return json.dumps(statuses)


def vlm_state(vlm_nr=0, minor=1000, has_disk=True):
    return {
        "vlm_nr": vlm_nr,
        "vlm_minor_nr": minor,
        "has_disk": has_disk,
        "has_meta_data": has_disk,
        "check_meta_data": has_disk,
        "is_present": True,
        "disk_failed": False,
        "net_size": 1048576,
        "gross_size": 1048832
    }


def rsc_state(name, node, vlm_states):
    return {
        "requires_adjust": False,
        "rsc_name": name,
        "is_primary": False,
        "vlm_states": vlm_states,
        "is_present": True,
        "node_name": node
    }


def rsc(name, node, minor=1000, stor_pool="DfltStorPool", diskless=False):
    data = {
        "vlms": [{
            "vlm_nr": 0,
            "stor_pool_name": "DfltDisklessStorPool" if diskless else stor_pool,
            "stor_pool_uuid": "a6c2a3c2-4b5e-4c43-9cde-1c5e3b5a7f01",
            "vlm_minor_nr": minor,
            "vlm_uuid": "7b5b2d1a-98a6-4a0a-b0c3-2f1f0f1f2e11",
            "vlm_dfn_uuid": "0b6b8a4e-5c8c-4f0d-8a60-3b9ab9f41d22"
        }],
        "node_uuid": "3d4e7e8a-7a3b-4f55-8d2e-1e8f1f2a3b44",
        "uuid": "9f8e7d6c-5b4a-4c3b-8a29-1f0e0d0c0b55",
        "node_name": node,
        "props": [{"key": "StorPoolName", "value": stor_pool}],
        "rsc_dfn_uuid": "5e6f7a8b-9c0d-4e1f-8a2b-3c4d5e6f7a66",
        "name": name
    }
    if diskless:
        data["rsc_flags"] = ["DISKLESS"]
    return data


def rsc_list_reply(resources=None, resource_states=None):
    return json.dumps([{
        "resources": resources if resources is not None else [],
        "resource_states": resource_states if resource_states is not None else []
    }])


EMPTY_RSC_LIST = rsc_list_reply()
