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

"""
Decoded views of the controller's resource list

The machine readable output of 'linstor -m ls-rsc' is a list of objects,
each carrying a list of resources (placement of a resource definition on a
node) and a list of resource states (the DRBD state of a resource on a
node). ResourceList merges all of them into one snapshot. Snapshots are
never cached; every query fetches and decodes a new one.
"""

import json
import linstorvol.consts as consts
from linstorvol.apistatus import key_value_dict
from linstorvol.exceptions import DecodeException

# Flag of a resource that is attached without a local disk
RSC_FLAG_DISKLESS = "DISKLESS"


class VolumeState(object):

    """
    DRBD state of one volume of a resource on a node
    """

    def __init__(self, vlm_nr, vlm_minor_nr, has_disk=False, has_meta_data=False,
                 check_meta_data=False, is_present=False, disk_failed=False,
                 net_size=0, gross_size=0):
        self.vlm_nr          = vlm_nr
        self.vlm_minor_nr    = vlm_minor_nr
        self.has_disk        = has_disk
        self.has_meta_data   = has_meta_data
        self.check_meta_data = check_meta_data
        self.is_present      = is_present
        self.disk_failed     = disk_failed
        self.net_size        = net_size
        self.gross_size      = gross_size

    @classmethod
    def from_dict(cls, data):
        _check_object(data, "volume state")
        return cls(
            _get_field(data, "vlm_nr", int, 0),
            _get_field(data, "vlm_minor_nr", int, 0),
            has_disk=_get_field(data, "has_disk", bool, False),
            has_meta_data=_get_field(data, "has_meta_data", bool, False),
            check_meta_data=_get_field(data, "check_meta_data", bool, False),
            is_present=_get_field(data, "is_present", bool, False),
            disk_failed=_get_field(data, "disk_failed", bool, False),
            net_size=_get_field(data, "net_size", int, 0),
            gross_size=_get_field(data, "gross_size", int, 0)
        )


class ResourceState(object):

    """
    DRBD state of a resource on a node
    """

    def __init__(self, rsc_name, node_name, is_present=False, is_primary=False,
                 requires_adjust=False, vlm_states=None):
        self.rsc_name        = rsc_name
        self.node_name       = node_name
        self.is_present      = is_present
        self.is_primary      = is_primary
        self.requires_adjust = requires_adjust
        self.vlm_states      = vlm_states if vlm_states is not None else []

    def get_volume_state(self, vlm_nr):
        """
        Returns the state of the volume with the specified number or None
        """
        for vlm_state in self.vlm_states:
            if vlm_state.vlm_nr == vlm_nr:
                return vlm_state
        return None

    @classmethod
    def from_dict(cls, data):
        _check_object(data, "resource state")
        return cls(
            _get_field(data, "rsc_name", str, ""),
            _get_field(data, "node_name", str, ""),
            is_present=_get_field(data, "is_present", bool, False),
            is_primary=_get_field(data, "is_primary", bool, False),
            requires_adjust=_get_field(data, "requires_adjust", bool, False),
            vlm_states=[
                VolumeState.from_dict(entry)
                for entry in _get_field(data, "vlm_states", list, [])
            ]
        )


class VolumeInfo(object):

    """
    Placement of one volume of a resource: storage pool and minor number
    """

    def __init__(self, vlm_nr, vlm_minor_nr, stor_pool_name="", stor_pool_uuid="",
                 vlm_uuid="", vlm_dfn_uuid=""):
        self.vlm_nr         = vlm_nr
        self.vlm_minor_nr   = vlm_minor_nr
        self.stor_pool_name = stor_pool_name
        self.stor_pool_uuid = stor_pool_uuid
        self.vlm_uuid       = vlm_uuid
        self.vlm_dfn_uuid   = vlm_dfn_uuid

    @classmethod
    def from_dict(cls, data):
        _check_object(data, "volume")
        return cls(
            _get_field(data, "vlm_nr", int, 0),
            _get_field(data, "vlm_minor_nr", int, 0),
            stor_pool_name=_get_field(data, "stor_pool_name", str, ""),
            stor_pool_uuid=_get_field(data, "stor_pool_uuid", str, ""),
            vlm_uuid=_get_field(data, "vlm_uuid", str, ""),
            vlm_dfn_uuid=_get_field(data, "vlm_dfn_uuid", str, "")
        )


class ResourceInfo(object):

    """
    A resource definition deployed to a node
    """

    def __init__(self, name, node_name, uuid="", node_uuid="", rsc_dfn_uuid="",
                 props=None, rsc_flags=None, vlms=None):
        self.name         = name
        self.node_name    = node_name
        self.uuid         = uuid
        self.node_uuid    = node_uuid
        self.rsc_dfn_uuid = rsc_dfn_uuid
        self.props        = props if props is not None else {}
        self.rsc_flags    = rsc_flags if rsc_flags is not None else []
        self.vlms         = vlms if vlms is not None else []

    def is_diskless(self):
        return RSC_FLAG_DISKLESS in self.rsc_flags

    @classmethod
    def from_dict(cls, data):
        _check_object(data, "resource")
        rsc_flags = _get_field(data, "rsc_flags", list, [])
        for flag in rsc_flags:
            if not isinstance(flag, str):
                raise DecodeException("Resource flag is not a string: %r" % (flag,))
        return cls(
            _get_field(data, "name", str, ""),
            _get_field(data, "node_name", str, ""),
            uuid=_get_field(data, "uuid", str, ""),
            node_uuid=_get_field(data, "node_uuid", str, ""),
            rsc_dfn_uuid=_get_field(data, "rsc_dfn_uuid", str, ""),
            props=key_value_dict(data.get("props")),
            rsc_flags=rsc_flags,
            vlms=[
                VolumeInfo.from_dict(entry)
                for entry in _get_field(data, "vlms", list, [])
            ]
        )


class ResourceList(object):

    """
    Snapshot of the controller's resource list at one point in time
    """

    def __init__(self, resources=None, resource_states=None):
        self.resources       = resources if resources is not None else []
        self.resource_states = resource_states if resource_states is not None else []

    def has_resource(self, rsc_name):
        """
        Returns True if the resource is deployed to any node
        """
        for rsc in self.resources:
            if rsc.name == rsc_name:
                return True
        return False

    def has_resource_on_node(self, rsc_name, node_name):
        """
        Returns True if the resource is deployed to the specified node
        """
        for rsc in self.resources:
            if rsc.name == rsc_name and rsc.node_name == node_name:
                return True
        return False

    def get_resource_state(self, rsc_name, node_name):
        for rsc_state in self.resource_states:
            if rsc_state.rsc_name == rsc_name and rsc_state.node_name == node_name:
                return rsc_state
        return None

    def find_volume_state(self, rsc_name, vlm_nr, node_name=None):
        """
        Returns the first volume state of a resource with the specified
        volume number

        If node_name is None, states on every node are considered and the
        first match in the order of the controller's reply is returned.
        """
        for rsc_state in self.resource_states:
            if rsc_state.rsc_name != rsc_name:
                continue
            if node_name is not None and rsc_state.node_name != node_name:
                continue
            vlm_state = rsc_state.get_volume_state(vlm_nr)
            if vlm_state is not None:
                return vlm_state
        return None

    def is_client(self, rsc_name, node_name):
        """
        Returns True if volume 0 of the resource has no local disk on the node

        A resource that is not deployed to the node is not a client.
        """
        rsc_state = self.get_resource_state(rsc_name, node_name)
        if rsc_state is not None:
            vlm_state = rsc_state.get_volume_state(consts.REPRESENTATIVE_VLM_NR)
            if vlm_state is not None:
                return not vlm_state.has_disk
        return False

    @classmethod
    def from_json(cls, output):
        """
        Decodes the output of 'linstor -m ls-rsc'

        Raises DecodeException if the output is not valid JSON or does not
        have the expected structure
        """
        try:
            data = json.loads(output)
        except (ValueError, TypeError) as value_err:
            raise DecodeException(
                "couldn't decode resource list %s: %s" % (output, str(value_err)),
                output=output
            )
        if not isinstance(data, list):
            raise DecodeException(
                "Resource list reply is not a list: '%s'" % (output), output=output
            )
        snapshot = cls()
        try:
            for entry in data:
                _check_object(entry, "resource list")
                snapshot.resources += [
                    ResourceInfo.from_dict(rsc)
                    for rsc in _get_field(entry, "resources", list, [])
                ]
                snapshot.resource_states += [
                    ResourceState.from_dict(rsc_state)
                    for rsc_state in _get_field(entry, "resource_states", list, [])
                ]
        except DecodeException as dec_exc:
            dec_exc.output = output
            raise
        return snapshot


def _check_object(data, what):
    if not isinstance(data, dict):
        raise DecodeException("Invalid %s entry: %r" % (what, data))


def _get_field(data, key, value_type, default):
    """
    Returns a field of a decoded JSON object, or the default if it is absent

    Raises DecodeException if the field is present with the wrong type
    """
    value = data.get(key)
    if value is None:
        return default
    # bool is a subclass of int, but a flag is never a number
    if not isinstance(value, value_type) or (value_type is int and isinstance(value, bool)):
        raise DecodeException(
            "Field '%s' has an unexpected type: %r" % (key, value)
        )
    return value
