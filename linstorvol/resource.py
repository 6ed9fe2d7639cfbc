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
Lifecycle of LINSTOR resources

A resource is reserved by creating its resource definition and volume
definition, then assigned to nodes either with a local disk from a storage
pool or as a diskless client. Assigning is idempotent: nodes that already
have the resource are skipped, so a failed assignment can simply be retried.
Nothing is rolled back on failure.
"""

import logging
import time
import linstorvol.consts as consts
from linstorvol.controlplane import LinstorCli
from linstorvol.exceptions import LinstorVolException, NoResourceDefinitionException


class Resource(object):

    """
    A replicated storage volume managed by the LINSTOR controller

    node_name is only required for operations on a single node, redundancy
    only when deploying. node_list holds the nodes that get a replica backed
    by stor_pool_name, client_list the nodes that attach without a disk.
    """

    def __init__(self, name, node_name=None, redundancy=None, node_list=None,
                 client_list=None, stor_pool_name=consts.DEFAULT_STOR_POOL,
                 size_kib=0, linstor=None, settle_delay=consts.DEFAULT_SETTLE_DELAY):
        self.name           = name
        self.node_name      = node_name
        self.redundancy     = redundancy
        self.node_list      = list(node_list) if node_list is not None else []
        self.client_list    = list(client_list) if client_list is not None else []
        self.stor_pool_name = stor_pool_name
        self.size_kib       = size_kib
        self.settle_delay   = settle_delay
        self._linstor       = linstor if linstor is not None else LinstorCli()

    def create(self):
        """
        Reserves the resource name and defines its volume

        The volume definition is only created after the resource definition
        had settle_delay seconds to propagate through the controller.
        """
        logging.info("Resource '%s': creating resource definition" % (self.name))
        try:
            self._linstor.create_resource_definition(self.name)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context("unable to reserve resource name %s" % (self.name))

        if self.settle_delay > 0:
            time.sleep(self.settle_delay)

        logging.info(
            "Resource '%s': creating volume definition, size %d kiB"
            % (self.name, self.size_kib)
        )
        try:
            self._linstor.create_volume_definition(self.name, self.size_kib)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context(
                "unable to create volume definition for resource %s" % (self.name)
            )

    def assign(self):
        """
        Deploys the resource to every node of node_list with a disk from
        the storage pool, then to every node of client_list without a disk

        Nodes that already have the resource are skipped.
        """
        try:
            defined = self.exists()
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context(
                "unable to determine if resource %s is defined" % (self.name)
            )
        if not defined:
            raise NoResourceDefinitionException(
                "No resource definition for resource %s" % (self.name)
            )

        for node_name in self.node_list:
            self._assign_to_node(node_name, diskless=False)
        for node_name in self.client_list:
            self._assign_to_node(node_name, diskless=True)

    def create_and_assign(self):
        """
        Creates the resource and assigns it to its nodes

        If assigning fails, the resource definition is left in place and
        assign() can be retried.
        """
        self.create()
        self.assign()

    def unassign(self, node_name):
        """
        Removes the resource from one node
        """
        logging.info("Resource '%s': unassigning from node '%s'" % (self.name, node_name))
        try:
            self._linstor.delete_resource(self.name, node_name)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context(
                "failed to unassign resource %s from node %s" % (self.name, node_name)
            )

    def delete(self):
        """
        Removes the resource definition and thereby the resource from all nodes
        """
        logging.info("Resource '%s': deleting resource definition" % (self.name))
        try:
            self._linstor.delete_resource_definition(self.name)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context("failed to delete resource %s" % (self.name))

    def exists(self):
        """
        Returns True if the resource is deployed to any node
        """
        return self._linstor.list_resources().has_resource(self.name)

    def on_node(self, node_name):
        """
        Returns True if the resource is deployed to the specified node
        """
        return self._linstor.list_resources().has_resource_on_node(self.name, node_name)

    def is_client(self, node_name):
        """
        Returns True if the resource is attached to the node without a disk

        Failures to query the controller are logged and reported as False.
        """
        try:
            snapshot = self._linstor.list_resources()
        except LinstorVolException as lv_exc:
            logging.warning(
                "Resource '%s': cannot determine the client state on node '%s': %s"
                % (self.name, node_name, str(lv_exc))
            )
            return False
        return snapshot.is_client(self.name, node_name)

    def _assign_to_node(self, node_name, diskless):
        try:
            present = self.on_node(node_name)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context(
                "unable to assign resource %s, failed to check if it was "
                "already present on node %s" % (self.name, node_name)
            )
        if present:
            logging.debug(
                "Resource '%s': already present on node '%s', skipped"
                % (self.name, node_name)
            )
            return

        if diskless:
            logging.info(
                "Resource '%s': assigning to node '%s' as a diskless client"
                % (self.name, node_name)
            )
        else:
            logging.info(
                "Resource '%s': assigning to node '%s', storage pool '%s'"
                % (self.name, node_name, self.stor_pool_name)
            )
        try:
            self._linstor.create_resource(
                self.name, node_name,
                stor_pool_name=self.stor_pool_name, diskless=diskless
            )
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context(
                "failed to assign resource %s to node %s" % (self.name, node_name)
            )
