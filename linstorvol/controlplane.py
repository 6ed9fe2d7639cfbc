#!/usr/bin/env python3
"""
    linstorvol - management of LINSTOR-backed DRBD volumes
    Copyright (C) 2018   LINBIT HA-Solutions GmbH

    For further information see the COPYING file.
"""

import logging
import linstorvol.consts as consts
import linstorvol.apistatus as apistatus
import linstorvol.utils as utils
from linstorvol.views import ResourceList


class LinstorCli(object):

    """
    Calls the external linstor client to control the LINSTOR controller

    Every command is run in machine readable mode. Mutating commands return
    a list of status messages that is checked for failures, the resource
    list query returns a ResourceList snapshot.
    """

    LINSTOR_UTIL = consts.LINSTOR_UTIL

    def __init__(self, executor=None, linstor_cmd=None):
        self._executor = executor if executor is not None else utils.CommandExecutor()
        if linstor_cmd is not None:
            self.LINSTOR_UTIL = linstor_cmd

    def create_resource_definition(self, res_name):
        """
        Reserves a resource name
        """
        self._run_status_cmd([consts.LS_CREATE_RSC_DFN, res_name])

    def create_volume_definition(self, res_name, size_kib):
        """
        Adds a volume of the specified size (in kiB) to a resource definition
        """
        self._run_status_cmd([
            consts.LS_CREATE_VLM_DFN, res_name,
            "%d%s" % (size_kib, consts.SIZE_SUFFIX_KIB)
        ])

    def create_resource(self, res_name, node_name, stor_pool_name=None, diskless=False):
        """
        Deploys a resource to a node

        The resource is backed by the specified storage pool, or attached
        without a local disk if diskless is set.
        """
        exec_args = [consts.LS_CREATE_RSC, res_name, node_name]
        if diskless:
            exec_args.append(consts.LS_FLAG_DISKLESS)
        else:
            exec_args += [consts.LS_FLAG_STOR_POOL, stor_pool_name]
        self._run_status_cmd(exec_args)

    def delete_resource(self, res_name, node_name):
        """
        Removes a resource from a node
        """
        self._run_status_cmd([consts.LS_DELETE_RSC, res_name, node_name])

    def delete_resource_definition(self, res_name):
        """
        Removes a resource definition and all of its deployments
        """
        self._run_status_cmd([consts.LS_DELETE_RSC_DFN, res_name])

    def list_resources(self):
        """
        Fetches a new snapshot of the controller's resource list

        @return: ResourceList
        Raises CommandExecException if the linstor client fails and
        DecodeException if its output cannot be decoded
        """
        output = self._run_linstor([consts.LS_LIST_RSC])
        return ResourceList.from_json(output)

    def _run_status_cmd(self, cmd_args):
        """
        Runs a mutating command and checks the status messages it returns
        """
        output = self._run_linstor(cmd_args)
        statuses = apistatus.decode_statuses(output)
        for message in statuses:
            logging.debug(
                "%s: %s: %s" % (self.__class__.__name__, cmd_args[0], str(message))
            )
        apistatus.validate(statuses)

    def _run_linstor(self, cmd_args):
        exec_args = [self.LINSTOR_UTIL, consts.LINSTOR_MACHINE_READABLE] + cmd_args
        return self._executor.execute(exec_args)
