#!/usr/bin/env python3
"""
    linstorvol - management of LINSTOR-backed DRBD volumes
    Copyright (C) 2018   LINBIT HA-Solutions GmbH

    For further information see the COPYING file.
"""

"""
Discovery of the local DRBD device of a resource

After a resource was assigned to a node, the controller reports the minor
number of its volumes before the kernel has created the device node. The
device path is therefore polled until it exists.
"""

import logging
import os
import time
import linstorvol.consts as consts
from linstorvol.exceptions import LinstorVolException, DevicePathException


def dev_path_for_volume(vlm_state, dev_prefix=consts.DRBD_DEV_PREFIX):
    """
    Returns the device path of a volume, e.g. /dev/drbd7 for minor number 7
    """
    return "%s%d" % (dev_prefix, vlm_state.vlm_minor_nr)


class DevicePathResolver(object):

    """
    Resolves the device path of volume 0 of a resource

    NOTE: The volume state is looked up by resource name only. If the
          snapshot contains the resource on several nodes, the first state
          in the controller's reply is used, which is not necessarily the
          one of the local node.
    """

    def __init__(self, linstor, dev_prefix=consts.DRBD_DEV_PREFIX,
                 retry_delay=consts.DEFAULT_RETRY_DELAY):
        self._linstor    = linstor
        self.dev_prefix  = dev_prefix
        self.retry_delay = retry_delay

    def get_dev_path(self, res_name):
        """
        Looks up the device path once

        @return: device path of volume 0 of the resource
        Raises DevicePathException if the controller does not report a
        volume 0 for the resource or if the device does not exist
        """
        snapshot = self._linstor.list_resources()
        vlm_state = snapshot.find_volume_state(res_name, consts.REPRESENTATIVE_VLM_NR)
        if vlm_state is None:
            raise DevicePathException(
                "No state information for volume %d of resource %s"
                % (consts.REPRESENTATIVE_VLM_NR, res_name)
            )

        dev_path = dev_path_for_volume(vlm_state, self.dev_prefix)
        try:
            os.lstat(dev_path)
        except OSError as os_err:
            raise DevicePathException(
                "Couldn't stat %s: %s" % (dev_path, os_err.strerror)
            )
        return dev_path

    def wait_for_dev_path(self, res_name, max_retries):
        """
        Polls until the device path of the resource exists

        Waits retry_delay seconds between attempts. After max_retries failed
        attempts, the exception of the last attempt is raised.
        """
        if max_retries < 1:
            raise DevicePathException(
                "Cannot look up the device path of resource %s with %d attempts"
                % (res_name, max_retries)
            )
        attempt = 1
        while True:
            try:
                dev_path = self.get_dev_path(res_name)
                logging.debug(
                    "Resource '%s': device path %s found after %d attempt(s)"
                    % (res_name, dev_path, attempt)
                )
                return dev_path
            except LinstorVolException as lv_exc:
                logging.debug(
                    "Resource '%s': device path lookup %d/%d failed: %s"
                    % (res_name, attempt, max_retries, str(lv_exc))
                )
                if attempt >= max_retries:
                    raise
            attempt += 1
            time.sleep(self.retry_delay)
