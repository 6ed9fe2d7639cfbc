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

import logging
import os
import linstorvol.consts as consts
import linstorvol.utils as utils
from linstorvol.controlplane import LinstorCli
from linstorvol.devpath import DevicePathResolver
from linstorvol.exceptions import (
    LinstorVolException, CommandExecException, FilesystemExistsException,
    FilesystemProbeException, MountException
)


def parse_fs_type(blkid_output):
    """
    Returns the filesystem type from the output of 'blkid -o udev'

    blkid prints nothing for a device without a filesystem, in which case
    an empty string is returned.
    Raises FilesystemProbeException if the output cannot be parsed
    """
    fields = blkid_output.split()
    if len(fields) == 0:
        return ""

    block_attrs = {}
    for pair in fields:
        key, sepa, value = pair.partition("=")
        if not sepa:
            raise FilesystemProbeException(
                "couldn't parse filesystem data from %s" % (blkid_output)
            )
        block_attrs[key] = value

    try:
        return block_attrs[consts.BLKID_FS_TYPE_KEY]
    except KeyError:
        raise FilesystemProbeException(
            "couldn't find %s in %s" % (consts.BLKID_FS_TYPE_KEY, block_attrs)
        )


def check_fs_type(executor, device):
    """
    Probes the filesystem type of a device

    blkid exits with a nonzero exit code if there is no filesystem; its
    output is parsed anyway. Failure to run blkid at all is not taken
    as the absence of a filesystem.
    """
    try:
        output = executor.execute([consts.BLKID_UTIL, "-o", "udev", device])
    except CommandExecException as cmd_exc:
        if cmd_exc.exit_code is None:
            raise
        output = cmd_exc.output if cmd_exc.output is not None else ""
    return parse_fs_type(output)


class FSUtil(object):

    """
    Creates a filesystem on the device of a resource and mounts it

    A device is only ever formatted if it does not carry any filesystem yet.
    """

    # Names of the steps of mount(), reported by MountException
    STEP_DEV_PATH = "device path"
    STEP_FORMAT   = "format"
    STEP_MKDIR    = "mount point"
    STEP_MOUNT    = "mount"

    def __init__(self, res_name, fs_type=consts.DEFAULT_FS_TYPE, executor=None,
                 resolver=None, dev_retries=consts.DEFAULT_DEV_RETRIES):
        self.res_name    = res_name
        self.fs_type     = fs_type
        self.dev_retries = dev_retries
        self._executor   = executor if executor is not None else utils.CommandExecutor()
        if resolver is None:
            resolver = DevicePathResolver(LinstorCli(self._executor))
        self._resolver   = resolver

    def mount(self, path):
        """
        Mounts the resource's device on path

        Waits for the device, creates the filesystem if the device is empty
        and creates the mount point if it does not exist.
        Raises MountException naming the failed step
        """
        device = self._mount_step(
            self.STEP_DEV_PATH, "couldn't find the resource's device path",
            self._resolver.wait_for_dev_path, self.res_name, self.dev_retries
        )
        self._mount_step(
            self.STEP_FORMAT, "couldn't prepare the filesystem",
            self.safe_format, device
        )
        self._mount_step(
            self.STEP_MKDIR, "failed to make mount directory",
            self._executor.execute, [consts.MKDIR_UTIL, "-p", path]
        )
        self._mount_step(
            self.STEP_MOUNT, "mount failed",
            self._executor.execute, [consts.MOUNT_UTIL, device, path]
        )
        logging.info("Resource '%s': mounted %s on %s" % (self.res_name, device, path))

    def unmount(self, path):
        """
        Unmounts path

        Paths that are not a directory or that are not mounted are skipped,
        so unmounting can be repeated safely.
        """
        if not os.path.isdir(path):
            logging.debug("%s is not a directory, nothing to unmount" % (path))
            return

        try:
            self._executor.execute([consts.FINDMNT_UTIL, "-f", path])
        except CommandExecException as cmd_exc:
            if cmd_exc.exit_code is None:
                raise
            logging.debug("%s is not mounted, nothing to unmount" % (path))
            return

        try:
            self._executor.execute([consts.UMOUNT_UTIL, path])
        except CommandExecException as cmd_exc:
            raise cmd_exc.add_context("unable to unmount %s" % (path))
        logging.info("Resource '%s': unmounted %s" % (self.res_name, path))

    def safe_format(self, device):
        """
        Creates a filesystem of type fs_type on the device unless it is
        already formatted

        Raises FilesystemExistsException if the device carries a
        filesystem of a different type
        """
        try:
            device_fs = check_fs_type(self._executor, device)
        except LinstorVolException as lv_exc:
            raise lv_exc.add_context("unable to format filesystem for %s" % (device))

        if device_fs == self.fs_type:
            logging.debug(
                "Device %s is already formatted with %s" % (device, self.fs_type)
            )
            return

        if device_fs != "":
            raise FilesystemExistsException(
                "device %s already formatted with %s filesystem, refusing to "
                "overwrite with %s filesystem" % (device, device_fs, self.fs_type),
                device=device, fs_type=device_fs
            )

        logging.info("Creating %s filesystem on %s" % (self.fs_type, device))
        try:
            self._executor.execute([consts.MKFS_UTIL, "-t", self.fs_type, device])
        except CommandExecException as cmd_exc:
            raise cmd_exc.add_context("couldn't create %s filesystem" % (self.fs_type))

    def _mount_step(self, step, description, func, *args):
        try:
            return func(*args)
        except LinstorVolException as lv_exc:
            logging.error(
                "Resource '%s': mount step '%s' failed: %s"
                % (self.res_name, step, str(lv_exc))
            )
            raise MountException(
                "unable to mount device, %s: %s" % (description, str(lv_exc)),
                step=step, cause=lv_exc
            )
