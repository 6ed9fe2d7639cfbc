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
import errno
import unittest
import unittest.mock as mock

import linstorvol.exceptions as LVE
from linstorvol.controlplane import LinstorCli
from linstorvol.devpath import DevicePathResolver, dev_path_for_volume
from linstorvol.views import VolumeState

from linstorvol_fakes import (
    FakeExecutor, EMPTY_RSC_LIST, rsc, rsc_state, vlm_state, rsc_list_reply
)

LS_RSC = ["linstor", "-m", "ls-rsc"]


def _enoent(path):
    raise OSError(errno.ENOENT, "No such file or directory", path)


class DevPathForVolumeTests(unittest.TestCase):

    def test_dev_path_for_volume(self):
        """the device path is the prefix followed by the minor number"""
        self.assertEqual(dev_path_for_volume(VolumeState(0, 7)), "/dev/drbd7")
        self.assertEqual(dev_path_for_volume(VolumeState(0, 0)), "/dev/drbd0")
        self.assertEqual(
            dev_path_for_volume(VolumeState(0, 1000), "/dev/mapper/drbd"),
            "/dev/mapper/drbd1000"
        )


class DevicePathResolverTests(unittest.TestCase):

    def setUp(self):
        self.executor = FakeExecutor()
        self.resolver = DevicePathResolver(LinstorCli(self.executor), retry_delay=2)

    def tearDown(self):
        self.executor = None
        self.resolver = None

    def _deployed(self, minor=7):
        return rsc_list_reply(
            [rsc("r0", "alpha", minor=minor)],
            [rsc_state("r0", "alpha", [vlm_state(minor=minor)])]
        )

    @mock.patch("linstorvol.devpath.os")
    def test_get_dev_path(self, mock_os):
        """returns the device path if it exists"""
        self.executor.add_reply(LS_RSC, self._deployed(minor=7))

        self.assertEqual(self.resolver.get_dev_path("r0"), "/dev/drbd7")
        mock_os.lstat.assert_called_once_with("/dev/drbd7")

    @mock.patch("linstorvol.devpath.os")
    def test_get_dev_path_missing_device(self, mock_os):
        """raises DevicePathException if the device does not exist"""
        self.executor.add_reply(LS_RSC, self._deployed(minor=7))
        mock_os.lstat.side_effect = _enoent

        with self.assertRaises(LVE.DevicePathException) as ctx:
            self.resolver.get_dev_path("r0")

        self.assertIn("/dev/drbd7", str(ctx.exception))

    def test_get_dev_path_unknown_resource(self):
        """raises DevicePathException if there is no volume 0 state"""
        self.executor.add_reply(LS_RSC, EMPTY_RSC_LIST)

        self.assertRaises(LVE.DevicePathException, self.resolver.get_dev_path, "r0")

    @mock.patch("linstorvol.devpath.os")
    def test_get_dev_path_first_state(self, mock_os):
        """uses the first state of the resource on any node"""
        self.executor.add_reply(LS_RSC, rsc_list_reply(
            [rsc("r0", "alpha"), rsc("r0", "bravo")],
            [
                rsc_state("r0", "bravo", [vlm_state(minor=1001)]),
                rsc_state("r0", "alpha", [vlm_state(minor=1000)])
            ]
        ))

        self.assertEqual(self.resolver.get_dev_path("r0"), "/dev/drbd1001")

    @mock.patch("linstorvol.devpath.time")
    @mock.patch("linstorvol.devpath.os")
    def test_wait_for_dev_path(self, mock_os, mock_time):
        """polls until the device shows up"""
        self.executor.add_reply(LS_RSC, EMPTY_RSC_LIST, self._deployed(minor=7))
        mock_os.lstat.side_effect = [OSError(errno.ENOENT, "No such file"), None]

        dev_path = self.resolver.wait_for_dev_path("r0", 3)

        self.assertEqual(dev_path, "/dev/drbd7")
        self.assertEqual(len(self.executor.calls), 3)
        self.assertEqual(mock_time.sleep.call_args_list, [mock.call(2), mock.call(2)])

    @mock.patch("linstorvol.devpath.time")
    @mock.patch("linstorvol.devpath.os")
    def test_wait_for_dev_path_first_attempt(self, mock_os, mock_time):
        """does not sleep if the device is there"""
        self.executor.add_reply(LS_RSC, self._deployed(minor=0))

        self.assertEqual(self.resolver.wait_for_dev_path("r0", 3), "/dev/drbd0")
        self.assertFalse(mock_time.sleep.called)

    @mock.patch("linstorvol.devpath.time")
    @mock.patch("linstorvol.devpath.os")
    def test_wait_for_dev_path_exhausted(self, mock_os, mock_time):
        """raises the error of the last attempt"""
        self.executor.add_reply(
            LS_RSC, self._deployed(minor=7), self._deployed(minor=7), "not json"
        )
        mock_os.lstat.side_effect = _enoent

        self.assertRaises(
            LVE.DecodeException, self.resolver.wait_for_dev_path, "r0", 3
        )
        self.assertEqual(len(self.executor.calls), 3)
        self.assertEqual(mock_time.sleep.call_count, 2)

    @mock.patch("linstorvol.devpath.time")
    def test_wait_for_dev_path_no_attempts(self, mock_time):
        """a retry count below one is rejected"""
        self.assertRaises(
            LVE.DevicePathException, self.resolver.wait_for_dev_path, "r0", 0
        )
        self.assertEqual(self.executor.calls, [])


if __name__ == "__main__":
    unittest.main()
