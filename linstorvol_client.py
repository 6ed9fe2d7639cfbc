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
linstorvol command line interface (cli)

This client drives the LINSTOR controller through the linstor command
line client and prepares the resulting DRBD devices on the local node.
"""

import os
import sys
import re
import argparse
import logging
import logging.handlers

import linstorvol.consts as consts
from linstorvol.consts import (
    LV_VERSION, RES_NAME, NODE_NAME, KEY_LINSTOR_CMD, KEY_DEV_PREFIX,
    KEY_SETTLE_DELAY, KEY_RETRY_DELAY, KEY_DEV_RETRIES, KEY_FS_TYPE,
    KEY_STOR_POOL, KEY_LOGLEVEL
)
from linstorvol.utils import (
    SizeCalc, CommandExecutor, namecheck, load_conf_file, conf_get_float,
    conf_get_int, approximate_size_string
)
from linstorvol.exceptions import LinstorVolException, SyntaxException
from linstorvol.controlplane import LinstorCli
from linstorvol.resource import Resource
from linstorvol.devpath import DevicePathResolver
from linstorvol.fsutil import FSUtil


class LinstorVol(object):

    """
    linstorvol command line client
    """

    LOGGING_FORMAT = "linstorvol[%(process)d]: %(levelname)-10s %(message)s"

    LV_LOGLEVELS = {
        "CRITICAL" : logging.CRITICAL,
        "ERROR"    : logging.ERROR,
        "WARNING"  : logging.WARNING,
        "INFO"     : logging.INFO,
        "DEBUG"    : logging.DEBUG
    }

    # Exit code of queries that answered 'no'
    RC_NEGATIVE = 3

    """
    Unit names are lower-case; functions using the lookup table should
    convert the unit name to lower-case to look it up in this table
    """
    UNITS_MAP = {
        "k"   : SizeCalc.UNIT_kiB,
        "m"   : SizeCalc.UNIT_MiB,
        "g"   : SizeCalc.UNIT_GiB,
        "t"   : SizeCalc.UNIT_TiB,
        "p"   : SizeCalc.UNIT_PiB,
        "kib" : SizeCalc.UNIT_kiB,
        "mib" : SizeCalc.UNIT_MiB,
        "gib" : SizeCalc.UNIT_GiB,
        "tib" : SizeCalc.UNIT_TiB,
        "pib" : SizeCalc.UNIT_PiB,
        "kb"  : SizeCalc.UNIT_kB,
        "mb"  : SizeCalc.UNIT_MB,
        "gb"  : SizeCalc.UNIT_GB,
        "tb"  : SizeCalc.UNIT_TB,
        "pb"  : SizeCalc.UNIT_PB,
    }

    _config   = None
    _executor = None
    _linstor  = None

    def __init__(self, config=None, executor=None):
        self._parser = self.setup_parser()
        self._config = config
        self._executor = executor if executor is not None else CommandExecutor()

    def setup_parser(self):
        parser = argparse.ArgumentParser(prog='linstorvol')
        parser.add_argument('--version', '-v', action='version',
                            version='%(prog)s ' + LV_VERSION)
        parser.add_argument('--verbose', action='store_true',
                            help='Log debug messages to stderr')
        subp = parser.add_subparsers(title='subcommands',
                                     description='valid subcommands',
                                     dest='command')
        subp.required = True

        # create-resource
        p_new_res = subp.add_parser('create-resource',
                                    description='Reserves a resource name '
                                    'and defines its volume')
        p_new_res.add_argument('name', type=namecheck(RES_NAME),
                               help='Name of the new resource')
        p_new_res.add_argument('-s', '--size', required=True,
                               help='Size of the volume, e.g. 10GiB. '
                               'Default unit: GiB')
        p_new_res.set_defaults(func=self.cmd_create_resource)

        # assign-resource
        p_assign = subp.add_parser('assign-resource',
                                   description='Deploys a resource to nodes. '
                                   'Nodes that already have the resource are '
                                   'skipped.')
        p_assign.add_argument('name', type=namecheck(RES_NAME))
        self._add_node_args(p_assign)
        p_assign.set_defaults(func=self.cmd_assign)

        # deploy-resource
        p_deploy = subp.add_parser('deploy-resource',
                                   description='Creates a resource and '
                                   'deploys it to nodes')
        p_deploy.add_argument('name', type=namecheck(RES_NAME))
        p_deploy.add_argument('-s', '--size', required=True,
                              help='Size of the volume, e.g. 10GiB. '
                              'Default unit: GiB')
        self._add_node_args(p_deploy)
        p_deploy.set_defaults(func=self.cmd_deploy)

        # unassign-resource
        p_unassign = subp.add_parser('unassign-resource',
                                     description='Removes a resource from a node')
        p_unassign.add_argument('name', type=namecheck(RES_NAME))
        p_unassign.add_argument('node', type=namecheck(NODE_NAME))
        p_unassign.set_defaults(func=self.cmd_unassign)

        # delete-resource
        p_rm_res = subp.add_parser('delete-resource',
                                   description='Removes a resource from all '
                                   'nodes and deletes its definition')
        p_rm_res.add_argument('name', type=namecheck(RES_NAME))
        p_rm_res.set_defaults(func=self.cmd_delete)

        # list-resources
        p_lres = subp.add_parser('list-resources', aliases=['resources'],
                                 description='Prints the resources known '
                                 'to the controller')
        p_lres.set_defaults(func=self.cmd_list_resources)

        # resource-exists
        p_exists = subp.add_parser('resource-exists',
                                   description='Exits with exit code 0 if the '
                                   'resource is deployed (to the node), '
                                   'otherwise with exit code %d' % (self.RC_NEGATIVE))
        p_exists.add_argument('name', type=namecheck(RES_NAME))
        p_exists.add_argument('--node', type=namecheck(NODE_NAME))
        p_exists.set_defaults(func=self.cmd_exists)

        # is-client
        p_client = subp.add_parser('is-client',
                                   description='Exits with exit code 0 if the '
                                   'resource is attached to the node without '
                                   'a disk, otherwise with exit code %d'
                                   % (self.RC_NEGATIVE))
        p_client.add_argument('name', type=namecheck(RES_NAME))
        p_client.add_argument('node', type=namecheck(NODE_NAME))
        p_client.set_defaults(func=self.cmd_is_client)

        # wait-device
        p_wait = subp.add_parser('wait-device',
                                 description='Waits for the DRBD device of '
                                 'a resource and prints its path')
        p_wait.add_argument('name', type=namecheck(RES_NAME))
        p_wait.add_argument('--retries', type=int,
                            help='Number of lookups before giving up')
        p_wait.set_defaults(func=self.cmd_wait_device)

        # mount
        p_mount = subp.add_parser('mount',
                                  description='Creates a filesystem on the '
                                  'resource\'s device if it has none and '
                                  'mounts it')
        p_mount.add_argument('name', type=namecheck(RES_NAME))
        p_mount.add_argument('path', help='Mount point')
        p_mount.add_argument('-t', '--fs-type', help='Filesystem type')
        p_mount.set_defaults(func=self.cmd_mount)

        # unmount
        p_umount = subp.add_parser('unmount', aliases=['umount'],
                                   description='Unmounts the resource\'s '
                                   'filesystem')
        p_umount.add_argument('name', type=namecheck(RES_NAME))
        p_umount.add_argument('path', help='Mount point')
        p_umount.set_defaults(func=self.cmd_unmount)

        return parser

    def _add_node_args(self, subparser):
        subparser.add_argument('--node', '-n', nargs='+', default=[],
                               type=namecheck(NODE_NAME),
                               help='Nodes that get a replica with a local disk')
        subparser.add_argument('--client', '-c', nargs='+', default=[],
                               type=namecheck(NODE_NAME),
                               help='Nodes that attach the resource without a disk')
        subparser.add_argument('--storage-pool', '-p',
                               help='Storage pool of the replicas')

    def run(self, pargs=None):
        if pargs is None:
            pargs = sys.argv[1:]
        args = self._parser.parse_args(pargs)
        # Handlers must be in place before the configuration file is read,
        # otherwise its warnings go to an implicit stderr handler
        self.init_logging(args.verbose)
        if self._config is None:
            self._config = load_conf_file()
        self.set_loglevel(args.verbose)
        self._linstor = LinstorCli(self._executor, self._config[KEY_LINSTOR_CMD])
        try:
            return args.func(args)
        except LinstorVolException as lv_exc:
            sys.stderr.write("Error: %s\n" % (str(lv_exc)))
            return 1

    def init_logging(self, verbose=False):
        """
        Initialize global logging
        """
        root_logger = logging.getLogger("")
        if os.path.exists("/dev/log"):
            syslog_h = logging.handlers.SysLogHandler(address="/dev/log")
        else:
            syslog_h = logging.NullHandler()

        syslog_f = logging.Formatter(fmt=self.LOGGING_FORMAT)
        syslog_h.setFormatter(syslog_f)
        root_logger.addHandler(syslog_h)
        root_logger.setLevel(logging.INFO)

        if verbose:
            stderr_h = logging.StreamHandler(sys.stderr)
            stderr_h.setFormatter(syslog_f)
            stderr_h.setLevel(logging.DEBUG)
            root_logger.addHandler(stderr_h)

    def set_loglevel(self, verbose=False):
        """
        Sets the level of the root logger from the configuration
        """
        root_logger = logging.getLogger("")
        if verbose:
            root_logger.setLevel(logging.DEBUG)
            return
        try:
            loglevel_conf = str.upper(self._config[KEY_LOGLEVEL])
            root_logger.setLevel(self.LV_LOGLEVELS[loglevel_conf])
        except KeyError:
            root_logger.setLevel(logging.INFO)

    def cmd_create_resource(self, args):
        size_kib = self._get_volume_size_arg(args)
        self._get_resource(args, size_kib=size_kib).create()
        sys.stdout.write(
            "Resource '%s' created, volume size %s\n"
            % (args.name, approximate_size_string(size_kib))
        )
        return 0

    def cmd_assign(self, args):
        self._get_resource(args, node_list=args.node, client_list=args.client).assign()
        return 0

    def cmd_deploy(self, args):
        size_kib = self._get_volume_size_arg(args)
        self._get_resource(
            args, size_kib=size_kib, node_list=args.node, client_list=args.client
        ).create_and_assign()
        return 0

    def cmd_unassign(self, args):
        self._get_resource(args).unassign(args.node)
        return 0

    def cmd_delete(self, args):
        self._get_resource(args).delete()
        return 0

    def cmd_exists(self, args):
        resource = self._get_resource(args)
        if args.node is not None:
            present = resource.on_node(args.node)
        else:
            present = resource.exists()
        return 0 if present else self.RC_NEGATIVE

    def cmd_is_client(self, args):
        return 0 if self._get_resource(args).is_client(args.node) else self.RC_NEGATIVE

    def cmd_list_resources(self, args):
        snapshot = self._linstor.list_resources()
        rows = [("Resource", "Node", "Device", "Disk")]
        for rsc in snapshot.resources:
            device = "-"
            disk = "diskless" if rsc.is_diskless() else "-"
            rsc_state = snapshot.get_resource_state(rsc.name, rsc.node_name)
            if rsc_state is not None:
                vlm_state = rsc_state.get_volume_state(consts.REPRESENTATIVE_VLM_NR)
                if vlm_state is not None:
                    device = "%s%d" % (self._config[KEY_DEV_PREFIX], vlm_state.vlm_minor_nr)
                    disk = "local" if vlm_state.has_disk else "diskless"
            rows.append((rsc.name, rsc.node_name, device, disk))

        widths = [max(len(row[idx]) for row in rows) for idx in range(len(rows[0]))]
        for row in rows:
            sys.stdout.write(
                "  ".join(col.ljust(widths[idx]) for idx, col in enumerate(row)).rstrip()
                + "\n"
            )
        return 0

    def cmd_wait_device(self, args):
        retries = args.retries
        if retries is None:
            retries = conf_get_int(self._config, KEY_DEV_RETRIES)
        dev_path = self._get_resolver().wait_for_dev_path(args.name, retries)
        sys.stdout.write("%s\n" % (dev_path))
        return 0

    def cmd_mount(self, args):
        self._get_fsutil(args).mount(args.path)
        return 0

    def cmd_unmount(self, args):
        self._get_fsutil(args).unmount(args.path)
        return 0

    def _get_resource(self, args, size_kib=0, node_list=None, client_list=None):
        stor_pool = getattr(args, "storage_pool", None)
        if stor_pool is None:
            stor_pool = self._config[KEY_STOR_POOL]
        return Resource(
            args.name,
            node_list=node_list,
            client_list=client_list,
            stor_pool_name=stor_pool,
            size_kib=size_kib,
            linstor=self._linstor,
            settle_delay=conf_get_float(self._config, KEY_SETTLE_DELAY)
        )

    def _get_resolver(self):
        return DevicePathResolver(
            self._linstor,
            dev_prefix=self._config[KEY_DEV_PREFIX],
            retry_delay=conf_get_float(self._config, KEY_RETRY_DELAY)
        )

    def _get_fsutil(self, args):
        fs_type = getattr(args, "fs_type", None)
        if fs_type is None:
            fs_type = self._config[KEY_FS_TYPE]
        return FSUtil(
            args.name, fs_type=fs_type, executor=self._executor,
            resolver=self._get_resolver(),
            dev_retries=conf_get_int(self._config, KEY_DEV_RETRIES)
        )

    def _get_volume_size_arg(self, args):
        m = re.match(r'^(\d+)(\D*)$', args.size)

        try:
            size = int(m.group(1))
        except AttributeError:
            raise SyntaxException("Size '%s' is not a valid number" % (args.size))

        unit_str = m.group(2)
        if unit_str == "":
            unit_str = "GiB"
        try:
            unit = self.UNITS_MAP[unit_str.lower()]
        except KeyError:
            raise SyntaxException(
                "'%s' is not a valid unit, valid units: %s"
                % (unit_str, ",".join(sorted(self.UNITS_MAP.keys())))
            )

        if unit != SizeCalc.UNIT_kiB:
            size = SizeCalc.convert_round_up(size, unit, SizeCalc.UNIT_kiB)

        return size


def main():
    rc = 0
    client = LinstorVol()
    try:
        rc = client.run()
    except KeyboardInterrupt:
        sys.stderr.write("\nlinstorvol: Client exiting (received SIGINT)\n")
        rc = 1
    return rc

if __name__ == "__main__":
    sys.exit(main())
