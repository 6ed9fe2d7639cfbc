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
Global constants for linstorvol
"""

LV_VERSION = "0.1.0"

# External utilities
LINSTOR_UTIL = "linstor"
BLKID_UTIL   = "blkid"
MKFS_UTIL    = "mkfs"
MKDIR_UTIL   = "mkdir"
MOUNT_UTIL   = "mount"
UMOUNT_UTIL  = "umount"
FINDMNT_UTIL = "findmnt"

# Flag that switches the linstor client to machine readable (JSON) output
LINSTOR_MACHINE_READABLE = "-m"

# linstor client subcommands
LS_CREATE_RSC_DFN = "create-resource-definition"
LS_CREATE_VLM_DFN = "create-volume-definition"
LS_CREATE_RSC     = "create-resource"
LS_DELETE_RSC     = "delete-resource"
LS_DELETE_RSC_DFN = "delete-resource-definition"
LS_LIST_RSC       = "ls-rsc"

# linstor client flags
LS_FLAG_STOR_POOL = "-s"
LS_FLAG_DISKLESS  = "--diskless"

# Suffix for volume sizes passed to the linstor client
SIZE_SUFFIX_KIB = "kib"

# Severity bits of the 64 bit return code of a status message;
# this is the wire format of the controller, do not change
MASK_ERROR = 0x8000000000000000
MASK_WARN  = 0x4000000000000000
MASK_INFO  = 0x2000000000000000
MASK_SEVERITY = MASK_ERROR | MASK_WARN | MASK_INFO

SEVERITY_ERROR   = "error"
SEVERITY_WARN    = "warning"
SEVERITY_INFO    = "info"
SEVERITY_SUCCESS = "success"

# Volume number that represents a resource for device path and
# diskless client lookups
REPRESENTATIVE_VLM_NR = 0

# Device paths of DRBD volumes are this prefix followed by the minor number
DRBD_DEV_PREFIX = "/dev/drbd"

# blkid -o udev key that names the filesystem type
BLKID_FS_TYPE_KEY = "ID_FS_TYPE"

# Delay (float, in seconds) between creating a resource definition and
# creating its volume definition
DEFAULT_SETTLE_DELAY = 2

# Delay (float, in seconds) between device path lookups
DEFAULT_RETRY_DELAY = 2

# Number of device path lookups before mounting gives up
DEFAULT_DEV_RETRIES = 3

DEFAULT_FS_TYPE = "ext4"
DEFAULT_STOR_POOL = "DfltStorPool"

# Configuration file and keys
CONFFILE           = "/etc/linstorvol.cfg"
CONF_SECTION_LOCAL = "LOCAL"
KEY_FORCE          = "force"
KEY_LINSTOR_CMD    = "linstor-cmd"
KEY_DEV_PREFIX     = "device-prefix"
KEY_SETTLE_DELAY   = "settle-delay"
KEY_RETRY_DELAY    = "retry-delay"
KEY_DEV_RETRIES    = "dev-retries"
KEY_FS_TYPE        = "fs-type"
KEY_STOR_POOL      = "storage-pool"
KEY_LOGLEVEL       = "loglevel"

CONF_DEFAULTS = {
    KEY_LINSTOR_CMD:  LINSTOR_UTIL,
    KEY_DEV_PREFIX:   DRBD_DEV_PREFIX,
    KEY_SETTLE_DELAY: str(DEFAULT_SETTLE_DELAY),
    KEY_RETRY_DELAY:  str(DEFAULT_RETRY_DELAY),
    KEY_DEV_RETRIES:  str(DEFAULT_DEV_RETRIES),
    KEY_FS_TYPE:      DEFAULT_FS_TYPE,
    KEY_STOR_POOL:    DEFAULT_STOR_POOL,
    KEY_LOGLEVEL:     "INFO"
}

# RFC952 / RFC1035 / RFC1123 host name constraints; do not change
NODE_NAME_MINLEN = 2
NODE_NAME_MAXLEN = 255
NODE_NAME_LABEL_MAXLEN = 63

# Resource name constraints
RES_NAME_MINLEN = 1
RES_NAME_MAXLEN = 48    # Enough for a UUID string plus prefix
RES_NAME_VALID_CHARS = "_"
RES_NAME_VALID_INNER_CHARS = "-"

# Object types for name checks
RES_NAME  = "res_name"
NODE_NAME = "node_name"
