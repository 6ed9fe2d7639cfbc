#!/usr/bin/env python3
"""
    linstorvol - management of LINSTOR-backed DRBD volumes
    Copyright (C) 2018   LINBIT HA-Solutions GmbH

    For further information see the COPYING file.
"""

"""
Installer & Package creator for linstorvol
"""

from setuptools import setup


def get_version():
    from linstorvol.consts import LV_VERSION
    return LV_VERSION


# used to overwrite version tag by internal build tools
# keep it, even if you don't understand it.
def get_setup_version():
    return get_version()


def gen_data_files():
    # The sample configuration is copied to /etc by the distribution packages
    return [("share/linstorvol", ["conf/linstorvol.cfg"])]

setup(
    name="linstorvol",
    version=get_setup_version(),
    description="Client side management of LINSTOR-backed DRBD volumes",
    long_description="linstorvol reserves and assigns replicated DRBD volumes\n" +
    "through the LINSTOR command line client, waits for the resulting\n" +
    "DRBD device to appear on the local node and creates and mounts a\n" +
    "filesystem on it without ever overwriting an existing filesystem.",
    maintainer="LINBIT HA Solutions GmbH",
    maintainer_email="drbd-dev@lists.linbit.com",
    license="GPLv3",
    python_requires=">=3.6",
    packages=[
        "linstorvol",
    ],
    py_modules=["linstorvol_client"],
    scripts=["scripts/linstorvol"],
    data_files=gen_data_files(),
    )
