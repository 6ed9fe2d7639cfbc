#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
    linstorvol - management of LINSTOR-backed DRBD volumes
    Copyright (C) 2018   LINBIT HA-Solutions GmbH

    You can use this file under the terms of the GNU Lesser General
    Public License as as published by the Free Software Foundation,
    either version 3 of the License, or (at your option) any later
    version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU Lesser General Public License for more details.

    See <http://www.gnu.org/licenses/>.
"""

"""
Generalized utility functions and classes for linstorvol
"""

import errno
import os
import subprocess
import logging
import configparser
import argparse
from linstorvol.exceptions import (
    InvalidNameException, SyntaxException, CommandExecException
)
from linstorvol.consts import (
    CONFFILE, CONF_SECTION_LOCAL, CONF_DEFAULTS, KEY_FORCE, RES_NAME, NODE_NAME,
    NODE_NAME_MINLEN, NODE_NAME_MAXLEN, NODE_NAME_LABEL_MAXLEN,
    RES_NAME_MINLEN, RES_NAME_MAXLEN, RES_NAME_VALID_CHARS,
    RES_NAME_VALID_INNER_CHARS
)


def check_name(name, min_length, max_length, valid_chars, valid_inner_chars):
    """
    Check the validity of a string for use as a name for
    objects like resources.
    A valid name must match these conditions:
      * must at least be 1 byte long
      * must not be longer than specified by the caller
      * contains a-z, A-Z, 0-9, and the characters allowed
        by the caller only
      * contains at least one alpha character (a-z, A-Z)
      * must not start with a numeric character
      * must not start with a character allowed by the caller as
        an inner character only (valid_inner_chars)
    @param name         the name to check
    @param max_length   the maximum permissible length of the name
    @param valid_chars  list of characters allowed in addition to
                        [a-zA-Z0-9]
    @param valid_inner_chars    list of characters allowed in any
                        position in the name other than the first,
                        in addition to [a-zA-Z0-9] and the characters
                        already specified in valid_chars
    returns the valid name or raises InvalidNameException
    """
    if min_length is None or max_length is None:
        raise ValueError
    if name is None:
        raise InvalidNameException
    name_b = bytearray(str(name), "utf-8")
    name_len = len(name_b)
    if name_len < min_length or name_len > max_length:
        raise InvalidNameException
    alpha = False
    idx = 0
    while idx < name_len:
        item = name_b[idx]
        if item >= ord('a') and item <= ord('z'):
            alpha = True
        elif item >= ord('A') and item <= ord('Z'):
            alpha = True
        else:
            if (not (item >= ord('0') and item <= ord('9') and idx >= 1)):
                letter = chr(item)
                if (not (letter in valid_chars or (letter in valid_inner_chars and idx >= 1))):
                    # Illegal character in name
                    raise InvalidNameException
        idx += 1
    if not alpha:
        raise InvalidNameException
    return name_b.decode("utf-8")


def check_node_name(name):
    """
    RFC952 / RFC1123 internet host name validity check

    @returns Valid host name or raises linstorvol.exceptions.InvalidNameException
    """
    if name is None:
        raise InvalidNameException
    name_b = bytearray(str(name), "utf-8")
    name_len = len(name_b)
    if name_len < NODE_NAME_MINLEN or name_len > NODE_NAME_MAXLEN:
        raise InvalidNameException
    for label in name_b.split(b"."):
        if len(label) > NODE_NAME_LABEL_MAXLEN:
            raise InvalidNameException
    idx = 0
    while idx < name_len:
        letter = name_b[idx]
        if not ((letter >= ord('a') and letter <= ord('z')) or
            (letter >= ord('A') and letter <= ord('Z')) or
            (letter >= ord('0') and letter <= ord('9'))):
            # special characters allowed depending on position within the string
            if idx == 0 or idx + 1 == name_len:
                raise InvalidNameException
            else:
                if not (letter == ord('.') or letter == ord('-')):
                    raise InvalidNameException
        idx += 1
    return name_b.decode("utf-8")


# "type" used for argparse
def namecheck(checktype):

    def check(name):
        try:
            if checktype == NODE_NAME:
                name = check_node_name(name)
            elif checktype == RES_NAME:
                name = check_name(name, RES_NAME_MINLEN, RES_NAME_MAXLEN,
                                  RES_NAME_VALID_CHARS, RES_NAME_VALID_INNER_CHARS)
            else:
                raise ValueError("unknown name type '%s'" % (checktype))
        except InvalidNameException:
            raise argparse.ArgumentTypeError('Name: %s not valid' % (name))
        return name
    return check


def load_conf_file(conf_path=CONFFILE):
    """
    Load the local configuration and merge it over the built-in defaults

    Keys that are not known are ignored unless the section contains
    the 'force' key. A missing configuration file is not an error.
    """
    config = CONF_DEFAULTS.copy()

    cfg = configparser.RawConfigParser()
    read_ok = cfg.read(conf_path)  # read catches IOErrors internally, returns list of ok files
    if len(read_ok) == 1:
        for section in cfg.sections():
            if section.startswith(CONF_SECTION_LOCAL):
                in_file_cfg = dict(cfg.items(section))
                if not cfg.has_option(section, KEY_FORCE):
                    final_config = filter_allowed(in_file_cfg.copy(), CONF_DEFAULTS.keys())
                    ignored = [k for k in in_file_cfg if k not in final_config]
                    for k in ignored:
                        logging.warning("Ignoring %s in configuration file" % (k))
                else:
                    final_config = filter_prohibited(in_file_cfg, (KEY_FORCE,))
                config.update(final_config)
    else:
        logging.warning("Could not read configuration file '%s'" % (conf_path))

    return config


def conf_get_float(config, key):
    """
    Returns a numeric configuration value as a float
    """
    try:
        return float(config[key])
    except ValueError:
        raise SyntaxException(
            "Configuration key '%s' is not a number: '%s'" % (key, config[key])
        )


def conf_get_int(config, key):
    """
    Returns a numeric configuration value as an int
    """
    try:
        return int(config[key])
    except ValueError:
        raise SyntaxException(
            "Configuration key '%s' is not an integer: '%s'" % (key, config[key])
        )


def filter_prohibited(to_filter, prohibited):
    for k in prohibited:
        if k in to_filter:
            del(to_filter[k])
    return to_filter


def filter_allowed(to_filter, allowed):
    for k in list(to_filter.keys()):
        if k not in allowed:
            del(to_filter[k])
    return to_filter


def read_lines(in_file):
    """
    Generator that yields the content of a file line-by-line

    This generator enables you to replace a loop like this:
    while True:
        line = in_file.readline()
        if not len(line) > 0:
            break
        <... code ...>
    with the simpler variant:
    for line in read_lines(in_file):
        <... code ...>
    """
    lines_available = True
    while lines_available:
        line = in_file.readline()
        if len(line) > 0:
            yield line
        else:
            lines_available = False


class ExternalCommand(object):

    """
    Runs an external command and hands each line of its combined
    stdout/stderr output to stdout_handler()
    """

    _args    = None
    _env     = None

    _trace_exec_args = None
    _trace_exit_code = None
    source           = None

    def __init__(self, source, command_args, env=None,
                 trace_exec_args=None, trace_exit_code=None):
        self._args = command_args
        self._env  = env
        self._trace_exec_args = trace_exec_args
        self._trace_exit_code = trace_exit_code
        self.source           = source

    def run(self):
        # Log the command arguments
        if self._trace_exec_args is not None:
            self._trace_exec_args(self.source, self._args)

        # Spawn the process, stderr is merged into stdout and bytes that are
        # not valid UTF-8 are replaced. Leaving the block closes the pipe and
        # waits for the process.
        with subprocess.Popen(
            self._args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            env=self._env, close_fds=True, encoding="utf-8", errors="replace"
        ) as proc:
            for line in read_lines(proc.stdout):
                self.stdout_handler(self.source, self._args[0], line)
        exit_code = proc.returncode

        # Log the command's exit code
        if self._trace_exit_code is not None:
            self._trace_exit_code(self.source, self._args[0], exit_code)

        return exit_code

    def stdout_handler(self, source, command, line):
        pass


class ExternalCommandBuffer(ExternalCommand):

    _out_buffer = None
    _command    = None

    def __init__(self, source, command_args, env=None,
                 trace_exec_args=None, trace_exit_code=None):
        super(ExternalCommandBuffer, self).__init__(
            source, command_args, env, trace_exec_args, trace_exit_code
        )
        self._out_buffer = []
        self._command  = command_args[0]

    def stdout_handler(self, source, command, line):
        self._out_buffer.append(line)

    def log_stdout(self, log_handler=logging.error):
        for line in self._out_buffer:
            log_handler("%s/output: %s" % (self._command, line.rstrip("\n")))

    def get_output(self):
        return "".join(self._out_buffer)


class CommandExecutor(object):

    """
    Runs external commands and returns their combined output

    This is the only place where linstorvol spawns processes. Everything
    that talks to the controller or to the host's filesystem utilities
    receives an executor, so tests can substitute an object that provides
    an execute() method returning canned output.
    """

    _subproc_env = None

    def __init__(self):
        # Setup the environment for subprocesses
        self._subproc_env = dict(os.environ.items())
        self._subproc_env["LC_ALL"] = "C"
        self._subproc_env["LANG"]   = "C"

    def execute(self, exec_args):
        """
        Runs a command and returns its combined stdout/stderr output

        @param   exec_args: command name followed by its arguments
        @return: output of the command as a string
        Raises CommandExecException if the command cannot be run or if it
        exits with a nonzero exit code
        """
        command = exec_args[0]
        cmd_exec = ExternalCommandBuffer(
            self.__class__.__name__, exec_args, env=self._subproc_env,
            trace_exec_args=debug_trace_exec_args,
            trace_exit_code=smart_trace_exit_code,
        )
        try:
            exit_code = cmd_exec.run()
        except OSError as oserr:
            if oserr.errno == errno.ENOENT:
                message = ("Cannot find utility '%s', in PATH '%s'"
                           % (command, self._subproc_env.get("PATH", "")))
            elif oserr.errno == errno.EACCES:
                message = "Cannot execute utility '%s', permission denied" % (command)
            else:
                message = ("Cannot execute utility '%s', error returned by "
                           "the OS is: %s" % (command, oserr.strerror))
            logging.error(message)
            raise CommandExecException(message, exec_args=exec_args)

        output = cmd_exec.get_output()
        # Log the output at the error loglevel if the command failed,
        # otherwise log at the debug loglevel
        if exit_code != 0:
            cmd_exec.log_stdout()
            raise CommandExecException(
                "External command '%s' failed with exit code %d"
                % (" ".join(exec_args), exit_code),
                exec_args=exec_args, exit_code=exit_code, output=output
            )
        cmd_exec.log_stdout(log_handler=logging.debug)
        return output


class SizeCalc(object):

    """
    Methods for converting decimal and binary sizes of different magnitudes
    """

    _base_2  = 0x0200
    _base_10 = 0x0A00

    UNIT_B   =  0 | _base_2
    UNIT_kiB = 10 | _base_2
    UNIT_MiB = 20 | _base_2
    UNIT_GiB = 30 | _base_2
    UNIT_TiB = 40 | _base_2
    UNIT_PiB = 50 | _base_2

    UNIT_kB =   3 | _base_10
    UNIT_MB =   6 | _base_10
    UNIT_GB =   9 | _base_10
    UNIT_TB =  12 | _base_10
    UNIT_PB =  15 | _base_10

    @classmethod
    def convert_round_up(cls, size, unit_in, unit_out):
        """
        Convert a size value into a different scale unit and round up

        The result is rounded up so that the returned value always specifies
        a size that is large enough to contain the size supplied to this
        function.
        (e.g., for 100 decimal Megabytes (MB), which equals 100 million bytes,
         returns 97,657 binary kilobytes (kiB), which equals 100 million
         plus 768 bytes and therefore is large enough to contain 100 megabytes)

        @param   size: numeric size value
        @param   unit_in: scale unit selector of the size parameter
        @param   unit_out: scale unit selector of the return value
        @return: size value converted to the scale unit of unit_out
        """
        fac_in   = ((unit_in & 0xffffff00) >> 8) ** (unit_in & 0xff)
        div_out  = ((unit_out & 0xffffff00) >> 8) ** (unit_out & 0xff)
        byte_sz  = size * fac_in
        if byte_sz % div_out != 0:
            result = (byte_sz // div_out) + 1
        else:
            result = byte_sz // div_out
        return result


def approximate_size_string(size_kiB):
    """
    Produce human readable size information as a string
    """
    units = ["kiB", "MiB", "GiB", "TiB", "PiB"]
    max_index = len(units)

    index = 0
    counter = 1
    magnitude = 1 << 10
    while counter < max_index:
        if size_kiB >= magnitude:
            index = counter
        else:
            break
        magnitude = magnitude << 10
        counter += 1
    magnitude = magnitude >> 10

    if size_kiB % magnitude != 0:
        size_str = "%3.2f %s" % (float(size_kiB) / magnitude, units[index])
    else:
        size_str = "%d %s" % (size_kiB // magnitude, units[index])

    return size_str


def debug_trace_exec_args(source, args):
    """
    Logs the command line of external commands at the DEBUG level
    """
    logging.debug(
        "%s: Running external command: %s"
        % (source, " ".join(args))
    )


def smart_trace_exit_code(source, command, exit_code):
    """
    Logs the exit code of external commands

    Logs at the DEBUG level for exit code 0 and at the
    ERROR level for any other exit code
    """
    if exit_code == 0:
        generic_trace_exit_code(logging.debug, source, command, exit_code)
    else:
        generic_trace_exit_code(logging.error, source, command, exit_code)


def generic_trace_exit_code(log_handler, source, command, exit_code):
    """
    Logs the exit code of external commands using the specified handler function
    """
    log_handler(
        "%s: External command '%s': Exit code %d"
        % (source, command, exit_code)
    )
