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
Status messages returned by the controller for mutating commands

Each command returns a list of status messages. The severity of a message
is encoded in the topmost bits of its 64 bit return code. A command only
succeeded if none of its messages carries any of the severity bits, even if
the linstor client itself exited with exit code 0.
"""

import json
import linstorvol.consts as consts
from linstorvol.exceptions import DecodeException, StatusException


def is_success(ret_code):
    """
    Returns True if none of the error, warning or info bits is set
    """
    return (ret_code & consts.MASK_SEVERITY) == 0


def severity_of(ret_code):
    """
    Returns the name of the most severe bit set in a return code
    """
    if (ret_code & consts.MASK_ERROR) != 0:
        return consts.SEVERITY_ERROR
    elif (ret_code & consts.MASK_WARN) != 0:
        return consts.SEVERITY_WARN
    elif (ret_code & consts.MASK_INFO) != 0:
        return consts.SEVERITY_INFO
    return consts.SEVERITY_SUCCESS


class StatusMessage(object):

    """
    One outcome record of a controller command
    """

    ret_code       = 0
    message_format = None
    details_format = None
    cause_format   = None
    obj_refs       = None
    variables      = None

    def __init__(self, ret_code, message_format="", details_format="",
                 cause_format=None, obj_refs=None, variables=None):
        self.ret_code       = ret_code
        self.message_format = message_format
        self.details_format = details_format
        self.cause_format   = cause_format
        self.obj_refs       = obj_refs if obj_refs is not None else {}
        self.variables      = variables if variables is not None else {}

    def is_success(self):
        return is_success(self.ret_code)

    def severity(self):
        return severity_of(self.ret_code)

    def to_dict(self):
        data = {
            "ret_code":       self.ret_code,
            "message_format": self.message_format,
            "details_format": self.details_format,
            "obj_refs":       _key_value_list(self.obj_refs),
            "variables":      _key_value_list(self.variables)
        }
        if self.cause_format:
            data["cause_format"] = self.cause_format
        return data

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise DecodeException("Status message is not an object: %r" % (data,))
        ret_code = data.get("ret_code")
        # bool is a subclass of int, but never a valid return code
        if not isinstance(ret_code, int) or isinstance(ret_code, bool):
            raise DecodeException(
                "Status message without a valid ret_code: %r" % (data,)
            )
        return cls(
            ret_code,
            message_format=_get_str(data, "message_format"),
            details_format=_get_str(data, "details_format"),
            cause_format=_get_str(data, "cause_format", None),
            obj_refs=key_value_dict(data.get("obj_refs")),
            variables=key_value_dict(data.get("variables"))
        )

    def __str__(self):
        return "%s: %s" % (self.severity(), self.message_format)


def decode_statuses(output):
    """
    Decodes the JSON reply of a mutating controller command

    @param   output: combined output of the linstor client
    @return: list of StatusMessage objects
    Raises DecodeException if the output is not a list of status messages
    """
    try:
        data = json.loads(output)
    except ValueError as value_err:
        raise DecodeException(
            "Cannot decode status messages from '%s': %s" % (output, str(value_err)),
            output=output
        )
    if not isinstance(data, list):
        raise DecodeException(
            "Status reply is not a list: '%s'" % (output), output=output
        )
    try:
        return [StatusMessage.from_dict(entry) for entry in data]
    except DecodeException as dec_exc:
        dec_exc.output = output
        raise


def validate(statuses):
    """
    Checks that every status message of a reply indicates success

    The StatusException raised for the first failed message carries the
    serialized list of all messages of the reply.
    """
    for message in statuses:
        if not message.is_success():
            statuses_json = json.dumps([entry.to_dict() for entry in statuses])
            raise StatusException(
                "error status from one or more linstor operations: %s" % (statuses_json),
                statuses_json=statuses_json
            )


def _get_str(data, key, default=""):
    value = data.get(key, default)
    if value is not None and not isinstance(value, str):
        raise DecodeException("Field '%s' is not a string: %r" % (key, value))
    return value


def key_value_dict(entries):
    """
    Converts a list of {"key": ..., "value": ...} objects into a dict
    """
    result = {}
    if entries is None:
        return result
    if not isinstance(entries, list):
        raise DecodeException("Key/value list expected: %r" % (entries,))
    for entry in entries:
        try:
            result[entry["key"]] = entry.get("value", "")
        except (KeyError, TypeError, AttributeError):
            raise DecodeException("Invalid key/value entry: %r" % (entry,))
    return result


def _key_value_list(props):
    return [{"key": key, "value": value} for key, value in props.items()]
