#!/usr/bin/env python3
"""
    linstorvol - management of LINSTOR-backed DRBD volumes
    Copyright (C) 2018   LINBIT HA-Solutions GmbH

    For further information see the COPYING file.
"""

"""
Global exceptions and error codes for linstorvol

This module defines exceptions, numeric error codes and the corresponding
default error messages for linstorvol and utility functions to work with
those objects.
"""


# return code for successful operations
LV_SUCCESS  = 0

# ========================================
# return codes for failed operations
# ========================================

# invalid name for an object
LV_ENAME    = 100

# no entry = object not found
LV_ENOENT   = 101

# Invalid option value or syntax error in input data
LV_EINVAL   = 106

# An external command could not be run or exited with a nonzero exit code
LV_EEXEC    = 130

# The output of an external command could not be decoded
LV_EDECODE  = 131

# The controller reported an error, warning or info status
LV_ESTATUS  = 132

# The device already carries a different filesystem
LV_EFSEXIST = 133

# The device path of a volume did not show up
LV_EDEVPATH = 134

# The filesystem probe output could not be parsed
LV_EFSPROBE = 135

# DEBUG value
LV_DEBUG    = 1023

_LV_EXC_TEXTS = {}
_LV_EXC_TEXTS[LV_SUCCESS]  = "Operation completed successfully"
_LV_EXC_TEXTS[LV_ENAME]    = "Invalid name"
_LV_EXC_TEXTS[LV_ENOENT]   = "Object not found"
_LV_EXC_TEXTS[LV_EINVAL]   = "Invalid option"
_LV_EXC_TEXTS[LV_EEXEC]    = "An external command failed"
_LV_EXC_TEXTS[LV_EDECODE]  = "The output of an external command could " \
                             "not be decoded"
_LV_EXC_TEXTS[LV_ESTATUS]  = "The controller reported a failed operation"
_LV_EXC_TEXTS[LV_EFSEXIST] = "Refusing to overwrite an existing filesystem"
_LV_EXC_TEXTS[LV_EDEVPATH] = "The device path of the volume is not available"
_LV_EXC_TEXTS[LV_EFSPROBE] = "The filesystem information of the device " \
                             "could not be parsed"
_LV_EXC_TEXTS[LV_DEBUG]    = "Debug exception / internal error"


def exc_text(exc_id):

    """
    Retrieve the default error message for a standard return code
    """
    try:
        text = _LV_EXC_TEXTS[exc_id]
    except KeyError:
        text = "<<No error message for id %s>>" % (str(exc_id))
    return text


class LinstorVolException(Exception):

    """
    Base class for exceptions
    """

    error_code = LV_DEBUG

    def __init__(self, message=None):
        super(LinstorVolException, self).__init__(message)
        self.message = message

    def add_context(self, context):
        """
        Prefixes the message with information about the failed operation
        """
        self.message = "%s: %s" % (context, LinstorVolException.__str__(self))
        self.args = (self.message,)
        return self

    def __str__(self):
        if self.message is not None:
            return self.message
        return exc_text(self.error_code)


class InvalidNameException(LinstorVolException):

    """
    Raised on an attempt to use a string that does not match the naming
    criteria as a name for an object
    """

    def __init__(self, message=None):
        super(InvalidNameException, self).__init__(message)
        self.error_code = LV_ENAME


class SyntaxException(LinstorVolException):

    """
    Raised on syntax errors in input data
    """

    def __init__(self, message=None):
        super(SyntaxException, self).__init__(message)
        self.error_code = LV_EINVAL


class CommandExecException(LinstorVolException):

    """
    Raised if an external command cannot be run or exits with a nonzero
    exit code

    exit_code is None if the command could not be started at all. output
    contains everything the command wrote to stdout and stderr.
    """

    exec_args = None
    exit_code = None
    output    = None

    def __init__(self, message=None, exec_args=None, exit_code=None, output=None):
        super(CommandExecException, self).__init__(message)
        self.error_code = LV_EEXEC
        self.exec_args  = exec_args
        self.exit_code  = exit_code
        self.output     = output

    def __str__(self):
        text = super(CommandExecException, self).__str__()
        if self.output:
            text += " : %s" % (self.output.strip())
        return text


class DecodeException(LinstorVolException):

    """
    Raised if the output of the controller cannot be decoded into the
    expected structure

    That should only happen with the combination of incompatible versions of
    linstorvol and the linstor client, otherwise it is a bug.
    """

    output = None

    def __init__(self, message=None, output=None):
        super(DecodeException, self).__init__(message)
        self.error_code = LV_EDECODE
        self.output     = output


class StatusException(LinstorVolException):

    """
    Raised if one or more status messages returned by the controller
    carry the error, warning or info severity

    statuses_json is the serialized list of all status messages of the reply
    """

    statuses_json = None

    def __init__(self, message=None, statuses_json=None):
        super(StatusException, self).__init__(message)
        self.error_code    = LV_ESTATUS
        self.statuses_json = statuses_json


class NoResourceDefinitionException(LinstorVolException):

    """
    Raised on an attempt to assign a resource that has not been created
    """

    def __init__(self, message=None):
        super(NoResourceDefinitionException, self).__init__(message)
        self.error_code = LV_ENOENT


class FilesystemExistsException(LinstorVolException):

    """
    Raised if formatting a device would destroy a different filesystem
    """

    device  = None
    fs_type = None

    def __init__(self, message=None, device=None, fs_type=None):
        super(FilesystemExistsException, self).__init__(message)
        self.error_code = LV_EFSEXIST
        self.device     = device
        self.fs_type    = fs_type


class DevicePathException(LinstorVolException):

    """
    Raised if the device path of a volume cannot be determined or does
    not exist
    """

    def __init__(self, message=None):
        super(DevicePathException, self).__init__(message)
        self.error_code = LV_EDEVPATH


class FilesystemProbeException(LinstorVolException):

    """
    Raised if the output of the filesystem probe cannot be parsed
    """

    def __init__(self, message=None):
        super(FilesystemProbeException, self).__init__(message)
        self.error_code = LV_EFSPROBE


class MountException(LinstorVolException):

    """
    Raised if one of the steps required for mounting a volume fails

    step names the failed step, cause is the exception raised by that step.
    """

    step  = None
    cause = None

    def __init__(self, message=None, step=None, cause=None):
        super(MountException, self).__init__(message)
        self.step  = step
        self.cause = cause
        if cause is not None and isinstance(cause, LinstorVolException):
            self.error_code = cause.error_code
