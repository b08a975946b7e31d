# -*- coding: utf-8 -*-
#
# ledgerlib - host-side driver for hardware signing devices
# Copyright (C) 2018 The ledgerlib developers
#
# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation files
# (the "Software"), to deal in the Software without restriction,
# including without limitation the rights to use, copy, modify, merge,
# publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so,
# subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import os
import json
import stat
from typing import Union, Optional, Any, Dict


class LedgerException(Exception):
    """Base class of everything raised by this library."""


class MalformedTransaction(LedgerException):
    """Raw transaction bytes could not be parsed."""


class UnsupportedEncoding(MalformedTransaction):
    """Variable length integer uses a width the device protocol does not support."""


class InvalidParameter(LedgerException):
    pass


class InternalError(LedgerException):
    pass


class DeviceRejected(LedgerException):
    """The device answered a command with a non-success status word."""

    def __init__(self, sw: int, message: str = None):
        self.sw = sw
        if message is None:
            message = f"Invalid status {sw:04x}"
        LedgerException.__init__(self, message)


class WrongApplication(LedgerException):
    """The device is not running the application the command was meant for."""

    def __init__(self, expected_application: Optional[str] = None):
        self.expected_application = expected_application
        message = "Wrong device application selected"
        if expected_application:
            message += f", expected {expected_application}"
        LedgerException.__init__(self, message)


def bfh(x: str) -> bytes:
    """bytes from hex"""
    return bytes.fromhex(x)


def assert_bytes(*args):
    """
    porting helper, assert args type
    """
    try:
        for x in args:
            assert isinstance(x, (bytes, bytearray))
    except Exception:
        print('assert bytes failed', list(map(type, args)))
        raise


def to_bytes(something, encoding='utf8') -> bytes:
    """
    cast string to bytes() like object, but for python2 support it's bytearray copy
    """
    if isinstance(something, bytes):
        return something
    if isinstance(something, str):
        return something.encode(encoding)
    elif isinstance(something, bytearray):
        return bytes(something)
    else:
        raise TypeError("Not a string or bytes like object")


def chunks(items, size: int):
    """Break up items, an iterable, into chunks of length size."""
    if size < 1:
        raise ValueError(f"size must be positive, not {repr(size)}")
    for i in range(0, len(items), size):
        yield items[i: i + size]


def user_dir():
    if "LEDGERLIBDIR" in os.environ:
        return os.environ["LEDGERLIBDIR"]
    elif os.name == 'posix':
        return os.path.join(os.environ["HOME"], ".ledgerlib")
    elif "APPDATA" in os.environ:
        return os.path.join(os.environ["APPDATA"], "ledgerlib")
    elif "LOCALAPPDATA" in os.environ:
        return os.path.join(os.environ["LOCALAPPDATA"], "ledgerlib")
    else:
        return


def make_dir(path, *, allow_symlink=True):
    """Make directory if it does not yet exist.

    Also check that it is not a symlink, unless allow_symlink is set.
    """
    if not os.path.exists(path):
        if os.path.islink(path):
            raise Exception('Dangling link: ' + path)
        os.mkdir(path)
        os_chmod(path, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)
    elif not allow_symlink and os.path.islink(path):
        raise Exception('Symlinks are not allowed: ' + path)


def os_chmod(path, mode):
    """os.chmod aware of tmpfs"""
    try:
        os.chmod(path, mode)
    except OSError as e:
        xdg_runtime_dir = os.environ.get("XDG_RUNTIME_DIR", None)
        if xdg_runtime_dir and is_subpath(path, xdg_runtime_dir):
            pass
        else:
            raise


def is_subpath(long_path: str, short_path: str) -> bool:
    """Returns whether long_path is a sub-path of short_path."""
    try:
        common = os.path.commonpath([long_path, short_path])
    except ValueError:
        return False
    short_path = standardize_path(short_path)
    common = standardize_path(common)
    return short_path == common


def standardize_path(path):
    if path is not None:
        path = os.path.normcase(os.path.realpath(os.path.abspath(path)))
    return path


def read_json_file(path: str) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.loads(f.read())
    return data


def write_json_file(path: str, data: Any) -> None:
    s = json.dumps(data, indent=4, sort_keys=True)
    with open(path, 'w', encoding='utf-8') as f:
        os_chmod(path, stat.S_IREAD | stat.S_IWRITE)  # set restrictive perms *before* we write data
        f.write(s)
