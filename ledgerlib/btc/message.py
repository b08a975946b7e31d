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

from typing import Sequence, Union

import attr
from ecdsa.curves import SECP256k1
from ecdsa.der import UnexpectedDER
from ecdsa.util import sigencode_der, sigdecode_der

from ..util import InvalidParameter, InternalError, to_bytes
from ..bip32 import encode_path_for_device
from ..apdu import DeviceChannel, exchange_checked, MAX_APDU_DATA_LENGTH
from ..logging import get_logger
from . import BTCHIP_CLA, BTCHIP_INS_SIGN_MESSAGE


_logger = get_logger(__name__)


CURVE_ORDER = SECP256k1.order


@attr.s(frozen=True)
class ECDSADeviceSignature:
    v = attr.ib(type=int, kw_only=True)  # parity of R
    r = attr.ib(type=bytes, kw_only=True, repr=lambda val: val.hex())
    s = attr.ib(type=bytes, kw_only=True, repr=lambda val: val.hex())

    @classmethod
    def from_device_response(cls, response: bytes) -> 'ECDSADeviceSignature':
        if len(response) < 2:
            raise InternalError(f"signature response too short: {response.hex()}")
        v = response[0] & 0x01
        der = b'\x30' + bytes(response[1:2 + response[1]])
        try:
            r, s = sigdecode_der(der, CURVE_ORDER)
        except UnexpectedDER as e:
            raise InternalError(f"malformed signature from device: {response.hex()}") from e
        return cls(v=v, r=r.to_bytes(32, 'big'), s=s.to_bytes(32, 'big'))

    def to_der(self) -> bytes:
        return sigencode_der(int.from_bytes(self.r, 'big'), int.from_bytes(self.s, 'big'), CURVE_ORDER)

    def to_compact(self) -> bytes:
        """65-byte header || r || s, header for a compressed key."""
        return bytes([27 + 4 + self.v]) + self.r + self.s


def sign_message(channel: DeviceChannel, path: Union[str, Sequence[int]],
                 message: Union[bytes, str]) -> ECDSADeviceSignature:
    message = to_bytes(message, 'utf8')
    if len(message) > 0xffff:
        raise InvalidParameter(f"message too long: {len(message)} bytes")
    header = encode_path_for_device(path) + len(message).to_bytes(2, byteorder='big')
    room = MAX_APDU_DATA_LENGTH - len(header)
    _logger.info(f"signing message of {len(message)} bytes")
    # prepare
    exchange_checked(channel, BTCHIP_CLA, BTCHIP_INS_SIGN_MESSAGE, 0x00, 0x01, header + message[:room])
    offset = room
    while offset < len(message):
        fragment = message[offset:offset + MAX_APDU_DATA_LENGTH]
        exchange_checked(channel, BTCHIP_CLA, BTCHIP_INS_SIGN_MESSAGE, 0x00, 0x80, fragment)
        offset += len(fragment)
    # sign
    response = exchange_checked(channel, BTCHIP_CLA, BTCHIP_INS_SIGN_MESSAGE, 0x80, 0x00, b'\x00')
    return ECDSADeviceSignature.from_device_response(response)
