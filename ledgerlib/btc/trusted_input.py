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

import struct
from typing import Union

import attr

from ..util import InvalidParameter, InternalError
from ..bitcoin import var_int
from ..transaction import Transaction
from ..apdu import DeviceChannel, exchange_checked, send_chunked
from ..logging import get_logger
from . import BTCHIP_CLA, BTCHIP_INS_GET_TRUSTED_INPUT


_logger = get_logger(__name__)


WITNESS_INPUT_LENGTH = 32 + 4 + 8


def _hex_repr(val: bytes) -> str:
    return val.hex()


@attr.s(frozen=True)
class TrustedInput:
    """Opaque device-attested reference to a previous output.
    Layout: magic(2) nonce(2) prev_hash(32) index(4) amount(8) hmac(8)
    """
    value = attr.ib(type=bytes, converter=bytes, repr=_hex_repr)

    TAG = 0x01

    def to_witness_form(self) -> 'WitnessInput':
        # bytes 4..48: prev_hash, index and amount, without magic, nonce and hmac
        window = self.value[4:4 + WITNESS_INPUT_LENGTH]
        if len(window) != WITNESS_INPUT_LENGTH:
            raise InternalError(f"trusted input too short: {len(self.value)} bytes")
        return WitnessInput(window)

    def serialize_for_hashing(self) -> bytes:
        return bytes([self.TAG, len(self.value)]) + self.value


@attr.s(frozen=True)
class WitnessInput:
    """prev_hash(32) || index(4, LE) || amount(8)"""
    value = attr.ib(type=bytes, converter=bytes, repr=_hex_repr)

    TAG = 0x02

    @value.validator
    def _check_length(self, attribute, value):
        if len(value) != WITNESS_INPUT_LENGTH:
            raise InvalidParameter(f"witness input must be {WITNESS_INPUT_LENGTH} bytes, got {len(value)}")

    def to_witness_form(self) -> 'WitnessInput':
        return self

    def serialize_for_hashing(self) -> bytes:
        return bytes([self.TAG]) + self.value


TrustedInputReference = Union[TrustedInput, WitnessInput]


def to_witness_form(reference: TrustedInputReference) -> WitnessInput:
    if isinstance(reference, (TrustedInput, WitnessInput)):
        return reference.to_witness_form()
    raise InternalError(f"unexpected input reference type: {type(reference)}")


def _check_output_index(parent: Transaction, index: int) -> None:
    if not (0 <= index < len(parent.outputs)):
        raise InvalidParameter(f"output index {index} out of range for {len(parent.outputs)} outputs")


def get_trusted_input(channel: DeviceChannel, parent: Transaction, index: int) -> TrustedInput:
    """Streams the parent transaction to the device, which answers
    with a signed reference to output number index."""
    _check_output_index(parent, index)
    _logger.debug(f"get trusted input {parent.txid()}:{index}")

    def send(data: bytes, p1: int = 0x80) -> bytes:
        return exchange_checked(channel, BTCHIP_CLA, BTCHIP_INS_GET_TRUSTED_INPUT, p1, 0x00, data)

    # Header
    send(struct.pack('>I', index) + parent.version + var_int(len(parent.inputs)), p1=0x00)
    # Each input
    for txin in parent.inputs:
        send(txin.prev_hash + struct.pack('<I', txin.prev_index) + var_int(len(txin.script)))
        send_chunked(channel, BTCHIP_CLA, BTCHIP_INS_GET_TRUSTED_INPUT, 0x80, 0x00,
                     txin.script, trailer=txin.sequence)
    # Number of outputs
    send(var_int(len(parent.outputs)))
    # Each output
    for txout in parent.outputs:
        send(txout.amount + var_int(len(txout.script)))
        send_chunked(channel, BTCHIP_CLA, BTCHIP_INS_GET_TRUSTED_INPUT, 0x80, 0x00, txout.script)
    # LockTime
    response = send(parent.locktime)
    return TrustedInput(response)


def get_trusted_input_bip143(parent: Transaction, index: int) -> WitnessInput:
    """Local BIP143 commitment, no device round trip."""
    _check_output_index(parent, index)
    return WitnessInput(parent.get_hash() + struct.pack('<I', index) + parent.outputs[index].amount)
