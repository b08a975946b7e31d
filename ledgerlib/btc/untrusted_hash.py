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

import enum
from typing import Sequence, Union

from ..util import InvalidParameter, InternalError, chunks
from ..bitcoin import var_int
from ..bip32 import encode_path_for_device
from ..transaction import Transaction
from ..apdu import DeviceChannel, exchange_checked, send_chunked, MAX_APDU_DATA_LENGTH
from ..logging import Logger
from . import (BTCHIP_CLA, BTCHIP_INS_HASH_INPUT_START, BTCHIP_INS_HASH_INPUT_FINALIZE_FULL,
               BTCHIP_INS_HASH_SIGN, SIGHASH_ALL)
from .trusted_input import TrustedInputReference, TrustedInput, WitnessInput


class HashingState(enum.Enum):
    NEW = enum.auto()
    INPUTS_SENT = enum.auto()
    OUTPUTS_SENT = enum.auto()
    SIGNED = enum.auto()


# P2 of the first HASH_INPUT_START frame
P2_NEW_LEGACY = 0x00
P2_NEW_SEGWIT = 0x02
P2_CONTINUE_SEGWIT = 0x10
P2_CONTINUE_LEGACY = 0x80


class UntrustedHashing(Logger):
    """Host-side view of the device's running transaction hash.

    Each start() opens a sequence inputs -> [change path] -> outputs -> sign.
    A continuation segwit start() may sign directly, since the device
    already holds the outputs hash from the priming pass.
    """

    LOGGING_SHORTCUT = 'H'

    def __init__(self, channel: DeviceChannel):
        Logger.__init__(self)
        self.channel = channel
        self.state = HashingState.NEW
        self.change_path_sent = False
        self.outputs_hashed = False
        self._continuing_segwit = False

    def _send(self, ins: int, p1: int, p2: int, data: bytes) -> bytes:
        return exchange_checked(self.channel, BTCHIP_CLA, ins, p1, p2, data)

    def start(self, tx: Transaction, *, is_new: bool, continuing_from_segwit: bool,
              target_input_index: int, input_references: Sequence[TrustedInputReference],
              redeem_script: bytes) -> None:
        if self.state == HashingState.INPUTS_SENT:
            raise InternalError("start called while a previous pass is still open")
        if len(input_references) != len(tx.inputs):
            raise InvalidParameter(f"got {len(input_references)} input references "
                                   f"for {len(tx.inputs)} inputs")
        if not (0 <= target_input_index < len(tx.inputs)):
            raise InvalidParameter(f"target input {target_input_index} out of range")
        segwit = any(isinstance(ref, WitnessInput) for ref in input_references)
        if is_new:
            p2 = P2_NEW_SEGWIT if segwit else P2_NEW_LEGACY
        else:
            p2 = P2_CONTINUE_SEGWIT if continuing_from_segwit else P2_CONTINUE_LEGACY
        self.logger.debug(f"start: inputs={len(tx.inputs)} target={target_input_index} p2={p2:#04x}")
        self._send(BTCHIP_INS_HASH_INPUT_START, 0x00, p2, tx.version + var_int(len(tx.inputs)))
        for i, (txin, ref) in enumerate(zip(tx.inputs, input_references)):
            if not isinstance(ref, (TrustedInput, WitnessInput)):
                raise InternalError(f"unexpected input reference type: {type(ref)}")
            script = redeem_script if i == target_input_index else b''
            self._send(BTCHIP_INS_HASH_INPUT_START, 0x80, 0x00,
                       ref.serialize_for_hashing() + var_int(len(script)))
            send_chunked(self.channel, BTCHIP_CLA, BTCHIP_INS_HASH_INPUT_START, 0x80, 0x00,
                         script, trailer=txin.sequence)
        self._continuing_segwit = not is_new and continuing_from_segwit
        self.state = HashingState.INPUTS_SENT

    def provide_change_path(self, path: Union[str, Sequence[int]]) -> None:
        if self.state != HashingState.INPUTS_SENT:
            raise InternalError(f"change path must follow the inputs, state is {self.state.name}")
        if self.change_path_sent:
            raise InternalError("change path already provided")
        self._send(BTCHIP_INS_HASH_INPUT_FINALIZE_FULL, 0xFF, 0x00, encode_path_for_device(path))
        self.change_path_sent = True

    def hash_outputs_full(self, outputs: bytes) -> bytes:
        if self.state != HashingState.INPUTS_SENT:
            raise InternalError(f"outputs must follow the inputs, state is {self.state.name}")
        fragments = list(chunks(bytes(outputs), MAX_APDU_DATA_LENGTH))
        if not fragments:
            raise InvalidParameter("empty outputs blob")
        response = b''
        for i, fragment in enumerate(fragments):
            p1 = 0x80 if i == len(fragments) - 1 else 0x00
            response = self._send(BTCHIP_INS_HASH_INPUT_FINALIZE_FULL, p1, 0x00, fragment)
        self.outputs_hashed = True
        self.state = HashingState.OUTPUTS_SENT
        return response

    def sign(self, path: Union[str, Sequence[int]], locktime: bytes, sighash: int = SIGHASH_ALL) -> bytes:
        """Returns the DER signature followed by the sighash byte."""
        if sighash != SIGHASH_ALL:
            raise InvalidParameter(f"unsupported sighash type: {sighash:#04x}")
        if len(locktime) != 4:
            raise InvalidParameter(f"locktime must be 4 bytes, got {len(locktime)}")
        ready = (self.state == HashingState.OUTPUTS_SENT
                 or (self.state == HashingState.INPUTS_SENT
                     and self._continuing_segwit and self.outputs_hashed))
        if not ready:
            raise InternalError(f"sign called out of order, state is {self.state.name}")
        # the device reads the locktime big-endian
        data = encode_path_for_device(path) + b'\x00' + bytes(locktime)[::-1] + bytes([sighash])
        response = bytearray(self._send(BTCHIP_INS_HASH_SIGN, 0x00, 0x00, data))
        if not response:
            raise InternalError("empty signature from device")
        # first byte carries the parity of R, the DER header is always 0x30
        response[0] = 0x30
        self.state = HashingState.SIGNED
        return bytes(response)
