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
from typing import Optional, List, Union

import attr

from .util import MalformedTransaction, assert_bytes
from .bitcoin import var_int, read_var_int
from .crypto import sha256d


def _bytes_field(length: Optional[int] = None):
    def validate(instance, attribute, value):
        assert_bytes(value)
        if length is not None and len(value) != length:
            raise ValueError(f"{attribute.name} must be {length} bytes, got {len(value)}")
    return attr.ib(kw_only=True, converter=bytes, validator=validate,
                   repr=lambda val: val.hex())


def _check_uint32(instance, attribute, value):
    if not isinstance(value, int) or not (0 <= value <= 0xffffffff):
        raise ValueError(f"{attribute.name} must be a uint32, got {value!r}")


@attr.s
class TxInput:
    prev_hash = _bytes_field(32)  # type: bytes  # wire order
    prev_index = attr.ib(type=int, kw_only=True, validator=_check_uint32)
    # on an unsigned input: optional redeem script override,
    # on a signed input: the scriptSig
    script = attr.ib(type=bytes, kw_only=True, default=b'', converter=bytes,
                     repr=lambda val: val.hex())
    sequence = _bytes_field(4)  # type: bytes

    def serialize_to_network(self) -> bytes:
        return (self.prev_hash
                + struct.pack('<I', self.prev_index)
                + var_int(len(self.script)) + self.script
                + self.sequence)


@attr.s
class TxOutput:
    amount = _bytes_field(8)  # type: bytes  # little-endian satoshis
    script = attr.ib(type=bytes, kw_only=True, converter=bytes,
                     repr=lambda val: val.hex())

    @property
    def value(self) -> int:
        return int.from_bytes(self.amount, byteorder='little', signed=False)

    def serialize_to_network(self) -> bytes:
        return self.amount + var_int(len(self.script)) + self.script


class TxReader:
    """Read cursor over raw transaction bytes.
    Every short read raises MalformedTransaction."""

    def __init__(self, raw: bytes):
        self.input = bytes(raw)
        self.read_cursor = 0

    def remaining(self) -> int:
        return len(self.input) - self.read_cursor

    def read_bytes(self, length: int) -> bytes:
        read_begin = self.read_cursor
        read_end = read_begin + length
        if length < 0 or read_end > len(self.input):
            raise MalformedTransaction('attempt to read past end of buffer')
        self.read_cursor = read_end
        return self.input[read_begin:read_end]

    def read_uint32(self) -> int:
        return struct.unpack('<I', self.read_bytes(4))[0]

    def read_compact_size(self) -> int:
        size, self.read_cursor = read_var_int(self.input, self.read_cursor)
        return size

    def read_var_bytes(self) -> bytes:
        return self.read_bytes(self.read_compact_size())


class Transaction:

    def __init__(self, raw: Union[bytes, bytearray, None] = None):
        self.version = b'\x01\x00\x00\x00'
        self.inputs = []  # type: List[TxInput]
        self.outputs = []  # type: List[TxOutput]
        self.locktime = b'\x00\x00\x00\x00'
        self.witness = None  # type: Optional[bytes]
        if raw is not None:
            self.deserialize(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'Transaction':
        return cls(raw)

    def deserialize(self, raw: bytes) -> None:
        assert_bytes(raw)
        vds = TxReader(raw)
        self.version = vds.read_bytes(4)
        is_segwit = False
        if len(raw) > 5 and raw[4] == 0x00 and raw[5] != 0x00:
            if raw[5] != 0x01:
                raise MalformedTransaction(f"unsupported witness flag: {raw[5]:#04x}")
            vds.read_bytes(2)
            is_segwit = True
        n_inputs = vds.read_compact_size()
        self.inputs = []
        for i in range(n_inputs):
            prev_hash = vds.read_bytes(32)
            prev_index = vds.read_uint32()
            script = vds.read_var_bytes()
            sequence = vds.read_bytes(4)
            self.inputs.append(TxInput(prev_hash=prev_hash, prev_index=prev_index,
                                       script=script, sequence=sequence))
        n_outputs = vds.read_compact_size()
        self.outputs = []
        for i in range(n_outputs):
            amount = vds.read_bytes(8)
            script = vds.read_var_bytes()
            self.outputs.append(TxOutput(amount=amount, script=script))
        self.witness = None
        if is_segwit:
            self.witness = vds.read_bytes(vds.remaining() - 4)
        self.locktime = vds.read_bytes(4)
        if vds.remaining() != 0:
            raise MalformedTransaction(f"{vds.remaining()} trailing bytes after locktime")

    def serialize(self, skip_output_locktime: bool = False, skip_witness: bool = False) -> bytes:
        include_witness = self.witness is not None and not skip_witness
        parts = [self.version]
        if include_witness:
            parts.append(b'\x00\x01')
        parts.append(var_int(len(self.inputs)))
        parts += [txin.serialize_to_network() for txin in self.inputs]
        if not skip_output_locktime:
            parts.append(self.serialize_outputs())
            if include_witness:
                parts.append(self.witness)
            parts.append(self.locktime)
        return b''.join(parts)

    def serialize_outputs(self) -> bytes:
        return var_int(len(self.outputs)) + b''.join(o.serialize_to_network() for o in self.outputs)

    def get_hash(self) -> bytes:
        """Double-SHA256 of the witness-stripped serialization, in wire order."""
        return sha256d(self.serialize(skip_witness=True))

    def txid(self) -> str:
        return self.get_hash()[::-1].hex()

    def is_segwit(self) -> bool:
        return self.witness is not None

    def __eq__(self, other):
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.serialize() == other.serialize()

    def __repr__(self):
        return f"<Transaction {self.txid()} inputs={len(self.inputs)} outputs={len(self.outputs)}>"

    def __str__(self):
        return self.serialize().hex()
