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
from enum import IntEnum
from typing import Optional, Sequence, Tuple, Union

from .util import (bfh, assert_bytes, MalformedTransaction, UnsupportedEncoding,
                   InvalidParameter)
from .crypto import hash_160


class opcodes(IntEnum):
    # push value
    OP_0 = 0x00
    OP_FALSE = OP_0
    OP_PUSHDATA1 = 0x4c
    OP_PUSHDATA2 = 0x4d
    OP_PUSHDATA4 = 0x4e
    OP_1NEGATE = 0x4f
    OP_1 = 0x51
    OP_TRUE = OP_1
    OP_16 = 0x60

    # stack ops
    OP_DUP = 0x76

    # bit logic
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88

    # crypto
    OP_HASH160 = 0xa9
    OP_CHECKSIG = 0xac

    def hex(self) -> str:
        return bytes([self]).hex()


def var_int(i: int) -> bytes:
    # https://en.bitcoin.it/wiki/Protocol_specification#Variable_length_integer
    # "CompactSize", without the 0xff form: the device never reads it
    if i < 0:
        raise UnsupportedEncoding(f"cannot encode negative varint {i}")
    if i < 0xfd:
        return int.to_bytes(i, length=1, byteorder="little", signed=False)
    elif i <= 0xffff:
        return b"\xfd" + int.to_bytes(i, length=2, byteorder="little", signed=False)
    elif i <= 0xffffffff:
        return b"\xfe" + int.to_bytes(i, length=4, byteorder="little", signed=False)
    else:
        raise UnsupportedEncoding(f"varint too large: {i}")


def read_var_int(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decodes a CompactSize at offset.
    Returns (value, offset just past the encoded value).
    """
    if offset >= len(data):
        raise MalformedTransaction("truncated varint")
    size = data[offset]
    if size < 0xfd:
        return size, offset + 1
    if size == 0xff:
        raise UnsupportedEncoding("8-byte varint is not supported")
    width = 2 if size == 0xfd else 4
    start = offset + 1
    end = start + width
    if end > len(data):
        raise MalformedTransaction("truncated varint")
    return int.from_bytes(data[start:end], byteorder="little", signed=False), end


def witness_push(item: bytes) -> bytes:
    """Returns data in the form it should be present in the witness."""
    return var_int(len(item)) + item


def _op_push(i: int) -> bytes:
    if i < opcodes.OP_PUSHDATA1:
        return int.to_bytes(i, length=1, byteorder="little", signed=False)
    elif i <= 0xff:
        return bytes([opcodes.OP_PUSHDATA1]) + int.to_bytes(i, length=1, byteorder="little", signed=False)
    elif i <= 0xffff:
        return bytes([opcodes.OP_PUSHDATA2]) + int.to_bytes(i, length=2, byteorder="little", signed=False)
    else:
        return bytes([opcodes.OP_PUSHDATA4]) + int.to_bytes(i, length=4, byteorder="little", signed=False)


def push_script(data: bytes) -> bytes:
    """Returns pushed data to the script, choosing the canonical
    push opcode for the length of the data.
    """
    data_len = len(data)
    if data_len == 0:
        return bytes([opcodes.OP_0])
    return _op_push(data_len) + data


def construct_witness(items: Sequence[Union[str, bytes]]) -> bytes:
    """Constructs a witness from the given stack items."""
    witness = bytearray()
    witness += var_int(len(items))
    for item in items:
        if isinstance(item, str):
            item = bfh(item)
        assert_bytes(item)
        witness += witness_push(item)
    return bytes(witness)


def construct_script(items: Sequence[Union[bytes, opcodes]]) -> bytes:
    """Constructs bitcoin script from given items."""
    script = bytearray()
    for item in items:
        if isinstance(item, opcodes):
            script += bytes([item])
        elif isinstance(item, (bytes, bytearray)):
            script += push_script(item)
        else:
            raise TypeError(f"unexpected script item {item!r}")
    return bytes(script)


def pubkeyhash_to_p2pkh_script(pubkey_hash160: bytes) -> bytes:
    return construct_script([
        opcodes.OP_DUP,
        opcodes.OP_HASH160,
        pubkey_hash160,
        opcodes.OP_EQUALVERIFY,
        opcodes.OP_CHECKSIG
    ])


def pubkey_to_p2pkh_script(public_key: bytes) -> bytes:
    return pubkeyhash_to_p2pkh_script(hash_160(compress_public_key(public_key)))


def p2wpkh_nested_script(public_key: bytes) -> bytes:
    """scriptSig of a P2SH-wrapped P2WPKH input: a single push of the
    version 0 witness program."""
    program = bytes([opcodes.OP_0]) + push_script(hash_160(compress_public_key(public_key)))
    return push_script(program)


def compress_public_key(public_key: bytes) -> bytes:
    if len(public_key) == 33 and public_key[0] in (0x02, 0x03):
        return bytes(public_key)
    if len(public_key) == 65 and public_key[0] == 0x04:
        prefix = 0x02 if public_key[64] % 2 == 0 else 0x03
        return bytes([prefix]) + bytes(public_key[1:33])
    raise InvalidParameter(f"unsupported public key encoding (len={len(public_key)})")


class AddressFormat(enum.IntEnum):
    # values are the P2 parameter of the public key query
    LEGACY = 0
    P2SH = 1
    BECH32 = 2

    def is_segwit(self) -> bool:
        return self != AddressFormat.LEGACY


def classify_output_script(script: bytes) -> Optional[AddressFormat]:
    if (len(script) == 25
            and script[0] == opcodes.OP_DUP
            and script[1] == opcodes.OP_HASH160
            and script[2] == 0x14
            and script[23] == opcodes.OP_EQUALVERIFY
            and script[24] == opcodes.OP_CHECKSIG):
        return AddressFormat.LEGACY
    if len(script) == 23 and script[0] == opcodes.OP_HASH160:
        return AddressFormat.P2SH
    if len(script) == 22 and script[0] == opcodes.OP_0 and script[1] == 0x14:
        return AddressFormat.BECH32
    return None


def get_address_format(script: bytes) -> AddressFormat:
    address_format = classify_output_script(script)
    if address_format is None:
        raise InvalidParameter(f"unrecognized output script: {script.hex()}")
    return address_format
