# Copyright (C) 2018 The ledgerlib developers
# Distributed under the MIT software license, see the accompanying
# file LICENCE or http://www.opensource.org/licenses/mit-license.php

from typing import List, Sequence, Union

from .util import InvalidParameter


BIP32_PRIME = 0x80000000
UINT32_MAX = (1 << 32) - 1

BIP32_HARDENED_CHAR = "h"  # default "hardened" char we put in str paths

MAX_DEVICE_PATH_LENGTH = 10


def convert_bip32_strpath_to_intpath(n: str) -> List[int]:
    """Convert bip32 path str to list of uint32 integers with prime flags
    m/44'/0h/1 -> [0x8000002c, 0x80000000, 1]
    """
    if not n:
        return []
    if n.endswith("/"):
        n = n[:-1]
    n = n.split('/')
    # cut leading "m" if present, but do not require it
    if n[0] == "m":
        n = n[1:]
    path = []
    for x in n:
        if x == '':
            # gracefully allow repeating "/" chars in path.
            continue
        prime = 0
        if x.endswith("'") or x.endswith("h"):
            x = x[:-1]
            prime = BIP32_PRIME
        try:
            x_int = int(x)
        except ValueError as e:
            raise InvalidParameter(f"failed to parse bip32 path: {(str(e))}") from None
        if x_int < 0:
            raise InvalidParameter(f"bip32 path child index must be non-negative: {x_int}")
        child_index = x_int | prime
        if child_index > UINT32_MAX or (prime and x_int >= BIP32_PRIME):
            raise InvalidParameter(f"bip32 path child index too large: {child_index} > {UINT32_MAX}")
        path.append(child_index)
    return path


def convert_bip32_intpath_to_strpath(path: Sequence[int], *, hardened_char=BIP32_HARDENED_CHAR) -> str:
    s = "m/"
    for child_index in path:
        if not (0 <= child_index <= UINT32_MAX):
            raise InvalidParameter(f"bip32 path child index out of range: {child_index}")
        prime = ""
        if child_index & BIP32_PRIME:
            prime = hardened_char
            child_index = child_index ^ BIP32_PRIME
        s += str(child_index) + prime + '/'
    # cut trailing "/"
    s = s[:-1]
    return s


def encode_path_for_device(path: Union[str, Sequence[int]]) -> bytes:
    """Count byte followed by each element as 4-byte big-endian.
    The empty path is the single byte 00.
    """
    if isinstance(path, str):
        path = convert_bip32_strpath_to_intpath(path)
    if len(path) > MAX_DEVICE_PATH_LENGTH:
        raise InvalidParameter(f"Path too long: {len(path)} > {MAX_DEVICE_PATH_LENGTH} elements")
    out = bytearray([len(path)])
    for child_index in path:
        if not (0 <= child_index <= UINT32_MAX):
            raise InvalidParameter(f"bip32 path child index out of range: {child_index}")
        out += child_index.to_bytes(4, byteorder="big", signed=False)
    return bytes(out)
