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

from typing import Optional, Sequence, Union

import attr

from ..util import InternalError
from ..bitcoin import AddressFormat
from ..bip32 import encode_path_for_device
from ..apdu import DeviceChannel, exchange_checked
from . import BTCHIP_CLA, BTCHIP_INS_GET_WALLET_PUBLIC_KEY


@attr.s(frozen=True)
class WalletAddress:
    public_key = attr.ib(type=bytes, kw_only=True, converter=bytes, repr=lambda val: val.hex())
    address = attr.ib(type=str, kw_only=True)
    chain_code = attr.ib(type=bytes, kw_only=True, default=None,
                         repr=lambda val: val.hex() if val is not None else 'None')  # type: Optional[bytes]

    @classmethod
    def from_device_response(cls, response: bytes) -> 'WalletAddress':
        # len || pubkey || len || address || [chaincode]
        try:
            offset = 0
            pubkey_len = response[offset]
            offset += 1
            public_key = response[offset:offset + pubkey_len]
            offset += pubkey_len
            address_len = response[offset]
            offset += 1
            address = response[offset:offset + address_len]
            offset += address_len
        except IndexError as e:
            raise InternalError(f"truncated public key response: {response.hex()}") from e
        if len(public_key) != pubkey_len or len(address) != address_len:
            raise InternalError(f"truncated public key response: {response.hex()}")
        chain_code = response[offset:offset + 32]
        return cls(public_key=public_key,
                   address=address.decode('ascii'),
                   chain_code=chain_code if len(chain_code) == 32 else None)


def get_wallet_public_key(channel: DeviceChannel, path: Union[str, Sequence[int]], *,
                          display: bool = False,
                          address_format: AddressFormat = AddressFormat.LEGACY) -> WalletAddress:
    p1 = 0x01 if display else 0x00
    response = exchange_checked(channel, BTCHIP_CLA, BTCHIP_INS_GET_WALLET_PUBLIC_KEY,
                                p1, int(address_format), encode_path_for_device(path))
    return WalletAddress.from_device_response(response)
