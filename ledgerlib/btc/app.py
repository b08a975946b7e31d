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

from ..bitcoin import AddressFormat
from ..bip32 import convert_bip32_strpath_to_intpath, convert_bip32_intpath_to_strpath
from ..transaction import Transaction
from ..apdu import DeviceChannel
from ..logging import Logger
from . import SIGHASH_ALL
from .public_key import WalletAddress, get_wallet_public_key
from .trusted_input import TrustedInputReference, get_trusted_input, get_trusted_input_bip143
from .signer import sign_transaction
from .message import ECDSADeviceSignature, sign_message


def _path_str(path: Union[str, Sequence[int]]) -> str:
    if isinstance(path, str):
        path = convert_bip32_strpath_to_intpath(path)
    return convert_bip32_intpath_to_strpath(path)


class Btc(Logger):
    """Bitcoin application of the device."""

    LOGGING_SHORTCUT = 'B'

    def __init__(self, channel: DeviceChannel):
        Logger.__init__(self)
        self.channel = channel

    def get_wallet_public_key(self, path: Union[str, Sequence[int]], *, display: bool = False,
                              address_format: AddressFormat = AddressFormat.LEGACY) -> WalletAddress:
        self.logger.info(f"get public key {_path_str(path)} ({address_format.name})")
        return get_wallet_public_key(self.channel, path, display=display, address_format=address_format)

    def get_trusted_input(self, parent: Transaction, index: int, *,
                          segwit: bool = False) -> TrustedInputReference:
        if segwit:
            return get_trusted_input_bip143(parent, index)
        return get_trusted_input(self.channel, parent, index)

    def sign_transaction(self, tx: Transaction, parents: Sequence[Transaction],
                         key_paths: Sequence[Union[str, Sequence[int]]],
                         change_path: Optional[Union[str, Sequence[int]]] = None,
                         sighash: int = SIGHASH_ALL) -> Transaction:
        self.logger.info(f"sign transaction with {len(tx.inputs)} inputs, {len(tx.outputs)} outputs")
        if change_path is not None:
            self.logger.info(f"change path {_path_str(change_path)}")
        sign_transaction(self.channel, tx, parents, key_paths, change_path=change_path, sighash=sighash)
        self.logger.info(f"signed transaction {tx.txid()}")
        return tx

    def sign_message(self, path: Union[str, Sequence[int]], message: Union[bytes, str]) -> ECDSADeviceSignature:
        self.logger.info(f"sign message with {_path_str(path)}")
        return sign_message(self.channel, path, message)
