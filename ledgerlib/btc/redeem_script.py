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

from typing import Optional

from ..util import InternalError, InvalidParameter
from ..bitcoin import AddressFormat, pubkey_to_p2pkh_script
from ..transaction import TxInput, TxOutput


def resolve_redeem_script(txin: TxInput, address_format: AddressFormat,
                          parent_output: TxOutput, public_key: Optional[bytes]) -> bytes:
    """Script committed for txin while hashing.

    A non-empty script on the unsigned input overrides everything.
    Legacy inputs commit the previous scriptPubKey, segwit ones the
    P2PKH script of their key (the BIP143 scriptCode).
    """
    if txin.script:
        return bytes(txin.script)
    if address_format == AddressFormat.LEGACY:
        return bytes(parent_output.script)
    if address_format in (AddressFormat.P2SH, AddressFormat.BECH32):
        if public_key is None:
            raise InvalidParameter("public key required to derive a segwit script code")
        return pubkey_to_p2pkh_script(public_key)
    raise InternalError(f"unexpected address format: {address_format!r}")
