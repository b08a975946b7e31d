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

from typing import Dict, List, Optional, Sequence, Union

import attr

from ..util import InvalidParameter, InternalError
from ..bitcoin import (AddressFormat, get_address_format, compress_public_key, push_script,
                       construct_witness, p2wpkh_nested_script)
from ..bip32 import encode_path_for_device
from ..transaction import Transaction, TxOutput
from ..apdu import DeviceChannel
from ..logging import get_logger
from . import SIGHASH_ALL
from .public_key import get_wallet_public_key
from .trusted_input import (TrustedInputReference, get_trusted_input, get_trusted_input_bip143,
                            to_witness_form)
from .untrusted_hash import UntrustedHashing
from .redeem_script import resolve_redeem_script


_logger = get_logger(__name__)


KeyPath = Union[str, Sequence[int]]

# witness entry of a legacy input inside a segwit transaction
EMPTY_WITNESS = construct_witness([])


@attr.s
class SigningContext:
    """Per-input data accumulated while signing one transaction."""
    tx = attr.ib(type=Transaction, kw_only=True)
    key_paths = attr.ib(kw_only=True)  # type: List[KeyPath]
    change_path = attr.ib(kw_only=True, default=None)  # type: Optional[KeyPath]
    sighash = attr.ib(type=int, kw_only=True, default=SIGHASH_ALL)
    parents = attr.ib(kw_only=True, factory=dict)  # type: Dict[bytes, Transaction]
    parent_outputs = attr.ib(kw_only=True, factory=list)  # type: List[TxOutput]
    formats = attr.ib(kw_only=True, factory=list)  # type: List[AddressFormat]
    public_keys = attr.ib(kw_only=True, factory=dict)  # type: Dict[bytes, bytes]
    references = attr.ib(kw_only=True, factory=list)  # type: List[TrustedInputReference]
    redeem_scripts = attr.ib(kw_only=True, factory=list)  # type: List[bytes]
    signatures = attr.ib(kw_only=True, factory=list)  # type: List[Optional[bytes]]

    @property
    def has_legacy(self) -> bool:
        return any(f == AddressFormat.LEGACY for f in self.formats)

    @property
    def has_segwit(self) -> bool:
        return any(f.is_segwit() for f in self.formats)

    def public_key_for_input(self, i: int) -> bytes:
        return self.public_keys[encode_path_for_device(self.key_paths[i])]


def _collect_parents(ctx: SigningContext, parents: Sequence[Transaction]) -> None:
    ctx.parents = {parent.get_hash(): parent for parent in parents}
    for i, txin in enumerate(ctx.tx.inputs):
        parent = ctx.parents.get(txin.prev_hash)
        if parent is None:
            raise InvalidParameter(f"missing parent transaction {txin.prev_hash[::-1].hex()} for input {i}")
        if not (0 <= txin.prev_index < len(parent.outputs)):
            raise InvalidParameter(f"input {i} spends output {txin.prev_index} "
                                   f"of a transaction with {len(parent.outputs)} outputs")
        parent_output = parent.outputs[txin.prev_index]
        ctx.parent_outputs.append(parent_output)
        ctx.formats.append(get_address_format(parent_output.script))


def _fetch_public_keys(ctx: SigningContext, channel: DeviceChannel) -> None:
    for path in ctx.key_paths:
        key = encode_path_for_device(path)
        if key in ctx.public_keys:
            continue
        wallet_address = get_wallet_public_key(channel, path)
        ctx.public_keys[key] = compress_public_key(wallet_address.public_key)


def _compute_trusted_inputs(ctx: SigningContext, channel: DeviceChannel) -> None:
    # one mode for the whole transaction
    use_device = ctx.has_legacy
    for txin in ctx.tx.inputs:
        parent = ctx.parents[txin.prev_hash]
        if use_device:
            ctx.references.append(get_trusted_input(channel, parent, txin.prev_index))
        else:
            ctx.references.append(get_trusted_input_bip143(parent, txin.prev_index))


def _resolve_redeem_scripts(ctx: SigningContext) -> None:
    for i, txin in enumerate(ctx.tx.inputs):
        ctx.redeem_scripts.append(resolve_redeem_script(
            txin, ctx.formats[i], ctx.parent_outputs[i], ctx.public_key_for_input(i)))


def _legacy_pass(ctx: SigningContext, hashing: UntrustedHashing) -> None:
    tx = ctx.tx
    outputs = tx.serialize_outputs()
    is_new = True
    for i, address_format in enumerate(ctx.formats):
        if address_format != AddressFormat.LEGACY:
            continue
        # the device needs the whole transaction again for every signature
        hashing.start(tx, is_new=is_new, continuing_from_segwit=False, target_input_index=i,
                      input_references=ctx.references, redeem_script=ctx.redeem_scripts[i])
        is_new = False
        if ctx.change_path is not None and not hashing.change_path_sent:
            hashing.provide_change_path(ctx.change_path)
        hashing.hash_outputs_full(outputs)
        ctx.signatures[i] = hashing.sign(ctx.key_paths[i], tx.locktime, ctx.sighash)
        _logger.info(f"signed legacy input {i}")


def _segwit_pass(ctx: SigningContext, hashing: UntrustedHashing) -> None:
    tx = ctx.tx
    if ctx.has_legacy:
        ctx.references = [to_witness_form(ref) for ref in ctx.references]
    hashing.start(tx, is_new=True, continuing_from_segwit=False, target_input_index=0,
                  input_references=ctx.references, redeem_script=b'')
    if ctx.change_path is not None and not hashing.change_path_sent:
        hashing.provide_change_path(ctx.change_path)
    hashing.hash_outputs_full(tx.serialize_outputs())
    for i, address_format in enumerate(ctx.formats):
        if not address_format.is_segwit():
            continue
        single = Transaction()
        single.version = tx.version
        single.locktime = tx.locktime
        single.inputs = [tx.inputs[i]]
        hashing.start(single, is_new=False, continuing_from_segwit=True, target_input_index=0,
                      input_references=[ctx.references[i]], redeem_script=ctx.redeem_scripts[i])
        ctx.signatures[i] = hashing.sign(ctx.key_paths[i], tx.locktime, ctx.sighash)
        _logger.info(f"signed segwit input {i}")


def _assemble(ctx: SigningContext) -> None:
    tx = ctx.tx
    witness = []
    for i, txin in enumerate(tx.inputs):
        signature = ctx.signatures[i]
        if signature is None:
            raise InternalError(f"no signature for input {i}")
        public_key = ctx.public_key_for_input(i)
        address_format = ctx.formats[i]
        if address_format == AddressFormat.LEGACY:
            txin.script = push_script(signature) + push_script(public_key)
            witness.append(EMPTY_WITNESS)
        elif address_format == AddressFormat.P2SH:
            txin.script = p2wpkh_nested_script(public_key)
            witness.append(construct_witness([signature, public_key]))
        elif address_format == AddressFormat.BECH32:
            txin.script = b''
            witness.append(construct_witness([signature, public_key]))
        else:
            raise InternalError(f"unexpected address format: {address_format!r}")
    # legacy-only transactions serialize without the segwit marker
    tx.witness = b''.join(witness) if ctx.has_segwit else None


def sign_transaction(channel: DeviceChannel, tx: Transaction, parents: Sequence[Transaction],
                     key_paths: Sequence[KeyPath], change_path: Optional[KeyPath] = None,
                     sighash: int = SIGHASH_ALL) -> Transaction:
    """Signs every input of tx on the device, in place.

    parents must contain every transaction spent by tx. key_paths gives
    the derivation path of the key signing each input. Returns tx with
    its scriptSigs and, if any input is segwit, its witness filled in.
    """
    if len(key_paths) != len(tx.inputs):
        raise InvalidParameter(f"got {len(key_paths)} key paths for {len(tx.inputs)} inputs")
    if sighash != SIGHASH_ALL:
        raise InvalidParameter(f"unsupported sighash type: {sighash:#04x}")
    ctx = SigningContext(tx=tx, key_paths=list(key_paths), change_path=change_path, sighash=sighash)
    ctx.signatures = [None] * len(tx.inputs)
    _collect_parents(ctx, parents)
    _logger.info(f"signing {len(tx.inputs)} inputs: "
                 f"{', '.join(f.name for f in ctx.formats)}")
    _fetch_public_keys(ctx, channel)
    _compute_trusted_inputs(ctx, channel)
    _resolve_redeem_scripts(ctx)
    hashing = UntrustedHashing(channel)
    if ctx.has_legacy:
        _legacy_pass(ctx, hashing)
    if ctx.has_segwit:
        _segwit_pass(ctx, hashing)
    _assemble(ctx)
    return tx
