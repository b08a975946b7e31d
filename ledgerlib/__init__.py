from .version import LEDGERLIB_VERSION
from .util import (LedgerException, MalformedTransaction, UnsupportedEncoding,
                   InvalidParameter, InternalError, DeviceRejected, WrongApplication)
from .simple_config import SimpleConfig
from . import bitcoin
from . import transaction
from .transaction import Transaction, TxInput, TxOutput
from .apdu import DeviceChannel, DongleChannel
from .btc.app import Btc
from .logging import get_logger


__version__ = LEDGERLIB_VERSION

_logger = get_logger(__name__)


# Ensure that asserts are enabled. For sanity and paranoia, we require this.
# Code *should not rely* on asserts being enabled. Input validation always
# raises explicit exceptions.
try:
    assert False  # noqa: B011
except AssertionError:
    pass
else:
    raise ImportError("Running with asserts disabled. Refusing to continue. Exiting...")
