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

from abc import ABC, abstractmethod
from typing import Tuple, Optional, TYPE_CHECKING

from .util import chunks, DeviceRejected, WrongApplication, InvalidParameter, InternalError
from .logging import Logger

if TYPE_CHECKING:
    from .simple_config import SimpleConfig


MAX_APDU_DATA_LENGTH = 255

SW_OK = 0x9000
SW_WRONG_P1_P2 = 0x6B00
SW_INS_NOT_SUPPORTED = 0x6D00
SW_CLA_NOT_SUPPORTED = 0x6E00

# the device is running another application (or its dashboard)
WRONG_APPLICATION_STATUS_WORDS = (SW_CLA_NOT_SUPPORTED, SW_INS_NOT_SUPPORTED, SW_WRONG_P1_P2)


class DeviceChannel(ABC):
    """Blocking command/response link to the device.
    At most one exchange is in flight at any time.
    """

    @abstractmethod
    def exchange(self, cla: int, ins: int, p1: int, p2: int, data: bytes = b'') -> Tuple[bytes, int]:
        """Sends one command frame, returns (response data, status word)."""
        pass


def check_status_word(sw: int) -> None:
    if sw == SW_OK:
        return
    if sw in WRONG_APPLICATION_STATUS_WORDS:
        raise WrongApplication()
    raise DeviceRejected(sw)


def exchange_checked(channel: DeviceChannel, cla: int, ins: int, p1: int, p2: int,
                     data: bytes = b'') -> bytes:
    response, sw = channel.exchange(cla, ins, p1, p2, data)
    check_status_word(sw)
    return bytes(response)


def send_chunked(channel: DeviceChannel, cla: int, ins: int, p1: int, p2: int,
                 payload: bytes, trailer: bytes = b'') -> Optional[bytes]:
    """Sends payload in frames of at most MAX_APDU_DATA_LENGTH bytes.

    The trailer rides along with the last fragment when it fits,
    otherwise it is sent in a frame of its own. Returns the response
    to the last frame sent, or None if nothing was sent.
    """
    if len(trailer) > MAX_APDU_DATA_LENGTH:
        raise InvalidParameter(f"trailer too long: {len(trailer)}")
    frames = list(chunks(bytes(payload), MAX_APDU_DATA_LENGTH))
    if trailer:
        if frames and len(frames[-1]) + len(trailer) <= MAX_APDU_DATA_LENGTH:
            frames[-1] = frames[-1] + trailer
        else:
            frames.append(trailer)
    response = None
    for frame in frames:
        response = exchange_checked(channel, cla, ins, p1, p2, frame)
    return response


class DongleChannel(DeviceChannel, Logger):
    """Adapts a raw APDU transport into a DeviceChannel.

    The dongle must provide exchange(apdu: bytes) -> bytes, returning the
    response data followed by the two status word bytes.
    """

    def __init__(self, dongle, *, debug: bool = False, config: 'SimpleConfig' = None):
        Logger.__init__(self)
        self.dongle = dongle
        if config is not None:
            debug = debug or config.LEDGER_DEBUG_APDU
        self.debug = debug

    def exchange(self, cla, ins, p1, p2, data=b''):
        data = bytes(data)
        if len(data) > MAX_APDU_DATA_LENGTH:
            raise InvalidParameter(f"APDU data too long: {len(data)}")
        apdu = bytes([cla, ins, p1, p2, len(data)]) + data
        if self.debug:
            self.logger.debug(f"=> {apdu.hex()}")
        result = bytes(self.dongle.exchange(apdu))
        if len(result) < 2:
            raise InternalError(f"response too short to carry a status word: {result.hex()}")
        response, sw = result[:-2], int.from_bytes(result[-2:], byteorder="big")
        if self.debug:
            self.logger.debug(f"<= {response.hex()}{sw:04x}")
        return response, sw

    def close(self):
        close = getattr(self.dongle, 'close', None)
        if close is not None:
            close()
