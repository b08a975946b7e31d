from ecdsa.curves import SECP256k1
from ecdsa.util import sigdecode_der

from ledgerlib.bip32 import encode_path_for_device
from ledgerlib.bitcoin import AddressFormat
from ledgerlib.btc import BTCHIP_INS_SIGN_MESSAGE, BTCHIP_INS_GET_WALLET_PUBLIC_KEY
from ledgerlib.btc.app import Btc
from ledgerlib.btc.message import sign_message, ECDSADeviceSignature
from ledgerlib.btc.public_key import WalletAddress, get_wallet_public_key
from ledgerlib.util import bfh, InvalidParameter, InternalError, DeviceRejected

from . import LedgerTestCase
from .fake_device import FakeDevice, fake_der_signature


PATH = "m/44'/0'/0'/0/0"


class TestSignMessage(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.device = FakeDevice()

    def test_short_message(self):
        signature = sign_message(self.device, PATH, b'hello')
        frames = self.device.frames_for(BTCHIP_INS_SIGN_MESSAGE)
        self.assertEqual(2, len(frames))
        self.assertEqual((0xE0, 0x4E, 0x00, 0x01), frames[0][:4])
        self.assertEqual(encode_path_for_device(PATH) + bfh('0005') + b'hello', frames[0].data)
        self.assertEqual((0x80, 0x00, bfh('00')), frames[1][2:])
        r, s = sigdecode_der(self.device.signatures[0], SECP256k1.order)
        self.assertEqual(1, signature.v)
        self.assertEqual(r.to_bytes(32, 'big'), signature.r)
        self.assertEqual(s.to_bytes(32, 'big'), signature.s)
        self.assertEqual(self.device.signatures[0], signature.to_der())

    def test_long_message(self):
        message = bytes(range(256)) * 3
        sign_message(self.device, PATH, message)
        frames = self.device.frames_for(BTCHIP_INS_SIGN_MESSAGE)
        prepare = frames[:-1]
        self.assertEqual([0x01] + [0x80] * (len(prepare) - 1), [f.p2 for f in prepare])
        self.assertTrue(all(len(f.data) <= 255 for f in prepare))
        header = encode_path_for_device(PATH) + len(message).to_bytes(2, 'big')
        self.assertEqual(header + message, b''.join(f.data for f in prepare))
        self.assertEqual(255, len(prepare[0].data))

    def test_empty_message(self):
        sign_message(self.device, PATH, b'')
        frames = self.device.frames_for(BTCHIP_INS_SIGN_MESSAGE)
        self.assertEqual(2, len(frames))
        self.assertEqual(encode_path_for_device(PATH) + bfh('0000'), frames[0].data)

    def test_str_message_is_utf8(self):
        sign_message(self.device, PATH, 'hé')
        self.assertEqual(bfh('0003') + 'hé'.encode('utf8'),
                         self.device.frames[0].data[-5:])

    def test_message_too_long(self):
        with self.assertRaises(InvalidParameter):
            sign_message(self.device, PATH, b'\x00' * 0x10000)
        self.assertEqual([], self.device.frames)

    def test_device_refuses(self):
        self.device.fail(BTCHIP_INS_SIGN_MESSAGE, 0x6985, nth=1)
        with self.assertRaises(DeviceRejected):
            sign_message(self.device, PATH, b'hello')


class TestECDSADeviceSignature(LedgerTestCase):

    def test_parity(self):
        der = fake_der_signature(7)
        even = ECDSADeviceSignature.from_device_response(b'\x30' + der[1:])
        odd = ECDSADeviceSignature.from_device_response(b'\x31' + der[1:])
        self.assertEqual(0, even.v)
        self.assertEqual(1, odd.v)
        self.assertEqual((even.r, even.s), (odd.r, odd.s))

    def test_to_compact(self):
        sig = ECDSADeviceSignature(v=1, r=b'\x11' * 32, s=b'\x22' * 32)
        compact = sig.to_compact()
        self.assertEqual(65, len(compact))
        self.assertEqual(32, compact[0])
        self.assertEqual(b'\x11' * 32 + b'\x22' * 32, compact[1:])

    def test_trailing_bytes_ignored(self):
        der = fake_der_signature(3)
        sig = ECDSADeviceSignature.from_device_response(b'\x31' + der[1:] + b'\x01')
        self.assertEqual(der, sig.to_der())

    def test_malformed(self):
        for response in (b'', b'\x31', bfh('3106020101030101')):
            with self.assertRaises(InternalError):
                ECDSADeviceSignature.from_device_response(response)


class TestWalletPublicKey(LedgerTestCase):

    def test_query(self):
        device = FakeDevice()
        wallet_address = get_wallet_public_key(device, PATH, display=True, address_format=AddressFormat.BECH32)
        frame = device.frames_for(BTCHIP_INS_GET_WALLET_PUBLIC_KEY)[0]
        self.assertEqual((0xE0, 0x40, 0x01, 0x02), frame[:4])
        self.assertEqual(encode_path_for_device(PATH), frame.data)
        self.assertEqual(device.public_key_for(PATH), wallet_address.public_key)
        self.assertTrue(wallet_address.address.startswith('1FakeAddress'))
        self.assertEqual(32, len(wallet_address.chain_code))

    def test_parse_without_chain_code(self):
        response = bytes([33]) + b'\x02' * 33 + bytes([3]) + b'abc'
        wallet_address = WalletAddress.from_device_response(response)
        self.assertEqual(b'\x02' * 33, wallet_address.public_key)
        self.assertEqual('abc', wallet_address.address)
        self.assertIsNone(wallet_address.chain_code)

    def test_truncated(self):
        for response in (b'', bytes([33]) + b'\x02' * 10, bytes([33]) + b'\x02' * 33, bytes([1, 2, 5]) + b'ab'):
            with self.assertRaises(InternalError):
                WalletAddress.from_device_response(response)

    def test_btc_facade(self):
        device = FakeDevice()
        btc = Btc(device)
        self.assertEqual(device.public_key_for(PATH), btc.get_wallet_public_key(PATH).public_key)
        self.assertEqual(0x00, device.frames[0].p2)
        signature = btc.sign_message(PATH, 'hello')
        self.assertEqual(1, signature.v)
