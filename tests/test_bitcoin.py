from ledgerlib.bitcoin import (var_int, read_var_int, _op_push, push_script, construct_witness,
                               opcodes, AddressFormat, classify_output_script, get_address_format,
                               compress_public_key, pubkey_to_p2pkh_script, p2wpkh_nested_script)
from ledgerlib.crypto import sha256, sha256d, hash_160, ripemd
from ledgerlib.util import bfh, UnsupportedEncoding, MalformedTransaction, InvalidParameter

from . import LedgerTestCase


# compressed secp256k1 generator point
G_COMPRESSED = bfh('0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798')
G_UNCOMPRESSED = bfh('0479be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798'
                     '483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8')
G_HASH160 = bfh('751e76e8199196d454941c45d1b3a323f1433bd6')


class Test_crypto(LedgerTestCase):

    def test_sha256(self):
        self.assertEqual(bfh('e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'),
                         sha256(b''))
        self.assertEqual(sha256(sha256(b'abc')), sha256d(b'abc'))
        self.assertEqual(sha256d(b'abc'), sha256d('abc'))

    def test_ripemd(self):
        self.assertEqual(bfh('9c1185a5c5e9fc54612808977ee8f548b2258d31'), ripemd(b''))

    def test_hash_160(self):
        self.assertEqual(G_HASH160, hash_160(G_COMPRESSED))


class Test_varint(LedgerTestCase):

    def test_var_int(self):
        for i in range(0xfd):
            self.assertEqual(var_int(i), bfh("{:02x}".format(i)))

        self.assertEqual(var_int(0xfd), bfh("fdfd00"))
        self.assertEqual(var_int(0xff), bfh("fdff00"))
        self.assertEqual(var_int(0x1234), bfh("fd3412"))
        self.assertEqual(var_int(0xffff), bfh("fdffff"))
        self.assertEqual(var_int(0x10000), bfh("fe00000100"))
        self.assertEqual(var_int(0x12345678), bfh("fe78563412"))
        self.assertEqual(var_int(0xffffffff), bfh("feffffffff"))

    def test_var_int_out_of_range(self):
        with self.assertRaises(UnsupportedEncoding):
            var_int(0x100000000)
        with self.assertRaises(UnsupportedEncoding):
            var_int(-1)

    def test_read_var_int(self):
        for n in (0, 1, 0xfc, 0xfd, 0xffff, 0x10000, 0x12345678, 0xffffffff):
            encoded = var_int(n)
            self.assertEqual((n, len(encoded)), read_var_int(encoded))
        # offset is honoured
        self.assertEqual((0x1234, 4), read_var_int(bfh('aafd3412'), 1))

    def test_read_var_int_rejects_8_byte_form(self):
        with self.assertRaises(UnsupportedEncoding):
            read_var_int(bfh('ff0000000001000000'))
        # still a parse failure for callers catching the broader kind
        with self.assertRaises(MalformedTransaction):
            read_var_int(bfh('ff0000000001000000'))

    def test_read_var_int_truncated(self):
        with self.assertRaises(MalformedTransaction):
            read_var_int(b'')
        with self.assertRaises(MalformedTransaction):
            read_var_int(bfh('fd34'))
        with self.assertRaises(MalformedTransaction):
            read_var_int(bfh('fe785634'))


class Test_script(LedgerTestCase):

    def test_op_push(self):
        self.assertEqual(_op_push(0x12), bfh('12'))
        self.assertEqual(_op_push(0x4b), bfh('4b'))
        self.assertEqual(_op_push(0x4c), bfh('4c4c'))
        self.assertEqual(_op_push(0xff), bfh('4cff'))
        self.assertEqual(_op_push(0x100), bfh('4d0001'))
        self.assertEqual(_op_push(0x10000), bfh('4e00000100'))

    def test_push_script(self):
        self.assertEqual(push_script(b""), bytes([opcodes.OP_0]))
        self.assertEqual(push_script(b'\x11'), bfh('0111'))
        self.assertEqual(push_script(75 * b'\x42'), bfh('4b' + 75 * '42'))
        self.assertEqual(push_script(76 * b'\x42'), bfh('4c4c' + 76 * '42'))

    def test_construct_witness(self):
        self.assertEqual(bfh('00'), construct_witness([]))
        self.assertEqual(bfh('0202aabb01cc'), construct_witness([bfh('aabb'), 'cc']))

    def test_pubkey_to_p2pkh_script(self):
        expected = bfh('76a914' + G_HASH160.hex() + '88ac')
        self.assertEqual(expected, pubkey_to_p2pkh_script(G_COMPRESSED))
        self.assertEqual(expected, pubkey_to_p2pkh_script(G_UNCOMPRESSED))

    def test_p2wpkh_nested_script(self):
        self.assertEqual(bfh('160014' + G_HASH160.hex()), p2wpkh_nested_script(G_COMPRESSED))


class Test_compress_public_key(LedgerTestCase):

    def test_compressed_passes_through(self):
        self.assertEqual(G_COMPRESSED, compress_public_key(G_COMPRESSED))

    def test_even_last_byte(self):
        # 0xb8 is even
        self.assertEqual(G_COMPRESSED, compress_public_key(G_UNCOMPRESSED))

    def test_odd_last_byte(self):
        key = G_UNCOMPRESSED[:-1] + b'\x01'
        compressed = compress_public_key(key)
        self.assertEqual(33, len(compressed))
        self.assertEqual(0x03, compressed[0])
        self.assertEqual(G_UNCOMPRESSED[1:33], compressed[1:])

    def test_bad_keys(self):
        for key in (b'', G_COMPRESSED[1:], b'\x04' + G_COMPRESSED[1:],
                    b'\x02' + G_UNCOMPRESSED[1:], b'\x05' + G_COMPRESSED[1:]):
            with self.assertRaises(InvalidParameter):
                compress_public_key(key)


class Test_classify_output_script(LedgerTestCase):

    def test_p2pkh(self):
        script = bfh('76a914' + G_HASH160.hex() + '88ac')
        self.assertEqual(AddressFormat.LEGACY, classify_output_script(script))

    def test_p2sh(self):
        script = bfh('a914' + G_HASH160.hex() + '87')
        self.assertEqual(23, len(script))
        self.assertEqual(AddressFormat.P2SH, classify_output_script(script))

    def test_p2wpkh(self):
        script = bfh('0014' + G_HASH160.hex())
        self.assertEqual(22, len(script))
        self.assertEqual(AddressFormat.BECH32, get_address_format(script))

    def test_unrecognized(self):
        p2wsh = bfh('0020' + 32 * '11')
        p2pk = push_script(G_COMPRESSED) + bytes([opcodes.OP_CHECKSIG])
        for script in (b'', p2wsh, p2pk, bfh('6a0401020304')):
            self.assertIsNone(classify_output_script(script))
            with self.assertRaises(InvalidParameter):
                get_address_format(script)

    def test_address_format_values_match_device(self):
        self.assertEqual(0, AddressFormat.LEGACY)
        self.assertEqual(1, AddressFormat.P2SH)
        self.assertEqual(2, AddressFormat.BECH32)
        self.assertFalse(AddressFormat.LEGACY.is_segwit())
        self.assertTrue(AddressFormat.P2SH.is_segwit())
