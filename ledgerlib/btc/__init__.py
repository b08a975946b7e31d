# Bitcoin application command set

BTCHIP_CLA = 0xE0

BTCHIP_INS_GET_WALLET_PUBLIC_KEY = 0x40
BTCHIP_INS_GET_TRUSTED_INPUT = 0x42
BTCHIP_INS_HASH_INPUT_START = 0x44
BTCHIP_INS_HASH_SIGN = 0x48
BTCHIP_INS_HASH_INPUT_FINALIZE_FULL = 0x4A
BTCHIP_INS_SIGN_MESSAGE = 0x4E

SIGHASH_ALL = 0x01
