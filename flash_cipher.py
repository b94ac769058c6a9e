from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from flash_errors import InvalidAddress, ShortBlockOnDecrypt
from flash_tweak import tweak_key

BLOCK_SIZE = 16
REKEY_INTERVAL = 32


def check_flash_address(flash_address: int):
    if flash_address < 0 or flash_address % BLOCK_SIZE != 0:
        raise InvalidAddress(f"Starting flash address 0x{flash_address:x} must be a multiple of {BLOCK_SIZE}")


class FlashCipher:
    """
    AES-256 engine keyed per 32-byte flash region.

    The key is re-derived on the first block and whenever the block offset
    is 32-byte aligned, so blocks 2k and 2k+1 of an aligned image share one
    tweaked key. One instance serves exactly one transform run.
    """

    def __init__(self, key: bytes, bits):
        self._key = key
        self._bits = bits
        self._cipher = None
        self.region = None
        self.block_key = None

    def select(self, offset: int):
        if self._cipher is None or offset % REKEY_INTERVAL == 0:
            self.block_key = tweak_key(self._key, offset, self._bits)
            self._cipher = AES.new(self.block_key, AES.MODE_ECB)
            self.region = offset - offset % REKEY_INTERVAL
        return self.block_key

    def forward(self, block: bytes) -> bytes:
        return self._cipher.encrypt(block)

    def inverse(self, block: bytes) -> bytes:
        return self._cipher.decrypt(block)


def read_blocks(input_file, flash_address, do_decrypt):
    """Yield (flash offset, 16-byte block) pairs until the stream is exhausted."""
    while True:
        block_offs = flash_address + input_file.tell()
        block = input_file.read(BLOCK_SIZE)
        if len(block) == 0:
            break
        if len(block) < BLOCK_SIZE:
            if do_decrypt:
                raise ShortBlockOnDecrypt(f"Data length is not a multiple of {BLOCK_SIZE} bytes")
            pad = BLOCK_SIZE - len(block)
            block += get_random_bytes(pad)
            print(f"Note: Padding with {pad} bytes of random data (encrypted data must be multiple of {BLOCK_SIZE} bytes long)")
        yield block_offs, block


def transform(input_file, flash_address, key, bits, do_decrypt) -> bytes:
    """
    Encrypt or decrypt 'input_file' as the flash controller would at
    'flash_address' and return the whole transformed payload.
    """
    check_flash_address(flash_address)

    engine = FlashCipher(key, bits)
    output = bytearray()

    for block_offs, block in read_blocks(input_file, flash_address, do_decrypt):
        engine.select(block_offs)

        # the hardware runs AES inverted: reading flash "decrypts" with the
        # AES encrypt primitive and writing flash "encrypts" with decrypt
        block = block[::-1]
        block = engine.forward(block) if do_decrypt else engine.inverse(block)
        output += block[::-1]

    return bytes(output)
