KEY_LEN = 32
OFFSET_BITS = 24

# Key bit n is flipped when bit TWEAK_PATTERN[n] of the flash offset is set.
TWEAK_PATTERN = (
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    23, 22, 21, 20, 19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5,
    8, 7, 6, 5,
)
assert len(TWEAK_PATTERN) == KEY_LEN * 8

# (config bit, start, stop) for each quarter of the key bit space
TWEAK_RANGES = (
    (1, 0, 67),
    (2, 67, 132),
    (4, 132, 195),
    (8, 195, 256),
)


def tweak_range(flash_crypt_conf=0xF):
    """
    Return the key bit indexes the tweak applies to, as selected by the
    4-bit FLASH_CRYPT_CONF value.
    """
    bits = []
    for mask, start, stop in TWEAK_RANGES:
        if flash_crypt_conf & mask:
            bits.extend(range(start, stop))
    return tuple(bits)


def tweak_key(key: bytes, offset: int, bits) -> bytes:
    """
    XOR the tweak derived from flash 'offset' into a copy of 'key'.

    'bits' is the tuple returned by tweak_range(). Only offset bits 5..23
    appear in TWEAK_PATTERN, so every offset inside one 32-byte region
    yields the same key.
    """
    if len(key) != KEY_LEN:
        raise ValueError(f"Tweak needs a {KEY_LEN}-byte key, got {len(key)}")

    tweaked = bytearray(key)
    offset_bits = [(offset >> i) & 1 == 1 for i in range(OFFSET_BITS)]

    for bit in bits:
        if offset_bits[TWEAK_PATTERN[bit]]:
            # bytes are MSB-first relative to the pattern table
            tweaked[bit // 8] ^= 1 << (7 - (bit % 8))

    return bytes(tweaked)
