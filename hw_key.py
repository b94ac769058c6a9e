import binascii

from flash_errors import InvalidKeyLength, KeyDecodeError

KEY_LENGTHS = (24, 32)


def decode_hex_key(text: str, what="key") -> bytes:
    text = text.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError) as e:
        raise KeyDecodeError(f"Invalid hex {what}: {e}") from e


def load_hardware_key(raw: bytes) -> bytes:
    """
    Return a 256-bit flash encryption key as the efuse block holds it.

    192-bit keys (3/4 coding scheme) are extended to 256 bits the way the
    hardware does it, by repeating bytes 8..15.
    """
    key = bytes(raw)
    if len(key) not in KEY_LENGTHS:
        raise InvalidKeyLength(f"Key contains wrong length ({len(key)} bytes), 24 or 32 expected.")

    if len(key) == 24:
        key = key + key[8:16]
        print("Using 192-bit key (extended)")
    else:
        print("Using 256-bit key")

    assert len(key) == 32
    return key
