import pytest

KEY_HEX = "02d20bbd7e394ad5999a4cebabac9619732c343a4cac99470c03e23ba2bdc2bc"
HMAC_KEY_HEX = "6904e03bf4c9e7f53a11f09311e2fa68c750f5de84cd2f63b47defb47d5ef17f"
FLASH_ADDRESS = 0x210000


@pytest.fixture
def key():
    return bytes.fromhex(KEY_HEX)


@pytest.fixture
def mac_key():
    return bytes.fromhex(HMAC_KEY_HEX)


@pytest.fixture
def firmware():
    # 200 bytes: not block aligned, with repeated 16-byte runs
    return bytes(range(64)) + b"\xA5" * 64 + bytes(range(72))
