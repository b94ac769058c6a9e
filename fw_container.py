"""
Encrypted image container.

    offset  size  field
    0       4     payload length (LE)
    4       4     version * 100 (LE)
    8       N     transformed payload
    8+N     32    HMAC-SHA256(mac_key, payload)
"""
import struct
from collections import namedtuple
from decimal import Decimal, InvalidOperation

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from flash_errors import ContainerFormatError, TagMismatch, VersionParseError

HEADER_FMT = "<II"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
TAG_SIZE = 32
MAX_FIELD = 0xFFFFFFFF

Container = namedtuple("Container", ["length", "version", "payload", "tag", "legacy_header"])


def encode_version(version: str) -> int:
    """'4.05' -> 405. Scaled by 100 and truncated."""
    try:
        value = Decimal(str(version).strip())
    except InvalidOperation as e:
        raise VersionParseError(f"Invalid version string: {version!r}") from e

    if not value.is_finite() or value < 0:
        raise VersionParseError(f"Invalid version string: {version!r}")

    encoded = int(value * 100)
    if encoded > MAX_FIELD:
        raise VersionParseError(f"Version {version!r} does not fit in 32 bits once scaled by 100")
    return encoded


def decode_version(encoded: int) -> str:
    return f"{encoded // 100}.{encoded % 100:02d}"


def compute_tag(payload: bytes, mac_key: bytes) -> bytes:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(payload)
    return h.finalize()


def build_container(payload: bytes, version: str, mac_key: bytes, legacy_length_header=False) -> bytes:
    """
    Wrap 'payload' with its length, encoded version and HMAC tag.

    With legacy_length_header the version slot carries a second copy of the
    length, as images made by the first release of this format do. The
    version is still parsed so a malformed string fails either way.
    """
    if len(payload) > MAX_FIELD:
        raise ContainerFormatError(f"Payload of {len(payload)} bytes is too large for a 32-bit length field")

    encoded_version = encode_version(version)
    second_field = len(payload) if legacy_length_header else encoded_version

    container = bytearray(struct.pack(HEADER_FMT, len(payload), second_field))
    container += payload
    container += compute_tag(payload, mac_key)

    print(f"[container] payload={len(payload)} version={decode_version(encoded_version)} total={len(container)}")
    if legacy_length_header:
        print("Note: Writing payload length in the version field (legacy header)")
    return bytes(container)


def write_container(output_file, payload: bytes, version: str, mac_key: bytes, legacy_length_header=False) -> bytes:
    container = build_container(payload, version, mac_key, legacy_length_header)
    output_file.write(container)
    return container


def parse_container(data: bytes) -> Container:
    if len(data) < HEADER_SIZE + TAG_SIZE:
        raise ContainerFormatError(f"Container too short: {len(data)} bytes, at least {HEADER_SIZE + TAG_SIZE} expected")

    length, version = struct.unpack_from(HEADER_FMT, data, 0)
    expected = HEADER_SIZE + length + TAG_SIZE
    if expected != len(data):
        raise ContainerFormatError(f"Length field says {length} payload bytes ({expected} total) but container has {len(data)} bytes")

    payload = bytes(data[HEADER_SIZE:HEADER_SIZE + length])
    tag = bytes(data[HEADER_SIZE + length:])
    return Container(length, version, payload, tag, version == length)


def verify_container(data: bytes, mac_key: bytes) -> Container:
    """Parse 'data' and check its tag in constant time. Returns the parsed container."""
    container = parse_container(data)

    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(container.payload)
    try:
        h.verify(container.tag)
    except InvalidSignature as e:
        raise TagMismatch("HMAC-SHA256 tag does not match the payload") from e
    return container
