import hashlib
import hmac
import io
import struct

import pytest

from flash_errors import ContainerFormatError, TagMismatch, VersionParseError
from fw_container import (build_container, decode_version, encode_version, parse_container, verify_container,
                          write_container)

PAYLOAD = bytes(range(48))


@pytest.mark.parametrize("text, expected", [
    ("4.05", 405),
    ("1", 100),
    ("1.239", 123),
    (" 2.5 ", 250),
    ("0", 0),
])
def test_encode_version(text, expected):
    assert encode_version(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "4.05.1", "-1", "nan", "inf", "99999999"])
def test_encode_version_errors(text):
    with pytest.raises(VersionParseError):
        encode_version(text)


def test_decode_version():
    assert decode_version(405) == "4.05"
    assert decode_version(100) == "1.00"


def test_layout(mac_key):
    data = build_container(PAYLOAD, "4.05", mac_key)

    assert len(data) == 4 + 4 + len(PAYLOAD) + 32
    assert struct.unpack_from("<I", data, 0)[0] == len(PAYLOAD)
    assert struct.unpack_from("<I", data, 4)[0] == 405
    assert data[8:8 + len(PAYLOAD)] == PAYLOAD
    assert data[-32:] == hmac.new(mac_key, PAYLOAD, hashlib.sha256).digest()


def test_legacy_header_repeats_length(mac_key, capsys):
    data = build_container(PAYLOAD, "4.05", mac_key, legacy_length_header=True)

    assert data[0:4] == data[4:8] == struct.pack("<I", len(PAYLOAD))
    assert "legacy header" in capsys.readouterr().out
    assert parse_container(data).legacy_header


def test_legacy_header_still_parses_version(mac_key):
    with pytest.raises(VersionParseError):
        build_container(PAYLOAD, "v1", mac_key, legacy_length_header=True)


def test_write_container_single_write(mac_key):
    class Sink(io.BytesIO):
        writes = 0

        def write(self, b):
            self.writes += 1
            return super().write(b)

    sink = Sink()
    data = write_container(sink, PAYLOAD, "1.00", mac_key)
    assert sink.writes == 1
    assert sink.getvalue() == data


def test_write_error_propagates(mac_key):
    sink = io.BytesIO()
    sink.close()
    with pytest.raises(ValueError):
        write_container(sink, PAYLOAD, "1.00", mac_key)


def test_parse_and_verify(mac_key):
    data = build_container(PAYLOAD, "3.10", mac_key)
    container = verify_container(data, mac_key)

    assert container.length == len(PAYLOAD)
    assert container.version == 310
    assert container.payload == PAYLOAD
    assert not container.legacy_header


def test_tampered_payload_fails(mac_key):
    data = bytearray(build_container(PAYLOAD, "3.10", mac_key))
    data[8 + 5] ^= 0x01
    with pytest.raises(TagMismatch):
        verify_container(bytes(data), mac_key)


def test_wrong_mac_key_fails(mac_key):
    data = build_container(PAYLOAD, "3.10", mac_key)
    with pytest.raises(TagMismatch):
        verify_container(data, b"other key")


def test_empty_payload(mac_key):
    data = build_container(b"", "1.00", mac_key)
    assert len(data) == 40
    assert verify_container(data, mac_key).payload == b""


@pytest.mark.parametrize("cut", [1, 32, 60])
def test_truncated_container(mac_key, cut):
    data = build_container(PAYLOAD, "1.00", mac_key)
    with pytest.raises(ContainerFormatError):
        parse_container(data[:-cut])


def test_too_short():
    with pytest.raises(ContainerFormatError):
        parse_container(b"\x00" * 39)
