import argparse

import pytest

from flash_errors import FatalError
from fw_config import auto_int, hmac_key_bytes, parse_config, resolve_settings


def test_parse_config(tmp_path, capsys):
    cfg = tmp_path / "config_settings.txt"
    cfg.write_text("# flash settings\nKey, 'aabb'\nflash_crypt_conf,3\nname,Acme\n")

    assert parse_config(str(cfg)) == {"key": "aabb", "flash_crypt_conf": "3"}
    assert "ignoring unknown key 'name'" in capsys.readouterr().out


def test_parse_config_requires_comma(tmp_path):
    cfg = tmp_path / "config_settings.txt"
    cfg.write_text("key aabb\n")
    with pytest.raises(FatalError, match="Line 1"):
        parse_config(str(cfg))


def test_parse_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_config(str(tmp_path / "nope.txt"))


def test_resolve_defaults_and_overrides(tmp_path):
    cfg = tmp_path / "config_settings.txt"
    cfg.write_text("address,0x1000\nversion,1.0\n")
    args = argparse.Namespace(config=str(cfg), key="aa", hmac_key=None, address="0x2000", flash_crypt_conf=None,
                              version=None)

    settings = resolve_settings(args, required=("key", "address"))
    assert settings["address"] == 0x2000
    assert settings["flash_crypt_conf"] == 0xF
    assert settings["version"] == "1.0"


def test_resolve_missing():
    args = argparse.Namespace(config=None, key=None, hmac_key=None, address=None, flash_crypt_conf=None, version=None)
    with pytest.raises(FatalError, match="key, address"):
        resolve_settings(args, required=("key", "address"))


def test_auto_int():
    assert auto_int("0x210000") == 0x210000
    assert auto_int("16") == 16
    assert auto_int(5) == 5
    with pytest.raises(FatalError):
        auto_int("ten")


def test_hmac_key_bytes():
    assert hmac_key_bytes("aabb") == b"\xaa\xbb"
    assert hmac_key_bytes("aabb", raw=True) == b"aabb"


def test_fallback_only_fills_unset(tmp_path):
    cfg = tmp_path / "config_settings.txt"
    cfg.write_text("address,0x210000\n")
    args = argparse.Namespace(config=str(cfg), key=None, hmac_key=None, address=None, flash_crypt_conf=None,
                              version=None)

    assert resolve_settings(args, required=("address",), fallbacks={"address": 0x100000})["address"] == 0x210000

    args.config = None
    assert resolve_settings(args, required=("address",), fallbacks={"address": 0x100000})["address"] == 0x100000
    assert resolve_settings(args, required=(), fallbacks={"address": None}).get("address") is None
