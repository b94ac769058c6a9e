#!/usr/bin/env python3
import argparse
import io
import os
import sys

from intelhex import IntelHex

from flash_cipher import transform
from flash_errors import FatalError
from flash_tweak import tweak_range
from fw_config import hmac_key_bytes, resolve_settings
from fw_container import decode_version, verify_container
from hw_key import decode_hex_key, load_hardware_key


def load_container(path: str) -> bytes:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Container not found: {path}")

    if os.path.splitext(path)[1].lower() in (".hex", ".ihex"):
        ih = IntelHex()
        ih.loadfile(path, format="hex")
        return bytes(ih.tobinarray())

    with open(path, "rb") as f:
        return f.read()


def check_container(data: bytes, mac_key: bytes):
    container = verify_container(data, mac_key)

    print(f"[check] payload length: {container.length} bytes")
    if container.legacy_header:
        print("[check] version field repeats the length (legacy header)")
    else:
        print(f"[check] version:        {decode_version(container.version)}")
    print(f"[check] tag:            {container.tag.hex()}")
    print("Tag OK")
    return container


def decrypt_payload(container, settings) -> bytes:
    key = load_hardware_key(decode_hex_key(settings["key"]))
    bits = tweak_range(settings["flash_crypt_conf"])
    return transform(io.BytesIO(container.payload), settings["address"], key, bits, True)


def run(args):
    required = ("hmac_key",)
    if args.decrypt_to:
        required += ("key", "address")
    settings = resolve_settings(args, required=required)
    mac_key = hmac_key_bytes(settings["hmac_key"], raw=args.raw_hmac_key)

    container = check_container(load_container(args.container), mac_key)

    if args.decrypt_to:
        if os.path.exists(args.decrypt_to):
            raise FileExistsError(f"Decrypted output already exists: {args.decrypt_to}")
        plaintext = decrypt_payload(container, settings)
        with open(args.decrypt_to, "xb") as f:
            f.write(plaintext)
        print(f"Decrypted {len(plaintext)} bytes to {args.decrypt_to}")

    return container


def build_parser():
    parser = argparse.ArgumentParser(prog="fwcrypt-verify", description="Check the HMAC tag of an encrypted image container")
    parser.add_argument("container", help="Container file (.bin or Intel .hex)")
    parser.add_argument("--config", "-c", help="Settings file with 'key,value' lines")
    parser.add_argument("--hmac-key", dest="hmac_key", help="HMAC-SHA256 key as hex")
    parser.add_argument("--raw-hmac-key", action="store_true", help="Use the HMAC key text as-is instead of hex-decoding it")
    parser.add_argument("--decrypt-to", help="Also decrypt the payload into this file")
    parser.add_argument("--key", "-k", help="Flash encryption key for --decrypt-to, as hex")
    parser.add_argument("--address", "-a", help="Flash address the payload was encrypted for")
    parser.add_argument("--flash-crypt-conf", dest="flash_crypt_conf", help="FLASH_CRYPT_CONF efuse value (default 0xF)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    return run(args)


def _main(argv=None):
    try:
        main(argv)
    except (FatalError, OSError) as e:
        print(f"\nA fatal error occurred: {e}")
        sys.exit(2)


if __name__ == "__main__":
    _main()
