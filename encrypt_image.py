#!/usr/bin/env python3
import argparse
import io
import os
import sys

from intelhex import IntelHex

from flash_cipher import check_flash_address, transform
from flash_errors import FatalError
from flash_tweak import tweak_range
from fw_config import hmac_key_bytes, resolve_settings
from fw_container import encode_version, write_container
from hw_key import decode_hex_key, load_hardware_key


def flash_encryption_operation(output_file, input_file, flash_address, key_hex, mac_key, flash_crypt_conf, do_decrypt,
                               version, legacy_length_header=False):
    """
    Encrypt (or decrypt) 'input_file' for flash at 'flash_address' and write
    the length/version/payload/HMAC container to 'output_file' in one write.

    Raises a FatalError subclass for bad parameters or data; stream errors
    propagate as OSError. Nothing is written unless the whole run succeeds.
    """
    key = load_hardware_key(decode_hex_key(key_hex))

    check_flash_address(flash_address)
    encode_version(version)

    if flash_crypt_conf == 0:
        print("WARNING: Setting FLASH_CRYPT_CONF to zero is not recommended")
    bits = tweak_range(flash_crypt_conf)

    payload = transform(input_file, flash_address, key, bits, do_decrypt)
    print(f"[{'decrypt' if do_decrypt else 'encrypt'}] {len(payload)} bytes at 0x{flash_address:08X}")

    return write_container(output_file, payload, version, mac_key, legacy_length_header)


def _must_not_exist(path: str, what: str):
    if os.path.exists(path):
        raise FileExistsError(f"{what} already exists: {path}")


def _samefile(p1, p2):
    try:
        return os.path.samefile(p1, p2)
    except OSError:
        return os.path.normcase(os.path.abspath(p1)) == os.path.normcase(os.path.abspath(p2))


def _check_output_is_not_input(input_path: str, output_path: str):
    if _samefile(input_path, output_path):
        raise FatalError(f'The input "{input_path}" and output "{output_path}" should not be the same!')


def load_image(path: str):
    """
    Return (stream, start address) for a raw binary or Intel HEX image.
    Raw binaries have no address of their own.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Input image not found: {path}")

    if os.path.splitext(path)[1].lower() in (".hex", ".ihex"):
        ih = IntelHex()
        ih.loadfile(path, format="hex")
        print(f"[load] {path}: {len(ih)} bytes from 0x{ih.minaddr():08X}")
        return io.BytesIO(bytes(ih.tobinarray())), ih.minaddr()

    with open(path, "rb") as f:
        return io.BytesIO(f.read()), None


def create_container_hex_file(container: bytes, output_path: str, load_address: int):
    ih = IntelHex()
    ih.frombytes(container, offset=load_address)
    ih.write_hex_file(output_path)
    print(f"Created {output_path} with {len(container)} bytes at address 0x{load_address:08X}")


def run(args):
    do_decrypt = args.operation == "decrypt"

    _check_output_is_not_input(args.input, args.output)
    input_file, image_address = load_image(args.input)

    settings = resolve_settings(args, required=("key", "hmac_key", "address", "version"),
                                fallbacks={"address": image_address})
    mac_key = hmac_key_bytes(settings["hmac_key"], raw=args.raw_hmac_key)

    _must_not_exist(args.output, "Output container")

    sink = io.BytesIO()
    container = flash_encryption_operation(
        sink,
        input_file,
        settings["address"],
        settings["key"],
        mac_key,
        settings["flash_crypt_conf"],
        do_decrypt,
        settings["version"],
        legacy_length_header=args.legacy_header,
    )

    if args.hex_address is not None:
        create_container_hex_file(container, args.output, args.hex_address)
    else:
        with open(args.output, "xb") as f:
            f.write(container)
        print(f"Wrote {len(container)} bytes to {args.output}")

    return container


def build_parser():
    parser = argparse.ArgumentParser(prog="fwcrypt", description="Flash encryption for firmware images, wrapped in an HMAC-tagged container")
    subparsers = parser.add_subparsers(dest="operation", required=True)

    for name, what in (("encrypt", "plaintext image to encrypt"), ("decrypt", "encrypted flash contents to decrypt")):
        p = subparsers.add_parser(name, help=f"{name.capitalize()} an image and write the container")
        p.add_argument("input", help=f"File with {what} (.bin or Intel .hex)")
        p.add_argument("--output", "-o", required=True, help="Output container file (must not exist)")
        p.add_argument("--config", "-c", help="Settings file with 'key,value' lines")
        p.add_argument("--key", "-k", help="Flash encryption key, 24 or 32 bytes as hex")
        p.add_argument("--hmac-key", dest="hmac_key", help="HMAC-SHA256 key as hex")
        p.add_argument("--raw-hmac-key", action="store_true", help="Use the HMAC key text as-is instead of hex-decoding it")
        p.add_argument("--address", "-a", help="Flash address of the image (multiple of 16). Defaults to the start of a .hex input")
        p.add_argument("--flash-crypt-conf", dest="flash_crypt_conf", help="FLASH_CRYPT_CONF efuse value (default 0xF)")
        p.add_argument("--version", "-v", help="Firmware version, e.g. 4.05")
        p.add_argument("--hex-address", type=lambda s: int(s, 0), help="Write the container as Intel HEX at this load address")
        p.add_argument("--legacy-header", action="store_true", help="Repeat the payload length in the version field")

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
