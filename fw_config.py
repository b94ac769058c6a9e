import os

from flash_errors import FatalError
from hw_key import decode_hex_key

CONFIG_FILE = "config_settings.txt"

# normalised config key -> settings attribute
CONFIG_KEYS = {
    "key": "key",
    "flashkey": "key",
    "hmackey": "hmac_key",
    "mackey": "hmac_key",
    "address": "address",
    "flashaddress": "address",
    "flashcryptconf": "flash_crypt_conf",
    "version": "version",
}

DEFAULTS = {
    "flash_crypt_conf": 0xF,
}


def _norm(k: str) -> str:
    return k.strip().lower().replace("_", "").replace("-", "").replace(" ", "")


def _strip_optional_quotes(s: str) -> str:
    s = s.strip()
    if len(s) >= 2 and ((s[0] == s[-1] == '"') or (s[0] == s[-1] == "'")):
        return s[1:-1]
    return s


def auto_int(value) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 0)
    except ValueError as e:
        raise FatalError(f"Invalid integer value: {value!r}") from e


def parse_config(config_path: str) -> dict:
    """
    Read a 'key,value' settings file. Unknown keys are reported and ignored.
    """
    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Config file not found at: {config_path}")

    config_map = {}
    with open(config_path, "r", encoding="utf-8-sig") as f:
        for idx, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "," not in line:
                raise FatalError(f"Line {idx} must contain a comma separating key and value: '{line}'")
            key, value = line.split(",", 1)
            name = CONFIG_KEYS.get(_norm(key))
            if name is None:
                print(f"[config] ignoring unknown key '{key.strip()}' (line {idx})")
                continue
            config_map[name] = _strip_optional_quotes(value)

    return config_map


def resolve_settings(args, required, fallbacks=None) -> dict:
    """
    Merge command line values over the config file over defaults.
    'fallbacks' only fill settings neither source provides, e.g. the start
    address of a .hex input. Integers are converted; missing 'required'
    settings raise FatalError.
    """
    settings = dict(DEFAULTS)

    config_path = getattr(args, "config", None)
    if config_path:
        settings.update(parse_config(config_path))

    for name in ("key", "hmac_key", "address", "flash_crypt_conf", "version"):
        value = getattr(args, name, None)
        if value is not None:
            settings[name] = value

    for name, value in (fallbacks or {}).items():
        if settings.get(name) is None and value is not None:
            settings[name] = value

    missing = [name for name in required if settings.get(name) is None]
    if missing:
        raise FatalError("Missing required setting(s): " + ", ".join(missing))

    for name in ("address", "flash_crypt_conf"):
        if settings.get(name) is not None:
            settings[name] = auto_int(settings[name])
    return settings


def hmac_key_bytes(text: str, raw=False) -> bytes:
    if raw:
        return text.encode("utf-8")
    return decode_hex_key(text, what="HMAC key")
