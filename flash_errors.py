class FatalError(RuntimeError):
    """Any failure that aborts an encrypt/decrypt run. No output is committed."""


class InvalidAddress(FatalError):
    pass


class InvalidKeyLength(FatalError):
    pass


class KeyDecodeError(FatalError):
    pass


class ShortBlockOnDecrypt(FatalError):
    pass


class VersionParseError(FatalError):
    pass


class ContainerFormatError(FatalError):
    pass


class TagMismatch(FatalError):
    pass
