"""Exception types raised by the TCP-to-serial bridge."""


class BridgeError(Exception):
    """Base class for bridge errors."""


class SerialOpenError(BridgeError):
    """The serial device could not be opened."""


class SerialWriteError(BridgeError):
    """Writing forwarded bytes to the serial device failed."""


class ListenError(BridgeError):
    """The TCP listener could not be bound."""
