"""Serial side of the bridge: one open device handle per TCP connection."""

import logging
from typing import Optional

import serial

from tcp2serial.errors import SerialOpenError, SerialWriteError

logger = logging.getLogger("tcp2serial")


class SerialLink:
    """Thin wrapper over a pyserial handle with bridge-specific errors."""

    def __init__(self, ser: serial.SerialBase, device: str):
        self._ser = ser
        self.device = device

    @classmethod
    def open(
        cls, device: str, baud: int, write_timeout: Optional[float] = None
    ) -> "SerialLink":
        """Open the serial device; raise SerialOpenError on failure."""
        try:
            ser = serial.serial_for_url(
                device, baudrate=baud, write_timeout=write_timeout or None
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise SerialOpenError(f"{device}: {e}") from e
        logger.info("Serial opened: %s @ %s baud", device, baud)
        return cls(ser, device)

    @property
    def is_open(self) -> bool:
        return self._ser.is_open

    def write(self, data: bytes) -> None:
        """Write all of data and flush; raise SerialWriteError on failure."""
        try:
            self._ser.write(data)
            self._ser.flush()
        except (serial.SerialException, OSError) as e:
            raise SerialWriteError(f"{self.device}: {e}") from e

    def close(self) -> None:
        if not self._ser.is_open:
            return
        try:
            self._ser.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Failed to close serial port %s: %s", self.device, e)
        else:
            logger.info("Serial closed: %s", self.device)
