"""TCP-to-serial bridge: forward bytes from one TCP client at a time to a serial port."""

from tcp2serial.bridge import run_bridge
from tcp2serial.config import VERSION as __version__

__all__ = ["run_bridge", "__version__"]
