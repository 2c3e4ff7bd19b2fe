import glob
import os
import stat
import sys
from typing import Iterable, List

from serial.tools import list_ports

LINUX_PATTERNS = [
    "/dev/ttyS*",
    "/dev/ttyUSB*",
    "/dev/ttyACM*",
    "/dev/ttyAMA*",
    "/dev/ttyAP*",
    "/dev/tty.*",
    "/dev/cu.*",
]

DARWIN_PATTERNS = [
    "/dev/tty.*",
    "/dev/cu.*",
]

WINDOWS_FALLBACK_PORTS = [f"COM{i}" for i in range(1, 33)]


def list_serial_ports() -> List[str]:
    """
    Candidate serial devices for RTU connections, sorted and de-duplicated.

    pyserial's enumeration is merged with a scan of the usual device nodes,
    which also finds ports pyserial skips (on-board UARTs, virtual pairs).
    """
    ports = {port.device for port in list_ports.comports()}

    if sys.platform.startswith("linux"):
        ports.update(_glob_character_devices(LINUX_PATTERNS))
    elif sys.platform == "darwin":
        ports.update(_glob_character_devices(DARWIN_PATTERNS))
    elif sys.platform.startswith("win") and not ports:
        ports.update(WINDOWS_FALLBACK_PORTS)

    return sorted(ports)


def _glob_character_devices(patterns: Iterable[str]) -> List[str]:
    found = []
    for pattern in patterns:
        for match in glob.glob(pattern):
            try:
                mode = os.stat(match).st_mode
            except OSError:
                continue
            if stat.S_ISCHR(mode):
                found.append(match)
    return found
