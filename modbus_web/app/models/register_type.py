from enum import IntEnum
from typing import Optional

from modbus_web.app.core.modbus_exceptions import InvalidRegisterTypeError

# Single coil wire values (function code 0x05)
COIL_ON = 0xFF00
COIL_OFF = 0x0000


class RegisterType(IntEnum):
    """
    The four Modbus data tables, plus DEFAULT which older clients send when
    they omit the field and which is served as a holding register.
    """
    DEFAULT = 0
    COIL = 1
    DISCRETE_INPUT = 2
    INPUT_REGISTER = 3
    HOLDING_REGISTER = 4

    @classmethod
    def parse(cls, raw) -> 'RegisterType':
        if isinstance(raw, cls):
            return raw
        try:
            return cls(int(raw))
        except (TypeError, ValueError):
            raise InvalidRegisterTypeError(f"invalid register type {raw}") from None

    @property
    def effective(self) -> 'RegisterType':
        return RegisterType.HOLDING_REGISTER if self is RegisterType.DEFAULT else self

    @property
    def is_bit(self) -> bool:
        return self.effective in (RegisterType.COIL, RegisterType.DISCRETE_INPUT)

    @property
    def read_function_code(self) -> int:
        return _READ_FUNCTION_CODES[self.effective]

    @property
    def write_function_code(self) -> Optional[int]:
        return _WRITE_FUNCTION_CODES.get(self.effective)

    @property
    def is_writable(self) -> bool:
        return self.write_function_code is not None


_READ_FUNCTION_CODES = {
    RegisterType.COIL: 0x01,
    RegisterType.DISCRETE_INPUT: 0x02,
    RegisterType.HOLDING_REGISTER: 0x03,
    RegisterType.INPUT_REGISTER: 0x04,
}

_WRITE_FUNCTION_CODES = {
    RegisterType.COIL: 0x05,
    RegisterType.HOLDING_REGISTER: 0x06,
}
