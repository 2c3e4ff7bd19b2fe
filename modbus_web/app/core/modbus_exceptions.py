# Custom Exception Classes
class ModbusWebError(Exception):
    """Base exception for Modbus session operations"""
    def __init__(self, message: str, session_key: str = None, address: int = None):
        super().__init__(message)
        self.session_key = session_key
        self.address = address


class ConfigValidationError(ModbusWebError):
    """Raised when a connection configuration is malformed"""
    pass


class TransportError(ModbusWebError):
    """Raised when opening the link or a request on it fails"""
    pass


class ReconnectFailedError(TransportError):
    """Raised when an operation failed and the single reconnect attempt failed too"""
    def __init__(self, operation: str, operation_error: Exception, reconnect_error: Exception,
                 session_key: str = None, address: int = None):
        super().__init__(
            f"{operation} failed ({operation_error}) and reconnect failed: {reconnect_error}",
            session_key=session_key,
            address=address
        )
        self.operation_error = operation_error
        self.reconnect_error = reconnect_error


class ReadOnlyRegisterError(ModbusWebError):
    """Raised when writing to a discrete input or input register"""
    def __init__(self, message: str = "register type is read-only", session_key: str = None, address: int = None):
        super().__init__(message, session_key=session_key, address=address)


class InvalidRegisterTypeError(ModbusWebError):
    """Raised when a register type outside the four Modbus tables is requested"""
    pass


class RegisterValueError(ModbusWebError):
    """Raised when a write value does not fit in 16 bits"""
    pass


class SessionNotFoundError(ModbusWebError):
    """Raised when no session is registered for the caller's key"""
    def __init__(self, message: str = "No Modbus server connected", session_key: str = None):
        super().__init__(message, session_key=session_key)
