from __future__ import annotations


class PrototypeError(Exception):
    """Base class for errors raised while bootstrapping the prototype server."""
    pass


class ConfigurationError(PrototypeError):
    """The runtime configuration cannot be used to start the server.

    Raised for missing Basic auth credentials while auth is required, an
    invalid PORT, or a derived internal port that is not a valid TCP port.
    """
    pass


class NoAvailablePortError(PrototypeError):
    def __init__(self, start: int, stop: int):
        self.start = start
        self.stop = stop
        super().__init__(f"No free port found in range {start}-{stop - 1}")


class BindError(PrototypeError):
    def __init__(self, port: int, reason: object = None):
        self.port = port
        msg = f"Could not bind to port {port}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AuthenticationFailure(PrototypeError):
    """Per-request Basic auth failure. Rendered as a 401 challenge."""
    pass
