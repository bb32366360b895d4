from __future__ import annotations


class BridgeError(Exception):
    """Base class for nsclient-bridge errors."""


class ConfigError(BridgeError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid configuration")


class ParseError(BridgeError):
    """Raised when a check payload does not have the expected shape."""

    def __init__(self, check: str, errors: list[str]) -> None:
        self.check = check
        self.errors = list(errors)
        super().__init__(f"{check}: {'; '.join(self.errors)}")


class PublishError(BridgeError):
    pass
