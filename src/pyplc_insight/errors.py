"""Exceptions for pyplc-insight: gateway I/O and import-file failures."""


class PlcInsightError(Exception):
    """Base exception for pyplc-insight."""

    pass


class GatewayError(PlcInsightError):
    """Raised inside the gateway client when a request or its decoding fails.

    Never escapes PlcGatewayClient: it is converted into a failed read result.
    """

    def __init__(
        self,
        message: str,
        *,
        spec: str | None = None,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.spec = spec
        self.url = url
        self.cause = cause
        super().__init__(message)


class DataFileError(PlcInsightError):
    """Raised when an import file cannot be read or decoded as a whole."""

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        self._msg = message or f"Cannot read data file: {path!r}"
        super().__init__(self._msg)
