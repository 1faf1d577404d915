"""Exception types raised and returned by the rate limiting engine."""


class ConfigurationError(ValueError):
    """Invalid limit, store or context configuration."""


class StoreUnavailableError(Exception):
    """The window counter store failed an operation.

    Never interpreted as "not exceeded". Callers choose between failing the
    request closed or open.
    """

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class QueryRateLimitError(Exception):
    """Single composite failure naming every field whose window was exceeded.

    Returned by the analyzer as data, not raised.
    """

    MESSAGE_PREFIX = "Query rate limit exceeded on "

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(self.MESSAGE_PREFIX + ", ".join(self.fields))

    @property
    def message(self) -> str:
        return str(self)

    @property
    def formatted(self) -> dict:
        """GraphQL error entry for the response ``errors`` list."""
        return {"message": self.message}
