"""Package specific exception hierarchy."""


class UnifiedStreamError(Exception):
    """Base exception for unified_stream package."""


class UnsupportedProviderError(UnifiedStreamError):
    """Raised when a provider type has no registered engine."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not available.")
        self.provider = provider


class UnsupportedFeatureError(UnifiedStreamError):
    """Raised when a requested feature is unsupported by a provider."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"Feature '{feature}' is not supported.")


class ProviderError(UnifiedStreamError):
    """Represents provider-specific HTTP, network or API errors."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{provider}: {message}{suffix}")
        self.provider = provider
        self.status_code = status_code


class AbortError(UnifiedStreamError):
    """Raised when the caller cancelled the request."""

    def __init__(self, message_id: str | None = None) -> None:
        target = f" for message '{message_id}'" if message_id else ""
        super().__init__(f"Request was aborted{target}.")
        self.message_id = message_id


class ToolExecutionError(UnifiedStreamError):
    """Raised by tool executors; converted into an error tool result."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class ToolRoundLimitError(UnifiedStreamError):
    """Raised when a model keeps requesting tools past the configured limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum tool recursion depth {limit} exceeded")
        self.limit = limit


class EmptyResponseError(UnifiedStreamError):
    """Raised by the health check when the vendor streamed no content."""

    def __init__(self, provider: str, model: str) -> None:
        super().__init__(f"{provider}: model '{model}' returned an empty response")
        self.provider = provider
        self.model = model
