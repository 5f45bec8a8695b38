"""Custom exceptions for voxcord logic."""


class VoxcordError(RuntimeError):
    """Base class for errors raised by the orchestration engine."""


class TransientProviderError(VoxcordError):
    """Raised when an inference or media provider call fails.

    Rate limits, network errors and malformed provider output are all treated
    alike; for inference this triggers the single fallback attempt.
    """

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        """Initialize the error with the provider that failed."""
        self.provider = provider
        super().__init__(message)


class ToolExecutionError(VoxcordError):
    """Raised when a requested tool fails while running."""

    def __init__(self, tool_name: str, message: str) -> None:
        """Initialize the error with the failing tool name."""
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' failed: {message}")


class SearchError(ToolExecutionError):
    """Raised when the web search capability fails."""

    def __init__(self, message: str) -> None:
        """Initialize a web_search failure."""
        super().__init__("web_search", message)


class TableRenderError(ToolExecutionError):
    """Raised when the table image cannot be rendered."""

    def __init__(self, message: str) -> None:
        """Initialize a create_table failure."""
        super().__init__("create_table", message)


class MalformedToolRequestError(VoxcordError):
    """Raised when the model asks for a tool with unusable arguments."""


class UnsupportedToolError(MalformedToolRequestError):
    """Raised when the model asks for a tool that is not offered."""

    def __init__(self, tool_name: str) -> None:
        """Initialize the error with the unknown tool name."""
        self.tool_name = tool_name
        super().__init__(f"Unsupported tool: {tool_name}")


class MediaProcessingError(VoxcordError):
    """Raised when a single history item cannot be normalized."""


class InvalidDurationError(ValueError):
    """Raised when a reminder duration is not in the ``1d``/``2h``/``30m`` form."""

    def __init__(self, duration: str) -> None:
        """Initialize the error with the rejected duration."""
        self.duration = duration
        super().__init__(
            f"Invalid duration '{duration}'. Use a format like 1d, 2h, 30m",
        )
