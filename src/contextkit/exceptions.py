"""Custom exceptions for contextkit."""


class ContextKitError(Exception):
    """Base exception for all contextkit errors."""


class ConfigError(ContextKitError):
    """Configuration-related errors."""


class ScanIOError(ContextKitError):
    """A directory or file in the workspace could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read '{path}': {reason}")


class NoWorkspaceError(ContextKitError):
    """No readable workspace root is available."""


class OperationCancelled(ContextKitError):
    """Raised when a caller needs cancellation to unwind an outer operation."""


class LLMError(ContextKitError):
    """LLM provider errors."""


class ModelInvocationError(LLMError):
    """The model transport failed or returned something unusable."""


class ToolError(ContextKitError):
    """Agent tool execution errors."""


class CommandDenied(ToolError):
    """A command was rejected by the sandbox policy."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Command denied: {reason}")


class SandboxExecutionError(ToolError):
    """An allowed command exited with a non-benign status."""

    def __init__(self, command: str, exit_code: int | None, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Command failed: {detail}")


class SelectionArgumentError(ToolError):
    """A model tool call carried arguments that do not match its schema."""


class ProviderNotAvailableError(LLMError):
    """Raised when an LLM provider's SDK is not installed."""

    def __init__(self, provider: str, package: str):
        super().__init__(
            f"Provider '{provider}' requires the '{package}' package. "
            f"Install it with: pip install contextkit[{provider}]"
        )
