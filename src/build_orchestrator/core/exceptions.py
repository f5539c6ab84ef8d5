"""Custom exceptions for the build orchestrator."""

from typing import Optional


class OrchestrationError(Exception):
    """Base exception for orchestration errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(OrchestrationError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key}
        )
        self.config_key = config_key


class GitOpError(OrchestrationError):
    """Exception raised when a git operation on a working copy fails."""

    def __init__(self, message: str, command: Optional[str] = None, output: Optional[str] = None):
        super().__init__(
            message,
            error_code="GIT_OPERATION_ERROR",
            details={"command": command, "output": output}
        )
        self.command = command
        self.output = output

    def __str__(self) -> str:
        if self.output:
            return f"{self.message}\n{self.output.rstrip()}"
        return self.message


class ProviderError(OrchestrationError):
    """Base exception for pipeline provider failures."""

    def __init__(self, message: str, error_code: str = "PROVIDER_ERROR", details: dict = None):
        super().__init__(message, error_code=error_code, details=details)


class GitLabAPIError(ProviderError):
    """Exception raised for GitLab API errors."""

    def __init__(self, message: str, status_code: int = None, response_data: str = None):
        super().__init__(
            message,
            error_code="GITLAB_API_ERROR",
            details={"status_code": status_code, "response_data": response_data}
        )
        self.status_code = status_code
        self.response_data = response_data


class TimestampParseError(ProviderError):
    """Exception raised when a provider timestamp matches none of the known formats."""

    def __init__(self, message: str, value: str = None):
        super().__init__(
            message,
            error_code="TIMESTAMP_PARSE_ERROR",
            details={"value": value}
        )
        self.value = value


class PipelineTimeoutError(OrchestrationError):
    """Exception raised when a pipeline does not finish within the polling budget."""

    def __init__(self, message: str, project_id=None, pipeline_id: int = None, attempts: int = None):
        super().__init__(
            message,
            error_code="PIPELINE_TIMEOUT_ERROR",
            details={"project_id": project_id, "pipeline_id": pipeline_id, "attempts": attempts}
        )
        self.project_id = project_id
        self.pipeline_id = pipeline_id
        self.attempts = attempts


class PoolClosedError(OrchestrationError):
    """Exception raised when work is submitted to a pool that was shut down."""

    def __init__(self, message: str = "Execution pool is shut down"):
        super().__init__(message, error_code="POOL_CLOSED_ERROR")
