"""Error taxonomy for the dashboard pipeline."""


class DashboardError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class ValidationError(DashboardError):
    """Caller input is malformed. Never retried."""


class ConfigurationError(DashboardError):
    """The deployment is missing something it needs. Never retried."""


class UpstreamError(DashboardError):
    """A GitHub API call failed.

    ``status_code`` is the upstream HTTP status when there was a response,
    ``operation`` names the client operation that failed.
    """

    def __init__(self, message: str, status_code: int | None = None, operation: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation
