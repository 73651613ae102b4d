"""
Service layer exceptions.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class CacheError(ServiceError):
    """Cache operation failed."""

    pass


class ConfigurationError(ServiceError):
    """Required configuration (credential, database id) is missing."""

    pass


class UpstreamStatusError(ServiceError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, service_id: str, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"{service_id} API {status_code}: {body[:200]}",
            service_id=service_id,
        )


class UpstreamPayloadError(ServiceError):
    """Upstream answered 2xx with a body that is not valid JSON."""

    pass


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class RetryExhaustedError(ServiceError):
    """Every retry attempt failed."""

    def __init__(
        self,
        service_id: str,
        attempts: int,
        last_error: BaseException | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        msg = f"All {attempts} retry attempts to '{service_id}' failed"
        if last_error is not None:
            msg += f": {last_error}"
        super().__init__(msg, service_id=service_id)
