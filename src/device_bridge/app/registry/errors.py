"""ClearBlade IoT Core error hierarchy."""

from __future__ import annotations

# gRPC canonical codes as reported in Cloud IoT style error bodies.
GRPC_NOT_FOUND = 5
GRPC_ALREADY_EXISTS = 6


class RegistryAPIError(Exception):
    """Base exception for device registry errors."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        grpc_code: int | None = None,
        response_body: str = "",
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.grpc_code = grpc_code
        self.response_body = response_body
        super().__init__(f"Registry API error {status_code}: {message}")


class RegistryNotFoundError(RegistryAPIError):
    """The device (or registry) does not exist."""

    def __init__(self, message: str = "Device not found", **kwargs) -> None:
        kwargs.setdefault("grpc_code", GRPC_NOT_FOUND)
        super().__init__(404, message, **kwargs)


class RegistryConflictError(RegistryAPIError):
    """A device with the same id already exists."""

    def __init__(self, message: str = "Device already exists", **kwargs) -> None:
        kwargs.setdefault("grpc_code", GRPC_ALREADY_EXISTS)
        super().__init__(409, message, **kwargs)
