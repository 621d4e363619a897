"""Exception types for the remote store and the runtime layer."""

from __future__ import annotations


class RemoteError(Exception):
    """Base class for remote store failures."""

    template = "{}"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(self.template.format(detail))


class RemoteIOError(RemoteError):
    template = "remote I/O error: {}"


class HttpError(RemoteError):
    template = "HTTP error: {}"


class SerializationError(RemoteError):
    template = "serialization error: {}"


class NotFoundError(RemoteError):
    template = "not found: {}"


class ConfigError(RemoteError):
    template = "remote config error: {}"


class IntegrityError(RemoteError):
    """Downloaded content does not hash to the expected value."""

    def __init__(self, key: str, expected: str, actual: str) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        self.detail = f"'{key}': expected {expected}, got {actual}"
        Exception.__init__(
            self, f"integrity failure for '{key}': expected {expected}, got {actual}"
        )


class EnvRuntimeError(Exception):
    """Base class for runtime backend failures."""

    template = "{}"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(self.template.format(detail))


class BackendUnavailableError(EnvRuntimeError):
    template = "backend '{}' is not available on this system"


class NotRunningError(EnvRuntimeError):
    template = "environment '{}' is not running"


class AlreadyRunningError(EnvRuntimeError):
    template = "environment '{}' is already running"


class PolicyViolationError(EnvRuntimeError):
    template = "security policy violation: {}"


class MountDeniedError(EnvRuntimeError):
    template = "mount not allowed by policy: {}"


class DeviceDeniedError(EnvRuntimeError):
    template = "device access not allowed: {}"


class ExecFailedError(EnvRuntimeError):
    template = "runtime execution failed: {}"


class ImageNotFoundError(EnvRuntimeError):
    template = "image not found: {}"