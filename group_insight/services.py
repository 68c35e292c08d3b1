"""Explicit availability state for optional services."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ServiceUnavailable(Exception):
    """Raised when a disabled or failed service is requested."""


class ServiceStatus(str, Enum):
    DISABLED = "disabled"
    READY = "ready"
    FAILED = "failed"


@dataclass
class ServiceHandle(Generic[T]):
    """A service instance together with its status; callers branch on the status."""

    name: str
    status: ServiceStatus
    instance: T | None = None
    cause: str = ""

    @classmethod
    def disabled(cls, name: str, cause: str = "not configured") -> "ServiceHandle[T]":
        return cls(name=name, status=ServiceStatus.DISABLED, cause=cause)

    @classmethod
    def ready(cls, name: str, instance: T) -> "ServiceHandle[T]":
        return cls(name=name, status=ServiceStatus.READY, instance=instance)

    @classmethod
    def failed(cls, name: str, cause: str) -> "ServiceHandle[T]":
        return cls(name=name, status=ServiceStatus.FAILED, cause=cause)

    @property
    def is_ready(self) -> bool:
        return self.status is ServiceStatus.READY

    def get(self) -> T:
        if self.status is not ServiceStatus.READY or self.instance is None:
            raise ServiceUnavailable(f"{self.name} is {self.status.value}: {self.cause}")
        return self.instance

    def describe(self) -> dict[str, str]:
        return {"status": self.status.value, "cause": self.cause}
