from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import ServiceError

T = TypeVar("T")

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

@dataclass(frozen=True)
class Err:
    error: ServiceError

    @property
    def ok(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        return self.error.reason

Result = Union[Ok[T], Err]
