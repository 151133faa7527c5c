from typing import Protocol
from dataclasses import dataclass, field

from .user_repo import UserDto


@dataclass(frozen=True)
class UserCreated:
    user: UserDto
    plain_password: str = field(repr=False)


class Notifier(Protocol):
    def notify(self, event: UserCreated) -> None:
        ...
