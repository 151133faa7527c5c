from typing import Protocol, Optional
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AvatarUpload:
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class AvatarStorage(Protocol):
    def store(self, upload: AvatarUpload) -> str:
        ...

    def delete(self, path: Optional[str]) -> bool:
        ...

    def url_for(self, path: Optional[str]) -> Optional[str]:
        ...
