from abc import ABC, abstractmethod


class Storage(ABC):
    @abstractmethod
    def save_media(self, user_id: str, filename: str, content: bytes) -> tuple[str, str]:
        """Save uploaded file; returns (storage path, public url)."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, path: str | None) -> bool:
        raise NotImplementedError
