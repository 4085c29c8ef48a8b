from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class MediaBlob:
    """Binary provider output (image, video, audio)"""

    data: bytes
    media_type: str


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a GenerationRequest: text or media on success, a message on failure"""

    ok: bool
    text: str = ""
    media: Optional[MediaBlob] = None
    media_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(
        cls,
        text: str = "",
        media: Optional[MediaBlob] = None,
        media_url: Optional[str] = None,
    ) -> "GenerationResult":
        return cls(ok=True, text=text, media=media, media_url=media_url)

    @classmethod
    def failure(cls, message: str, partial_text: str = "") -> "GenerationResult":
        return cls(ok=False, text=partial_text, error=message)
