"""Server-side model of one page's output target and submit control."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "


@dataclass(frozen=True)
class PanelEvent:
    """A change to the panel, forwarded to the browser as one SSE event"""

    kind: str  # "submit", "loading", "text", "media", "error"
    target: str  # DOM id the change applies to
    data: Dict[str, Any] = field(default_factory=dict)


PanelListener = Callable[[PanelEvent], None]


class Panel:
    """Holds what the page currently shows and tells listeners when it changes.

    Error text always starts with ERROR_PREFIX so it can never be mistaken
    for generated content.
    """

    def __init__(self, output_id: str, submit_id: str):
        self.output_id = output_id
        self.submit_id = submit_id
        self.submit_enabled = True
        self.loading: Optional[str] = None
        self.content = ""
        self.error: Optional[str] = None
        self.media: Optional[Dict[str, Any]] = None
        self._listeners: List[PanelListener] = []

    def attach(self, listener: PanelListener) -> None:
        self._listeners.append(listener)

    def detach(self, listener: PanelListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_submit_enabled(self, enabled: bool) -> None:
        self.submit_enabled = enabled
        self._emit("submit", self.submit_id, enabled=enabled)

    def show_loading(self, message: str) -> None:
        self.loading = message
        self.content = ""
        self.error = None
        self.media = None
        self._emit("loading", self.output_id, message=message)

    def show_text(self, text: str) -> None:
        self.loading = None
        self.content = text
        self._emit("text", self.output_id, text=text)

    def show_media(self, url: str, media_type: str, download_name: Optional[str] = None) -> None:
        self.loading = None
        self.media = {"url": url, "media_type": media_type, "download_name": download_name}
        self._emit("media", self.output_id, **self.media)

    def show_error(self, message: str, partial_text: str = "") -> None:
        self.loading = None
        self.error = f"{ERROR_PREFIX}{message}"
        if partial_text:
            self.content = partial_text
        self._emit("error", self.output_id, message=self.error, partial_text=partial_text)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "output_id": self.output_id,
            "submit_id": self.submit_id,
            "submit_enabled": self.submit_enabled,
            "loading": self.loading,
            "content": self.content,
            "error": self.error,
            "media": self.media,
        }

    def _emit(self, kind: str, target: str, **data: Any) -> None:
        event = PanelEvent(kind=kind, target=target, data=data)
        for listener in list(self._listeners):
            listener(event)
