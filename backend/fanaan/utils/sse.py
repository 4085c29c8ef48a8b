import orjson

from fanaan.services.panel import PanelEvent


def format_sse(event: str, data: dict) -> str:
    """Format data as SSE event"""
    return f"event: {event}\ndata: {orjson.dumps(data).decode()}\n\n"


def format_panel_sse(event: PanelEvent) -> str:
    """Format a panel change as SSE event named after its kind"""
    payload = {"target": event.target, **event.data}
    return format_sse(event.kind, payload)
