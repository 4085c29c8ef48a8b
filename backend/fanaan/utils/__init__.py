from fanaan.utils.sse import format_panel_sse, format_sse

__all__ = ["format_panel_sse", "format_sse"]
