"""NoteMemo: offline-first Markdown notes with last-writer-wins multi-device sync."""

__version__ = "0.1.0"
