"""Internationalization utilities for the NoteMemo server.

Provides language detection from the HTTP Accept-Language header.
"""

from __future__ import annotations

from fastapi import Request

SUPPORTED_LANGUAGES = ("zh", "en")
DEFAULT_LANGUAGE = "zh"


def get_language(request: Request) -> str:
    """Extract preferred language from the Accept-Language header.

    Returns 'zh' or 'en'. Defaults to 'zh' if the header is missing
    or names an unsupported language.
    """
    header = request.headers.get("accept-language", DEFAULT_LANGUAGE)
    lang = header.split(",")[0].strip().lower()
    if lang.startswith("en"):
        return "en"
    return "zh"
