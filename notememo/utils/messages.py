"""Bilingual message translations for API responses.

Usage:
    from notememo.utils.messages import msg
    msg("sync.disabled", lang)                  # → "未启用多设备同步功能" or "Multi-device sync is disabled"
    msg("notes.saved", lang, count=5)           # → "已保存 5 条笔记" or "5 notes saved"
"""

from __future__ import annotations

_MESSAGES: dict[str, dict[str, str]] = {
    # Sync switch / status
    "sync.disabled": {
        "zh": "未启用多设备同步功能",
        "en": "Multi-device sync is disabled",
    },
    "sync.enabled": {
        "zh": "多设备同步功能已启用",
        "en": "Multi-device sync is enabled",
    },
    "sync.store_unavailable": {
        "zh": "数据库连接失败",
        "en": "Remote store unavailable",
    },
    # Auth
    "auth.missing_code": {
        "zh": "未提供访问码",
        "en": "Access code missing",
    },
    "auth.invalid_code": {
        "zh": "访问码无效",
        "en": "Invalid access code",
    },
    # Notes
    "notes.saved": {
        "zh": "已保存 {count} 条笔记",
        "en": "{count} notes saved",
    },
    "notes.fetch_failed": {
        "zh": "获取笔记失败",
        "en": "Failed to fetch notes",
    },
    "notes.save_failed": {
        "zh": "保存笔记失败",
        "en": "Failed to save notes",
    },
    # Categories
    "categories.saved": {
        "zh": "已保存 {count} 个分类",
        "en": "{count} categories saved",
    },
    "categories.fetch_failed": {
        "zh": "获取分类失败",
        "en": "Failed to fetch categories",
    },
    "categories.save_failed": {
        "zh": "保存分类失败",
        "en": "Failed to save categories",
    },
}


def msg(key: str, lang: str = "zh", **kwargs: object) -> str:
    """Return a translated message for the given key and language.

    Args:
        key: Dot-separated message key (e.g. "sync.disabled").
        lang: Language code ("zh" or "en").
        **kwargs: Interpolation variables for the message template.

    Returns:
        Translated and formatted message string.
        Falls back to Chinese if the key has no entry for the requested language.
    """
    entry = _MESSAGES.get(key)
    if entry is None:
        return key

    template = entry.get(lang, entry.get("zh", key))
    if kwargs:
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError):
            return template
    return template
