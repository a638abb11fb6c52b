"""Built-in seed data served when the device has nothing stored."""

from __future__ import annotations

from notememo.constants import DEFAULT_CATEGORIES, OTHER_CATEGORY_NAME, SEED_TIMESTAMP
from notememo.schemas import Note, NoteCategory

_SAMPLE_NOTES: list[dict] = [
    {
        "id": "0",
        "title": "NoteMemo 项目介绍",
        "content": (
            "# NoteMemo - 极简笔记备忘录\n\n"
            "NoteMemo 是一款极简笔记应用，支持快速搜索和分类管理。\n\n"
            "## 主要特点\n\n"
            "- **Markdown支持** - 所有笔记均支持Markdown格式\n"
            "- **快速搜索** - 支持标题、内容、分类和标签搜索\n"
            "- **分类管理** - 自定义分类，轻松整理笔记\n"
            "- **离线优先** - 数据保存在本地，可选多设备同步\n"
        ),
        "category": OTHER_CATEGORY_NAME,
        "tags": ["noteMemo", "project"],
    },
    {
        "id": "1",
        "title": "笔记管理与分类方法",
        "content": (
            "# NoteMemo 笔记管理指南\n\n"
            "## 创建新笔记\n\n"
            "1. 填写标题、内容（支持Markdown格式）\n"
            "2. 选择分类或创建新分类\n"
            "3. 添加标签\n\n"
            "## 删除分类\n\n"
            "删除分类后，该分类下的笔记会被移动到\"其他\"分类。\n"
        ),
        "category": "软件教程",
        "tags": ["noteMemo", "tutorial", "notes-management"],
    },
    {
        "id": "2",
        "title": "Markdown 常见写法",
        "content": (
            "# Markdown 语法指南\n\n"
            "## 强调\n\n"
            "```\n*斜体*\n**粗体**\n```\n\n"
            "## 列表\n\n"
            "```\n- 项目1\n- 项目2\n```\n\n"
            "## 任务列表\n\n"
            "```\n- [x] 已完成任务\n- [ ] 未完成任务\n```\n"
        ),
        "category": "软件教程",
        "tags": ["markdown", "tutorial", "formatting"],
    },
    {
        "id": "3",
        "title": "Git 常用命令",
        "content": (
            "# Git 基本命令\n\n"
            "## 基本操作\n"
            "```bash\ngit add .\ngit commit -m \"message\"\ngit push origin main\n```\n\n"
            "## 分支操作\n"
            "```bash\ngit checkout -b <branch>\ngit merge <branch>\n```\n"
        ),
        "category": "命令行工具",
        "tags": ["git", "version-control"],
    },
]


def seed_notes() -> list[Note]:
    """Fresh copies of the sample notes."""
    return [
        Note(**data, created_at=SEED_TIMESTAMP, updated_at=SEED_TIMESTAMP) for data in _SAMPLE_NOTES
    ]


def seed_categories() -> list[NoteCategory]:
    """Fresh copies of the default categories."""
    return [NoteCategory(**data, updated_at=SEED_TIMESTAMP) for data in DEFAULT_CATEGORIES]


def other_category() -> NoteCategory:
    """The permanent "其他" category in its default form."""
    return next(c for c in seed_categories() if c.name == OTHER_CATEGORY_NAME)
