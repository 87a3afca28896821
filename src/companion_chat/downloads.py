"""Extraction, naming and saving of code blocks the user downloads from a reply."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
import re
from typing import assert_never

LOGGER = logging.getLogger(__name__)

DOWNLOAD_STEM = "companion_download"

_FENCE_RE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)


class CodeLanguage(str, Enum):
    """Fenced code block languages with a known file extension."""

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    LUA = "lua"
    LUAU = "luau"
    HTML = "html"
    CSS = "css"
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    JAVA = "java"
    CPP = "cpp"
    C = "c"
    CSHARP = "csharp"
    GO = "go"
    RUST = "rust"
    SQL = "sql"
    PHP = "php"
    RUBY = "ruby"
    SHELL = "shell"
    BASH = "bash"
    CSV = "csv"


def extension_for(language: CodeLanguage) -> str:
    match language:
        case CodeLanguage.JAVASCRIPT:
            return "js"
        case CodeLanguage.TYPESCRIPT:
            return "ts"
        case CodeLanguage.PYTHON:
            return "py"
        case CodeLanguage.MARKDOWN:
            return "md"
        case CodeLanguage.TEXT:
            return "txt"
        case CodeLanguage.CSHARP:
            return "cs"
        case CodeLanguage.RUST:
            return "rs"
        case CodeLanguage.RUBY:
            return "rb"
        case CodeLanguage.SHELL | CodeLanguage.BASH:
            return "sh"
        case (
            CodeLanguage.LUA
            | CodeLanguage.LUAU
            | CodeLanguage.HTML
            | CodeLanguage.CSS
            | CodeLanguage.JSON
            | CodeLanguage.JAVA
            | CodeLanguage.CPP
            | CodeLanguage.C
            | CodeLanguage.GO
            | CodeLanguage.SQL
            | CodeLanguage.PHP
            | CodeLanguage.CSV
        ):
            return language.value
        case _:
            assert_never(language)


def download_filename(language: str | None) -> str:
    """Return the file name for a code block tagged ``language``.

    Unknown tags keep their cleaned name as the extension; an empty tag
    becomes ``txt``.
    """
    cleaned = re.sub(r"[^a-z0-9_-]", "", (language or "").lower().strip())
    try:
        extension = extension_for(CodeLanguage(cleaned))
    except ValueError:
        extension = cleaned or "txt"
    return f"{DOWNLOAD_STEM}.{extension}"


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block found in a reply."""

    language: str
    code: str


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """Return the fenced code blocks of ``text`` in order of appearance."""
    blocks = []
    for match in _FENCE_RE.finditer(text):
        info = match.group(1).strip()
        language = info.split()[0] if info else ""
        blocks.append(CodeBlock(language=language, code=match.group(2)))
    return blocks


def save_code_block(block: CodeBlock, directory: str | Path) -> Path:
    """Write ``block`` into ``directory`` and return the file path.

    The file name comes from ``download_filename``, so a later download of the
    same language overwrites the earlier one.
    """
    target_dir = Path(directory).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / download_filename(block.language)
    target.write_text(block.code, encoding="utf-8")
    LOGGER.info(
        "download.saved",
        extra={
            "event": "download.saved",
            "path": str(target),
            "language": block.language or "text",
        },
    )
    return target
