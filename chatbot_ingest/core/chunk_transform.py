"""
Chunk Front-Matter Transform

Prepends YAML front matter describing the source page to every chunk before it
is embedded, so the vectors carry page title, tags and code-block hints.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List

import yaml

from .models import Chunk, Page
from .stores import ChunkTransformer

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_CODE_FENCE_RE = re.compile(r"^[ \t]*```[ \t]*([\w+#.-]*)", re.MULTILINE)


def split_front_matter(text: str):
    """
    Split a text into (front matter dict, body).

    Text without a leading '---' block, or whose block is not a YAML mapping,
    yields an empty dict and the text unchanged.
    """
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text

    try:
        parsed = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, text

    if not isinstance(parsed, dict):
        return {}, text

    return parsed, text[match.end():].lstrip("\n")


def update_front_matter(text: str, values: Dict[str, Any]) -> str:
    """Merge values into the text's front matter (values win) and re-emit it."""
    existing, body = split_front_matter(text)
    merged = {**existing, **values}
    if not merged:
        return body

    header = yaml.safe_dump(merged, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{header}---\n\n{body}"


def code_block_languages(text: str) -> List[str]:
    """Languages declared on fenced code blocks, in first-seen order."""
    # Closing fences carry no language tag
    languages = []
    for lang in _CODE_FENCE_RE.findall(text):
        if lang and lang not in languages:
            languages.append(lang)
    return languages


async def standard_chunk_front_matter_updater(chunk: Chunk, page: Page) -> Chunk:
    """
    Add page title, tags and code block information to a chunk's front matter.

    Args:
        chunk: Chunk to transform
        page: Page the chunk was cut from

    Returns:
        New Chunk with updated text
    """
    front_matter: Dict[str, Any] = {}

    if page.title:
        front_matter["pageTitle"] = page.title

    front_matter["hasCodeBlock"] = bool(_CODE_FENCE_RE.search(chunk.text))

    if page.tags:
        front_matter["tags"] = page.tags

    languages = code_block_languages(chunk.text)
    if languages:
        front_matter["codeBlockLanguages"] = languages

    return chunk.with_text(update_front_matter(chunk.text, front_matter))


@dataclass(frozen=True)
class ChunkOptions:
    """Chunking options handed to the ingestion runner."""
    transform: ChunkTransformer
