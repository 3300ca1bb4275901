from __future__ import annotations

import re
from typing import List, Tuple


DEFAULT_MAX_CHUNK_CHARS = 9000

NUMBERED_LINE_RE = re.compile(r"^\s*(\d+)\.\s?(.*)$")


def chunk_text(text: str, max_len: int = DEFAULT_MAX_CHUNK_CHARS) -> List[str]:
    """
    Split numbered text into chunks of at most `max_len` characters on line
    boundaries. A single line longer than `max_len` is hard-split, which is
    the only case where a line spans chunks.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        to_add = ("\n" if current else "") + line
        if len(current) + len(to_add) <= max_len:
            current += to_add
            continue
        if current:
            chunks.append(current)
        if len(line) > max_len:
            chunks.extend(line[start:start + max_len] for start in range(0, len(line), max_len))
            current = ""
        else:
            current = line
    if current:
        chunks.append(current)
    return chunks


def parse_numbered_lines(text: str) -> List[Tuple[int, str]]:
    out: List[Tuple[int, str]] = []
    for line in text.split("\n"):
        m = NUMBERED_LINE_RE.match(line)
        if m:
            out.append((int(m.group(1)), m.group(2)))
    return out
