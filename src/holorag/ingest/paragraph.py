"""Paragraph chunker — greedy paragraph packing with a trailing overlap."""

from __future__ import annotations

import re

from holorag.ingest.base import BaseChunker
from holorag.store.models import Chunk

_PARAGRAPH_RE = re.compile(r"\n\n+")


class ParagraphChunker(BaseChunker):
    """Pack blank-line separated paragraphs into chunks of ~``chunk_size`` chars.

    Paragraphs are appended to a buffer until the next one would push it past
    ``chunk_size``. The buffer is then emitted and the next buffer starts with
    the last ``overlap`` characters of the previous one. A single paragraph
    longer than ``chunk_size`` is kept whole.
    """

    def chunk(self, source_id: str, content: str) -> list[Chunk]:
        if not content.strip():
            return []

        segments: list[str] = []
        buffer = ""
        for para in _PARAGRAPH_RE.split(content):
            if buffer and len(buffer) + len(para) > self.chunk_size:
                segments.append(buffer)
                tail = buffer[-self.overlap:] if self.overlap else ""
                buffer = f"{tail}\n\n{para}" if tail else para
            else:
                buffer = f"{buffer}\n\n{para}" if buffer else para

        if buffer.strip():
            segments.append(buffer)

        return self._make_chunks(source_id, segments)
