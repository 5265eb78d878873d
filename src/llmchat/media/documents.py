from __future__ import annotations
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader


class DocumentExtractor(Protocol):
    def __call__(self, path: str) -> str: ...


class FileTextExtractor:
    """
    Default extractor: PDF pages via pypdf (one line per page),
    everything else read as UTF-8 text.
    """

    def __call__(self, path: str) -> str:
        p = Path(path)
        if p.suffix.lower() == ".pdf":
            return self._pdf_text(p)
        return p.read_text(encoding="utf-8")

    @staticmethod
    def _pdf_text(path: Path) -> str:
        reader = PdfReader(str(path))
        return "".join(f"{page.extract_text() or ''}\n" for page in reader.pages)
