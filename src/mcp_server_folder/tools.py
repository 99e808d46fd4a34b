"""
File, search, upload and document tool bodies.

``FolderTools`` holds the sandbox and the content cache and implements each
tool as a plain synchronous method. The catalog in ``server.py`` exposes them
to the protocol engine; tests call them directly.
"""

from __future__ import annotations

import binascii
import logging
import os
import re
from base64 import b64decode
from pathlib import Path
from typing import Callable

from . import extractors
from .config import DOCS_SUBDIR, UPLOADS_SUBDIR
from .content_cache import ContentCache
from .errors import (
    NotFound,
    ResourceTooLarge,
    UnsupportedFormat,
    ValidationFailure,
    WrongType,
)
from .sandbox import PathSandbox, safe_name

logger = logging.getLogger(__name__)

SEARCH_EXTENSIONS = frozenset({".txt", ".md", ".csv", ".json", ".log"})
TRUNCATION_MARKER = "\n...(truncated)"
_LINE_SPLIT = re.compile(r"\r?\n")


def stat_existing(path: Path, shown: str) -> os.stat_result:
    """stat() a sandboxed path, mapping a missing path to ``NotFound``."""
    try:
        return path.stat()
    except FileNotFoundError as exc:
        raise NotFound(f"Not found: {shown}") from exc


def truncate(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text


class FolderTools:
    """Tool bodies bound to one sandbox and one content cache."""

    def __init__(
        self,
        sandbox: PathSandbox,
        cache: ContentCache,
        max_upload_bytes: int = 10_000_000,
    ) -> None:
        self.sandbox = sandbox
        self.cache = cache
        self.max_upload_bytes = max_upload_bytes

    # === listing / reading ===
    def list_files(self, subdir: str = "", max_entries: int = 200) -> str:
        """List entries directly under ``subdir``; directories end with '/'."""
        target = self.sandbox.resolve(subdir or "")
        stat_existing(target, subdir or ".")
        if not target.is_dir():
            raise WrongType(f"Not a directory: {subdir}")

        with os.scandir(target) as it:
            entries = sorted(it, key=lambda e: e.name)
        out = [
            f"{e.name}/" if e.is_dir() else e.name for e in entries[:max_entries]
        ]
        return "\n".join(out) if out else "(no entries)"

    def read_text(self, file: str, max_bytes: int = 200_000) -> str:
        """Read a UTF-8 text file, refusing (not truncating) when it is over budget."""
        full = self.sandbox.resolve(file)
        st = stat_existing(full, file)
        if not full.is_file():
            raise WrongType(f"Not a file: {file}")
        if st.st_size > max_bytes:
            return f"File is too large ({st.st_size} bytes)."
        return full.read_text(encoding="utf-8", errors="replace")

    def search_text(self, keyword: str, subdir: str = "", max_hits: int = 50) -> str:
        """Recursive literal search over text-like files, formatted as path:line:content."""
        if not keyword:
            raise ValidationFailure("keyword must be a non-empty string")
        start = self.sandbox.resolve(subdir or "")
        stat_existing(start, subdir or ".")
        if not start.is_dir():
            raise WrongType(f"Not a directory: {subdir}")

        hits: list[str] = []
        self._walk_search(start, keyword, max_hits, hits)
        return "\n".join(hits) if hits else "No hits."

    def _walk_search(
        self, directory: Path, keyword: str, max_hits: int, hits: list[str]
    ) -> None:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if len(hits) >= max_hits:
                return
            # Links are not followed; a link could point outside the sandbox
            if entry.is_symlink():
                continue
            rel = self.sandbox.relative(entry.path)
            full = self.sandbox.resolve(rel)
            if entry.is_dir():
                self._walk_search(full, keyword, max_hits, hits)
                continue
            if Path(entry.name).suffix.lower() not in SEARCH_EXTENSIONS:
                continue
            text = full.read_text(encoding="utf-8", errors="replace")
            for lineno, line in enumerate(_LINE_SPLIT.split(text), start=1):
                if len(hits) >= max_hits:
                    return
                if keyword in line:
                    hits.append(f"{rel}:{lineno}:{line}")

    # === upload ===
    def upload_file(
        self,
        name: str | None = None,
        content_bytes: str | None = None,
        filename: str | None = None,
        base64: str | None = None,
        subdir: str = UPLOADS_SUBDIR,
        overwrite: bool = False,
        max_bytes: int = 3_000_000,
    ) -> str:
        """Decode a base64 payload and store it as ``subdir/<basename>``."""
        target_name = (filename or name or "").strip()
        payload = (base64 or content_bytes or "").strip()
        if not target_name:
            raise ValidationFailure("filename/name is required.")
        if not payload:
            raise ValidationFailure("base64/contentBytes is required.")

        # data:<mime>;base64,<payload>
        if "base64," in payload:
            payload = payload.split("base64,", 1)[1]
        try:
            data = b64decode(payload)
        except (binascii.Error, ValueError) as exc:
            raise ValidationFailure(f"Invalid base64 payload: {exc}") from exc

        limit = min(max_bytes, self.max_upload_bytes)
        if len(data) > limit:
            raise ResourceTooLarge(
                f"Rejected: too large ({len(data)} bytes, limit {limit})."
            )

        target_dir = self.sandbox.resolve(subdir or UPLOADS_SUBDIR)
        full = self.sandbox.resolve(
            Path(self.sandbox.relative(target_dir)) / safe_name(target_name)
        )
        rel = self.sandbox.relative(full)
        if full.exists() and not overwrite:
            return f"Rejected: already exists: {rel}"
        if full.is_dir():
            raise WrongType(f"Not a file: {rel}")

        target_dir.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)
        logger.info(f"Upload saved: {rel} ({len(data)} bytes)")
        return f"Saved: {rel} ({len(data)} bytes)"

    # === documents ===
    def word_read_text(
        self, file: str, max_chars: int = 150_000, use_cache: bool = True
    ) -> str:
        """Extract text from a .docx under docs/ (cached by path and mtime)."""
        return self._read_document(
            file, ".docx", extractors.extract_docx_text, max_chars, use_cache
        )

    def pdf_read_text(
        self, file: str, max_chars: int = 150_000, use_cache: bool = True
    ) -> str:
        """Extract text from a .pdf under docs/ (cached by path and mtime)."""
        return self._read_document(
            file, ".pdf", extractors.extract_pdf_text, max_chars, use_cache
        )

    def _read_document(
        self,
        file: str,
        extension: str,
        extract: Callable[[Path], str],
        max_chars: int,
        use_cache: bool,
    ) -> str:
        normalized = file if file.startswith(f"{DOCS_SUBDIR}/") else f"{DOCS_SUBDIR}/{file}"
        full = self.sandbox.resolve(normalized)
        if full.suffix.lower() != extension:
            raise UnsupportedFormat(f"Only {extension} is supported (read-only).")
        st = stat_existing(full, normalized)
        if not full.is_file():
            raise WrongType(f"Not a file: {normalized}")

        key = self.cache.key(normalized, st.st_mtime_ns / 1_000_000)
        text = self.cache.read(key) if use_cache else None
        if text is None:
            logger.debug(f"Extracting {normalized}")
            text = extract(full)
            self.cache.write(key, text)

        return truncate(text, max_chars) or "(empty)"
