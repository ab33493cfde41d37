import logging
import os
import re
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

import fitz  # PyMuPDF

from .interfaces import (
    EngineWiringError,
    ParseEngine,
    ParseFailed,
    ParseOutcome,
    ParseReady,
    ParseSession,
    PayloadTooLarge,
    StagedDocument,
    StagingGateway,
    UnsafeReference,
)

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


class LocalStaging(StagingGateway):
    """Stages request payloads as private temp files under ``upload_dir``."""

    def __init__(self, upload_dir: str, document_root: str, *, max_upload_mb: int) -> None:
        self._upload_dir = Path(upload_dir).resolve()
        self._root = Path(document_root).resolve()
        self._max_upload_mb = max_upload_mb

    def _new_temp_path(self, prefix: str, ext: str) -> Path:
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=ext, dir=self._upload_dir)
        os.close(fd)
        return Path(name)

    async def stage_upload(self, filename: str, reader: Callable[[int], Any]) -> StagedDocument:
        original_name = filename or "upload"
        ext = ""
        if "." in original_name:
            ext = "." + original_name.rsplit(".", 1)[-1]
        input_path = self._new_temp_path("upload_", ext)

        size_bytes = 0
        CHUNK = 1024 * 1024
        max_bytes = self._max_upload_mb * 1024 * 1024
        with input_path.open("wb") as f_out:
            while True:
                chunk = await reader(CHUNK)
                if not chunk:
                    break
                b = bytes(chunk)
                size_bytes += len(b)
                if size_bytes > max_bytes:
                    f_out.close()
                    self.discard(str(input_path))
                    raise PayloadTooLarge(f"upload exceeds {self._max_upload_mb} MB")
                f_out.write(b)

        logger.info("Staged upload %s (%d bytes) at %s", original_name, size_bytes, input_path)
        return StagedDocument(path=str(input_path), source_name=original_name, size_bytes=size_bytes)

    def stage_reference(self, folder_name: str, pdf_id: str) -> StagedDocument:
        """Copy ``<root>/<folder_name>/<pdf_id>.pdf`` to a temp file the caller then owns."""
        for part in (folder_name, pdf_id):
            if not _SAFE_NAME.fullmatch(part) or ".." in part:
                raise UnsafeReference(f"invalid document reference: {part!r}")
        source = (self._root / folder_name / f"{pdf_id}.pdf").resolve()
        if self._root not in source.parents:
            raise UnsafeReference(f"invalid document reference: {folder_name}/{pdf_id}")
        if not source.is_file():
            raise FileNotFoundError(f"document not found: {folder_name}/{pdf_id}")

        input_path = self._new_temp_path(f"{pdf_id}_", ".pdf")
        try:
            shutil.copyfile(source, input_path)
        except OSError:
            self.discard(str(input_path))
            raise
        size_bytes = input_path.stat().st_size
        logger.info("Staged %s (%d bytes) at %s", source, size_bytes, input_path)
        return StagedDocument(path=str(input_path), source_name=source.name, size_bytes=size_bytes)

    def discard(self, path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove staged file %s: %s", path, e)


class _EngineSession(ParseSession, ABC):
    """One parse of one file. Produces exactly one outcome; never raises from load()."""

    def __init__(self, owner: object) -> None:
        self._owner: object | None = owner
        self._used = False

    def load(self, file_path: str) -> ParseOutcome:
        if self._used or self._owner is None:
            return ParseFailed(data="parse session already used")
        self._used = True
        try:
            return ParseReady(data=self._parse(file_path))
        except Exception as e:
            return ParseFailed(data=str(e))

    def close(self) -> None:
        self._owner = None

    @abstractmethod
    def _parse(self, file_path: str) -> dict[str, Any]:
        ...


def _round(value: float) -> float:
    return round(float(value), 3)


class PyMuPdfSession(_EngineSession):
    def _parse(self, file_path: str) -> dict[str, Any]:
        with fitz.open(file_path) as doc:
            if not doc.is_pdf:
                raise ValueError("not a PDF document")
            if doc.needs_pass:
                raise ValueError("PDF is encrypted")
            pages = [self._page_tree(page) for page in doc]
            return {"Pages": pages, "Meta": self._meta(doc)}

    @staticmethod
    def _meta(doc: Any) -> dict[str, Any]:
        info = doc.metadata or {}
        meta: dict[str, Any] = {
            "PDFFormatVersion": (info.get("format") or "").replace("PDF ", "") or None,
            "IsAcroFormPresent": bool(doc.is_form_pdf),
            "PageCount": doc.page_count,
        }
        for key in ("title", "author", "subject", "keywords", "creator", "producer", "creationDate", "modDate"):
            if info.get(key):
                meta[key[0].upper() + key[1:]] = info[key]
        return meta

    def _page_tree(self, page: Any) -> dict[str, Any]:
        texts: list[dict[str, Any]] = []
        text_dict = page.get_text("dict")
        for block in text_dict.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                runs = [self._run(span) for span in line.get("spans", []) if span.get("text", "").strip()]
                if not runs:
                    continue
                x0, y0, x1, _ = line.get("bbox", (0, 0, 0, 0))
                texts.append({"x": _round(x0), "y": _round(y0), "w": _round(x1 - x0), "R": runs})

        fields: list[dict[str, Any]] = []
        for widget in page.widgets() or ():
            rect = widget.rect
            entry: dict[str, Any] = {
                "T": {"Name": widget.field_type_string},
                "x": _round(rect.x0),
                "y": _round(rect.y0),
                "w": _round(rect.width),
                "h": _round(rect.height),
                "V": widget.field_value,
            }
            if widget.field_name:
                entry["id"] = {"Id": widget.field_name}
            fields.append(entry)

        return {
            "Width": _round(page.rect.width),
            "Height": _round(page.rect.height),
            "Texts": texts,
            "Fields": fields,
        }

    @staticmethod
    def _run(span: dict[str, Any]) -> dict[str, Any]:
        flags = int(span.get("flags", 0))
        return {
            "T": quote(span.get("text", ""), safe=""),
            "S": -1,
            "TS": [span.get("font", ""), _round(span.get("size", 0)), int(bool(flags & 16)), int(bool(flags & 2))],
        }


class PyMuPdfEngine(ParseEngine):
    name = "pymupdf"

    def open_session(self, owner: object) -> ParseSession:
        if owner is None:
            raise EngineWiringError("parse session requires an owner")
        return PyMuPdfSession(owner)


class DoclingSession(_EngineSession):
    def __init__(self, owner: object, convert: Callable[[str], Any]) -> None:
        super().__init__(owner)
        self._convert = convert

    def _parse(self, file_path: str) -> dict[str, Any]:
        result = self._convert(file_path)
        try:
            doc = result.document  # type: ignore[attr-defined]
        except AttributeError:
            to_doc = getattr(result, "to_doc", None)
            doc = to_doc() if callable(to_doc) else result
        return docling_tree(doc)


def docling_tree(doc: Any) -> dict[str, Any]:
    """Build the engine output tree from a Docling document.

    Docling does not surface AcroForm widget values, so every page has an
    empty ``Fields`` list.
    """
    pages: dict[int, dict[str, Any]] = {}
    for page_no, item in sorted((getattr(doc, "pages", None) or {}).items()):
        size = getattr(item, "size", None)
        pages[page_no] = {
            "Width": _round(getattr(size, "width", 0)),
            "Height": _round(getattr(size, "height", 0)),
            "Texts": [],
            "Fields": [],
        }

    for text_item in getattr(doc, "texts", None) or ():
        text = getattr(text_item, "text", "") or ""
        if not text.strip():
            continue
        for prov in getattr(text_item, "prov", None) or ():
            page = pages.get(getattr(prov, "page_no", None))
            bbox = getattr(prov, "bbox", None)
            if page is None or bbox is None:
                continue
            to_top_left = getattr(bbox, "to_top_left_origin", None)
            if callable(to_top_left):
                bbox = to_top_left(page_height=page["Height"])
            page["Texts"].append(
                {
                    "x": _round(bbox.l),
                    "y": _round(bbox.t),
                    "w": _round(bbox.r - bbox.l),
                    "R": [{"T": quote(text, safe=""), "S": -1, "TS": [getattr(text_item, "label", ""), 0, 0, 0]}],
                }
            )

    return {
        "Pages": list(pages.values()),
        "Meta": {"Title": getattr(doc, "name", None), "PageCount": len(pages), "IsAcroFormPresent": False},
    }


class DoclingEngine(ParseEngine):
    name = "docling"

    def __init__(self) -> None:
        self._converter: Any = None
        self._lock = threading.Lock()

    def _get_converter(self) -> Any:
        with self._lock:
            if self._converter is None:
                from docling.document_converter import DocumentConverter  # type: ignore
                self._converter = DocumentConverter()
            return self._converter

    def _convert(self, file_path: str) -> Any:
        return self._get_converter().convert(file_path)

    def open_session(self, owner: object) -> ParseSession:
        if owner is None:
            raise EngineWiringError("parse session requires an owner")
        return DoclingSession(owner, self._convert)


def build_engine(name: str) -> ParseEngine:
    if name == PyMuPdfEngine.name:
        return PyMuPdfEngine()
    if name == DoclingEngine.name:
        return DoclingEngine()
    raise ValueError(f"unknown parse engine: {name}")
