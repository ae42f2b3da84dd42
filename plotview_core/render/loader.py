from __future__ import annotations

from pathlib import Path
import xml.etree.ElementTree as ET

from .svg import SvgDocument


class DocumentLoadError(RuntimeError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(message)
        self.path = path


class DocumentReadError(DocumentLoadError):
    pass


class DocumentParseError(DocumentLoadError):
    pass


def load_document(path: str | Path) -> SvgDocument:
    """Read the whole file and parse it with default options.

    Nothing is cached; every call re-reads from disk.
    """
    doc_path = Path(path)
    try:
        data = doc_path.read_bytes()
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise DocumentReadError(doc_path, f"cannot read {doc_path}: {reason}") from exc
    try:
        return SvgDocument.from_bytes(data)
    except (ET.ParseError, ValueError) as exc:
        raise DocumentParseError(doc_path, f"cannot parse {doc_path}: {exc}") from exc
    except RecursionError as exc:
        raise DocumentParseError(doc_path, f"cannot parse {doc_path}: elements nested too deeply") from exc
