"""Knowledge file parsing with pypdf for PDFs.

Extracts text from uploaded knowledge-base files with validation.
"""

import io
import json
import logging
import uuid
from pathlib import PurePath

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from chatrelay.models.schemas import KnowledgeFile

logger = logging.getLogger(__name__)

# Constants
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
PDF_MAGIC_BYTES = b"%PDF"
TEXT_EXTENSIONS = {"txt", "md", "json", "csv"}
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS | {"pdf"}


class ParsedDocument(BaseModel):
    """Extracted content from a knowledge file.

    Attributes:
        text: Combined text content.
        pages: Page count for PDFs, 1 for text files.
        warning: Set when the file parsed but yielded no usable text.
    """

    text: str
    pages: int = Field(default=1, ge=0)
    warning: str | None = None


class KnowledgeParseError(Exception):
    """Raised when a knowledge file cannot be parsed."""

    pass


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")


def _validate_size(file_content: bytes) -> None:
    if not file_content:
        raise KnowledgeParseError("Empty file provided")

    if len(file_content) > MAX_FILE_SIZE:
        size_mb = len(file_content) / (1024 * 1024)
        raise KnowledgeParseError(f"File size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)")


def _decode_text(file_content: bytes) -> str:
    try:
        # utf-8-sig drops the BOM some editors write
        return file_content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise KnowledgeParseError(f"File is not valid UTF-8 text: {e}") from e


def parse_pdf(file_content: bytes) -> ParsedDocument:
    """Extract the text of every page of a PDF.

    Raises:
        KnowledgeParseError: If the file is not a PDF or is corrupt.
    """
    if not file_content.lstrip()[:10].startswith(PDF_MAGIC_BYTES):
        raise KnowledgeParseError("Invalid PDF: file does not start with PDF header")

    try:
        reader = PdfReader(io.BytesIO(file_content))
        pages = len(reader.pages)
    except PdfReadError as e:
        raise KnowledgeParseError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        raise KnowledgeParseError(f"Failed to read PDF: {e}") from e

    if pages == 0:
        raise KnowledgeParseError("PDF contains no pages")

    text_parts: list[str] = []
    for i, page in enumerate(reader.pages):
        try:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
        except Exception as e:
            logger.warning(f"Failed to extract text from page {i + 1}: {e}")
            continue

    text = "\n\n".join(text_parts)

    warning = None
    if not text.strip():
        warning = "PDF contains no extractable text (may be scanned/image-based)"
        logger.warning(warning)

    return ParsedDocument(text=text, pages=pages, warning=warning)


def parse_document(filename: str, file_content: bytes) -> ParsedDocument:
    """Parse a knowledge file according to its extension.

    JSON is re-indented so the model sees a readable structure.

    Args:
        filename: Original file name, used to pick the parser.
        file_content: Raw bytes of the file.

    Returns:
        ParsedDocument with the extracted text.

    Raises:
        KnowledgeParseError: If the type is unsupported or the file is
            empty, too large, or malformed.
    """
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(f".{ext}" for ext in sorted(SUPPORTED_EXTENSIONS))
        raise KnowledgeParseError(f"Unsupported file type. Supported formats: {supported}")

    _validate_size(file_content)

    if extension == "pdf":
        return parse_pdf(file_content)

    text = _decode_text(file_content)

    if extension == "json":
        try:
            text = json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        except json.JSONDecodeError as e:
            raise KnowledgeParseError(f"Invalid JSON file: {e}") from e

    return ParsedDocument(text=text)


def build_knowledge_file(
    filename: str, file_content: bytes, upload_time: int
) -> tuple[KnowledgeFile, str | None]:
    """Parse an upload into a KnowledgeFile record.

    Returns:
        The record and an optional warning for the user.
    """
    document = parse_document(filename, file_content)
    knowledge_file = KnowledgeFile(
        id=str(uuid.uuid4()),
        filename=filename,
        content=document.text,
        size=len(file_content),
        upload_time=upload_time,
    )
    return knowledge_file, document.warning
