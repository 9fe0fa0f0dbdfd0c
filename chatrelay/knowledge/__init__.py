"""Knowledge-base file parsing.

Turns uploaded documents into plain text that is appended to the system
prompt.

Responsibilities:
    - Text extraction for .txt, .md, .csv and .json (re-indented)
    - PDF text extraction with pypdf
    - Size and type validation
"""

from chatrelay.knowledge.parser import (
    KnowledgeParseError,
    ParsedDocument,
    build_knowledge_file,
    parse_document,
)

__all__ = ["KnowledgeParseError", "ParsedDocument", "build_knowledge_file", "parse_document"]
