"""Corpus loading, scanning and graph utilities."""

from .exclusion import ExclusionFilter
from .graph import InclusionGraph
from .loader import Corpus, discover_documents, load_corpus
from .paths import canonicalize
from .scanner import extract_references, is_root_document, scan_document, strip_comment

__all__ = [
    "Corpus",
    "ExclusionFilter",
    "InclusionGraph",
    "canonicalize",
    "discover_documents",
    "extract_references",
    "is_root_document",
    "load_corpus",
    "scan_document",
    "strip_comment",
]
