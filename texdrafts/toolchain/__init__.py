"""Adapters around external tools: TeX compilers, git, word counting."""

from .compiler import CompileResult, Compiler
from .git import GitError, GitPublisher, changed_files
from .wordcount import count_words, rewrite_counter, update_wordcounts

__all__ = [
    "CompileResult",
    "Compiler",
    "GitError",
    "GitPublisher",
    "changed_files",
    "count_words",
    "rewrite_counter",
    "update_wordcounts",
]
