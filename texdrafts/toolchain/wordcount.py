"""Word counting and counter-macro rewriting."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from ..corpus.graph import InclusionGraph
from ..corpus.loader import Corpus
from ..corpus.paths import canonicalize
from ..corpus.scanner import strip_comment

logger = logging.getLogger(__name__)

BEGIN_DOCUMENT = re.compile(r"\\begin\s*\{document\}")
END_DOCUMENT = re.compile(r"\\end\s*\{document\}")
DISPLAY_MATH = re.compile(r"\$\$.*?\$\$|\\\[.*?\\\]", re.DOTALL)
INLINE_MATH = re.compile(r"(?<!\\)\$.*?(?<!\\)\$", re.DOTALL)
ENVIRONMENT_MARKER = re.compile(r"\\(?:begin|end)\s*\{[^}]*\}")
# Arguments of these carry paths, labels or keys, not prose
NON_PROSE_ARGUMENT = re.compile(
    r"\\(?:input|include|label|ref|eqref|cite[a-z]*|usepackage|documentclass|"
    r"includegraphics|bibliography(?:style)?|addbibresource|newcommand|renewcommand|def)"
    r"\*?(?:\s*\[[^\]]*\])*(?:\s*\{[^{}]*\})*"
)
COMMAND = re.compile(r"\\[A-Za-z@]+\*?|\\.")
WORD = re.compile(r"[^\s{}\[\]~&^_#]+")


def count_words(text: str) -> int:
    """Approximate prose word count of LaTeX source.

    Comments, the preamble, math and command names are not counted.
    """
    body = "\n".join(strip_comment(line) for line in text.splitlines())

    begin = BEGIN_DOCUMENT.search(body)
    if begin:
        body = body[begin.end():]
    end = END_DOCUMENT.search(body)
    if end:
        body = body[: end.start()]

    body = DISPLAY_MATH.sub(" ", body)
    body = INLINE_MATH.sub(" ", body)
    body = ENVIRONMENT_MARKER.sub(" ", body)
    body = NON_PROSE_ARGUMENT.sub(" ", body)
    body = COMMAND.sub(" ", body)

    return sum(1 for token in WORD.findall(body) if any(ch.isalnum() for ch in token))


def count_document(graph: InclusionGraph, identity: str) -> int:
    """Words in a document and everything it includes, each document once."""
    total = 0
    for member in sorted(graph.transitive_closure(identity)):
        doc = graph.nodes[member]
        total += count_words(doc.text)
    return total


def counter_pattern(macro: str) -> re.Pattern[str]:
    name = re.escape(macro.lstrip("\\"))
    return re.compile(
        rf"(\\(?:newcommand|renewcommand|providecommand)\*?\s*\{{\\{name}\}}\s*\{{)([^{{}}]*)(\}})"
        rf"|(\\def\s*\\{name}\s*\{{)([^{{}}]*)(\}})"
    )


def rewrite_counter(text: str, macro: str, count: int) -> tuple[str, bool]:
    """Set every definition of `\\macro` in text to `count`.

    Returns:
        (new_text, changed)
    """
    pattern = counter_pattern(macro)

    def replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return f"{match.group(1)}{count}{match.group(3)}"
        return f"{match.group(4)}{count}{match.group(6)}"

    new_text = pattern.sub(replace, text)
    return new_text, new_text != text


def pending_wordcounts(corpus: Corpus, targets: Iterable[str], macro: str) -> dict[str, int]:
    """Targets whose counter macro is out of date, with their new counts.

    Reads only; nothing is written. Unknown targets and documents without
    the macro are logged and skipped.
    """
    pending = {}
    for entry in targets:
        identity = canonicalize(entry)
        doc = corpus.graph.get(identity)
        if doc is None:
            logger.warning("Word-count target %s is not in the corpus", entry)
            continue
        if not counter_pattern(macro).search(doc.text):
            logger.warning("%s does not define \\%s", identity, macro)
            continue

        count = count_document(corpus.graph, identity)
        _, changed = rewrite_counter(doc.text, macro, count)
        if changed:
            pending[identity] = count
    return pending


def update_wordcounts(corpus: Corpus, targets: Iterable[str], macro: str) -> list[Path]:
    """Recount each target and rewrite its counter macro in place.

    Targets must already be exclusion-filtered.

    Returns:
        Paths of files whose content changed
    """
    written = []
    for identity, count in pending_wordcounts(corpus, targets, macro).items():
        doc = corpus.graph.nodes[identity]
        new_text, _ = rewrite_counter(doc.text, macro, count)
        doc.path.write_text(new_text, encoding="utf-8")
        doc.text = new_text
        logger.info("%s: %d words", identity, count)
        written.append(doc.path)
    return written
