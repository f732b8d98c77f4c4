"""HTML rewriting for the document pipeline.

rewrite_document() runs three synchronous steps on a freshly parsed tree:

  1. strip_blocked_scripts() — two-phase: every <script> is classified first,
     then the doomed ones are removed. The tree is never mutated while it is
     being walked.
  2. inject_base_tag()       — <base href="..."> becomes the first child of
     <head> so relative links resolve against the original target. A <head>
     is created when the document has none.
  3. serialize_document()    — the tree is rendered back to a str; the caller
     encodes it as UTF-8.

Parsing uses BeautifulSoup's ``html.parser`` backend, which tolerates malformed
markup. Serialization goes through SourceOrderFormatter: attributes keep their
source order, void elements are written without a closing slash, valueless
attributes stay bare and the doctype is not followed by an extra newline.
Other markup is normalized: attribute values are double-quoted, an explicitly
empty value (``alt=""``) is written bare like a valueless attribute, and
character references are decoded on parse so only ``&``, ``<`` and ``>`` come
back escaped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from bs4 import BeautifulSoup, Doctype
from bs4.dammit import EntitySubstitution
from bs4.element import Tag
from bs4.formatter import HTMLFormatter

from scriptguard.blocklist.matcher import should_block_script
from scriptguard.blocklist.rules import BlockRule

HTML_PARSER = "html.parser"


class SourceOrderFormatter(HTMLFormatter):
    """HTMLFormatter that writes the tree back the way the page wrote it."""

    def __init__(self) -> None:
        super().__init__(
            entity_substitution=EntitySubstitution.substitute_xml,
            void_element_close_prefix=None,
            empty_attributes_are_booleans=True,
        )

    def attributes(self, tag: Tag):
        # The stock formatter sorts attributes alphabetically.
        if tag.attrs is None:
            return []
        return [
            (key, None if self.empty_attributes_are_booleans and value == "" else value)
            for key, value in tag.attrs.items()
        ]


class SourceDoctype(Doctype):
    """Doctype rendered without the newline bs4 appends after it."""

    SUFFIX = ">"


DOCUMENT_FORMATTER = SourceOrderFormatter()


@dataclass
class RewriteResult:
    html: str
    removed: list[str] = field(default_factory=list)  # matching rule text per removed script

    @property
    def removed_count(self) -> int:
        return len(self.removed)


def parse_document(
    markup: Union[str, bytes],
    encoding: Optional[str] = None,
) -> BeautifulSoup:
    """Parse markup into a mutable tree.

    ``encoding`` is the upstream-declared charset for byte input; when absent
    BeautifulSoup sniffs it (BOM, <meta charset>, then heuristics).
    Multi-valued attributes (class, rel, ...) are kept as plain strings so
    their whitespace survives serialization.
    """
    if isinstance(markup, bytes) and encoding:
        return BeautifulSoup(
            markup, HTML_PARSER, from_encoding=encoding, multi_valued_attributes=None
        )
    return BeautifulSoup(markup, HTML_PARSER, multi_valued_attributes=None)


def strip_blocked_scripts(soup: BeautifulSoup, rules: Sequence[BlockRule]) -> list[str]:
    """Remove blocked <script> elements; return the matched rule text of each."""
    doomed: list[tuple[Tag, str]] = []
    for script in soup.find_all("script"):
        content = script.string
        matched = should_block_script(
            script.get("src"),
            str(content) if content is not None else None,
            rules,
        )
        if matched is not None:
            doomed.append((script, matched))

    for script, _ in doomed:
        script.decompose()

    return [matched for _, matched in doomed]


def inject_base_tag(soup: BeautifulSoup, href: str) -> Tag:
    """Insert <base href=...> as the first child of <head> and return it."""
    head = soup.head
    if head is None:
        head = soup.new_tag("head")
        if soup.html is not None:
            soup.html.insert(0, head)
        else:
            soup.insert(_top_level_insert_index(soup), head)

    base = soup.new_tag("base", href=href)
    head.insert(0, base)
    return base


def serialize_document(soup: BeautifulSoup) -> str:
    """Render the tree with DOCUMENT_FORMATTER.

    ``eventual_encoding=None`` leaves any <meta charset> value as written.
    """
    for node in list(soup.contents):
        if isinstance(node, Doctype) and not isinstance(node, SourceDoctype):
            node.replace_with(SourceDoctype(str(node)))
    return soup.decode(eventual_encoding=None, formatter=DOCUMENT_FORMATTER)


def rewrite_document(
    markup: Union[str, bytes],
    target_url: str,
    rules: Sequence[BlockRule],
    encoding: Optional[str] = None,
) -> RewriteResult:
    """Parse, filter scripts, inject the base tag and serialize.

    Args:
        markup:     upstream body (bytes preferred so the charset is honoured).
        target_url: normalized absolute target; becomes the <base href>.
        rules:      configured block rules.
        encoding:   upstream-declared charset, if any.
    """
    soup = parse_document(markup, encoding)
    removed = strip_blocked_scripts(soup, rules)
    inject_base_tag(soup, target_url)
    return RewriteResult(html=serialize_document(soup), removed=removed)


def _top_level_insert_index(soup: BeautifulSoup) -> int:
    # Keep a leading <!DOCTYPE> in front of a synthesized <head>.
    for index, node in enumerate(soup.contents):
        if isinstance(node, Doctype):
            return index + 1
    return 0
