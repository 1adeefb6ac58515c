"""
EPUB Simplifier: flatten an EPUB into one plain, readable HTML page.

Reads the book's stylesheets into a selector index, reduces every content
document to a small tag vocabulary (p, b, i, img, h3, hr) using that index to
recover bold and italic spans, then runs the clean-up passes from
text_cleanup.py over the result.  Images are copied next to the output page.

Usage:
    python epub_simplifier.py --epubfile book.epub
    epub-simplify --epubfile book.epub
"""

import argparse
import re
import sys
from pathlib import Path

import tinycss2
from bs4 import BeautifulSoup, NavigableString
from bs4.builder import ParserRejectedMarkup
from bs4.element import CData, PreformattedString
from lxml import etree

from epub_io import (
    EpubReadError,
    book_title,
    escape_html,
    extract_images,
    iter_documents,
    iter_stylesheets,
    output_dir_for,
    read_epub,
    write_output_html,
)
from text_cleanup import normalize

# InDesign wraps decorative dividers in <div id="_idContainer...">
DIVIDER_ID_PREFIX = "_idContainer"
IMAGE_STYLE = "max-width: 240px; max-height: 240px;"
DOCUMENT_SEPARATOR = "\n<hr>\n"

SELECTOR_KEY_RE = re.compile(r"[@A-Za-z0-9\-.]+")
# At-rules whose blocks hold ordinary rules rather than declarations
NESTED_AT_RULES = {"media", "supports"}


class DocumentParseError(ValueError):
    """A content document could not be read into an element tree."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Could not parse {name or 'document'}: {reason}")


# ============================================================================
# Phase 1: Stylesheet index
# ============================================================================

def _selector_keys(prelude) -> list[str]:
    """Index keys for a rule prelude: the last simple selector of each
    comma-separated part, so ``h1, div p.note`` gives ``h1`` and ``p.note``."""
    tokens = [t for t in prelude if t.type != "comment"]
    keys = []
    for part in tinycss2.serialize(tokens).split(","):
        words = part.split()
        if words and SELECTOR_KEY_RE.fullmatch(words[-1]):
            keys.append(words[-1])
    return keys


def _declarations(content) -> dict[str, str]:
    properties: dict[str, str] = {}
    for decl in tinycss2.parse_declaration_list(
        content, skip_comments=True, skip_whitespace=True
    ):
        # Declarations without a colon come back as parse errors
        if decl.type != "declaration":
            continue
        # A newline also ends a declaration, so "a: 1\n b: 2" is two of them
        first, *rest = tinycss2.serialize(decl.value).strip().split("\n")
        properties[decl.lower_name] = first.strip()
        for line in rest:
            name, colon, value = line.partition(":")
            if colon and name.strip():
                properties[name.strip().lower()] = value.strip()
    return properties


def _index_rules(rules, index: dict[str, dict[str, str]]):
    for rule in rules:
        if rule.type == "qualified-rule":
            properties = _declarations(rule.content)
            for key in _selector_keys(rule.prelude):
                index[key] = dict(properties)
        elif rule.type == "at-rule" and rule.content is not None:
            if rule.lower_at_keyword in NESTED_AT_RULES:
                _index_rules(
                    tinycss2.parse_rule_list(
                        rule.content, skip_comments=True, skip_whitespace=True
                    ),
                    index,
                )
            else:
                index["@" + rule.lower_at_keyword] = _declarations(rule.content)


def build_style_index(stylesheet: bytes | str | None) -> dict[str, dict[str, str]]:
    """Parse a stylesheet into ``{selector: {property: value}}``.

    This is a best-effort extractor: comments, stray text, selectors using
    anything beyond letters, digits, ``@``, ``-`` and ``.``, and declarations
    without a colon are skipped.  A selector seen twice keeps only its last
    block.  ``None`` or empty input gives an empty index.
    """
    if not stylesheet:
        return {}
    if isinstance(stylesheet, bytes):
        stylesheet = stylesheet.decode("utf-8", errors="replace")

    index: dict[str, dict[str, str]] = {}
    _index_rules(
        tinycss2.parse_stylesheet(stylesheet, skip_comments=True, skip_whitespace=True),
        index,
    )
    return index


def merge_style_indexes(
    indexes: list[dict[str, dict[str, str]]],
) -> dict[str, dict[str, str]]:
    """Fold several stylesheet indexes together; later sheets win per selector."""
    merged: dict[str, dict[str, str]] = {}
    for index in indexes:
        merged.update(index)
    return merged


# ============================================================================
# Phase 2: Reduce element trees to simple markup
# ============================================================================

def _escape_text(text: str) -> str:
    """Escape markup characters in text content. Quotes are left alone."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _own_text(el) -> str:
    """Text that belongs to *el* itself rather than to one of its children."""
    parts = []
    for child in el.children:
        if not isinstance(child, NavigableString):
            continue
        # Skip comments, doctypes and processing instructions, keep CDATA
        if isinstance(child, PreformattedString) and not isinstance(child, CData):
            continue
        parts.append(str(child))
    return "".join(parts)


def _class_tokens(el) -> list[str]:
    classes = el.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return classes


def _child_elements(el) -> list:
    return el.find_all(True, recursive=False)


def reduce_elements(elements, style_index: dict[str, dict[str, str]]) -> str:
    """Return the simplified markup for *elements* and all their descendants.

    Only paragraphs, images, dividers and stylesheet-derived bold/italic
    spans survive; every other element passes its text through.  Closing
    tags for an element are collected before recursing and written after,
    innermost first, so the output is always properly nested.
    """
    text = ""
    for el in elements:
        closing_tags: list[str] = []

        if el.name == "img":
            img_str = "<img "
            src = el.get("src")
            if src is not None:
                img_str += f'src="{escape_html(src)}" '
            img_str += f'style="{IMAGE_STYLE}" />'
            text += img_str

        if el.name == "div" and (el.get("id") or "").startswith(DIVIDER_ID_PREFIX):
            text += "<hr>\n"

        if el.name == "p":
            text += "<p>"
            closing_tags.append("</p>")

        if el.name == "span":
            for css_class in _class_tokens(el):
                css_info = style_index.get(f"{el.name}.{css_class}", {})
                if css_info.get("font-weight") == "bold":
                    text += "<b>"
                    closing_tags.append("</b>")
                if css_info.get("font-style") == "italic":
                    text += "<i>"
                    closing_tags.append("</i>")

        children = _child_elements(el)
        if children:
            text += reduce_elements(children, style_index)
        text += _escape_text(_own_text(el).strip()) + " "

        for closing_tag in reversed(closing_tags):
            text += closing_tag

    return text


def reduce_body(body, style_index: dict[str, dict[str, str]]) -> str:
    """Reduce a ``<body>`` element's children to simple markup."""
    return reduce_elements(_child_elements(body), style_index)


# ============================================================================
# Phase 3: Documents and whole books
# ============================================================================

def parse_document(raw: bytes | str, name: str = ""):
    """Parse an XHTML document and return its ``<html>`` root element.

    Raises DocumentParseError when nothing resembling an XHTML document
    comes out of the parser.
    """
    try:
        soup = BeautifulSoup(raw, "xml")
    except (ParserRejectedMarkup, etree.LxmlError) as exc:
        raise DocumentParseError(name, str(exc)) from exc
    html = soup.find("html", recursive=False)
    if html is None:
        raise DocumentParseError(name, "no <html> root element")
    return html


def _is_blank(el) -> bool:
    return el.find(True) is None and not el.get_text(strip=True)


def process_document(
    raw: bytes | str,
    style_index: dict[str, dict[str, str]],
    name: str = "",
) -> tuple[str, str | None]:
    """Reduce and clean up one content document.

    Returns ``(text, warning)``.  A document without a body yields an empty
    string and a warning instead of an error, so the rest of the book can
    still be processed.
    """
    html = parse_document(raw, name)
    body = html.find("body", recursive=False)
    if body is None or _is_blank(body):
        return "", f"Body was empty! ({name})" if name else "Body was empty!"

    text = reduce_body(body, style_index)
    return normalize(text), None


def simplify_documents(
    documents,
    style_index: dict[str, dict[str, str]],
) -> tuple[str, list[str]]:
    """Process ``(name, raw)`` pairs in order and join them with rules.

    Returns ``(html, warnings)``.  Documents that produced a warning add
    nothing to the output, not even a separator.
    """
    parts: list[str] = []
    warnings_out: list[str] = []
    for name, raw in documents:
        text, warning = process_document(raw, style_index, name)
        if warning:
            warnings_out.append(warning)
            continue
        parts.append(text)
        parts.append(DOCUMENT_SEPARATOR)
    return "".join(parts), warnings_out


def simplify_epub(epub_path: Path, output_dir: Path | None = None) -> Path:
    """Convert *epub_path* into ``<output_dir>/index.html`` plus an image folder.

    Returns the path of the written HTML file.
    """
    if output_dir is None:
        output_dir = output_dir_for(epub_path)

    book = read_epub(epub_path)

    style_index = merge_style_indexes(
        [build_style_index(css) for _name, css in iter_stylesheets(book)]
    )
    print(f"  Stylesheet rules: {len(style_index)}")

    extract_images(book, output_dir)

    body_html, warnings_out = simplify_documents(iter_documents(book), style_index)
    for warning in warnings_out:
        print(f"WARNING: {warning}")
    if warnings_out:
        print(f"  {len(warnings_out)} document(s) skipped")

    return write_output_html(body_html, output_dir, book_title(book, epub_path))


# ============================================================================
# CLI and main
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="EPUB Simplifier: flatten an EPUB into one simple HTML page.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python epub_simplifier.py --epubfile book.epub
  python epub_simplifier.py -epubfile book.epub
        """,
    )
    parser.add_argument("--epubfile", "-epubfile", default="", help="EPUB file")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.epubfile:
        print("ERROR: No EPUB file specified! Use the -h flag to view options")
        sys.exit(1)

    epub_path = Path(args.epubfile).resolve()

    print("=" * 60)
    print("  EPUB Simplifier")
    print("=" * 60)

    try:
        html_path = simplify_epub(epub_path)
    except EpubReadError as exc:
        print(f"ERROR: Could not process EPUB file: {exc.reason} ({exc.epub_path})")
        sys.exit(1)
    except DocumentParseError as exc:
        print(f"ERROR: Could not read XHTML file into element tree: {exc}")
        sys.exit(1)
    except OSError as exc:
        print(f"ERROR: Could not write output: {exc}")
        sys.exit(1)

    print(f"\nWrote output HTML to: {html_path}")
    print("(To view the file, open it in a web browser!)")


if __name__ == "__main__":
    main()
