"""
Text clean-up passes for simplified EPUB markup.

Each pass is a plain ``str -> str`` function working on the whole reduced
document.  ``normalize()`` runs them in the order listed in
``NORMALIZATION_PASSES``; later passes rely on earlier ones (the heading and
footnote patterns only see ASCII quotes and dashes after character
substitution, and dehyphenation must see merged style spans).
"""

import re

# Accented letters produced by the Scandinavian layouts this tool was built for
LOWER_ACCENTED = "åäö"
UPPER_ACCENTED = "ÅÄÖ"

CHAR_REPLACEMENTS = {
    "”": '"',  # right double quotation mark
    "“": '"',  # left double quotation mark
    "–": "-",  # en dash
}

STYLE_TAGS = ["i", "b"]

_WORD = rf"[A-Za-z{LOWER_ACCENTED}{UPPER_ACCENTED}]{{2,}}"
LINE_BREAK_DASH_RE = re.compile(rf"({_WORD})- ({_WORD})")

_HEADING_CHARS = rf'[A-Z{UPPER_ACCENTED}0-9"?.,\-]'
SECTION_HEADING_RE = re.compile(
    rf"<b>({_HEADING_CHARS}+(?: {_HEADING_CHARS}+)* ?)</b>"
)

SPACE_RUN_RE = re.compile(r"[ ]+")

NOTE_NUMBER_RE = re.compile(r'([.,]"? )((?:[0-9]{1,2}[-,]?)+)')


def replace_non_standard_chars(text: str) -> str:
    """Swap typographic quotes and dashes for their ASCII equivalents."""
    for src, dst in CHAR_REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text


def clean_up_reopening_tags(text: str) -> str:
    """Merge style spans that close and immediately reopen, e.g. ``</b><b>``."""
    for tag in STYLE_TAGS:
        text = text.replace(f"</{tag}><{tag}>", "")
    return text


def clean_up_line_break_dashes(text: str) -> str:
    """Join words split by a hyphenated line wrap: ``beauti- ful`` -> ``beautiful``.

    Both fragments must be at least two letters long, so ``a- b`` and
    number ranges are left alone.
    """
    return LINE_BREAK_DASH_RE.sub(r"\1\2", text)


def _title_case(title: str) -> str:
    # Only the very first character is capitalized, the rest is lowered
    return title[:1].upper() + title[1:].lower()


def convert_section_headings(text: str) -> str:
    """Promote all-caps bold runs to ``<h3>`` headings."""
    return SECTION_HEADING_RE.sub(
        lambda m: f"<h3>{_title_case(m.group(1))}</h3>", text
    )


def clean_up_white_space(text: str) -> str:
    """Collapse runs of spaces into a single space. Newlines are untouched."""
    return SPACE_RUN_RE.sub(" ", text)


def convert_note_numbers(text: str) -> str:
    """Bracket footnote reference clusters that follow sentence punctuation.

    ``end. 12-13 next`` becomes ``end. [12-13] next``.
    """
    return NOTE_NUMBER_RE.sub(r"\1[\2]", text)


NORMALIZATION_PASSES = [
    replace_non_standard_chars,
    clean_up_reopening_tags,
    clean_up_line_break_dashes,
    convert_section_headings,
    clean_up_white_space,
    convert_note_numbers,
]


def normalize(text: str) -> str:
    """Run every clean-up pass over *text*, in order."""
    for clean_pass in NORMALIZATION_PASSES:
        text = clean_pass(text)
    return text
