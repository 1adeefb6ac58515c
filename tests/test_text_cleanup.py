"""
Tests for the clean-up passes in text_cleanup.py.

Run: pytest tests/test_text_cleanup.py -v
"""

import pytest

from text_cleanup import (
    NORMALIZATION_PASSES,
    clean_up_line_break_dashes,
    clean_up_reopening_tags,
    clean_up_white_space,
    convert_note_numbers,
    convert_section_headings,
    normalize,
    replace_non_standard_chars,
)


# ═══════════════════════════════════════════════════════════════════════════
# Character substitution
# ═══════════════════════════════════════════════════════════════════════════

class TestReplaceNonStandardChars:
    def test_right_double_quote(self):
        assert replace_non_standard_chars("”Hi”") == '"Hi"'

    def test_left_double_quote(self):
        assert replace_non_standard_chars("“Hi”") == '"Hi"'

    def test_en_dash(self):
        assert replace_non_standard_chars("1990–1995") == "1990-1995"

    def test_plain_text_untouched(self):
        assert replace_non_standard_chars("plain 'text' - here") == "plain 'text' - here"


# ═══════════════════════════════════════════════════════════════════════════
# Reopened-tag collapsing
# ═══════════════════════════════════════════════════════════════════════════

class TestCleanUpReopeningTags:
    def test_bold_spans_merge(self):
        assert clean_up_reopening_tags("<b>Hello</b><b> World</b>") == "<b>Hello World</b>"

    def test_italic_spans_merge(self):
        assert clean_up_reopening_tags("<i>a </i><i>b </i>") == "<i>a b </i>"

    def test_mixed_tags_not_merged(self):
        assert clean_up_reopening_tags("<b>a</b><i>b</i>") == "<b>a</b><i>b</i>"

    def test_separated_spans_not_merged(self):
        assert clean_up_reopening_tags("<b>a</b> <b>b</b>") == "<b>a</b> <b>b</b>"

    def test_three_spans_merge(self):
        assert clean_up_reopening_tags("<i>a</i><i>b</i><i>c</i>") == "<i>abc</i>"


# ═══════════════════════════════════════════════════════════════════════════
# Line-break dehyphenation
# ═══════════════════════════════════════════════════════════════════════════

class TestCleanUpLineBreakDashes:
    def test_joins_split_word(self):
        assert clean_up_line_break_dashes("beauti- ful") == "beautiful"

    def test_short_fragments_untouched(self):
        assert clean_up_line_break_dashes("a- b") == "a- b"

    def test_one_short_fragment_untouched(self):
        assert clean_up_line_break_dashes("x- ray") == "x- ray"

    def test_digits_untouched(self):
        assert clean_up_line_break_dashes("12- 13") == "12- 13"

    def test_accented_letters(self):
        assert clean_up_line_break_dashes("sjö- fart och Å- ÄÖ") == "sjöfart och Å- ÄÖ"
        assert clean_up_line_break_dashes("hår- fäste") == "hårfäste"

    def test_hyphen_without_space_untouched(self):
        assert clean_up_line_break_dashes("well-known") == "well-known"

    def test_inside_sentence(self):
        result = clean_up_line_break_dashes("<p>It was a won- derful day </p>")
        assert result == "<p>It was a wonderful day </p>"


# ═══════════════════════════════════════════════════════════════════════════
# Section-heading promotion
# ═══════════════════════════════════════════════════════════════════════════

class TestConvertSectionHeadings:
    def test_all_caps_bold_becomes_heading(self):
        assert convert_section_headings("<b>CHAPTER ONE</b>") == "<h3>Chapter one</h3>"

    def test_trailing_space_kept(self):
        assert convert_section_headings("<b>PART 2 </b>") == "<h3>Part 2 </h3>"

    def test_only_first_character_capitalized(self):
        """Everything after the first character is lowered, word by word is not."""
        assert convert_section_headings("<b>THE END, AGAIN?</b>") == "<h3>The end, again?</h3>"

    def test_accented_capitals(self):
        assert convert_section_headings("<b>ÅTER HEM</b>") == "<h3>Åter hem</h3>"

    def test_mixed_case_not_promoted(self):
        assert convert_section_headings("<b>Chapter One</b>") == "<b>Chapter One</b>"

    def test_double_space_not_promoted(self):
        assert convert_section_headings("<b>A  B</b>") == "<b>A  B</b>"

    def test_long_non_matching_run_is_fast(self):
        text = "<b>" + "A " * 5000 + "x</b>"
        assert convert_section_headings(text) == text


# ═══════════════════════════════════════════════════════════════════════════
# Whitespace collapsing
# ═══════════════════════════════════════════════════════════════════════════

class TestCleanUpWhiteSpace:
    def test_collapses_runs(self):
        assert clean_up_white_space("a   b  c") == "a b c"

    def test_newlines_kept(self):
        assert clean_up_white_space("a \n\n  b") == "a \n\n b"

    @pytest.mark.parametrize("text", ["", " ", "a  b", "  lead", "trail   ", "<p> x  </p>\n<hr>\n"])
    def test_idempotent(self, text):
        once = clean_up_white_space(text)
        assert clean_up_white_space(once) == once


# ═══════════════════════════════════════════════════════════════════════════
# Footnote-marker bracketing
# ═══════════════════════════════════════════════════════════════════════════

class TestConvertNoteNumbers:
    def test_range_after_period(self):
        assert convert_note_numbers("end. 12-13 next") == "end. [12-13] next"

    def test_single_number_after_comma(self):
        assert convert_note_numbers("first, 4 then") == "first, [4] then"

    def test_after_closing_quote(self):
        assert convert_note_numbers('he said." 7 Later') == 'he said." [7] Later'

    def test_no_punctuation_untouched(self):
        assert convert_note_numbers("page 12 of") == "page 12 of"

    def test_already_bracketed_untouched(self):
        assert convert_note_numbers("end. [12-13] next") == "end. [12-13] next"


# ═══════════════════════════════════════════════════════════════════════════
# Whole chain
# ═══════════════════════════════════════════════════════════════════════════

class TestNormalize:
    def test_pass_order(self):
        assert NORMALIZATION_PASSES == [
            replace_non_standard_chars,
            clean_up_reopening_tags,
            clean_up_line_break_dashes,
            convert_section_headings,
            clean_up_white_space,
            convert_note_numbers,
        ]

    def test_split_heading_spans_are_merged_before_promotion(self):
        assert normalize("<b>CHAPTER </b><b>ONE </b>") == "<h3>Chapter one </h3>"

    def test_en_dash_note_range(self):
        """The en dash must become ASCII before footnote clusters are found."""
        assert normalize("end. 3–4 next") == "end. [3-4] next"

    def test_typographic_quote_before_note(self):
        assert normalize("it.” 5 And") == 'it." [5] And'

    def test_spaces_collapsed_after_dehyphenation(self):
        assert normalize("<p>a  beauti- ful   day </p>") == "<p>a beautiful day </p>"

    def test_no_match_is_noop(self):
        text = "<p>Nothing to do here. </p>\n<hr>\n"
        assert normalize(text) == text
