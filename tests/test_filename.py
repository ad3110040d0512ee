import re

import pytest

from vidproxy.utils.filename import fallback_stem, sanitize_filename

ILLEGAL = set('<>:"/\\|?*')


@pytest.mark.parametrize("title", [
    'Never Gonna: Give/You Up?',
    '  <b>bold</b>  "quoted"  ',
    'a\\b|c*d',
    'tabs\tand\nnewlines',
    '???',
    'plain title',
    'Ação & Reação | Parte 2',
])
def test_sanitize_strips_illegal_characters_and_outer_whitespace(title):
    result = sanitize_filename(title)
    assert not ILLEGAL & set(result)
    assert result == result.strip()


def test_sanitize_collapses_whitespace_runs():
    assert sanitize_filename("  many    spaces\t\there  ") == "many spaces here"


def test_sanitize_keeps_unicode():
    assert sanitize_filename("Ação: Reação") == "Ação Reação"


def test_sanitize_empty_result():
    assert sanitize_filename('<>:"/\\|?*') == ""
    assert sanitize_filename(None) == ""


def test_sanitize_caps_utf8_bytes_without_splitting_characters():
    result = sanitize_filename("é" * 200, max_bytes=101)
    assert len(result.encode("utf-8")) <= 101
    assert result == "é" * 50


def test_fallback_stem_uses_id_and_timestamp():
    assert re.fullmatch(r"video_dQw4w9WgXcQ_\d{13}", fallback_stem("dQw4w9WgXcQ"))


@pytest.mark.parametrize("title, expected", [
    ("Line one\nLine two", "Line one Line two"),
    ("a\r\nb", "a b"),
    ("tab\tseparated", "tab separated"),
    ("form\x0bfeed\x0cchars", "form feed chars"),
    ("bell\x07 and\x1b escape", "bell and escape"),
])
def test_sanitize_turns_control_whitespace_into_spaces(title, expected):
    assert sanitize_filename(title) == expected
