from decimal import Decimal

from legacy_migration.extractors.decoder import decode_row, decode_value


def test_null_literal_differs_from_quoted_null():
    assert decode_value("NULL") is None
    assert decode_value("null") is None
    assert decode_value("'NULL'") == "NULL"


def test_integers_and_decimals():
    assert decode_value("1633") == 1633
    assert decode_value("-7") == -7
    assert decode_value("12.50") == Decimal("12.50")
    assert isinstance(decode_value("0.1"), Decimal)


def test_quoted_escapes():
    assert decode_value(r"'O\'Brien'") == "O'Brien"
    assert decode_value(r"'say \"hi\"'") == 'say "hi"'
    assert decode_value(r"'line\nbreak'") == "line\nbreak"
    assert decode_value(r"'C:\\temp'") == "C:\\temp"
    assert decode_value(r"'tab\there'") == "tab\there"


def test_escape_sequences_resolve_in_one_pass():
    # an escaped backslash followed by n is a backslash and a letter, not a newline
    assert decode_value(r"'\\n'") == "\\n"


def test_unknown_escape_keeps_character():
    assert decode_value(r"'\%'") == "%"


def test_quoted_numbers_stay_strings():
    assert decode_value("'15622252279'") == "15622252279"
    assert decode_value('""') == ""


def test_other_literals_are_returned_trimmed():
    assert decode_value("  CURRENT_TIMESTAMP ") == "CURRENT_TIMESTAMP"
    assert decode_value("0x1F") == "0x1F"
    assert decode_value(None) is None


def test_decode_row():
    assert decode_row(["1", "'a'", "NULL"]) == [1, "a", None]
