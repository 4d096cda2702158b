import pytest

from legacy_migration.extractors.tokenizer import DumpParseError, tokenize_tuples, tokenize_values


def test_splits_tuples_and_fields():
    tuples = tokenize_tuples("(1,'ouyang',NULL),(2, 'li' , 3.5);")
    assert tuples == [["1", "'ouyang'", "NULL"], ["2", "'li'", "3.5"]]


def test_escaped_quote_stays_inside_field():
    tuples = tokenize_tuples(r"(1,'O\'Brien',2);")
    assert tuples == [["1", r"'O\'Brien'", "2"]]


def test_comma_inside_string_is_not_a_boundary():
    tuples = tokenize_tuples("(1,'a,b,c',2);")
    assert len(tuples[0]) == 3
    assert tuples[0][1] == "'a,b,c'"


def test_parentheses_inside_string():
    tuples = tokenize_tuples("(1,'(test)',')(');")
    assert tuples == [["1", "'(test)'", "')('"]]


def test_nested_unquoted_parentheses_are_part_of_one_field():
    tuples = tokenize_tuples("(1,CONCAT('a',(2)),3);")
    assert tuples == [["1", "CONCAT('a',(2))", "3"]]


def test_double_quoted_string_with_single_quote():
    tuples = tokenize_tuples('(1,"it\'s",2);')
    assert tuples == [["1", '"it\'s"', "2"]]


def test_escaped_backslash_before_closing_quote():
    tuples = tokenize_tuples(r"(1,'C:\\',2);")
    assert tuples == [["1", r"'C:\\'", "2"]]


def test_semicolon_inside_string_does_not_end_statement():
    tuples = tokenize_tuples("(1,'a;b'),(2,'c');")
    assert len(tuples) == 2


def test_empty_tuple_has_no_fields():
    assert tokenize_tuples("();") == [[]]


def test_empty_field_between_commas():
    assert tokenize_tuples("(1,,3);") == [["1", "", "3"]]


def test_stops_after_statement_terminator():
    text = "(1),(2); INSERT INTO `other` VALUES (3);"
    tuples, end = tokenize_values(text)
    assert tuples == [["1"], ["2"]]
    assert text[end:].startswith(" INSERT INTO `other`")


def test_starts_at_offset():
    text = "INSERT INTO `t` VALUES (7,'x');"
    tuples, _ = tokenize_values(text, text.index("("))
    assert tuples == [["7", "'x'"]]


def test_unterminated_string_raises_with_table_name():
    with pytest.raises(DumpParseError) as excinfo:
        tokenize_values("(1,'abc);", table="tfkz_users")
    assert excinfo.value.table == "tfkz_users"
    assert "tfkz_users" in str(excinfo.value)


def test_unclosed_tuple_raises():
    with pytest.raises(DumpParseError):
        tokenize_tuples("(1,2")


def test_stray_closing_parenthesis_raises():
    with pytest.raises(DumpParseError):
        tokenize_tuples("(1,2));")


def test_garbage_between_tuples_raises():
    with pytest.raises(DumpParseError):
        tokenize_tuples("(1),x(2);")
