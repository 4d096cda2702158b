from decimal import Decimal

import pytest

from legacy_migration.extractors.dump_extractor import (
    DumpExtractor,
    SchemaDriftError,
    extract_table_tuples,
    list_dump_tables,
    read_create_table_columns,
    read_dump,
)
from legacy_migration.extractors.tokenizer import DumpParseError
from legacy_migration.models.migration import DataSource

COLUMNS = ["id", "bank_name", "bank_logo", "state", "create_time"]

DUMP = """
DROP TABLE IF EXISTS `tfkz_bank`;
CREATE TABLE `tfkz_bank` (
  `id` int(11) NOT NULL AUTO_INCREMENT,
  `bank_name` varchar(50) DEFAULT NULL,
  `bank_logo` varchar(255) DEFAULT NULL,
  `state` tinyint(1) DEFAULT '1',
  `create_time` int(11) DEFAULT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

LOCK TABLES `tfkz_bank` WRITE;
INSERT INTO `tfkz_bank` VALUES (1,'中国工商银行','/logo/icbc.png',1,1700000000),(2,'O\\'Brien Bank',NULL,0,0);
INSERT INTO `tfkz_bank` VALUES (3,'Bank (3)','',1,NULL);
UNLOCK TABLES;

INSERT INTO `tfkz_bank_extra` VALUES (9,'x');
INSERT INTO `tfkz_notice` VALUES (1,'t','c',1,1,1,0,0);
"""


def extractor(text, columns=COLUMNS, table="tfkz_bank"):
    return DumpExtractor(DataSource(name="banks", entity=table), columns, text=text)


def test_extracts_rows_from_every_statement():
    result = extractor(DUMP).extract()

    assert result.warnings == []
    assert result.total_extracted == 3
    assert result.declared_columns == COLUMNS
    first, second, third = result.records
    assert first.data == {
        "id": 1, "bank_name": "中国工商银行", "bank_logo": "/logo/icbc.png",
        "state": 1, "create_time": 1700000000,
    }
    assert second.data["bank_name"] == "O'Brien Bank"
    assert second.data["bank_logo"] is None
    assert third.data["bank_name"] == "Bank (3)"
    assert third.data["bank_logo"] == ""
    assert first.id == "1"
    assert first.metadata["row"] == 1
    assert first.raw_values[1] == "'中国工商银行'"


def test_prefix_match_does_not_pick_up_other_tables():
    tuples, columns = extract_table_tuples(DUMP, "tfkz_bank")
    assert len(tuples) == 3
    assert columns is None


def test_insert_text_quoted_inside_another_statement_is_ignored():
    text = (
        "INSERT INTO `tfkz_message` VALUES "
        "(1,'see INSERT INTO `tfkz_bank` VALUES (9,\\'x\\',NULL,1,0);');\n"
        "INSERT INTO `tfkz_bank` VALUES (1,'a',NULL,1,0);\n"
    )

    result = extractor(text).extract()

    assert [record.id for record in result.records] == ["1"]
    assert list_dump_tables(text) == ["tfkz_message", "tfkz_bank"]


def test_missing_table_yields_no_rows_and_a_warning():
    result = extractor(DUMP, table="tfkz_delivery").extract()

    assert result.records == []
    assert any("No rows" in warning for warning in result.warnings)


def test_tuple_length_mismatch_fails_the_table():
    text = "INSERT INTO `tfkz_bank` VALUES (1,'a','b',1,0),(2,'c',1,0);"
    with pytest.raises(SchemaDriftError) as excinfo:
        extractor(text).extract()
    assert excinfo.value.expected == 5
    assert excinfo.value.actual == 4
    assert excinfo.value.mismatched_rows == 1


def test_explicit_column_list_must_match_manifest():
    text = "INSERT INTO `tfkz_bank` (`id`,`bank_name`) VALUES (1,'a');"
    with pytest.raises(SchemaDriftError):
        extractor(text).extract()


def test_explicit_column_list_equal_to_manifest_is_accepted():
    text = "INSERT INTO `tfkz_bank` (`id`, `bank_name`, `bank_logo`, `state`, `create_time`) VALUES (1,'a',NULL,1,0);"
    result = extractor(text).extract()
    assert result.records[0].data["bank_name"] == "a"


def test_create_table_drift_is_a_warning():
    result = extractor(DUMP, columns=["id", "bank_name", "bank_logo", "state", "created"]).extract()
    assert any("CREATE TABLE" in warning for warning in result.warnings)


def test_malformed_statement_raises_parse_error():
    text = "INSERT INTO `tfkz_bank` VALUES (1,'a','b',1,0));"
    with pytest.raises(DumpParseError):
        extractor(text).extract()


def test_decimal_values():
    text = "INSERT INTO `tfkz_bank` VALUES (1,'a','b',1,12.50);"
    record = extractor(text).extract().records[0]
    assert record.data["create_time"] == Decimal("12.50")


def test_extract_batch():
    batch = extractor(DUMP).extract_batch(offset=1, limit=1)
    assert [record.id for record in batch] == ["2"]


def test_read_create_table_columns():
    assert read_create_table_columns(DUMP, "tfkz_bank") == COLUMNS
    assert read_create_table_columns(DUMP, "tfkz_users") is None


def test_list_dump_tables():
    assert list_dump_tables(DUMP) == ["tfkz_bank", "tfkz_bank_extra", "tfkz_notice"]


def test_read_dump_replaces_undecodable_bytes(tmp_path):
    path = tmp_path / "dump.sql"
    path.write_bytes(b"INSERT INTO `t` VALUES (1,'\xff');")
    assert read_dump(str(path)).startswith("INSERT INTO `t`")
