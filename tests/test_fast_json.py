import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from kustodata.coltypes import ColumnType
from kustodata.errors import KustoError
from kustodata.query.v2.fast_json import (
    decode_columns,
    decode_data_table,
    decode_dataset_completion,
    decode_rows,
    decode_table_completion,
    decode_table_fragment,
    decode_table_header,
    validate_dataset_header,
)

HEADER = '{"FrameType":"DataSetHeader","IsProgressive":false,"Version":"v2.0","IsFragmented":true,"ErrorReportingPlacement":"EndOfTable"}'

PROPERTIES = r'{"FrameType":"DataTable","TableId":0,"TableKind":"QueryProperties","TableName":"@ExtendedProperties","Columns":[{"ColumnName":"TableId","ColumnType":"int"},{"ColumnName":"Key","ColumnType":"string"},{"ColumnName":"Value","ColumnType":"dynamic"}],"Rows":[[1,"Visualization","{\"Visualization\":null,\"Title\":null,\"XColumn\":null,\"Series\":null,\"YColumns\":null,\"AnomalyColumns\":null,\"XTitle\":null,\"YTitle\":null,\"XAxis\":null,\"YAxis\":null,\"Legend\":null,\"YSplit\":null,\"Accumulate\":false,\"IsQuerySorted\":false,\"Kind\":null,\"Ymin\":\"NaN\",\"Ymax\":\"NaN\",\"Xmin\":null,\"Xmax\":null}"]]}'

VISUALIZATION = '{"Visualization":null,"Title":null,"XColumn":null,"Series":null,"YColumns":null,"AnomalyColumns":null,"XTitle":null,"YTitle":null,"XAxis":null,"YAxis":null,"Legend":null,"YSplit":null,"Accumulate":false,"IsQuerySorted":false,"Kind":null,"Ymin":"NaN","Ymax":"NaN","Xmin":null,"Xmax":null}'

TABLE_HEADER = '{"FrameType":"TableHeader","TableId":1,"TableKind":"PrimaryResult","TableName":"AllDataTypes","Columns":[{"ColumnName":"vnum","ColumnType":"int"},{"ColumnName":"vdec","ColumnType":"decimal"},{"ColumnName":"vdate","ColumnType":"datetime"},{"ColumnName":"vspan","ColumnType":"timespan"},{"ColumnName":"vobj","ColumnType":"dynamic"},{"ColumnName":"vb","ColumnType":"bool"},{"ColumnName":"vreal","ColumnType":"real"},{"ColumnName":"vstr","ColumnType":"string"},{"ColumnName":"vlong","ColumnType":"long"},{"ColumnName":"vguid","ColumnType":"guid"}]}'

FRAGMENT = '{"FrameType":"TableFragment","TableFragmentType":"DataAppend","TableId":1,"Rows":[[1,"2.00000000000001","2020-03-04T14:05:01.3109965Z","01:23:45.6789000",{"moshe":"value"},true,0.01,"asdf",9223372036854775807,"123e27de-1e4e-49d9-b579-fe0b331d3642"],[null,null,null,null,null,null,null,"",null,null]]}'

GUID = uuid.UUID("123e27de-1e4e-49d9-b579-fe0b331d3642")


def test_validate_dataset_header_accepts_valid_header():
    header = validate_dataset_header(HEADER)
    assert header["Version"] == "v2.0"
    assert header["IsFragmented"] is True


def test_validate_dataset_header_rejects_bad_version():
    with pytest.raises(KustoError) as info:
        validate_dataset_header(HEADER.replace('"Version":"v2.0"', '"Version":"invalid"'))
    assert "Expected v2.0, got invalid" in str(info.value)


def test_validate_dataset_header_rejects_wrong_frame_type():
    with pytest.raises(KustoError) as info:
        validate_dataset_header('{"FrameType":"TableFragment", "TableId": 1}')
    assert "Expected DataSetHeader, got TableFragment" in str(info.value)


def test_validate_dataset_header_rejects_progressive():
    with pytest.raises(KustoError) as info:
        validate_dataset_header(HEADER.replace('"IsProgressive":false', '"IsProgressive":true'))
    assert "Expected false, got true" in str(info.value)


def test_validate_dataset_header_rejects_truncated_header():
    with pytest.raises(KustoError) as info:
        validate_dataset_header('{"FrameType":"DataSetHeader"}')
    assert "Expected IsProgressive" in str(info.value)


def test_decode_table_header():
    header = decode_table_header(TABLE_HEADER)
    assert header.table_id == 1
    assert header.table_kind == "PrimaryResult"
    assert header.table_name == "AllDataTypes"
    assert [c.name for c in header.columns] == [
        "vnum", "vdec", "vdate", "vspan", "vobj", "vb", "vreal", "vstr", "vlong", "vguid",
    ]
    assert [c.index for c in header.columns] == list(range(10))
    assert header.columns[2].type is ColumnType.DATETIME


def test_decode_table_header_rejects_wrong_frame_type():
    with pytest.raises(KustoError) as info:
        decode_table_header(PROPERTIES)
    assert "Expected TableHeader, got DataTable" in str(info.value)


def test_decode_table_fragment_values():
    columns = decode_table_header(TABLE_HEADER).columns
    fragment = decode_table_fragment(FRAGMENT, columns, 0)
    assert len(fragment.rows) == 2
    first, second = fragment.rows
    assert first.values == [
        1,
        Decimal("2.00000000000001"),
        datetime(2020, 3, 4, 14, 5, 1, 310996, tzinfo=timezone.utc),
        timedelta(hours=1, minutes=23, seconds=45, microseconds=678900),
        b'{"moshe":"value"}',
        True,
        0.01,
        "asdf",
        9223372036854775807,
        GUID,
    ]
    assert second.values == [None, None, None, None, None, None, None, "", None, None]
    assert first.string_by_name("vstr") == "asdf"


def test_decode_table_fragment_numbers_rows_after_previous_index():
    columns = decode_table_header(TABLE_HEADER).columns
    fragment = decode_table_fragment(FRAGMENT, columns, 5)
    assert [r.index for r in fragment.rows] == [5, 6]
    assert fragment.previous_index == 5


def test_decode_table_fragment_keeps_unquoted_decimal_precision():
    columns = decode_columns([{"ColumnName": "d", "ColumnType": "decimal"}])
    fragment = decode_table_fragment('{"Rows":[[2.00000000000001]]}', columns, 0)
    assert fragment.rows[0].values == [Decimal("2.00000000000001")]


def test_decode_table_fragment_without_rows_fails():
    with pytest.raises(KustoError):
        decode_table_fragment('{"FrameType":"TableFragment","TableId":1}', [], 0)


def test_decode_data_table():
    table = decode_data_table(PROPERTIES)
    assert table.header.table_id == 0
    assert table.header.table_kind == "QueryProperties"
    assert table.header.table_name == "@ExtendedProperties"
    assert len(table.rows) == 1
    assert table.rows[0].values == [1, "Visualization", VISUALIZATION.encode("utf-8")]


def test_decode_table_completion():
    completion = decode_table_completion('{"FrameType":"TableCompletion","TableId":1,"RowCount":2}')
    assert completion.table_id == 1
    assert completion.row_count == 2
    assert completion.one_api_errors is None


def test_decode_dataset_completion():
    completion = decode_dataset_completion('{"FrameType":"DataSetCompletion","HasErrors":false,"Cancelled":false}')
    assert completion.has_errors is False
    assert completion.cancelled is False
    assert completion.one_api_errors == []


def test_decode_columns_normalizes_aliases():
    columns = decode_columns([
        {"ColumnName": "a", "ColumnType": "date"},
        {"ColumnName": "b", "ColumnType": "uuid"},
    ])
    assert [c.type for c in columns] == [ColumnType.DATETIME, ColumnType.GUID]


def test_decode_columns_rejects_unknown_type():
    with pytest.raises(KustoError) as info:
        decode_columns([{"ColumnName": "A", "ColumnType": "invalid"}])
    assert "not valid" in str(info.value)


def test_decode_rows_rejects_extra_values():
    columns = decode_columns([{"ColumnName": "a", "ColumnType": "int"}])
    with pytest.raises(KustoError):
        decode_rows([[1, 2]], columns, 0)


def test_decode_rows_rejects_bad_value():
    columns = decode_columns([{"ColumnName": "a", "ColumnType": "int"}])
    with pytest.raises(KustoError) as info:
        decode_rows([["not a number"]], columns, 0)
    assert "unable to unmarshal column a" in str(info.value)


def test_decode_rows_column_lookup():
    columns = decode_columns([{"ColumnName": "a", "ColumnType": "string"}])
    rows = decode_rows([["x"], ["y"]], columns, 0)
    assert [r.value_by_name("a") for r in rows] == ["x", "y"]


def test_invalid_json_is_reported():
    with pytest.raises(KustoError):
        decode_table_header("{not json")