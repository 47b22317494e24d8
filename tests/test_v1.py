import io
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest

from kustodata.coltypes import ColumnType
from kustodata.errors import KustoError, Op
from kustodata.query.table import to_structs
from kustodata.query.v1 import (
    QueryProperties,
    QueryStatus,
    RawRow,
    TableIndexRow,
    dataset_from_reader,
    decode_v1,
    new_dataset,
    V1Response,
)

REQUEST_ID = "11111111-2222-3333-4444-555555555555"
SUB_ACTIVITY_ID = "66666666-7777-8888-9999-000000000000"
PROPS = '{"Visualization":null,"Title":null,"Accumulate":false,"Ymin":"NaN"}'
STATS = '{"ExecutionTime":0.0,"dataset_statistics":[{"table_row_count":3}]}'
LIMIT_ERROR = (
    "Query execution has exceeded the allowed limits (80DA0003): "
    "The results of this query exceed the set limit of 1 records."
)


def col(name, data_type, column_type):
    return {"ColumnName": name, "DataType": data_type, "ColumnType": column_type}


def success_payload():
    status_cols = [
        col("Timestamp", "DateTime", "datetime"),
        col("Severity", "Int32", "int"),
        col("SeverityName", "String", "string"),
        col("StatusCode", "Int32", "int"),
        col("StatusDescription", "String", "string"),
        col("Count", "Int32", "int"),
        col("RequestId", "Guid", "guid"),
        col("ActivityId", "Guid", "guid"),
        col("SubActivityId", "Guid", "guid"),
        col("ClientActivityId", "String", "string"),
    ]
    ts = "2023-12-03T13:17:49.4832956Z"
    return {
        "Tables": [
            {"TableName": "Table_0", "Columns": [col("a", "Int32", "int")], "Rows": [[1], [2], [3]]},
            {
                "TableName": "Table_1",
                "Columns": [col("a", "String", "string"), col("b", "Int32", "int")],
                "Rows": [["a", 1], ["b", 2], ["c", 3]],
            },
            {"TableName": "Table_2", "Columns": [col("Value", "String", "string")], "Rows": [[PROPS], [PROPS]]},
            {
                "TableName": "Table_3",
                "Columns": status_cols,
                "Rows": [
                    [ts, 4, "Info", 0, "Query completed successfully", 1, REQUEST_ID, REQUEST_ID, SUB_ACTIVITY_ID, "blab6"],
                    [ts, 6, "Stats", 0, STATS, 1, REQUEST_ID, REQUEST_ID, SUB_ACTIVITY_ID, "blab6"],
                ],
            },
            {
                "TableName": "Table_4",
                "Columns": [
                    col("Ordinal", "Int64", "long"),
                    col("Kind", "String", "string"),
                    col("Name", "String", "string"),
                    col("Id", "String", "string"),
                    col("PrettyName", "String", "string"),
                ],
                "Rows": [
                    [0, "QueryResult", "PrimaryResult", "e43f725a-26fd-4219-8869-30c21e1b139c", ""],
                    [1, "QueryResult", "PrimaryResult", "0f66e92a-8d0e-43da-8a66-ddb6bf84c49d", ""],
                    [2, "QueryProperties", "@ExtendedProperties", "d52bc55b-fc74-4a63-adb9-b72ff939e4c2", ""],
                    [3, "QueryStatus", "QueryStatus", "00000000-0000-0000-0000-000000000000", ""],
                ],
            },
        ]
    }


def data_type_only_payload():
    payload = success_payload()
    for table in payload["Tables"]:
        for column in table["Columns"]:
            del column["ColumnType"]
    return payload


def partial_error_payload():
    return {
        "Tables": [
            {
                "TableName": "Table_0",
                "Columns": [col("a", "Int32", "int")],
                "Rows": [[1], {"Exceptions": [LIMIT_ERROR]}],
            }
        ],
        "Exceptions": [LIMIT_ERROR],
    }


def as_stream(payload):
    return io.BytesIO(json.dumps(payload).encode("utf-8"))


@dataclass
class FirstTable:
    a: int = field(default=0, metadata={"kusto": "a"})


@dataclass
class SecondTable:
    a: str = field(default="", metadata={"kusto": "a"})
    b: int = field(default=0, metadata={"kusto": "b"})


def test_decode_success_tables():
    response = decode_v1(as_stream(success_payload()))
    assert response.exceptions is None
    assert [t.table_name for t in response.tables] == ["Table_0", "Table_1", "Table_2", "Table_3", "Table_4"]
    second = response.tables[1]
    assert [(c.column_name, c.data_type, c.column_type) for c in second.columns] == [
        ("a", "String", "string"),
        ("b", "Int32", "int"),
    ]
    assert [r.row for r in second.rows] == [["a", 1], ["b", 2], ["c", 3]]
    assert response.tables[3].rows[0].row[0] == "2023-12-03T13:17:49.4832956Z"
    assert response.tables[4].rows[2].row == [
        2, "QueryProperties", "@ExtendedProperties", "d52bc55b-fc74-4a63-adb9-b72ff939e4c2", ""
    ]


def test_decode_partial_error():
    response = decode_v1(as_stream(partial_error_payload()))
    assert len(response.tables) == 1
    table = response.tables[0]
    assert table.table_name == "Table_0"
    assert [(c.column_name, c.data_type, c.column_type) for c in table.columns] == [("a", "Int32", "int")]
    assert table.rows[0] == RawRow(row=[1])
    assert table.rows[1].errors == [LIMIT_ERROR]
    assert table.rows[1].row is None
    assert response.exceptions == [LIMIT_ERROR]


def test_decode_error_text():
    with pytest.raises(KustoError, match="General_BadRequest"):
        decode_v1(io.BytesIO(b"Bad request: General_BadRequest"))


def test_decode_empty():
    with pytest.raises(KustoError, match="No data"):
        decode_v1(io.BytesIO(b""))


@pytest.mark.parametrize("payload", [success_payload(), data_type_only_payload()])
def test_dataset_success(payload):
    ds = dataset_from_reader(as_stream(payload), Op.QUERY)
    assert ds.op is Op.QUERY
    assert ds.index == [
        TableIndexRow(0, "QueryResult", "PrimaryResult", "e43f725a-26fd-4219-8869-30c21e1b139c", ""),
        TableIndexRow(1, "QueryResult", "PrimaryResult", "0f66e92a-8d0e-43da-8a66-ddb6bf84c49d", ""),
        TableIndexRow(2, "QueryProperties", "@ExtendedProperties", "d52bc55b-fc74-4a63-adb9-b72ff939e4c2", ""),
        TableIndexRow(3, "QueryStatus", "QueryStatus", "00000000-0000-0000-0000-000000000000", ""),
    ]
    moment = datetime(2023, 12, 3, 13, 17, 49, 483295, tzinfo=timezone.utc)
    request = uuid.UUID(REQUEST_ID)
    sub = uuid.UUID(SUB_ACTIVITY_ID)
    assert ds.status == [
        QueryStatus(moment, 4, "Info", 0, "Query completed successfully", 1, request, request, sub, "blab6"),
        QueryStatus(moment, 6, "Stats", 0, STATS, 1, request, request, sub, "blab6"),
    ]
    assert ds.info == [QueryProperties(PROPS), QueryProperties(PROPS)]
    assert len(ds.tables) == 2
    assert to_structs(FirstTable, ds.tables[0].rows) == [FirstTable(1), FirstTable(2), FirstTable(3)]
    assert to_structs(SecondTable, ds.tables[1].rows) == [
        SecondTable("a", 1), SecondTable("b", 2), SecondTable("c", 3)
    ]
    assert ds.tables[1].columns[1].type is ColumnType.INT
    assert ds.tables[0].is_primary_result()


def test_dataset_partial_errors():
    with pytest.raises(KustoError, match="Query execution has exceeded the allowed limits"):
        dataset_from_reader(as_stream(partial_error_payload()), Op.QUERY)


def test_bool_as_int():
    payload = {
        "Tables": [
            {
                "TableName": "Table_0",
                "Columns": [col("b", "Boolean", "bool")],
                "Rows": [[False], [0], [True], [1], [None]],
            }
        ]
    }
    ds = dataset_from_reader(as_stream(payload), Op.QUERY)
    rows = ds.tables[0].rows
    assert rows[0].bool_by_index(0) is False
    assert rows[1].bool_by_index(0) is False
    assert rows[2].bool_by_index(0) is True
    assert rows[3].bool_by_index(0) is True
    assert rows[4].bool_by_index(0) is None


def test_single_table_is_primary():
    payload = {"Tables": [{"TableName": "T", "Columns": [col("x", "Int64", "long")], "Rows": [[7]]}]}
    ds = dataset_from_reader(as_stream(payload), Op.MGMT)
    table = ds.tables[0]
    assert table.name == "QueryResult"
    assert table.kind == "QueryResult"
    assert table.is_primary_result()
    assert table.rows[0].long_by_name("x") == 7
    assert ds.index == []


def test_no_tables():
    with pytest.raises(KustoError, match="no tables returned"):
        new_dataset(V1Response(tables=[]), Op.QUERY)


def test_invalid_column_type():
    payload = {"Tables": [{"TableName": "T", "Columns": [col("x", "Weird", "weird")], "Rows": []}]}
    with pytest.raises(KustoError, match="not valid"):
        dataset_from_reader(as_stream(payload), Op.QUERY)


def test_bad_cell_value():
    payload = {"Tables": [{"TableName": "T", "Columns": [col("x", "Guid", "guid")], "Rows": [["nope"]]}]}
    with pytest.raises(KustoError, match="unable to unmarshal column x"):
        dataset_from_reader(as_stream(payload), Op.QUERY)