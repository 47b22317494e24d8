# kustodata

Client-side building blocks for reading Kusto query responses:

- **Column types** (`kustodata.coltypes`): the `ColumnType` enum,
  `normalize_column` for type names and aliases (`"date"`, `"int64"`,
  `"uuid"`, ...), `parse_value` to turn a raw JSON cell into a Python value,
  and `parse_timespan` / `format_timespan`.
- **Results** (`kustodata.query`): `Column`, `Row`, `Table`, `Dataset`,
  typed accessors such as `Row.long_by_name` or `Row.guid_by_index`, and
  decoding rows into your own dataclasses with `Row.to_struct` and
  `to_structs`.
- **v1 responses** (`kustodata.query.v1`): `dataset_from_reader` decodes a
  complete v1 JSON response into a `V1Dataset` with its result tables,
  table index, query status and query properties.
- **Fragmented v2 frames** (`kustodata.query.v2`): `FrameReader` splits a
  response into frame texts, `peek_frame_type` tells what each frame is,
  and `fast_json` decodes headers, fragments, data tables and completion
  frames. `tables` builds tables from them and decodes the
  `QueryProperties` and `QueryCompletionInformation` secondary tables.
- **Trusted endpoints** (`kustodata.trusted_endpoints`): checks that a
  cluster host may receive a token for a given login endpoint.
- **Errors** (`kustodata.errors`): `KustoError`, tagged with an `Op` and a
  `KustoError.Kind`, and `OneApiError` for errors reported by the service.
- **Once** (`kustodata.once`): `Once` and `OnceWithInit` run a function
  until it first succeeds and then keep its result.

No third-party libraries are needed.

## Installation

```
pip install .
```

## Reading a v1 response

```python
from dataclasses import dataclass, field

from kustodata.errors import Op
from kustodata.query.table import to_structs
from kustodata.query.v1 import dataset_from_reader


@dataclass
class Record:
    name: str = field(default="", metadata={"kusto": "Name"})
    count: int = 0


with open("response.json", "rb") as stream:
    dataset = dataset_from_reader(stream, Op.QUERY)

records = to_structs(Record, dataset.tables[0])
print(dataset.status)
```

A field takes the column named by its `"kusto"` metadata, or the column of
its own name; a tag of `"-"` skips the field. A response that is not JSON,
a row that carries an error, or exceptions reported in the response are
raised as `KustoError`.

## Reading v2 frames

```python
from kustodata.query.v2 import fast_json
from kustodata.query.v2.frames import FrameReader, FrameType, peek_frame_type

with open("response.json", "rb") as stream:
    reader = FrameReader(stream)
    header, offset = None, 0
    for frame in reader:
        kind = peek_frame_type(frame)
        if kind is FrameType.DATASET_HEADER:
            fast_json.validate_dataset_header(frame)
        elif kind is FrameType.DATA_TABLE:
            table = fast_json.decode_data_table(frame)
        elif kind is FrameType.TABLE_HEADER:
            header, offset = fast_json.decode_table_header(frame), 0
        elif kind is FrameType.TABLE_FRAGMENT:
            fragment = fast_json.decode_table_fragment(frame, header.columns, offset)
            offset += len(fragment.rows)
            for row in fragment.rows:
                print(row.index, row.values)
        elif kind is FrameType.TABLE_COMPLETION:
            completion = fast_json.decode_table_completion(frame)
        elif kind is FrameType.DATASET_COMPLETION:
            done = fast_json.decode_dataset_completion(frame)
```

`str(row)` gives the row as one CSV line.

## Checking a trusted endpoint

```python
from kustodata.trusted_endpoints import MatchRule, TrustedEndpoints

trusted = TrustedEndpoints({
    "https://login.example.com": {
        "AllowedKustoSuffixes": [".kusto.example.com"],
        "AllowedKustoHostnames": ["cluster.example.com"],
    },
})
trusted.add_trusted_hosts([MatchRule(".extra.example.com")], replace=False)
trusted.validate_trusted_endpoint("https://a.kusto.example.com", "https://login.example.com")
```

Loopback hosts are always trusted; an untrusted host raises `KustoError`.

## What this package does not do

- It sends no requests: there is no client, connection or authentication.
- It holds no built-in list of well-known endpoints; `TrustedEndpoints`
  trusts only the rules it is given.
- It does not assemble a whole v2 response into streamed tables for you;
  it reads and decodes the frames, and the loop over them is yours.
- It has no builder for request properties or query options.

## Running the tests

```
pip install .[test]
pytest
```