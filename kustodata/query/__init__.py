"""Columns, rows, tables and datasets of Kusto query results, and v1 decoding."""