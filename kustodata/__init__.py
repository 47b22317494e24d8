"""Decoding of Kusto query responses, column types and endpoint trust checks."""

__version__ = "0.1.0"