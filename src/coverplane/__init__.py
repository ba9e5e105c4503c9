"""Coverplane - coverage collection, aggregation and reporting."""

__version__ = "0.1.0"
