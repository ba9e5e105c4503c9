"""Coverplane CLI."""
