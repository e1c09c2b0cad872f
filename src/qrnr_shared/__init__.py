"""Shared library for the qrnr ordering services."""
