# tests/fixtures/__init__.py
"""Shared test data for procgraph tests.

Available modules:
- processes: process specifications, sample process graphs and recording processes
"""
