"""
Test helper utilities for PAMr testing.

This module provides builders for PAMGuard-style SQLite databases and
JSON binary exports.
"""
