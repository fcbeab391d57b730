"""
Database Testing Package

Tests for configuration loading, schema creation and the bot store.
"""
