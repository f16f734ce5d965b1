"""Gamebook engine tests."""
