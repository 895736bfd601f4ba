"""Hierarchical task tracking backend."""
