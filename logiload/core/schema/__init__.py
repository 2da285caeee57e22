"""
Column resolution from the mapping catalog with sample-record fallback.
"""

from .resolver import SchemaResolver

__all__ = ["SchemaResolver"]
