"""
DDL generation for model, inheritance and join tables.
"""

from .builder import SchemaBuilder

__all__ = ["SchemaBuilder"]
