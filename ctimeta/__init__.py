"""CTI metadata entities, registry, untyped-entity conversion and package cache tools."""

__version__ = "0.1.0"