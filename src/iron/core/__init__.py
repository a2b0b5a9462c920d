"""
Iron Core Module

Session context, chain descriptors, configuration, logging and the
exception hierarchy.
"""

__all__ = []
