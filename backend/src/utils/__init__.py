"""
Utility modules for the SmileSys backend.

This package contains shared helper functions used across the application,
including datetime utilities, email helpers and best-effort side effects.
"""
