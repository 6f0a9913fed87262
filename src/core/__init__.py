"""
Core business logic package for Tripbook.

All business logic, data access, and middleware live here.
Lambda handlers in src/handlers/ are thin wrappers that call into core/.
"""

__all__: list[str] = []
