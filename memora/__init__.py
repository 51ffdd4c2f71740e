"""
Memora Hub - authentication and group-scoped authorization.

Roles and capabilities live in memora.auth, persistence in memora.storage,
the HTTP API in memora.api.
"""

__version__ = "0.1.0"
