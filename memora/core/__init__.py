"""Core helpers shared by every Memora Hub module."""

from memora.core.utils import as_utc, generate_id, utc_now

__all__ = ["as_utc", "generate_id", "utc_now"]
