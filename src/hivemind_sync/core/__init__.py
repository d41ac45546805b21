"""Core async helpers shared by the vault and store adapters."""

from .async_utils import run_sync

__all__ = ["run_sync"]
