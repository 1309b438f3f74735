"""Utility modules for trc20watch."""

from trc20watch.utils.locks import RunLock

__all__ = ["RunLock"]
