"""
hwdispatch core

Path codec, coin registry, device link and session, result projection and
the operation router.
"""

__all__ = []
