"""LimeOS installer ISO builder.

Core design goals:
- Fixed phase order (preparation, base, payload, carrier, assembly)
- Each phase derives its rootfs from an earlier snapshot
- Optional artifact cache for the expensive rootfs phases
- Every external command goes through one runner and is logged
"""

__all__ = []
