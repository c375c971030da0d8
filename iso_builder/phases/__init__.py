"""Build phases, in the order the pipeline runs them."""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

from ..errors import CacheError, PhaseError
from ..lib.command import CmdResult, CommandError

if TYPE_CHECKING:
    from ..context import BuildCtx

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def step(phase: str, name: str, code: int) -> Iterator[None]:
    """Turn any failure inside the block into PhaseError(phase, name, code)."""

    logger.info("[%s] %s", phase, name)
    try:
        yield
    except PhaseError:
        raise
    except Exception as e:
        raise PhaseError(phase, name, code, cause=e) from e


def ensure_ok(result: Optional[CmdResult]) -> None:
    if result is not None and result.returncode != 0:
        raise CommandError(result)


def restore_from_cache(ctx: "BuildCtx", name: str, dest: Path) -> bool:
    """Restore entry ``name`` into ``dest``; any failure means "rebuild"."""

    if ctx.cache is None or not ctx.cache.has_entry(name):
        return False
    logger.info("Found cached %s rootfs, restoring...", name)
    try:
        ctx.fs.remove_all(dest)
        ctx.cache.restore(name, dest)
    except (CacheError, OSError) as e:
        logger.warning("Failed to restore %s from cache, rebuilding: %s", name, e)
        return False
    return True


def save_to_cache(ctx: "BuildCtx", name: str, src: Path) -> None:
    if ctx.cache is None:
        return
    try:
        ctx.cache.save(src, name)
    except (CacheError, OSError) as e:
        logger.warning("Failed to cache %s rootfs: %s", name, e)


def package_cache(ctx: "BuildCtx", rootfs: Path):
    """Shared .deb cache bound into ``rootfs``, or a no-op without a cache."""

    if ctx.cache is None:
        return contextlib.nullcontext(False)
    return ctx.cache.shared_package_cache(rootfs)


__all__ = ["step", "ensure_ok", "package_cache", "restore_from_cache", "save_to_cache"]
