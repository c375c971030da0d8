from __future__ import annotations

import logging

from ..context import BuildCtx
from ..errors import PhaseError
from ..lib.resolve import ResolveError
from . import step

logger = logging.getLogger(__name__)


class PreparationPhase:
    """Fetch component binaries matching the build's major version."""

    phase_id = "preparation"

    def run(self, ctx: BuildCtx) -> None:
        with step(self.phase_id, "init", -1):
            if ctx.resolver is None:
                raise RuntimeError("no release resolver configured")
            ctx.fs.mkdir_all(ctx.components_dir)

        for c in ctx.cfg.components:
            try:
                ctx.resolver.fetch_component(c.repository, c.source, ctx.version, ctx.components_dir)
            except ResolveError as e:
                if c.required:
                    raise PhaseError(self.phase_id, f"fetch {c.source}", -2, cause=e) from e
                logger.warning("Skipping optional component %s (%s): %s", c.source, e.code, e)
                continue
            logger.info("Fetched component %s", c.source)
