from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .context import BuildCtx
from .errors import PhaseError

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class Phase(Protocol):
    """One stage of the build; raises PhaseError on failure."""

    phase_id: str

    def run(self, ctx: BuildCtx) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    status: str
    ran_phases: List[str] = field(default_factory=list)
    error: Optional[PhaseError] = None
    iso_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_COMPLETED


def build_phases() -> List[Phase]:
    from .phases.assembly import AssemblyPhase
    from .phases.base import BasePhase
    from .phases.carrier import CarrierPhase
    from .phases.payload import PayloadPhase
    from .phases.preparation import PreparationPhase

    return [PreparationPhase(), BasePhase(), PayloadPhase(), CarrierPhase(), AssemblyPhase()]


def run_pipeline(ctx: BuildCtx, phases: Optional[Sequence[Phase]] = None) -> PipelineResult:
    """Run phases in order, stopping at the first failure. No retries."""

    if phases is None:
        phases = build_phases()

    ran: List[str] = []
    total = len(phases)
    for i, phase in enumerate(phases, start=1):
        logger.info("=== Phase %d/%d: %s ===", i, total, phase.phase_id)
        try:
            phase.run(ctx)
        except PhaseError as e:
            logger.error("Phase %s failed at step %s (code %d): %s", e.phase, e.step, e.code, e.reason)
            return PipelineResult(status=STATUS_FAILED, ran_phases=ran, error=e)
        ran.append(phase.phase_id)
        logger.info("Phase %s complete", phase.phase_id)

    return PipelineResult(status=STATUS_COMPLETED, ran_phases=ran, iso_path=ctx.iso_path)
