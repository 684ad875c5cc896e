"""
Phase manager for tracking the run lifecycle.
"""

import time
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETE = "complete"


_ALLOWED_TRANSITIONS = {
    RunPhase.IDLE: {RunPhase.RUNNING},
    RunPhase.RUNNING: {RunPhase.DRAINING},
    RunPhase.DRAINING: {RunPhase.COMPLETE},
    RunPhase.COMPLETE: set(),
}


class PhaseManager:
    """Tracks Idle -> Running -> Draining -> Complete and when each phase began."""

    def __init__(self):
        """Initialize the phase manager in the IDLE phase."""
        self.phase: RunPhase = RunPhase.IDLE
        self.phase_start_ts: float = time.time()
        self.history: List[Tuple[RunPhase, float]] = [(self.phase, self.phase_start_ts)]

        logger.debug("Initialized PhaseManager")

    def begin_phase(self, phase: RunPhase, timestamp: Optional[float] = None) -> None:
        """Move to a new phase.

        Args:
            phase: Phase to enter
            timestamp: When the phase began (defaults to current time)

        Raises:
            RuntimeError: If the transition is not allowed
        """
        if phase not in _ALLOWED_TRANSITIONS[self.phase]:
            raise RuntimeError(f"Invalid phase transition: {self.phase.value} -> {phase.value}")

        previous = self.phase
        self.phase = phase
        self.phase_start_ts = timestamp or time.time()
        self.history.append((phase, self.phase_start_ts))

        logger.info(f"Run phase: {previous.value} -> {phase.value}")

    def is_phase(self, phase: RunPhase) -> bool:
        return self.phase is phase

    def phase_durations(self) -> Dict[str, float]:
        """Seconds spent in each phase that has been left (or is current)."""
        durations = {}
        for (phase, start), (_, end) in zip(self.history, self.history[1:] + [(None, time.time())]):
            if phase is RunPhase.COMPLETE:
                continue
            durations[phase.value] = end - start
        return durations

    def get_phase_info(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'phase_start_ts': self.phase_start_ts,
            'phase_duration': time.time() - self.phase_start_ts,
        }

    def __repr__(self) -> str:
        return f"PhaseManager(phase='{self.phase.value}')"
