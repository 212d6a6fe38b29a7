import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Any


TOTAL_STEPS = 12

STEP_LABELS = (
    "Initializing analysis",
    "Validating constraints",
    "Firewall 1: pre-fill search",
    "Firewall 2: triangulation",
    "Classifying intent",
    "Checking source independence",
    "Running role analysis",
    "Executing mode strategy",
    "Firewall 5: post-hoc audit",
    "Checking temporal validity",
    "Generating final decision",
    "Post-processing",
    "Analysis complete",
)


@dataclass
class ProgressStep:
    index: int
    label: str
    started_at: float


def percent_for(index: int) -> int:
    """Percentage reported for a step index."""
    return round(index / TOTAL_STEPS * 100)


class ProgressTracker:
    """
    Tracks named pipeline steps and elapsed time for one session.

    Steps are append-only. Starting a lower index than already reached is
    allowed; elapsed time is always measured from the session start.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started_at = clock()
        self._steps: List[ProgressStep] = []

    @property
    def steps(self) -> List[ProgressStep]:
        return list(self._steps)

    @property
    def current(self) -> Optional[ProgressStep]:
        return self._steps[-1] if self._steps else None

    def start_step(self, index: int, label: Optional[str] = None) -> ProgressStep:
        if not 0 <= index <= TOTAL_STEPS:
            raise ValueError(f"Step index out of range: {index}")
        step = ProgressStep(
            index=index,
            label=label or STEP_LABELS[index],
            started_at=self._clock(),
        )
        self._steps.append(step)
        return step

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started_at) * 1000)

    def get_progress(self) -> Dict[str, Any]:
        step = self.current
        index = step.index if step else 0
        return {
            "step": index,
            "percent": percent_for(index),
            "elapsed_ms": self.elapsed_ms(),
            "label": step.label if step else "",
            "terminal": index == TOTAL_STEPS,
        }
