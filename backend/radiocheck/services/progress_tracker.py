"""
Weighted progress reporting for a verification run.

Maps step-local fractions onto one overall percentage and pushes
``(percentage, message)`` pairs to a sink, usually a ProgressStream.
Reported percentages never go backwards.
"""
from dataclasses import dataclass
from typing import Callable, Optional
import time

import structlog

logger = structlog.get_logger()

ProgressSink = Callable[[float, str], None]


@dataclass
class ProgressStep:
    """Defines a step in the processing pipeline."""
    name: str
    description: str
    weight: float  # Weight of this step in overall progress (0-1)


class ProgressTracker:
    """
    Usage:
        tracker = create_verification_tracker(stream.progress)
        tracker.start_step("transcribe")
        tracker.update(0.5, "Transcribiendo...")
        tracker.complete_step()
    """

    def __init__(self, sink: Optional[ProgressSink], steps: list[ProgressStep], label: Optional[str] = None):
        self.sink = sink
        self.steps = steps
        self.label = label
        self.current_step_idx = -1
        self.step_start_time: Optional[float] = None
        self.progress = 0.0

        total_weight = sum(s.weight for s in steps)
        self.normalized_weights = [s.weight / total_weight for s in steps]
        self.cumulative_weights = []
        cumsum = 0.0
        for w in self.normalized_weights:
            self.cumulative_weights.append(cumsum)
            cumsum += w

    def _emit(self, progress: float, message: str) -> None:
        self.progress = max(self.progress, min(100.0, progress))
        if self.sink:
            self.sink(self.progress, message)

    def start_step(self, step_name: str, message: Optional[str] = None):
        for i, step in enumerate(self.steps):
            if step.name == step_name:
                self.current_step_idx = i
                break
        else:
            logger.warning("progress.unknown_step", step_name=step_name)
            return

        self.step_start_time = time.time()
        step = self.steps[self.current_step_idx]
        base_progress = self.cumulative_weights[self.current_step_idx] * 100
        self._emit(base_progress, message or step.description)

        logger.info(
            "progress.step_start",
            run=self.label,
            step=step_name,
            step_num=self.current_step_idx + 1,
            total_steps=len(self.steps),
            progress=base_progress,
        )

    def update(self, step_progress: float, message: Optional[str] = None):
        """
        Update progress within current step.

        Args:
            step_progress: Progress within this step (0.0 to 1.0)
            message: Optional message to display
        """
        if self.current_step_idx < 0:
            return

        step_progress = max(0.0, min(1.0, step_progress))
        base_progress = self.cumulative_weights[self.current_step_idx]
        step_weight = self.normalized_weights[self.current_step_idx]
        overall_progress = (base_progress + step_progress * step_weight) * 100
        self._emit(overall_progress, message or self.steps[self.current_step_idx].description)

    def complete_step(self, message: Optional[str] = None):
        if self.current_step_idx < 0:
            return

        step = self.steps[self.current_step_idx]
        elapsed = time.time() - self.step_start_time if self.step_start_time else 0
        if self.current_step_idx < len(self.cumulative_weights) - 1:
            end_progress = self.cumulative_weights[self.current_step_idx + 1] * 100
        else:
            end_progress = 100.0
        self._emit(end_progress, message or step.description)

        logger.info(
            "progress.step_complete",
            run=self.label,
            step=step.name,
            elapsed_sec=round(elapsed, 1),
            progress=end_progress,
        )


def create_verification_tracker(sink: Optional[ProgressSink], label: Optional[str] = None) -> ProgressTracker:
    """Tracker for one audio verification (starts at 0/5/15/30/90/98 %)."""
    return ProgressTracker(sink, [
        ProgressStep("lock", "Iniciando sistema y adquiriendo recursos...", 0.05),
        ProgressStep("acquire", "Descargando audio...", 0.10),
        ProgressStep("compress", "Optimizando audio...", 0.15),
        ProgressStep("transcribe", "Iniciando transcripción con IA...", 0.60),
        ProgressStep("match", "Transcripción completada. Analizando contenido...", 0.08),
        ProgressStep("persist", "Análisis completado. Guardando resultados...", 0.02),
    ], label=label)
