"""Progress signaling for the detection pipeline."""

from dataclasses import dataclass

from psygnal import Signal


@dataclass
class ProgressEvent:
    """Progress of one pipeline run.

    Attributes
    ----------
    stage : str
        Stage that just finished (e.g. "watershed", "merge", "finalize").
    current : int
        1-based position of the stage.
    total : int
        Number of stages in the run.
    detail : str
        Short human-readable summary of the stage result.
    """

    stage: str
    current: int
    total: int
    detail: str = ""


class ProgressEmitter:
    """A simple emitter for progress events using psygnal signals."""

    _signal = Signal(ProgressEvent)

    @property
    def progress(self):
        """Get the progress signal for connecting callbacks."""
        return self._signal

    def emit(self, stage: str, current: int, total: int, detail: str = "") -> None:
        """Emit a progress event."""
        self._signal.emit(ProgressEvent(stage=stage, current=current, total=total, detail=detail))
