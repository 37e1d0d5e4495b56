"""Frame-transition sequencer.

A theme can describe its animation as a list of transitions, each one
alternating between two frames a number of times at a fixed duration.
An optional opening list plays once before the main list, which then
loops forever.
"""

from dataclasses import dataclass

MIN_DURATION_MS = 50
MAX_DURATION_MS = 2000


@dataclass(frozen=True)
class FrameTransition:
    """Alternate from_frame -> to_frame, `repetitions` times."""

    from_frame: int
    to_frame: int
    repetitions: int = 1
    duration_ms: int = 100

    def __post_init__(self) -> None:
        if self.from_frame < 0 or self.to_frame < 0:
            raise ValueError(
                f"Frame indices must be non-negative: {self.from_frame}, {self.to_frame}"
            )
        if self.repetitions <= 0:
            raise ValueError(f"Repetitions must be positive, got {self.repetitions}")
        if not MIN_DURATION_MS <= self.duration_ms <= MAX_DURATION_MS:
            raise ValueError(
                f"Duration must be in {MIN_DURATION_MS}..{MAX_DURATION_MS}ms, "
                f"got {self.duration_ms}"
            )


def _check_transitions(transitions: list[FrameTransition], frame_count: int,
                       label: str) -> None:
    if not transitions:
        raise ValueError(f"{label} transition list must not be empty")
    for t in transitions:
        if t.from_frame >= frame_count or t.to_frame >= frame_count:
            raise ValueError(
                f"{label} transition F{t.from_frame}->F{t.to_frame} "
                f"out of range for {frame_count} frames"
            )


class FrameTransitionSequence:
    """Cursor over an optional opening list followed by a looping main list."""

    def __init__(self, transitions: list[FrameTransition], frame_count: int,
                 opening: list[FrameTransition] | None = None):
        _check_transitions(transitions, frame_count, "Main")
        if opening is not None:
            _check_transitions(opening, frame_count, "Opening")
        self.transitions = list(transitions)
        self.opening = list(opening) if opening else []
        self.frame_count = frame_count

        self.transition_index = 0
        self.repetition = 0
        self.showing_from = True
        self.in_opening = bool(self.opening)

    @property
    def has_opening(self) -> bool:
        return bool(self.opening)

    def _active(self) -> list[FrameTransition]:
        return self.opening if self.in_opening else self.transitions

    def current_transition(self) -> FrameTransition:
        return self._active()[self.transition_index]

    def current_frame_index(self) -> int:
        t = self.current_transition()
        return t.from_frame if self.showing_from else t.to_frame

    def current_duration(self) -> int:
        return self.current_transition().duration_ms

    def advance(self) -> bool:
        """Step to the next frame.

        Returns False only when the main list has just wrapped around to
        its first transition; finishing the opening list returns True.
        """
        if self.showing_from:
            self.showing_from = False
            return True

        self.showing_from = True
        self.repetition += 1
        if self.repetition < self.current_transition().repetitions:
            return True

        self.repetition = 0
        self.transition_index += 1
        if self.transition_index < len(self._active()):
            return True

        self.transition_index = 0
        if self.in_opening:
            self.in_opening = False
            return True
        return False

    def cursor(self) -> tuple[int, int, bool, bool]:
        return self.transition_index, self.repetition, self.showing_from, self.in_opening

    def restore(self, cursor: tuple[int, int, bool, bool]) -> None:
        """Return to a position previously taken with cursor()."""
        self.transition_index, self.repetition, self.showing_from, self.in_opening = cursor

    def reset(self, include_opening: bool = False) -> None:
        self.transition_index = 0
        self.repetition = 0
        self.showing_from = True
        self.in_opening = include_opening and self.has_opening

    def describe(self) -> str:
        t = self.current_transition()
        phase = "Opening" if self.in_opening else "Main"
        showing = "from" if self.showing_from else "to"
        return (
            f"{phase} transition {self.transition_index + 1}/{len(self._active())}: "
            f"F{t.from_frame}→F{t.to_frame} ({self.repetition + 1}/{t.repetitions}) "
            f"showing {showing} frame"
        )
