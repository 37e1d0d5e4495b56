"""Tests for the frame-transition sequencer."""

import pytest

from glyph_player.transitions import FrameTransition, FrameTransitionSequence


def _run(seq: FrameTransitionSequence, steps: int) -> tuple[list[int], list[bool]]:
    frames, results = [], []
    for _ in range(steps):
        results.append(seq.advance())
        frames.append(seq.current_frame_index())
    return frames, results


class TestFrameTransition:
    """Test transition validation."""

    def test_valid(self):
        t = FrameTransition(0, 1, 3, 100)
        assert (t.from_frame, t.to_frame, t.repetitions, t.duration_ms) == (0, 1, 3, 100)

    def test_zero_repetitions_rejected(self):
        with pytest.raises(ValueError):
            FrameTransition(0, 1, 0, 100)

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            FrameTransition(-1, 1, 1, 100)

    @pytest.mark.parametrize("duration", [49, 2001])
    def test_duration_out_of_range_rejected(self, duration):
        with pytest.raises(ValueError):
            FrameTransition(0, 1, 1, duration)

    @pytest.mark.parametrize("duration", [50, 2000])
    def test_duration_bounds_inclusive(self, duration):
        assert FrameTransition(0, 1, 1, duration).duration_ms == duration


class TestSequenceConstruction:
    """Test sequence validation against the frame set."""

    def test_empty_main_list_rejected(self):
        with pytest.raises(ValueError):
            FrameTransitionSequence([], 4)

    def test_empty_opening_list_rejected(self):
        with pytest.raises(ValueError):
            FrameTransitionSequence([FrameTransition(0, 1)], 4, opening=[])

    def test_index_beyond_frames_rejected(self):
        with pytest.raises(ValueError):
            FrameTransitionSequence([FrameTransition(0, 4)], 4)

    def test_opening_index_beyond_frames_rejected(self):
        with pytest.raises(ValueError):
            FrameTransitionSequence([FrameTransition(0, 1)], 2, opening=[FrameTransition(2, 0)])

    def test_starts_on_from_frame(self):
        seq = FrameTransitionSequence([FrameTransition(2, 3, 1, 120)], 4)
        assert seq.current_frame_index() == 2
        assert seq.current_duration() == 120


class TestAdvance:
    """Test stepping through transitions."""

    def test_single_transition_three_repetitions(self):
        seq = FrameTransitionSequence([FrameTransition(0, 1, 3, 100)], 2)
        frames, results = _run(seq, 6)
        assert frames == [1, 0, 1, 0, 1, 0]
        assert results == [True, True, True, True, True, False]

    def test_moves_to_next_transition(self):
        seq = FrameTransitionSequence(
            [FrameTransition(0, 1, 1, 100), FrameTransition(2, 3, 1, 200)], 4
        )
        frames, results = _run(seq, 4)
        assert frames == [1, 2, 3, 0]
        assert results == [True, True, True, False]

    def test_duration_follows_transition(self):
        seq = FrameTransitionSequence(
            [FrameTransition(0, 1, 1, 100), FrameTransition(2, 3, 1, 200)], 4
        )
        assert seq.current_duration() == 100
        seq.advance()
        seq.advance()
        assert seq.current_duration() == 200

    def test_opening_plays_once_then_main_loops(self):
        seq = FrameTransitionSequence(
            [FrameTransition(0, 1, 1, 100)], 4, opening=[FrameTransition(2, 3, 1, 300)]
        )
        assert seq.in_opening
        assert seq.current_frame_index() == 2
        frames, results = _run(seq, 6)
        assert frames == [3, 0, 1, 0, 1, 0]
        # finishing the opening is not a wrap of the main sequence
        assert results == [True, True, True, False, True, False]
        assert not seq.in_opening


class TestReset:
    """Test reset with and without the opening sequence."""

    def _sequence(self) -> FrameTransitionSequence:
        return FrameTransitionSequence(
            [FrameTransition(0, 1, 2, 100)], 4, opening=[FrameTransition(2, 3, 1, 300)]
        )

    def test_reset_without_opening_starts_main(self):
        seq = self._sequence()
        _run(seq, 3)
        seq.reset()
        assert not seq.in_opening
        assert seq.current_frame_index() == 0
        assert seq.repetition == 0

    def test_reset_with_opening_replays_it(self):
        seq = self._sequence()
        _run(seq, 5)
        seq.reset(include_opening=True)
        assert seq.in_opening
        assert seq.current_frame_index() == 2

    def test_reset_with_opening_without_one(self):
        seq = FrameTransitionSequence([FrameTransition(0, 1)], 2)
        seq.advance()
        seq.reset(include_opening=True)
        assert not seq.in_opening
        assert seq.current_frame_index() == 0

    def test_restore_cursor_after_reset(self):
        seq = self._sequence()
        _run(seq, 3)
        saved = seq.cursor()
        assert seq.current_frame_index() == 1
        seq.reset(include_opening=True)
        seq.restore(saved)
        assert not seq.in_opening
        assert seq.current_frame_index() == 1
        assert seq.cursor() == saved


class TestDescribe:
    def test_describe_mentions_phase_and_frames(self):
        seq = FrameTransitionSequence(
            [FrameTransition(0, 1, 3, 100)], 2, opening=[FrameTransition(1, 0, 1, 100)]
        )
        text = seq.describe()
        assert text.startswith("Opening transition 1/1")
        assert "F1→F0" in text
        assert "showing from frame" in text
