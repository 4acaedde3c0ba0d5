"""Tests for the cosmetic progress tracker."""

import asyncio
import random

import pytest

from aichat_builder.progress import PENDING_CEILING, PHASES, ProgressTracker, phase_for


def test_phase_for_thresholds():
    assert phase_for(0) == 0
    assert phase_for(19.9) == 0
    assert phase_for(20) == 1
    assert phase_for(99) == len(PHASES) - 1
    assert phase_for(100) == len(PHASES) - 1


def test_advance_is_capped_and_monotonic():
    tracker = ProgressTracker()
    tracker.advance(50)
    tracker.advance(-10)
    assert tracker.progress == 50
    tracker.advance(500)
    assert tracker.progress == PENDING_CEILING
    assert tracker.phase == "finalizing"


def test_complete_and_reset():
    seen = []
    tracker = ProgressTracker(on_change=lambda value, phase: seen.append((value, phase)))
    tracker.advance(30)
    tracker.complete()
    tracker.reset()
    assert seen == [(30, "generating"), (100.0, "finalizing"), (0.0, "thinking")]
    assert tracker.label == PHASES[0][1]


@pytest.mark.asyncio
async def test_ticks_until_completed():
    values = []
    tracker = ProgressTracker(
        on_change=lambda value, phase: values.append(value),
        interval=0.001,
        rng=random.Random(7),
    )
    tracker.start()
    assert tracker.running
    await asyncio.sleep(0.05)
    tracker.complete()

    assert not tracker.running
    assert values[0] == 0
    assert values[-1] == 100
    assert len(values) >= 3
    assert values == sorted(values)


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_freezes_progress():
    tracker = ProgressTracker(interval=0.001)
    tracker.start()
    await asyncio.sleep(0.01)
    tracker.stop()
    tracker.stop()
    frozen = tracker.progress
    await asyncio.sleep(0.01)
    assert tracker.progress == frozen
    assert not tracker.running


@pytest.mark.asyncio
async def test_start_resets_previous_run():
    tracker = ProgressTracker(interval=0.001)
    tracker.advance(60)
    tracker.start()
    assert tracker.progress == 0
    assert tracker.phase == "thinking"
    tracker.stop()
