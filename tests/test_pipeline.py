"""
Tests for the Per-Frame Pipeline
================================

End-to-end scenarios through smoothing, classification, debouncing,
vectors, momentum and the actuator.
"""

import pytest

from touchless_map.control.actuator import LoggingActuator
from touchless_map.core.events import EventBus, Events
from touchless_map.core.pipeline import GesturePipeline, PipelineConfig
from touchless_map.core.types import ControlMode, FrameInput, Landmark
from touchless_map.recognition.gesture_classifier import pinch_distance

from conftest import (
    frame_of, make_hand, open_palm_landmarks, pinch_landmarks, pointing_at,
    pointing_landmarks,
)

TICK = 16.0


class FailingActuator:
    def pan_by(self, dx_px, dy_px):
        raise RuntimeError("map gone")

    def zoom_by(self, delta):
        raise RuntimeError("map gone")


@pytest.fixture
def actuator():
    return LoggingActuator()


@pytest.fixture
def pipeline(actuator):
    p = GesturePipeline(PipelineConfig(), actuator=actuator, event_bus=EventBus())
    p.start()
    yield p
    p.stop()


def run(pipeline, frames, start_ms=0.0):
    """Tick each frame TICK ms apart; returns the results."""
    return [pipeline.tick(frame, timestamp_ms=start_ms + i * TICK)
            for i, frame in enumerate(frames)]


class TestScenarios:
    """The three reference end-to-end scenarios."""

    def test_a_pointing_right_of_centre_pans_right(self, pipeline):
        frames = [frame_of(pointing_at(0.9, 0.5)) for _ in range(3)]
        results = run(pipeline, frames)

        final = results[-1]
        assert final.mode == ControlMode.PANNING
        assert final.mode_changed
        assert final.rule == "pointing_up"
        assert final.pan_vector is not None
        assert not final.pan_vector.in_dead_zone
        assert final.pan_vector.x > 0
        assert final.pan_vector.speed > 0

    def test_b_coincident_thumb_and_index_zoom_out(self, pipeline):
        results = run(pipeline, [frame_of(pinch_landmarks()) for _ in range(3)])

        final = results[-1]
        assert final.mode == ControlMode.ZOOM_OUT
        assert final.pinch_distance == pytest.approx(0.0)
        assert final.zoom_vector.direction == ControlMode.ZOOM_OUT

    def test_c_lost_hands_commit_idle_immediately(self, pipeline, event_log):
        run(pipeline, [frame_of(pointing_at(0.9, 0.5)) for _ in range(3)])
        assert pipeline.mode == ControlMode.PANNING
        assert pipeline.flick.has_anchor

        results = run(pipeline, [frame_of() for _ in range(3)], start_ms=3 * TICK)

        # IDLE on the very first empty frame, no debounce wait
        assert results[0].mode == ControlMode.IDLE
        assert results[0].mode_changed
        assert all(r.mode == ControlMode.IDLE for r in results)
        assert not pipeline.flick.has_anchor
        assert pipeline.mode_history == []
        assert [name for name, _ in event_log].count(Events.HAND_LOST) == 1

        # Pinch smoother restarts cold
        after = run(pipeline, [frame_of(pinch_landmarks())], start_ms=6 * TICK)
        assert after[0].pinch_distance == pytest.approx(0.0)


class TestFrameHandling:

    def test_debounce_holds_idle_for_two_frames(self, pipeline):
        results = run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        assert [r.mode for r in results] == [ControlMode.IDLE, ControlMode.IDLE,
                                             ControlMode.PANNING]
        assert [r.raw_mode for r in results] == [ControlMode.PANNING] * 3

    def test_frame_not_ready_holds_mode(self, pipeline, actuator):
        run(pipeline, [frame_of(pointing_at(0.9, 0.5)) for _ in range(3)])
        result = pipeline.tick(None, timestamp_ms=3 * TICK)

        assert not result.frame_ready
        assert result.mode == ControlMode.PANNING
        assert not result.mode_changed
        assert result.action is None
        assert pipeline.perf.dropped_frames == 1

    def test_malformed_second_hand_does_not_abort_frame(self, pipeline):
        bad = pointing_landmarks()[:15]
        results = run(pipeline, [frame_of(pointing_landmarks(), bad) for _ in range(3)])
        assert results[-1].hand_count == 1
        assert results[-1].mode == ControlMode.PANNING

    def test_malformed_only_hand_counts_as_lost(self, pipeline):
        nan_hand = pointing_landmarks()
        nan_hand[3] = Landmark(float("nan"), 0.5, 0.0)
        result = pipeline.tick(frame_of(nan_hand), timestamp_ms=0.0)
        assert result.hand_count == 0
        assert result.rule == "no_hands"
        assert result.mode == ControlMode.IDLE

    def test_category_label_takes_precedence(self, pipeline):
        frames = [frame_of(pointing_landmarks(), categories=[["Closed_Fist"]])
                  for _ in range(3)]
        results = run(pipeline, frames)
        assert results[-1].mode == ControlMode.IDLE
        assert results[-1].category == "Closed_Fist"
        assert results[-1].rule == "category:Closed_Fist"

    def test_non_list_hands_container_counts_as_lost(self, pipeline):
        run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        result = pipeline.tick(FrameInput(hands=5), timestamp_ms=3 * TICK)
        assert result.frame_ready
        assert result.hand_count == 0
        assert result.rule == "no_hands"
        assert result.mode == ControlMode.IDLE

    def test_malformed_category_entry_falls_back_to_geometry(self, pipeline):
        frames = [FrameInput(hands=[pointing_landmarks()], categories=[7])
                  for _ in range(3)]
        results = run(pipeline, frames)
        assert results[-1].category is None
        assert results[-1].mode == ControlMode.PANNING
        assert results[-1].rule == "pointing_up"

    def test_string_category_entry_is_one_label(self, pipeline):
        frames = [frame_of(pointing_landmarks(), categories=["Closed_Fist"])
                  for _ in range(3)]
        results = run(pipeline, frames)
        assert results[-1].category == "Closed_Fist"
        assert results[-1].mode == ControlMode.IDLE
        assert results[-1].rule == "category:Closed_Fist"

    def test_pinch_history_restarts_when_primary_slot_changes(self, pipeline):
        first = pipeline.tick(frame_of(pinch_landmarks(), pointing_landmarks()),
                              timestamp_ms=0.0)
        assert first.pinch_distance == pytest.approx(0.0)

        # Slot 0 turns malformed, so the pointing hand in slot 1 is primary
        second = pipeline.tick(frame_of(pinch_landmarks()[:10], pointing_landmarks()),
                               timestamp_ms=TICK)
        assert second.hands[0].slot == 1
        expected = pinch_distance(make_hand(pointing_landmarks()))
        assert second.pinch_distance == pytest.approx(expected)

    def test_recognizer_result_adapter(self, pipeline):
        class Category:
            def __init__(self, name):
                self.category_name = name

        class Result:
            hand_landmarks = [pointing_landmarks()]
            gestures = [[Category("Pointing_Up"), Category("None")]]

        frames = [FrameInput.from_recognizer_result(Result()) for _ in range(3)]
        results = run(pipeline, frames)
        assert results[-1].mode == ControlMode.PANNING
        assert results[-1].rule == "category:Pointing_Up"


class TestActuation:

    def test_live_pan_reaches_actuator(self, pipeline, actuator):
        results = run(pipeline, [frame_of(pointing_at(0.9, 0.5)) for _ in range(5)])
        assert results[-1].action == "pan"
        assert results[-1].pan_delta[0] > 0
        assert actuator.pan_calls >= 1
        assert actuator.zoom_calls == 0

    def test_zoom_out_reaches_actuator(self, pipeline, actuator):
        # Pinch held right of centre so the fingertip leaves the dead zone
        frames = [frame_of(pinch_landmarks(dx=0.4)) for _ in range(5)]
        results = run(pipeline, frames)
        assert results[-1].mode == ControlMode.ZOOM_OUT
        assert results[-1].action == "zoom"
        assert results[-1].zoom_delta < 0
        assert actuator.pan_calls == 0

    def test_flick_launches_and_coasts(self, pipeline, actuator, event_log):
        run(pipeline, [frame_of(pointing_at(0.9, 0.5)) for _ in range(3)])

        # Fast upward swipe: smoothed tip moves 0.15 * 720 px in 16 ms
        swipe = pipeline.tick(frame_of(pointing_at(0.9, 0.2)), timestamp_ms=3 * TICK)
        assert swipe.momentum_active
        assert Events.FLICK_STARTED in [name for name, _ in event_log]

        # Hand leaves; momentum keeps panning, up the screen = positive y
        coast = pipeline.tick(frame_of(), timestamp_ms=4 * TICK)
        assert coast.mode == ControlMode.IDLE
        assert coast.action == "momentum"
        assert coast.pan_delta[1] > 0

        now = 5 * TICK
        while pipeline.flick.active:
            pipeline.tick(frame_of(), timestamp_ms=now)
            now += TICK
        assert Events.FLICK_ENDED in [name for name, _ in event_log]
        assert pipeline.tick(frame_of(), timestamp_ms=now).action is None

    def test_repeated_timestamp_sends_no_momentum(self, pipeline, actuator):
        run(pipeline, [frame_of(pointing_at(0.9, 0.5)) for _ in range(3)])
        pipeline.tick(frame_of(pointing_at(0.9, 0.2)), timestamp_ms=3 * TICK)
        assert pipeline.flick.active
        calls = actuator.pan_calls

        repeat = pipeline.tick(frame_of(), timestamp_ms=3 * TICK)
        assert repeat.action is None
        assert repeat.momentum_active
        assert actuator.pan_calls == calls

    def test_actuator_failure_never_raises(self):
        bus = EventBus()
        failures = []
        bus.subscribe(Events.ACTUATOR_FAILED, lambda **kw: failures.append(kw))
        p = GesturePipeline(PipelineConfig(), actuator=FailingActuator(), event_bus=bus)
        p.start()

        results = run(p, [frame_of(pointing_at(0.9, 0.5)) for _ in range(5)])
        assert results[-1].mode == ControlMode.PANNING
        assert failures


class TestFireworks:

    def test_open_palm_label_starts_fireworks(self, pipeline, event_log):
        frames = [frame_of(open_palm_landmarks(), categories=[["Open_Palm"]])
                  for _ in range(3)]
        results = run(pipeline, frames)
        assert results[-1].mode == ControlMode.FIREWORKS
        assert results[-1].fireworks_active
        assert Events.FIREWORKS_STARTED in [name for name, _ in event_log]

        # Still running after the hand goes away, stops after 5 s
        assert pipeline.tick(frame_of(), timestamp_ms=1000.0).fireworks_active
        assert not pipeline.tick(frame_of(), timestamp_ms=6000.0).fireworks_active
        assert Events.FIREWORKS_STOPPED in [name for name, _ in event_log]


class TestLifecycle:

    def test_tick_before_start(self):
        p = GesturePipeline(PipelineConfig())
        result = p.tick(frame_of(pointing_landmarks()), timestamp_ms=0.0)
        assert result.mode == ControlMode.IDLE
        assert result.frame_id == 0

    def test_stop_discards_state(self, pipeline, event_log):
        run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        assert pipeline.mode == ControlMode.PANNING

        pipeline.stop()
        assert not pipeline.is_running
        assert pipeline.mode == ControlMode.IDLE

        pipeline.start()
        assert pipeline.tick(frame_of(pointing_landmarks()), 0.0).mode == ControlMode.IDLE
        names = [name for name, _ in event_log]
        assert Events.SESSION_STOPPED in names
        assert Events.SESSION_STARTED in names

    def test_mode_change_events(self, pipeline, event_log):
        run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        changes = [kw for name, kw in event_log if name == Events.MODE_CHANGED]
        assert len(changes) == 1
        assert changes[0]["previous"] == ControlMode.IDLE
        assert changes[0]["mode"] == ControlMode.PANNING
        assert pipeline.control_log.total_mode_changes == 1

    def test_invalid_config_raises_at_construction(self):
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"smoothing": {"landmark_alpha": 0}})
        with pytest.raises(ValueError):
            PipelineConfig.from_dict({"modes": {"debounce_frames": 0}})

    def test_latency_is_this_ticks_own(self, pipeline):
        results = run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        assert results[-1].latency_ms == pipeline.perf.last_latency_ms("total")

    def test_build_state(self, pipeline):
        run(pipeline, [frame_of(pointing_landmarks()) for _ in range(3)])
        state = pipeline.build_state()
        assert state["mode"] == "PANNING"
        assert state["hand_present"] is True
        assert state["frames"] == 3
