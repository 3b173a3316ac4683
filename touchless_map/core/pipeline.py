"""
Core pipeline orchestrator for touchless map control.

One call to tick() is one animation frame:

    FrameInput -> HandTracker -> HandSmootherBank -> GestureClassifier
    -> ControlModeStateMachine -> VectorCalculator -> FlickIntegrator
    -> ViewportDriver -> MapActuator

There are no threads here. The host drives tick() from its frame callback
and guarantees one tick in flight at a time; all filter state belongs to
this instance and can be discarded between any two ticks.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from touchless_map.control.actuator import (
    ActuatorCommand, LoggingActuator, MapActuator, ViewportConfig, ViewportDriver,
)
from touchless_map.control.fireworks import FireworksTrigger
from touchless_map.control.momentum import FlickConfig, FlickIntegrator
from touchless_map.control.vectors import DeadZone, VectorCalculator
from touchless_map.core.events import EventBus, Events
from touchless_map.core.types import (
    ControlMode, FrameInput, Hand, PanVector, PipelineResult, now_ms,
)
from touchless_map.detection.smoothing import EMASmoother, HandSmootherBank, SmoothingConfig
from touchless_map.detection.tracking import HandTracker
from touchless_map.recognition.control_mode import (
    ControlModeStateMachine, ModeConfig, ModeDecision,
)
from touchless_map.recognition.gesture_classifier import (
    GestureClassifier, GestureThresholds, pinch_distance,
)
from touchless_map.utils.logger import ControlLogger
from touchless_map.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Every tunable of the pipeline, one dataclass per stage."""
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    thresholds: GestureThresholds = field(default_factory=GestureThresholds)
    modes: ModeConfig = field(default_factory=ModeConfig)
    dead_zone: DeadZone = field(default_factory=DeadZone)
    pan_speed_amplifier: float = 1.4
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    flick: FlickConfig = field(default_factory=FlickConfig)
    fireworks_duration_ms: float = 5000.0
    min_hand_spread: float = 0.02
    metrics_window: int = 100

    @classmethod
    def from_dict(cls, d: dict) -> "PipelineConfig":
        """Build from a full config mapping (same layout as config.yaml)."""
        tracking = d.get("tracking", {})
        return cls(
            smoothing=SmoothingConfig.from_dict(d.get("smoothing", {}),
                                                max_hands=tracking.get("max_hands", 2)),
            thresholds=GestureThresholds.from_dict(d.get("gestures", {})),
            modes=ModeConfig.from_dict(d.get("modes", {})),
            dead_zone=DeadZone.from_dict(d.get("dead_zone", {})),
            pan_speed_amplifier=float(d.get("vectors", {}).get("pan_speed_amplifier", 1.4)),
            viewport=ViewportConfig.from_dict(d.get("viewport", {})),
            flick=FlickConfig.from_dict(d.get("flick", {})),
            fireworks_duration_ms=float(d.get("fireworks", {}).get("duration_ms", 5000.0)),
            min_hand_spread=float(tracking.get("min_hand_spread", 0.02)),
            metrics_window=int(d.get("performance", {}).get("metrics_window", 100)),
        )

    @classmethod
    def from_config(cls, config) -> "PipelineConfig":
        """Build from the loaded Config singleton."""
        sections = ("tracking", "smoothing", "gestures", "modes", "dead_zone", "vectors",
                    "viewport", "flick", "fireworks", "performance")
        return cls.from_dict({name: config.get_section(name) for name in sections})


class GesturePipeline:
    """Per-frame landmark-to-viewport pipeline for one tracking session.

    Example:
        >>> pipeline = GesturePipeline(PipelineConfig(), actuator=my_map)
        >>> pipeline.start()
        >>> result = pipeline.tick(FrameInput.from_recognizer_result(res), ts)
        >>> result.mode, result.pan_vector
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 actuator: Optional[MapActuator] = None,
                 event_bus: Optional[EventBus] = None,
                 perf: Optional[PerformanceMonitor] = None):
        self.config = config or PipelineConfig()
        self._actuator = actuator if actuator is not None else LoggingActuator()
        self._bus = event_bus or EventBus()
        self._perf = perf or PerformanceMonitor(self.config.metrics_window)
        self._control_log = ControlLogger()

        # Stateless stages, safe to share across sessions
        self._classifier = GestureClassifier(self.config.thresholds)
        self._vectors = VectorCalculator(self.config.dead_zone, self.config.pan_speed_amplifier)

        # Session state, created by start()
        self._tracker: Optional[HandTracker] = None
        self._smoothers: Optional[HandSmootherBank] = None
        self._pinch: Optional[EMASmoother] = None
        self._modes: Optional[ControlModeStateMachine] = None
        self._flick: Optional[FlickIntegrator] = None
        self._fireworks: Optional[FireworksTrigger] = None
        self._driver: Optional[ViewportDriver] = None

        self._running = False
        self._frame_id = 0
        self._hands_present = False
        self._primary_slot: Optional[int] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self):
        """Allocate all per-session state. Configuration errors raise here."""
        if self._running:
            return
        c = self.config
        self._tracker = HandTracker(c.smoothing.max_hands, c.min_hand_spread)
        self._smoothers = HandSmootherBank(c.smoothing.max_hands, c.smoothing.landmark_alpha)
        self._pinch = EMASmoother(c.smoothing.pinch_alpha)
        self._modes = ControlModeStateMachine.from_config(c.modes, self._classifier)
        self._flick = FlickIntegrator(c.flick)
        self._fireworks = FireworksTrigger(c.fireworks_duration_ms, self._bus)
        self._driver = ViewportDriver(c.viewport, self._actuator, self._bus)

        self._frame_id = 0
        self._hands_present = False
        self._primary_slot = None
        self._running = True
        logger.info("Pipeline started (max_hands=%d, debounce=%d, alpha=%.2f)",
                    c.smoothing.max_hands, c.modes.debounce_frames, c.smoothing.landmark_alpha)
        self._bus.emit(Events.SESSION_STARTED)

    def stop(self):
        """Discard session state. Safe to call between any two ticks."""
        if not self._running:
            return
        if self._fireworks is not None:
            self._fireworks.stop()
        self._running = False
        self._tracker = None
        self._smoothers = None
        self._pinch = None
        self._modes = None
        self._flick = None
        self._fireworks = None
        self._driver = None
        logger.info("Pipeline stopped after %d frames", self._frame_id)
        self._bus.emit(Events.SESSION_STOPPED, frames=self._frame_id)

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Tick
    # =========================================================================

    def tick(self, frame: Optional[FrameInput],
             timestamp_ms: Optional[float] = None) -> PipelineResult:
        """Run one frame.

        Args:
            frame: Hands from the vision collaborator, or None when the
                frame is not ready (the committed mode is held)
            timestamp_ms: Frame time; falls back to the frame's own
                timestamp, then the monotonic clock

        Returns:
            PipelineResult for this tick
        """
        if not self._running:
            logger.warning("tick() called on a stopped pipeline")
            return PipelineResult()

        now = timestamp_ms
        if now is None and frame is not None:
            now = frame.timestamp_ms
        if now is None:
            now = now_ms()

        self._frame_id += 1
        result = PipelineResult(self._modes.mode)
        result.frame_id = self._frame_id
        result.timestamp_ms = now
        hand: Optional[Hand] = None

        with self._perf.measure("total"):
            if frame is None:
                self._perf.record_drop()
            else:
                result.frame_ready = True
                with self._perf.measure("smoothing"):
                    hands = self._smooth(frame)
                result.hands = hands
                result.hand_count = len(hands)

                with self._perf.measure("classification"):
                    if hands:
                        hand = hands[0]
                        self._on_hand(hand, result, now)
                    else:
                        self._on_hands_lost(result, now)

            mode = self._modes.mode
            result.mode = mode

            with self._perf.measure("vectors"):
                pan, zoom = self._vectors.compute(mode, hand)
                result.pan_vector = pan
                result.zoom_vector = zoom

                was_flicking = self._flick.active
                momentum_delta = self._flick.step(now)
                if self._feed_flick(mode, hand, pan, now):
                    momentum_delta = None
                if was_flicking and not self._flick.active:
                    self._bus.emit(Events.FLICK_ENDED, timestamp_ms=now)

            result.fireworks_active = self._fireworks.update(now)
            result.momentum_active = self._flick.active

            with self._perf.measure("actuation"):
                command = self._driver.drive(now, mode, pan, zoom, momentum_delta)
            self._apply_command(command, result)

        self._perf.tick(now)
        result.latency_ms = self._perf.last_latency_ms("total")
        return result

    def _smooth(self, frame: FrameInput) -> List[Hand]:
        hands = self._tracker.update(frame)
        smoothed = [self._smoothers.smooth_hand(h) for h in hands]
        self._smoothers.release_missing(h.slot for h in hands)
        return smoothed

    def _on_hand(self, hand: Hand, result: PipelineResult, now: float):
        if not self._hands_present:
            self._hands_present = True
            logger.info("Hand detected")
            self._bus.emit(Events.HAND_DETECTED, hand=hand)

        if hand.slot != self._primary_slot:
            # Another hand became primary; its pinch history starts cold
            if self._primary_slot is not None:
                logger.debug("Primary hand moved from slot %d to %d",
                             self._primary_slot, hand.slot)
            self._pinch.reset()
            self._primary_slot = hand.slot

        pinch = self._pinch.smooth(pinch_distance(hand))
        decision = self._modes.update(hand, pinch)

        result.pinch_distance = pinch
        result.category = hand.top_category
        result.raw_mode = decision.raw
        result.rule = decision.rule
        if decision.changed:
            self._on_mode_changed(decision, result, now)

    def _on_hands_lost(self, result: PipelineResult, now: float):
        """No valid hand: commit IDLE now and drop transient gesture state."""
        decision = self._modes.hands_lost()
        self._pinch.reset()
        self._primary_slot = None
        self._flick.release_anchor()

        result.rule = decision.rule
        if self._hands_present:
            self._hands_present = False
            logger.info("Hand lost")
            self._bus.emit(Events.HAND_LOST)
        if decision.changed:
            self._on_mode_changed(decision, result, now)

    def _on_mode_changed(self, decision: ModeDecision, result: PipelineResult, now: float):
        previous, mode = decision.previous, decision.committed
        result.mode_changed = True
        self._control_log.log_mode_change(previous.value, mode.value,
                                          rule=decision.rule, frame_id=self._frame_id)
        self._bus.emit(Events.MODE_CHANGED, previous=previous, mode=mode, rule=decision.rule)

        if previous == ControlMode.PANNING:
            self._flick.release_anchor()
        if mode == ControlMode.PANNING:
            self._flick.cancel()
        if mode == ControlMode.FIREWORKS:
            self._fireworks.start(now)

    def _feed_flick(self, mode: ControlMode, hand: Optional[Hand],
                    pan: Optional[PanVector], now: float) -> bool:
        """Track the panning fingertip. Returns True when live pan took over."""
        if mode != ControlMode.PANNING or hand is None or pan is None or pan.in_dead_zone:
            self._flick.release_anchor()
            return False
        if self._flick.in_cooldown(now):
            return False

        took_over = self._flick.active
        if took_over:
            self._flick.cancel()

        tip = hand.index_tip
        momentum = self._flick.track(self.config.viewport.to_screen(tip.x, tip.y), now)
        if momentum is not None:
            self._control_log.log_flick(momentum.vx, momentum.vy)
            self._bus.emit(Events.FLICK_STARTED, vx=momentum.vx, vy=momentum.vy)
        return took_over

    def _apply_command(self, command: Optional[ActuatorCommand], result: PipelineResult):
        if command is None:
            return
        result.action = command.action
        result.pan_delta = command.pan_delta
        result.zoom_delta = command.zoom_delta
        detail = command.pan_delta if command.pan_delta is not None else command.zoom_delta
        self._control_log.log_command(command.action, detail)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def mode(self) -> ControlMode:
        return self._modes.mode if self._modes is not None else ControlMode.IDLE

    @property
    def frame_count(self) -> int:
        return self._frame_id

    @property
    def flick(self) -> Optional[FlickIntegrator]:
        return self._flick

    @property
    def fireworks(self) -> Optional[FireworksTrigger]:
        return self._fireworks

    @property
    def mode_history(self) -> List[ControlMode]:
        """Raw modes currently in the debounce window."""
        return self._modes.history if self._modes is not None else []

    @property
    def perf(self) -> PerformanceMonitor:
        return self._perf

    @property
    def control_log(self) -> ControlLogger:
        return self._control_log

    def build_state(self) -> dict:
        """State dict for status displays."""
        return {
            "running": self._running,
            "mode": self.mode.value,
            "frames": self._frame_id,
            "hand_present": self._hands_present,
            "momentum_active": bool(self._flick and self._flick.active),
            "fireworks_active": bool(self._fireworks and self._fireworks.active),
            "fps": self._perf.fps,
            "latency_ms": self._perf.total_latency_ms,
        }
