"""
Simulator - Fixed-step live simulation loop.

Provides:
- Frame time accumulation into fixed physics ticks
- Frame time clamping after stalls
- Step callbacks and telemetry collection
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping
import logging

from dynocal.car.vehicle import VehicleInputs
from dynocal.simulation.world import World

logger = logging.getLogger(__name__)


@dataclass
class SimulatorConfig:
    """Simulator configuration."""
    fixed_dt: float = 1 / 60     # Physics time step (60 Hz)
    max_dt: float = 0.1          # Maximum frame time
    enable_telemetry: bool = False
    telemetry_buffer_size: int = 10000

    def __post_init__(self):
        """Validate configuration."""
        if not self.fixed_dt > 0:
            raise ValueError(f"fixed_dt must be positive, got {self.fixed_dt}")
        if self.max_dt < self.fixed_dt:
            raise ValueError("max_dt must be at least fixed_dt")


class Simulator:
    """Drives a World at a fixed tick rate from variable frame times.

    Usage:
        sim = Simulator()
        player = sim.world.spawn("player")
        sim.advance(frame_dt, {"player": VehicleInputs(throttle=1.0)})
    """

    def __init__(self, config: SimulatorConfig | None = None, world: World | None = None):
        """Initialize simulator.

        Args:
            config: Simulator configuration. Uses defaults if None.
            world: World to drive. Creates an empty one if None.
        """
        self.config = config or SimulatorConfig()
        self.world = world or World()

        self._accumulator: float = 0.0
        self._telemetry_buffer: List[Dict[str, Any]] = []

        self._pre_step_callbacks: List[Callable] = []
        self._post_step_callbacks: List[Callable] = []

    @property
    def time(self) -> float:
        """Current simulation time."""
        return self.world.time

    def add_pre_step_callback(self, callback: Callable) -> None:
        """Add callback called before each tick with (simulator, dt)."""
        self._pre_step_callbacks.append(callback)

    def add_post_step_callback(self, callback: Callable) -> None:
        """Add callback called after each tick with (simulator, dt)."""
        self._post_step_callbacks.append(callback)

    def step(self, inputs: Mapping[str, VehicleInputs] | None = None) -> None:
        """Advance every actor by one fixed tick.

        Args:
            inputs: Mapping of actor id to inputs (idle if missing)
        """
        dt = self.config.fixed_dt
        inputs = inputs or {}

        for callback in self._pre_step_callbacks:
            callback(self, dt)

        for actor in self.world.actors:
            actor.update(inputs.get(actor.actor_id, VehicleInputs()), dt, self.world.bounds)

        self.world.advance_time(dt)

        if self.config.enable_telemetry:
            self._collect_telemetry()

        for callback in self._post_step_callbacks:
            callback(self, dt)

    def advance(self, frame_dt: float, inputs: Mapping[str, VehicleInputs] | None = None) -> int:
        """Consume a variable frame time in fixed ticks.

        Shift requests in ``inputs`` apply to the first tick only.

        Args:
            frame_dt: Real time since the previous frame in seconds
            inputs: Mapping of actor id to inputs

        Returns:
            Number of ticks simulated
        """
        if not frame_dt > 0:
            return 0
        if frame_dt > self.config.max_dt:
            logger.debug(f"Clamping frame time {frame_dt:.3f}s to {self.config.max_dt}s")
            frame_dt = self.config.max_dt
        self._accumulator += frame_dt

        ticks = 0
        current = dict(inputs or {})
        while self._accumulator >= self.config.fixed_dt:
            self.step(current)
            self._accumulator -= self.config.fixed_dt
            ticks += 1
            if ticks == 1:
                current = {
                    actor_id: VehicleInputs(i.throttle, i.brake, i.steering)
                    for actor_id, i in current.items()
                }
        return ticks

    def _collect_telemetry(self) -> None:
        frame = {
            "time": self.world.time,
            "frame": self.world.frame,
            "actors": {actor.actor_id: actor.get_telemetry() for actor in self.world.actors},
        }
        self._telemetry_buffer.append(frame)
        if len(self._telemetry_buffer) > self.config.telemetry_buffer_size:
            self._telemetry_buffer = self._telemetry_buffer[-self.config.telemetry_buffer_size // 2:]

    def get_telemetry(self) -> List[Dict[str, Any]]:
        """Get collected telemetry frames."""
        return self._telemetry_buffer.copy()

    def clear_telemetry(self) -> None:
        self._telemetry_buffer.clear()

    def reset(self) -> None:
        """Reset world, accumulator and telemetry."""
        self.world.reset()
        self._accumulator = 0.0
        self._telemetry_buffer.clear()

    def get_state(self) -> Dict[str, Any]:
        """Get complete simulation state."""
        return {
            "config": {
                "fixed_dt": self.config.fixed_dt,
                "max_dt": self.config.max_dt,
            },
            "world": self.world.get_state(),
        }
