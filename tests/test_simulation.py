"""Tests for the live simulation loop."""

import pytest

from dynocal.car.config import CarConfig
from dynocal.car.vehicle import VehicleInputs
from dynocal.simulation.actor import (
    BoxBody,
    DriverIntent,
    OpenCollisionSystem,
    VehicleActor,
    WorldBounds,
    BODY_WIDTH_PX,
    resolve_intent,
)
from dynocal.simulation.simulator import Simulator, SimulatorConfig
from dynocal.simulation.world import World


class WallSystem:
    """Collision system with a wall at x = wall_x pixels."""

    def __init__(self, wall_x=100.0):
        self.wall_x = wall_x

    def create_box(self, position, width, height, options=None):
        return BoxBody(x=position[0], y=position[1], width=width, height=height)

    def separate_body(self, body, on_collision):
        if body.x > self.wall_x:
            body.set_position(self.wall_x, body.y)
            on_collision(body)


class TestResolveIntent:
    """Test digital control resolution."""

    def test_forward(self):
        """Test forward gives full throttle."""
        actor = VehicleActor(OpenCollisionSystem())
        inputs = resolve_intent(DriverIntent(forward=True, left=True), actor.vehicle)
        assert inputs.throttle == 1.0
        assert inputs.steering == -1.0

    def test_reverse_at_rest(self):
        """Test reverse at rest requests negative throttle."""
        actor = VehicleActor(OpenCollisionSystem())
        assert resolve_intent(DriverIntent(reverse=True), actor.vehicle).throttle == -1.0

    def test_reverse_while_rolling_forward_brakes(self):
        """Test reverse while moving forward brakes instead."""
        actor = VehicleActor(OpenCollisionSystem())
        for _ in range(60):
            actor.update(VehicleInputs(throttle=1.0), 1 / 60)
        inputs = resolve_intent(DriverIntent(reverse=True), actor.vehicle)
        assert inputs.throttle == 0.0
        assert inputs.brake == pytest.approx(0.6)

    def test_forward_in_manual_reverse_brakes(self):
        """Test forward in manual reverse brakes."""
        actor = VehicleActor(OpenCollisionSystem())
        actor.vehicle.set_manual_mode(True)
        actor.vehicle.shift_down()
        actor.vehicle.shift_down()
        inputs = resolve_intent(DriverIntent(forward=True), actor.vehicle)
        assert inputs.throttle == 0.0
        assert inputs.brake == 1.0

    def test_conflicting_intents_cancel(self):
        """Test forward and reverse together give no throttle."""
        actor = VehicleActor(OpenCollisionSystem())
        inputs = resolve_intent(DriverIntent(forward=True, reverse=True, left=True, right=True), actor.vehicle)
        assert inputs.throttle == 0.0
        assert inputs.steering == 0.0


class TestVehicleActor:
    """Test actor stepping and collisions."""

    def test_body_follows_vehicle(self):
        """Test the collision body tracks the vehicle."""
        actor = VehicleActor(OpenCollisionSystem(), start=(10.0, 20.0, 0.0))
        for _ in range(30):
            assert not actor.update(VehicleInputs(throttle=1.0), 1 / 60)
        assert actor.body.x == pytest.approx(actor.position[0])
        assert actor.position[0] > 10.0

    def test_wall_pushes_back(self):
        """Test collision corrections are folded into the vehicle."""
        actor = VehicleActor(WallSystem(100.0), start=(90.0, 0.0, 0.0))
        hits = [actor.update(VehicleInputs(throttle=1.0), 1 / 60) for _ in range(120)]
        assert any(hits)
        assert actor.collisions > 0
        assert actor.position[0] <= 100.0
        assert actor.vehicle.speed < 5.0

    def test_bounds_clamp(self):
        """Test the body stays inside world bounds."""
        bounds = WorldBounds(max_x=200.0)
        actor = VehicleActor(OpenCollisionSystem(), start=(150.0, 0.0, 0.0))
        for _ in range(120):
            actor.update(VehicleInputs(throttle=1.0), 1 / 60, bounds)
        assert actor.position[0] == pytest.approx(200.0 - BODY_WIDTH_PX / 2)
        assert actor.collisions > 0

    def test_reset(self):
        """Test reset returns to the start pose."""
        actor = VehicleActor(WallSystem(100.0), start=(90.0, 5.0, 0.3))
        for _ in range(120):
            actor.update(VehicleInputs(throttle=1.0), 1 / 60)
        actor.reset()
        assert actor.position == pytest.approx((90.0, 5.0))
        assert actor.vehicle.state.heading == pytest.approx(0.3)
        assert actor.vehicle.speed == 0.0
        assert actor.collisions > 0
        actor.reset(preserve_collisions=False)
        assert actor.collisions == 0

    def test_snapshot_round_trip(self):
        """Test actor snapshots restore body and vehicle."""
        actor = VehicleActor(OpenCollisionSystem())
        for _ in range(60):
            actor.update(VehicleInputs(throttle=1.0, steering=0.5), 1 / 60)
        snapshot = actor.serialize_state()

        other = VehicleActor(OpenCollisionSystem())
        other.restore_state(snapshot)
        assert other.position == pytest.approx(actor.position)
        assert other.body.angle == actor.body.angle
        assert other.vehicle.speed == pytest.approx(actor.vehicle.speed)

    def test_telemetry(self):
        """Test telemetry carries the actor id."""
        actor = VehicleActor(OpenCollisionSystem(), actor_id="rival")
        assert actor.get_telemetry()["actor_id"] == "rival"


class TestWorld:
    """Test world management."""

    def test_spawn_and_remove(self):
        """Test actors are added and removed by id."""
        world = World()
        world.spawn("player", CarConfig())
        assert world.get_actor("player") is not None
        with pytest.raises(ValueError):
            world.spawn("player")
        assert world.remove_actor("player")
        assert not world.remove_actor("player")

    def test_time_and_reset(self):
        """Test time advances per tick and resets."""
        world = World()
        world.advance_time(0.5)
        world.advance_time(0.5)
        assert world.time == 1.0
        assert world.frame == 2
        world.reset()
        assert world.time == 0.0
        assert world.get_state()["frame"] == 0


class TestSimulator:
    """Test the fixed-step loop."""

    def test_config_validation(self):
        """Test invalid timesteps are rejected."""
        with pytest.raises(ValueError):
            SimulatorConfig(fixed_dt=0.0)
        with pytest.raises(ValueError):
            SimulatorConfig(fixed_dt=0.1, max_dt=0.05)

    def test_accumulator(self):
        """Test frame time carries over between frames."""
        sim = Simulator()
        sim.world.spawn("player")
        ticks = [sim.advance(0.02) for _ in range(3)]
        assert ticks == [1, 1, 1]
        assert sim.world.frame == 3

    def test_frame_time_clamped(self):
        """Test long stalls are clamped to max_dt."""
        sim = Simulator()
        assert sim.advance(1.0) in (5, 6)
        assert sim.advance(0.0) == 0

    def test_shift_applies_on_first_tick_only(self):
        """Test a shift request moves one gear per frame."""
        sim = Simulator()
        player = sim.world.spawn("player")
        player.vehicle.set_manual_mode(True)
        ticks = sim.advance(0.06, {"player": VehicleInputs(shift_up=True)})
        assert ticks == 3
        assert player.vehicle.state.gear == 2

    def test_inputs_drive_actor(self):
        """Test mapped inputs reach the right actor."""
        sim = Simulator()
        player = sim.world.spawn("player")
        idle = sim.world.spawn("idle", start=(0.0, 100.0, 0.0))
        for _ in range(60):
            sim.step({"player": VehicleInputs(throttle=1.0)})
        assert player.vehicle.speed > 1.0
        assert idle.vehicle.speed == 0.0
        assert sim.time == pytest.approx(1.0)

    def test_callbacks(self):
        """Test pre and post step callbacks run every tick."""
        sim = Simulator()
        calls = []
        sim.add_pre_step_callback(lambda s, dt: calls.append(("pre", dt)))
        sim.add_post_step_callback(lambda s, dt: calls.append(("post", s.world.frame)))
        sim.step()
        assert calls == [("pre", sim.config.fixed_dt), ("post", 1)]

    def test_telemetry_buffer(self):
        """Test telemetry frames are collected when enabled."""
        sim = Simulator(SimulatorConfig(enable_telemetry=True, telemetry_buffer_size=10))
        sim.world.spawn("player")
        for _ in range(15):
            sim.step()
        frames = sim.get_telemetry()
        assert 0 < len(frames) <= 10
        assert "player" in frames[-1]["actors"]
        sim.reset()
        assert sim.get_telemetry() == []
        assert sim.time == 0.0
