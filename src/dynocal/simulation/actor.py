"""
Vehicle actor - A VehicleModel placed in a world with collision bodies.

Provides:
- The collision body interface the actor consumes
- Digital driver intents resolved into analog vehicle inputs
- Collision fold-back: body corrections are applied to the vehicle model
- World bounds clamping
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol
import math

from dynocal.car.config import CarConfig
from dynocal.car.vehicle import VehicleInputs, VehicleModel
from dynocal.physics import clamp, finite_or, normalize_heading

# Collision box size in pixels
BODY_WIDTH_PX = 46.0
BODY_HEIGHT_PX = 24.0

CONTACT_DAMPING = 0.25
CONTACT_STOP_SPEED = 0.3  # m/s

# Reverse request while rolling forward faster than this brakes instead (m/s)
REVERSE_ENGAGE_SPEED = 0.6
REVERSE_REQUEST_BRAKE = 0.6
ROLLING_BACK_SPEED = -0.5


class BodyHandle(Protocol):
    """Collision body owned by a CollisionSystem (pixels, radians)."""
    x: float
    y: float
    angle: float

    def set_position(self, x: float, y: float) -> None:
        ...

    def set_angle(self, angle: float) -> None:
        ...


class CollisionSystem(Protocol):
    """Broad-phase collision world."""

    def create_box(
        self,
        position: tuple[float, float],
        width: float,
        height: float,
        options: Optional[Mapping[str, Any]] = None,
    ) -> BodyHandle:
        ...

    def separate_body(self, body: BodyHandle, on_collision: Callable[..., bool]) -> None:
        """Push body out of overlaps, calling on_collision for each contact."""
        ...


@dataclass
class BoxBody:
    """Plain collision box."""
    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0
    width: float = BODY_WIDTH_PX
    height: float = BODY_HEIGHT_PX

    def set_position(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def set_angle(self, angle: float) -> None:
        self.angle = angle


class OpenCollisionSystem:
    """Collision system for an empty world: bodies never touch."""

    def create_box(self, position, width, height, options=None) -> BoxBody:
        return BoxBody(x=position[0], y=position[1], width=width, height=height)

    def separate_body(self, body, on_collision) -> None:
        return None


@dataclass
class WorldBounds:
    """Playable area in pixels."""
    min_x: float = -math.inf
    min_y: float = -math.inf
    max_x: float = math.inf
    max_y: float = math.inf


@dataclass
class DriverIntent:
    """Digital driver controls (e.g. keys held this frame)."""
    forward: bool = False
    reverse: bool = False
    brake: bool = False
    left: bool = False
    right: bool = False


def resolve_intent(intent: DriverIntent, vehicle: VehicleModel) -> VehicleInputs:
    """Turn digital controls into analog inputs.

    Reverse while rolling forward brakes first; forward while rolling
    backwards (automatic) or while in manual reverse brakes as well.

    Args:
        intent: Controls held this frame
        vehicle: Vehicle the inputs are for

    Returns:
        VehicleInputs for the next step
    """
    throttle = 0.0
    brake = 1.0 if intent.brake else 0.0
    steering = (1.0 if intent.right else 0.0) - (1.0 if intent.left else 0.0)

    v_long = vehicle.longitudinal_speed
    forward_only = intent.forward and not intent.reverse
    reverse_only = intent.reverse and not intent.forward

    if forward_only:
        throttle = 1.0
    if reverse_only:
        if abs(v_long) < REVERSE_ENGAGE_SPEED or v_long <= 0:
            throttle = -1.0
        else:
            brake = max(brake, REVERSE_REQUEST_BRAKE)

    manual = vehicle.transmission.manual_mode
    if forward_only and not manual and v_long < ROLLING_BACK_SPEED:
        throttle = 0.0
        brake = 1.0
    if forward_only and manual and vehicle.transmission.reverse_mode:
        throttle = 0.0
        brake = 1.0

    return VehicleInputs(throttle=throttle, brake=brake, steering=steering)


class VehicleActor:
    """Vehicle with a collision body.

    Each update steps the vehicle model, syncs the body to it, lets the
    collision system separate the body, then folds the correction back
    into the vehicle model.

    Usage:
        actor = VehicleActor(system, CarConfig(), start=(0, 0, 0))
        actor.update(VehicleInputs(throttle=1.0), dt=1 / 60, bounds=WorldBounds())
    """

    def __init__(
        self,
        system: CollisionSystem,
        config: CarConfig | None = None,
        start: tuple[float, float, float] = (0.0, 0.0, 0.0),
        actor_id: str = "player",
    ):
        """Initialize actor.

        Args:
            system: Collision system owning the body
            config: Car configuration. Uses defaults if None.
            start: Start pose (x px, y px, heading rad)
            actor_id: Identifier
        """
        self.system = system
        self.actor_id = actor_id
        self.start = start
        self.vehicle = VehicleModel(config)
        self.body = system.create_box(
            (start[0], start[1]),
            BODY_WIDTH_PX,
            BODY_HEIGHT_PX,
            {"is_static": False, "is_centered": True},
        )
        self.collisions: int = 0
        self.reset(preserve_collisions=False)

    @property
    def position(self) -> tuple[float, float]:
        """Position in pixels."""
        return self.vehicle.world_position

    def reset(self, preserve_collisions: bool = True) -> None:
        """Return to the start pose at rest."""
        x, y, heading = self.start
        self.body.set_angle(heading)
        self.body.set_position(x, y)
        self.vehicle.reset_state(x=x, y=y, heading=heading)
        if not preserve_collisions:
            self.collisions = 0

    def update(self, inputs: VehicleInputs, dt: float, bounds: WorldBounds | None = None) -> bool:
        """Step the vehicle and resolve collisions.

        Args:
            inputs: Driver inputs
            dt: Time step in seconds
            bounds: World bounds (unbounded if None)

        Returns:
            True if the vehicle touched something or a bound this update
        """
        vehicle = self.vehicle
        vehicle.apply_inputs(inputs, dt)

        px, py = vehicle.world_position
        self.body.set_angle(vehicle.state.heading)
        self.body.set_position(px, py)

        before_x, before_y = self.body.x, self.body.y
        contacts = []

        def on_collision(*_args) -> bool:
            contacts.append(True)
            return True

        self.system.separate_body(self.body, on_collision)
        collided = bool(contacts)
        if collided:
            dx = self.body.x - before_x
            dy = self.body.y - before_y
            if dx or dy:
                vehicle.apply_world_displacement(dx, dy)

        if bounds is not None:
            half_w = BODY_WIDTH_PX / 2
            half_h = BODY_HEIGHT_PX / 2
            clamped_x = clamp(self.body.x, bounds.min_x + half_w, bounds.max_x - half_w)
            clamped_y = clamp(self.body.y, bounds.min_y + half_h, bounds.max_y - half_h)
            if clamped_x != self.body.x or clamped_y != self.body.y:
                dx = clamped_x - self.body.x
                dy = clamped_y - self.body.y
                self.body.set_position(clamped_x, clamped_y)
                vehicle.apply_world_displacement(dx, dy)
                collided = True

        if collided:
            vehicle.damp_velocity(CONTACT_DAMPING)
            if vehicle.speed < CONTACT_STOP_SPEED:
                vehicle.stop()
            self.collisions += 1

        vehicle.set_world_position(self.body.x, self.body.y)
        return collided

    def serialize_state(self) -> Dict[str, Any]:
        """Snapshot of body, vehicle and counters."""
        return {
            "body": {"x": self.body.x, "y": self.body.y, "angle": self.body.angle},
            "vehicle": self.vehicle.serialize_state(),
            "collisions": self.collisions,
        }

    def restore_state(self, snapshot: Mapping[str, Any] | None) -> None:
        """Restore a snapshot produced by serialize_state."""
        if not isinstance(snapshot, Mapping):
            return
        self.vehicle.restore_state(snapshot.get("vehicle"))

        body = snapshot.get("body")
        body = body if isinstance(body, Mapping) else {}
        px, py = self.vehicle.world_position
        x = finite_or(body.get("x"), px)
        y = finite_or(body.get("y"), py)
        angle = finite_or(body.get("angle"), self.vehicle.state.heading)
        self.body.set_position(x, y)
        self.body.set_angle(angle)
        self.vehicle.state.heading = normalize_heading(angle)
        self.vehicle.set_world_position(x, y)

        collisions = finite_or(snapshot.get("collisions"), math.nan)
        if math.isfinite(collisions):
            self.collisions = max(0, int(collisions))

    def get_telemetry(self) -> Dict[str, Any]:
        """Vehicle telemetry plus actor counters."""
        telemetry = self.vehicle.get_telemetry()
        telemetry["actor_id"] = self.actor_id
        telemetry["collisions"] = self.collisions
        return telemetry
