"""
VehicleModel - Per-tick planar vehicle dynamics.

Integrates all car components:
- Powertrain (engine + transmission)
- Aerodynamics
- Chassis load transfer
- Tires (slip angles, friction ellipse)
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping
import math

from dynocal.car.aero import Aero
from dynocal.car.chassis import Chassis
from dynocal.car.config import CarConfig
from dynocal.car.powertrain import Powertrain
from dynocal.car.tires import TireSet
from dynocal.physics import (
    EPSILON,
    MPS_TO_KPH,
    MPS_TO_MPH,
    PIXELS_PER_METER,
    clamp,
    finite_or,
    normalize_heading,
)

BRAKE_RATE = 6.0

# Steering
MAX_STEER_ANGLE = math.pi / 6
STEER_RATE = 5.0
STEER_REDUCTION_START_MPH = 25.0
STEER_REDUCTION_RANGE_MPH = 160.0
MAX_STEER_REDUCTION = 0.9

# Longitudinal speed beyond which the car counts as moving backwards (m/s)
BACKWARDS_SPEED = -0.2

# Front lateral capacity bonus
ALIGNMENT_GRIP_BONUS = 0.8
BRAKING_GRIP_BONUS = 0.55
BASE_GRIP_BONUS = 0.1
ALIGNMENT_MIN_SPEED = 0.5

# Low-speed settle while holding the brake
SETTLE_SPEED = 0.2
SETTLE_THROTTLE = 0.05
SETTLE_BRAKE = 0.1
SETTLE_DAMPING = 0.5
STOP_SPEED = 0.05

# Body rectangle extends beyond the wheel footprint (m)
BODY_LENGTH_OVERHANG = 1.2
BODY_WIDTH_OVERHANG = 0.6


@dataclass
class VehicleInputs:
    """Driver control inputs for one tick."""
    throttle: float = 0.0      # -1.0 (reverse intent) to 1.0
    brake: float = 0.0         # 0.0 to 1.0
    steering: float = 0.0      # -1.0 to 1.0
    shift_up: bool = False     # Manual upshift request
    shift_down: bool = False   # Manual downshift request


@dataclass
class VehicleState:
    """Mutable dynamic state of one vehicle."""
    # Position (world coordinates, meters)
    x: float = 0.0
    y: float = 0.0

    # Velocity (world frame, m/s)
    velocity_x: float = 0.0
    velocity_y: float = 0.0

    # Orientation (radians, 0 = +X direction)
    heading: float = 0.0
    angular_velocity: float = 0.0
    steer_angle: float = 0.0

    # Smoothed controls
    throttle: float = 0.0
    brake: float = 0.0

    # Drivetrain
    gear: int = 1
    reverse_mode: bool = False
    manual_mode: bool = False
    engine_rpm: float = 0.0

    # Body-frame accelerations from the previous tick (m/s^2)
    last_longitudinal_accel: float = 0.0
    last_lateral_accel: float = 0.0


class VehicleModel:
    """Deterministic per-tick vehicle dynamics.

    The model is a single rigid body with four tire contact points.
    Drive force comes from the powertrain, lateral force from a linear
    slip-angle model, and every tire force pair is saturated by a
    friction ellipse scaled by its normal load. Integration is
    semi-implicit Euler.

    Stepping never raises; non-finite inputs are treated as zero and a
    non-positive timestep is ignored.

    Usage:
        vehicle = VehicleModel(CarConfig())
        vehicle.step(throttle=1.0, brake=0.0, steering=0.0, dt=1 / 200)
        print(vehicle.speed_kph)
    """

    def __init__(self, config: CarConfig | None = None, manual_mode: bool = False):
        """Initialize vehicle with optional configuration.

        Args:
            config: Car configuration. Uses defaults if None.
            manual_mode: Start with manual shifting
        """
        self.config = config or CarConfig()

        self.powertrain = Powertrain(self.config, manual_mode=manual_mode)
        self.aero = Aero(self.config)
        self.chassis = Chassis(self.config)
        self.tires = TireSet(self.config)

        self.state = VehicleState()
        self._sync_drivetrain_state()

    @property
    def engine(self):
        """Engine subsystem."""
        return self.powertrain.engine

    @property
    def transmission(self):
        """Transmission subsystem."""
        return self.powertrain.transmission

    # -- kinematics -------------------------------------------------------

    def forward_vector(self) -> tuple[float, float]:
        """Unit vector along the heading."""
        return math.cos(self.state.heading), math.sin(self.state.heading)

    def right_vector(self) -> tuple[float, float]:
        """Unit vector perpendicular to the heading."""
        fx, fy = self.forward_vector()
        return -fy, fx

    @property
    def speed(self) -> float:
        """Speed in m/s."""
        return math.hypot(self.state.velocity_x, self.state.velocity_y)

    @property
    def speed_kph(self) -> float:
        """Speed in km/h."""
        return self.speed * MPS_TO_KPH

    @property
    def speed_pixels(self) -> float:
        """Speed in pixels per second."""
        return self.speed * PIXELS_PER_METER

    @property
    def longitudinal_speed(self) -> float:
        """Velocity component along the heading (m/s, negative when rolling back)."""
        fx, fy = self.forward_vector()
        return self.state.velocity_x * fx + self.state.velocity_y * fy

    @property
    def world_position(self) -> tuple[float, float]:
        """Position in pixels."""
        return self.state.x * PIXELS_PER_METER, self.state.y * PIXELS_PER_METER

    def set_world_position(self, x: float, y: float) -> None:
        """Place the vehicle at a pixel position."""
        self.state.x = x / PIXELS_PER_METER
        self.state.y = y / PIXELS_PER_METER

    def apply_world_displacement(self, dx: float, dy: float) -> None:
        """Move the vehicle by a pixel displacement (collision correction)."""
        self.state.x += dx / PIXELS_PER_METER
        self.state.y += dy / PIXELS_PER_METER

    def damp_velocity(self, factor: float) -> None:
        """Scale linear and angular velocity."""
        self.state.velocity_x *= factor
        self.state.velocity_y *= factor
        self.state.angular_velocity *= factor

    def stop(self) -> None:
        """Zero linear and angular velocity."""
        self.state.velocity_x = 0.0
        self.state.velocity_y = 0.0
        self.state.angular_velocity = 0.0

    def reset_state(
        self,
        x: float | None = None,
        y: float | None = None,
        heading: float | None = None,
    ) -> None:
        """Bring the vehicle to rest, optionally at a new pixel position/heading.

        Gear and shifting mode are kept.

        Args:
            x: New x position in pixels
            y: New y position in pixels
            heading: New heading in radians
        """
        if x is not None and y is not None:
            self.set_world_position(x, y)
        if heading is not None:
            self.state.heading = normalize_heading(heading)
        self.stop()
        self.powertrain.reset()
        self.state.brake = 0.0
        self._sync_drivetrain_state()

    # -- shifting ---------------------------------------------------------

    def set_manual_mode(self, enabled: bool) -> None:
        """Switch between manual and automatic shifting."""
        self.transmission.set_manual_mode(enabled)
        self._sync_drivetrain_state()

    def shift_up(self) -> bool:
        """Manual upshift. Returns True if the gear changed."""
        changed = self.transmission.shift_up()
        self._sync_drivetrain_state()
        return changed

    def shift_down(self) -> bool:
        """Manual downshift. Returns True if the gear changed."""
        changed = self.transmission.shift_down()
        self._sync_drivetrain_state()
        return changed

    # -- integration ------------------------------------------------------

    def _update_steering(self, steering: float, speed: float, dt: float) -> None:
        reduction = clamp(speed * MPS_TO_MPH - STEER_REDUCTION_START_MPH, 0.0, STEER_REDUCTION_RANGE_MPH)
        speed_factor = 1.0 - clamp(reduction ** 1.2 / 200.0, 0.0, MAX_STEER_REDUCTION)
        target = clamp(steering, -1.0, 1.0) * MAX_STEER_ANGLE * speed_factor
        self.state.steer_angle += (target - self.state.steer_angle) * clamp(dt * STEER_RATE, 0.0, 1.0)

    def _front_grip_bonus(self, speed: float, v_long: float) -> float:
        """Extra front lateral capacity from wheel/velocity alignment and braking."""
        alignment = 0.0
        if speed > ALIGNMENT_MIN_SPEED:
            wheel_angle = self.state.heading + self.state.steer_angle
            alignment = clamp(
                (math.cos(wheel_angle) * self.state.velocity_x + math.sin(wheel_angle) * self.state.velocity_y) / speed,
                0.0,
                1.0,
            )
        brake = self.state.brake
        if brake > 0.05 and v_long > 0.2:
            return alignment * ALIGNMENT_GRIP_BONUS + brake * BRAKING_GRIP_BONUS
        return alignment * ALIGNMENT_GRIP_BONUS + BASE_GRIP_BONUS

    def step(self, throttle: float, brake: float, steering: float, dt: float) -> VehicleState:
        """Advance the vehicle by one tick.

        Args:
            throttle: Throttle input (-1 to 1, negative requests reverse)
            brake: Brake input (0 to 1)
            steering: Steering input (-1 to 1)
            dt: Time step in seconds

        Returns:
            Updated vehicle state
        """
        dt = finite_or(dt, 0.0)
        if dt <= 0:
            return self.state
        throttle = finite_or(throttle, 0.0)
        brake = clamp(finite_or(brake, 0.0), 0.0, 1.0)
        steering = finite_or(steering, 0.0)

        state = self.state
        config = self.config
        mass = self.chassis.mass

        # 1. Body frame
        fx, fy = self.forward_vector()
        rx, ry = -fy, fx
        v_long = state.velocity_x * fx + state.velocity_y * fy
        v_lat = state.velocity_x * rx + state.velocity_y * ry
        speed = math.hypot(state.velocity_x, state.velocity_y)

        # 2. Powertrain, steering
        self.powertrain.update(throttle, v_long, dt)
        self._update_steering(steering, speed, dt)

        # 3. Aero
        drag, downforce = self.aero.update(speed, backwards=v_long < BACKWARDS_SPEED)

        # 4. Longitudinal forces
        state.brake += (brake - state.brake) * clamp(dt * BRAKE_RATE, 0.0, 1.0)
        state.brake = clamp(state.brake, 0.0, 1.0)
        drive_force = self.powertrain.drive_force()
        split_front, split_rear = config.drive_type.split
        drive_front = drive_force * split_front * 0.5
        drive_rear = drive_force * split_rear * 0.5

        brake_direction = 1.0 if v_long >= 0 else -1.0
        brake_limit = mass * abs(v_long) / (4 * dt)
        brake_forces = [
            min(torque * state.brake / (config.wheel_radius_m + EPSILON), brake_limit)
            for torque in config.brake_torque_per_wheel_nm
        ]
        long_forces = [
            drive_front - brake_direction * brake_forces[0],
            drive_front - brake_direction * brake_forces[1],
            drive_rear - brake_direction * brake_forces[2],
            drive_rear - brake_direction * brake_forces[3],
        ]

        # 5. Normal loads
        loads, bias = self.chassis.update(downforce, state.last_longitudinal_accel, state.last_lateral_accel)

        # 6. Lateral forces
        slip_front, slip_rear = self.tires.slip_angles(
            v_long, v_lat, speed, state.angular_velocity, state.steer_angle,
            self.chassis.lf, self.chassis.lr,
        )
        front_lat, rear_lat = self.tires.axle_lateral_forces(slip_front, slip_rear, loads)
        lat_forces = [
            front_lat * 0.5 * (1 + bias),
            front_lat * 0.5 * (1 - bias),
            rear_lat * 0.5 * (1 + bias),
            rear_lat * 0.5 * (1 - bias),
        ]

        # 7. Friction ellipse
        front_multiplier = 1.0 + max(0.0, self._front_grip_bonus(speed, v_long))
        long_forces, lat_forces = self.tires.update(loads, long_forces, lat_forces, front_multiplier)

        total_long = sum(long_forces)
        total_lat = sum(lat_forces)
        yaw_moment = 0.0
        for (px, py), f_long, f_lat in zip(self.chassis.wheel_positions, long_forces, lat_forces):
            yaw_moment += px * f_lat - py * f_long

        # 8. Integration
        force_x = fx * total_long + rx * total_lat
        force_y = fy * total_long + ry * total_lat
        if speed > 1e-3:
            resistance = drag + config.rolling_resistance_coeff * self.chassis.weight
            force_x -= state.velocity_x / speed * resistance
            force_y -= state.velocity_y / speed * resistance

        accel_x = force_x / (mass + EPSILON)
        accel_y = force_y / (mass + EPSILON)
        state.velocity_x += accel_x * dt
        state.velocity_y += accel_y * dt
        state.x += state.velocity_x * dt
        state.y += state.velocity_y * dt

        state.angular_velocity += yaw_moment / (self.chassis.yaw_inertia + EPSILON) * dt
        state.heading = normalize_heading(state.heading + state.angular_velocity * dt)

        state.last_longitudinal_accel = accel_x * fx + accel_y * fy
        state.last_lateral_accel = accel_x * rx + accel_y * ry

        # 9. Settle when held on the brake at walking pace
        if speed < SETTLE_SPEED and abs(self.powertrain.throttle) < SETTLE_THROTTLE and state.brake > SETTLE_BRAKE:
            state.velocity_x *= SETTLE_DAMPING
            state.velocity_y *= SETTLE_DAMPING
            if math.hypot(state.velocity_x, state.velocity_y) < STOP_SPEED:
                self.stop()

        self._sync_drivetrain_state()
        return state

    def apply_inputs(self, inputs: VehicleInputs, dt: float) -> VehicleState:
        """Apply shift requests, then step with the analog inputs."""
        if inputs.shift_up:
            self.shift_up()
        if inputs.shift_down:
            self.shift_down()
        return self.step(inputs.throttle, inputs.brake, inputs.steering, dt)

    def _sync_drivetrain_state(self) -> None:
        state = self.state
        state.throttle = self.powertrain.throttle
        state.gear = self.transmission.gear
        state.reverse_mode = self.transmission.reverse_mode
        state.manual_mode = self.transmission.manual_mode
        state.engine_rpm = self.engine.rpm

    # -- geometry ---------------------------------------------------------

    def world_points(self) -> list[tuple[float, float]]:
        """Body rectangle corners in pixels (front-right, front-left, rear-left, rear-right)."""
        half_length = (self.config.wheelbase_m + BODY_LENGTH_OVERHANG) * 0.5
        half_width = (self.config.track_width_m + BODY_WIDTH_OVERHANG) * 0.5
        fx, fy = self.forward_vector()
        rx, ry = -fy, fx
        points = []
        for along, across in (
            (half_length, half_width),
            (half_length, -half_width),
            (-half_length, -half_width),
            (-half_length, half_width),
        ):
            x = self.state.x + fx * along + rx * across
            y = self.state.y + fy * along + ry * across
            points.append((x * PIXELS_PER_METER, y * PIXELS_PER_METER))
        return points

    # -- snapshots --------------------------------------------------------

    def serialize_state(self) -> Dict[str, Any]:
        """Snapshot of the dynamic state (position in pixels)."""
        px, py = self.world_position
        state = self.state
        return {
            "position": {"x": px, "y": py},
            "heading": state.heading,
            "velocity": {"x": state.velocity_x, "y": state.velocity_y},
            "angular_velocity": state.angular_velocity,
            "steer_angle": state.steer_angle,
            "engine_rpm": state.engine_rpm,
            "throttle": state.throttle,
            "brake": state.brake,
            "gear": state.gear,
            "reverse_mode": state.reverse_mode,
            "manual_mode": state.manual_mode,
            "last_longitudinal_accel": state.last_longitudinal_accel,
            "last_lateral_accel": state.last_lateral_accel,
        }

    def restore_state(self, snapshot: Mapping[str, Any] | None) -> None:
        """Restore a snapshot produced by serialize_state.

        Missing or non-finite values keep the current value, except for
        velocity, RPM and controls which fall back to rest.
        """
        if not isinstance(snapshot, Mapping):
            return
        state = self.state

        position = snapshot.get("position")
        if isinstance(position, Mapping):
            px = finite_or(position.get("x"), math.nan)
            py = finite_or(position.get("y"), math.nan)
            if math.isfinite(px) and math.isfinite(py):
                self.set_world_position(px, py)

        state.heading = normalize_heading(finite_or(snapshot.get("heading"), state.heading))

        velocity = snapshot.get("velocity")
        if isinstance(velocity, Mapping):
            state.velocity_x = finite_or(velocity.get("x"), 0.0)
            state.velocity_y = finite_or(velocity.get("y"), 0.0)

        state.angular_velocity = finite_or(snapshot.get("angular_velocity"), state.angular_velocity)
        state.steer_angle = finite_or(snapshot.get("steer_angle"), state.steer_angle)
        self.engine.rpm = finite_or(snapshot.get("engine_rpm"), self.engine.idle_rpm)
        self.powertrain.throttle = finite_or(snapshot.get("throttle"), 0.0)
        state.brake = clamp(finite_or(snapshot.get("brake"), 0.0), 0.0, 1.0)

        gear = finite_or(snapshot.get("gear"), math.nan)
        if math.isfinite(gear):
            self.transmission.gear = int(gear)
        self.transmission.set_manual_mode(snapshot.get("manual_mode") is True)
        self.transmission.reverse_mode = snapshot.get("reverse_mode") is True

        state.last_longitudinal_accel = finite_or(
            snapshot.get("last_longitudinal_accel"), state.last_longitudinal_accel
        )
        state.last_lateral_accel = finite_or(snapshot.get("last_lateral_accel"), state.last_lateral_accel)
        self._sync_drivetrain_state()

    # -- telemetry --------------------------------------------------------

    def get_telemetry(self) -> Dict[str, Any]:
        """Get complete vehicle telemetry.

        Returns:
            Dictionary containing all vehicle telemetry data
        """
        return {
            "state": {
                **asdict(self.state),
                "heading_deg": math.degrees(self.state.heading),
                "speed_mps": self.speed,
                "speed_kph": self.speed_kph,
                "longitudinal_speed": self.longitudinal_speed,
            },
            "powertrain": self.powertrain.get_state(),
            "aero": self.aero.get_state(),
            "chassis": self.chassis.get_state(),
            "tires": self.tires.get_state(),
        }
