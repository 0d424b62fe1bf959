"""
Transmission component - Gear state machine.

Simulates:
- Gears Reverse (-1), Neutral (0) and Forward 1..N
- Manual sequential shifting bounded to [-1, N]
- Automatic RPM/throttle-driven shifting
- Reverse engagement from a near stop with sustained negative throttle
"""

from enum import IntEnum

from dynocal.car.config import CarConfig

# Reverse engages/disengages only below this longitudinal speed (m/s)
REVERSE_SPEED_THRESHOLD = 0.6
REVERSE_THROTTLE_THRESHOLD = 0.1

# Automatic downshifts are suppressed at or above this throttle
KICKDOWN_SUPPRESS_THROTTLE = 0.8


class GearState(IntEnum):
    """Named gear positions."""
    REVERSE = -1
    NEUTRAL = 0
    FIRST = 1


class Transmission:
    """Gearbox with manual and automatic modes.

    In manual mode, shift_up/shift_down move strictly one gear and entering
    or leaving gear -1 toggles reverse. In automatic mode the driver cannot
    shift; gears follow engine RPM and reverse follows throttle intent.
    """

    def __init__(self, config: CarConfig | None = None, manual_mode: bool = False):
        """Initialize transmission.

        Args:
            config: Car configuration. Uses defaults if None.
            manual_mode: Start in manual mode
        """
        self.config = config or CarConfig()
        self._manual_mode: bool = manual_mode
        self._reverse_mode: bool = False
        self._gear: int = min(int(GearState.FIRST), self.max_gear)
        self._reverse_ratio: float = abs(self.config.gear_ratios[1]) if self.max_gear >= 1 else 0.0

    @property
    def gear(self) -> int:
        """Current gear index (-1 = reverse, 0 = neutral)."""
        return self._gear

    @gear.setter
    def gear(self, value: int) -> None:
        """Set gear index, clamped to [-1, N]."""
        self._gear = max(int(GearState.REVERSE), min(self.max_gear, int(value)))

    @property
    def max_gear(self) -> int:
        """Highest forward gear."""
        return len(self.config.gear_ratios) - 1

    @property
    def manual_mode(self) -> bool:
        """Whether the driver shifts manually."""
        return self._manual_mode

    @property
    def reverse_mode(self) -> bool:
        """Whether drive force is applied backwards."""
        return self._reverse_mode

    @reverse_mode.setter
    def reverse_mode(self, value: bool) -> None:
        self._reverse_mode = bool(value)

    @property
    def reverse_ratio(self) -> float:
        """Reverse uses the magnitude of first gear."""
        return self._reverse_ratio

    def effective_ratio(self) -> float:
        """Gear ratio currently transmitting torque (without final drive)."""
        if self._reverse_mode:
            return self._reverse_ratio
        return self.config.gear_ratios[max(0, self._gear)]

    def set_manual_mode(self, enabled: bool) -> None:
        """Switch between manual and automatic shifting.

        Args:
            enabled: True for manual mode
        """
        self._manual_mode = bool(enabled)
        if not self._manual_mode:
            if self._gear <= 0:
                self._gear = min(int(GearState.FIRST), self.max_gear)
            self._reverse_mode = False
        else:
            self._reverse_mode = self._gear == int(GearState.REVERSE)

    def shift_up(self) -> bool:
        """Request upshift (manual mode only).

        Returns:
            True if the gear changed
        """
        if not self._manual_mode:
            return False
        next_gear = min(self.max_gear, self._gear + 1)
        if next_gear == self._gear:
            return False
        self._gear = next_gear
        self._reverse_mode = self._gear == int(GearState.REVERSE)
        return True

    def shift_down(self) -> bool:
        """Request downshift (manual mode only).

        Returns:
            True if the gear changed
        """
        if not self._manual_mode:
            return False
        next_gear = max(int(GearState.REVERSE), self._gear - 1)
        if next_gear == self._gear:
            return False
        self._gear = next_gear
        self._reverse_mode = self._gear == int(GearState.REVERSE)
        return True

    def update_direction(self, throttle: float, speed_abs: float) -> float:
        """Resolve reverse/forward mode from throttle intent.

        Args:
            throttle: Smoothed throttle (-1 to 1)
            speed_abs: Absolute longitudinal speed in m/s

        Returns:
            Throttle, clamped non-negative when leaving reverse
        """
        if self._manual_mode:
            self._reverse_mode = self._gear == int(GearState.REVERSE)
            return throttle

        if self._reverse_mode:
            if throttle > REVERSE_THROTTLE_THRESHOLD and speed_abs < REVERSE_SPEED_THRESHOLD:
                self._reverse_mode = False
                throttle = max(0.0, min(1.0, throttle))
        elif throttle < -REVERSE_THROTTLE_THRESHOLD and speed_abs < REVERSE_SPEED_THRESHOLD:
            self._reverse_mode = True
            if self._gear < int(GearState.FIRST):
                self._gear = min(int(GearState.FIRST), self.max_gear)
        return throttle

    def auto_shift(self, rpm: float, throttle: float, upshift_rpm: float, downshift_rpm: float) -> int:
        """Apply automatic shifting for one tick.

        Args:
            rpm: Engine RPM after this tick's update
            throttle: Smoothed throttle
            upshift_rpm: Upshift threshold
            downshift_rpm: Downshift threshold

        Returns:
            Gear change applied (-1, 0 or +1)
        """
        if self._manual_mode or self._reverse_mode:
            return 0
        if rpm > upshift_rpm and self._gear < self.max_gear:
            self._gear += 1
            return 1
        if rpm < downshift_rpm and self._gear > int(GearState.FIRST) and throttle < KICKDOWN_SUPPRESS_THROTTLE:
            self._gear -= 1
            return -1
        return 0

    def reset(self) -> None:
        """Clear reverse mode; the selected gear is kept."""
        self._reverse_mode = False

    def get_state(self) -> dict:
        """Get current transmission state for telemetry.

        Returns:
            Dictionary containing transmission state values
        """
        return {
            "gear": self._gear,
            "reverse_mode": self._reverse_mode,
            "manual_mode": self._manual_mode,
            "gear_ratio": self.effective_ratio(),
            "total_ratio": self.effective_ratio() * self.config.final_drive_ratio,
        }
