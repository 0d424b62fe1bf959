"""
Aerodynamics component - Drag and downforce.

Simulates:
- Speed-squared drag, doubled when travelling backwards
- Speed-squared downforce, ramped in over low speeds
"""

from dynocal.car.config import CarConfig
from dynocal.physics import AIR_DENSITY, MPS_TO_MPH, clamp

# Downforce reaches full effect at this speed (mph)
DOWNFORCE_RAMP_MPH = 40.0
BACKWARDS_DRAG_FACTOR = 2.0


class Aero:
    """Aerodynamic force model.

    Calculates speed-dependent forces:
    - Drag opposing motion
    - Downforce adding tire normal load
    """

    def __init__(self, config: CarConfig | None = None):
        """Initialize aerodynamics.

        Args:
            config: Car configuration. Uses defaults if None.
        """
        self.config = config or CarConfig()

        self._current_drag: float = 0.0
        self._current_downforce: float = 0.0

    @property
    def current_drag(self) -> float:
        """Drag from the last update in N."""
        return self._current_drag

    @property
    def current_downforce(self) -> float:
        """Downforce from the last update in N."""
        return self._current_downforce

    def _get_dynamic_pressure(self, speed: float) -> float:
        """Dynamic pressure in Pa."""
        return 0.5 * AIR_DENSITY * speed * speed

    def calculate_drag(self, speed: float, backwards: bool = False) -> float:
        """Calculate drag force at given speed.

        Args:
            speed: Vehicle speed in m/s
            backwards: True when moving backwards relative to heading

        Returns:
            Drag force in N (always positive)
        """
        drag = self._get_dynamic_pressure(speed) * self.config.drag_coefficient * self.config.frontal_area_m2
        if backwards:
            drag *= BACKWARDS_DRAG_FACTOR
        return drag

    def downforce_ramp(self, speed: float) -> float:
        """Fraction of full downforce available at given speed (0-1)."""
        return clamp(speed * MPS_TO_MPH / DOWNFORCE_RAMP_MPH, 0.0, 1.0)

    def calculate_downforce(self, speed: float) -> float:
        """Calculate downforce at given speed.

        Args:
            speed: Vehicle speed in m/s

        Returns:
            Downforce in N
        """
        return (
            self._get_dynamic_pressure(speed)
            * self.config.downforce_coefficient
            * self.config.frontal_area_m2
            * self.downforce_ramp(speed)
        )

    def update(self, speed: float, backwards: bool = False) -> tuple[float, float]:
        """Update aerodynamic forces.

        Args:
            speed: Vehicle speed in m/s
            backwards: True when moving backwards relative to heading

        Returns:
            Tuple of (drag, downforce) in N
        """
        speed = abs(speed)
        self._current_drag = self.calculate_drag(speed, backwards)
        self._current_downforce = self.calculate_downforce(speed)
        return self._current_drag, self._current_downforce

    def reset(self) -> None:
        """Reset aerodynamics to initial state."""
        self._current_drag = 0.0
        self._current_downforce = 0.0

    def get_state(self) -> dict:
        """Get current aerodynamic state for telemetry."""
        return {
            "drag_n": self._current_drag,
            "downforce_n": self._current_downforce,
        }
