"""
World - Actor management for the live simulation.

Manages:
- Vehicle actors sharing one collision system
- World bounds
- Global time and frame count
"""

from typing import Dict, List, Optional

from dynocal.car.config import CarConfig
from dynocal.simulation.actor import (
    CollisionSystem,
    OpenCollisionSystem,
    VehicleActor,
    WorldBounds,
)


class World:
    """World state container.

    Holds every actor, the collision system they share and the bounds
    they are clamped to.
    """

    def __init__(
        self,
        system: CollisionSystem | None = None,
        bounds: WorldBounds | None = None,
    ):
        """Initialize world.

        Args:
            system: Collision system. Bodies never collide if None.
            bounds: World bounds. Unbounded if None.
        """
        self.system = system or OpenCollisionSystem()
        self.bounds = bounds or WorldBounds()

        self._actors: Dict[str, VehicleActor] = {}
        self._time: float = 0.0
        self._frame: int = 0

    @property
    def time(self) -> float:
        """Simulated time in seconds."""
        return self._time

    @property
    def frame(self) -> int:
        """Number of fixed ticks simulated."""
        return self._frame

    @property
    def actors(self) -> List[VehicleActor]:
        """All actors in insertion order."""
        return list(self._actors.values())

    def spawn(
        self,
        actor_id: str,
        config: CarConfig | None = None,
        start: tuple[float, float, float] = (0.0, 0.0, 0.0),
    ) -> VehicleActor:
        """Create an actor and add it to the world.

        Args:
            actor_id: Unique identifier
            config: Car configuration
            start: Start pose (x px, y px, heading rad)

        Returns:
            The new actor
        """
        if actor_id in self._actors:
            raise ValueError(f"Actor {actor_id!r} already exists")
        actor = VehicleActor(self.system, config, start=start, actor_id=actor_id)
        self._actors[actor_id] = actor
        return actor

    def get_actor(self, actor_id: str) -> Optional[VehicleActor]:
        return self._actors.get(actor_id)

    def remove_actor(self, actor_id: str) -> bool:
        return self._actors.pop(actor_id, None) is not None

    def advance_time(self, dt: float) -> None:
        """Advance simulation time by one tick."""
        self._time += dt
        self._frame += 1

    def reset(self) -> None:
        """Return every actor to its start pose and zero the clock."""
        for actor in self._actors.values():
            actor.reset()
        self._time = 0.0
        self._frame = 0

    def get_state(self) -> dict:
        """Get world state for serialization."""
        return {
            "time": self._time,
            "frame": self._frame,
            "actors": {actor_id: actor.serialize_state() for actor_id, actor in self._actors.items()},
        }
