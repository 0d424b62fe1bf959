#!/usr/bin/env python3
"""
Live Simulation Example

This example demonstrates how to:
1. Spawn a car in a bounded world
2. Drive it with digital controls through the fixed-step loop
3. Snapshot and restore the car
4. Read telemetry

Run with: python run_simulation.py
"""

from dynocal import Simulator
from dynocal.car.vehicle import VehicleInputs
from dynocal.simulation import DriverIntent, WorldBounds, World, resolve_intent


def main():
    print("=" * 60)
    print("dynocal Live Simulation Example")
    print("=" * 60)

    print("\n1. Setting up world...")
    world = World(bounds=WorldBounds(min_x=0, min_y=0, max_x=4000, max_y=4000))
    sim = Simulator(world=world)
    player = world.spawn("player", start=(200.0, 2000.0, 0.0))

    print("\n2. Driving (10 seconds of 60 fps frames)...")
    frame_dt = 1 / 60
    snapshot = None
    for frame in range(600):
        if frame < 240:
            intent = DriverIntent(forward=True)
        elif frame < 360:
            intent = DriverIntent(forward=True, left=True)
        else:
            intent = DriverIntent(brake=True)
        inputs = resolve_intent(intent, player.vehicle)
        sim.advance(frame_dt, {"player": inputs})

        if frame == 300:
            snapshot = player.serialize_state()

        if (frame + 1) % 120 == 0:
            state = player.vehicle.state
            print(f"   t={sim.time:5.2f}s speed={player.vehicle.speed_kph:6.1f} km/h "
                  f"gear={state.gear} rpm={state.engine_rpm:5.0f} "
                  f"collisions={player.collisions}")

    print("\n3. Restoring snapshot from t=5s...")
    player.restore_state(snapshot)
    print(f"   Speed after restore: {player.vehicle.speed_kph:.1f} km/h")
    sim.step({"player": VehicleInputs(throttle=1.0)})

    print("\n4. Telemetry:")
    telemetry = player.get_telemetry()
    print(f"   Heading: {telemetry['state']['heading_deg']:.1f} deg")
    print(f"   Drag: {telemetry['aero']['drag_n']:.0f} N")
    for position, tire in telemetry["tires"].items():
        print(f"   {position.upper()}: load={tire['load_n']:.0f} N utilization={tire['utilization']:.2f}")


if __name__ == "__main__":
    main()
