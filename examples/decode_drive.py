"""Decode a simulated drive.

Builds definitions for two messages from YAML, generates frames for a
drive where the vehicle accelerates to 90 kph and brakes, then decodes
every frame with SignalExtractor.

Run:
    python examples/decode_drive.py
"""

from candecode import Frame, SignalExtractor, load_definitions

DEFINITIONS_YAML = """\
messages:
  - id: 0x100
    name: VehicleDynamics
    signals:
      - {name: VehicleSpeed, startBit: 0, length: 16, factor: 0.01, unit: kph}
  - id: 0x200
    name: BrakeStatus
    signals:
      - {name: BrakePressure, startBit: 0, length: 16, factor: 0.1, unit: kPa}
      - name: BrakeActive
        startBit: 16
        length: 1
        values:
          - {value: 0, description: RELEASED}
          - {value: 1, description: APPLIED}
"""

VEHICLE_DYNAMICS_ID = 0x100
BRAKE_STATUS_ID = 0x200


def encode_speed(speed_kph: float) -> list[int]:
    """VehicleSpeed: 16-bit little-endian, factor 0.01"""
    raw = int(speed_kph / 0.01)
    return [raw & 0xFF, (raw >> 8) & 0xFF, 0, 0, 0, 0, 0, 0]


def encode_brake(pressure_kpa: float, active: bool = False) -> list[int]:
    """BrakePressure: 16-bit little-endian, factor 0.1; BrakeActive: bit 16"""
    raw = int(pressure_kpa / 0.1)
    return [raw & 0xFF, (raw >> 8) & 0xFF, 1 if active else 0, 0, 0, 0, 0, 0]


def generate_drive() -> list[Frame]:
    frames: list[Frame] = []

    # Accelerate 0 -> 90 kph over two seconds
    for t in range(0, 2000, 100):
        speed = 90 * (t / 2000)
        frames.append(Frame(VEHICLE_DYNAMICS_ID, encode_speed(speed), timestamp=t / 1000))
        frames.append(Frame(BRAKE_STATUS_ID, encode_brake(0), timestamp=(t + 10) / 1000))

    # Brake down to standstill
    for t in range(2000, 3100, 100):
        speed = max(0.0, 90 - 90 * ((t - 2000) / 1000))
        braking = speed > 10
        frames.append(Frame(VEHICLE_DYNAMICS_ID, encode_speed(speed), timestamp=t / 1000))
        frames.append(Frame(
            BRAKE_STATUS_ID,
            encode_brake(800 if braking else 0, braking),
            timestamp=(t + 10) / 1000,
        ))

    return frames


def main() -> None:
    extractor = SignalExtractor(load_definitions(DEFINITIONS_YAML))
    for frame, result in extractor.extract_all(generate_drive()):
        print(f"{frame.timestamp:6.3f}s  " + "  ".join(result.texts.values()))


if __name__ == "__main__":
    main()
