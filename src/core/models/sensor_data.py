"""
Sensor data models.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SensorReading:
    """
    The three values measured by the headband, without a timestamp.
    Produced by the device decoder and by the simulator.
    """
    heart_rate: float
    temperature: float
    vibration_level: int


@dataclass(frozen=True)
class SensorSnapshot:
    """
    The single current reading held by the relay.
    Frozen so that it can only be replaced wholesale, never patched.
    """
    heart_rate: float = 0.0
    temperature: float = 0.0
    vibration_level: int = 0
    timestamp: int = 0  # milliseconds since epoch

    @classmethod
    def from_reading(cls, reading: SensorReading, timestamp: int) -> "SensorSnapshot":
        return cls(
            heart_rate=reading.heart_rate,
            temperature=reading.temperature,
            vibration_level=reading.vibration_level,
            timestamp=timestamp,
        )

    def to_dict(self) -> dict:
        """Wire representation (camelCase keys, as the dashboard expects)."""
        return {
            "heartRate": self.heart_rate,
            "temperature": self.temperature,
            "vibrationLevel": self.vibration_level,
            "timestamp": self.timestamp,
        }
