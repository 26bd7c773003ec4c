import logging
import random
import time
from typing import Optional, Protocol, Set

from core.models.command import Command
from core.models.config_data import SimulatorConfig
from core.models.relay_state import RelayState
from core.models.sensor_data import SensorReading, SensorSnapshot
from core.processing.message_decoder import (
    DecodeError,
    DeviceText,
    decode_device_message,
    decode_viewer_message,
)
from core.services.simulator import Simulator

logger = logging.getLogger(__name__)

SUPERSEDED_CLOSE_CODE = 4000


def now_ms() -> int:
    return int(time.time() * 1000)


class Connection(Protocol):
    """What the relay needs from a transport handle."""

    @property
    def is_open(self) -> bool: ...

    async def send_json(self, data: dict) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class RelayCore:
    """
    Arbitrates between one device connection and any number of viewers.

    Holds the single current SensorSnapshot, the device slot and the viewer
    set. All mutations happen on the event loop, so no locking is needed.

    The device slot is tagged with an epoch that increments on every
    registration: a disconnect reported with an older epoch comes from a
    superseded connection and must not clear the current device.
    """

    def __init__(self, simulator_config: Optional[SimulatorConfig] = None, rng: Optional[random.Random] = None):
        self.snapshot = SensorSnapshot(timestamp=now_ms())
        self.state = RelayState.DEMO
        self.simulator = Simulator(
            self._on_simulated_reading,
            self._on_simulated_chatter,
            config=simulator_config,
            rng=rng,
        )
        self._device: Optional[Connection] = None
        self._epoch = 0
        self._viewers: Set[Connection] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Enter demo mode. Must be called from the running event loop."""
        if self._device is None:
            self.state = RelayState.DEMO
            self.simulator.start()

    def stop(self):
        self.simulator.stop()
        logger.info("Relay stopped")

    # ------------------------------------------------------------------
    # Connection registry
    # ------------------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def viewer_count(self) -> int:
        return len(self._viewers)

    def is_device_connected(self) -> bool:
        return self._device is not None and self._device.is_open

    def epoch_of(self, conn: Connection) -> Optional[int]:
        """Current epoch if ``conn`` holds the device slot, else None."""
        return self._epoch if self._device is conn else None

    async def register_device(self, conn: Connection) -> int:
        """
        Make ``conn`` the active device and switch to LIVE.
        A previously registered device is closed (replace-and-close-old).
        Returns the epoch the caller must present to release_device().
        """
        previous = self._device
        self._epoch += 1
        epoch = self._epoch
        self._device = conn
        self.state = RelayState.LIVE
        self.simulator.stop()

        if previous is not None and previous is not conn:
            logger.warning(f"New device connection supersedes the active one (epoch {epoch})")
            try:
                await previous.close(code=SUPERSEDED_CLOSE_CODE, reason="Superseded by a new device connection")
            except Exception as e:
                logger.debug(f"Error closing superseded device: {e}")

        logger.info(f"ESP32 connected (epoch {epoch}), leaving demo mode")
        await self._send(conn, {"type": "connected", "message": "ESP32 connected to server"})
        await self.broadcast({"type": "deviceStatus", "connected": True})
        return epoch

    async def release_device(self, epoch: int) -> bool:
        """
        Clear the device slot if ``epoch`` is still current and return to DEMO.
        Stale epochs are ignored.
        """
        if epoch != self._epoch or self._device is None:
            logger.debug(f"Ignoring stale device disconnect (epoch {epoch}, current {self._epoch})")
            return False

        self._device = None
        self.state = RelayState.DEMO
        logger.info("ESP32 disconnected, switching back to demo mode")
        # First simulated tick is one interval away, so viewers still see the status first
        self.simulator.start()
        await self.broadcast({
            "type": "deviceStatus",
            "connected": False,
            "message": "Device disconnected - switched to demo mode",
        })
        return True

    async def add_viewer(self, conn: Connection) -> bool:
        """Send the one-time initial sync, then subscribe the viewer to broadcasts."""
        sent = await self._send(conn, {
            "type": "initialData",
            "data": self.snapshot.to_dict(),
            "deviceConnected": self.is_device_connected(),
        })
        if sent:
            self._viewers.add(conn)
            logger.info(f"Frontend client connected (total: {len(self._viewers)})")
        return sent

    def remove_viewer(self, conn: Connection):
        if conn in self._viewers:
            self._viewers.discard(conn)
            logger.info(f"Frontend client disconnected (remaining: {len(self._viewers)})")

    # ------------------------------------------------------------------
    # Inbound traffic
    # ------------------------------------------------------------------

    async def handle_device_message(self, epoch: int, text: Optional[str]):
        if epoch != self._epoch:
            logger.debug(f"Dropping message from superseded device (epoch {epoch})")
            return

        try:
            message = decode_device_message(text)
        except DecodeError as e:
            logger.warning(f"Error parsing ESP32 message: {e}")
            await self.broadcast({
                "type": "error",
                "message": "Invalid data received from device",
                "timestamp": now_ms(),
            })
            return

        if isinstance(message, SensorReading):
            self.update_snapshot(message)
            await self.broadcast({"type": "sensorData", "data": self.snapshot.to_dict()})
        elif isinstance(message, DeviceText):
            await self.broadcast({"type": "esp32Message", "message": message.content, "timestamp": now_ms()})

    async def handle_viewer_message(self, conn: Connection, text: Optional[str]):
        try:
            command = decode_viewer_message(text)
        except DecodeError as e:
            logger.warning(f"Error parsing frontend message: {e}")
            await self._send(conn, {"type": "error", "message": "Invalid message format"})
            return

        if command is None:
            return
        if not await self.send_to_device(command):
            await self._send(conn, {"type": "error", "message": "Device not connected"})

    # ------------------------------------------------------------------
    # Outbound traffic
    # ------------------------------------------------------------------

    def update_snapshot(self, reading: SensorReading) -> SensorSnapshot:
        """Replace the snapshot wholesale. Timestamps never go backwards."""
        timestamp = max(now_ms(), self.snapshot.timestamp)
        self.snapshot = SensorSnapshot.from_reading(reading, timestamp)
        return self.snapshot

    async def send_to_device(self, command: Command) -> bool:
        """Forward a command to the device. Returns False when there is nowhere to deliver it."""
        device = self._device
        if device is None or not device.is_open:
            logger.warning(f"ESP32 not connected, dropping {command.kind} command")
            return False
        try:
            await device.send_json(command.to_message())
        except Exception as e:
            logger.error(f"Failed to send {command.kind} command to ESP32: {e}")
            return False
        logger.debug(f"Forwarded {command.kind} command to ESP32")
        return True

    async def broadcast(self, message: dict) -> int:
        """
        Best-effort fan-out to every open viewer.
        Closed or failing viewers are dropped from the set; never raises.
        Returns the number of viewers the message was handed to.
        """
        delivered = 0
        # Copy, the set may change while we await sends
        for conn in list(self._viewers):
            if not conn.is_open:
                self._viewers.discard(conn)
                continue
            try:
                await conn.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"Dropping viewer after failed send: {e}")
                self._viewers.discard(conn)
        return delivered

    async def _send(self, conn: Connection, message: dict) -> bool:
        try:
            await conn.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Send failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Simulator callbacks
    # ------------------------------------------------------------------

    async def _on_simulated_reading(self, reading: SensorReading):
        if self._device is not None:
            return
        self.update_snapshot(reading)
        await self.broadcast({"type": "sensorData", "data": self.snapshot.to_dict()})

    async def _on_simulated_chatter(self, text: str):
        if self._device is not None:
            return
        await self.broadcast({"type": "esp32Message", "message": text, "timestamp": now_ms()})
