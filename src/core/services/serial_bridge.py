"""
Serial-to-WebSocket bridge for a USB-attached headband.

Reads newline-delimited output from the ESP32, forwards it to the relay's
device endpoint, and writes relay commands back to the serial port. To the
relay the bridge is just another device client.
"""
import asyncio
import json
import logging
from typing import Optional

import serial
import websockets

logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://localhost:8080/esp32"
DEFAULT_BAUDRATE = 115200
RECONNECT_DELAY = 3.0


def parse_serial_line(line: str) -> Optional[dict]:
    """
    Turn one line of ESP32 output into a relay message.
    JSON objects are sensor readings, anything else is a plain text message.
    """
    stripped = line.strip()
    if not stripped:
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        return {**data, "type": "sensorData"}
    return {"type": "message", "content": stripped}


def encode_serial_command(message: dict) -> Optional[bytes]:
    """Serialize a relay command for the ESP32. Non-command messages are not forwarded."""
    if message.get("type") != "command":
        return None
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


class SerialBridge:
    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE, url: str = DEFAULT_URL,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.port = port
        self.baudrate = baudrate
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.running = False
        self._serial: Optional[serial.Serial] = None

    def open_serial(self) -> serial.Serial:
        """Open the serial port. Failure is fatal for the bridge."""
        try:
            self._serial = serial.Serial(self.port, self.baudrate, timeout=0.1)
        except serial.SerialException as e:
            logger.error(f"Error opening serial port {self.port}: {e}")
            logger.error("Check the USB cable, the port name, and that no serial monitor holds the port")
            raise
        logger.info(f"Serial port {self.port} opened @ {self.baudrate} baud")
        return self._serial

    async def run(self):
        """Bridge until stop() is called, reconnecting to the relay after each drop."""
        if self._serial is None:
            self.open_serial()
        self.running = True
        try:
            while self.running:
                try:
                    async with websockets.connect(self.url) as ws:
                        logger.info(f"Connected to relay at {self.url}")
                        await self._pump(ws)
                except (OSError, websockets.WebSocketException) as e:
                    logger.warning(f"Relay connection error: {e}")
                if self.running:
                    logger.info(f"WebSocket closed. Reconnecting in {self.reconnect_delay:.0f}s...")
                    await asyncio.sleep(self.reconnect_delay)
        finally:
            self.close()

    def stop(self):
        self.running = False

    def close(self):
        if self._serial is not None and self._serial.is_open:
            self._serial.close()
            logger.info("Serial port closed")
        self._serial = None

    async def _pump(self, ws):
        reader = asyncio.create_task(self._serial_to_relay(ws))
        try:
            async for raw in ws:
                self._relay_to_serial(raw)
        finally:
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    def _relay_to_serial(self, raw):
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Error parsing relay message: {e}")
            return
        if not isinstance(message, dict):
            return
        payload = encode_serial_command(message)
        if payload is None:
            logger.debug(f"Received from relay: {message}")
            return
        try:
            self._serial.write(payload)
            logger.info(f"Sent to ESP32: {payload.decode('utf-8').strip()}")
        except serial.SerialException as e:
            logger.error(f"Error writing to serial: {e}")

    async def _serial_to_relay(self, ws):
        try:
            while True:
                line = await self._read_line()
                if line is None:
                    continue
                message = parse_serial_line(line)
                if message is not None:
                    await ws.send(json.dumps(message))
        except (serial.SerialException, OSError) as e:
            logger.error(f"Serial port error: {e}")
            self.stop()
            await ws.close()

    async def _read_line(self) -> Optional[str]:
        if self._serial.in_waiting > 0:
            try:
                line = self._serial.readline().decode('utf-8').strip()
                if line:
                    logger.debug(f"ESP32: {line}")
                    return line
            except UnicodeDecodeError:
                logger.warning(f"Error decoding serial data from {self.port}")
        await asyncio.sleep(0.01)
        return None
