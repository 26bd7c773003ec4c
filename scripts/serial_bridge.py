#!/usr/bin/env python3
"""
Forward a USB-attached ESP32 headband to the relay's device endpoint.

Usage: python scripts/serial_bridge.py [PORT] [--baud 115200] [--url ws://localhost:8080/esp32]
Windows ports look like COM3, Linux /dev/ttyUSB0, macOS /dev/cu.usbserial-*.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

import serial

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.services.serial_bridge import DEFAULT_BAUDRATE, DEFAULT_URL, SerialBridge


def main() -> int:
    parser = argparse.ArgumentParser(description="ESP32 serial to WebSocket bridge")
    parser.add_argument("port", nargs="?", default="COM3", help="serial port of the ESP32")
    parser.add_argument("--baud", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--url", default=DEFAULT_URL, help="relay device endpoint")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    bridge = SerialBridge(args.port, baudrate=args.baud, url=args.url)
    try:
        bridge.open_serial()
    except serial.SerialException:
        return 1

    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        logging.info("Shutting down bridge...")
        bridge.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
