"""End-to-end tests of the /esp32 and /frontend WebSocket endpoints."""
import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from core.models.relay_state import RelayState
from core.services.relay import SUPERSEDED_CLOSE_CODE
from core.services.transport import serve_device


class TestViewerEndpoint:

    def test_viewer_gets_initial_data(self, client):
        with client.websocket_connect("/frontend") as viewer:
            message = viewer.receive_json()
            assert message["type"] == "initialData"
            assert message["deviceConnected"] is False
            assert set(message["data"]) == {"heartRate", "temperature", "vibrationLevel", "timestamp"}

    def test_malformed_frame_keeps_connection_open(self, client):
        with client.websocket_connect("/frontend") as viewer:
            viewer.receive_json()
            viewer.send_text("this is not json")
            assert viewer.receive_json() == {"type": "error", "message": "Invalid message format"}

            viewer.send_json({"type": "command", "command": "vibrate", "level": 1})
            assert viewer.receive_json() == {"type": "error", "message": "Device not connected"}

    def test_binary_frames_are_accepted(self, client):
        with client.websocket_connect("/frontend") as viewer:
            viewer.receive_json()
            viewer.send_bytes(b'{"type": "command", "command": "massage", "enabled": true}')
            assert viewer.receive_json() == {"type": "error", "message": "Device not connected"}


class TestUnknownPath:

    @pytest.mark.parametrize("path", ["/", "/admin", "/esp32/extra"])
    def test_other_paths_are_closed(self, client, path):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(path):
                pass


class TestDeviceEndpoint:

    def test_device_lifecycle_seen_by_viewer(self, client):
        with client.websocket_connect("/frontend") as viewer:
            assert viewer.receive_json()["deviceConnected"] is False

            with client.websocket_connect("/esp32") as device:
                assert device.receive_json()["type"] == "connected"
                assert viewer.receive_json() == {"type": "deviceStatus", "connected": True}

                device.send_json({"type": "sensorData", "heartRate": 82, "temperature": 36.8, "vibrationLevel": 1})
                update = viewer.receive_json()
                assert update["type"] == "sensorData"
                assert update["data"]["heartRate"] == 82
                assert update["data"]["temperature"] == 36.8
                assert update["data"]["vibrationLevel"] == 1

                device.send_json({"type": "message", "content": "Motor check OK"})
                chatter = viewer.receive_json()
                assert chatter["type"] == "esp32Message"
                assert chatter["message"] == "Motor check OK"

                device.send_text("garbage")
                assert viewer.receive_json()["message"] == "Invalid data received from device"

                device.close(1006)
                status = viewer.receive_json()
                assert status["type"] == "deviceStatus"
                assert status["connected"] is False

            assert client.get("/health").json()["esp32Connected"] is False
            assert client.app.state.relay.simulator.is_running is True

    def test_viewer_command_reaches_device(self, client):
        with client.websocket_connect("/esp32") as device:
            device.receive_json()
            with client.websocket_connect("/frontend") as viewer:
                assert viewer.receive_json()["deviceConnected"] is True
                viewer.send_json({"type": "command", "command": "display", "message": "Breathe"})
                assert device.receive_json() == {"type": "command", "command": "display", "message": "Breathe"}

    def test_new_device_supersedes_old(self, client):
        with client.websocket_connect("/frontend") as viewer:
            viewer.receive_json()
            with client.websocket_connect("/esp32") as first:
                first.receive_json()
                viewer.receive_json()

                with client.websocket_connect("/esp32") as second:
                    assert second.receive_json()["type"] == "connected"
                    with pytest.raises(WebSocketDisconnect) as exc:
                        first.receive_json()
                    assert exc.value.code == SUPERSEDED_CLOSE_CODE
                    assert viewer.receive_json() == {"type": "deviceStatus", "connected": True}

                    # The old socket going away must not detach the new device
                    first.close(1000)
                    second.send_json({"type": "sensorData", "heartRate": 66})
                    assert viewer.receive_json()["type"] == "sensorData"
                    assert client.get("/health").json()["esp32Connected"] is True

    def test_unhandleable_frame_keeps_device_attached(self, client):
        with client.websocket_connect("/frontend") as viewer:
            viewer.receive_json()
            with client.websocket_connect("/esp32") as device:
                device.receive_json()
                viewer.receive_json()

                device.send_text('{"type": "sensorData", "heartRate": ' + "9" * 400 + "}")
                assert viewer.receive_json()["message"] == "Invalid data received from device"

                device.send_text("[" * 100000 + "]" * 100000)
                assert viewer.receive_json()["message"] == "Invalid data received from device"

                device.send_json({"type": "sensorData", "heartRate": 71})
                update = viewer.receive_json()
                assert update["type"] == "sensorData"
                assert update["data"]["heartRate"] == 71
                assert client.get("/health").json()["esp32Connected"] is True

    def test_unhandleable_viewer_frame_keeps_viewer_connected(self, client):
        with client.websocket_connect("/frontend") as viewer:
            viewer.receive_json()
            viewer.send_text("[" * 100000 + "]" * 100000)
            assert viewer.receive_json() == {"type": "error", "message": "Invalid message format"}

            viewer.send_json({"type": "command", "command": "vibrate", "level": 1})
            assert viewer.receive_json() == {"type": "error", "message": "Device not connected"}


class StuckConnection:
    """Previous device whose close handshake never completes."""

    is_open = True

    async def send_json(self, data):
        pass

    async def close(self, code=1000, reason=None):
        await asyncio.Event().wait()


class IdleWebSocket:
    """Minimal Starlette WebSocket double that never delivers a frame."""

    application_state = WebSocketState.CONNECTED
    client_state = WebSocketState.CONNECTED
    client = None

    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, data):
        self.sent.append(data)

    async def receive(self):
        await asyncio.Event().wait()

    async def close(self, code=1000, reason=None):
        pass


class TestDeviceHandler:

    @pytest.mark.asyncio
    async def test_cancel_during_registration_returns_to_demo(self, relay):
        await relay.register_device(StuckConnection())

        handler = asyncio.create_task(serve_device(relay, IdleWebSocket()))
        for _ in range(10):
            await asyncio.sleep(0)
        assert relay.epoch == 2
        assert relay.state == RelayState.LIVE

        handler.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handler

        assert relay.state == RelayState.DEMO
        assert relay.is_device_connected() is False
        assert relay.simulator.is_running is True
