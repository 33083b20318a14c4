"""Tests for the inbound device command surface."""

from __future__ import annotations

import pytest
from unittest.mock import AsyncMock

from database.models import DeviceRecord, RoomRecord
from device_command_handler import DeviceCommandHandler
from discovery.manager import CameraDiscovery
from services.connection_supervisor import ConnectionSupervisor
from services.reconciler import RegistryReconciler
from tests.fakes import FakeDevice, run


pytestmark = pytest.mark.unit


@pytest.fixture
def handler(registry, network, network_config):
    supervisor = ConnectionSupervisor(registry, network_config, camera_factory=network.camera_factory)
    reconciler = RegistryReconciler(registry, supervisor)
    discovery = CameraDiscovery(network_config, registry, reconciler, camera_factory=network.camera_factory)
    return DeviceCommandHandler(registry, discovery, reconciler, supervisor, namespace="onvif.0")


class TestDiscoveryCommand:
    def test_discovery_reply(self, handler, network):
        network.devices[("10.0.0.2", 80)] = FakeDevice()
        reply = run(handler.handle_message({
            "command": "discovery",
            "from": "system.adapter.admin.0",
            "callback": {"id": 7},
            "message": {"start_range": "10.0.0.1", "end_range": "10.0.0.3", "ports": "80"},
        }))

        assert reply.to == "system.adapter.admin.0"
        assert reply.callback == {"id": 7}
        assert reply.payload["error"] is None
        assert [d["id"] for d in reply.payload["newInstances"]] == ["10_0_0_2_80"]
        assert [d["id"] for d in reply.payload["devices"]] == ["10_0_0_2_80"]

    def test_new_device_connected_after_discovery(self, handler, network):
        network.devices[("10.0.0.2", 80)] = FakeDevice()
        run(handler.discovery_command({"start_range": "10.0.0.2", "ports": [80]}))
        assert handler.supervisor.is_connected("10_0_0_2_80")

    def test_rediscovery_reports_no_new_instances(self, handler, network):
        network.devices[("10.0.0.2", 80)] = FakeDevice()
        run(handler.discovery_command({"start_range": "10.0.0.2", "ports": [80]}))
        second = run(handler.discovery_command({"start_range": "10.0.0.2", "ports": [80]}))
        assert second.new_devices == []
        assert len(second.devices) == 1

    def test_missing_start_range(self, handler, registry):
        result = run(handler.discovery_command({}))
        assert result.error == "start_range is required"
        assert registry.state_history == []

    def test_credentials_passed_through(self, handler, network):
        network.devices[("10.0.0.2", 80)] = FakeDevice()
        result = run(handler.discovery_command(
            {"start_range": "10.0.0.2", "ports": [80], "user": "op", "pass": "pw"}))
        assert result.devices[0].username == "op"
        assert result.devices[0].password == "pw"


class TestGetDevices:
    def test_listing_with_rooms(self, handler, registry):
        registry.devices["10_0_0_1_80"] = DeviceRecord("10_0_0_1_80", "10.0.0.1:80", {"ip": "10.0.0.1"})
        registry.devices["10_0_0_2_80"] = DeviceRecord("10_0_0_2_80", "10.0.0.2:80", {"ip": "10.0.0.2"})
        registry.rooms = [
            RoomRecord("enum.rooms.hall", "Hall", ["onvif.0.10_0_0_1_80"]),
            RoomRecord("enum.rooms.garage", "Garage", ["10_0_0_1_80", "onvif.0.10_0_0_2_80"]),
            RoomRecord("enum.rooms.attic", "Attic", []),
        ]

        devices = run(handler.get_devices())

        by_id = {d["id"]: d for d in devices}
        assert by_id["10_0_0_1_80"]["_id"] == "onvif.0.10_0_0_1_80"
        assert by_id["10_0_0_1_80"]["rooms"] == ["Hall", "Garage"]
        assert by_id["10_0_0_2_80"]["rooms"] == ["Garage"]
        assert by_id["10_0_0_1_80"]["common"] == {"name": "10.0.0.1:80", "data": {"ip": "10.0.0.1"}}
        assert by_id["10_0_0_1_80"]["connected"] is False

    def test_empty_registry(self, handler):
        reply = run(handler.handle_message({"command": "getDevices"}))
        assert reply.payload == []


class TestDeleteDevice:
    def test_namespaced_id_stripped(self, handler, registry):
        registry.devices["10_0_0_1_80"] = DeviceRecord("10_0_0_1_80", "cam", {"ip": "10.0.0.1"})
        reply = run(handler.handle_message(
            {"command": "deleteDevice", "message": {"id": "onvif.0.10_0_0_1_80"}}))

        assert reply.payload == {}
        assert registry.devices == {}
        assert run(handler.get_devices()) == []

    def test_bare_id(self, handler, registry):
        registry.devices["10_0_0_1_80"] = DeviceRecord("10_0_0_1_80", "cam", {"ip": "10.0.0.1"})
        run(handler.delete_device("10_0_0_1_80"))
        assert registry.devices == {}

    def test_unknown_id_acknowledged(self, handler):
        reply = run(handler.handle_message({"command": "deleteDevice", "message": {"id": "nope"}}))
        assert reply.payload == {}


class TestSnapshot:
    def test_snapshot_bytes(self, handler, registry, network):
        registry.devices["10_0_0_1_80"] = DeviceRecord(
            "10_0_0_1_80", "cam", {"ip": "10.0.0.1", "port": 80, "user": "a", "pass": "b"})
        network.devices[("10.0.0.1", 80)] = FakeDevice(snapshot=b"IMG")
        run(handler.supervisor.refresh_connections())

        reply = run(handler.handle_message(
            {"command": "getSnapshot", "message": {"id": "onvif.0.10_0_0_1_80"}}))
        assert reply.payload == b"IMG"

    def test_no_connection_no_reply(self, handler):
        assert run(handler.handle_message({"command": "getSnapshot", "message": {"id": "x"}})) is None


class TestDispatch:
    def test_unknown_command_answered_with_error(self, handler):
        reply = run(handler.handle_message({"command": "reboot", "from": "admin.0"}))
        assert reply.to == "admin.0"
        assert reply.payload == {"error": "Unknown command: reboot"}

    def test_missing_command_answered_with_error(self, handler):
        reply = run(handler.handle_message({"message": {"id": "x"}}))
        assert "error" in reply.payload

    def test_empty_envelope_ignored(self, handler):
        assert run(handler.handle_message({})) is None
        assert run(handler.handle_message(None)) is None

    def test_non_object_parameters_rejected(self, handler):
        reply = run(handler.handle_message({"command": "deleteDevice", "message": "10_0_0_1_80"}))
        assert "error" in reply.payload

    def test_failing_command_answered_with_error(self, handler, registry):
        registry.get_devices = AsyncMock(side_effect=RuntimeError("registry offline"))
        reply = run(handler.handle_message({"command": "getDevices"}))
        assert reply.payload == {"error": "getDevices failed: registry offline"}


class TestDiscoveryFailures:
    def test_reconcile_failure_reported(self, handler, network):
        network.devices[("10.0.0.2", 80)] = FakeDevice()
        handler.discovery.reconciler = AsyncMock()
        handler.discovery.reconciler.reconcile.side_effect = RuntimeError("registry offline")

        reply = run(handler.handle_message(
            {"command": "discovery", "message": {"start_range": "10.0.0.2", "ports": [80]}}))

        assert reply.payload["error"] == "Discovery failed: registry offline"
        assert not handler.discovery.running

    def test_non_string_range_rejected(self, handler, network):
        result = run(handler.discovery_command({"start_range": 3232235777}))
        assert result.error
        assert network.calls == []

        result = run(handler.discovery_command({"start_range": "10.0.0.1", "end_range": ["10.0.0.9"]}))
        assert result.error
        assert network.calls == []
