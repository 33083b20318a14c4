"""Tests for the per-candidate probe pipeline."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from discovery.models import Candidate
from discovery.probe import CandidateProbe, ProbeStep
from onvif_client import OnvifFault
from tests.fakes import HANG, FakeDevice, FakeNetwork, run


pytestmark = pytest.mark.unit

CANDIDATE = Candidate(ip="192.168.1.10", port=80, username="admin", password="secret")


def _probe(network, timeout=0.2):
    return CandidateProbe(CANDIDATE, timeout=timeout, camera_factory=network.camera_factory)


class TestConnectionFailure:
    def test_no_device_returns_none(self):
        network = FakeNetwork()
        assert run(_probe(network).run()) is None

    def test_no_steps_after_failed_connect(self):
        network = FakeNetwork()
        run(_probe(network).run())
        assert [c[2] for c in network.calls] == ["connect"]

    def test_hanging_connect_times_out(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(connect=HANG)})
        assert run(_probe(network, timeout=0.05).run()) is None

    def test_session_closed_after_failed_connect(self):
        network = FakeNetwork()
        run(_probe(network).run())
        assert network.cameras[0].closed


class TestFullHandshake:
    def test_profile_populated(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            recordings=[{"recordingToken": "rec-1"}, {"recordingToken": "rec-2"}],
        )})
        profile = run(_probe(network).run())

        assert profile.id == "192_168_1_10_80"
        assert profile.name == "192.168.1.10:80"
        assert profile.username == "admin"
        assert profile.password == "secret"
        assert profile.cam_date == datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert profile.info["manufacturer"] == "Acme"
        assert profile.live_stream_tcp == {"uri": "rtsp://cam/tcp"}
        assert profile.live_stream_udp == {"uri": "rtsp://cam/udp"}
        assert profile.live_stream_multicast == {"uri": "rtsp://cam/multicast"}
        assert profile.replay_stream == {"uri": "rtsp://cam/replay"}
        assert profile.capabilities == {"Media": {"XAddr": "http://cam/onvif/media"}}

    def test_steps_run_in_order(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            recordings=[{"recordingToken": "rec-1"}],
        )})
        run(_probe(network).run())
        assert [c[2] for c in network.calls] == [
            "connect",
            "date",
            "info",
            "stream:RTSP:RTP-Unicast",
            "stream:UDP:RTP-Unicast",
            "stream:UDP:RTP-Multicast",
            "recordings",
            "replay:rec-1",
        ]

    def test_probe_ends_in_done_state(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice()})
        probe = _probe(network)
        run(probe.run())
        assert probe.step is ProbeStep.DONE

    def test_session_closed_after_success(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice()})
        run(_probe(network).run())
        assert network.cameras[0].closed


class TestPartialFailures:
    def test_failed_step_leaves_field_unset_and_continues(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            info=OnvifFault("ter:ActionNotSupported"),
        )})
        profile = run(_probe(network).run())
        assert profile.info is None
        assert profile.cam_date is not None
        assert profile.live_stream_tcp == {"uri": "rtsp://cam/tcp"}

    def test_unsupported_multicast(self):
        device = FakeDevice()
        del device.streams[("UDP", "RTP-Multicast")]
        network = FakeNetwork({("192.168.1.10", 80): device})
        profile = run(_probe(network).run())
        assert profile.live_stream_multicast is None
        assert profile.live_stream_udp == {"uri": "rtsp://cam/udp"}

    def test_no_recordings_skips_replay(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(recordings=[])})
        profile = run(_probe(network).run())
        assert profile.replay_stream is None
        assert not any(c[2].startswith("replay") for c in network.calls)

    def test_failed_recordings_skips_replay(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            recordings=OnvifFault("no recording service"),
        )})
        profile = run(_probe(network).run())
        assert profile.replay_stream is None
        assert not any(c[2].startswith("replay") for c in network.calls)

    def test_every_query_times_out(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            date=HANG, info=HANG, streams=HANG, recordings=HANG, capabilities=None,
        )})
        profile = run(_probe(network, timeout=0.05).run())

        assert profile is not None
        assert profile.id == "192_168_1_10_80"
        assert profile.ip == "192.168.1.10"
        assert profile.port == 80
        for field in ("cam_date", "info", "live_stream_tcp", "live_stream_udp",
                      "live_stream_multicast", "replay_stream", "capabilities"):
            assert getattr(profile, field) is None

    def test_unexpected_exception_is_contained(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(
            info=AttributeError("'str' object has no attribute 'get'"),
            recordings=[{"recordingToken": "rec-1"}],
        )})
        probe = _probe(network)
        profile = run(probe.run())

        assert profile is not None
        assert profile.info is None
        assert profile.live_stream_tcp == {"uri": "rtsp://cam/tcp"}
        assert profile.replay_stream == {"uri": "rtsp://cam/replay"}
        assert probe.errors[ProbeStep.DEVICE_INFO].startswith("AttributeError")
        assert probe.step is ProbeStep.DONE

    def test_unexpected_connect_exception_means_no_device(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(connect=RuntimeError("bad reply"))})
        probe = _probe(network)
        assert run(probe.run()) is None
        assert ProbeStep.CONNECT in probe.errors
        assert network.cameras[0].closed

    def test_malformed_recording_entry_skips_replay(self):
        network = FakeNetwork({("192.168.1.10", 80): FakeDevice(recordings=["rec-1"])})
        profile = run(_probe(network).run())
        assert profile.replay_stream is None
        assert not any(c[2].startswith("replay") for c in network.calls)
