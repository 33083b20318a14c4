"""
Discovery module for ONVIF camera and NVR discovery
"""

from .address_range import AddressRange, generate_range, get_id, parse_ports
from .manager import CameraDiscovery, SCAN_ALREADY_RUNNING, DISCOVERY_STATE_KEY
from .models import Candidate, DeviceProfile, JoinBarrier, ScanResult, ScanState
from .probe import CandidateProbe, ProbeStep

__all__ = ['AddressRange', 'generate_range', 'get_id', 'parse_ports',
           'CameraDiscovery', 'SCAN_ALREADY_RUNNING', 'DISCOVERY_STATE_KEY',
           'Candidate', 'DeviceProfile', 'JoinBarrier', 'ScanResult', 'ScanState',
           'CandidateProbe', 'ProbeStep']
