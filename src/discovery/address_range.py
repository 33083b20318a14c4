"""
Candidate address generation for IP range scans
"""

import ipaddress
import logging
from typing import Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

PLACEHOLDER_ADDRESS = "0.0.0.0"


def parse_ipv4(ip: str) -> Optional[int]:
    """Dotted-quad to unsigned 32-bit integer, or None when it does not parse"""
    try:
        return int(ipaddress.IPv4Address(ip.strip()))
    except (ipaddress.AddressValueError, ValueError, AttributeError):
        return None


def ip_to_long(ip: str) -> int:
    """
    Dotted-quad to unsigned 32-bit integer.
    Malformed input maps to 0, the placeholder address.
    """
    value = parse_ipv4(ip)
    if value is None:
        logger.warning(f"Invalid IPv4 address: {ip!r}")
        return 0
    return value


def long_to_ip(value: int) -> str:
    return str(ipaddress.IPv4Address(value & 0xFFFFFFFF))


def get_id(address: str) -> str:
    """
    Registry id for 'host:port'.
    Dots and the port separator become underscores. Distinct IPv4 host:port pairs
    map to distinct ids because a dotted quad always has exactly four fields.
    """
    return address.replace('.', '_').replace(':', '_', 1)


class AddressRange:
    """
    Inclusive ascending range of IPv4 addresses.
    Iteration is lazy and restartable; start and end are swapped when reversed.
    If either end does not parse, the whole range collapses to the placeholder
    address so that one typo never widens the scan.
    """

    def __init__(self, start_ip: str, end_ip: str = None):
        if not end_ip:
            end_ip = start_ip
        self.start_ip = start_ip
        self.end_ip = end_ip

        start = parse_ipv4(start_ip)
        end = parse_ipv4(end_ip)
        self.malformed = start is None or end is None
        if self.malformed:
            logger.warning(f"Invalid IPv4 range {start_ip!r}-{end_ip!r}")
            start = end = 0
        elif start > end:
            start, end = end, start
        self.first = start
        self.last = end

    def __iter__(self) -> Iterator[str]:
        for value in range(self.first, self.last + 1):
            yield long_to_ip(value)

    def __len__(self) -> int:
        return self.last - self.first + 1

    def __repr__(self):
        return f"AddressRange({long_to_ip(self.first)}-{long_to_ip(self.last)})"

    @property
    def is_degenerate(self) -> bool:
        """True when the range collapsed to the single placeholder address"""
        return self.first == 0 and self.last == 0

    def candidates(self) -> List[str]:
        """
        Addresses to scan. A range that collapsed to 0.0.0.0 falls back to the
        original start address instead of scanning anything else.
        """
        if self.is_degenerate:
            logger.warning(f"Address range {self.start_ip!r}-{self.end_ip!r} collapsed to "
                           f"{PLACEHOLDER_ADDRESS}, scanning start address only")
            if not isinstance(self.start_ip, str) or not self.start_ip.strip():
                return []
            return [self.start_ip.strip()]
        return list(self)


def generate_range(start_ip: str, end_ip: str = None) -> List[str]:
    """Ascending list of every address between start_ip and end_ip inclusive"""
    return AddressRange(start_ip, end_ip).candidates()


def parse_ports(ports: Union[str, List, None], default: List[int] = None) -> List[int]:
    """
    Port list from '80, 8080' or [80, '8080']. Non-numeric entries are skipped.
    Duplicates are dropped, first occurrence wins.
    """
    if ports is None or ports == '' or ports == []:
        return list(default or [])

    if isinstance(ports, str):
        entries = ports.split(',')
    elif isinstance(ports, int):
        entries = [ports]
    else:
        entries = list(ports)

    result = []
    for entry in entries:
        try:
            port = int(str(entry).strip())
        except ValueError:
            logger.warning(f"Ignoring invalid port {entry!r}")
            continue
        if not 0 < port < 65536:
            logger.warning(f"Ignoring out of range port {port}")
            continue
        if port not in result:
            result.append(port)
    return result
