import datetime
import ipaddress
import re
import socket
from typing import Optional

import psutil

from . import config

# Interfaces created by hypervisors and container runtimes; their addresses are
# not reachable from a phone on the LAN.
VIRTUAL_INTERFACE_PREFIXES = ('vethernet', 'docker', 'br-', 'veth', 'virbr')

_LOCALHOST_PATTERN = re.compile('localhost', re.IGNORECASE)


def is_link_local_address(address: str) -> bool:
    try:
        return ipaddress.IPv4Address(address).is_link_local
    except ValueError:
        return False


def is_docker_internal_ip(address: str) -> bool:
    """Return True for addresses in Docker's bridge range (172.16.0.0/12)."""
    try:
        return ipaddress.IPv4Address(address) in ipaddress.IPv4Network('172.16.0.0/12')
    except ValueError:
        return False


def _is_virtual_interface(name: str) -> bool:
    lowered = name.lower()
    return any(lowered.startswith(prefix) for prefix in VIRTUAL_INTERFACE_PREFIXES)


def get_machine_lan_ip() -> Optional[str]:
    """
    Return the first usable IPv4 LAN address of this machine.

    Loopback, link-local, and virtual adapters are skipped. Inside a Docker
    container the only address is a bridge address, so None is returned and
    callers fall back to the Host header set by the reverse proxy.
    """
    try:
        interfaces = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as exc:
        config.logger.warning('[Network] unable to enumerate interfaces: %s', exc)
        return None

    for name, addresses in interfaces.items():
        interface_stats = stats.get(name)
        if interface_stats is not None and not interface_stats.isup:
            continue
        if _is_virtual_interface(name):
            continue
        for entry in addresses:
            if entry.family != socket.AF_INET:
                continue
            address = entry.address
            if address.startswith('127.') or is_link_local_address(address):
                continue
            if is_docker_internal_ip(address):
                config.logger.debug('[Network] %s on %s looks like a container address', address, name)
                return None
            return address
    return None


def get_host_ip() -> Optional[str]:
    """Return the configured HOST_IP override, else the detected LAN address."""
    if config.HOST_IP:
        return config.HOST_IP
    return get_machine_lan_ip()


def get_ip_address() -> str:
    """
    Get the local IP address of the machine.
    """
    detected = get_host_ip()
    if detected:
        return detected
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # doesn't even have to be reachable
        s.connect(('10.254.254.254', 1))
        ip = s.getsockname()[0]
    except OSError:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip


def host_without_port(host: str) -> str:
    """Strip the port from ``host:port`` or ``[v6]:port`` strings."""
    if not host:
        return host
    if host.startswith('['):
        closing = host.find(']')
        return host[:closing + 1] if closing > 0 else host
    if ':' not in host:
        return host
    return host[:host.rfind(':')]


def build_admin_url(
    admin_url: str,
    scheme: str,
    request_host: str,
    request_port: Optional[int] = None,
    forwarded_host: Optional[str] = None,
    machine_ip: Optional[str] = None
) -> str:
    """
    Turn the configured admin URL into one a phone can open from a QR code.

    Host priority is a forwarded host that is not localhost, then the machine
    LAN address with the request port, then the request Host header.
    """
    if forwarded_host and 'localhost' not in forwarded_host.lower():
        host_with_port = forwarded_host
        host_only = host_without_port(forwarded_host)
    elif machine_ip:
        host_with_port = f"{machine_ip}:{request_port}" if request_port else machine_ip
        host_only = machine_ip
    else:
        host_with_port = request_host
        host_only = host_without_port(request_host)

    if admin_url.startswith('/'):
        return f"{scheme}://{host_with_port}{admin_url}"
    if 'localhost' in admin_url.lower():
        return _LOCALHOST_PATTERN.sub(host_only, admin_url)
    return admin_url


def to_iso_datetime(value: Optional[datetime.datetime]) -> str:
    """Return an ISO-8601 representation for datetimes or POSIX timestamps."""
    if value is None:
        return ''
    if isinstance(value, (int, float)):
        if value <= 0:
            return ''
        value = datetime.datetime.fromtimestamp(value, datetime.timezone.utc)
    trimmed = value.replace(microsecond=0)
    return trimmed.isoformat()
