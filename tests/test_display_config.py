import socket
from collections import namedtuple

import pytest
from fastapi.testclient import TestClient

from frame_server import config, main, utils

_Addr = namedtuple('_Addr', ['family', 'address', 'netmask', 'broadcast', 'ptp'])
_Stats = namedtuple('_Stats', ['isup', 'duplex', 'speed', 'mtu'])


def _ipv4(address: str) -> _Addr:
    return _Addr(socket.AF_INET, address, '255.255.255.0', None, None)


def _patch_interfaces(monkeypatch, interfaces, down=()):
    stats = {name: _Stats(name not in down, 0, 0, 1500) for name in interfaces}
    monkeypatch.setattr(utils.psutil, 'net_if_addrs', lambda: interfaces)
    monkeypatch.setattr(utils.psutil, 'net_if_stats', lambda: stats)


@pytest.mark.parametrize('admin_url, kwargs, expected', [
    (
        '/admin',
        {'forwarded_host': 'frame.example.com', 'machine_ip': '192.168.1.20'},
        'https://frame.example.com/admin'
    ),
    (
        '/admin',
        {'forwarded_host': 'localhost:3000', 'machine_ip': '192.168.1.20', 'request_port': 5179},
        'https://192.168.1.20:5179/admin'
    ),
    (
        '/admin',
        {'machine_ip': '192.168.1.20'},
        'https://192.168.1.20/admin'
    ),
    (
        '/admin',
        {},
        'https://frame.local:8080/admin'
    ),
    (
        'http://localhost:4200/admin',
        {'machine_ip': '10.0.0.7', 'request_port': 5179},
        'http://10.0.0.7:4200/admin'
    ),
    (
        'http://LOCALHOST:4200/admin',
        {},
        'http://frame.local:4200/admin'
    ),
    (
        'https://admin.example.com/',
        {'machine_ip': '10.0.0.7'},
        'https://admin.example.com/'
    ),
])
def test_build_admin_url(admin_url, kwargs, expected):
    assert utils.build_admin_url(admin_url, 'https', 'frame.local:8080', **kwargs) == expected


def test_host_without_port():
    assert utils.host_without_port('192.168.1.5:8080') == '192.168.1.5'
    assert utils.host_without_port('[::1]:8080') == '[::1]'
    assert utils.host_without_port('[::1]') == '[::1]'
    assert utils.host_without_port('frame.local') == 'frame.local'
    assert utils.host_without_port('') == ''


def test_address_classification():
    assert utils.is_docker_internal_ip('172.17.0.2')
    assert utils.is_docker_internal_ip('172.31.255.1')
    assert not utils.is_docker_internal_ip('172.32.0.1')
    assert not utils.is_docker_internal_ip('not-an-ip')
    assert utils.is_link_local_address('169.254.10.1')
    assert not utils.is_link_local_address('192.168.1.1')


def test_machine_lan_ip_skips_loopback_virtual_and_link_local(monkeypatch):
    _patch_interfaces(monkeypatch, {
        'lo': [_ipv4('127.0.0.1')],
        'docker0': [_ipv4('172.17.0.1')],
        'vEthernet (WSL)': [_ipv4('172.20.0.1')],
        'eth1': [_ipv4('169.254.3.3')],
        'wlan0': [_ipv4('192.168.1.42')],
    })
    assert utils.get_machine_lan_ip() == '192.168.1.42'


def test_machine_lan_ip_skips_down_interfaces(monkeypatch):
    _patch_interfaces(
        monkeypatch,
        {'eth0': [_ipv4('10.1.1.1')], 'wlan0': [_ipv4('192.168.1.42')]},
        down=('eth0',)
    )
    assert utils.get_machine_lan_ip() == '192.168.1.42'


def test_machine_lan_ip_is_none_inside_container(monkeypatch):
    _patch_interfaces(monkeypatch, {'lo': [_ipv4('127.0.0.1')], 'eth0': [_ipv4('172.18.0.5')]})
    assert utils.get_machine_lan_ip() is None


def test_host_ip_override_wins(monkeypatch):
    monkeypatch.setattr(config, 'HOST_IP', '192.168.50.50')
    _patch_interfaces(monkeypatch, {'wlan0': [_ipv4('192.168.1.42')]})
    assert utils.get_host_ip() == '192.168.50.50'


def test_display_config_endpoint_prefers_forwarded_host(monkeypatch):
    monkeypatch.setattr(config, 'ADMIN_URL', '/admin')
    monkeypatch.setattr(utils, 'get_host_ip', lambda: '192.168.1.42')
    client = TestClient(main.app)

    resp = client.get(
        '/api/display/config',
        headers={'X-Forwarded-Host': 'photos.example.com', 'X-Forwarded-Proto': 'https'}
    )
    assert resp.status_code == 200
    assert resp.json() == {'admin_url': 'https://photos.example.com/admin'}


def test_display_config_endpoint_uses_lan_ip_over_localhost_proxy(monkeypatch):
    monkeypatch.setattr(config, 'ADMIN_URL', '/admin')
    monkeypatch.setattr(utils, 'get_host_ip', lambda: '192.168.1.42')
    client = TestClient(main.app)

    resp = client.get('/api/display/config', headers={'X-Forwarded-Host': 'localhost:3000'})
    assert resp.json() == {'admin_url': 'http://192.168.1.42/admin'}


def test_display_config_endpoint_falls_back_to_request_host(monkeypatch):
    monkeypatch.setattr(config, 'ADMIN_URL', '/admin')
    monkeypatch.setattr(utils, 'get_host_ip', lambda: None)
    client = TestClient(main.app)

    resp = client.get('/api/display/config')
    assert resp.json() == {'admin_url': 'http://testserver/admin'}
