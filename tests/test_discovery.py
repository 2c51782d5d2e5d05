import os

import pkgconfig
import pytest

from dpdk_ffi.config import BuildConfig
from dpdk_ffi.discovery import discover_flags
from dpdk_ffi.exceptions import ExternalToolError


CFLAGS = '-I/opt/dpdk/include -include rte_config.h -march=native'
LIBS = '-L/opt/dpdk/lib/x86_64-linux-gnu -l:librte_eal.a -lnuma -pthread'


#
# Fixtures
#
@pytest.fixture
def config(tmp_path):
    return BuildConfig('/opt/dpdk', out_dir=tmp_path)


@pytest.fixture
def calls(monkeypatch):
    calls = []

    def cflags(package, **kwargs):
        calls.append(('cflags', package, kwargs,
                      os.environ.get('PKG_CONFIG_PATH')))
        return CFLAGS

    def libs(package, **kwargs):
        calls.append(('libs', package, kwargs,
                      os.environ.get('PKG_CONFIG_PATH')))
        return LIBS

    monkeypatch.setattr(pkgconfig, 'cflags', cflags)
    monkeypatch.setattr(pkgconfig, 'libs', libs)
    return calls


#
# Queries
#
def test_discover_flags(config, calls):
    raw = discover_flags(config)
    assert raw.cflags == CFLAGS
    assert raw.libs == LIBS


def test_queries_are_scoped(config, calls, monkeypatch):
    monkeypatch.setenv('PKG_CONFIG_PATH', '/usr/lib/pkgconfig')
    discover_flags(config)
    expected = '/opt/dpdk/lib/x86_64-linux-gnu/pkgconfig'
    assert calls == [
        ('cflags', 'libdpdk', {}, expected),
        ('libs', 'libdpdk', {'static': True}, expected),
    ]
    assert os.environ['PKG_CONFIG_PATH'] == '/usr/lib/pkgconfig'


def test_env_restored(config, calls, monkeypatch):
    monkeypatch.delenv('PKG_CONFIG_PATH', raising=False)
    discover_flags(config)
    assert 'PKG_CONFIG_PATH' not in os.environ


#
# Failures
#
@pytest.mark.parametrize('error', [
    pkgconfig.PackageNotFoundError('libdpdk'),
    OSError('pkg-config is probably not installed'),
    UnicodeDecodeError('utf-8', b'\xff', 0, 1, 'invalid start byte'),
])
def test_query_failure(config, monkeypatch, error):
    def fail(package, **kwargs):
        raise error

    monkeypatch.setattr(pkgconfig, 'cflags', fail)
    with pytest.raises(ExternalToolError) as excinfo:
        discover_flags(config)
    assert excinfo.value.tool == 'pkg-config'


def test_empty_libs(config, calls, monkeypatch):
    monkeypatch.setattr(pkgconfig, 'libs', lambda package, **kwargs: '')
    raw = discover_flags(config)
    # an empty directive list is valid, it just gets no guard bracket
    assert raw.libs == ''
    assert raw.cflags == CFLAGS
