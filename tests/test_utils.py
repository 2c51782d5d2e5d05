import os
import subprocess

import pytest

from dpdk_ffi.exceptions import ExternalToolError
from dpdk_ffi.utils import run_tool, scoped_env


#
# Fixtures
#
@pytest.fixture
def completed(monkeypatch):
    result = {}

    def run(args, **kwargs):
        result['args'] = args
        if 'error' in result:
            raise result['error']
        return subprocess.CompletedProcess(args, result.get('returncode', 0),
                                           result.get('stdout', b''),
                                           result.get('stderr', b''))

    monkeypatch.setattr(subprocess, 'run', run)
    return result


#
# run_tool
#
def test_returns_stdout(completed):
    completed['stdout'] = b'-I/opt/dpdk/include\n'
    assert run_tool(['pkg-config', '--cflags', 'libdpdk']) == \
        '-I/opt/dpdk/include\n'
    assert completed['args'] == ['pkg-config', '--cflags', 'libdpdk']


def test_nonzero_exit(completed):
    completed['returncode'] = 1
    completed['stderr'] = b'inlined.c:1: error: rte_mbuf.h not found\n'
    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(['cc', '-c', 'inlined.c'])
    assert excinfo.value.tool == 'cc'
    assert excinfo.value.diagnostic == \
        'inlined.c:1: error: rte_mbuf.h not found'


def test_nonzero_exit_without_stderr(completed):
    completed['returncode'] = 2
    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(['ar', 'crs'], tool='archiver')
    assert excinfo.value.tool == 'archiver'
    assert 'exit status 2' in str(excinfo.value)


def test_not_found(completed):
    completed['error'] = FileNotFoundError(2, 'No such file or directory')
    with pytest.raises(ExternalToolError):
        run_tool(['no-such-cc', '-E'])


def test_non_text_output(completed):
    completed['stdout'] = b'\xff\xfe'
    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(['pkg-config', '--libs'])
    assert 'non-text output' in str(excinfo.value)


#
# scoped_env
#
def test_scoped_env_restores(monkeypatch):
    monkeypatch.setenv('DPDK_FFI_TEST_VAR', 'old')
    with scoped_env('DPDK_FFI_TEST_VAR', 'new'):
        assert os.environ['DPDK_FFI_TEST_VAR'] == 'new'
    assert os.environ['DPDK_FFI_TEST_VAR'] == 'old'


def test_scoped_env_removes(monkeypatch):
    monkeypatch.delenv('DPDK_FFI_TEST_VAR', raising=False)
    with pytest.raises(RuntimeError):
        with scoped_env('DPDK_FFI_TEST_VAR', 'new'):
            raise RuntimeError('boom')
    assert 'DPDK_FFI_TEST_VAR' not in os.environ
