import os
from pathlib import Path

from .exceptions import ConfigurationError


DPDK_PATH_VAR = 'DPDK_PATH'
MLX5_VAR = 'DPDK_FFI_MLX5'
OUT_DIR_VAR = 'DPDK_FFI_OUT_DIR'
PKG_CONFIG_SUBDIR_VAR = 'DPDK_PKG_CONFIG_SUBDIR'

DEFAULT_PKG_CONFIG_SUBDIR = 'lib/x86_64-linux-gnu/pkgconfig'
DEFAULT_OUT_DIR = 'build/dpdk_ffi'
TRUE_VALUES = ('1', 'true', 'yes', 'on')

# a change in any of these must invalidate a previous build
TRACKED_ENV = (DPDK_PATH_VAR, MLX5_VAR, PKG_CONFIG_SUBDIR_VAR)


def env_flag(environ, name):
    return environ.get(name, '').strip().lower() in TRUE_VALUES


class BuildConfig(object):

    __slots__ = (
        'dpdk_path',
        'pkg_config_subdir',
        'out_dir',
        'mlx5',
        'cc',
        'ar',
        'tracked_env',
    )

    def __init__(self, dpdk_path, out_dir=DEFAULT_OUT_DIR, mlx5=False,
                 pkg_config_subdir=DEFAULT_PKG_CONFIG_SUBDIR, cc='cc',
                 ar='ar', tracked_env=None):
        if not dpdk_path:
            raise ConfigurationError('{} must point to a DPDK installation'
                                     .format(DPDK_PATH_VAR))
        object.__setattr__(self, 'dpdk_path', Path(dpdk_path))
        object.__setattr__(self, 'pkg_config_subdir', pkg_config_subdir)
        object.__setattr__(self, 'out_dir', Path(out_dir))
        object.__setattr__(self, 'mlx5', bool(mlx5))
        object.__setattr__(self, 'cc', cc)
        object.__setattr__(self, 'ar', ar)
        if tracked_env is None:
            tracked_env = {DPDK_PATH_VAR: str(dpdk_path)}
        object.__setattr__(self, 'tracked_env', dict(tracked_env))

    def __setattr__(self, name, value):
        raise AttributeError('BuildConfig is read-only')

    @classmethod
    def from_env(cls, environ=None):
        if environ is None:
            environ = os.environ
        dpdk_path = environ.get(DPDK_PATH_VAR, '').strip()
        if not dpdk_path:
            raise ConfigurationError('{} is not set'.format(DPDK_PATH_VAR))
        return cls(dpdk_path,
                   out_dir=environ.get(OUT_DIR_VAR) or DEFAULT_OUT_DIR,
                   mlx5=env_flag(environ, MLX5_VAR),
                   pkg_config_subdir=(environ.get(PKG_CONFIG_SUBDIR_VAR) or
                                      DEFAULT_PKG_CONFIG_SUBDIR),
                   cc=environ.get('CC') or 'cc',
                   ar=environ.get('AR') or 'ar',
                   tracked_env={name: environ.get(name, '')
                                for name in TRACKED_ENV})

    @property
    def pkg_config_path(self):
        return self.dpdk_path / self.pkg_config_subdir

    def __repr__(self):
        return 'BuildConfig(dpdk_path={!r}, mlx5={})'.format(
            str(self.dpdk_path), self.mlx5)
