import logging

import pkgconfig

from .exceptions import ExternalToolError
from .utils import scoped_env


DPDK_PACKAGE = 'libdpdk'


class RawFlags(object):

    __slots__ = (
        'cflags',
        'libs',
    )

    def __init__(self, cflags, libs):
        self.cflags = cflags
        self.libs = libs

    def __repr__(self):
        return 'RawFlags(cflags={!r}, libs={!r})'.format(self.cflags,
                                                         self.libs)


def query(func, package, **kwargs):
    try:
        return func(package, **kwargs)
    except (pkgconfig.PackageNotFoundError, OSError) as e:
        raise ExternalToolError('pkg-config', str(e)) from e
    except UnicodeDecodeError as e:
        raise ExternalToolError('pkg-config', 'non-text output') from e


def discover_flags(config, package=DPDK_PACKAGE):
    """Query pkg-config for the compile flags and static link flags of
    ``package``, searching only the pkgconfig directory of the configured
    DPDK installation.
    """
    pkg_config_path = str(config.pkg_config_path)
    logging.info('Querying pkg-config for %s in %s', package, pkg_config_path)
    with scoped_env('PKG_CONFIG_PATH', pkg_config_path):
        cflags = query(pkgconfig.cflags, package)
        # we want to *statically* link DPDK, its dynamic dependencies
        # (libmlx5, libibverbs, libnl...) still come out as plain -l flags
        libs = query(pkgconfig.libs, package, static=True)
    logging.debug('cflags: %s', cflags)
    logging.debug('libs: %s', libs)
    return RawFlags(cflags, libs)
