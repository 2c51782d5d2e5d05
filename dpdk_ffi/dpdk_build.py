#!/usr/bin/env python3


import os

from cffi import FFI

from dpdk_ffi.config import BuildConfig, env_flag
from dpdk_ffi.pipeline import build_artifacts
from dpdk_ffi.shim import read_shim_cdef
from dpdk_ffi.utils import init_logger


def build_ffi(config):
    artifacts = build_artifacts(config)

    ffibuilder = FFI()
    # set source
    ffibuilder.set_source("dpdk_ffi._dpdk",
        """
        #include "wrapper.h"
        """,
        include_dirs=[os.path.dirname(os.path.realpath(__file__))] +
                     artifacts.include_dirs,
        extra_link_args=artifacts.link_args())
    ffibuilder.cdef(artifacts.cdef + '\n' + read_shim_cdef())
    return ffibuilder


if __name__ == "__main__":
    init_logger(debug=env_flag(os.environ, 'DPDK_FFI_DEBUG'))
    ffi = build_ffi(BuildConfig.from_env())
    ffi.compile(verbose=True)
else:
    ffi = build_ffi(BuildConfig.from_env())
