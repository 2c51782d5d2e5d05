#!/usr/bin/env python3


import os

from setuptools import setup


# the cffi extension needs a DPDK tree, without one only the build
# pipeline itself is installed
if os.environ.get('DPDK_PATH'):
    cffi_options = dict(
        setup_requires=["cffi>=1.15.0", "pkgconfig>=1.5.0",
                        "pycparser>=2.21,<3"],
        cffi_modules=['dpdk_ffi/dpdk_build.py:ffi'],
    )
else:
    cffi_options = {}


setup(
    name='dpdk-ffi',
    version='0.1.0',
    description='Build-time DPDK linkage and cffi bindings',
    python_requires='>=3.7',
    install_requires=["cffi>=1.15.0", "pkgconfig>=1.5.0",
                      "pycparser>=2.21,<3"],
    extras_require={
        'tests': [
            'pycodestyle',
            'pylint',
            'pytest',
        ],
    },
    packages=['dpdk_ffi'],
    package_data={
        'dpdk_ffi': ['*_cdef.h', 'wrapper.h', 'inlined.c']
    },
    zip_safe=False,
    **cffi_options
)
