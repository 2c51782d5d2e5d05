import logging
from pathlib import Path

from .utils import run_tool


PACKAGE_DIR = Path(__file__).resolve().parent
SHIM_SOURCE = PACKAGE_DIR / 'inlined.c'
SHIM_CDEF = PACKAGE_DIR / 'inlined_cdef.h'
SHIM_NAME = 'inlined'
SHIM_CFLAGS = ['-O3', '-fPIC', '-march=native']


def compile_shim(headers, out_dir, source=SHIM_SOURCE, cc='cc', ar='ar',
                 name=SHIM_NAME):
    """Compile the inline-function shim into lib<name>.a inside out_dir.

    The header set must be the one the bindings were generated from.
    """
    out_dir = Path(out_dir)
    obj = out_dir / '{}.o'.format(name)
    archive = out_dir / 'lib{}.a'.format(name)

    logging.info('Compiling %s', source)
    run_tool([cc, '-c'] + SHIM_CFLAGS + headers.include_args() +
             [str(source), '-o', str(obj)], tool=cc)
    if archive.exists():
        # ar appends to an existing archive
        archive.unlink()
    run_tool([ar, 'crs', str(archive), str(obj)], tool=ar)
    logging.info('Wrote %s', archive)
    return archive


def read_shim_cdef(path=SHIM_CDEF):
    with open(path) as f:
        return f.read()
