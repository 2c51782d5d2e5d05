"""
Build pipeline: pkg-config discovery, flag translation, then linkage,
bindings and the inline-function shim from the same translated flags.
"""
import json
import logging
import os
from pathlib import Path

from .bindings import CDEF_FILENAME, WRAPPER_H, Bindings, generate_bindings
from .discovery import discover_flags
from .exceptions import DpdkBuildError
from .flags import HeaderSet, translate_compile_flags, translate_link_flags
from .linkage import (InstructionKind, emit_linkage, link_args,
                      parse_instructions, render_instructions,
                      rerun_if_changed)
from .shim import SHIM_SOURCE, compile_shim


INSTRUCTIONS_FILENAME = 'link-instructions.txt'
STAMP_FILENAME = 'build-stamp.json'


class BuildArtifacts(object):

    __slots__ = (
        'headers',
        'instructions',
        'bindings',
        'shim_archive',
    )

    def __init__(self, headers, instructions, bindings, shim_archive):
        self.headers = headers
        self.instructions = instructions
        self.bindings = bindings
        self.shim_archive = shim_archive

    @property
    def cdef(self):
        return self.bindings.cdef

    @property
    def include_dirs(self):
        return list(self.headers)

    def link_args(self):
        # the shim references DPDK symbols, it must precede the libraries
        return [str(self.shim_archive)] + link_args(self.instructions)

    def render_instructions(self):
        return render_instructions(self.instructions)


def run_pipeline(config, header=WRAPPER_H, shim_source=SHIM_SOURCE):
    raw = discover_flags(config)
    compile_directives = translate_compile_flags(raw.cflags)
    link_directives = translate_link_flags(raw.libs)
    headers = HeaderSet.from_directives(compile_directives)
    logging.info('DPDK headers: %s', ', '.join(headers) or '(system)')

    instructions = emit_linkage(link_directives, mlx5=config.mlx5,
                                tracked_env=sorted(config.tracked_env))

    out_dir = config.out_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    bindings = generate_bindings(headers, out_dir, header=header, cc=config.cc)
    shim_archive = compile_shim(headers, out_dir, source=shim_source,
                                cc=config.cc, ar=config.ar)

    instructions += rerun_if_changed(bindings.dependencies)
    artifacts = BuildArtifacts(headers, instructions, bindings, shim_archive)
    with open(out_dir / INSTRUCTIONS_FILENAME, 'w') as f:
        f.write(artifacts.render_instructions())
    write_stamp(config, artifacts)
    return artifacts


def file_mtimes(paths):
    mtimes = {}
    for path in paths:
        try:
            mtimes[str(path)] = os.stat(path).st_mtime_ns
        except OSError:
            mtimes[str(path)] = None
    return mtimes


def build_stamp(config, artifacts):
    return {
        'env': dict(sorted(config.tracked_env.items())),
        'files': file_mtimes(artifacts.bindings.dependencies),
        'headers': list(artifacts.headers),
        'shim_archive': str(artifacts.shim_archive),
    }


def write_stamp(config, artifacts):
    with open(config.out_dir / STAMP_FILENAME, 'w') as f:
        json.dump(build_stamp(config, artifacts), f, indent=2,
                  sort_keys=True)


def read_stamp(config):
    with open(Path(config.out_dir) / STAMP_FILENAME) as f:
        return json.load(f)


def needs_rebuild(config):
    """True unless the last successful run saw the same tracked
    environment and unchanged header files, and left all of its outputs
    in place."""
    try:
        stamp = read_stamp(config)
    except (OSError, ValueError):
        return True
    if stamp.get('env') != dict(config.tracked_env):
        logging.info('Tracked environment changed, rebuilding')
        return True
    if 'headers' not in stamp or 'shim_archive' not in stamp:
        return True
    out_dir = Path(config.out_dir)
    outputs = [out_dir / CDEF_FILENAME, out_dir / INSTRUCTIONS_FILENAME,
               Path(stamp['shim_archive'])]
    if not all(path.exists() for path in outputs):
        return True
    files = stamp.get('files', {})
    return file_mtimes(files) != files


def load_artifacts(config):
    """BuildArtifacts of the last successful run, read from out_dir."""
    out_dir = Path(config.out_dir)
    stamp = read_stamp(config)
    with open(out_dir / INSTRUCTIONS_FILENAME) as f:
        try:
            instructions = parse_instructions(f.read())
        except ValueError as e:
            raise DpdkBuildError('Corrupt {}: {}'.format(
                INSTRUCTIONS_FILENAME, e)) from e
    with open(out_dir / CDEF_FILENAME) as f:
        cdef = f.read()
    dependencies = [i.value for i in instructions
                    if i.kind == InstructionKind.RERUN_IF_CHANGED]
    return BuildArtifacts(HeaderSet(stamp['headers']),
                          instructions,
                          Bindings(out_dir / CDEF_FILENAME, cdef,
                                   dependencies),
                          Path(stamp['shim_archive']))


def build_artifacts(config, header=WRAPPER_H, shim_source=SHIM_SOURCE):
    """Run the pipeline, or reuse the outputs of the last run when nothing
    it depends on has changed."""
    if needs_rebuild(config):
        return run_pipeline(config, header=header, shim_source=shim_source)
    logging.info('DPDK build outputs in %s are up to date', config.out_dir)
    return load_artifacts(config)
