import logging
import os
import subprocess
from contextlib import contextmanager

from .exceptions import ExternalToolError


def init_logger(debug=False):
    logger = logging.getLogger()
    logger.addHandler(logging.StreamHandler())
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


@contextmanager
def scoped_env(name, value):
    old = os.environ.get(name)
    os.environ[name] = value
    try:
        yield
    finally:
        if old is None:
            del os.environ[name]
        else:
            os.environ[name] = old


def run_tool(args, tool=None):
    """Run an external build tool and return its decoded stdout.

    Any failure to start the tool, a nonzero exit status or output that is
    not valid UTF-8 raises ExternalToolError with the tool's diagnostic.
    """
    tool = tool or args[0]
    logging.debug('running %s', ' '.join(str(a) for a in args))
    try:
        proc = subprocess.run([str(a) for a in args], stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE, check=False)
    except OSError as e:
        raise ExternalToolError(tool, str(e)) from e
    if proc.returncode != 0:
        diagnostic = proc.stderr.decode('utf-8', 'replace').strip()
        raise ExternalToolError(tool, diagnostic or
                                'exit status {}'.format(proc.returncode))
    try:
        return proc.stdout.decode('utf-8')
    except UnicodeDecodeError as e:
        raise ExternalToolError(tool, 'non-text output') from e
