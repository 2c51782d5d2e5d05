"""
Generate the cffi cdef for the DPDK public API.

The aggregator header (wrapper.h) is run through the C preprocessor with the
include paths pkg-config reported. Function bodies are cut out of the
preprocessed text before it is parsed with pycparser, since DPDK's inline
functions are full of GNU C (statement expressions, inline asm, typeof).

Only declarations from the DPDK headers are kept, plus the system types they
reference and cffi does not already know. Records are emitted in cffi's
partial form (``...;``) and unknown array lengths and enum values as ``...``,
so the C compiler fills in the layout when the extension is built.
Integer constants come from the ``#define`` lines ``-dD`` leaves in the
output.
"""
import logging
import os
import re
from pathlib import Path

from cffi import model
from cffi.commontypes import COMMON_TYPES
from pycparser import c_ast, c_generator, c_parser

from .exceptions import BindingGenerationError, ExternalToolError
from .utils import run_tool


PACKAGE_DIR = Path(__file__).resolve().parent
WRAPPER_H = PACKAGE_DIR / 'wrapper.h'
CDEF_FILENAME = 'dpdk_cdef.h'

# Types with hand-written equivalents elsewhere in dpdk_ffi. Tied to the
# DPDK release the package is built against, keep it in sync by hand.
BINDING_DENYLIST = frozenset([
    'rte_arp_ipv4',
    'rte_arp_hdr',
])

# GCC extensions pycparser cannot parse outside of function bodies
PREPROCESSOR_DEFINES = [
    '-D__attribute__(x)=',
    '-D__extension__=',
    '-D__asm__(x)=',
    '-D__asm(x)=',
    '-D__inline__=inline',
    '-D__inline=inline',
    '-D__restrict__=',
    '-D__restrict=',
    '-D__volatile__=volatile',
    '-D__volatile=volatile',
    '-D__signed__=signed',
    '-D__const=const',
    '-D__thread=',
    '-D_Thread_local=',
    '-D__builtin_va_list=void *',
    '-D__builtin_offsetof=offsetof',
    '-D_Noreturn=',
    '-D__int128=long long',
    '-D_Float128=long double',
]

# DPDK headers installed in a system include directory have no -I path
LIBRARY_HEADER_PREFIX = 'rte_'

# typedef names cffi resolves on its own
KNOWN_TYPES = (frozenset(model.PrimitiveType.ALL_PRIMITIVE_TYPES) |
               frozenset(COMMON_TYPES))

LINE_MARKER_RE = re.compile(r'^#\s*(?:line\s+)?\d+\s+"([^"]+)"', re.MULTILINE)
DEFINE_RE = re.compile(r'^#define ([A-Za-z][A-Za-z0-9_]*) (.+)$')
UNDEF_RE = re.compile(r'^#undef ([A-Za-z_][A-Za-z0-9_]*)')
INT_LITERAL_RE = re.compile(r'^-?(?:0[xX][0-9a-fA-F]+|[0-9]+)[uUlL]*$')
# string and char literals are matched only so their braces are skipped
TOKEN_RE = re.compile(r'"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'|'
                      r'^#.*$|[{}]', re.MULTILINE)

HEADER_COMMENT = ('/* Generated by dpdk_ffi.bindings from {}, '
                  'rewritten on every build. Do not edit. */\n')


def preprocess(header, headers, cc='cc'):
    args = [cc, '-E', '-dD'] + PREPROCESSOR_DEFINES
    args += headers.include_args()
    args.append(str(header))
    try:
        return run_tool(args, tool='C preprocessor')
    except ExternalToolError as e:
        raise BindingGenerationError(
            'Failed to preprocess {}: {}'.format(header, e.diagnostic)) from e


def split_macros(preprocessed):
    """Separate the ``-dD`` macro lines from the declarations.

    Returns the text with every directive other than line markers blanked
    (line numbers are unchanged) and a list of (file, name, value) for the
    object-like macros still defined at the end of the translation unit.
    """
    lines = []
    macros = {}
    current = None
    for line in preprocessed.split('\n'):
        marker = LINE_MARKER_RE.match(line)
        if marker:
            current = marker.group(1)
        elif line.startswith('#define') or line.startswith('#undef'):
            match = DEFINE_RE.match(line)
            if match:
                macros[match.group(1)] = (current, match.group(2))
            else:
                match = UNDEF_RE.match(line)
                if match:
                    macros.pop(match.group(1), None)
            line = ''
        lines.append(line)
    return '\n'.join(lines), [(f, name, value)
                              for name, (f, value) in macros.items()]


def follows_declarator(source, pos):
    pos -= 1
    while pos >= 0 and source[pos].isspace():
        pos -= 1
    return pos >= 0 and source[pos] == ')'


def blank_body(body):
    # keep the newlines and line markers so coordinates stay right
    return ''.join('\n' + (line if LINE_MARKER_RE.match(line) else '')
                   for line in body.split('\n')[1:])


def strip_function_bodies(source):
    """Turn every top-level function definition into a declaration.

    A ``{`` at file scope that directly follows a ``)`` opens a function
    body. The body is replaced by ``;``, record bodies and initializers are
    left alone.
    """
    pieces = []
    pos = 0
    depth = 0
    body_start = None
    for match in TOKEN_RE.finditer(source):
        token = match.group()
        if token == '{':
            if depth == 0 and follows_declarator(source, match.start()):
                body_start = match.start()
            depth += 1
        elif token == '}':
            depth -= 1
            if depth == 0 and body_start is not None:
                pieces.append(source[pos:body_start])
                pieces.append(';' + blank_body(
                    source[body_start:match.end()]))
                pos = match.end()
                body_start = None
    pieces.append(source[pos:])
    return ''.join(pieces)


def collect_dependencies(preprocessed):
    """Header files named in the preprocessor's line markers, sorted."""
    return sorted(set(name for name in LINE_MARKER_RE.findall(preprocessed)
                      if not name.startswith('<')))


class SourceFilter(object):
    """Decide which source files hold DPDK declarations.

    Files under a HeaderSet path, files named ``rte_*`` and the aggregator
    header count. With no header set every file does.
    """

    def __init__(self, headers=None, header=WRAPPER_H):
        self.everything = headers is None
        self.dirs = [self.normalize(path) for path in headers or ()]
        self.header = self.normalize(header)

    @staticmethod
    def normalize(path):
        return os.path.normpath(os.path.abspath(str(path)))

    def is_library(self, filename):
        if self.everything:
            return True
        if not filename or filename.startswith('<'):
            return False
        path = self.normalize(filename)
        if path == self.header:
            return True
        if os.path.basename(path).startswith(LIBRARY_HEADER_PREFIX):
            return True
        return any(path.startswith(d + os.sep) for d in self.dirs)


class NameCollector(c_ast.NodeVisitor):

    def __init__(self):
        self.names = set()

    def visit_Enumerator(self, node):
        self.names.add(node.name)


class TypeReferences(c_ast.NodeVisitor):
    """Typedef names and record tags a declaration refers to."""

    def __init__(self):
        self.refs = set()

    def visit_IdentifierType(self, node):
        if len(node.names) == 1:
            self.refs.add(('typedef', node.names[0]))

    def visit_Struct(self, node):
        self.add_record('struct', node)

    def visit_Union(self, node):
        self.add_record('union', node)

    def visit_Enum(self, node):
        self.add_record('enum', node)

    def add_record(self, kind, node):
        if node.name:
            self.refs.add((kind, node.name))
        self.generic_visit(node)


def type_references(node):
    visitor = TypeReferences()
    visitor.visit(node)
    return visitor.refs


RECORD_KINDS = {c_ast.Struct: 'struct', c_ast.Union: 'union',
                c_ast.Enum: 'enum'}


def provided_type(node):
    """The (kind, name) a top-level typedef or record declaration defines."""
    if isinstance(node, c_ast.Typedef):
        return ('typedef', node.name)
    if (isinstance(node, c_ast.Decl) and is_record_decl(node) and
            node.type.name):
        return (RECORD_KINDS[type(node.type)], node.type.name)
    return None


class OpaqueRecords(c_ast.NodeVisitor):
    """Drop the member list of every denied struct or union."""

    def __init__(self, denylist):
        self.denylist = denylist

    def visit_Struct(self, node):
        self.make_opaque(node)

    def visit_Union(self, node):
        self.make_opaque(node)

    def make_opaque(self, node):
        if node.name in self.denylist:
            node.decls = None
        else:
            self.generic_visit(node)


def is_int_literal(node):
    return (isinstance(node, c_ast.Constant) and
            INT_LITERAL_RE.match(node.value) is not None)


def is_enum_value(node):
    if isinstance(node, c_ast.UnaryOp) and node.op in ('-', '+'):
        return is_int_literal(node.expr)
    return is_int_literal(node)


class CdefSanitizer(c_ast.NodeVisitor):
    """Rewrite what cffi cannot evaluate into its ``...`` placeholders."""

    def visit_ArrayDecl(self, node):
        if node.dim is not None and not is_int_literal(node.dim):
            node.dim = c_ast.ID('...')
        self.generic_visit(node)

    def visit_FuncDecl(self, node):
        for param in (node.args.params if node.args else ()):
            if (isinstance(param, c_ast.Decl) and
                    isinstance(param.type, c_ast.ArrayDecl)):
                # decays to a pointer anyway
                param.type.dim = None
        self.generic_visit(node)

    def visit_Enumerator(self, node):
        if node.value is not None and not is_enum_value(node.value):
            node.value = c_ast.ID('...')

    def visit_Decl(self, node):
        node.align = []
        self.generic_visit(node)


def drop_bitfields(record):
    # cffi rejects bitfields in a partial struct, anonymous members included
    kept = []
    for decl in record.decls:
        if not isinstance(decl, c_ast.Decl) or decl.bitsize is not None:
            continue
        if (decl.name is None and
                isinstance(decl.type, (c_ast.Struct, c_ast.Union)) and
                decl.type.decls):
            drop_bitfields(decl.type)
            if not decl.type.decls:
                continue
        kept.append(decl)
    record.decls = kept


def make_partial(node):
    """Let the C compiler lay out the record ``node`` defines, if any."""
    record = node.type
    while isinstance(record, c_ast.TypeDecl):
        record = record.type
    if not isinstance(record, (c_ast.Struct, c_ast.Union)):
        return
    if record.decls is None:
        return
    if record.name is None and not isinstance(node, c_ast.Typedef):
        # cffi needs a C name to complete a partial record
        return
    drop_bitfields(record)
    record.decls.append(c_ast.ID('...'))


def is_record_decl(node):
    return node.name is None and isinstance(
        node.type, (c_ast.Struct, c_ast.Union, c_ast.Enum))


def library_declaration(node, denylist):
    """Clean up a DPDK declaration in place, or return False to skip it."""
    if isinstance(node, c_ast.FuncDef):
        # header-inline, the shim provides a linkable copy if needed
        logging.debug('skipping inline function %s', node.decl.name)
        return False
    elif isinstance(node, c_ast.Typedef):
        if node.name in denylist:
            logging.debug('skipping denied typedef %s', node.name)
            return False
    elif isinstance(node, c_ast.Decl):
        if 'static' in node.storage:
            return False
        if is_record_decl(node):
            if (isinstance(node.type, c_ast.Enum) and
                    node.type.name in denylist):
                return False
        elif node.name in denylist:
            return False
        node.funcspec = [f for f in node.funcspec if f != 'inline']
        node.init = None
    else:
        # pragmas, static assertions, stray semicolons
        return False
    return True


def required_system_types(system, needed):
    """Indexes into ``system`` of the declarations ``needed`` pulls in."""
    needed = set(needed)
    required = set()
    changed = True
    while changed:
        changed = False
        for index, node in enumerate(system):
            provides = provided_type(node)
            if index in required or provides not in needed:
                continue
            if provides[0] == 'typedef' and provides[1] in KNOWN_TYPES:
                continue
            required.add(index)
            needed |= type_references(node)
            changed = True
    return required


def filter_declarations(ast, denylist=BINDING_DENYLIST, sources=None):
    """Keep the top-level declarations of ``ast`` that cffi can use.

    Returns the kept nodes, in source order, and the set of names they
    declare.
    """
    sources = sources or SourceFilter()
    opaque = OpaqueRecords(denylist)
    # system declarations are held by index until the needed ones are known
    entries = []
    system = []
    for node in ast.ext:
        filename = node.coord.file if node.coord else None
        if sources.is_library(filename):
            if library_declaration(node, denylist):
                opaque.visit(node)
                entries.append(node)
        elif provided_type(node) is not None:
            entries.append(len(system))
            system.append(node)

    needed = set()
    for entry in entries:
        if not isinstance(entry, int):
            make_partial(entry)
            needed |= type_references(entry)
    required = required_system_types(system, needed)

    kept = []
    names = set()
    for entry in entries:
        if isinstance(entry, int):
            if entry not in required:
                continue
            node = system[entry]
            make_partial(node)
        else:
            node = entry
        if node.name is not None:
            names.add(node.name)
        kept.append(node)

    sanitizer = CdefSanitizer()
    collector = NameCollector()
    for node in kept:
        sanitizer.visit(node)
        collector.visit(node)
    names |= collector.names
    return kept, names


def generate_cdef(preprocessed, denylist=BINDING_DENYLIST,
                  filename=WRAPPER_H.name, sources=None):
    parser = c_parser.CParser()
    try:
        ast = parser.parse(strip_function_bodies(preprocessed), filename)
    except c_parser.ParseError as e:
        raise BindingGenerationError(
            'Failed to parse {}: {}'.format(filename, e)) from e
    kept, names = filter_declarations(ast, denylist, sources)
    generator = c_generator.CGenerator()
    return generator.visit(c_ast.FileAST(kept)), names


def normalize_constant(value):
    value = value.strip()
    while value.startswith('(') and value.endswith(')'):
        value = value[1:-1].strip()
    if INT_LITERAL_RE.match(value):
        return value
    return None


def collect_constants(macros, declared=(), denylist=BINDING_DENYLIST,
                      sources=None):
    """Object-like macros with an integer literal value, as cdef lines.

    ``macros`` holds (file, name, value) tuples as returned by
    split_macros().
    """
    sources = sources or SourceFilter()
    constants = {}
    for filename, name, value in macros:
        if name in declared or name in denylist:
            continue
        if not sources.is_library(filename):
            continue
        value = normalize_constant(value)
        if value is not None:
            constants[name] = value
    return ['#define {} {}'.format(name, constants[name])
            for name in sorted(constants)]


class Bindings(object):

    __slots__ = (
        'path',
        'cdef',
        'dependencies',
    )

    def __init__(self, path, cdef, dependencies):
        self.path = path
        self.cdef = cdef
        self.dependencies = dependencies

    def __repr__(self):
        return 'Bindings({})'.format(self.path)


def generate_bindings(headers, out_dir, header=WRAPPER_H, cc='cc',
                      denylist=BINDING_DENYLIST):
    logging.info('Generating bindings from %s', header)
    preprocessed = preprocess(header, headers, cc=cc)
    code, macros = split_macros(preprocessed)
    sources = SourceFilter(headers, header)

    declarations, names = generate_cdef(code, denylist,
                                        filename=Path(header).name,
                                        sources=sources)
    constants = collect_constants(macros, names, denylist, sources)
    cdef = (HEADER_COMMENT.format(Path(header).name) + declarations +
            ''.join(line + '\n' for line in constants))

    path = Path(out_dir) / CDEF_FILENAME
    with open(path, 'w') as f:
        f.write(cdef)
    logging.info('Wrote %s (%d constants)', path, len(constants))
    return Bindings(path, cdef, collect_dependencies(preprocessed))
