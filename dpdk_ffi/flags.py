from .exceptions import UnrecognizedFlagError


INCLUDE_PREFIX = '-I'
SEARCH_PATH_PREFIX = '-L'
STATIC_ARCHIVE_PREFIX = '-l:lib'
STATIC_ARCHIVE_SUFFIX = '.a'
LIBRARY_PREFIX = '-l'
LINKER_PREFIX = '-Wl,'
THREAD_FLAG = '-pthread'
STATIC_MIN_LEN = len(STATIC_ARCHIVE_PREFIX) + len(STATIC_ARCHIVE_SUFFIX)

# compile-only flags found in `pkg-config --cflags libdpdk`
FORCED_INCLUDE_FLAG = '-include'
COMPILE_ONLY_PREFIXES = ('-m', '-D', '-U')


class LinkDirective(object):
    """One classified token of a pkg-config flag string."""

    __slots__ = ('value',)

    def __init__(self, value=None):
        self.value = value

    def __eq__(self, other):
        return type(self) is type(other) and self.value == other.value

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((type(self).__name__, self.value))

    def __repr__(self):
        if self.value is None:
            return '{}()'.format(type(self).__name__)
        return '{}({})'.format(type(self).__name__, self.value)


class IncludePath(LinkDirective):
    __slots__ = ()


class LibrarySearchPath(LinkDirective):
    __slots__ = ()


class StaticLibrary(LinkDirective):
    __slots__ = ()


class DynamicLibrary(LinkDirective):
    __slots__ = ()


class LinkerPassthrough(LinkDirective):
    __slots__ = ()


class Ignored(LinkDirective):
    __slots__ = ()


def classify_link_token(token):
    if token.startswith(INCLUDE_PREFIX):
        return IncludePath(token[len(INCLUDE_PREFIX):])
    elif token.startswith(SEARCH_PATH_PREFIX):
        return LibrarySearchPath(token[len(SEARCH_PATH_PREFIX):])
    # -l:libfoo.a also starts with -l, so this has to come first
    elif (token.startswith(STATIC_ARCHIVE_PREFIX) and
          token.endswith(STATIC_ARCHIVE_SUFFIX) and
          len(token) > STATIC_MIN_LEN):
        return StaticLibrary(
            token[len(STATIC_ARCHIVE_PREFIX):-len(STATIC_ARCHIVE_SUFFIX)])
    elif token.startswith(LIBRARY_PREFIX):
        return DynamicLibrary(token[len(LIBRARY_PREFIX):])
    elif token.startswith(LINKER_PREFIX):
        return LinkerPassthrough(token)
    elif token == THREAD_FLAG:
        return Ignored()
    raise UnrecognizedFlagError(token)


def translate_link_flags(raw):
    """Translate a `pkg-config --libs` string into an ordered directive list.

    Every whitespace separated token maps to exactly one directive, in input
    order. An unknown token raises UnrecognizedFlagError.
    """
    return [classify_link_token(token) for token in raw.split()]


def translate_compile_flags(raw):
    """Translate a `pkg-config --cflags` string into an ordered directive
    list.

    Include paths and -pthread are handled as for link flags. The compile
    only flags DPDK publishes (forced includes, machine flags, defines) are
    Ignored; anything else raises UnrecognizedFlagError.
    """
    directives = []
    tokens = iter(raw.split())
    for token in tokens:
        if token.startswith(INCLUDE_PREFIX):
            directives.append(IncludePath(token[len(INCLUDE_PREFIX):]))
        elif token == FORCED_INCLUDE_FLAG:
            if next(tokens, None) is None:
                raise UnrecognizedFlagError(token)
            directives.append(Ignored())
        elif token == THREAD_FLAG or token.startswith(COMPILE_ONLY_PREFIXES):
            directives.append(Ignored())
        else:
            raise UnrecognizedFlagError(token)
    return directives


class HeaderSet(object):
    """Ordered include paths shared by binding generation and the shim."""

    __slots__ = ('paths',)

    def __init__(self, paths):
        object.__setattr__(self, 'paths', tuple(str(p) for p in paths))

    def __setattr__(self, name, value):
        raise AttributeError('HeaderSet is read-only')

    @classmethod
    def from_directives(cls, directives):
        return cls(d.value for d in directives if isinstance(d, IncludePath))

    def include_args(self):
        return ['-I{}'.format(path) for path in self.paths]

    def __iter__(self):
        return iter(self.paths)

    def __len__(self):
        return len(self.paths)

    def __eq__(self, other):
        return isinstance(other, HeaderSet) and self.paths == other.paths

    def __hash__(self):
        return hash(self.paths)

    def __repr__(self):
        return 'HeaderSet({!r})'.format(list(self.paths))


def header_set(directives):
    return HeaderSet.from_directives(directives)
