from enum import Enum

from .flags import (DynamicLibrary, LibrarySearchPath, LinkerPassthrough,
                    StaticLibrary)


NO_AS_NEEDED = '-Wl,--no-as-needed'
AS_NEEDED = '-Wl,--as-needed'

# static closure of librte_net_mlx5, linked when the mlx5 feature is on
MLX5_LIBRARIES = (
    'rte_net_mlx5',
    'rte_bus_pci',
    'rte_bus_vdev',
    'rte_common_mlx5',
)


class InstructionKind(Enum):
    LINK_SEARCH = 'link-search=native='
    LINK_LIB_STATIC = 'link-lib=static='
    LINK_LIB = 'link-lib='
    LINK_ARG = 'link-arg='
    RERUN_IF_ENV_CHANGED = 'rerun-if-env-changed='
    RERUN_IF_CHANGED = 'rerun-if-changed='


class Instruction(object):

    __slots__ = (
        'kind',
        'value',
    )

    def __init__(self, kind, value):
        if not isinstance(kind, InstructionKind):
            raise RuntimeError('must specify a valid InstructionKind')
        self.kind = kind
        self.value = value

    def render(self):
        return '{}{}'.format(self.kind.value, self.value)

    def link_arg(self):
        """The linker argument for this instruction, or None when the
        instruction only concerns build invalidation."""
        if self.kind == InstructionKind.LINK_SEARCH:
            return '-L{}'.format(self.value)
        elif self.kind == InstructionKind.LINK_LIB_STATIC:
            return '-l:lib{}.a'.format(self.value)
        elif self.kind == InstructionKind.LINK_LIB:
            return '-l{}'.format(self.value)
        elif self.kind == InstructionKind.LINK_ARG:
            return self.value
        return None

    def __eq__(self, other):
        return (isinstance(other, Instruction) and
                self.kind == other.kind and self.value == other.value)

    def __hash__(self):
        return hash((self.kind, self.value))

    def __repr__(self):
        return 'Instruction({})'.format(self.render())


# directive type -> instruction kind, IncludePath and Ignored have none
DIRECTIVE_KINDS = {
    LibrarySearchPath: InstructionKind.LINK_SEARCH,
    StaticLibrary: InstructionKind.LINK_LIB_STATIC,
    DynamicLibrary: InstructionKind.LINK_LIB,
    LinkerPassthrough: InstructionKind.LINK_ARG,
}


def guarded(instructions):
    """Bracket ``instructions`` so the linker keeps every library in them.

    DPDK drivers register themselves from constructors and are never
    referenced by symbol, so --as-needed would silently drop them.
    """
    if not instructions:
        return []
    return ([Instruction(InstructionKind.LINK_ARG, NO_AS_NEEDED)] +
            instructions +
            [Instruction(InstructionKind.LINK_ARG, AS_NEEDED)])


def emit_linkage(directives, mlx5=False, tracked_env=()):
    instructions = [Instruction(InstructionKind.RERUN_IF_ENV_CHANGED, name)
                    for name in tracked_env]

    primary = [Instruction(DIRECTIVE_KINDS[type(d)], d.value)
               for d in directives if type(d) in DIRECTIVE_KINDS]
    instructions += guarded(primary)

    if mlx5:
        instructions += guarded(
            [Instruction(InstructionKind.LINK_LIB_STATIC, name)
             for name in MLX5_LIBRARIES])
    return instructions


def render_instructions(instructions):
    return ''.join(i.render() + '\n' for i in instructions)


def link_args(instructions):
    args = []
    for instruction in instructions:
        arg = instruction.link_arg()
        if arg is not None:
            args.append(arg)
    return args


def rerun_if_changed(paths):
    return [Instruction(InstructionKind.RERUN_IF_CHANGED, str(path))
            for path in paths]


def parse_instruction(line):
    """Read back one line written by render_instructions()."""
    # link-lib=static= is listed before link-lib=, so it wins
    for kind in InstructionKind:
        if line.startswith(kind.value):
            return Instruction(kind, line[len(kind.value):])
    raise ValueError('Not a linkage instruction: {!r}'.format(line))


def parse_instructions(text):
    return [parse_instruction(line) for line in text.splitlines() if line]
