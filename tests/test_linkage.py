import pytest

from dpdk_ffi.flags import translate_link_flags
from dpdk_ffi.linkage import (AS_NEEDED, MLX5_LIBRARIES, NO_AS_NEEDED,
                              Instruction, InstructionKind, emit_linkage,
                              link_args, parse_instruction,
                              parse_instructions, render_instructions,
                              rerun_if_changed)


FLAGS = '-Ifoo/include -Lbar/lib -l:librte_eal.a -lmlx5 -Wl,-z,now -pthread'


def guard_positions(instructions, arg):
    return [i for i, instruction in enumerate(instructions)
            if instruction.kind == InstructionKind.LINK_ARG and
            instruction.value == arg]


#
# Guard brackets
#
def test_single_guard_pair():
    instructions = emit_linkage(translate_link_flags(FLAGS))
    opens = guard_positions(instructions, NO_AS_NEEDED)
    closes = guard_positions(instructions, AS_NEEDED)
    assert opens == [0]
    assert closes == [len(instructions) - 1]


def test_guard_brackets_every_library():
    instructions = emit_linkage(translate_link_flags(FLAGS))
    assert [i.render() for i in instructions] == [
        'link-arg=-Wl,--no-as-needed',
        'link-search=native=bar/lib',
        'link-lib=static=rte_eal',
        'link-lib=mlx5',
        'link-arg=-Wl,-z,now',
        'link-arg=-Wl,--as-needed',
    ]


def test_mlx5_adds_second_pair():
    instructions = emit_linkage(translate_link_flags(FLAGS), mlx5=True)
    opens = guard_positions(instructions, NO_AS_NEEDED)
    closes = guard_positions(instructions, AS_NEEDED)
    assert len(opens) == 2
    assert len(closes) == 2
    # the second pair follows the first one
    assert opens[0] < closes[0] < opens[1] < closes[1]
    second = instructions[opens[1] + 1:closes[1]]
    assert [i.kind for i in second] == \
        [InstructionKind.LINK_LIB_STATIC] * len(MLX5_LIBRARIES)
    assert tuple(i.value for i in second) == MLX5_LIBRARIES


def test_empty_directives_have_no_guard():
    assert emit_linkage([]) == []
    assert emit_linkage(translate_link_flags('-Ifoo -pthread')) == []


def test_empty_directives_with_mlx5():
    instructions = emit_linkage([], mlx5=True)
    assert len(guard_positions(instructions, NO_AS_NEEDED)) == 1
    assert len(guard_positions(instructions, AS_NEEDED)) == 1


def test_tracked_env_first():
    instructions = emit_linkage(translate_link_flags(FLAGS),
                                tracked_env=['DPDK_PATH'])
    assert instructions[0] == Instruction(
        InstructionKind.RERUN_IF_ENV_CHANGED, 'DPDK_PATH')
    assert instructions[1].value == NO_AS_NEEDED


#
# Rendering
#
def test_render_is_deterministic():
    first = render_instructions(emit_linkage(translate_link_flags(FLAGS),
                                             mlx5=True))
    second = render_instructions(emit_linkage(translate_link_flags(FLAGS),
                                              mlx5=True))
    assert first == second
    assert first.endswith('link-arg=-Wl,--as-needed\n')


def test_link_args():
    instructions = emit_linkage(translate_link_flags(FLAGS),
                                tracked_env=['DPDK_PATH'])
    instructions += rerun_if_changed(['/opt/dpdk/include/rte_eal.h'])
    assert link_args(instructions) == [
        '-Wl,--no-as-needed',
        '-Lbar/lib',
        '-l:librte_eal.a',
        '-lmlx5',
        '-Wl,-z,now',
        '-Wl,--as-needed',
    ]


def test_rerun_if_changed():
    instructions = rerun_if_changed(['a.h', 'b.h'])
    assert render_instructions(instructions) == \
        'rerun-if-changed=a.h\nrerun-if-changed=b.h\n'


def test_parse_instructions():
    instructions = emit_linkage(translate_link_flags(FLAGS), mlx5=True,
                                tracked_env=['DPDK_PATH'])
    instructions += rerun_if_changed(['/opt/dpdk/include/rte_eal.h'])
    text = render_instructions(instructions)
    assert parse_instructions(text) == instructions


def test_parse_static_before_dynamic():
    parsed = parse_instruction('link-lib=static=rte_eal')
    assert parsed.kind == InstructionKind.LINK_LIB_STATIC
    assert parsed.value == 'rte_eal'


def test_parse_unknown_line():
    with pytest.raises(ValueError):
        parse_instruction('cargo:warning=hello')
