# public interface
from .config import BuildConfig
from .exceptions import DpdkBuildError, ConfigurationError, ExternalToolError
from .exceptions import UnrecognizedFlagError, BindingGenerationError
from .flags import IncludePath, LibrarySearchPath, StaticLibrary
from .flags import DynamicLibrary, LinkerPassthrough, Ignored, HeaderSet
from .flags import translate_link_flags, translate_compile_flags
from .linkage import Instruction, InstructionKind, emit_linkage
from .pipeline import (BuildArtifacts, build_artifacts, load_artifacts,
                       needs_rebuild, run_pipeline)

__version__ = '0.1.0'
