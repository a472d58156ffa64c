"""
RaceGuard: static data race detection for programs lowered to block/instruction IR.

Typical use::

    from raceguard import AnalysisConfig, analyze_program, load_program

    result = analyze_program(load_program("prog.json"), AnalysisConfig())
    for race in result.races:
        print(race.variable, race.access.location, race.conflicting_access.location)
"""

__version__ = "1.0.0"

from .aliases import AliasResolver, VarKey
from .concurrency import ConcurrencyTracker, CreationRecord
from .config import AnalysisConfig
from .detector import (
    AccessRecord,
    AccessSite,
    AnalysisResult,
    LockSet,
    RaceDetector,
    ReportedRace,
    analyze_program,
    derive_roots,
)
from .errors import ConfigurationError, ProgramLoadError, RaceGuardError
from .loader import load_program, program_from_dict
from .program import (
    Allocation,
    Block,
    Call,
    ClosureCreation,
    Function,
    FunctionRef,
    Instruction,
    InstructionKind,
    Other,
    Program,
    Read,
    Spawn,
    Write,
)

__all__ = [
    "AccessRecord",
    "AccessSite",
    "AliasResolver",
    "Allocation",
    "AnalysisConfig",
    "AnalysisResult",
    "Block",
    "Call",
    "ClosureCreation",
    "ConcurrencyTracker",
    "ConfigurationError",
    "CreationRecord",
    "Function",
    "FunctionRef",
    "Instruction",
    "InstructionKind",
    "LockSet",
    "Other",
    "Program",
    "ProgramLoadError",
    "RaceDetector",
    "RaceGuardError",
    "Read",
    "ReportedRace",
    "Spawn",
    "VarKey",
    "Write",
    "analyze_program",
    "derive_roots",
    "load_program",
    "program_from_dict",
]
