"""Analysis configuration for RaceGuard."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from .program import Call, FunctionRef, InstructionKind

DEFAULT_PACKAGE = "command-line-arguments"
DEFAULT_ENTRY_POINT = "main"
DEFAULT_MUTEX_TYPES = frozenset({"*sync.Mutex"})


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Knobs for a single analysis run.

    Attributes:
        packages: Package ids under consideration. ``None`` means every
            package present in the program.
        entry_point: Name of the program entry function used to derive the
            root set when ``roots`` is not given.
        roots: Explicit root set. Overrides root derivation entirely.
        mutex_types: Receiver type names whose Lock/Unlock calls are tracked.
        lock_methods: Method names that acquire a mutex.
        unlock_methods: Method names that release a mutex.
        skip_functions: Function names that are never scanned.
    """

    packages: Optional[FrozenSet[str]] = None
    entry_point: str = DEFAULT_ENTRY_POINT
    roots: Optional[Tuple[FunctionRef, ...]] = None
    mutex_types: FrozenSet[str] = DEFAULT_MUTEX_TYPES
    lock_methods: FrozenSet[str] = field(default_factory=lambda: frozenset({"Lock"}))
    unlock_methods: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"Unlock"})
    )
    skip_functions: FrozenSet[str] = field(default_factory=lambda: frozenset({"init"}))

    def considers(self, ref: FunctionRef) -> bool:
        """Whether ``ref`` belongs to a package under consideration"""
        return self.packages is None or ref.package in self.packages

    def classify_call(self, call: Call) -> InstructionKind:
        """LOCK_CALL or UNLOCK_CALL for mutex operations, CALL for anything else"""
        if call.receiver_type not in self.mutex_types:
            return InstructionKind.CALL
        if call.method in self.lock_methods:
            return InstructionKind.LOCK_CALL
        if call.method in self.unlock_methods:
            return InstructionKind.UNLOCK_CALL
        return InstructionKind.CALL
