"""
RaceGuard: Static Data Race Detection over lowered IR

Walks a set of root functions once, tracks the locks each function holds,
records every shared memory access and reports pairs of accesses to the
same canonical variable that may run concurrently without a common lock.

The scan is linear per function (blocks in index order, instructions in
program order); control-flow edges are not followed.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, DefaultDict, Dict, FrozenSet, Iterable, List, Optional, Set

from .aliases import AliasResolver, VarKey
from .concurrency import ConcurrencyTracker
from .config import AnalysisConfig
from .errors import ConfigurationError
from .program import (
    Block,
    Call,
    Function,
    FunctionRef,
    Instruction,
    InstructionKind,
    Program,
    Read,
    Write,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessRecord:
    """One read or write of a canonical variable, with the locks held at that point"""

    function: FunctionRef
    block: int
    position: Optional[int]
    variable: VarKey
    is_write: bool
    is_read: bool
    lock_set: FrozenSet[VarKey]
    instruction: Instruction

    @property
    def location(self) -> str:
        position = "?" if self.position is None else self.position
        return f"{self.function}.{self.block}.{position}"

    def site(self) -> "AccessSite":
        return AccessSite(
            function=self.function,
            block=self.block,
            position=self.position,
            instruction=str(self.instruction) or repr(self.instruction),
        )


@dataclass(frozen=True)
class AccessSite:
    function: FunctionRef
    block: int
    position: Optional[int]
    instruction: str

    @property
    def location(self) -> str:
        position = "?" if self.position is None else self.position
        return f"{self.function}.{self.block}.{position}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "function": str(self.function),
            "block": self.block,
            "position": self.position,
            "instruction": self.instruction,
        }


@dataclass(frozen=True)
class ReportedRace:
    """A potential data race between a new access and an earlier one"""

    variable: VarKey
    access: AccessSite
    conflicting_access: AccessSite

    def sort_key(self):
        """Orientation-independent key for comparing report sets"""
        sites = sorted(
            (
                (str(site.function), site.block, site.position or 0, site.instruction)
                for site in (self.access, self.conflicting_access)
            )
        )
        return (str(self.variable), tuple(sites))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "variable": str(self.variable),
            "access": self.access.as_dict(),
            "conflicting_access": self.conflicting_access.as_dict(),
        }


class LockSet:
    """Locks held by one function at the current point of its linear scan"""

    def __init__(self):
        self._held: Set[VarKey] = set()

    def acquire(self, lock: VarKey) -> None:
        self._held.add(lock)

    def release(self, lock: VarKey) -> bool:
        """Drop ``lock``; False if it was not held"""
        if lock not in self._held:
            return False
        self._held.discard(lock)
        return True

    def snapshot(self) -> FrozenSet[VarKey]:
        return frozenset(self._held)

    def __contains__(self, lock: object) -> bool:
        return lock in self._held

    def __len__(self) -> int:
        return len(self._held)


@dataclass
class AnalysisResult:
    """Complete analysis results"""

    races: List[ReportedRace] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
    roots: List[FunctionRef] = field(default_factory=list)
    metrics: Dict[str, int] = field(default_factory=dict)
    analysis_time: float = 0.0
    source: str = ""


class RaceDetector:
    """
    Lock-set based race detector.

    The alias map and the concurrency registry must be complete before
    ``analyze`` runs; the shared-access history is owned by the detector and
    grows for as long as the instance lives.
    """

    def __init__(
        self,
        program: Program,
        resolver: AliasResolver,
        tracker: ConcurrencyTracker,
        config: Optional[AnalysisConfig] = None,
    ):
        self.program = program
        self.resolver = resolver
        self.tracker = tracker
        self.config = config or AnalysisConfig()

        self.accesses: DefaultDict[VarKey, List[AccessRecord]] = defaultdict(list)
        self.races: List[ReportedRace] = []
        self.diagnostics: List[str] = []
        self.functions_scanned = 0
        self.lock_operations = 0

    def analyze(self, roots: Iterable[FunctionRef]) -> List[ReportedRace]:
        """Scan every root function and return the races found by this call"""
        found: List[ReportedRace] = []
        for ref in roots:
            function = self.program.function(ref)
            if function is None:
                self._note(f"root function {ref} not found in program")
                continue
            if function.name in self.config.skip_functions:
                logger.debug("Skipping %s", ref)
                continue
            found.extend(self._scan_function(function))
        self.races.extend(found)
        return found

    def _scan_function(self, function: Function) -> List[ReportedRace]:
        logger.debug("Scanning %s", function.ref)
        self.functions_scanned += 1
        lock_set = LockSet()
        found: List[ReportedRace] = []

        for block, instr in function.instructions():
            if isinstance(instr, Call):
                self._apply_call(function, block, instr, lock_set)
            elif isinstance(instr, Write):
                found.extend(
                    self._record_access(function, block, instr, instr.addr, True, lock_set)
                )
            elif isinstance(instr, Read) and instr.dereference:
                found.extend(
                    self._record_access(
                        function, block, instr, instr.operand, False, lock_set
                    )
                )
        return found

    def _apply_call(
        self, function: Function, block: Block, call: Call, lock_set: LockSet
    ) -> None:
        kind = self.config.classify_call(call)
        if kind is InstructionKind.CALL:
            return
        if not call.receiver:
            self._note(f"{call.method} without receiver in {function.ref}: {call}")
            return

        lock = self.resolver.resolve_operand(function.ref, block.index, call.receiver)
        self.lock_operations += 1
        if kind is InstructionKind.LOCK_CALL:
            lock_set.acquire(lock)
            logger.debug("%s acquires %s", function.ref, lock)
        elif not lock_set.release(lock):
            self._note(f"unlock of {lock} not held in {function.ref} at {call.position}")
        else:
            logger.debug("%s releases %s", function.ref, lock)

    def _record_access(
        self,
        function: Function,
        block: Block,
        instr: Instruction,
        operand: str,
        is_write: bool,
        lock_set: LockSet,
    ) -> List[ReportedRace]:
        variable = self.resolver.resolve_operand(function.ref, block.index, operand)
        access = AccessRecord(
            function=function.ref,
            block=block.index,
            position=instr.position,
            variable=variable,
            is_write=is_write,
            is_read=not is_write,
            lock_set=lock_set.snapshot(),
            instruction=instr,
        )

        found = []
        for prior in self.accesses.get(variable, ()):
            if self.conflicts(access, prior):
                race = ReportedRace(variable, access.site(), prior.site())
                logger.info(
                    "Potential data race on %s: %s vs %s",
                    variable,
                    access.location,
                    prior.location,
                )
                found.append(race)

        self.accesses[variable].append(access)
        return found

    def conflicts(self, a: AccessRecord, b: AccessRecord) -> bool:
        """Conflict rule: may ``a`` and ``b`` run concurrently without a common lock?"""
        if a.function == b.function:
            return False

        a_unit = self.tracker.is_concurrent_unit(a.function)
        b_unit = self.tracker.is_concurrent_unit(b.function)
        if not a_unit and not b_unit:
            return False

        # An access in the creator before the spawn happens-before the whole unit
        for unit, other, is_unit in ((a, b, a_unit), (b, a, b_unit)):
            if not is_unit:
                continue
            earlier = self.tracker.spawned_before(
                unit.function, other.function, other.position
            )
            if earlier is None:
                logger.debug(
                    "No position to order %s against spawn of %s",
                    other.location,
                    unit.function,
                )
                return False
            if earlier:
                logger.debug("%s happens before spawn of %s", other.location, unit.function)
                return False

        common = a.lock_set & b.lock_set
        if common:
            logger.debug(
                "%s and %s both hold %s",
                a.location,
                b.location,
                ", ".join(sorted(str(lock) for lock in common)),
            )
            return False

        return True

    def _note(self, message: str) -> None:
        logger.debug(message)
        self.diagnostics.append(message)

    @property
    def accesses_recorded(self) -> int:
        return sum(len(records) for records in self.accesses.values())


def derive_roots(
    program: Program,
    config: AnalysisConfig,
    tracker: Optional[ConcurrencyTracker] = None,
) -> List[FunctionRef]:
    """
    The root set to scan.

    Explicit ``config.roots`` are used as given. Otherwise each considered
    package contributes its entry point followed by the closures that entry
    point creates directly, then (given a filled ``tracker``) the functions
    it spawns directly without creating a closure for them.
    """
    if config.roots is not None:
        missing = [str(ref) for ref in config.roots if ref not in program]
        if missing:
            raise ConfigurationError(f"unknown root function(s): {', '.join(missing)}")
        return list(config.roots)

    roots: List[FunctionRef] = []
    packages = config.packages if config.packages is not None else program.packages
    for package in sorted(packages):
        entry = FunctionRef(package, config.entry_point)
        if entry not in program:
            continue
        roots.append(entry)
        direct = list(program.closures_created_by(entry))
        if tracker is not None:
            direct.extend(tracker.spawned_by(entry))
        for callee in direct:
            if callee in program and callee not in roots:
                roots.append(callee)
    return roots


def analyze_program(
    program: Program, config: Optional[AnalysisConfig] = None, source: str = ""
) -> AnalysisResult:
    """
    Run the full pipeline on ``program``: alias and registry construction
    over the considered functions, root selection, then the race scan.

    Raises:
        ConfigurationError: If an explicit root is not part of the program
    """
    config = config or AnalysisConfig()
    start = time.perf_counter()

    resolver = AliasResolver()
    tracker = ConcurrencyTracker()
    considered = [f for f in program if config.considers(f.ref)]
    resolver.scan(considered, tracker)

    roots = derive_roots(program, config, tracker)
    logger.info("Scanning %d root function(s): %s", len(roots), ", ".join(map(str, roots)))

    detector = RaceDetector(program, resolver, tracker, config)
    races = detector.analyze(roots)

    result = AnalysisResult(
        races=races,
        diagnostics=resolver.diagnostics + detector.diagnostics,
        roots=roots,
        source=source,
    )
    result.metrics = {
        "functions_scanned": detector.functions_scanned,
        "accesses_recorded": detector.accesses_recorded,
        "shared_variables": len(detector.accesses),
        "lock_operations": detector.lock_operations,
        "concurrent_units": len(tracker.concurrent_units),
        "races": len(races),
    }
    result.analysis_time = time.perf_counter() - start
    return result
