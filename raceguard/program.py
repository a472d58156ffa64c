"""
Program model consumed by the race detector.

The IR is produced upstream (parsed, type-checked and lowered to blocks of
instructions) and is treated as immutable here. Only the handful of
instruction shapes the detector cares about are modelled explicitly; every
other instruction is kept as ``Other`` so that positions and renderings
survive for reporting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import ProgramLoadError


class InstructionKind(Enum):
    """Instruction variant tag"""

    ALLOCATION = "ALLOCATION"
    CLOSURE_CREATION = "CLOSURE_CREATION"
    SPAWN = "SPAWN"
    LOCK_CALL = "LOCK_CALL"
    UNLOCK_CALL = "UNLOCK_CALL"
    CALL = "CALL"  # Call that is not a mutex operation
    WRITE = "WRITE"
    READ = "READ"
    OTHER = "OTHER"


@dataclass(frozen=True, order=True)
class FunctionRef:
    """Identity of a function: its package plus its (possibly synthetic) name"""

    package: str
    name: str

    def __str__(self) -> str:
        return f"{self.package}.{self.name}"

    @classmethod
    def parse(cls, qualified: str, default_package: str = "") -> "FunctionRef":
        """
        Parse ``package.name``. Package paths may contain dots, so the split
        happens on the last one; a bare name gets ``default_package``.
        """
        package, sep, name = qualified.rpartition(".")
        if not sep:
            return cls(default_package, qualified)
        return cls(package, name)


class Instruction:
    """Common behaviour of all instruction variants"""

    kind: ClassVar[InstructionKind] = InstructionKind.OTHER
    position: Optional[int]
    text: str

    def operands(self) -> Tuple[str, ...]:
        """Names of the values this instruction references"""
        return ()

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Allocation(Instruction):
    """Introduces a variable: ``name`` is the temporary, ``comment`` the declared name"""

    name: str
    comment: str = ""
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.ALLOCATION

    @property
    def declared_name(self) -> str:
        # Anonymous allocations are only reachable through their temporary
        return self.comment or self.name


@dataclass(frozen=True)
class ClosureCreation(Instruction):
    function: FunctionRef
    bindings: Tuple[str, ...] = ()
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.CLOSURE_CREATION

    def operands(self) -> Tuple[str, ...]:
        return self.bindings


@dataclass(frozen=True)
class Spawn(Instruction):
    """Starts a concurrent unit. ``callee`` is None when it is not statically known."""

    callee: Optional[FunctionRef]
    value: str = ""
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.SPAWN

    def operands(self) -> Tuple[str, ...]:
        return (self.value,) if self.value else ()


@dataclass(frozen=True)
class Call(Instruction):
    """
    A static call with a receiver.

    Whether the call locks or unlocks a mutex depends on the receiver type
    and method name, which the analysis configuration decides
    (see ``AnalysisConfig.classify_call``).
    """

    method: str
    receiver: str = ""
    receiver_type: str = ""
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.CALL

    def operands(self) -> Tuple[str, ...]:
        return (self.receiver,) if self.receiver else ()


@dataclass(frozen=True)
class Write(Instruction):
    """Store through an address"""

    addr: str
    value: str = ""
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.WRITE

    def operands(self) -> Tuple[str, ...]:
        return tuple(name for name in (self.addr, self.value) if name)


@dataclass(frozen=True)
class Read(Instruction):
    """Load of ``operand``; only ``dereference`` loads count as memory accesses"""

    operand: str
    dereference: bool = True
    position: Optional[int] = None
    text: str = ""

    kind: ClassVar[InstructionKind] = InstructionKind.READ

    def operands(self) -> Tuple[str, ...]:
        return (self.operand,)


@dataclass(frozen=True)
class Other(Instruction):
    op: str = ""
    names: Tuple[str, ...] = ()
    position: Optional[int] = None
    text: str = ""

    def operands(self) -> Tuple[str, ...]:
        return self.names


@dataclass
class Block:
    index: int
    instructions: List[Instruction] = field(default_factory=list)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)


@dataclass
class Function:
    """A function and its blocks, ordered by block index"""

    ref: FunctionRef
    blocks: List[Block] = field(default_factory=list)

    @property
    def package(self) -> str:
        return self.ref.package

    @property
    def name(self) -> str:
        return self.ref.name

    def instructions(self) -> Iterator[Tuple[Block, Instruction]]:
        """
        Yield ``(block, instruction)`` in block-index order, then program
        order within each block. Control-flow edges are not followed.
        """
        for block in sorted(self.blocks, key=lambda b: b.index):
            for instr in block.instructions:
                yield block, instr


class Program:
    """The set of functions handed over by the IR producer"""

    def __init__(self, functions: Iterable[Function] = ()):
        self._functions: Dict[FunctionRef, Function] = {}
        for function in functions:
            self.add(function)

    def add(self, function: Function) -> None:
        if function.ref in self._functions:
            raise ProgramLoadError(f"duplicate function {function.ref}")
        self._functions[function.ref] = function

    def __iter__(self) -> Iterator[Function]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, ref: object) -> bool:
        return ref in self._functions

    def function(self, ref: FunctionRef) -> Optional[Function]:
        return self._functions.get(ref)

    @property
    def packages(self) -> List[str]:
        seen: Dict[str, None] = {}
        for ref in self._functions:
            seen.setdefault(ref.package)
        return list(seen)

    def functions_in(self, packages: Optional[Iterable[str]] = None) -> List[Function]:
        """Functions whose package is in ``packages`` (all of them for None)"""
        if packages is None:
            return list(self._functions.values())
        wanted = set(packages)
        return [f for f in self._functions.values() if f.package in wanted]

    def closures_created_by(self, ref: FunctionRef) -> List[FunctionRef]:
        """Closures materialised directly inside ``ref``, in creation order"""
        function = self._functions.get(ref)
        if function is None:
            return []
        created: List[FunctionRef] = []
        for _, instr in function.instructions():
            if isinstance(instr, ClosureCreation) and instr.function not in created:
                created.append(instr.function)
        return created
