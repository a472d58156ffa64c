"""
Alias resolution: maps every local access token to a canonical variable.

A local access token is an operand name seen in one block of one function.
Allocation temporaries point at the declared variable of the same block,
and variables captured by a closure point, from block 0 of the closure, at
the canonical variable of the enclosing scope.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .concurrency import ConcurrencyTracker
from .program import Allocation, ClosureCreation, Function, FunctionRef, Spawn

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class VarKey:
    """Structural identity of a variable (or of a local access token)"""

    package: str
    function: str
    block: int
    name: str

    @classmethod
    def local(cls, ref: FunctionRef, block: int, name: str) -> "VarKey":
        return cls(ref.package, ref.name, block, name)

    @property
    def function_ref(self) -> FunctionRef:
        return FunctionRef(self.package, self.function)

    def __str__(self) -> str:
        return f"{self.package}.{self.function}.{self.block}.{self.name}"


class AliasResolver:
    """
    Alias map plus the construction scan that fills it.

    Entries map a key to another key, or to None for a terminal (canonical)
    key. ``resolve`` follows entries until a miss or a terminal.
    """

    def __init__(self):
        self._aliases: Dict[VarKey, Optional[VarKey]] = {}
        self.diagnostics: List[str] = []

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, key: object) -> bool:
        return key in self._aliases

    def register(self, key: VarKey, target: Optional[VarKey]) -> None:
        self._aliases[key] = target

    def target_of(self, key: VarKey) -> Optional[VarKey]:
        return self._aliases.get(key)

    def resolve(self, key: VarKey) -> VarKey:
        """Canonical identity of ``key``; ``key`` itself if it was never aliased"""
        seen: Set[VarKey] = {key}
        while True:
            target = self._aliases.get(key)
            if target is None:
                return key
            if target in seen:
                message = f"alias cycle through {target}, stopping at {key}"
                logger.warning(message)
                self.diagnostics.append(message)
                return key
            seen.add(target)
            key = target

    def resolve_operand(self, ref: FunctionRef, block: int, name: str) -> VarKey:
        return self.resolve(VarKey.local(ref, block, name))

    def scan(self, functions: Iterable[Function], tracker: ConcurrencyTracker) -> None:
        """
        Build the alias map and fill ``tracker`` in one construction phase.

        Allocations, spawn sites and closure edges are collected first for
        every function. Closure captures are then bound with enclosing
        functions handled before the closures they create, so a capture
        always resolves against a fully built enclosing scope.
        """
        functions = list(functions)
        for function in functions:
            self._scan_declarations(function, tracker)

        for function in tracker.closure_scope_order(functions):
            self._scan_captures(function)

        logger.info(
            "Alias map: %d entries, %d concurrent units",
            len(self._aliases),
            len(tracker.concurrent_units),
        )

    def _scan_declarations(self, function: Function, tracker: ConcurrencyTracker) -> None:
        ref = function.ref
        for block, instr in function.instructions():
            if isinstance(instr, Allocation):
                declared = VarKey.local(ref, block.index, instr.declared_name)
                self.register(declared, None)
                if instr.name and instr.name != instr.declared_name:
                    self.register(VarKey.local(ref, block.index, instr.name), declared)

            elif isinstance(instr, ClosureCreation):
                tracker.record_closure(ref, instr.function)

            elif isinstance(instr, Spawn):
                if instr.callee is None:
                    message = (
                        f"unresolved spawn callee in {ref} block {block.index}: {instr}"
                    )
                    logger.debug(message)
                    self.diagnostics.append(message)
                    continue
                tracker.register_spawn(instr.callee, ref, block.index, instr.position)

    def _scan_captures(self, function: Function) -> None:
        ref = function.ref
        for block, instr in function.instructions():
            if not isinstance(instr, ClosureCreation):
                continue
            closure = instr.function
            for binding in instr.bindings:
                canonical = self.resolve_operand(ref, block.index, binding)
                captured = VarKey.local(closure, 0, canonical.name)
                if captured == canonical:
                    continue
                if captured in self._aliases and self._aliases[captured] is None:
                    # The closure declares its own local under this name
                    message = f"{closure} shadows captured {canonical}, keeping its local"
                    logger.warning(message)
                    self.diagnostics.append(message)
                    continue
                self.register(captured, canonical)
                logger.debug("Capture %s -> %s", captured, canonical)
