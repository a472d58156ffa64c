"""
Load a lowered program from the JSON hand-off format.

Any problem decoding the input aborts the run with ``ProgramLoadError``;
the detector never works on a partially loaded program.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from .errors import ProgramLoadError
from .program import (
    Allocation,
    Block,
    Call,
    ClosureCreation,
    Function,
    FunctionRef,
    Instruction,
    Other,
    Program,
    Read,
    Spawn,
    Write,
)

logger = logging.getLogger(__name__)


def load_program(path: Union[str, Path]) -> Program:
    """
    Read and decode a program file.

    Raises:
        ProgramLoadError: If the file cannot be read or decoded
    """
    path = Path(path)
    if not path.exists():
        raise ProgramLoadError("file does not exist", str(path))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ProgramLoadError(f"cannot read file: {e}", str(path)) from e
    except json.JSONDecodeError as e:
        raise ProgramLoadError(f"invalid JSON: {e}", str(path)) from e
    program = program_from_dict(data, source=str(path))
    logger.info("Loaded %d function(s) from %s", len(program), path)
    return program


def program_from_dict(data: Any, source: str = "") -> Program:
    if not isinstance(data, dict) or not isinstance(data.get("functions"), list):
        raise ProgramLoadError("expected an object with a 'functions' list", source)

    program = Program()
    for i, raw in enumerate(data["functions"]):
        program.add(_function(raw, f"functions[{i}]", source))
    return program


def _function(raw: Any, where: str, source: str) -> Function:
    if not isinstance(raw, dict) or not raw.get("name"):
        raise ProgramLoadError(f"{where}: function needs a 'name'", source)
    ref = FunctionRef(str(raw.get("package", "")), str(raw["name"]))

    blocks = []
    for i, raw_block in enumerate(_list(raw, "blocks", where, source)):
        if not isinstance(raw_block, dict):
            raise ProgramLoadError(f"{where}.blocks[{i}]: expected an object", source)
        index = _int(raw_block.get("index", i), f"{where}.blocks[{i}].index", source)
        instructions = [
            _instruction(raw_instr, ref, f"{where}.blocks[{i}].instructions[{j}]", source)
            for j, raw_instr in enumerate(
                _list(raw_block, "instructions", f"{where}.blocks[{i}]", source)
            )
        ]
        blocks.append(Block(index, instructions))
    return Function(ref, blocks)


def _instruction(raw: Any, owner: FunctionRef, where: str, source: str) -> Instruction:
    if not isinstance(raw, dict):
        raise ProgramLoadError(f"{where}: expected an object", source)

    op = raw.get("op", "")
    position = raw.get("pos")
    if position is not None:
        position = _int(position, f"{where}.pos", source)
    text = str(raw.get("text", ""))

    try:
        if op == "alloc":
            return Allocation(
                name=raw["name"],
                comment=raw.get("comment", ""),
                position=position,
                text=text,
            )
        if op == "make_closure":
            return ClosureCreation(
                function=FunctionRef(raw.get("package", owner.package), raw["function"]),
                bindings=tuple(_list(raw, "bindings", where, source)),
                position=position,
                text=text,
            )
        if op == "go":
            return Spawn(
                callee=_callee(raw.get("callee"), owner),
                value=raw.get("value", ""),
                position=position,
                text=text,
            )
        if op == "call":
            return Call(
                method=raw["method"],
                receiver=raw.get("receiver", ""),
                receiver_type=raw.get("receiver_type", ""),
                position=position,
                text=text,
            )
        if op == "store":
            return Write(
                addr=raw["addr"],
                value=raw.get("value", ""),
                position=position,
                text=text,
            )
        if op == "load":
            return Read(
                operand=raw["operand"],
                dereference=bool(raw.get("deref", True)),
                position=position,
                text=text,
            )
    except KeyError as e:
        raise ProgramLoadError(f"{where}: '{op}' is missing field {e}", source) from e

    return Other(
        op=op,
        names=tuple(_list(raw, "operands", where, source)),
        position=position,
        text=text,
    )


def _callee(raw: Any, owner: FunctionRef) -> Optional[FunctionRef]:
    # A dynamic callee is legal input; the tracker records it as a diagnostic
    if raw is None:
        return None
    if isinstance(raw, str):
        return FunctionRef.parse(raw, owner.package)
    if isinstance(raw, dict) and raw.get("name"):
        return FunctionRef(raw.get("package", owner.package), raw["name"])
    return None


def _int(value: Any, where: str, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProgramLoadError(f"{where}: expected an integer, got {value!r}", source)
    return value


def _list(raw: dict, key: str, where: str, source: str) -> list:
    """``raw[key]`` as a list; an absent key is an empty list"""
    value = raw.get(key, [])
    if not isinstance(value, list):
        raise ProgramLoadError(f"{where}.{key}: expected a list, got {value!r}", source)
    return value
