"""Tests for the program model and analysis configuration."""

import pytest

from raceguard import AnalysisConfig, Block, FunctionRef, InstructionKind, Program
from raceguard.errors import ProgramLoadError
from raceguard.program import Call
from tests.test_utils import PKG, closure, function, lock, ref, store, unlock


class TestFunctionRef:
    def test_str(self):
        assert str(ref("main$1")) == "command-line-arguments.main$1"

    def test_parse_splits_on_last_dot(self):
        assert FunctionRef.parse("example.com/x/y.run") == FunctionRef("example.com/x/y", "run")

    def test_parse_bare_name_uses_default_package(self):
        assert FunctionRef.parse("main", PKG) == ref("main")


class TestProgram:
    def test_instructions_follow_block_index_order(self):
        main = function("main", Block(1, [store("b", 2)]), Block(0, [store("a", 1)]))

        assert [instr.addr for _, instr in main.instructions()] == ["a", "b"]

    def test_closures_created_by_is_one_level_and_ordered(self):
        program = Program(
            [
                function("main", [closure("main$2", [], 1), closure("main$1", [], 2)]),
                function("main$1", [closure("main$1$1", [], 3)]),
            ]
        )

        assert program.closures_created_by(ref("main")) == [ref("main$2"), ref("main$1")]
        assert program.closures_created_by(ref("absent")) == []

    def test_functions_in_packages(self):
        program = Program([function("main"), function("run", package="other")])

        assert [f.name for f in program.functions_in({"other"})] == ["run"]
        assert len(program.functions_in()) == 2
        assert program.packages == [PKG, "other"]

    def test_duplicate_function_rejected(self):
        program = Program([function("main")])

        with pytest.raises(ProgramLoadError):
            program.add(function("main"))


class TestAnalysisConfig:
    def test_classify_call(self):
        config = AnalysisConfig()

        assert config.classify_call(lock("t1", 1)) is InstructionKind.LOCK_CALL
        assert config.classify_call(unlock("t1", 2)) is InstructionKind.UNLOCK_CALL
        try_lock = Call("TryLock", "t1", "*sync.Mutex", 3)
        assert config.classify_call(try_lock) is InstructionKind.CALL
        add = Call("Add", "t0", "*sync.WaitGroup", 4)
        assert config.classify_call(add) is InstructionKind.CALL

    def test_considers(self):
        assert AnalysisConfig().considers(ref("main"))
        assert not AnalysisConfig(packages=frozenset({"other"})).considers(ref("main"))
