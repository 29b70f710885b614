# tests/test_evaluator.py
"""
Tests for the tree-walking evaluator: special forms, calls, interop and
failure modes.
"""

import pytest

from triggerexpr.config import ExpressionConfig
from triggerexpr.errors import (
    ArityError,
    EvaluationError,
    ExprErrorCodes,
    InteropError,
    RecursionLimitError,
    UnboundSymbolError,
)
from triggerexpr.evaluator import (
    Closure,
    Environment,
    Evaluator,
    SpecialFormChecker,
    root_environment,
)
from triggerexpr.reader import Keyword, is_symbol, read
from triggerexpr.state import SharedState


def run(text, config=None, **variables):
    env = root_environment().child(variables)
    return Evaluator(config).evaluate_body(read(text), env, 0)


class Player:
    device_number = 2

    def scaled_tempo(self, factor):
        return 120 * factor

    def is_playing(self):
        return True


class TestEnvironment:

    def test_lookup_through_parents(self):
        root = Environment({"a": 1})
        child = root.child({"b": 2})
        assert child.lookup("a") == 1
        assert child.lookup("b") == 2

    def test_shadowing(self):
        root = Environment({"a": 1})
        assert root.child({"a": 2}).lookup("a") == 2

    def test_none_is_a_value(self):
        assert Environment({"a": None}).lookup("a") is None

    def test_unbound(self):
        with pytest.raises(UnboundSymbolError) as exc_info:
            Environment().lookup("nope")
        assert exc_info.value.name == "nope"
        assert exc_info.value.code == ExprErrorCodes.UNDEFINED_SYMBOL


class TestLiteralsAndSymbols:

    def test_literals(self):
        assert run("42") == 42
        assert run('"text"') == "text"
        assert run("1.5") == 1.5

    def test_constants(self):
        assert run("nil") is None
        assert run("true") is True
        assert run("false") is False

    def test_keyword(self):
        value = run(":usb-slot")
        assert isinstance(value, Keyword)
        assert value == "usb-slot"

    def test_vector(self):
        assert run("[1 (inc 1) x]", x=3) == [1, 2, 3]

    def test_quote(self):
        quoted = run("(quote x)")
        assert is_symbol(quoted, "x")
        assert [is_symbol(s) for s in run("'(a b)")] == [True, True]

    def test_empty_body_is_nil(self):
        assert run("") is None


class TestSpecialForms:

    def test_if(self):
        assert run("(if nil 1 2)") == 2
        assert run("(if false 1)") is None
        assert run("(if 0 1 2)") == 1
        assert run('(if "" 1 2)') == 1

    def test_when_and_when_not(self):
        assert run("(when true 1 2)") == 2
        assert run("(when false 1)") is None
        assert run("(when-not false 3)") == 3

    def test_and_or(self):
        assert run("(and)") is True
        assert run("(and 1 nil 2)") is None
        assert run("(and 1 2)") == 2
        assert run("(or nil false 3)") == 3
        assert run("(or nil false)") is False

    def test_and_short_circuits(self):
        assert run("(and false (undefined-thing))") is False

    def test_do(self):
        assert run("(do 1 2 3)") == 3

    def test_let_is_sequential(self):
        assert run("(let [a 1 b (+ a 1)] (* a b 10))") == 20

    def test_let_does_not_leak(self):
        with pytest.raises(UnboundSymbolError):
            run("(do (let [a 1] a) a)")

    def test_when_let_and_if_let(self):
        assert run("(when-let [x (get m :k)] (inc x))", m={"k": 1}) == 2
        assert run("(when-let [x (get m :k)] (inc x))", m={}) is None
        assert run("(if-let [x nil] x :none)") == "none"

    def test_cond(self):
        assert run("(cond false 1 nil 2 :else 3)") == 3
        assert run("(cond false 1)") is None

    def test_fn(self):
        assert run("((fn [x] (* x 2)) 21)") == 42

    def test_fn_rest_args(self):
        assert run("((fn [a & more] more) 1 2 3)") == [2, 3]

    def test_named_fn_recursion(self):
        src = "((fn fact [n] (if (<= n 1) 1 (* n (fact (dec n))))) 5)"
        assert run(src) == 120

    def test_closure_captures_scope(self):
        adder = run("(let [n 10] (fn [x] (+ x n)))")
        assert isinstance(adder, Closure)
        assert adder(5) == 15

    def test_malformed_let(self):
        with pytest.raises(EvaluationError) as exc_info:
            run("(let [a] a)")
        assert exc_info.value.code == ExprErrorCodes.INVALID_SPECIAL_FORM

    def test_malformed_fn(self):
        with pytest.raises(EvaluationError) as exc_info:
            run("(fn)")
        assert exc_info.value.code == ExprErrorCodes.INVALID_SPECIAL_FORM


class TestSpecialFormChecker:

    def check(self, text):
        checker = SpecialFormChecker()
        checker.check(read(text))
        return checker

    @pytest.mark.parametrize("text", [
        "(let [a] a)",
        "(let a 1)",
        "(if)",
        "(if 1 2 3 4)",
        "(fn x)",
        "(fn [1] 1)",
        "(fn [a &] a)",
        "(when)",
        "(cond 1)",
        "(when-let [a 1 b 2] a)",
        "(quote)",
    ])
    def test_rejects(self, text):
        with pytest.raises(EvaluationError):
            self.check(text)

    def test_accepts_well_formed(self):
        checker = self.check(
            "(let [a 1] (if a (fn [x & more] x) (cond a 1 :else 2)))",
        )
        assert checker.lists_seen == 4

    def test_finds_nested_forms(self):
        with pytest.raises(ArityError):
            self.check("(do 1 [2 (inc (if))])")

    def test_inside_fn_body(self):
        with pytest.raises(EvaluationError):
            self.check("(fn [x] (let [y] y))")

    def test_quoted_data_is_not_checked(self):
        self.check("'(if)")
        self.check("(quote (let [a] a))")
        self.check("(list '[(fn x)])")

    def test_counts_lists_up_to_failure(self):
        checker = SpecialFormChecker()
        with pytest.raises(EvaluationError):
            checker.check(read("(inc 1) '(a) (do (if))"))
        assert checker.lists_seen == 4



class TestCalls:

    def test_builtin_call(self):
        assert run("(+ 1 2 3)") == 6

    def test_keyword_as_function(self):
        assert run("(:player m)", m={"player": 2}) == 2

    def test_map_as_function(self):
        assert run('(m "player")', m={"player": 2}) == 2

    def test_not_a_function(self):
        with pytest.raises(EvaluationError):
            run("(1 2)")

    def test_arity(self):
        with pytest.raises(ArityError) as exc_info:
            run("((fn [x] x))")
        assert exc_info.value.got == 0

    def test_python_exception_propagates(self):
        with pytest.raises(ZeroDivisionError):
            run("(/ 1 0)")


class TestInterop:

    def test_attribute(self):
        assert run("(.device-number p)", p=Player()) == 2

    def test_zero_argument_method(self):
        assert run("(.is-playing p)", p=Player()) is True

    def test_method_with_arguments(self):
        assert run("(.scaled-tempo p 2)", p=Player()) == 240

    def test_missing_member(self):
        with pytest.raises(InteropError) as exc_info:
            run("(.pitch p)", p=Player())
        assert exc_info.value.member == "pitch"

    def test_member_of_nil(self):
        with pytest.raises(InteropError):
            run("(.device-number nil)")

    def test_arguments_to_plain_attribute(self):
        with pytest.raises(ArityError):
            run("(.device-number p 1)", p=Player())


class TestRecursionLimit:

    def test_runaway_recursion(self):
        config = ExpressionConfig(max_depth=50)
        with pytest.raises(RecursionLimitError) as exc_info:
            run("((fn loop [n] (loop (inc n))) 0)", config=config)
        assert exc_info.value.limit == 50

    def test_deep_nesting(self):
        config = ExpressionConfig(max_depth=10)
        src = "(inc " * 20 + "0" + ")" * 20
        with pytest.raises(RecursionLimitError):
            run(src, config=config)

    def test_within_limit(self):
        assert run("(inc (inc (inc 0)))", config=ExpressionConfig(max_depth=10)) == 3

    def test_recursion_through_host_function(self):
        config = ExpressionConfig(max_depth=50)
        with pytest.raises(RecursionLimitError):
            run("((fn walk [n] (map walk [n])) 0)", config=config)

    def test_recursion_through_swap(self):
        config = ExpressionConfig(max_depth=50)
        with pytest.raises(RecursionLimitError):
            run("(swap! s :k (fn again [v] (swap! s :k again)))",
                config=config, s=SharedState())

    def test_host_callback_within_limit(self):
        config = ExpressionConfig(max_depth=50)
        assert run("(map (fn [x] (inc x)) [1 2])", config=config) == [2, 3]

    def test_host_depth_restored(self):
        ev = Evaluator(ExpressionConfig(max_depth=50))
        env = root_environment()
        ev.evaluate_body(read("(map inc [1 2])"), env, 0)
        assert ev.host_depth() == 0
        with pytest.raises(RecursionLimitError):
            ev.evaluate_body(read("((fn walk [n] (map walk [n])) 0)"), env, 0)
        assert ev.host_depth() == 0
