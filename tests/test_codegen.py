"""
Tests for Python emission: output shape and behaviour of the generated code
"""

import pytest
from jspyc.compiler import Compiler
from jspyc.codegen import emit
from jspyc.ir import IRInstruction, OpCode, Temp


def _python(source):
    res = Compiler().compile_code(source)
    assert res.success, f"{res.step}: {res.error}"
    return res.code


def _run(source):
    namespace = {}
    exec(compile(_python(source), "<generated>", "exec"), namespace)
    return namespace


FACTORIAL = """
function factorial(n) {
  if (n <= 1) {
    return 1;
  }
  return n * factorial(n-1);
}
"""

IS_PRIME = """
function isPrime(n) {
  if (n <= 1) { return false; }
  for (var i = 2; i * i <= n; i++) {
    if (n % i === 0) { return false; }
  }
  return true;
}
"""


class TestOutputShape:
    """Exact text for small programs"""

    def test_factorial(self):
        assert _python(FACTORIAL) == (
            "# Generated by jspyc\n"
            "\n"
            "def factorial(n):\n"
            "    if n <= 1:\n"
            "        return 1\n"
            "    return n * factorial(n - 1)\n"
        )

    def test_empty_program(self):
        assert _python("  \n ") == "# Generated by jspyc\n"

    def test_literals_round_trip(self):
        code = _python("var a = 3.5; var b = \"hi\";")
        assert "a = 3.5\n" in code
        assert 'b = "hi"\n' in code

    def test_if_without_else_has_no_labels(self):
        code = _python("var x = 0; if (x < 1) { x = 2; }")
        assert code.count("if ") == 1
        assert "else" not in code
        assert "L0" not in code and "L1" not in code

    def test_while_body_emitted_once(self):
        code = _python("var i = 0; while (i < 3) { i = i + 1; }")
        assert "while i < 3:\n" in code
        assert code.count("i = i + 1") == 1

    def test_for_loop_becomes_while_with_update_once(self):
        code = _python("var total = 0; for (var i = 0; i < 3; i++) { total = total + i; }")
        assert "while i < 3:\n" in code
        assert code.count("i = i + 1") == 1
        assert code.index("total = total + i") < code.index("i = i + 1")

    def test_operator_mapping(self):
        code = _python("var ok = a === b && !c || d !== e;")
        assert "ok = a == b and not c or d != e\n" in code

    def test_parentheses_preserved_where_needed(self):
        code = _python("var r = (a + b) * (c - d);")
        assert "r = (a + b) * (c - d)\n" in code

    def test_right_operand_grouping(self):
        code = _python("var r = a - (b - c);")
        assert "r = a - (b - c)\n" in code

    def test_else_branch(self):
        code = _python("var x = 1; if (x) { x = 2; } else { x = 3; }")
        assert "if x:\n    x = 2\nelse:\n    x = 3\n" in code

    def test_empty_body_gets_pass(self):
        code = _python("while (x) { }")
        assert "while x:\n    pass\n" in code

    def test_console_log_becomes_print(self):
        code = _python("console.log('hello');")
        assert code.endswith("print('hello')\n")

    def test_math_import_added(self):
        code = _python("var r = Math.floor(x);")
        assert "import math\n" in code
        assert "r = math.floor(x)\n" in code

    def test_python_keyword_is_renamed(self):
        code = _python("var lambda = 1;")
        assert "lambda_ = 1\n" in code

    def test_chained_assignment(self):
        code = _python("var a = b = f();")
        assert "b = f()\n" in code
        assert "a = b\n" in code

    def test_function_definitions_hoisted(self):
        code = _python("var r = twice(2); function twice(n) { return n * 2; }")
        assert code.index("def twice") < code.index("r = twice(2)")

    def test_indent_option(self):
        res = Compiler(indent=2).compile_code("if (x) { y = 1; }")
        assert "if x:\n  y = 1\n" in res.code

    def test_condition_with_statements_uses_break(self):
        code = _python("while (a = b) { b = 0; }")
        assert "while True:\n" in code
        assert "break" in code


class TestBehaviour:
    """Run the generated Python"""

    def test_factorial(self):
        ns = _run(FACTORIAL)
        assert ns["factorial"](5) == 120

    def test_is_prime(self):
        ns = _run(IS_PRIME)
        assert ns["isPrime"](17) is True
        assert ns["isPrime"](15) is False
        assert ns["isPrime"](1) is False

    def test_for_loop_sum(self):
        ns = _run("var total = 0; for (var i = 0; i < 5; i++) { total += i; }")
        assert ns["total"] == 10

    def test_global_counter(self):
        ns = _run("""
        var count = 0;
        function inc() { count = count + 1; }
        inc();
        inc();
        """)
        assert ns["count"] == 2

    def test_nested_function_updates_enclosing_variable(self):
        ns = _run("""
        function makeCounter() {
          var c = 0;
          function bump() { c = c + 1; return c; }
          bump();
          bump();
          return c;
        }
        var result = makeCounter();
        """)
        assert ns["result"] == 2

    def test_push_and_length(self):
        ns = _run("""
        function fill(arr, n) {
          for (var i = 0; i < n; i++) {
            arr.push(i * i);
          }
          return arr.length;
        }
        """)
        items = []
        assert ns["fill"](items, 4) == 4
        assert items == [0, 1, 4, 9]

    def test_index_assignment(self):
        ns = _run("function setFirst(arr, v) { arr[0] = v; return arr[0]; }")
        assert ns["setFirst"]([1, 2], 7) == 7

    def test_while_with_compound_update(self):
        ns = _run("""
        function countdown(n) {
          var steps = 0;
          while (n > 0) { n -= 1; steps++; }
          return steps;
        }
        """)
        assert ns["countdown"](4) == 4

    def test_infinite_for_needs_return(self):
        ns = _run("""
        function firstOver(limit) {
          for (var i = 0; ; i++) {
            if (i * i > limit) { return i; }
          }
        }
        """)
        assert ns["firstOver"](10) == 4

    def test_evaluation_order_kept(self):
        ns = _run("""
        var log = 0;
        function a() { log = log * 10 + 1; return 1; }
        function b() { log = log * 10 + 2; return 2; }
        var r = a() + b();
        """)
        assert ns["r"] == 3
        assert ns["log"] == 12


def test_emit_rejects_broken_control_flow():
    from jspyc.codegen import ControlFlowReconstructionError

    code = [IRInstruction(OpCode.LABEL, result="L0")]
    with pytest.raises(ControlFlowReconstructionError):
        emit(code)


def test_emit_without_scopes_fails_for_functions():
    from jspyc.codegen import CodeGenerationError

    code = [
        IRInstruction(OpCode.FUNCTION, "f", 0),
        IRInstruction(OpCode.END_FUNCTION, "f"),
    ]
    with pytest.raises(CodeGenerationError):
        emit(code)


def test_unused_call_is_expression_statement():
    code = [
        IRInstruction(OpCode.CALL, "tick", 0, Temp("t0")),
    ]
    assert emit(code).endswith("tick()\n")


class TestSourceSemantics:
    """Generated code keeps the source's meaning"""

    def test_loop_let_does_not_clobber_outer_var(self):
        ns = _run("function k() { var i = 5; for (let i = 0; i < 2; i++) { } return i; }")
        assert ns["k"]() == 5

    def test_block_let_does_not_clobber_outer_var(self):
        ns = _run("var x = 1; { let x = 2; } var r = x;")
        assert ns["r"] == 1
        assert ns["x_1"] == 2

    def test_block_let_read_inside_block(self):
        ns = _run("var x = 1; var seen = 0; { let x = 2; seen = x; }")
        assert ns["seen"] == 2
        assert ns["x"] == 1

    def test_implicit_assignment_in_function_is_global(self):
        code = _python("function a() { g = 5; } function b() { return g; } a(); var r = b();")
        assert "def a():\n    global g\n    g = 5\n" in code
        ns = _run("function a() { g = 5; } function b() { return g; } a(); var r = b();")
        assert ns["r"] == 5

    def test_implicit_assignment_in_nested_function(self):
        ns = _run("""
        function outer() {
          function inner() { hits = 1; }
          inner();
        }
        outer();
        var r = hits;
        """)
        assert ns["r"] == 1

    def test_postfix_increment_yields_old_value(self):
        ns = _run("var x = 5; var y = x++;")
        assert ns["y"] == 5
        assert ns["x"] == 6

    def test_postfix_in_expression(self):
        ns = _run("var x = 5; var y = x++ + x;")
        assert ns["y"] == 11

    def test_prefix_increment_yields_new_value(self):
        ns = _run("var x = 5; var y = ++x;")
        assert ns["y"] == 6

    def test_postfix_on_element(self):
        ns = _run("function bump(arr) { var old = arr[0]++; return old; }")
        items = [3]
        assert ns["bump"](items) == 3
        assert items == [4]

    def test_string_concatenation_with_number(self):
        code = _python('var s = "Factorial of 5: " + f;')
        assert 's = "Factorial of 5: " + str(f)\n' in code

    def test_number_then_string(self):
        ns = _run('var n = 2; var s = n + " items";')
        assert ns["s"] == "2 items"

    def test_chained_concatenation(self):
        ns = _run('var a = 1; var b = 2; var s = "sum: " + (a + b) + "!";')
        assert ns["s"] == "sum: 3!"

    def test_sample_program_output(self, capsys):
        _run("""
        function factorial(n) {
            if (n <= 1) {
                return 1;
            }
            return n * factorial(n - 1);
        }
        var factResult = factorial(5);
        console.log("Factorial of 5: " + factResult);
        """)
        assert capsys.readouterr().out == "Factorial of 5: 120\n"
