"""
Unit tests for IR generation
"""

from jspyc.lexer import tokenize
from jspyc.parser import parse
from jspyc.ir import IRGenerator, IRInstruction, OpCode, Temp, generate


def _ir(source):
    program, errors = parse(tokenize(source))
    assert not errors
    return generate(program)


def _ops(instructions):
    return [ins.op for ins in instructions]


class TestExpressions:
    """Expression lowering"""

    def test_literal_and_declaration(self):
        code = _ir("var x = 3.5;")
        assert _ops(code) == [OpCode.ASSIGN, OpCode.ASSIGN]
        assert code[0].arg1 == "3.5"
        assert code[0].result == Temp("t0")
        assert isinstance(code[0].result, Temp)
        assert code[1].arg1 == "t0"
        assert code[1].result == "x"

    def test_declaration_without_initializer(self):
        code = _ir("let y;")
        assert code == [IRInstruction(OpCode.ASSIGN, "undefined", None, "y")]

    def test_binary(self):
        code = _ir("var z = a * b;")
        assert code[0].op == OpCode.BINARY_OP
        assert (code[0].arg1, code[0].arg2, code[0].operator) == ("a", "b", "*")

    def test_compound_assignment(self):
        code = _ir("x += 2;")
        assert _ops(code) == [OpCode.ASSIGN, OpCode.BINARY_OP, OpCode.ASSIGN]
        assert code[1].arg1 == "x"
        assert code[1].operator == "+"
        assert code[2].result == "x"

    def test_call_params_precede_call(self):
        code = _ir("console.log(a, 1);")
        assert _ops(code) == [OpCode.ASSIGN, OpCode.PARAM, OpCode.PARAM, OpCode.CALL]
        call = code[-1]
        assert call.arg1 == "console.log"
        assert call.arg2 == 2

    def test_member_read_and_write(self):
        code = _ir("arr[0] = arr.length;")
        assert _ops(code) == [OpCode.ASSIGN, OpCode.INDEX_GET, OpCode.INDEX_SET]
        assert code[1].arg2 == '"length"'
        assert code[2].result == "arr"

    def test_string_literal_keeps_quotes(self):
        code = _ir("var s = 'hi';")
        assert code[0].arg1 == "'hi'"


class TestControlFlow:
    """Canonical label/jump shapes"""

    def test_if_shape(self):
        code = _ir("if (c) { x = 1; }")
        assert _ops(code) == [
            OpCode.COND_JUMP,
            OpCode.ASSIGN, OpCode.ASSIGN,
            OpCode.JUMP,
            OpCode.LABEL,
            OpCode.LABEL,
        ]
        cond_jump, jump, else_label, end_label = code[0], code[3], code[4], code[5]
        assert cond_jump.arg2 is False
        assert cond_jump.result == else_label.result
        assert jump.result == end_label.result

    def test_while_shape(self):
        code = _ir("while (i < 3) { i = i + 1; }")
        assert code[0].op == OpCode.LABEL
        start = code[0].result
        exit_jump = [ins for ins in code if ins.op == OpCode.COND_JUMP][0]
        assert exit_jump.arg2 is False
        assert code[-2] == IRInstruction(OpCode.JUMP, result=start)
        assert code[-1] == IRInstruction(OpCode.LABEL, result=exit_jump.result)

    def test_for_shape(self):
        code = _ir("for (var i = 0; i < 3; i++) { }")
        ops = _ops(code)
        jump_idx = ops.index(OpCode.JUMP)
        cond_label = code[jump_idx].result
        assert code[jump_idx + 1].op == OpCode.LABEL
        start_label = code[jump_idx + 1].result
        back = [ins for ins in code if ins.op == OpCode.COND_JUMP][0]
        assert back.arg2 is True
        assert back.result == start_label
        labels = [ins.result for ins in code if ins.op == OpCode.LABEL]
        # start, update, cond, end
        assert labels[0] == start_label
        assert labels[2] == cond_label
        assert code[-1].op == OpCode.LABEL

    def test_for_without_test_uses_true(self):
        code = _ir("for (;;) { }")
        back = [ins for ins in code if ins.op == OpCode.COND_JUMP][0]
        defining = [ins for ins in code if ins.result == back.arg1][0]
        assert defining.arg1 == "true"

    def test_function_shape(self):
        code = _ir("function f(a, b) { return a; }")
        assert code[0] == IRInstruction(OpCode.FUNCTION, "f", 2)
        assert code[1] == IRInstruction(OpCode.PARAM, 0, None, "a")
        assert code[2] == IRInstruction(OpCode.PARAM, 1, None, "b")
        assert code[3] == IRInstruction(OpCode.RETURN, "a")
        assert code[4] == IRInstruction(OpCode.END_FUNCTION, "f")

    def test_fresh_counters_per_generator(self):
        program, _ = parse(tokenize("var a = 1;"))
        first = IRGenerator().generate(program)
        second = IRGenerator().generate(program)
        assert first == second


def test_unsupported_statement_is_dropped():
    """A method call on a computed receiver drops only its own statement"""
    gen = IRGenerator()
    program, errors = parse(tokenize("f(x).go(); var y = 2;"))
    assert not errors
    code = gen.generate(program)
    assert len(gen.diagnostics) == 1
    assert [ins.result for ins in code if ins.op == OpCode.ASSIGN][-1] == "y"
    assert all(ins.op != OpCode.CALL for ins in code)


def test_instruction_dict_form():
    ins = IRInstruction(OpCode.BINARY_OP, "a", "b", Temp("t0"), "+")
    assert ins.to_dict() == {"op": "BINARY_OP", "arg1": "a", "arg2": "b", "result": "t0", "operator": "+"}
    assert IRInstruction(OpCode.JUMP, result="L1").to_dict() == {"op": "JUMP", "arg1": None, "arg2": None, "result": "L1"}


def test_postfix_value_is_the_old_value():
    code = _ir("var y = x++;")
    assert _ops(code) == [OpCode.ASSIGN, OpCode.ASSIGN, OpCode.BINARY_OP, OpCode.ASSIGN, OpCode.ASSIGN]
    old = code[0]
    assert old.arg1 == "x" and isinstance(old.result, Temp)
    assert code[3].result == "x"
    assert code[4] == IRInstruction(OpCode.ASSIGN, old.result, None, "y")


def test_postfix_statement_keeps_no_copy():
    code = _ir("x++;")
    assert _ops(code) == [OpCode.ASSIGN, OpCode.BINARY_OP, OpCode.ASSIGN]


def test_prefix_value_is_the_new_value():
    code = _ir("var y = ++x;")
    assert code[-1] == IRInstruction(OpCode.ASSIGN, "x", None, "y")


def test_shadowing_binding_uses_its_own_name():
    from jspyc.symbols import build

    program, errors = parse(tokenize("var i = 5; for (let i = 0; i < 2; i++) { } var r = i;"))
    assert not errors
    code = generate(program, build(program))
    assigned = [ins.result for ins in code if ins.op == OpCode.ASSIGN and not isinstance(ins.result, Temp)]
    assert assigned == ["i", "i_1", "i_1", "r"]
    assert code[-1].arg1 == "i"
