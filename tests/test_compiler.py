"""
Tests for the compiler façade and its wire form
"""

import json

from jspyc.compiler import Compiler, CompilationResult


def test_success_carries_every_artifact():
    res = Compiler().compile_code("var x = 1;")
    assert isinstance(res, CompilationResult)
    assert res.success
    assert res.error is None and res.step is None
    data = res.to_dict()
    assert set(data) == {"success", "tokens", "ast", "symbolTable", "intermediateCode", "code"}
    assert data["tokens"][0] == {"type": "keyword", "value": "var", "offset": 0}
    assert data["ast"]["type"] == "Program"
    assert data["symbolTable"][0]["symbols"]["x"]["kind"] == "variable"
    assert data["intermediateCode"][-1] == {"op": "ASSIGN", "arg1": "t0", "arg2": None, "result": "x"}
    assert data["code"].startswith("# Generated by jspyc\n")
    json.dumps(data)


def test_syntax_error_stops_in_strict_mode():
    res = Compiler().compile_code("var x = ;")
    assert not res.success
    assert res.step == "SyntaxAnalysis"
    assert "Unexpected token" in res.error
    assert res.tokens is not None
    assert res.ast is not None
    assert res.symbol_table is None
    assert res.code is None
    data = res.to_dict()
    assert data["step"] == "SyntaxAnalysis"
    assert data["error"] == res.error


def test_lenient_mode_compiles_recovered_program():
    res = Compiler(strict=False).compile_code("var x = ; var y = 2;")
    assert res.success
    assert len(res.errors) == 1
    assert "y = 2\n" in res.code
    assert any("syntax error" in w for w in res.warnings)


def test_lexical_anomalies_are_warnings():
    res = Compiler(strict=False).compile_code("var x = 1; #")
    assert res.success
    assert any("Unexpected character" in w for w in res.warnings)


def test_non_string_input_fails_at_lexing():
    res = Compiler().compile_code(None)
    assert not res.success
    assert res.step == "LexicalAnalysis"
    assert res.tokens is None


def test_code_generation_failure_keeps_ir(monkeypatch):
    from jspyc import compiler as compiler_module

    def boom(self, ir, scope_tree=None):
        raise RuntimeError("no output")

    monkeypatch.setattr(compiler_module.Compiler, "get_code", boom)
    res = Compiler().compile_code("var x = 1;")
    assert not res.success
    assert res.step == "CodeGeneration"
    assert res.intermediate_code is not None
    assert res.symbol_table is not None


def test_dropped_statement_is_reported():
    res = Compiler().compile_code("f(x).go(); var y = 1;")
    assert res.success
    assert res.warnings
    assert "y = 1\n" in res.code


def test_compile_file_writes_output(tmp_path):
    src = tmp_path / "prog.js"
    out = tmp_path / "prog.py"
    src.write_text("function sq(n) { return n * n; }\nvar r = sq(4);\n")

    res = Compiler().compile_file(str(src), str(out))
    assert res.success, res.error
    namespace = {}
    exec(out.read_text(), namespace)
    assert namespace["r"] == 16


def test_compile_file_missing_source(tmp_path):
    res = Compiler().compile_file(str(tmp_path / "missing.js"))
    assert not res.success
    assert "Failed to read source file" in res.error


def test_indent_from_environment(monkeypatch):
    monkeypatch.setenv("JSPYC_INDENT", "3")
    res = Compiler().compile_code("if (a) { b = 1; }")
    assert "if a:\n   b = 1\n" in res.code


def test_helpers():
    comp = Compiler()
    tokens = comp.get_tokens("var a = 1;")
    ast = comp.get_ast(tokens)
    tree = comp.get_symbol_table(ast)
    ir = comp.get_ir(ast, tree)
    assert comp.get_code(ir, tree) == "# Generated by jspyc\n\na = 1\n"


def test_factorial_pipeline_artifacts():
    res = Compiler().compile_code(
        "function factorial(n) { if (n <= 1) { return 1; } return n * factorial(n - 1); }"
    )
    assert res.success
    fn_scope = res.symbol_table.function_scopes("factorial")[0]
    assert res.symbol_table.parameters(fn_scope.id) == ["n"]
    ops = [ins.op.value for ins in res.intermediate_code]
    assert ops.count("FUNCTION") == 1
    assert ops.count("END_FUNCTION") == 1
    assert ops.count("COND_JUMP") == 1
    assert "def factorial(n):" in res.code
    assert res.code.count("if ") == 1


def test_malformed_expression_reports_syntax_step():
    res = Compiler().compile_code("var x = 1 + ;")
    assert not res.success
    assert res.step == "SyntaxAnalysis"
    assert res.tokens
    assert res.ast is not None and res.ast.body == []
    assert len(res.errors) == 1


def test_for_loop_with_implicit_accumulator():
    res = Compiler().compile_code("for (let i = 0; i < 3; i++) { total = total + i; }")
    assert res.success
    assert res.code.count("total = total + i") == 1
    assert res.code.count("i = i + 1") == 1
    assert "while i < 3:" in res.code


def test_lenient_recovery_inside_block_keeps_following_statements():
    res = Compiler(strict=False).compile_code("{ x = ( } var y = 2;")
    assert res.success
    assert len(res.errors) == 1
    assert "y = 2\n" in res.code


def test_duplicate_parameter_fails_syntax_step():
    res = Compiler().compile_code("function f(a, a) { return a; } var r = f(1, 2);")
    assert not res.success
    assert res.step == "SyntaxAnalysis"
    assert "Duplicate parameter name" in res.error


def test_shadowing_names_in_symbol_table_wire_form():
    res = Compiler().compile_code("var x = 1; { let x = 2; }")
    assert res.success
    block = res.to_dict()["symbolTable"][1]
    assert block["symbols"]["x"]["attributes"]["python_name"] == "x_1"
