"""
Main Compiler Driver

Orchestrates the compilation pipeline:

    source -> tokens -> AST -> scope tree -> IR -> Python

Every stage runs inside its own try/except; a failing stage ends the run
with a `CompilationResult` that names the stage and keeps whatever the
earlier stages produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional
import logging
import os

from jspyc.lexer import Lexer, Token
from jspyc.parser import Parser, ParserError
from jspyc.ast_nodes import Program, to_dict
from jspyc.symbols import ScopeTree, SymbolTableBuilder
from jspyc.ir import IRGenerator, IRInstruction
from jspyc.codegen import CodeGenerator

logger = logging.getLogger(__name__)

LEXICAL_ANALYSIS = "LexicalAnalysis"
SYNTAX_ANALYSIS = "SyntaxAnalysis"
SYMBOL_TABLE_GENERATION = "SymbolTableGeneration"
IR_GENERATION = "IntermediateCodeGeneration"
CODE_GENERATION = "CodeGeneration"

DEFAULT_INDENT = 4


@dataclass
class CompilationResult:
    """Result of compilation"""
    success: bool
    step: Optional[str] = None
    error: Optional[str] = None
    tokens: Optional[List[Token]] = None
    ast: Optional[Program] = None
    symbol_table: Optional[ScopeTree] = None
    intermediate_code: Optional[List[IRInstruction]] = None
    code: Optional[str] = None
    errors: List[str] = None
    warnings: List[str] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []
        if self.warnings is None:
            self.warnings = []

    def to_dict(self) -> dict:
        """Wire form: camelCase keys, plain data only."""
        data: dict = {
            "success": self.success,
            "tokens": [t.to_dict() for t in self.tokens] if self.tokens is not None else None,
            "ast": to_dict(self.ast) if self.ast is not None else None,
            "symbolTable": self.symbol_table.to_list() if self.symbol_table is not None else None,
            "intermediateCode": (
                [ins.to_dict() for ins in self.intermediate_code]
                if self.intermediate_code is not None else None
            ),
            "code": self.code,
        }
        if not self.success:
            data["error"] = self.error
            data["step"] = self.step
        return data


class Compiler:
    """Main compiler class orchestrating all compilation stages"""

    def __init__(self, strict: bool = True, indent: Optional[int] = None):
        # In strict mode syntax errors stop the pipeline after parsing;
        # otherwise later stages run on the recovered AST.
        self.strict = strict
        if indent is None:
            indent = int(os.environ.get("JSPYC_INDENT", DEFAULT_INDENT))
        if indent < 1:
            raise ValueError(f"indent must be positive, got {indent}")
        self.indent = indent

    def compile_file(self, source_file: str, output_file: Optional[str] = None) -> CompilationResult:
        """Compile a source file, optionally writing the Python output."""
        try:
            with open(source_file, "r", encoding="utf-8") as f:
                source_code = f.read()
        except IOError as e:
            return CompilationResult(
                success=False,
                step=LEXICAL_ANALYSIS,
                error=f"Failed to read source file: {e}",
                errors=[f"Failed to read source file: {e}"],
            )

        result = self.compile_code(source_code)
        if result.success and output_file:
            try:
                with open(output_file, "w", encoding="utf-8") as f:
                    f.write(result.code)
            except IOError as e:
                result.success = False
                result.error = f"Failed to write output file: {e}"
                result.errors.append(result.error)
        return result

    def compile_code(self, source_code: str) -> CompilationResult:
        """Compile source code"""
        result = CompilationResult(success=False)

        # Phase 1: Lexical Analysis
        try:
            lexer = Lexer(source_code)
            result.tokens = lexer.tokenize()
            result.warnings.extend(str(e) for e in lexer.get_errors())
        except Exception as e:
            return self._fail(result, LEXICAL_ANALYSIS, e)

        # Phase 2: Syntax Analysis
        try:
            parser = Parser(result.tokens)
            result.ast = parser.parse()
            result.errors.extend(str(e) for e in parser.errors)
        except Exception as e:
            return self._fail(result, SYNTAX_ANALYSIS, e)
        if parser.errors:
            if self.strict:
                return self._fail(result, SYNTAX_ANALYSIS, parser.errors[0])
            result.warnings.extend(f"recovered from syntax error: {e}" for e in parser.errors)

        # Phase 3: Symbol Table
        try:
            result.symbol_table = self.get_symbol_table(result.ast)
        except Exception as e:
            return self._fail(result, SYMBOL_TABLE_GENERATION, e)

        # Phase 4: IR Generation
        try:
            generator = IRGenerator(result.symbol_table)
            result.intermediate_code = generator.generate(result.ast)
            result.warnings.extend(generator.diagnostics)
        except Exception as e:
            return self._fail(result, IR_GENERATION, e)

        # Phase 5: Code Generation
        try:
            result.code = self.get_code(result.intermediate_code, result.symbol_table)
        except Exception as e:
            return self._fail(result, CODE_GENERATION, e)

        result.success = True
        logger.debug("compiled %d token(s) into %d line(s)", len(result.tokens), result.code.count("\n"))
        return result

    def _fail(self, result: CompilationResult, step: str, exc: Any) -> CompilationResult:
        result.success = False
        result.step = step
        result.error = str(exc)
        if not isinstance(exc, ParserError):
            result.errors.append(f"{step} failed: {exc}")
        logger.debug("%s failed: %s", step, exc)
        return result

    def get_tokens(self, source_code: str) -> List[Token]:
        """Get tokens from source code"""
        return Lexer(source_code).tokenize()

    def get_ast(self, tokens: List[Token]) -> Program:
        """Get AST from tokens; raises the first syntax error if any occurred."""
        parser = Parser(tokens)
        program = parser.parse()
        if parser.errors:
            raise parser.errors[0]
        return program

    def get_symbol_table(self, ast: Program) -> ScopeTree:
        """Build the scope tree"""
        return SymbolTableBuilder().build(ast)

    def get_ir(self, ast: Program, scope_tree: Optional[ScopeTree] = None) -> List[IRInstruction]:
        """Generate IR from AST"""
        return IRGenerator(scope_tree).generate(ast)

    def get_code(self, ir: List[IRInstruction], scope_tree: Optional[ScopeTree] = None) -> str:
        """Generate Python from IR"""
        generator = CodeGenerator(scope_tree, indent=self.indent)
        return generator.generate(ir)
