"""
jspyc - a script-to-Python source compiler

Lexes and parses a small JavaScript-like language, resolves its scopes,
lowers it to three-address code and rebuilds structured Python from that
code.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .lexer import Lexer, Token, TokenType
from .parser import Parser, ParserError
from .symbols import ScopeTree, SymbolTableBuilder
from .ir import IRGenerator, IRInstruction, OpCode
from .codegen import CodeGenerator, CodeGenerationError, ControlFlowReconstructionError
from .compiler import Compiler, CompilationResult

__all__ = [
    'Lexer',
    'Token',
    'TokenType',
    'Parser',
    'ParserError',
    'ScopeTree',
    'SymbolTableBuilder',
    'IRGenerator',
    'IRInstruction',
    'OpCode',
    'CodeGenerator',
    'CodeGenerationError',
    'ControlFlowReconstructionError',
    'Compiler',
    'CompilationResult',
]
