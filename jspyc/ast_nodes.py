"""
Abstract Syntax Tree (AST) Node Definitions for the jspyc compiler

Each node kind is a dataclass variant carrying a `kind` tag; `to_dict`
serializes a tree structurally using that tag as the `type` field.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, List, Optional, Union


@dataclass
class ASTNode:
    """Base class for all AST nodes"""
    # Source offset is a required constructor argument so that subclasses'
    # non-default fields don't follow defaults.
    offset: int

    kind: ClassVar[str] = "Node"


# ============== Statement Nodes ==============

@dataclass
class Statement(ASTNode):
    """Base class for statements"""
    pass


@dataclass
class Block(Statement):
    """Block statement { ... }"""
    statements: List[Statement] = field(default_factory=list)

    kind: ClassVar[str] = "Block"


@dataclass
class VariableDecl(Statement):
    """`var`/`let`/`const` declaration"""
    name: str
    declaration: str  # 'var', 'let' or 'const'
    init: Optional['Expression'] = None

    kind: ClassVar[str] = "VariableDeclaration"


@dataclass
class FunctionDecl(Statement):
    """Function declaration"""
    name: str
    params: List[str]
    body: Block

    kind: ClassVar[str] = "FunctionDeclaration"


@dataclass
class IfStmt(Statement):
    """If statement"""
    test: 'Expression'
    consequent: Statement
    alternate: Optional[Statement] = None

    kind: ClassVar[str] = "If"


@dataclass
class WhileStmt(Statement):
    """While loop"""
    test: 'Expression'
    body: Statement

    kind: ClassVar[str] = "While"


@dataclass
class ForStmt(Statement):
    """For loop"""
    init: Optional[Statement] = None  # VariableDecl or ExpressionStmt
    test: Optional['Expression'] = None
    update: Optional['Expression'] = None
    body: Optional[Statement] = None

    kind: ClassVar[str] = "For"


@dataclass
class ReturnStmt(Statement):
    """Return statement"""
    value: Optional['Expression'] = None

    kind: ClassVar[str] = "Return"


@dataclass
class ExpressionStmt(Statement):
    """Expression statement"""
    expression: 'Expression'

    kind: ClassVar[str] = "ExpressionStatement"


# ============== Expression Nodes ==============

@dataclass
class Expression(ASTNode):
    """Base class for expressions"""
    pass


@dataclass
class Identifier(Expression):
    """Identifier (variable or function name)"""
    name: str

    kind: ClassVar[str] = "Identifier"


@dataclass
class Literal(Expression):
    """Number, string, boolean, null or undefined literal.

    `raw` keeps the source spelling (quotes included for strings); `value`
    is the corresponding Python value.
    """
    value: Union[int, float, str, bool, None]
    raw: str

    kind: ClassVar[str] = "Literal"


@dataclass
class BinaryOp(Expression):
    """Binary operation"""
    operator: str  # '+', '-', '*', '/', '%', '==', '===', '<', '&&', ...
    left: Expression
    right: Expression

    kind: ClassVar[str] = "Binary"


@dataclass
class UnaryOp(Expression):
    """Prefix unary operation ('!', '-', '+')"""
    operator: str
    operand: Expression

    kind: ClassVar[str] = "Unary"


@dataclass
class Assignment(Expression):
    """Assignment expression"""
    target: Expression  # Identifier or MemberAccess
    operator: str  # '=', '+=', '-=', '*=', '/=', '%='
    value: Expression
    postfix: bool = False  # `x++`: the expression yields the old value

    kind: ClassVar[str] = "Assignment"


@dataclass
class Call(Expression):
    """Function call"""
    callee: Expression
    arguments: List[Expression] = field(default_factory=list)

    kind: ClassVar[str] = "Call"


@dataclass
class MemberAccess(Expression):
    """Property access: `object.name` or `object[expr]` (computed)"""
    object: Expression
    property: Expression  # Identifier for `.name`, any expression when computed
    computed: bool = False

    kind: ClassVar[str] = "Member"


# ============== Program Node ==============

@dataclass
class Program(ASTNode):
    """Root node representing entire program"""
    body: List[Statement] = field(default_factory=list)

    kind: ClassVar[str] = "Program"


# ============== Utility Functions ==============

def to_dict(node: Any) -> Any:
    """Serialize an AST (or any value inside one) into plain data."""
    if isinstance(node, ASTNode):
        data = {"type": node.kind}
        for f in fields(node):
            data[f.name] = to_dict(getattr(node, f.name))
        return data
    if isinstance(node, list):
        return [to_dict(item) for item in node]
    return node


def dotted_name(expr: Expression) -> Optional[str]:
    """Return `a.b.c` for a chain of identifiers and `.name` accesses, else None."""
    if isinstance(expr, Identifier):
        return expr.name
    if isinstance(expr, MemberAccess) and not expr.computed and isinstance(expr.property, Identifier):
        base = dotted_name(expr.object)
        if base is not None:
            return f"{base}.{expr.property.name}"
    return None


def print_ast(node: ASTNode, indent: int = 0) -> str:
    """Pretty-print AST node"""
    prefix = "  " * indent

    if isinstance(node, Program):
        result = f"{prefix}Program\n"
        for stmt in node.body:
            result += print_ast(stmt, indent + 1)
        return result

    elif isinstance(node, FunctionDecl):
        result = f"{prefix}FunctionDeclaration: {node.name}({', '.join(node.params)})\n"
        result += print_ast(node.body, indent + 1)
        return result

    elif isinstance(node, VariableDecl):
        result = f"{prefix}VariableDeclaration: {node.declaration} {node.name}\n"
        if node.init is not None:
            result += print_ast(node.init, indent + 1)
        return result

    elif isinstance(node, Block):
        result = f"{prefix}Block\n"
        for stmt in node.statements:
            result += print_ast(stmt, indent + 1)
        return result

    elif isinstance(node, BinaryOp):
        return f"{prefix}Binary({node.operator})\n" + print_ast(node.left, indent + 1) + print_ast(node.right, indent + 1)

    elif isinstance(node, Identifier):
        return f"{prefix}Identifier({node.name})\n"

    elif isinstance(node, Literal):
        return f"{prefix}Literal({node.raw})\n"

    else:
        return f"{prefix}{node.kind}\n"
