"""jspyc.ir

Three-address intermediate representation and its generator.

Control flow is lowered to labels and jumps in a small set of canonical
shapes which `jspyc.structurer` later recognizes:

    if:    COND_JUMP(c, False, Lelse) then..  JUMP Lend  LABEL Lelse  else..  LABEL Lend
    while: LABEL Ls  cond..  COND_JUMP(c, False, Le)  body..  JUMP Ls  LABEL Le
    for:   init..  JUMP Lc  LABEL Ls  body..  LABEL Lu  update..
           LABEL Lc  cond..  COND_JUMP(c, True, Ls)  LABEL Le

Labels, including jump targets, travel in the `result` slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional
import logging

from jspyc.ast_nodes import (
    Program,
    Statement,
    Block,
    VariableDecl,
    FunctionDecl,
    IfStmt,
    WhileStmt,
    ForStmt,
    ReturnStmt,
    ExpressionStmt,
    Expression,
    Identifier,
    Literal,
    BinaryOp,
    UnaryOp,
    Assignment,
    Call,
    MemberAccess,
    dotted_name,
)
from jspyc.symbols import ScopeTree

logger = logging.getLogger(__name__)


class OpCode(str, Enum):
    ASSIGN = "ASSIGN"
    BINARY_OP = "BINARY_OP"
    UNARY_OP = "UNARY_OP"
    LABEL = "LABEL"
    JUMP = "JUMP"
    COND_JUMP = "COND_JUMP"
    PARAM = "PARAM"
    CALL = "CALL"
    RETURN = "RETURN"
    FUNCTION = "FUNCTION"
    END_FUNCTION = "END_FUNCTION"
    INDEX_GET = "INDEX_GET"
    INDEX_SET = "INDEX_SET"


class Temp(str):
    """Compiler temporary (`t0`, `t1`, ...); distinct from a source name."""

    def __repr__(self) -> str:
        return f"Temp({str(self)!r})"


@dataclass
class IRInstruction:
    op: OpCode
    arg1: Any = None
    arg2: Any = None
    result: Any = None
    operator: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"op": self.op.value, "arg1": self.arg1, "arg2": self.arg2, "result": self.result}
        if self.operator is not None:
            data["operator"] = self.operator
        return data

    def __str__(self) -> str:
        if self.op == OpCode.LABEL:
            return f"{self.result}:"
        parts = [self.op.value]
        if self.operator is not None:
            parts.append(self.operator)
        parts.extend(str(a) for a in (self.arg1, self.arg2) if a is not None)
        text = " ".join(parts)
        if self.result is not None:
            text += f" -> {self.result}"
        return text


class IRGenerationError(Exception):
    """IR generation error"""
    pass


class UnsupportedConstruct(IRGenerationError):
    """Raised for a construct the lowering has no shape for; the enclosing
    statement is dropped."""
    def __init__(self, message: str, node: Any = None):
        self.node = node
        offset = getattr(node, "offset", None)
        super().__init__(message if offset is None else f"{message} (offset {offset})")


class IRGenerator:
    """Generates three-address code from the AST

    With a scope tree, source names are written under the name their binding
    is emitted as (see `Symbol.python_name`).
    """

    def __init__(self, scope_tree: Optional[ScopeTree] = None):
        self.scope_tree = scope_tree
        self.instructions: List[IRInstruction] = []
        self.diagnostics: List[str] = []
        self.temp_counter = 0
        self.label_counter = 0
        self._scope = 0

    def generate(self, ast: Program) -> List[IRInstruction]:
        """Generate IR from AST"""
        self.instructions = []
        self.diagnostics = []
        self.temp_counter = 0
        self.label_counter = 0
        self._scope = 0

        for stmt in ast.body:
            self._gen_stmt_checked(stmt)
        logger.debug("generated %d IR instruction(s)", len(self.instructions))
        return self.instructions

    # -------------
    # Helpers
    # -------------

    def _new_temp(self) -> Temp:
        t = Temp(f"t{self.temp_counter}")
        self.temp_counter += 1
        return t

    def _new_label(self) -> str:
        l = f"L{self.label_counter}"
        self.label_counter += 1
        return l

    def _emit(self, op: OpCode, arg1: Any = None, arg2: Any = None, result: Any = None,
              operator: Optional[str] = None) -> None:
        self.instructions.append(IRInstruction(op, arg1, arg2, result, operator))

    def _gen_stmt_checked(self, stmt: Statement) -> None:
        mark = len(self.instructions)
        scope = self._scope
        try:
            self._gen_stmt(stmt)
        except UnsupportedConstruct as e:
            # Drop everything this statement emitted, including any half-built
            # control flow, so the remaining shapes stay well formed.
            del self.instructions[mark:]
            self._scope = scope
            self.diagnostics.append(str(e))
            logger.warning("dropped %s: %s", stmt.kind, e)

    def _enter(self, node: Statement) -> int:
        outer = self._scope
        if self.scope_tree is not None:
            self._scope = self.scope_tree.scope_at(node.offset, outer)
        return outer

    def _resolve(self, name: str) -> str:
        if self.scope_tree is None:
            return name
        sym = self.scope_tree.lookup(name, self._scope)
        return sym.python_name if sym is not None else name

    # -------------
    # Statements
    # -------------

    def _gen_stmt(self, stmt: Optional[Statement]) -> None:
        if stmt is None:
            return

        if isinstance(stmt, Block):
            outer = self._enter(stmt)
            for inner in stmt.statements:
                self._gen_stmt_checked(inner)
            self._scope = outer

        elif isinstance(stmt, VariableDecl):
            if stmt.init is None:
                self._emit(OpCode.ASSIGN, "undefined", None, self._resolve(stmt.name))
            else:
                value = self._gen_expr(stmt.init)
                self._emit(OpCode.ASSIGN, value, None, self._resolve(stmt.name))

        elif isinstance(stmt, FunctionDecl):
            self._emit(OpCode.FUNCTION, stmt.name, len(stmt.params))
            outer = self._enter(stmt)
            for i, param in enumerate(stmt.params):
                self._emit(OpCode.PARAM, i, None, param)
            for inner in stmt.body.statements:
                self._gen_stmt_checked(inner)
            self._scope = outer
            self._emit(OpCode.END_FUNCTION, stmt.name)

        elif isinstance(stmt, IfStmt):
            else_label = self._new_label()
            end_label = self._new_label()
            cond = self._gen_expr(stmt.test)
            self._emit(OpCode.COND_JUMP, cond, False, else_label)
            self._gen_stmt_checked(stmt.consequent)
            self._emit(OpCode.JUMP, result=end_label)
            self._emit(OpCode.LABEL, result=else_label)
            if stmt.alternate is not None:
                self._gen_stmt_checked(stmt.alternate)
            self._emit(OpCode.LABEL, result=end_label)

        elif isinstance(stmt, WhileStmt):
            start_label = self._new_label()
            end_label = self._new_label()
            self._emit(OpCode.LABEL, result=start_label)
            cond = self._gen_expr(stmt.test)
            self._emit(OpCode.COND_JUMP, cond, False, end_label)
            self._gen_stmt_checked(stmt.body)
            self._emit(OpCode.JUMP, result=start_label)
            self._emit(OpCode.LABEL, result=end_label)

        elif isinstance(stmt, ForStmt):
            start_label = self._new_label()
            cond_label = self._new_label()
            update_label = self._new_label()
            end_label = self._new_label()
            outer = self._enter(stmt)
            # A failing initializer fails the loop as a whole.
            self._gen_stmt(stmt.init)
            self._emit(OpCode.JUMP, result=cond_label)
            self._emit(OpCode.LABEL, result=start_label)
            self._gen_stmt_checked(stmt.body)
            self._emit(OpCode.LABEL, result=update_label)
            if stmt.update is not None:
                self._gen_effect(stmt.update)
            self._emit(OpCode.LABEL, result=cond_label)
            if stmt.test is not None:
                cond = self._gen_expr(stmt.test)
            else:
                cond = self._new_temp()
                self._emit(OpCode.ASSIGN, "true", None, cond)
            self._emit(OpCode.COND_JUMP, cond, True, start_label)
            self._emit(OpCode.LABEL, result=end_label)
            self._scope = outer

        elif isinstance(stmt, ReturnStmt):
            value = self._gen_expr(stmt.value) if stmt.value is not None else None
            self._emit(OpCode.RETURN, value)

        elif isinstance(stmt, ExpressionStmt):
            self._gen_effect(stmt.expression)

        else:
            raise UnsupportedConstruct(f"unsupported statement {stmt.kind}", stmt)

    # -------------
    # Expressions
    # -------------

    def _gen_expr(self, expr: Expression) -> Any:
        """Lower `expr` and return the handle (name or temporary) holding its value."""
        if isinstance(expr, Identifier):
            return self._resolve(expr.name)

        if isinstance(expr, Literal):
            t = self._new_temp()
            self._emit(OpCode.ASSIGN, expr.raw, None, t)
            return t

        if isinstance(expr, BinaryOp):
            left = self._gen_expr(expr.left)
            right = self._gen_expr(expr.right)
            t = self._new_temp()
            self._emit(OpCode.BINARY_OP, left, right, t, expr.operator)
            return t

        if isinstance(expr, UnaryOp):
            operand = self._gen_expr(expr.operand)
            t = self._new_temp()
            self._emit(OpCode.UNARY_OP, operand, None, t, expr.operator)
            return t

        if isinstance(expr, Assignment):
            return self._gen_assignment(expr)

        if isinstance(expr, Call):
            return self._gen_call(expr)

        if isinstance(expr, MemberAccess):
            obj = self._gen_expr(expr.object)
            key = self._member_key(expr)
            t = self._new_temp()
            self._emit(OpCode.INDEX_GET, obj, key, t)
            return t

        raise UnsupportedConstruct(f"unsupported expression {expr.kind}", expr)

    def _member_key(self, expr: MemberAccess) -> Any:
        if expr.computed:
            return self._gen_expr(expr.property)
        return f'"{expr.property.name}"'

    def _gen_effect(self, expr: Expression) -> None:
        """Lower an expression whose value is discarded."""
        if isinstance(expr, Assignment):
            self._gen_assignment(expr, want_value=False)
        else:
            self._gen_expr(expr)

    def _gen_assignment(self, expr: Assignment, want_value: bool = True) -> Any:
        # A postfix update yields the value from before the update.
        keep_old = expr.postfix and want_value
        target = expr.target
        if isinstance(target, Identifier):
            name = self._resolve(target.name)
            old = None
            if keep_old:
                old = self._new_temp()
                self._emit(OpCode.ASSIGN, name, None, old)
            value = self._gen_expr(expr.value)
            if expr.operator != "=":
                t = self._new_temp()
                self._emit(OpCode.BINARY_OP, name, value, t, expr.operator[:-1])
                value = t
            self._emit(OpCode.ASSIGN, value, None, name)
            return old if keep_old else name

        if isinstance(target, MemberAccess):
            obj = self._gen_expr(target.object)
            key = self._member_key(target)
            value = self._gen_expr(expr.value)
            current = None
            if expr.operator != "=":
                current = self._new_temp()
                self._emit(OpCode.INDEX_GET, obj, key, current)
                t = self._new_temp()
                self._emit(OpCode.BINARY_OP, current, value, t, expr.operator[:-1])
                value = t
            self._emit(OpCode.INDEX_SET, value, key, obj)
            return current if keep_old and current is not None else value

        raise UnsupportedConstruct("invalid assignment target", expr)

    def _gen_call(self, expr: Call) -> Temp:
        callee: Any = dotted_name(expr.callee)
        if callee is not None:
            head, dot, rest = callee.partition(".")
            callee = self._resolve(head) + dot + rest
        else:
            if isinstance(expr.callee, MemberAccess):
                raise UnsupportedConstruct("method call on a computed receiver", expr)
            callee = self._gen_expr(expr.callee)
        args = [self._gen_expr(arg) for arg in expr.arguments]
        for arg in args:
            self._emit(OpCode.PARAM, arg)
        t = self._new_temp()
        self._emit(OpCode.CALL, callee, len(args), t)
        return t


def generate(program: Program, scope_tree: Optional[ScopeTree] = None) -> List[IRInstruction]:
    """Lower `program` to IR with a fresh generator."""
    return IRGenerator(scope_tree).generate(program)
