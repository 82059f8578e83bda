"""jspyc.codegen

Python code generator.

Consumes the region tree from `jspyc.structurer` and prints Python source.

Temporaries are not given names unless they have to be:
- a temporary that is never read becomes an expression statement
- a temporary read exactly once is folded into the expression that reads it
- a temporary read more than once is materialized as `_tN = ...`

Before any statement line is written, pending temporaries whose value could
depend on program state are materialized, so evaluation order is the
source's. Literal-only expressions stay pending.

A small translation table maps common script builtins onto Python
(`console.log` -> `print`, `Math.*`, `.push` -> `.append`, `.length` ->
`len()`).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple
import keyword
import logging
import re

from jspyc.ir import IRInstruction, OpCode, Temp
from jspyc.symbols import Scope, ScopeTree
from jspyc.structurer import (
    CodeGenerationError,
    ControlFlowReconstructionError,
    FunctionRegion,
    IfRegion,
    LoopRegion,
    Node,
    Structurer,
)

logger = logging.getLogger(__name__)

__all__ = ["CodeGenerator", "CodeGenerationError", "ControlFlowReconstructionError", "emit"]

HEADER = "# Generated by jspyc"

ATOM = 10

# Python binding strength; higher binds tighter.
PRECEDENCE: Dict[str, int] = {
    "or": 1,
    "and": 2,
    "not": 3,
    "==": 4, "!=": 4, "<": 4, ">": 4, "<=": 4, ">=": 4,
    "+": 6, "-": 6,
    "*": 7, "/": 7, "%": 7,
}
UNARY_PRECEDENCE = 8
COMPARISON = 4

OPERATOR_MAP: Dict[str, str] = {
    "===": "==",
    "!==": "!=",
    "&&": "and",
    "||": "or",
    "!": "not",
}

CONSTANTS: Dict[str, str] = {
    "true": "True",
    "false": "False",
    "null": "None",
    "undefined": "None",
}

BUILTIN_CALLS: Dict[str, str] = {
    "console.log": "print",
    "console.error": "print",
    "console.warn": "print",
    "Math.max": "max",
    "Math.min": "min",
    "Math.abs": "abs",
    "Math.floor": "math.floor",
    "Math.ceil": "math.ceil",
    "Math.sqrt": "math.sqrt",
    "Math.pow": "math.pow",
}

MATH_CONSTANTS: Dict[str, str] = {
    '"PI"': "math.pi",
    '"E"': "math.e",
}

_NUMBER_RE = re.compile(r"^-?\d+(\.\d*)?$")


class CodeGenerator:
    """Generates Python source from three-address IR"""

    def __init__(self, scope_tree: Optional[ScopeTree] = None, indent: int = 4):
        self.scope_tree = scope_tree if scope_tree is not None else ScopeTree()
        self.indent = indent
        self._uses: Dict[str, int] = {}
        self._pending: Dict[str, Tuple[str, int, bool]] = {}
        self._args: List[str] = []
        self._needs_math = False
        self._functions_seen: Dict[Tuple[int, str], int] = {}
        self._strings: Set[str] = set()

    def generate(self, instructions: List[IRInstruction]) -> str:
        """Generate Python source from IR"""
        regions = Structurer(instructions).structure()

        self._uses = self._count_uses(instructions)
        self._pending = {}
        self._args = []
        self._needs_math = False
        self._strings = set()
        self._functions_seen = {}

        body: List[str] = []
        self._emit_block(regions, body, 0, self.scope_tree.root.id)
        while body and not body[-1].strip():
            body.pop()

        lines = [HEADER]
        if self._needs_math:
            lines.append("import math")
        lines.append("")
        lines.extend(body)
        while lines and not lines[-1].strip():
            lines.pop()
        logger.debug("emitted %d line(s) of Python", len(lines))
        return "\n".join(lines) + "\n"

    @staticmethod
    def _count_uses(instructions: List[IRInstruction]) -> Dict[str, int]:
        uses: Dict[str, int] = {}
        for ins in instructions:
            operands = [ins.arg1, ins.arg2]
            if ins.op == OpCode.INDEX_SET:
                operands.append(ins.result)
            for operand in operands:
                if isinstance(operand, Temp):
                    uses[operand] = uses.get(operand, 0) + 1
        return uses

    # -----------------
    # Output helpers
    # -----------------

    def _line(self, out: List[str], depth: int, text: str) -> None:
        out.append(" " * (self.indent * depth) + text)

    def _statement(self, out: List[str], depth: int, text: str) -> None:
        """Write a statement line after materializing order-sensitive temporaries."""
        for name in list(self._pending):
            expr, _prec, pure = self._pending[name]
            if not pure:
                del self._pending[name]
                self._line(out, depth, f"_{name} = {expr}")
        self._line(out, depth, text)

    def _define(self, out: List[str], depth: int, temp: str, text: str, prec: int, pure: bool) -> None:
        uses = self._uses.get(temp, 0)
        if uses == 0:
            self._statement(out, depth, text)
        elif uses == 1:
            self._pending[temp] = (text, prec, pure)
        else:
            self._statement(out, depth, f"_{temp} = {text}")

    # -----------------
    # Operands
    # -----------------

    def _operand(self, handle: Any) -> Tuple[str, int, bool]:
        """Render `handle` as (text, precedence, pure)."""
        if isinstance(handle, Temp):
            if handle in self._pending:
                return self._pending.pop(handle)
            return f"_{handle}", ATOM, False
        text = str(handle)
        if text[:1] in ('"', "'"):
            return text, ATOM, True
        if _NUMBER_RE.match(text):
            number = self._number(text)
            return number, (UNARY_PRECEDENCE if number.startswith("-") else ATOM), True
        if text in CONSTANTS:
            return CONSTANTS[text], ATOM, True
        return self._name(text), ATOM, False

    def _is_string(self, handle: Any) -> bool:
        """True for a string literal or a temporary known to hold a string."""
        if isinstance(handle, Temp):
            return handle in self._strings
        return isinstance(handle, str) and handle[:1] in ('"', "'")

    @staticmethod
    def _number(text: str) -> str:
        if "." in text:
            return text
        return str(int(text))

    @staticmethod
    def _name(name: str) -> str:
        return ".".join(part + "_" if keyword.iskeyword(part) else part for part in name.split("."))

    @staticmethod
    def _wrap(text: str, prec: int, minimum: int) -> str:
        return f"({text})" if prec < minimum else text

    def _callee(self, handle: Any) -> str:
        if isinstance(handle, Temp):
            text, prec, _ = self._operand(handle)
            return self._wrap(text, prec, ATOM)
        name = str(handle)
        if name in BUILTIN_CALLS:
            target = BUILTIN_CALLS[name]
            if target.startswith("math."):
                self._needs_math = True
            return target
        if name.endswith(".push"):
            return self._name(name[:-len(".push")]) + ".append"
        return self._name(name)

    # -----------------
    # Regions
    # -----------------

    def _emit_block(self, nodes: List[Node], out: List[str], depth: int, scope_id: int) -> None:
        # Function declarations are hoisted to the top of their block.
        functions = [n for n in nodes if isinstance(n, FunctionRegion)]
        rest = [n for n in nodes if not isinstance(n, FunctionRegion)]
        for fn in functions:
            self._emit_function(fn, out, depth, scope_id)
            if depth == 0:
                out.append("")
        for node in rest:
            self._emit_node(node, out, depth, scope_id)

    def _emit_body(self, nodes: List[Node], out: List[str], depth: int, scope_id: int,
                   extra: Optional[List[IRInstruction]] = None) -> None:
        start = len(out)
        self._emit_block(nodes, out, depth, scope_id)
        for ins in extra or []:
            self._emit_instruction(ins, out, depth)
        if len(out) == start:
            self._line(out, depth, "pass")

    def _emit_node(self, node: Node, out: List[str], depth: int, scope_id: int) -> None:
        if isinstance(node, IfRegion):
            cond, _prec, _ = self._operand(node.cond)
            self._statement(out, depth, f"if {cond}:")
            self._emit_body(node.then, out, depth + 1, scope_id)
            if node.otherwise:
                branch: List[str] = []
                self._emit_block(node.otherwise, branch, depth + 1, scope_id)
                if branch:
                    self._line(out, depth, "else:")
                    out.extend(branch)
        elif isinstance(node, LoopRegion):
            self._emit_loop(node, out, depth, scope_id)
        else:
            self._emit_instruction(node, out, depth)

    def _emit_loop(self, loop: LoopRegion, out: List[str], depth: int, scope_id: int) -> None:
        header: List[str] = []
        for ins in loop.header:
            self._emit_instruction(ins, header, depth + 1)
        cond, prec, _ = self._operand(loop.cond)
        if not header:
            self._statement(out, depth, f"while {cond}:")
        else:
            # The condition needs statements of its own; test it inside the loop.
            self._statement(out, depth, "while True:")
            out.extend(header)
            self._line(out, depth + 1, f"if not {self._wrap(cond, prec, PRECEDENCE['not'])}:")
            self._line(out, depth + 2, "break")
        self._emit_body(loop.body, out, depth + 1, scope_id, extra=loop.update)

    def _emit_function(self, fn: FunctionRegion, out: List[str], depth: int, scope_id: int) -> None:
        scope = self._function_scope(fn.name, scope_id)
        params = [self._name(p) for p in self.scope_tree.parameters(scope.id)]
        saved_pending, saved_args = self._pending, self._args
        self._pending, self._args = {}, []

        self._line(out, depth, f"def {self._name(fn.name)}({', '.join(params)}):")
        declared_global, declared_nonlocal = self._outer_bindings(fn.body, scope.id)
        if declared_global:
            self._line(out, depth + 1, f"global {', '.join(declared_global)}")
        if declared_nonlocal:
            self._line(out, depth + 1, f"nonlocal {', '.join(declared_nonlocal)}")
        self._emit_body(fn.body, out, depth + 1, scope.id)

        self._pending, self._args = saved_pending, saved_args

    def _function_scope(self, name: str, enclosing_id: int) -> Scope:
        """The k-th `FUNCTION name` in a scope maps to the k-th function scope
        named `name` declared there."""
        candidates = [
            s for s in self.scope_tree.function_scopes(name)
            if s.parent is not None and self.scope_tree.owner(s.parent).id == enclosing_id
        ]
        key = (enclosing_id, name)
        k = self._functions_seen.get(key, 0)
        self._functions_seen[key] = k + 1
        if k >= len(candidates):
            raise CodeGenerationError(f"no scope recorded for function '{name}'")
        return candidates[k]

    def _outer_bindings(self, body: List[Node], scope_id: int) -> Tuple[List[str], List[str]]:
        """Names assigned in a function body that live outside it. Implicit
        variables are globals wherever the assignment happens."""
        globals_: List[str] = []
        nonlocals: List[str] = []
        for name in self._assigned_names(body):
            sym = self.scope_tree.binding_within(scope_id, name)
            if sym is None:
                sym = self.scope_tree.resolve(name, scope_id)
                if sym is None:
                    continue
            elif not sym.implicit:
                continue
            if sym.implicit or self.scope_tree.owner(sym.scope).kind == "global":
                globals_.append(self._name(name))
            else:
                nonlocals.append(self._name(name))
        return globals_, nonlocals

    def _assigned_names(self, nodes: List[Node]) -> List[str]:
        names: List[str] = []
        seen: Set[str] = set()

        def visit(items: List[Any]) -> None:
            for node in items:
                if isinstance(node, IfRegion):
                    visit(node.then)
                    visit(node.otherwise)
                elif isinstance(node, LoopRegion):
                    visit(node.header)
                    visit(node.body)
                    visit(node.update)
                elif isinstance(node, IRInstruction):
                    if node.op == OpCode.ASSIGN and not isinstance(node.result, Temp):
                        if node.result not in seen:
                            seen.add(node.result)
                            names.append(node.result)

        visit(nodes)
        return names

    # -----------------
    # Instructions
    # -----------------

    def _emit_instruction(self, ins: IRInstruction, out: List[str], depth: int) -> None:
        op = ins.op

        if op == OpCode.ASSIGN:
            if isinstance(ins.result, Temp) and self._is_string(ins.arg1):
                self._strings.add(ins.result)
            text, prec, pure = self._operand(ins.arg1)
            if isinstance(ins.result, Temp):
                self._define(out, depth, ins.result, text, prec, pure)
            else:
                self._statement(out, depth, f"{self._name(ins.result)} = {text}")

        elif op == OpCode.BINARY_OP:
            operator = OPERATOR_MAP.get(ins.operator, ins.operator)
            p = PRECEDENCE.get(operator, ATOM)
            left_str, right_str = self._is_string(ins.arg1), self._is_string(ins.arg2)
            left, lp, lpure = self._operand(ins.arg1)
            right, rp, rpure = self._operand(ins.arg2)
            if operator == "+" and left_str != right_str:
                # string + anything concatenates the other side's text
                if left_str:
                    right, rp = f"str({right})", ATOM
                else:
                    left, lp = f"str({left})", ATOM
            if operator == "+" and (left_str or right_str):
                self._strings.add(ins.result)
            if lp < p or (lp == p and p == COMPARISON):
                left = f"({left})"
            if rp <= p:
                right = f"({right})"
            self._define(out, depth, ins.result, f"{left} {operator} {right}", p, lpure and rpure)

        elif op == OpCode.UNARY_OP:
            operand, prec, pure = self._operand(ins.arg1)
            if ins.operator == "!":
                text = f"not {self._wrap(operand, prec, PRECEDENCE['not'])}"
                p = PRECEDENCE["not"]
            else:
                text = f"{ins.operator}{self._wrap(operand, prec, UNARY_PRECEDENCE)}"
                p = UNARY_PRECEDENCE
            self._define(out, depth, ins.result, text, p, pure)

        elif op == OpCode.PARAM:
            text, _prec, _pure = self._operand(ins.arg1)
            self._args.append(text)

        elif op == OpCode.CALL:
            argc = ins.arg2 or 0
            args = self._args[len(self._args) - argc:] if argc else []
            if argc:
                del self._args[-argc:]
            callee = self._callee(ins.arg1)
            self._define(out, depth, ins.result, f"{callee}({', '.join(args)})", ATOM, False)

        elif op == OpCode.INDEX_GET:
            obj, prec, _ = self._operand(ins.arg1)
            key, _kp, _ = self._operand(ins.arg2)
            if obj == "Math" and ins.arg2 in MATH_CONSTANTS:
                self._needs_math = True
                text = MATH_CONSTANTS[ins.arg2]
            elif ins.arg2 == '"length"':
                text = f"len({obj})"
            else:
                text = f"{self._wrap(obj, prec, ATOM)}[{key}]"
            self._define(out, depth, ins.result, text, ATOM, False)

        elif op == OpCode.INDEX_SET:
            obj, prec, _ = self._operand(ins.result)
            key, _kp, _ = self._operand(ins.arg2)
            value, _vp, _ = self._operand(ins.arg1)
            self._statement(out, depth, f"{self._wrap(obj, prec, ATOM)}[{key}] = {value}")

        elif op == OpCode.RETURN:
            if ins.arg1 is None:
                self._statement(out, depth, "return")
            else:
                value, _prec, _pure = self._operand(ins.arg1)
                self._statement(out, depth, f"return {value}")

        else:
            raise CodeGenerationError(f"unexpected {op.value} outside a control-flow region")


def emit(instructions: List[IRInstruction], scope_tree: Optional[ScopeTree] = None, indent: int = 4) -> str:
    """Render `instructions` as Python source."""
    return CodeGenerator(scope_tree, indent).generate(instructions)
