"""jspyc.symbols

Scope-resolving symbol table.

Scopes live in a flat arena (`ScopeTree.scopes`) and refer to their parent
by index, so the tree can be serialized and walked without back-references.

- global / function / block scopes
- `var`/`let`/`const` declarations, functions and parameters
- assignment to an unbound name registers an implicit variable where it
  happens
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
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
)

logger = logging.getLogger(__name__)


class SymbolKind(str, Enum):
    VARIABLE = "variable"
    FUNCTION = "function"
    PARAMETER = "parameter"


@dataclass
class Symbol:
    name: str
    kind: SymbolKind
    scope: int
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def python_name(self) -> str:
        """Name used in generated code; differs for renamed block bindings."""
        return self.attributes.get("python_name", self.name)

    @property
    def implicit(self) -> bool:
        return self.attributes.get("declaration") == "implicit"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "scope": self.scope,
            "attributes": dict(self.attributes),
        }


@dataclass
class Scope:
    id: int
    name: Optional[str]
    kind: str  # "global", "function" or "block"
    parent: Optional[int]
    symbols: Dict[str, Symbol] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "parent": self.parent,
            "symbols": {name: sym.to_dict() for name, sym in self.symbols.items()},
        }


class ScopeTree:
    """Arena of scopes; scope 0 is the global scope."""

    def __init__(self):
        self.scopes: List[Scope] = [Scope(id=0, name="global", kind="global", parent=None)]
        # source offset of the function/block/for node -> the scope it opened
        self.node_scopes: Dict[int, int] = {}

    @property
    def root(self) -> Scope:
        return self.scopes[0]

    def new_scope(self, parent: int, kind: str, name: Optional[str] = None,
                  offset: Optional[int] = None) -> Scope:
        scope = Scope(id=len(self.scopes), name=name, kind=kind, parent=parent)
        self.scopes.append(scope)
        if offset is not None:
            self.node_scopes[offset] = scope.id
        return scope

    def scope_at(self, offset: int, default: int = 0) -> int:
        """Scope opened by the node starting at `offset`."""
        return self.node_scopes.get(offset, default)

    def ancestors(self, scope_id: int) -> Iterator[Scope]:
        current = self.scopes[scope_id].parent
        while current is not None:
            yield self.scopes[current]
            current = self.scopes[current].parent

    def lookup(self, name: str, scope_id: int = 0) -> Optional[Symbol]:
        """Resolve `name` from `scope_id` outward; None if it is unbound."""
        current: Optional[int] = scope_id
        while current is not None:
            scope = self.scopes[current]
            if name in scope.symbols:
                return scope.symbols[name]
            current = scope.parent
        return None

    def resolve(self, python_name: str, scope_id: int = 0) -> Optional[Symbol]:
        """Like `lookup`, but by the name used in generated code."""
        current: Optional[int] = scope_id
        while current is not None:
            scope = self.scopes[current]
            for sym in scope.symbols.values():
                if sym.python_name == python_name:
                    return sym
            current = scope.parent
        return None

    def function_scopes(self, name: str) -> List[Scope]:
        """Function scopes named `name`, in creation (source) order."""
        return [s for s in self.scopes if s.kind == "function" and s.name == name]

    def parameters(self, scope_id: int) -> List[str]:
        params = [s for s in self.scopes[scope_id].symbols.values() if s.kind == SymbolKind.PARAMETER]
        params.sort(key=lambda s: s.attributes.get("index", 0))
        return [s.name for s in params]

    def owner(self, scope_id: int) -> Scope:
        """Nearest enclosing function (or the global) scope."""
        scope = self.scopes[scope_id]
        while scope.kind == "block" and scope.parent is not None:
            scope = self.scopes[scope.parent]
        return scope

    def binding_within(self, function_scope_id: int, python_name: str) -> Optional[Symbol]:
        """Symbol emitted as `python_name` in the function scope or one of its
        block scopes. Declared bindings win over implicit ones."""
        found: Optional[Symbol] = None
        for scope in self.scopes:
            if self.owner(scope.id).id != function_scope_id:
                continue
            for sym in scope.symbols.values():
                if sym.python_name != python_name:
                    continue
                if not sym.implicit:
                    return sym
                found = found or sym
        return found

    def declared_within(self, function_scope_id: int, python_name: str) -> bool:
        """True if `python_name` is bound in the function scope or one of its block scopes."""
        return self.binding_within(function_scope_id, python_name) is not None

    def to_list(self) -> List[dict]:
        return [scope.to_dict() for scope in self.scopes]


class SymbolTableBuilder:
    """Walks a Program and records every binding in a ScopeTree"""

    def __init__(self):
        self.tree = ScopeTree()
        self._current = 0

    def build(self, program: Program) -> ScopeTree:
        self.tree = ScopeTree()
        self._current = 0
        for stmt in program.body:
            self._visit_stmt(stmt)
        self._rename_shadowing()
        logger.debug("symbol table: %d scope(s)", len(self.tree.scopes))
        return self.tree

    # -----------------
    # Helpers
    # -----------------

    def _define(self, name: str, kind: SymbolKind, attributes: Dict[str, Any]) -> Symbol:
        scope = self.tree.scopes[self._current]
        existing = scope.symbols.get(name)
        if existing is not None:
            # Redeclaration in the same scope updates the attributes only;
            # a parameter stays a parameter.
            existing.attributes.update(attributes)
            if existing.kind != SymbolKind.PARAMETER:
                existing.kind = kind
            return existing
        sym = Symbol(name=name, kind=kind, scope=scope.id, attributes=dict(attributes))
        scope.symbols[name] = sym
        return sym

    def _enter(self, kind: str, name: Optional[str] = None, offset: Optional[int] = None) -> int:
        outer = self._current
        self._current = self.tree.new_scope(outer, kind, name, offset).id
        return outer

    def _rename_shadowing(self) -> None:
        """Give a `let`/`const` in a block that shadows a binding of the same
        function (or of the global code) its own name, `x_1`, `x_2`, ..."""
        tree = self.tree
        for scope in tree.scopes:
            if scope.kind != "block":
                continue
            owner = tree.owner(scope.id)
            for sym in scope.symbols.values():
                if sym.attributes.get("declaration") not in ("let", "const"):
                    continue
                shadowed = any(
                    sym.name in outer.symbols and tree.owner(outer.id).id == owner.id
                    for outer in tree.ancestors(scope.id)
                )
                if not shadowed:
                    continue
                n = 1
                while tree.declared_within(owner.id, f"{sym.name}_{n}"):
                    n += 1
                sym.attributes["python_name"] = f"{sym.name}_{n}"
                logger.debug("block binding '%s' in scope %d emitted as '%s'",
                             sym.name, scope.id, sym.attributes["python_name"])

    # -----------------
    # Statements
    # -----------------

    def _visit_stmt(self, stmt: Optional[Statement]) -> None:
        if stmt is None:
            return

        if isinstance(stmt, VariableDecl):
            if stmt.init is not None:
                self._visit_expr(stmt.init)
            self._define(stmt.name, SymbolKind.VARIABLE, {
                "declaration": stmt.declaration,
                "initialized": stmt.init is not None,
            })

        elif isinstance(stmt, FunctionDecl):
            self._define(stmt.name, SymbolKind.FUNCTION, {
                "params": list(stmt.params),
                "arity": len(stmt.params),
            })
            outer = self._enter("function", stmt.name, stmt.offset)
            for i, param in enumerate(stmt.params):
                self._define(param, SymbolKind.PARAMETER, {"index": i})
            # The body shares the function scope.
            for inner in stmt.body.statements:
                self._visit_stmt(inner)
            self._current = outer

        elif isinstance(stmt, Block):
            outer = self._enter("block", offset=stmt.offset)
            for inner in stmt.statements:
                self._visit_stmt(inner)
            self._current = outer

        elif isinstance(stmt, IfStmt):
            self._visit_expr(stmt.test)
            self._visit_stmt(stmt.consequent)
            self._visit_stmt(stmt.alternate)

        elif isinstance(stmt, WhileStmt):
            self._visit_expr(stmt.test)
            self._visit_stmt(stmt.body)

        elif isinstance(stmt, ForStmt):
            outer = self._enter("block", offset=stmt.offset)
            self._visit_stmt(stmt.init)
            if stmt.test is not None:
                self._visit_expr(stmt.test)
            if stmt.update is not None:
                self._visit_expr(stmt.update)
            self._visit_stmt(stmt.body)
            self._current = outer

        elif isinstance(stmt, ReturnStmt):
            if stmt.value is not None:
                self._visit_expr(stmt.value)

        elif isinstance(stmt, ExpressionStmt):
            self._visit_expr(stmt.expression)

    # -----------------
    # Expressions
    # -----------------

    def _visit_expr(self, expr: Optional[Expression]) -> None:
        if expr is None or isinstance(expr, (Identifier, Literal)):
            return
        if isinstance(expr, Assignment):
            self._visit_expr(expr.value)
            if isinstance(expr.target, Identifier):
                name = expr.target.name
                if self.tree.lookup(name, self._current) is None:
                    logger.debug("implicit variable '%s' in scope %d", name, self._current)
                    self._define(name, SymbolKind.VARIABLE, {"declaration": "implicit", "initialized": True})
            else:
                self._visit_expr(expr.target)
        elif isinstance(expr, BinaryOp):
            self._visit_expr(expr.left)
            self._visit_expr(expr.right)
        elif isinstance(expr, UnaryOp):
            self._visit_expr(expr.operand)
        elif isinstance(expr, Call):
            self._visit_expr(expr.callee)
            for arg in expr.arguments:
                self._visit_expr(arg)
        elif isinstance(expr, MemberAccess):
            self._visit_expr(expr.object)
            if expr.computed:
                self._visit_expr(expr.property)


def build(program: Program) -> ScopeTree:
    """Build the scope tree for `program`."""
    return SymbolTableBuilder().build(program)
