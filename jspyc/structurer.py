"""jspyc.structurer

Recovers structured control flow from the flat IR.

The IR generator only ever produces a handful of label/jump shapes (see
`jspyc.ir`). This module pairs every label with the jumps that target it and
then matches those shapes back into nested regions:

- `IfRegion`       COND_JUMP(c, False, Lelse) ... JUMP Lend, LABEL Lelse ... LABEL Lend
- `LoopRegion`     the while shape and the for shape (`kind` tells them apart)
- `FunctionRegion` FUNCTION ... END_FUNCTION

Plain instructions are passed through unchanged. Anything involving a label
that does not fit one of the shapes is rejected with
`ControlFlowReconstructionError` naming the label.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union
import logging

from jspyc.ir import IRInstruction, OpCode

logger = logging.getLogger(__name__)


class CodeGenerationError(Exception):
    """Code generation error"""
    pass


class ControlFlowReconstructionError(CodeGenerationError):
    """Label/jump structure that matches none of the known shapes"""
    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"cannot reconstruct control flow at {label}: {reason}")


@dataclass
class IfRegion:
    cond: Any
    then: List["Node"] = field(default_factory=list)
    otherwise: List["Node"] = field(default_factory=list)


@dataclass
class LoopRegion:
    kind: str  # "while" or "for"
    header: List[IRInstruction]  # straight-line code computing `cond`
    cond: Any
    body: List["Node"] = field(default_factory=list)
    update: List[IRInstruction] = field(default_factory=list)


@dataclass
class FunctionRegion:
    name: str
    arity: int
    body: List["Node"] = field(default_factory=list)


Node = Union[IRInstruction, IfRegion, LoopRegion, FunctionRegion]

CONTROL_OPS = {OpCode.LABEL, OpCode.JUMP, OpCode.COND_JUMP, OpCode.FUNCTION, OpCode.END_FUNCTION}


class Structurer:
    """Matches canonical IR shapes into a region tree"""

    def __init__(self, instructions: List[IRInstruction]):
        self.code = list(instructions)
        self._defs: Dict[str, int] = {}
        self._refs: Dict[str, List[int]] = {}

    def structure(self) -> List[Node]:
        self._index_labels()
        regions = self._region(0, len(self.code))
        logger.debug("structured %d instruction(s) into %d top-level node(s)", len(self.code), len(regions))
        return regions

    def _index_labels(self) -> None:
        self._defs = {}
        self._refs = {}
        for i, ins in enumerate(self.code):
            if ins.op == OpCode.LABEL:
                if ins.result in self._defs:
                    raise ControlFlowReconstructionError(ins.result, "label defined more than once")
                self._defs[ins.result] = i
            elif ins.op in (OpCode.JUMP, OpCode.COND_JUMP):
                self._refs.setdefault(ins.result, []).append(i)
        for label in self._refs:
            if label not in self._defs:
                raise ControlFlowReconstructionError(label, "jump to an undefined label")

    def _refs_of(self, label: str) -> List[int]:
        return self._refs.get(label, [])

    # -----------------
    # Regions
    # -----------------

    def _region(self, start: int, end: int) -> List[Node]:
        nodes: List[Node] = []
        i = start
        while i < end:
            ins = self.code[i]
            if ins.op == OpCode.FUNCTION:
                node, i = self._match_function(i, end)
            elif ins.op == OpCode.END_FUNCTION:
                raise CodeGenerationError(f"END_FUNCTION {ins.arg1} without a matching FUNCTION")
            elif ins.op == OpCode.COND_JUMP:
                node, i = self._match_if(i, end)
            elif ins.op == OpCode.LABEL:
                node, i = self._match_while(i, end)
            elif ins.op == OpCode.JUMP:
                node, i = self._match_for(i, end)
            else:
                node, i = ins, i + 1
            nodes.append(node)
        return nodes

    def _match_function(self, i: int, end: int) -> Tuple[FunctionRegion, int]:
        name = self.code[i].arg1
        depth = 0
        close = None
        for j in range(i + 1, end):
            op = self.code[j].op
            if op == OpCode.FUNCTION:
                depth += 1
            elif op == OpCode.END_FUNCTION:
                if depth == 0:
                    if self.code[j].arg1 != name:
                        raise CodeGenerationError(
                            f"FUNCTION {name} closed by END_FUNCTION {self.code[j].arg1}")
                    close = j
                    break
                depth -= 1
        if close is None:
            raise CodeGenerationError(f"FUNCTION {name} has no END_FUNCTION")

        # Skip the parameter header: PARAM(index, _, name)
        j = i + 1
        while j < close and self.code[j].op == OpCode.PARAM and isinstance(self.code[j].arg1, int):
            j += 1
        return FunctionRegion(name, self.code[i].arg2, self._region(j, close)), close + 1

    def _match_if(self, i: int, end: int) -> Tuple[IfRegion, int]:
        jump = self.code[i]
        else_label = jump.result
        if jump.arg2 is not False:
            raise ControlFlowReconstructionError(else_label, "jump-if-true outside a for loop")
        if self._refs_of(else_label) != [i]:
            raise ControlFlowReconstructionError(else_label, "else label has more than one reference")
        e = self._defs[else_label]
        if not (i + 1 < e < end):
            raise ControlFlowReconstructionError(else_label, "label lies outside the enclosing region")
        skip = self.code[e - 1]
        if skip.op != OpCode.JUMP:
            raise ControlFlowReconstructionError(else_label, "then-branch does not end in a jump")
        end_label = skip.result
        if self._refs_of(end_label) != [e - 1]:
            raise ControlFlowReconstructionError(end_label, "end label has more than one reference")
        le = self._defs[end_label]
        if not (e < le < end):
            raise ControlFlowReconstructionError(end_label, "label lies outside the enclosing region")
        region = IfRegion(jump.arg1, self._region(i + 1, e - 1), self._region(e + 1, le))
        return region, le + 1

    def _match_while(self, i: int, end: int) -> Tuple[LoopRegion, int]:
        start_label = self.code[i].result
        refs = self._refs_of(start_label)
        if len(refs) != 1 or not (i < refs[0] < end) or self.code[refs[0]].op != OpCode.JUMP:
            raise ControlFlowReconstructionError(start_label, "label is not the head of a loop")
        back = refs[0]
        if back + 1 >= end or self.code[back + 1].op != OpCode.LABEL:
            raise ControlFlowReconstructionError(start_label, "loop back-edge is not followed by its exit label")
        end_label = self.code[back + 1].result
        end_refs = self._refs_of(end_label)
        if len(end_refs) != 1:
            raise ControlFlowReconstructionError(end_label, "loop exit label must have exactly one reference")
        c = end_refs[0]
        exit_jump = self.code[c]
        if not (i < c < back) or exit_jump.op != OpCode.COND_JUMP or exit_jump.arg2 is not False:
            raise ControlFlowReconstructionError(end_label, "loop exit is not a jump-if-false in the header")
        header = self.code[i + 1:c]
        if any(h.op in CONTROL_OPS for h in header):
            raise ControlFlowReconstructionError(start_label, "loop condition is not straight-line code")
        region = LoopRegion("while", header, exit_jump.arg1, self._region(c + 1, back))
        return region, back + 2

    def _match_for(self, i: int, end: int) -> Tuple[LoopRegion, int]:
        cond_label = self.code[i].result
        if i + 1 >= end or self.code[i + 1].op != OpCode.LABEL:
            raise ControlFlowReconstructionError(cond_label, "jump does not enter a loop body")
        start_label = self.code[i + 1].result
        if self._refs_of(cond_label) != [i]:
            raise ControlFlowReconstructionError(cond_label, "loop condition label has more than one reference")
        c = self._defs[cond_label]
        if not (i + 1 < c < end):
            raise ControlFlowReconstructionError(cond_label, "forward jump without a loop back-edge")

        # Condition: straight-line code ending in COND_JUMP(cond, True, start)
        k = c + 1
        while k < end and self.code[k].op not in CONTROL_OPS:
            k += 1
        back = self.code[k] if k < end else None
        if back is None or back.op != OpCode.COND_JUMP or back.arg2 is not True or back.result != start_label:
            raise ControlFlowReconstructionError(cond_label, "loop condition does not jump back to the body")
        if self._refs_of(start_label) != [k]:
            raise ControlFlowReconstructionError(start_label, "loop body label has more than one reference")
        if k + 1 >= end or self.code[k + 1].op != OpCode.LABEL or self._refs_of(self.code[k + 1].result):
            raise ControlFlowReconstructionError(start_label, "loop is missing its exit label")

        # Update: the last label before the condition, followed by straight-line code
        u = c - 1
        while u > i + 1 and self.code[u].op not in CONTROL_OPS:
            u -= 1
        if u <= i + 1 or self.code[u].op != OpCode.LABEL or self._refs_of(self.code[u].result):
            raise ControlFlowReconstructionError(cond_label, "loop is missing its update label")

        region = LoopRegion(
            "for",
            self.code[c + 1:k],
            back.arg1,
            self._region(i + 2, u),
            self.code[u + 1:c],
        )
        return region, k + 2


def structure(instructions: List[IRInstruction]) -> List[Node]:
    """Match `instructions` into a region tree."""
    return Structurer(instructions).structure()
