from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Iterator, Optional, Tuple

# -----------------------------------------------------------------------------
# AST nodes
# -----------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class Node:
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class NumberLit(Node):
    value: float


@dataclass(frozen=True)
class StringLit(Node):
    value: str


@dataclass(frozen=True)
class BoolLit(Node):
    value: bool


@dataclass(frozen=True)
class ColorLit(Node):
    argb: int  # 0xAARRGGBB


@dataclass(frozen=True)
class Ident(Node):
    name: str


@dataclass(frozen=True)
class MemberAccess(Node):
    obj: "Expr"
    member: str


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: "Expr"


@dataclass(frozen=True)
class Ternary(Node):
    condition: "Expr"
    if_true: "Expr"
    if_false: "Expr"


@dataclass(frozen=True)
class Call(Node):
    name: str
    args: Tuple["Expr", ...] = ()
    # Named arguments as (name, value) pairs in source order.
    kwargs: Tuple[Tuple[str, "Expr"], ...] = ()

    def kwarg(self, name: str) -> Optional["Expr"]:
        for key, value in self.kwargs:
            if key == name:
                return value
        return None

    def arg(self, index: int, name: str) -> Optional["Expr"]:
        """Return the positional argument at ``index``, else the named one."""

        if index < len(self.args):
            return self.args[index]
        return self.kwarg(name)


@dataclass(frozen=True)
class Assign(Node):
    name: str
    value: "Expr"


@dataclass(frozen=True)
class ExprStmt(Node):
    expr: "Expr"


@dataclass(frozen=True)
class If(Node):
    condition: "Expr"
    then: "Stmt"
    orelse: Optional["Stmt"] = None


Expr = (
    NumberLit
    | StringLit
    | BoolLit
    | ColorLit
    | Ident
    | MemberAccess
    | Binary
    | Unary
    | Ternary
    | Call
)

Stmt = Assign | ExprStmt | If


@dataclass(frozen=True)
class Program:
    version: int = 1
    declaration: Optional[Call] = None
    statements: Tuple[Stmt, ...] = ()


# -----------------------------------------------------------------------------
# Serialization helpers
# -----------------------------------------------------------------------------


def _children(value: Any) -> Iterator[Node]:
    if isinstance(value, Node):
        yield from walk(value)
    elif isinstance(value, tuple):
        for item in value:
            yield from _children(item)


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and every node beneath it, depth first."""

    yield node
    for f in fields(node):
        yield from _children(getattr(node, f.name))


def _value_to_dict(value: Any) -> Any:
    if isinstance(value, Node):
        return node_to_dict(value)
    if isinstance(value, tuple):
        return [_value_to_dict(v) for v in value]
    return value


def node_to_dict(node: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": type(node).__name__}
    for f in fields(node):
        data[f.name] = _value_to_dict(getattr(node, f.name))
    if isinstance(node, Call):
        data["kwargs"] = {k: node_to_dict(v) for k, v in node.kwargs}
    return data


def program_to_dict(program: Program) -> Dict[str, Any]:
    return {
        "version": program.version,
        "declaration": (
            node_to_dict(program.declaration) if program.declaration else None
        ),
        "statements": [node_to_dict(s) for s in program.statements],
    }


__all__ = [
    "Assign",
    "Binary",
    "BoolLit",
    "Call",
    "ColorLit",
    "Expr",
    "ExprStmt",
    "Ident",
    "If",
    "MemberAccess",
    "Node",
    "NumberLit",
    "Program",
    "Stmt",
    "StringLit",
    "Ternary",
    "Unary",
    "node_to_dict",
    "program_to_dict",
    "walk",
]
