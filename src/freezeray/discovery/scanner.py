"""
Structural scan of a single Swift source file.

The file is parsed with a small LALR grammar (``grammar.lark``) into a
bracket-nesting tree. Declarations are then found by walking each level of
the tree: a run of attributes, optional modifiers, a declaration keyword
and the type name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from lark import Lark, Token, Tree

from freezeray.models import MigrationPlanDeclaration, VersionDeclaration
from freezeray.versioning import is_version

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

# Attribute spellings, bare or qualified with the package module name
MODULE_PREFIX = "FreezeRay."
FREEZE_ATTRIBUTES = frozenset({"Freeze", "FreezeSchema"})
PLAN_ATTRIBUTES = frozenset({"AutoTests", "TestMigrations"})

DECLARATION_KEYWORDS = frozenset({"enum", "struct", "class", "actor"})
MODIFIERS = frozenset({
    "public", "private", "fileprivate", "internal", "open", "package",
    "final", "indirect", "nonisolated",
})
# Keywords that start another member; the `schemas` initializer ends before them
MEMBER_KEYWORDS = frozenset({
    "var", "let", "func", "static", "case", "init", "subscript", "typealias",
})

Node = Union[Tree, Token]

_parser: Optional[Lark] = None


def _get_parser() -> Lark:
    global _parser
    if _parser is None:
        _parser = Lark(
            _GRAMMAR_PATH.read_text(encoding="utf-8"),
            parser="lalr",
            start="start",
            maybe_placeholders=False,
        )
    return _parser


def parse_source(text: str) -> Tree:
    """Parse Swift source into its bracket-nesting tree.

    Raises:
        lark.exceptions.LarkError: If the source does not lex or its
            brackets do not balance.
    """
    return _get_parser().parse(text)


@dataclass
class FileDeclarations:
    """Declarations found in one source file."""

    versions: List[VersionDeclaration] = field(default_factory=list)
    plans: List[MigrationPlanDeclaration] = field(default_factory=list)


def _is_token(node: Node, type_: str, value: Optional[str] = None) -> bool:
    if not isinstance(node, Token) or node.type != type_:
        return False
    return value is None or node.value == value


def _is_tree(node: Node, data: str) -> bool:
    return isinstance(node, Tree) and node.data == data


def attribute_name(token: Token) -> str:
    """``@FreezeRay.Freeze`` -> ``Freeze``; other qualifications are kept."""
    name = token.value[1:]
    if name.startswith(MODULE_PREFIX):
        name = name[len(MODULE_PREFIX):]
    return name


def string_value(token: Token) -> Optional[str]:
    """Contents of a single-line string literal, or None if interpolated."""
    raw = token.value.strip("#")
    if len(raw) < 2 or raw[0] != '"' or raw[-1] != '"':
        return None
    body = raw[1:-1]
    if "\\(" in body:
        return None
    return body


def version_argument(args: Optional[Tree]) -> Optional[str]:
    """Version string from ``(version: "X.Y.Z")`` or ``("X.Y.Z")``."""
    if args is None:
        return None
    children = args.children
    for i, child in enumerate(children):
        if (
            _is_token(child, "NAME", "version")
            and i + 2 < len(children)
            and _is_token(children[i + 1], "PUNCT", ":")
            and _is_token(children[i + 2], "STRING")
        ):
            return string_value(children[i + 2])
    if children and _is_token(children[0], "STRING"):
        return string_value(children[0])
    return None


def _find_index(nodes: Sequence[Node]) -> Optional[Tree]:
    """First ``[...]`` among ``nodes``, looking into getter bodies."""
    for node in nodes:
        if _is_tree(node, "index"):
            return node
        if _is_tree(node, "block"):
            found = _find_index(node.children)
            if found is not None:
                return found
    return None


def schema_types(body: Tree) -> List[str]:
    """Type names listed by the plan's ``schemas`` member, in order."""
    children = body.children
    for i, child in enumerate(children):
        if not _is_token(child, "NAME", "schemas"):
            continue
        initializer: List[Node] = []
        for node in children[i + 1:]:
            if isinstance(node, Token) and node.type == "NAME" and node.value in MEMBER_KEYWORDS:
                break
            initializer.append(node)
        # Skip the `: [any VersionedSchema.Type]` annotation
        assign = next((j for j, n in enumerate(initializer) if _is_token(n, "PUNCT", "=")), None)
        if assign is not None:
            index = _find_index(initializer[assign + 1:])
        else:
            getter = next((n for n in initializer if _is_tree(n, "block")), None)
            index = _find_index(getter.children) if getter is not None else None
        if index is None:
            return []
        return _self_references(index.children)
    return []


def _self_references(nodes: Sequence[Node]) -> List[str]:
    """``[A.self, B.self]`` -> ``["A", "B"]``."""
    names: List[str] = []
    for i in range(len(nodes) - 2):
        if (
            _is_token(nodes[i], "NAME")
            and _is_token(nodes[i + 1], "PUNCT", ".")
            and _is_token(nodes[i + 2], "NAME", "self")
        ):
            names.append(nodes[i].value.strip("`"))
    return names


class DeclarationVisitor:
    """Collects attributed type declarations from a parsed file."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.result = FileDeclarations()

    def visit(self, tree: Tree) -> FileDeclarations:
        self._walk(tree.children)
        return self.result

    def _walk(self, children: List[Node]) -> None:
        i = 0
        while i < len(children):
            node = children[i]
            if _is_token(node, "ATTRIBUTE"):
                i = self._declaration(children, i)
                continue
            if isinstance(node, Tree):
                self._walk(node.children)
            i += 1

    def _declaration(self, children: List[Node], start: int) -> int:
        """Handle one attribute run; returns the index to continue from."""
        attributes: List[Tuple[Token, Optional[Tree]]] = []
        i = start
        while i < len(children):
            node = children[i]
            if _is_token(node, "ATTRIBUTE"):
                args = None
                if i + 1 < len(children) and _is_tree(children[i + 1], "group"):
                    args = children[i + 1]
                    i += 1
                attributes.append((node, args))
            elif _is_token(node, "NAME") and node.value in MODIFIERS:
                # private(set) and similar
                if i + 1 < len(children) and _is_tree(children[i + 1], "group"):
                    i += 1
            else:
                break
            i += 1

        if (
            i + 1 >= len(children)
            or not _is_token(children[i], "NAME")
            or children[i].value not in DECLARATION_KEYWORDS
            or not _is_token(children[i + 1], "NAME")
        ):
            return i
        type_name = children[i + 1].value.strip("`")
        body = next((n for n in children[i + 2:] if _is_tree(n, "block")), None)

        first = attributes[0][0]
        for token, args in attributes:
            name = attribute_name(token)
            if name in FREEZE_ATTRIBUTES:
                self._add_version(type_name, token, args, first)
            elif name in PLAN_ATTRIBUTES:
                self.result.plans.append(
                    MigrationPlanDeclaration(
                        type_name=type_name,
                        file_path=self.file_path,
                        offset=first.start_pos,
                        line=first.line,
                        schema_types=schema_types(body) if body is not None else [],
                    )
                )
        return i

    def _add_version(self, type_name: str, token: Token, args: Optional[Tree], first: Token) -> None:
        version = version_argument(args)
        if version is None:
            logger.warning(
                "%s:%s: %s on %s has no literal version string; ignored",
                self.file_path, token.line, token.value, type_name,
            )
            return
        if not is_version(version):
            logger.warning(
                "%s:%s: %s on %s has version %r, expected X.Y.Z; ignored",
                self.file_path, token.line, token.value, type_name, version,
            )
            return
        self.result.versions.append(
            VersionDeclaration(
                version=version,
                type_name=type_name,
                file_path=self.file_path,
                offset=first.start_pos,
                line=first.line,
            )
        )


def scan_source(text: str, file_path: str) -> FileDeclarations:
    """Find version and migration plan declarations in Swift source text.

    Raises:
        lark.exceptions.LarkError: If the text cannot be parsed.
    """
    tree = parse_source(text)
    return DeclarationVisitor(file_path).visit(tree)
