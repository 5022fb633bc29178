"""Skeletonization: strip bodies and comments, keep signatures and symbols."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from rich.console import Console

from aics.engine.grammars import Grammar, is_valid_identifier
from aics.engine.models import CallSite, Capture, Definition, ParseResult, Replacement

console = Console(stderr=True)

NAME_KINDS = frozenset({"name", "signature", "tag_name", "maybe_definition"})
MAX_LITERAL_LENGTH = 50

_BLOCK_NODES = frozenset({"block", "statement_block"})
_CALL_NODES = frozenset({"call", "call_expression"})

_FUNCTION_SHAPES = frozenset(
    {
        "function_definition",
        "function_declaration",
        "generator_function_declaration",
        "function_signature",
        "method_definition",
        "method_signature",
        "function_item",
        "function_signature_item",
    }
)
_CLASS_SHAPES = frozenset(
    {
        "class_definition",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "type_alias_declaration",
        "enum_declaration",
        "struct_item",
        "enum_item",
        "trait_item",
        "type_item",
    }
)
_VARIABLE_SHAPES = frozenset(
    {"variable_declarator", "assignment", "const_item", "static_item", "mod_item"}
)
DECLARATION_SHAPES = _FUNCTION_SHAPES | _CLASS_SHAPES | _VARIABLE_SHAPES

_LINE_ENDINGS = re.compile(r"\r\n?")
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_TRAILING_WS = re.compile(r"[ \t]+$", re.MULTILINE)
_LINE_BREAK_RUNS = re.compile(r"[ \t]*\n\s*")
_SPACE_RUNS = re.compile(r"[ \t\f\v]+")
_PUNCT_SPACING = re.compile(r" ?([{};,():]) ?")
_STRING_PREFIX = re.compile(r"^[rRbBuUfF]{1,2}(?=['\"])")


def build_replacements(captures: Iterable[Capture]) -> list[Replacement]:
    """Turn ignore captures into replacements sorted by start offset."""
    replacements = [
        Replacement(
            start=cap.start_byte,
            end=cap.end_byte,
            text="{}" if cap.node is not None and cap.node.type in _BLOCK_NODES else "",
        )
        for cap in captures
        if cap.kind == "ignore"
    ]
    replacements.sort(key=lambda r: (r.start, -r.end))
    return replacements


def apply_replacements(content: bytes, replacements: list[Replacement]) -> bytes:
    """Rebuild content with a single forward cursor.

    Replacements must be sorted by start. One that starts before the cursor
    overlaps an earlier replacement and is dropped.
    """
    out = bytearray()
    cursor = 0
    for rep in replacements:
        if rep.start < cursor:
            continue
        out += content[cursor : rep.start]
        out += rep.text.encode("utf-8")
        cursor = rep.end
    out += content[cursor:]
    return bytes(out)


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return _LINE_ENDINGS.sub("\n", text)


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of two or more blank lines to a single blank line."""
    return _BLANK_RUNS.sub("\n\n", text)


def compact_code(text: str) -> str:
    """Whitespace pass for brace/statement languages.

    Horizontal whitespace runs become one space and spacing around
    ``{ } ; , ( ) :`` is removed. A run containing a line break becomes a
    single newline so declarations stay on lines of their own.
    """
    text = _LINE_BREAK_RUNS.sub("\n", text)
    text = _SPACE_RUNS.sub(" ", text)
    text = _PUNCT_SPACING.sub(r"\1", text)
    return text.strip()


def tidy_structured(text: str) -> str:
    """Whitespace pass for indentation- or markup-sensitive languages."""
    text = _TRAILING_WS.sub("", text)
    return collapse_blank_lines(text).strip("\n")


def strip_literal(text: str) -> str:
    """Remove a string prefix and surrounding quote characters from a literal."""
    return _STRING_PREFIX.sub("", text).strip("\"'`")


class Skeletonizer:
    """Produces a skeleton plus symbols for one file.

    The output depends only on the content and the grammar, so running it
    twice on the same input gives byte-identical results.

    Usage::

        result = Skeletonizer().skeletonize(text, "src/app.py", grammar)
    """

    def skeletonize(self, content: str, path: str, grammar: Grammar | None) -> ParseResult:
        """Skeletonize content, passing it through unchanged when it cannot be parsed.

        Args:
            content: Raw file text.
            path: File path relative to the project root.
            grammar: Loaded grammar, or None for unsupported languages.

        Returns:
            The skeleton text with keywords, definitions, and call sites.
        """
        if grammar is None:
            return ParseResult(skeleton=content)

        source = content.encode("utf-8")
        try:
            tree = grammar.parse(source)
        except (ValueError, RuntimeError) as exc:
            console.print(f"[yellow]Warning[/yellow]: Cannot parse {path}: {exc}")
            return ParseResult(skeleton=content)
        root = tree.root_node
        if root.type == "ERROR":
            return ParseResult(skeleton=content)

        captures = self._collect_captures(grammar, root)
        keywords, definitions = collect_definitions(captures, source, path)
        calls = collect_call_sites(captures, source, path)

        stripped = apply_replacements(source, build_replacements(captures))
        text = normalize_newlines(stripped.decode("utf-8", errors="replace"))
        text = collapse_blank_lines(text)
        if grammar.spec.layout == "code":
            text = compact_code(text)
        else:
            text = tidy_structured(text)

        return ParseResult(skeleton=text, keywords=keywords, definitions=definitions, calls=calls)

    @staticmethod
    def _collect_captures(grammar: Grammar, root: Any) -> list[Capture]:
        captures = [
            Capture(node.start_byte, node.end_byte, kind, node)
            for kind, nodes in grammar.captures(root).items()
            for node in nodes
        ]
        captures.sort(key=lambda c: (c.start_byte, -c.end_byte, c.kind))
        return captures


def collect_definitions(
    captures: Iterable[Capture], source: bytes, path: str
) -> tuple[list[str], list[Definition]]:
    """Extract keywords and definitions from name-family captures.

    Returns:
        (keywords in first-seen order, definitions in source order).
    """
    keywords: dict[str, None] = {}
    definitions: list[Definition] = []
    seen: set[tuple[int, int]] = set()

    for cap in captures:
        if cap.kind not in NAME_KINDS:
            continue
        text = _node_text(source, cap.start_byte, cap.end_byte)
        if not is_valid_identifier(text):
            continue
        parent_type = cap.node.parent.type if cap.node.parent is not None else ""
        if cap.kind == "maybe_definition" and parent_type not in DECLARATION_SHAPES:
            continue

        keywords.setdefault(text, None)
        if cap.kind == "tag_name" or (cap.start_byte, cap.end_byte) in seen:
            continue
        seen.add((cap.start_byte, cap.end_byte))
        definitions.append(
            Definition(
                name=text,
                kind=_definition_kind(parent_type),
                file=path,
                signature_line=_line_at(source, cap.start_byte),
            )
        )
    return list(keywords), definitions


def collect_call_sites(captures: Iterable[Capture], source: bytes, path: str) -> list[CallSite]:
    """Group call_name and call_arg_literal captures by their call node."""
    sites: dict[tuple[int, int], CallSite] = {}
    for cap in captures:
        if cap.kind not in ("call_name", "call_arg_literal"):
            continue
        call = _enclosing_call(cap.node)
        if call is None:
            continue
        key = (call.start_byte, call.end_byte)
        site = sites.get(key)
        if site is None:
            site = CallSite(name="", args=[], file=path, line=call.start_point[0] + 1)
            sites[key] = site

        text = _node_text(source, cap.start_byte, cap.end_byte)
        if cap.kind == "call_name":
            if is_valid_identifier(text):
                site.name = text
        else:
            literal = strip_literal(text)
            if len(literal) < MAX_LITERAL_LENGTH:
                site.args.append(literal)

    ordered = sorted(sites.items(), key=lambda item: item[0])
    return [site for _, site in ordered if site.name]


def _enclosing_call(node: Any) -> Any | None:
    current = getattr(node, "parent", None)
    while current is not None:
        if current.type in _CALL_NODES:
            return current
        current = current.parent
    return None


def _definition_kind(parent_type: str) -> str:
    if parent_type in _FUNCTION_SHAPES:
        return "function"
    if parent_type in _CLASS_SHAPES:
        return "class"
    return "variable"


def _node_text(source: bytes, start: int, end: int) -> str:
    return source[start:end].decode("utf-8", errors="replace")


def _line_at(source: bytes, offset: int) -> str:
    start = source.rfind(b"\n", 0, offset) + 1
    end = source.find(b"\n", offset)
    if end == -1:
        end = len(source)
    return source[start:end].decode("utf-8", errors="replace").strip()
