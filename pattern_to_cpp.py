#!/usr/bin/env python3
"""
Pattern to C++ Converter

Compiles a minimal pattern grammar (alphanumeric literals, groups, and the
greedy quantifiers * and +) into a standalone C++ program. Every pattern node
becomes one small matching function; functions call each other by integer
identifier, and match_0 is the entry point.
"""

import argparse
import io
import string
import sys
import textwrap
from contextlib import contextmanager
from dataclasses import dataclass, field
from string import Template
from typing import Union, List, Tuple, Optional

# Ensure UTF-8 output on Windows
if sys.platform == 'win32':
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

# Characters accepted as literals
LITERAL_CHARS = frozenset(string.ascii_letters + string.digits)

# Deepest group nesting accepted by the parser
MAX_GROUP_DEPTH = 100

# Nesting rendered in emitted comments before eliding with "..."
COMMENT_DEPTH = 5

# =============================================================================
# AST Node Types
# =============================================================================

@dataclass
class Literal:
    """A literal character to match."""
    char: str

    def __repr__(self):
        return f"Literal({self.char!r})"

@dataclass
class ZeroOrMore:
    """Greedy repetition of an arena node, zero or more times (x*)."""
    ref: int  # Handle into the Arena

    def __repr__(self):
        return f"ZeroOrMore(#{self.ref})"

@dataclass
class OneOrMore:
    """Greedy repetition of an arena node, one or more times (x+)."""
    ref: int  # Handle into the Arena

    def __repr__(self):
        return f"OneOrMore(#{self.ref})"

@dataclass
class Sequence:
    """Sequence of patterns (abc), matched all-or-nothing."""
    children: list

    def __repr__(self):
        return f"Seq({self.children})"

# Type alias for all node types
Node = Union[Literal, ZeroOrMore, OneOrMore, Sequence]


class Arena:
    """
    Append-only node store.

    Only quantifier operands live here; a quantifier refers to its operand by
    handle (the operand's index). Handles are only valid for the arena that
    issued them.
    """

    def __init__(self):
        self._nodes: List[Node] = []

    def alloc(self, node: Node) -> int:
        """Append a node and return its handle."""
        handle = len(self._nodes)
        self._nodes.append(node)
        return handle

    def __getitem__(self, handle: int) -> Node:
        return self._nodes[handle]

    def __len__(self):
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes)

    def __eq__(self, other):
        if not isinstance(other, Arena):
            return NotImplemented
        return self._nodes == other._nodes

    def __repr__(self):
        return f"Arena({self._nodes})"


def node_to_pattern(node: Node, arena: Arena, depth: int = 0,
                    max_depth: Optional[int] = None) -> str:
    """Convert a node back to pattern text (for comments and diagnostics).

    With max_depth, groups nested deeper than that are rendered as "...".
    """
    if isinstance(node, Literal):
        return node.char
    if max_depth is not None and depth > max_depth:
        return "..."
    if isinstance(node, (ZeroOrMore, OneOrMore)):
        operand = arena[node.ref]
        text = node_to_pattern(operand, arena, depth + 1, max_depth)
        # Anything wider than one literal needs its group back
        if not isinstance(operand, Literal):
            text = f"({text})"
        return text + ("*" if isinstance(node, ZeroOrMore) else "+")
    if isinstance(node, Sequence):
        parts = []
        for child in node.children:
            text = node_to_pattern(child, arena, depth + 1, max_depth)
            parts.append(f"({text})" if isinstance(child, Sequence) else text)
        return "".join(parts)
    raise TypeError(f"Unsupported node type: {type(node)}")


# =============================================================================
# Errors
# =============================================================================

class PatternError(ValueError):
    """A pattern could not be parsed.

    Carries the pattern text and the parser position at the time of failure.
    """
    kind = "invalid pattern"

    def __init__(self, pattern: str, position: int, detail: str = ""):
        self.pattern = pattern
        self.position = position
        self.detail = detail
        message = f"{self.kind} at position {position} in {pattern!r}"
        if detail:
            message += f": {detail}"
        super().__init__(message)

class EmptyExpressionError(PatternError):
    """No unit could be parsed where one was required."""
    kind = "empty expression"

class UnbalancedParenthesesError(PatternError):
    """A '(' without a matching ')' or the other way around."""
    kind = "unbalanced parentheses"

class NestingTooDeepError(PatternError):
    """Groups nested deeper than MAX_GROUP_DEPTH."""
    kind = "pattern nested too deeply"


# =============================================================================
# Hand-written Recursive Descent Parser
# =============================================================================

@dataclass
class ParseResult:
    """Root of a parsed pattern plus the arena backing its quantifiers."""
    root: Node
    arena: Arena = field(default_factory=Arena)


class PatternParser:
    """
    Recursive descent parser for the pattern grammar.

    Grammar:
        pattern    -> unit+
        unit       -> atom quantifier?
        atom       -> [A-Za-z0-9] | '(' pattern ')'
        quantifier -> '*' | '+'
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.pos = 0
        self.length = len(pattern)
        self.depth = 0  # Number of open groups
        self.arena = Arena()

    def parse(self) -> ParseResult:
        root = self._parse_pattern()
        if self.pos < self.length:
            self._check_stray_paren()
            raise EmptyExpressionError(
                self.pattern, self.pos, f"unexpected character {self._peek()!r}")
        return ParseResult(root, self.arena)

    def _check_stray_paren(self):
        if self.depth == 0 and self._peek() == ')':
            raise UnbalancedParenthesesError(
                self.pattern, self.pos, "')' without matching '('")

    def _peek(self) -> Optional[str]:
        if self.pos < self.length:
            return self.pattern[self.pos]
        return None

    def _advance(self, count: int = 1):
        self.pos += count

    def _match(self, s: str) -> bool:
        if self.pattern[self.pos:self.pos + len(s)] == s:
            self.pos += len(s)
            return True
        return False

    def _parse_pattern(self) -> Node:
        """Parse pattern: unit+"""
        first = self._parse_single()
        if first is None:
            self._check_stray_paren()
            raise EmptyExpressionError(
                self.pattern, self.pos, "expected a literal or '('")

        units = [first]
        while True:
            unit = self._parse_single()
            if unit is None:
                break
            units.append(unit)

        if len(units) == 1:
            return units[0]
        return Sequence(units)

    def _parse_single(self) -> Optional[Node]:
        """Parse unit: atom quantifier?

        Returns None, without consuming anything, when no unit starts at the
        current position. Raises once a unit has been started but is malformed.
        """
        ch = self._peek()

        if ch == '(':
            atom = self._parse_group()
        elif ch is not None and ch in LITERAL_CHARS:
            self._advance()
            atom = Literal(ch)
        else:
            return None

        return self._parse_quantifier(atom)

    def _parse_group(self) -> Node:
        """Parse group: '(' pattern ')'"""
        open_pos = self.pos
        self._advance()  # '('

        self.depth += 1
        if self.depth > MAX_GROUP_DEPTH:
            raise NestingTooDeepError(
                self.pattern, self.pos, f"more than {MAX_GROUP_DEPTH} nested groups")
        child = self._parse_pattern()
        self.depth -= 1

        if not self._match(')'):
            raise UnbalancedParenthesesError(
                self.pattern, self.pos, f"'(' at position {open_pos} is never closed")
        return child

    def _parse_quantifier(self, atom: Node) -> Node:
        """Wrap atom in a quantifier if one follows; the atom moves into the arena."""
        if self._match('*'):
            return ZeroOrMore(self.arena.alloc(atom))
        if self._match('+'):
            return OneOrMore(self.arena.alloc(atom))
        return atom


def parse_pattern(pattern: str) -> ParseResult:
    """Parse a pattern into an AST and its arena."""
    parser = PatternParser(pattern)
    return parser.parse()


# =============================================================================
# Identifier Allocation
# =============================================================================

@dataclass
class Slot:
    """One function to generate: its identifier, its node, and its call targets."""
    node_id: int
    node: Node
    calls: List[int] = field(default_factory=list)


class IdAllocator:
    """
    Assigns function identifiers to nodes in pre-order.

    `next_id` is always the next free identifier. A node takes the current
    value, then its children are numbered starting right after it: the arena
    operand of a quantifier, or each sequence child in turn. The identifier a
    child receives is recorded as a call target of its parent, so call sites
    and function names come from the same walk.
    """

    def __init__(self, arena: Arena, first_id: int = 0):
        self.arena = arena
        self.next_id = first_id
        self.slots: List[Slot] = []

    def assign(self, node: Node) -> int:
        """Number node and its subtree; returns the node's own identifier."""
        slot = Slot(self.next_id, node)
        self.next_id += 1
        self.slots.append(slot)

        if isinstance(node, Literal):
            pass
        elif isinstance(node, (ZeroOrMore, OneOrMore)):
            slot.calls.append(self.assign(self.arena[node.ref]))
        elif isinstance(node, Sequence):
            for child in node.children:
                slot.calls.append(self.assign(child))
        else:
            raise TypeError(f"Unsupported node type: {type(node)}")

        return slot.node_id


def assign_ids(root: Node, arena: Arena, first_id: int = 0) -> Tuple[List[Slot], int]:
    """Number every node under root.

    Returns the slots in identifier order and the next free identifier.
    """
    allocator = IdAllocator(arena, first_id)
    allocator.assign(root)
    return allocator.slots, allocator.next_id


# =============================================================================
# C++ Code Emitter
# =============================================================================

class CppEmitter:
    """Generates C++ matching functions from a parsed pattern."""

    function_prefix = "match_"

    def __init__(self):
        self.indent_level = 0
        self.lines = []

    # =========================================================================
    # Emit Infrastructure
    # =========================================================================

    def _emit(self, line: str = ""):
        """Emit a single line with current indentation."""
        self.lines.append("    " * self.indent_level + line)

    def _emit_block(self, template: str, vars: dict = None):
        """Emit a multi-line template block with auto-dedent.

        Uses $var syntax for substitution (no brace escaping needed for C++).
        Pass locals() as vars for convenience.
        """
        code = textwrap.dedent(template).strip()
        if vars:
            code = Template(code).safe_substitute(vars)
        for line in code.split('\n'):
            self._emit(line)

    @contextmanager
    def _block(self, open_line: str = "{", close_line: str = "}"):
        """Context manager for indented blocks with braces."""
        self._emit(open_line)
        self.indent_level += 1
        try:
            yield
        finally:
            self.indent_level -= 1
            self._emit(close_line)

    def function_name(self, node_id: int) -> str:
        return f"{self.function_prefix}{node_id}"

    def _signature(self, node_id: int) -> str:
        return f"static bool {self.function_name(node_id)}(std::string_view &input)"

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(self, root: Node, arena: Arena) -> str:
        """Generate one C++ function per node, match_0 being the root."""
        slots, _ = assign_ids(root, arena)
        self.lines = []
        self._generate_functions(slots, arena)
        return "\n".join(self.lines)

    def assemble(self, root: Node, arena: Arena, pattern: str = None) -> str:
        """Generate a complete program: functions plus a main() harness.

        The program takes one argument and exits 0 if the whole argument
        matches, 1 if it does not, and 2 on a usage error.

        Args:
            root: The parsed AST root
            arena: Arena holding the quantifier operands
            pattern: Optional original pattern string for documentation
        """
        slots, _ = assign_ids(root, arena)
        self.lines = []

        # File header with original pattern
        self._emit("// Auto-generated by pattern_to_cpp.py")
        self._emit("// Do not edit manually")
        if pattern:
            self._emit("//")
            self._emit("// Original pattern:")
            self._emit("//")
            self._emit(f"//   {pattern}")
            self._emit("//")
        self._emit("")
        self._emit_block('''
            #include <cstdio>
            #include <string_view>
        ''')
        self._emit("")

        self._emit("// Forward declarations")
        for slot in slots:
            self._emit(self._signature(slot.node_id) + ";")
        self._emit("")

        self._generate_functions(slots, arena)

        entry = self.function_name(0)
        self._emit_block('''
            int main(int argc, char **argv) {
                if (argc != 2) {
                    std::fprintf(stderr, "Usage: %s <input>\\n", argv[0]);
                    return 2;
                }

                // The whole input must be consumed, not just a prefix
                std::string_view input(argv[1]);
                if ($entry(input) && input.empty()) {
                    std::printf("Input '%s' matches.\\n", argv[1]);
                    return 0;
                }

                std::printf("Input '%s' does NOT match.\\n", argv[1]);
                return 1;
            }
        ''', locals())

        return "\n".join(self.lines)

    def _generate_functions(self, slots: List[Slot], arena: Arena):
        for slot in slots:
            self._generate_function(slot, arena)
            self._emit("")

    def _generate_function(self, slot: Slot, arena: Arena):
        """Generate the function for a single node."""
        node = slot.node
        pattern = node_to_pattern(node, arena, max_depth=COMMENT_DEPTH)

        if isinstance(node, Literal):
            self._emit(f"// Literal: {pattern}")
            self._generate_literal(slot)
        elif isinstance(node, ZeroOrMore):
            self._emit(f"// Zero or more: {pattern}")
            self._generate_repeat(slot, min_count=0)
        elif isinstance(node, OneOrMore):
            self._emit(f"// One or more: {pattern}")
            self._generate_repeat(slot, min_count=1)
        elif isinstance(node, Sequence):
            self._emit(f"// Sequence: {pattern}")
            self._generate_sequence(slot)
        else:
            raise TypeError(f"Unsupported node type: {type(node)}")

    def _generate_literal(self, slot: Slot):
        signature = self._signature(slot.node_id)
        char = slot.node.char
        self._emit_block('''
            $signature {
                if (!input.empty() && input.front() == '$char') {
                    input.remove_prefix(1);
                    return true;
                }
                return false;
            }
        ''', locals())

    def _generate_repeat(self, slot: Slot, min_count: int):
        """Greedy loop over the operand; iterations are never given back."""
        child = self.function_name(slot.calls[0])

        with self._block(self._signature(slot.node_id) + " {"):
            if min_count > 0:
                self._emit("bool matched_once = false;")
            with self._block("for (;;) {"):
                self._emit("std::string_view saved = input;")
                with self._block(f"if (!{child}(input)) {{"):
                    self._emit("input = saved;")
                    self._emit("break;")
                if min_count > 0:
                    self._emit("matched_once = true;")
                self._emit("// An empty iteration would repeat forever")
                with self._block("if (input.size() == saved.size()) {"):
                    self._emit("break;")
            self._emit("return matched_once;" if min_count > 0 else "return true;")

    def _generate_sequence(self, slot: Slot):
        """All children must match; any failure rewinds to the entry position."""
        with self._block(self._signature(slot.node_id) + " {"):
            self._emit("std::string_view saved = input;")
            for child_id in slot.calls:
                with self._block(f"if (!{self.function_name(child_id)}(input)) {{"):
                    self._emit("input = saved;")
                    self._emit("return false;")
            self._emit("return true;")


def generate_program(pattern: str) -> str:
    """Parse a pattern and assemble the complete C++ program for it."""
    result = parse_pattern(pattern)
    return CppEmitter().assemble(result.root, result.arena, pattern=pattern)


# =============================================================================
# Main
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Convert a pattern into a standalone C++ matching program"
    )
    parser.add_argument(
        "--pattern", "-p",
        required=True,
        help="The pattern to convert (e.g., 'a+b', '(ab)*')"
    )
    parser.add_argument(
        "--output", "-o",
        help="Output file (default: stdout)"
    )
    parser.add_argument(
        "--tree",
        action="store_true",
        help="Print the parsed tree and arena to stderr"
    )

    args = parser.parse_args()

    # Parse the pattern
    try:
        result = parse_pattern(args.pattern)
    except ValueError as e:
        print(f"Error parsing pattern: {e}", file=sys.stderr)
        sys.exit(1)

    if args.tree:
        print(f"Parsed tree: {result.root!r}", file=sys.stderr)
        print(f"Arena: {result.arena!r}", file=sys.stderr)

    # Generate C++ code
    cpp_code = CppEmitter().assemble(result.root, result.arena, pattern=args.pattern)

    # Output
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(cpp_code)
        print(f"Generated C++ code written to {args.output}")
    else:
        print(cpp_code)


if __name__ == "__main__":
    main()
