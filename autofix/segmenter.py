# ============================================================================
#  File: segmenter.py
#  Version: 1.0
#  Purpose: Splits a growing token stream into brace/paren-balanced
#           statements, joining continuation lines, and guesses the
#           language of each statement
#  Created: 05OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
from dataclasses import dataclass
from typing import List

CONTINUATION_TOKENS = (".", "?", ":", "+", "&&", "||", "=>")
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
# Class 2.1: Statement
# ============================================================================
#
@dataclass(frozen=True)
class Statement:
    text: str
    line: int  # 1-based line number of the first line in the whole output
    partial: bool = False
#
# ============================================================================
# SECTION 3: StatementSegmenter Class
# ============================================================================
# Class 3.1: StatementSegmenter
# ============================================================================
#
class StatementSegmenter:
    """
    Groups streamed lines into statements.

    A line closes a statement when the braces and parentheses opened in
    everything seen so far are closed again. Lines that leave them open are
    held back and joined with the following lines. A balanced statement is
    still held until the next non-blank line arrives: when that line starts
    with a continuation token (``.filter(...)``, ``&& ready``, ``? a : b``)
    it joins the statement, otherwise the statement is released together
    with the blank lines in between.

    Bracket characters inside string literals, template strings and comments
    are counted like any other, so a stray ``{`` in a string keeps the
    statement open until the stream ends. This is an accepted limitation of
    the heuristic.
    """

    def __init__(self):
        self._buffer = ""
        self._pending: List[str] = []
        self._pending_start = 1
        self._held = False
        self._blanks: List[Statement] = []
        self._line_number = 0
        self._braces = 0
        self._parens = 0
        self.seen = ""

    #
    # ========================================================================
    # Method 3.1.1: feed
    # ========================================================================
    #
    def feed(self, text: str) -> List[Statement]:
        """Add raw stream text and return the statements it completed."""
        if not text:
            return []
        self.seen += text
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")

        statements = []
        for line in lines:
            statements.extend(self._push_line(line))
        return statements

    #
    # ========================================================================
    # Method 3.1.2: flush
    # ========================================================================
    #
    def flush(self) -> List[Statement]:
        """
        Release everything still held back and reset. A statement that
        contains the unterminated last line is marked ``partial``.
        """
        partial = self._buffer.strip() != ""
        statements = self._push_line(self._buffer) if partial else []
        self._buffer = ""

        if self._pending:
            statements.append(
                Statement(text="\n".join(self._pending), line=self._pending_start, partial=partial)
            )
        statements.extend(self._blanks)
        self._pending = []
        self._blanks = []
        self._held = False
        self._braces = self._parens = 0
        return statements

    @property
    def has_open_statement(self) -> bool:
        return bool(self._pending) and not self._held

    def _push_line(self, line: str) -> List[Statement]:
        self._line_number += 1
        released: List[Statement] = []

        if self._held:
            if not line.strip():
                self._blanks.append(Statement(text=line, line=self._line_number))
                return []
            if continues_statement(line):
                self._pending.extend(blank.text for blank in self._blanks)
                self._blanks = []
                self._held = False
            else:
                released = self._release()

        if not self._pending:
            if not line.strip():
                return released + [Statement(text=line, line=self._line_number)]
            self._pending_start = self._line_number
        self._pending.append(line)

        self._braces += line.count("{") - line.count("}")
        self._parens += line.count("(") - line.count(")")
        if self._braces > 0 or self._parens > 0:
            return released

        # Surplus closers must not hold later statements open
        self._braces = max(self._braces, 0)
        self._parens = max(self._parens, 0)
        self._held = True
        return released

    def _release(self) -> List[Statement]:
        statements = [Statement(text="\n".join(self._pending), line=self._pending_start)]
        statements.extend(self._blanks)
        self._pending = []
        self._blanks = []
        self._held = False
        return statements
#
# ============================================================================
# SECTION 4: Line Helpers and Language Detection
# ============================================================================
# Function 4.1: continues_statement
# ============================================================================
#
def continues_statement(line: str) -> bool:
    """True when ``line`` carries on the expression of the line before it."""
    return line.lstrip().startswith(CONTINUATION_TOKENS)
#
# ============================================================================
# Function 4.2: detect_language
# ============================================================================
#
def detect_language(content: str) -> str:
    """Guess the source language of a code fragment from content signatures."""
    if "import React" in content or "from 'react'" in content or 'from "react"' in content or "jsx" in content:
        return "typescript-react"
    if "@angular" in content:
        return "typescript-angular"
    if "<template>" in content or "Vue.component" in content:
        return "vue"
    if "export default function" in content or "const " in content or "interface " in content:
        return "typescript"
    return "javascript"


#
#
## END: segmenter.py
