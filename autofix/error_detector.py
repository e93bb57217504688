# ============================================================================
#  File: error_detector.py
#  Version: 1.0
#  Purpose: Regex rule checks over generated JS/TS code, shared by the
#           streaming pipeline, the auto-fix engine and the post processor
#  Created: 05OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Match, Optional, Pattern

from loguru import logger

from autofix.segmenter import continues_statement

LINT = "lint"
VALIDATION = "validation"
ALL_CATEGORIES = frozenset({LINT, VALIDATION})

# Detected language -> framework whose rules also apply
LANGUAGE_FRAMEWORKS = {
    "typescript-react": "react",
    "typescript-angular": "angular",
    "vue": "vue",
}

TYPESCRIPT_LANGUAGES = frozenset({"typescript", "typescript-react", "typescript-angular"})
#
# ============================================================================
# SECTION 2: Data Classes and Enums
# ============================================================================
# Class 2.1: Severity
# ============================================================================
#
class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
#
# ============================================================================
# Class 2.2: Fix
# ============================================================================
#
@dataclass
class Fix:
    """A reported (and possibly applied) correction, as surfaced to callers."""

    type: str
    description: str
    severity: Severity
    line: Optional[int] = None
    column: Optional[int] = None
    suggestion: Optional[str] = None
#
# ============================================================================
# Class 2.3: DetectedIssue
# ============================================================================
#
@dataclass
class DetectedIssue:
    type: str
    message: str
    severity: Severity
    line: Optional[int] = None
    column: Optional[int] = None
    suggestion: Optional[str] = None
    fixable: bool = False

    def to_fix(self) -> Fix:
        return Fix(
            type=self.type,
            description=self.message,
            severity=self.severity,
            line=self.line,
            column=self.column,
            suggestion=self.suggestion,
        )
#
# ============================================================================
# Class 2.4: DetectionContext
# ============================================================================
#
@dataclass
class DetectionContext:
    context: str = ""
    line_number: int = 1  # document line of the first line of the unit
    language: str = "javascript"
    deep: bool = False
#
# ============================================================================
# Class 2.5: DetectionRule
# ============================================================================
#
@dataclass(frozen=True)
class DetectionRule:
    """
    One line-scoped check. ``fix`` rewrites a matching line; rules without
    one are advisory and only reported.
    ``statement_end`` rules look at where a statement stops and do not match
    a line whose next non-blank line continues the expression.
    """

    type: str
    pattern: Pattern[str]
    message: str
    severity: Severity
    category: str = LINT
    suggestion: Optional[str] = None
    fix: Optional[Callable[[str], str]] = None
    framework: Optional[str] = None
    languages: FrozenSet[str] = field(default_factory=frozenset)
    statement_end: bool = False

    @property
    def fixable(self) -> bool:
        return self.fix is not None

    def applies_to(self, language: str, framework: Optional[str]) -> bool:
        if self.languages and language not in self.languages:
            return False
        if self.framework is None:
            return True
        return self.framework == framework or LANGUAGE_FRAMEWORKS.get(language) == self.framework
#
# ============================================================================
# SECTION 3: Rule Table
# ============================================================================
# Line fixers
# ============================================================================
#
_LOOSE_EQ = re.compile(r"(?<![=!<>])==(?!=)")
_LOOSE_NE = re.compile(r"!=(?!=)")


def _strip_trailing(line: str) -> str:
    return line.rstrip()


def _single_semicolon(line: str) -> str:
    return re.sub(r";{2,}(\s*)$", r";\1", line)


def _var_to_let(line: str) -> str:
    return re.sub(r"\bvar\s+", "let ", line)


def _strict_equality(line: str) -> str:
    return _LOOSE_NE.sub("!==", _LOOSE_EQ.sub("===", line))


def _add_semicolon(line: str) -> str:
    return line.rstrip() + ";"


def _jsx_class_name(line: str) -> str:
    return re.sub(r"\bclass=", "className=", line)


def _jsx_html_for(line: str) -> str:
    return re.sub(r"\bfor=", "htmlFor=", line)

#
# ============================================================================
# Rules, in application order
# ============================================================================
#
RULES: List[DetectionRule] = [
    DetectionRule(
        type="trailing-whitespace",
        pattern=re.compile(r"\S[ \t]+$"),
        message="Trailing whitespace",
        severity=Severity.INFO,
        suggestion="Remove trailing spaces",
        fix=_strip_trailing,
    ),
    DetectionRule(
        type="double-semicolon",
        pattern=re.compile(r";{2,}\s*$"),
        message="Duplicate semicolon",
        severity=Severity.WARNING,
        suggestion="Use a single semicolon",
        fix=_single_semicolon,
    ),
    DetectionRule(
        type="var-declaration",
        pattern=re.compile(r"\bvar\s+"),
        message="'var' declaration",
        severity=Severity.WARNING,
        suggestion="Use let or const instead of var",
        fix=_var_to_let,
    ),
    DetectionRule(
        type="loose-equality",
        pattern=re.compile(r"(?<![=!<>])==(?!=)|!=(?!=)"),
        message="Loose equality comparison",
        severity=Severity.WARNING,
        suggestion="Use === and !== for comparisons",
        fix=_strict_equality,
    ),
    DetectionRule(
        type="missing-semicolon",
        pattern=re.compile(r"^\s*(?:const|let|var|return|throw|import|export\s+default)\b.*[\w\)\]'\"`]\s*$"),
        message="Missing semicolon at end of statement",
        severity=Severity.WARNING,
        suggestion="Terminate the statement with ';'",
        fix=_add_semicolon,
        statement_end=True,
    ),
    DetectionRule(
        type="console-statement",
        pattern=re.compile(r"\bconsole\.(?:log|debug|info)\s*\("),
        message="Console statement left in code",
        severity=Severity.INFO,
        suggestion="Remove debugging output or use a logger",
    ),
    DetectionRule(
        type="hardcoded-secret",
        pattern=re.compile(r"(?:password|api_?key|secret|token)\s*[:=]\s*[\"'][^\"']+[\"']", re.IGNORECASE),
        message="Potential hardcoded secret detected",
        severity=Severity.ERROR,
        category=VALIDATION,
        suggestion="Load secrets from environment or configuration",
    ),
    DetectionRule(
        type="eval-usage",
        pattern=re.compile(r"\beval\s*\("),
        message="Use of eval() function",
        severity=Severity.ERROR,
        category=VALIDATION,
        suggestion="Avoid eval; parse or dispatch explicitly",
    ),
    DetectionRule(
        type="inner-html",
        pattern=re.compile(r"\.innerHTML\s*\+?="),
        message="innerHTML assignment (XSS risk)",
        severity=Severity.WARNING,
        category=VALIDATION,
        suggestion="Use textContent or framework bindings",
    ),
    DetectionRule(
        type="document-write",
        pattern=re.compile(r"\bdocument\.write\s*\("),
        message="Use of document.write()",
        severity=Severity.WARNING,
        category=VALIDATION,
    ),
    DetectionRule(
        type="string-timer",
        pattern=re.compile(r"\bset(?:Timeout|Interval)\s*\(\s*[\"']"),
        message="String-based timer callback",
        severity=Severity.WARNING,
        category=VALIDATION,
        suggestion="Pass a function instead of a string",
    ),
    DetectionRule(
        type="jsx-class-attribute",
        pattern=re.compile(r"<[A-Za-z][^>]*\bclass="),
        message="'class' attribute in JSX",
        severity=Severity.ERROR,
        suggestion="Use className in JSX",
        fix=_jsx_class_name,
        framework="react",
    ),
    DetectionRule(
        type="jsx-for-attribute",
        pattern=re.compile(r"<label\b[^>]*\bfor="),
        message="'for' attribute in JSX",
        severity=Severity.ERROR,
        suggestion="Use htmlFor in JSX",
        fix=_jsx_html_for,
        framework="react",
    ),
    DetectionRule(
        type="vue-missing-key",
        pattern=re.compile(r"^(?!.*:key=).*\bv-for="),
        message="v-for without a :key binding",
        severity=Severity.WARNING,
        category=VALIDATION,
        suggestion="Add a unique :key to elements rendered with v-for",
        framework="vue",
    ),
]

# Deep mode only
DEEP_RULES: List[DetectionRule] = [
    DetectionRule(
        type="any-type",
        pattern=re.compile(r":\s*any\b"),
        message="Explicit 'any' type",
        severity=Severity.INFO,
        suggestion="Replace 'any' with a specific type or 'unknown'",
        languages=TYPESCRIPT_LANGUAGES,
    ),
]

_BRACKET_PAIRS = (("{", "}"), ("(", ")"), ("[", "]"))
#
# ============================================================================
# SECTION 4: ErrorDetector Class
# ============================================================================
# Class 4.1: ErrorDetector
# ============================================================================
#
class ErrorDetector:
    """
    Runs the rule table over a unit of code. Framework-specific rules are
    active when the detector was built for that framework or when the
    detected language implies it.
    """

    def __init__(self, framework: Optional[str] = None, rules: Optional[List[DetectionRule]] = None):
        self.framework = framework
        self.rules = list(rules) if rules is not None else list(RULES)
        self.deep_rules = list(DEEP_RULES)

    #
    # ========================================================================
    # Method 4.1.1: detect
    # ========================================================================
    #
    def detect(
        self,
        content: str,
        context: Optional[DetectionContext] = None,
        categories: FrozenSet[str] = ALL_CATEGORIES,
    ) -> List[DetectedIssue]:
        """
        Check ``content`` and return its issues ordered by line.

        Args:
            content: The statement or document to check
            context: Surrounding text, base line number, language and mode
            categories: Rule categories to run (``lint``, ``validation``)
        """
        context = context or DetectionContext()
        if not categories or not content.strip():
            return []

        active = [
            rule
            for rule in self.rules + (self.deep_rules if context.deep else [])
            if rule.category in categories and rule.applies_to(context.language, self.framework)
        ]

        issues: List[DetectedIssue] = []
        lines = content.split("\n")
        for offset in range(len(lines)):
            for rule in active:
                match = self.match_line(rule, lines, offset)
                if match is None:
                    continue
                issues.append(
                    DetectedIssue(
                        type=rule.type,
                        message=rule.message,
                        severity=rule.severity,
                        line=context.line_number + offset,
                        column=match.start() + 1,
                        suggestion=rule.suggestion,
                        fixable=rule.fixable,
                    )
                )

        if context.deep and VALIDATION in categories:
            issues.extend(self._check_brackets(content, context.line_number))

        if issues:
            logger.debug(
                f"[ErrorDetector] {len(issues)} issue(s) at line {context.line_number} ({context.language})"
            )
        return issues

    @staticmethod
    def match_line(rule: DetectionRule, lines: List[str], index: int) -> Optional[Match[str]]:
        """Match ``rule`` against ``lines[index]``, honouring ``statement_end``."""
        match = rule.pattern.search(lines[index])
        if match is None or not rule.statement_end:
            return match
        following = next((line for line in lines[index + 1:] if line.strip()), None)
        if following is not None and continues_statement(following):
            return None
        return match

    def rule_for(self, issue_type: str) -> Optional[DetectionRule]:
        return next(
            (rule for rule in self.rules + self.deep_rules if rule.type == issue_type),
            None,
        )

    @staticmethod
    def _check_brackets(content: str, line_number: int) -> List[DetectedIssue]:
        issues = []
        for opener, closer in _BRACKET_PAIRS:
            opened, closed = content.count(opener), content.count(closer)
            if opened != closed:
                issues.append(
                    DetectedIssue(
                        type="unbalanced-brackets",
                        message=f"Unbalanced '{opener}{closer}': {opened} opened, {closed} closed",
                        severity=Severity.ERROR,
                        line=line_number,
                    )
                )
        return issues


#
#
## END: error_detector.py
