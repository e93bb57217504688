# ============================================================================
#  File: post_processor.py
#  Version: 1.0
#  Purpose: Whole-document lint, optimize and format pass run once a
#           stream has ended
#  Created: 05OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
import re
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from autofix.autofix_engine import AutoFixEngine
from autofix.error_detector import LINT, DetectionContext, ErrorDetector, Fix, Severity
from autofix.segmenter import detect_language

_DEBUG_LINE = re.compile(r"^\s*(?:console\.(?:log|debug)\s*\(.*\)|debugger)\s*;?\s*$")
_BLANK_RUN = re.compile(r"\n{3,}")
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
# Class 2.1: PostProcessResult
# ============================================================================
#
@dataclass
class PostProcessResult:
    content: str
    fixes: List[Fix] = field(default_factory=list)
#
# ============================================================================
# SECTION 3: PostProcessor Class
# ============================================================================
# Class 3.1: PostProcessor
# ============================================================================
#
class PostProcessor:
    def __init__(self, detector: Optional[ErrorDetector] = None, fixer: Optional[AutoFixEngine] = None):
        self.detector = detector or ErrorDetector()
        self.fixer = fixer or AutoFixEngine(self.detector.framework, self.detector)

    #
    # ========================================================================
    # Method 3.1.1: process
    # ========================================================================
    #
    def process(
        self, content: str, format: bool = True, optimize: bool = False, lint: bool = True
    ) -> PostProcessResult:
        """
        Run the enabled passes in order: lint, optimize, format.

        Formatting strips trailing whitespace, keeps at most one blank line
        between blocks and drops blank lines at both ends. It never adds a
        trailing newline, so already clean content passes through unchanged.
        """
        result = PostProcessResult(content=content)
        if lint:
            self._lint(result)
        if optimize:
            self._optimize(result)
        if format:
            result.content = format_code(result.content)
        logger.debug(
            f"[PostProcessor] Processed {len(content)} chars -> {len(result.content)} chars, "
            f"{len(result.fixes)} fix(es)"
        )
        return result

    def _lint(self, result: PostProcessResult) -> None:
        issues = self.detector.detect(
            result.content,
            DetectionContext(context=result.content, language=detect_language(result.content)),
            categories=frozenset({LINT}),
        )
        if not issues:
            return
        fixed = self.fixer.fix(result.content, issues)
        result.content = fixed.content
        result.fixes.extend(fixed.applied_fixes)

    @staticmethod
    def _optimize(result: PostProcessResult) -> None:
        kept = []
        for number, line in enumerate(result.content.split("\n"), start=1):
            if _DEBUG_LINE.match(line):
                result.fixes.append(
                    Fix(
                        type="removed-debug-statement",
                        description="Removed debugging statement",
                        severity=Severity.INFO,
                        line=number,
                        suggestion=line.strip(),
                    )
                )
                continue
            kept.append(line)
        result.content = "\n".join(kept)
#
# ============================================================================
# SECTION 4: Formatting
# ============================================================================
# Function 4.1: format_code
# ============================================================================
#
def format_code(content: str) -> str:
    text = "\n".join(line.rstrip() for line in content.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip("\n")


#
#
## END: post_processor.py
