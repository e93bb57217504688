# ============================================================================
#  File: autofix_engine.py
#  Version: 1.0
#  Purpose: Applies the line fixers of detected issues to generated code
#  Created: 05OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from autofix.error_detector import DetectedIssue, DetectionRule, ErrorDetector, Fix
#
# ============================================================================
# SECTION 2: Data Structures
# ============================================================================
# Class 2.1: FixResult
# ============================================================================
#
@dataclass
class FixResult:
    content: str
    applied_fixes: List[Fix] = field(default_factory=list)
    unresolved: List[Fix] = field(default_factory=list)

    @property
    def fixes(self) -> List[Fix]:
        """Every issue of the unit: applied corrections first, then advisories."""
        return self.applied_fixes + self.unresolved

    @property
    def changed(self) -> bool:
        return bool(self.applied_fixes)
#
# ============================================================================
# SECTION 3: AutoFixEngine Class
# ============================================================================
# Class 3.1: AutoFixEngine
# ============================================================================
#
class AutoFixEngine:
    """
    Rewrites code for the fixable issues the detector reported.

    Fixers are line-scoped and idempotent: a fixed line no longer matches
    its rule, so running the engine again on its own output is a no-op.
    """

    def __init__(self, framework: Optional[str] = None, detector: Optional[ErrorDetector] = None):
        self.framework = framework
        self.detector = detector or ErrorDetector(framework)

    #
    # ========================================================================
    # Method 3.1.1: fix
    # ========================================================================
    #
    def fix(self, content: str, issues: List[DetectedIssue]) -> FixResult:
        """
        Apply fixes for ``issues`` to ``content``.

        Returns:
            FixResult with the new content, the fixes that were applied and
            the advisory issues that were left for the caller
        """
        rules: List[DetectionRule] = []
        for issue in issues:
            rule = self.detector.rule_for(issue.type) if issue.fixable else None
            if rule is not None and rule.fixable and rule not in rules:
                rules.append(rule)
        # Table order keeps rewrites deterministic (e.g. var -> let before ';')
        rules.sort(key=lambda rule: self.detector.rules.index(rule) if rule in self.detector.rules else len(self.detector.rules))

        lines = content.split("\n")
        changed_types = set()
        for index in range(len(lines)):
            for rule in rules:
                if self.detector.match_line(rule, lines, index):
                    fixed = rule.fix(lines[index])
                    if fixed != lines[index]:
                        changed_types.add(rule.type)
                        lines[index] = fixed

        result = FixResult(content="\n".join(lines))
        for issue in issues:
            if issue.type in changed_types:
                result.applied_fixes.append(issue.to_fix())
            else:
                result.unresolved.append(issue.to_fix())

        if result.applied_fixes:
            logger.debug(
                f"[AutoFixEngine] Applied {len(result.applied_fixes)} fix(es): "
                f"{sorted(changed_types)}"
            )
        return result


#
#
## END: autofix_engine.py
