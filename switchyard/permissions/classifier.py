"""
Static risk classification for built-in tools.

`Bash` is classified per command; every other tool comes from a fixed
table. Names not in the table (plugin-server tools included) are moderate.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional


class RiskLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DANGEROUS = "dangerous"


_RISK_ORDER = {RiskLevel.SAFE: 0, RiskLevel.MODERATE: 1, RiskLevel.DANGEROUS: 2}

STATIC_TOOL_LEVELS: dict[str, RiskLevel] = {
    "Read": RiskLevel.SAFE,
    "LS": RiskLevel.SAFE,
    "Glob": RiskLevel.SAFE,
    "Grep": RiskLevel.SAFE,
    "GitStatus": RiskLevel.SAFE,
    "GitDiff": RiskLevel.SAFE,
    "GitLog": RiskLevel.SAFE,
    "WebFetch": RiskLevel.SAFE,
    "WebSearch": RiskLevel.SAFE,
    "TodoWrite": RiskLevel.SAFE,
    "Write": RiskLevel.MODERATE,
    "Edit": RiskLevel.MODERATE,
    "GitCommit": RiskLevel.DANGEROUS,
    "GitPush": RiskLevel.DANGEROUS,
    "GitCheckout": RiskLevel.DANGEROUS,
}

SAFE_BASH_PREFIXES: tuple[str, ...] = (
    # viewing
    "cat ", "head ", "tail ", "less ", "wc ",
    # browsing
    "ls ", "ls\t", "pwd", "find ", "tree ",
    # searching
    "grep ", "rg ", "ag ", "ack ",
    # read-only git
    "git status", "git log", "git diff", "git branch", "git show", "git blame", "git stash list",
    # read-only package managers
    "npm list", "npm ls", "npm outdated", "npm view",
    "yarn list", "yarn info", "yarn why",
    "pnpm list", "pnpm ls", "pnpm why", "bun pm ls",
    # build / test
    "npm test", "npm run test", "npm run lint", "npm run check",
    "yarn test", "yarn lint", "pnpm test", "bun test",
    "npx tsc --noEmit", "npx eslint",
    # system info
    "which ", "where ", "whoami", "uname", "env",
    "node --version", "npm --version", "python --version",
    # text processing
    "echo ", "printf ", "sort ", "uniq ", "cut ", "tr ", "awk ", "jq ",
)

SAFE_BASH_EXACT = frozenset({
    "ls", "pwd", "whoami", "date", "uname", "git status", "git branch", "git log",
})

DANGEROUS_BASH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(re.compile(p) for p in (
    r"\brm\s",
    r"\brmdir\s",
    r"\bchmod\s",
    r"\bchown\s",
    r"\bsudo\s",
    r"\bsu\s",
    r"\bcurl\s.*(-X|--request)\s*(POST|PUT|DELETE|PATCH)",
    r"\bwget\s",
    r"\bkill\s",
    r"\bkillall\s",
    r"\bnpm install",
    r"\bnpm i\s",
    r"\byarn add",
    r"\bpnpm add",
    r"\bbun add",
    r"\bpip install",
    r"\bbrew install",
    r"\bgit push",
    r"\bgit commit",
    r"\bgit checkout",
    r"\bgit reset",
    r"\bgit rebase",
    r"\bgit merge",
    r"\bgit stash (drop|pop|clear)",
    r">\s*/",
    r"\|\s*tee\s",
))

_COMPOUND_SPLIT = re.compile(r"\s*(?:&&|\|\||[;|])\s*")


def _split_compound(command: str) -> list[str]:
    return [part.strip() for part in _COMPOUND_SPLIT.split(command) if part.strip()]


def _classify_single(command: str) -> RiskLevel:
    for pattern in DANGEROUS_BASH_PATTERNS:
        if pattern.search(command):
            return RiskLevel.DANGEROUS

    if command in SAFE_BASH_EXACT:
        return RiskLevel.SAFE

    if command.startswith(SAFE_BASH_PREFIXES):
        return RiskLevel.SAFE

    if command.startswith("sed -n"):
        if re.search(r"\s-i\b", command):
            return RiskLevel.MODERATE
        return RiskLevel.SAFE

    return RiskLevel.MODERATE


def classify_bash_command(command: str) -> RiskLevel:
    """Highest risk across the sub-commands of a (possibly compound) command."""
    trimmed = command.strip()
    if not trimmed:
        return RiskLevel.MODERATE

    # Dangerous patterns such as `| tee` span the operators, so check the whole line first.
    whole = _classify_single(trimmed)
    if whole is RiskLevel.DANGEROUS:
        return whole

    parts = _split_compound(trimmed)
    if len(parts) <= 1:
        return whole

    highest = RiskLevel.SAFE
    for part in parts:
        risk = _classify_single(part)
        if _RISK_ORDER[risk] > _RISK_ORDER[highest]:
            highest = risk
        if highest is RiskLevel.DANGEROUS:
            break
    return highest


def classify_tool(tool_name: str, tool_input: Optional[dict[str, Any]] = None) -> RiskLevel:
    if tool_name == "Bash":
        command = (tool_input or {}).get("command") or ""
        return classify_bash_command(str(command))
    return STATIC_TOOL_LEVELS.get(tool_name, RiskLevel.MODERATE)
