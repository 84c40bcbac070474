"""
Permission engine: decides whether a tool call may run.

Precedence, highest first:
  1. a matching deny rule                      → deny
  2. a matching allow rule, allow-once list,
     session approvals or allow_all            → allow
  3. risk classification: safe → allow, anything else → ask
"""
from __future__ import annotations

import logging
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from switchyard.permissions.classifier import RiskLevel, classify_tool

logger = logging.getLogger(__name__)


class RuleMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    command_prefix: Optional[str] = None
    path_glob: Optional[str] = None


class PermissionRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str  # tool name or "*"
    action: Literal["allow", "deny"]
    source: Literal["project", "global"] = "project"
    id: str = ""
    description: Optional[str] = None
    match: Optional[RuleMatch] = None


class PermissionContext(BaseModel):
    """Read-only policy inputs for one request."""
    model_config = ConfigDict(frozen=True)

    allow_all: bool = False
    allow_once_tools: tuple[str, ...] = ()
    session_approved_tools: frozenset[str] = Field(default_factory=frozenset)
    permission_rules: tuple[PermissionRule, ...] = ()


class PermissionDecision(BaseModel):
    action: Literal["allow", "ask", "deny"]
    reason: Optional[str] = None
    matched_rule: Optional[PermissionRule] = None


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """`**` crosses directory separators, `*` does not, `?` is one character."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$")


class PermissionEngine:
    def evaluate(
        self,
        tool_name: str,
        tool_input: Optional[dict[str, Any]],
        context: Optional[PermissionContext] = None,
    ) -> PermissionDecision:
        context = context or PermissionContext()
        tool_input = tool_input or {}

        matching = [r for r in context.permission_rules if self._rule_matches(r, tool_name, tool_input)]

        for rule in matching:
            if rule.action == "deny":
                return PermissionDecision(
                    action="deny",
                    reason=rule.description or f"Denied by rule: {rule.id}",
                    matched_rule=rule,
                )

        for rule in matching:
            if rule.action == "allow":
                return PermissionDecision(
                    action="allow",
                    reason=rule.description or f"Allowed by rule: {rule.id}",
                    matched_rule=rule,
                )

        if tool_name in context.allow_once_tools:
            return PermissionDecision(action="allow", reason="Allowed once by user")

        if tool_name in context.session_approved_tools:
            return PermissionDecision(action="allow", reason="Allowed for this session")

        if context.allow_all:
            return PermissionDecision(action="allow", reason="All tools allowed (allow_all)")

        risk = classify_tool(tool_name, tool_input)
        if risk is RiskLevel.SAFE:
            return PermissionDecision(action="allow", reason="Tool classified as safe")

        return PermissionDecision(
            action="ask",
            reason=f'Tool "{tool_name}" requires approval ({risk.value})',
        )

    def _rule_matches(self, rule: PermissionRule, tool_name: str, tool_input: dict[str, Any]) -> bool:
        if rule.tool != "*" and rule.tool != tool_name:
            return False

        if rule.match is None:
            return True

        if rule.match.command_prefix:
            command = str(tool_input.get("command") or tool_input.get("cmd") or "")
            if not command.startswith(rule.match.command_prefix):
                return False

        if rule.match.path_glob:
            path = str(tool_input.get("path") or tool_input.get("file_path") or "")
            try:
                if not glob_to_regex(rule.match.path_glob).match(path):
                    return False
            except re.error:
                logger.warning("Ignoring rule %s with invalid path glob %r", rule.id, rule.match.path_glob)
                return False

        return True
