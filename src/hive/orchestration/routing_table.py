"""
hive.orchestration.routing_table - Routing Policy Data
========================================================

The router's engine logic lives in ``router.py``; this module holds the
policy it applies, which is data:

    ROUTER_PROMPT    System prompt for the model-based tiers.
    KEYWORD_ROUTES   Priority-ordered {agent → keywords} table for the
                     rule-based tier.

Keyword Matching:
    Keywords match as whole words, case-insensitively. Multi-word phrases
    allow any whitespace between words. Inflections are listed explicitly
    ("build", "builds", "building") instead of matching substrings, so "ui"
    never matches inside "build" and "test" never matches inside "latest".

    The table is scanned top to bottom and the first agent with any match
    wins. Specific concerns (accessibility, security, shipping, testing,
    review) come before the broad "make something" verbs, so "create a UI
    mockup" reaches the Designer and "test the build" reaches the Tester,
    while "please build a login form" reaches the Builder.
"""

from __future__ import annotations

import re
from typing import Optional

from hive.core.enums import AgentName


ROUTER_PROMPT = """You are the Router of HIVE, a team of specialist AI agents \
building software products together. Decide which team member should act next.

Team:
- Founder: product vision, business strategy, market positioning
- ProductManager: requirements, PRD, user stories, success metrics
- UXResearcher: user research, personas, usability studies
- Designer: UI/UX design, user flows, components, mockups
- Accessibility: WCAG compliance, inclusive design review
- Planner: technical architecture and implementation plan
- Security: threat modeling, vulnerability review
- Builder: writes the code
- Reviewer: code review
- Tester: test strategy, test cases, QA
- TechWriter: documentation, READMEs, guides
- SRE: deployment, CI/CD, reliability, monitoring
- DataAnalyst: analytics, metrics, dashboards

Typical order for a new product: ProductManager → Designer → Accessibility → \
Planner → Security → Builder → Reviewer → Tester → TechWriter → SRE.
Skip steps the request does not need. Answer FINISH when the user's request \
has been fully handled.

Respond with JSON only: {"next": "<AgentName or FINISH>", "reasoning": "<one sentence>"}"""


KEYWORD_ROUTES: tuple[tuple[AgentName, tuple[str, ...]], ...] = (
    (AgentName.ACCESSIBILITY, (
        "accessibility", "accessible", "a11y", "wcag", "screen reader", "aria",
    )),
    (AgentName.SECURITY, (
        "security", "secure", "vulnerability", "vulnerabilities", "threat model",
        "threat modeling", "audit", "pentest", "xss", "csrf",
    )),
    (AgentName.SRE, (
        "deploy", "deploys", "deploying", "deployment", "ship", "release",
        "ci/cd", "pipeline", "monitoring", "incident", "kubernetes",
    )),
    (AgentName.TESTER, (
        "test", "tests", "testing", "qa", "regression", "bug", "bugs", "e2e",
    )),
    (AgentName.REVIEWER, (
        "review", "code review", "pr", "pull request",
    )),
    (AgentName.TECH_WRITER, (
        "documentation", "docs", "readme", "guide", "tutorial",
    )),
    (AgentName.DATA_ANALYST, (
        "analytics", "dashboard", "dashboards", "kpi", "kpis", "data analysis", "funnel",
    )),
    (AgentName.UX_RESEARCHER, (
        "user research", "interview", "interviews", "persona", "personas",
        "usability", "survey",
    )),
    (AgentName.DESIGNER, (
        "design", "designs", "ui", "ux", "mockup", "mockups", "wireframe",
        "wireframes", "prototype", "layout",
    )),
    (AgentName.PLANNER, (
        "plan", "planning", "architecture", "tech spec", "technical plan",
    )),
    (AgentName.FOUNDER, (
        "vision", "strategy", "startup", "business model", "pitch", "market",
    )),
    (AgentName.PRODUCT_MANAGER, (
        "requirements", "prd", "user story", "user stories", "feature", "features",
    )),
    (AgentName.BUILDER, (
        "build", "builds", "building", "implement", "implementation", "create",
        "scaffold", "code", "develop",
    )),
)


def _compile(keywords: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = [r"\s+".join(re.escape(word) for word in keyword.split()) for keyword in keywords]
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)


_COMPILED_ROUTES: tuple[tuple[AgentName, re.Pattern[str]], ...] = tuple(
    (agent, _compile(keywords)) for agent, keywords in KEYWORD_ROUTES
)


def match_keywords(text: str) -> Optional[tuple[AgentName, str]]:
    """Return the first (agent, matched keyword) in priority order, or None.

    Example:
        >>> match_keywords("please build a login form")
        (<AgentName.BUILDER: 'Builder'>, 'build')
    """
    for agent, pattern in _COMPILED_ROUTES:
        found = pattern.search(text)
        if found:
            return agent, found.group(0)
    return None
