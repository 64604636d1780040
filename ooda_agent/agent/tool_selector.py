from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence, Tuple

from ooda_agent.agent.views import ScoredTool, ToolDescriptor

logger = logging.getLogger(__name__)

_TOKEN_SPLIT_RE = re.compile(r'[\W_]+', re.UNICODE)

# Description words shorter than this are too generic to count as overlap.
MIN_DESCRIPTION_TOKEN_LEN = 4
DESCRIPTION_OVERLAP_SCORE = 0.5


def tokenize(text: str) -> Tuple[str, ...]:
    """Lower-case and split on whitespace/punctuation, dropping empty pieces."""
    if not text:
        return ()
    return tuple(token for token in _TOKEN_SPLIT_RE.split(text.lower()) if token)


class ToolSelector:
    """
    Keyword-overlap relevance scoring over a tool catalog.

    score = number of tool keywords found as a substring of any task token
            (multi-word keywords are matched against the normalized task phrase)
          + DESCRIPTION_OVERLAP_SCORE if the description shares a token with the task.
    """

    def matched_keywords(self, tokens: Sequence[str], tool: ToolDescriptor) -> List[str]:
        phrase = ' '.join(tokens)
        matched = []
        for keyword in sorted(tool.keywords):
            needle = ' '.join(tokenize(keyword))
            if not needle:
                continue
            if ' ' in needle:
                if needle in phrase:
                    matched.append(keyword)
            elif any(needle in token for token in tokens):
                matched.append(keyword)
        return matched

    def description_overlap(self, tokens: Sequence[str], tool: ToolDescriptor) -> List[str]:
        task_tokens = set(tokens)
        return sorted(
            {
                word
                for word in tokenize(tool.description)
                if len(word) >= MIN_DESCRIPTION_TOKEN_LEN and word in task_tokens
            }
        )

    def score(self, task: str | Sequence[str], tool: ToolDescriptor) -> float:
        tokens = tokenize(task) if isinstance(task, str) else tuple(task)
        score = float(len(self.matched_keywords(tokens, tool)))
        if self.description_overlap(tokens, tool):
            score += DESCRIPTION_OVERLAP_SCORE
        return score

    def score_tools(self, task: str | Sequence[str], tools: Iterable[ToolDescriptor]) -> List[ScoredTool]:
        """Score every tool; highest first, catalog order breaks ties."""
        tokens = tokenize(task) if isinstance(task, str) else tuple(task)
        scored = []
        for tool in tools:
            value = self.score(tokens, tool)
            scored.append(ScoredTool(tool=tool, score=value, rationale='keyword match' if value > 0 else 'low match'))
        # sorted() is stable, so equal scores keep catalog order
        return sorted(scored, key=lambda entry: -entry.score)

    def explain_selection(self, task: str, tools: Iterable[ToolDescriptor]) -> str:
        tokens = tokenize(task)
        explanations = []
        for tool in tools:
            reasons = []
            keywords = self.matched_keywords(tokens, tool)
            if keywords:
                reasons.append(f"keywords: {', '.join(keywords)}")
            overlap = self.description_overlap(tokens, tool)
            if overlap:
                reasons.append(f"description: {', '.join(overlap)}")
            if tool.category:
                reasons.append(f'category: {tool.category}')
            if reasons:
                explanations.append(f"{tool.name}: {'; '.join(reasons)}")
        return '\n'.join(explanations)
