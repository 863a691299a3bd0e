"""Query enhancement from work context, time of day and synonyms."""

import re
from datetime import datetime
from typing import Dict, List, Optional

from .models import SearchContext, TimeOfDay, WorkContext

CONTEXT_KEYWORDS: Dict[WorkContext, str] = {
    WorkContext.CODING: "programming development software code",
    WorkContext.WRITING: "document content text article",
    WorkContext.RESEARCH: "analysis study investigation data",
    WorkContext.PLANNING: "strategy roadmap timeline goals",
    WorkContext.MEETING: "discussion collaboration team agenda",
}

TIME_KEYWORDS: Dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "daily standup planning priorities",
    TimeOfDay.AFTERNOON: "progress updates collaboration",
    TimeOfDay.EVENING: "review summary completion",
    TimeOfDay.NIGHT: "reflection notes tomorrow",
}

SYNONYMS: Dict[str, List[str]] = {
    "task": ["todo", "assignment", "work", "job"],
    "project": ["initiative", "program", "effort"],
    "meeting": ["call", "discussion", "session"],
    "document": ["file", "paper", "report"],
    "code": ["programming", "software", "development"],
}

_SYNONYM_PATTERNS = {
    word: re.compile(rf"\b{re.escape(word)}s?\b", re.IGNORECASE) for word in SYNONYMS
}


def context_keywords(work_context: Optional[WorkContext]) -> str:
    return CONTEXT_KEYWORDS.get(work_context, "") if work_context else ""


def time_of_day_for(moment: datetime) -> TimeOfDay:
    """Bucket an hour: morning 5-11, afternoon 12-16, evening 17-20, night otherwise."""
    hour = moment.hour
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def expand_synonyms(query: str) -> str:
    """Append synonyms for every table word found in ``query`` as a whole word."""
    expanded = query
    for word, synonyms in SYNONYMS.items():
        if _SYNONYM_PATTERNS[word].search(query):
            expanded += " " + " ".join(synonyms)
    return expanded


class QueryProcessor:
    """
    Rewrites a query before it is embedded.

    Work-context keywords come first, then time-of-day keywords, then
    synonyms for words present in the combined text. Purely textual.
    """

    def __init__(self, infer_time_of_day: bool = False):
        self.infer_time_of_day = infer_time_of_day

    def enhance(
        self,
        query: str,
        context: Optional[SearchContext] = None,
        now: Optional[datetime] = None,
    ) -> str:
        enhanced = query
        if context is not None and context.work_context:
            enhanced += f" {context_keywords(context.work_context)}"

        time_of_day = context.time_of_day if context is not None else None
        if time_of_day is None and self.infer_time_of_day:
            time_of_day = time_of_day_for(now or datetime.now())
        if time_of_day is not None:
            enhanced += f" {TIME_KEYWORDS[time_of_day]}"

        return expand_synonyms(enhanced)
