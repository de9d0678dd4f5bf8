# src/worksync/summary/summarizer.py

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..core.ports import LLMClient
from ..llm.client import LLMUnavailable
from ..workspace.models import Task
from ..workspace.views import format_app_date

logger = logging.getLogger(__name__)

NO_TASKS_TEXT = "No tasks logged for this date."
EMPTY_REPLY_TEXT = "Failed to generate summary."
FALLBACK_TEXT = (
    "Error occurred while generating the summary. Please check your LLM configuration."
)
RATE_LIMIT_TEXT = "The summary service is busy right now. Please try again in a minute."

SUMMARY_SYSTEM_PROMPT = """
You are a reporting assistant that writes end-of-day work summaries.

Rules:
- Professional, proactive, clear tone. No emojis.
- Use the date format DD-Mon-YYYY (e.g. 10-Feb-2026) whenever referencing dates.
- Structure:
  1. Daily Overview
  2. Key Accomplishments (tasks marked DONE)
  3. Blocked Items & Dependencies (who needs to follow up)
  4. Upcoming Deadlines (completion targets)
  5. Plan for Next Day (based on TODO / IN_PROGRESS items)
""".strip()


def _task_line(t: Task) -> str:
    line = f"- [{t.status.value.upper()}] {t.title} ({t.priority.value.upper()} Priority)"
    if t.target_date:
        line += f" | Completion Target: {format_app_date(t.target_date)}"
    if t.assignee:
        line += f" | Responsible: {t.assignee}"
    if t.postpone_reason:
        line += f" | Postponed: {t.postpone_reason}"
    if t.duration_hours is not None:
        line += f" | Hours: {t.duration_hours:g}"
    if t.detail or t.notes:
        line += f" | Details: {t.detail or t.notes}"
    return line


def build_prompt(tasks: Sequence[Task]) -> str:
    day = format_app_date(tasks[0].log_date)
    lines = "\n".join(_task_line(t) for t in tasks)
    return f"Analyze the following work tasks for the date: {day}.\n\nLogged Tasks:\n{lines}"


def summarize(tasks: Sequence[Task], llm: LLMClient) -> str:
    """
    Turn a day's tasks into prose.

    Never raises: provider failures come back as a human-readable fallback.
    """
    if not tasks:
        return NO_TASKS_TEXT

    messages = [{"role": "user", "content": build_prompt(tasks)}]
    raw = ""
    try:
        for piece in llm.stream_chat(messages, SUMMARY_SYSTEM_PROMPT):
            raw += piece
    except LLMUnavailable as e:
        if e.rate_limited:
            logger.warning("Summarizer rate limit: %s", e)
            return RATE_LIMIT_TEXT
        logger.warning("Summarizer unavailable: %s", e)
        return FALLBACK_TEXT
    except Exception:
        logger.exception("Summarizer failed.")
        return FALLBACK_TEXT

    summary = raw.strip()
    if not summary:
        return EMPTY_REPLY_TEXT
    logger.debug("Summary produced len=%d tasks=%d", len(summary), len(tasks))
    return summary
