# src/worksync/llm/offline.py

from __future__ import annotations

from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    For summary prompts it echoes the task lines back under a fixed heading,
    so the console still produces a usable end-of-day report.
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        task_lines = [ln.strip() for ln in user_text.splitlines() if ln.strip().startswith("- [")]
        if not task_lines:
            yield "Offline mode: no external LLM is configured."
            return

        done = sum(1 for ln in task_lines if ln.startswith("- [DONE]"))
        yield (
            "Offline summary (set WORKSYNC_LLM_API_KEY for a written report).\n"
            f"{done} of {len(task_lines)} tasks done.\n"
        )
        yield "\n".join(task_lines)
