from __future__ import annotations

import json
import logging
import re
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from focus_app.core.errors import BreakdownError

LOGGER = logging.getLogger(__name__)

MAX_STEPS = 5

SYSTEM_PROMPT = """You are a helpful assistant designed to help procrastinators break down overwhelming tasks into manageable, actionable pieces. Your goal is to create just enough steps to make progress without overwhelming the user.

Key principles:
1. Break tasks into 3-5 small, specific, actionable steps
2. Each step should be something that can be completed in 15-30 minutes
3. Use clear, action-oriented language (start with verbs)
4. Make the first step the smallest possible to build momentum
5. Focus on immediate next actions, not long-term planning
6. Avoid overwhelming detail - keep it simple and achievable

Return ONLY a JSON array of strings, where each string is a step. Do not include any other text or formatting.

Example:
["Open the document and read the first paragraph", "Write a simple outline with 3 main points", "Draft the introduction section"]"""

NEXT_STEPS_PROMPT = """You are a helpful assistant that generates next steps for tasks based on what has already been completed. Your goal is to suggest logical follow-up actions that build on the completed work.

Key principles:
1. Generate 2-4 next steps based on the completed steps
2. Each step should be something that can be completed in 15-30 minutes
3. Steps should logically follow from what was already done
4. Use clear, action-oriented language (start with verbs)
5. Focus on immediate next actions, not long-term planning
6. Consider the overall task context when suggesting steps

Return ONLY a JSON array of strings, where each string is a step. Do not include any other text or formatting."""

MAX_NEXT_STEPS = 4

_NUMBERING = re.compile(r"^\d+\.?\s*")
_BULLET = re.compile(r"^[-*]\s*")

_TEMPLATES: list[tuple[tuple[str, ...], list[str]]] = [
    (
        ("write", "essay", "report", "draft"),
        ["Open a blank document and write the title", "List 3 main points", "Draft the first paragraph"],
    ),
    (
        ("read", "book", "chapter", "article"),
        ["Find the material and open it", "Read the first section", "Write down one key takeaway"],
    ),
    (
        ("code", "bug", "implement", "feature"),
        ["Open the project and find the relevant file", "Write down what needs to change", "Make the smallest working change"],
    ),
    (
        ("study", "exam", "learn", "review"),
        ["Gather your notes for one topic", "Review them for 15 minutes", "Test yourself with 3 questions"],
    ),
    (
        ("email", "reply", "message"),
        ["Open the thread and reread the last message", "Write a two-line draft", "Proofread and send"],
    ),
    (
        ("design", "sketch", "mockup"),
        ["Collect two reference examples", "Sketch a rough first version", "Note what to improve next"],
    ),
]

_GENERIC = ["Define what done looks like", "Do the smallest first action", "Check progress and pick the next step"]


def parse_steps(content: str) -> list[str]:
    """JSON array of strings first, numbered or bulleted lines as a fallback."""
    text = (content or "").strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        steps = [item.strip() for item in parsed if isinstance(item, str) and item.strip()]
        if steps:
            return steps

    lines = []
    for line in text.splitlines():
        cleaned = _BULLET.sub("", _NUMBERING.sub("", line.strip())).strip()
        if cleaned:
            lines.append(cleaned)
    return lines[:MAX_STEPS]


def fallback_steps(title: str) -> list[str]:
    lowered = (title or "").lower()
    for keywords, steps in _TEMPLATES:
        if any(keyword in lowered for keyword in keywords):
            return list(steps)
    return list(_GENERIC)


class TaskBreakdownClient:
    """Asks an OpenAI-compatible chat endpoint to split a task into steps.

    ``breakdown`` never raises: every failure is logged and yields ``[]`` so
    the caller falls back to manual step entry.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        max_completion_tokens: int = 2000,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_completion_tokens = max_completion_tokens

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": "focus-app/0.1",
        }

    def _complete(self, system_prompt: str, user_prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_completion_tokens": int(self.max_completion_tokens),
        }
        req = Request(
            url=f"{self.base_url}/chat/completions",
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers=self._headers(),
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8") or "{}")
        except HTTPError as exc:
            raise BreakdownError(f"breakdown http error status={exc.code}") from exc
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise BreakdownError(f"breakdown request failed error={exc}") from exc

        try:
            return str(payload["choices"][0]["message"]["content"] or "")
        except (KeyError, IndexError, TypeError) as exc:
            raise BreakdownError("breakdown response missing content") from exc

    def breakdown(self, title: str, description: str = "") -> list[str]:
        if not (title or "").strip():
            return []
        if not self.configured:
            LOGGER.warning("breakdown skipped: no api key configured")
            return []
        user_prompt = f"Task: {title.strip()}"
        if (description or "").strip():
            user_prompt += f"\nDescription: {description.strip()}"
        user_prompt += "\n\nPlease break this down into manageable steps."
        try:
            content = self._complete(SYSTEM_PROMPT, user_prompt)
        except BreakdownError as exc:
            LOGGER.warning("breakdown failed title=%s error=%s", title, exc)
            return []
        steps = parse_steps(content)
        if not steps:
            LOGGER.warning("breakdown returned no usable steps title=%s", title)
        return steps

    def generate_next_steps(
        self,
        title: str,
        completed_steps: list[str],
        remaining_steps: list[str] | None = None,
        description: str = "",
    ) -> list[str]:
        """Suggest follow-up steps that build on the completed ones.

        Needs a title and at least one completed step; like ``breakdown`` it
        logs failures and returns ``[]``.
        """
        done = [step.strip() for step in completed_steps if step and step.strip()]
        if not (title or "").strip() or not done:
            return []
        if not self.configured:
            LOGGER.warning("next steps skipped: no api key configured")
            return []

        lines = [f"Task: {title.strip()}"]
        if (description or "").strip():
            lines.append(f"Description: {description.strip()}")
        lines += ["", "Completed steps:"]
        lines += [f"{idx}. {step}" for idx, step in enumerate(done, start=1)]
        remaining = [step for step in remaining_steps or [] if step]
        if remaining:
            lines += ["", "Current remaining steps (for context, but generate new ones):"]
            lines += [f"{idx}. {step}" for idx, step in enumerate(remaining, start=1)]
        lines += ["", "Based on what has been completed, generate 2-4 logical next steps to continue making progress on this task."]

        try:
            content = self._complete(NEXT_STEPS_PROMPT, "\n".join(lines))
        except BreakdownError as exc:
            LOGGER.warning("next steps failed title=%s error=%s", title, exc)
            return []
        steps = parse_steps(content)[:MAX_NEXT_STEPS]
        LOGGER.info("next steps generated title=%s count=%s", title, len(steps))
        return steps
