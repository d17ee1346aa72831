from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from harv.core.errors import AiError, InvalidEntryError
from harv.core.models import MAX_DESCRIPTION_LENGTH, Project, ProposedEntry, Task, TimeEntry


@dataclass(frozen=True)
class AiContext:
    available_projects: list[Project] = field(default_factory=list)
    available_tasks: list[Task] = field(default_factory=list)
    existing_entries: list[TimeEntry] = field(default_factory=list)
    target_hours: float = 8.0
    today_total_hours: float = 0.0


PROMPT_TEMPLATE = """\
You are a time tracking assistant. Your task is to analyze a user's work summary
and generate time entries for Harvest.

USER'S WORK SUMMARY:
{summary}

CONTEXT:
- Target hours for today: {target_hours:.2f}
- Already logged: {logged_hours:.2f} hours
- Remaining to log: {remaining_hours:.2f} hours

{existing}

AVAILABLE PROJECTS:
{projects_json}

AVAILABLE TASKS:
{tasks_json}

INSTRUCTIONS:
1. Parse the user's summary and identify distinct work activities
2. Allocate the remaining {remaining_hours:.2f} hours across these activities
3. For each activity, select the most appropriate project_id and task_id from the lists above
4. Be reasonable with time allocation - don't create dozens of tiny entries
5. Aim for 2-5 entries typically, unless the user explicitly mentions more activities
6. Each entry should have clear, professional notes describing what was done
7. Hours should be in decimal format (e.g., 1.5 for 1 hour 30 minutes)
8. The sum of all entry hours should approximately equal {remaining_hours:.2f} hours

IMPORTANT MATCHING RULES:
- Match project names based on keywords in the user's summary
- If uncertain about project/task, prefer general/administrative tasks
- If the user mentions specific project names, prioritize those
- Common task name mappings:
  * "Development" for coding/programming work
  * "Meeting" for meetings/calls
  * "Planning" for planning/design work
  * "Bug Fix" for debugging/fixing issues
  * "Code Review" for reviewing PRs
  * "Documentation" for writing docs

OUTPUT FORMAT (JSON):
Return a JSON object with a "time_entries" array. Each entry must have:
- "description": Clear description of the work (string)
- "project_id": Numeric project ID from the available projects (number)
- "task_id": Numeric task ID from the available tasks (number)
- "hours": Time in decimal hours (number)
- "confidence": Your confidence in this allocation from 0.0 to 1.0 (number, optional)

Example output:
{{
  "time_entries": [
    {{
      "description": "Implemented user authentication feature",
      "project_id": 12345,
      "task_id": 67890,
      "hours": 3.5,
      "confidence": 0.9
    }},
    {{
      "description": "Team standup meeting and sprint planning",
      "project_id": 12345,
      "task_id": 67891,
      "hours": 1.0,
      "confidence": 1.0
    }}
  ]
}}

Now generate the time entries based on the user's summary."""


def _existing_summary(ctx: AiContext) -> str:
    if not ctx.existing_entries:
        return "No time entries logged yet today."
    lines = [
        f"- {e.hours or 0.0:.2f}h: {e.notes or 'No description'}" for e in ctx.existing_entries
    ]
    return f"Already logged today ({ctx.today_total_hours:.2f}h total):\n" + "\n".join(lines)


def build_prompt(summary: str, context: AiContext) -> str:
    # negative once the target is exceeded
    remaining = context.target_hours - context.today_total_hours
    return PROMPT_TEMPLATE.format(
        summary=summary,
        target_hours=context.target_hours,
        logged_hours=context.today_total_hours,
        remaining_hours=remaining,
        existing=_existing_summary(context),
        projects_json=json.dumps([asdict(p) for p in context.available_projects], indent=2),
        tasks_json=json.dumps([asdict(t) for t in context.available_tasks], indent=2),
    )


def _strip_fences(text: str) -> str:
    for fence in ("```json", "```"):
        start = text.find(fence)
        if start == -1:
            continue
        start += len(fence)
        end = text.find("```", start)
        return text[start:] if end == -1 else text[start:end]
    return text


def _entry(raw: Any) -> ProposedEntry:
    if not isinstance(raw, dict):
        raise AiError(f"time entry must be an object, got {raw!r}")
    try:
        description = raw["description"]
        project_id = raw["project_id"]
        task_id = raw["task_id"]
        hours = raw["hours"]
    except KeyError as e:
        raise AiError(f"time entry is missing {e.args[0]!r}") from e

    if not isinstance(description, str):
        raise AiError("time entry description must be a string")
    for name, v in (("project_id", project_id), ("task_id", task_id)):
        if isinstance(v, bool) or not isinstance(v, int) or v < 0:
            raise AiError(f"time entry {name} must be a non-negative integer, got {v!r}")
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise AiError(f"time entry hours must be a number, got {hours!r}")

    confidence = raw.get("confidence")
    if confidence is not None:
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise AiError(f"time entry confidence must be a number, got {confidence!r}")
        confidence = min(1.0, max(0.0, float(confidence)))

    return ProposedEntry(
        description=description,
        project_id=project_id,
        task_id=task_id,
        hours=float(hours),
        confidence=confidence,
    )


def parse_response(text: str) -> list[ProposedEntry]:
    """Parse a provider reply into proposed entries.

    The reply may be bare JSON or wrapped in a Markdown code fence. One
    invalid entry rejects the whole batch.
    """
    body = _strip_fences(text).strip()
    try:
        obj = json.loads(body)
    except json.JSONDecodeError as e:
        raise AiError(f"Failed to parse AI response: {e}. Raw response: {body}") from e
    if not isinstance(obj, dict) or not isinstance(obj.get("time_entries"), list):
        raise AiError(f"AI response has no 'time_entries' array. Raw response: {body}")

    entries = [_entry(raw) for raw in obj["time_entries"]]
    for e in entries:
        if not (0 < e.hours <= 24):
            raise InvalidEntryError(f"Invalid hours value: {e.hours}. Must be between 0 and 24.")
        if not e.description.strip():
            raise InvalidEntryError("AI generated entry with empty description")

    return [
        replace(e, description=e.description.strip()[:MAX_DESCRIPTION_LENGTH]) for e in entries
    ]
