"""
Prompt templates for the three model roles, and the completion sentinel.

The planner is told to open its answer with COMPLETION_SENTINEL once the
objective is met. parse_plan_response() is the only place that inspects raw
planner text.
"""

import re
from typing import Sequence

from .models import Complete, NextTask

COMPLETION_SENTINEL = "The task is complete:"

NO_PRIOR_RESULTS = "None"

# Leading whitespace and markdown decoration (bold, headings, quotes) are
# tolerated before the sentinel; its words may be separated by any whitespace.
_SENTINEL_PATTERN = re.compile(
	r"^[\s*_#>]*"
	+ r"\s+".join(re.escape(word) for word in COMPLETION_SENTINEL.rstrip(":").split())
	+ r"\s*:[*_]*",
	re.IGNORECASE,
)

ORCHESTRATOR_TEMPLATE = (
	"Based on the following objective and the previous sub-task results (if any), "
	"please break down the objective into the next sub-task, and create a concise and "
	"detailed prompt for a subagent so it can execute that task, please assess if the "
	"objective has been fully achieved. If the previous sub-task results comprehensively "
	"address all aspects of the objective, include the phrase '{sentinel}' at the beginning "
	"of your response. If the objective is not yet fully achieved, break it down into the "
	"next sub-task and create a concise and detailed prompt for a subagent to execute that "
	"task.:\n\n"
	"Objective: {objective}\n\n"
	"Previous sub-task results:\n{previous_results}"
)

SUBAGENT_CONTEXT_HEADER = "Previous sub-agent tasks:\n"

REFINER_TEMPLATE = (
	"Objective: {objective}\n\n"
	"Sub-task results:\n{results}\n\n"
	"Please review and refine the sub-task results into a cohesive final output. "
	"Add any missing information or details as needed. When working on code projects "
	"make sure to include the code implementation by file."
)


def build_orchestrator_prompt(objective: str, prior_results: Sequence[str]) -> str:
	"""Prompt for the planning role; an empty history renders as 'None'."""
	previous = "\n".join(prior_results) if prior_results else NO_PRIOR_RESULTS
	return ORCHESTRATOR_TEMPLATE.format(
		sentinel=COMPLETION_SENTINEL,
		objective=objective,
		previous_results=previous,
	)


def build_subagent_context(prior_summaries: Sequence[str]) -> str:
	"""System context for the execution role. Empty on the first call."""
	if not prior_summaries:
		return ""
	return SUBAGENT_CONTEXT_HEADER + "\n".join(prior_summaries)


def build_refiner_prompt(objective: str, results: Sequence[str]) -> str:
	return REFINER_TEMPLATE.format(objective=objective, results="\n".join(results))


def parse_plan_response(text: str) -> Complete | NextTask:
	"""
	Classify raw planner output.

	Returns Complete with the sentinel stripped when the response opens with
	the sentinel, otherwise NextTask carrying the response verbatim.
	"""
	match = _SENTINEL_PATTERN.match(text)
	if match:
		return Complete(final_note=text[match.end():].strip())
	return NextTask(instruction=text)
