"""
Run transcript - the human-readable record of a run.

Rendering is deterministic: the same exchanges and final artifact always
produce the same text. Timestamps only appear in exported file names.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import TranscriptError
from .models import Exchange, TerminationCause

logger = logging.getLogger(__name__)

BANNER_WIDTH = 40
REFINEMENT_FAILED_MARKER = "[Refinement failed: the final output could not be generated]"
REFINEMENT_SKIPPED_MARKER = "[Refinement skipped: the run was cancelled]"

STOP_REASONS = {
	TerminationCause.FAILURE: "a model call failed",
	TerminationCause.MAX_ROUNDS: "the maximum number of rounds was reached",
	TerminationCause.CANCELLED: "the run was cancelled",
}


def _banner(title: str) -> str:
	return "=" * BANNER_WIDTH + f" {title} " + "=" * BANNER_WIDTH


@dataclass(frozen=True)
class RunTranscript:
	"""Objective, every exchange in order, and the refined final output."""
	objective: str
	exchanges: tuple[Exchange, ...]
	termination: TerminationCause
	final_artifact: Optional[str] = None
	completion_note: Optional[str] = None
	failure_reason: Optional[str] = None
	refinement_error: Optional[str] = None

	@property
	def refinement_failed(self) -> bool:
		return self.refinement_error is not None

	@property
	def completed(self) -> bool:
		return self.termination == TerminationCause.COMPLETION

	@property
	def text(self) -> str:
		return render_transcript(self)

	def to_dict(self) -> dict:
		return {
			"objective": self.objective,
			"termination": self.termination.value,
			"exchanges": [
				{"instruction": e.instruction, "result": e.result} for e in self.exchanges
			],
			"completion_note": self.completion_note,
			"failure_reason": self.failure_reason,
			"final_artifact": self.final_artifact,
			"refinement_error": self.refinement_error,
		}


def render_transcript(transcript: RunTranscript) -> str:
	"""Format a transcript as plain text (markdown-friendly)."""
	parts = [f"Objective: {transcript.objective}\n\n"]
	parts.append(_banner("Task Breakdown") + "\n\n")

	for index, exchange in enumerate(transcript.exchanges, start=1):
		parts.append(f"Task {index}:\n")
		parts.append(f"Prompt: {exchange.instruction}\n")
		parts.append(f"Result: {exchange.result}\n\n")

	if transcript.completion_note:
		parts.append(f"Completion note: {transcript.completion_note}\n\n")

	reason = STOP_REASONS.get(transcript.termination)
	if reason:
		line = f"Run stopped early: {reason}"
		if transcript.failure_reason:
			line += f" ({transcript.failure_reason})"
		parts.append(line + "\n\n")

	parts.append(_banner("Refined Final Output") + "\n\n")

	if transcript.final_artifact is not None:
		parts.append(transcript.final_artifact)
	elif transcript.termination == TerminationCause.CANCELLED and transcript.refinement_error is None:
		parts.append(REFINEMENT_SKIPPED_MARKER)
	else:
		parts.append(REFINEMENT_FAILED_MARKER)
		if transcript.refinement_error:
			parts.append(f"\n{transcript.refinement_error}")

	return "".join(parts)


def transcript_filename(objective: str, now: Optional[datetime] = None) -> str:
	"""
	Build an export file name: <date>_<hour>-<minute>_<objective>.md.

	The objective is trimmed, non-alphanumerics become underscores, and it is
	cut to 50 characters. An empty objective yields <timestamp>_output.md.
	"""
	now = now or datetime.now()
	timestamp = f"{now.date().isoformat()}_{now.hour}-{now.minute}"
	sanitized = re.sub(r"[^a-z0-9]", "_", objective.strip(), flags=re.IGNORECASE)[:50]
	if sanitized:
		return f"{timestamp}_{sanitized}.md"
	return f"{timestamp}_output.md"


def save_transcript(
	transcript: RunTranscript,
	output_dir: Path,
	now: Optional[datetime] = None,
) -> Path:
	"""
	Write the transcript text to a markdown file.

	Raises:
		TranscriptError: the transcript is empty or the file cannot be written
	"""
	text = transcript.text
	if not text.strip():
		raise TranscriptError("There's no content to save.")

	output_dir = Path(output_dir)
	path = output_dir / transcript_filename(transcript.objective, now)
	try:
		output_dir.mkdir(parents=True, exist_ok=True)
		path.write_text(text, encoding="utf-8")
	except OSError as e:
		raise TranscriptError(f"Failed to write transcript to {path}: {e}") from e

	logger.info(f"Saved transcript to {path}")
	return path
