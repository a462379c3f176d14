"""Data model for a run: exchanges, role outcomes and termination causes."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union


class TerminationCause(str, Enum):
	"""Why the run loop stopped."""
	COMPLETION = "completion"
	FAILURE = "failure"
	MAX_ROUNDS = "max_rounds"
	CANCELLED = "cancelled"


@dataclass(frozen=True)
class Exchange:
	"""One completed round: the instruction sent and the result returned."""
	instruction: str
	result: str

	def summary(self) -> str:
		"""Label + instruction + result, as replayed to the sub-agent."""
		return f"Task: {self.instruction}\nResult: {self.result}"


@dataclass(frozen=True)
class Complete:
	"""The planner judged the objective satisfied."""
	final_note: str


@dataclass(frozen=True)
class NextTask:
	"""The planner produced another sub-task."""
	instruction: str


@dataclass(frozen=True)
class Failed:
	"""A role's model call failed; carries the error text."""
	role: str
	error: str


PlanOutcome = Union[Complete, NextTask, Failed]


class ExchangeHistory:
	"""Append-only, ordered record of the exchanges in one run."""

	def __init__(self):
		self._exchanges: list[Exchange] = []

	def append(self, exchange: Exchange) -> None:
		self._exchanges.append(exchange)

	def results(self) -> list[str]:
		"""Sub-task results in the order they were produced."""
		return [e.result for e in self._exchanges]

	def summaries(self) -> list[str]:
		return [e.summary() for e in self._exchanges]

	def snapshot(self) -> tuple[Exchange, ...]:
		return tuple(self._exchanges)

	def __len__(self) -> int:
		return len(self._exchanges)

	def __iter__(self) -> Iterator[Exchange]:
		return iter(self._exchanges)
