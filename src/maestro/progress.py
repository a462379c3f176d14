"""Progress notifications - a one-way channel from the run loop to the host."""

import logging
from typing import Callable, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str], None]


class ProgressNotifier:
	"""
	Wraps an optional sink so that notifying can never fail a run.

	Exceptions raised by the sink are logged and dropped.
	"""

	def __init__(self, sink: Optional[ProgressSink] = None):
		self.sink = sink

	def notify(self, text: str) -> None:
		if self.sink is None:
			return
		try:
			self.sink(text)
		except Exception as e:
			logger.warning(f"Progress sink failed: {e}")


class ConsoleProgress:
	"""Renders markdown progress text to a Rich console."""

	def __init__(self, console: Optional[Console] = None, separate: bool = True):
		self.console = console or Console()
		self.separate = separate

	def __call__(self, text: str) -> None:
		if self.separate:
			self.console.print(Rule(style="dim"))
		self.console.print(Markdown(text))

