"""Orchestrator module - planning, execution, refinement and the run loop."""

from .executor import SubAgentExecutor
from .planner import Orchestrator
from .refiner import Refiner
from .run_loop import RunLoop, RunState, run

__all__ = [
	"Orchestrator",
	"SubAgentExecutor",
	"Refiner",
	"RunLoop",
	"RunState",
	"run",
]
