"""
Tests for the RunLoop state machine.

Tests:
- Immediate completion and multi-round runs
- Failure on planning, execution and refinement
- Max-rounds safeguard
- Cancellation at model-call boundaries
- Transcript assembly
"""

import asyncio

import pytest

from maestro.client import ModelRole
from maestro.errors import ConfigError, ModelError
from maestro.models import TerminationCause
from maestro.orchestrator import RunLoop, RunState
from maestro.prompts import build_orchestrator_prompt, build_refiner_prompt
from maestro.transcript import REFINEMENT_FAILED_MARKER, REFINEMENT_SKIPPED_MARKER, render_transcript

from tests.helpers import RecordingSink, ScriptedClient, failing_sink

OBJECTIVE = "Write a hello-world function in three languages"


class TestCompletion:
	@pytest.mark.asyncio
	async def test_immediate_completion_skips_execution(self):
		client = ScriptedClient(
			planning=["The task is complete: nothing to do"],
			refining=["final"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.COMPLETION
		assert transcript.exchanges == ()
		assert client.calls_for(ModelRole.EXECUTING) == []
		refine_calls = client.calls_for(ModelRole.REFINING)
		assert len(refine_calls) == 1
		assert refine_calls[0]["main_text"] == build_refiner_prompt(OBJECTIVE, [])

	@pytest.mark.asyncio
	async def test_n_rounds_then_complete(self):
		client = ScriptedClient(
			planning=["task 1", "task 2", "task 3", "The task is complete: ok"],
			executing=["result 1", "result 2", "result 3"],
			refining=["merged"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert [e.instruction for e in transcript.exchanges] == ["task 1", "task 2", "task 3"]
		assert [e.result for e in transcript.exchanges] == ["result 1", "result 2", "result 3"]
		refine_calls = client.calls_for(ModelRole.REFINING)
		assert len(refine_calls) == 1
		assert refine_calls[0]["main_text"] == build_refiner_prompt(
			OBJECTIVE, ["result 1", "result 2", "result 3"]
		)

	@pytest.mark.asyncio
	async def test_planner_sees_accumulated_results(self):
		client = ScriptedClient(
			planning=["task 1", "task 2", "The task is complete: ok"],
			executing=["result 1", "result 2"],
			refining=["merged"],
		)
		await RunLoop.build(client).run(OBJECTIVE)

		planning = client.calls_for(ModelRole.PLANNING)
		assert planning[0]["main_text"] == build_orchestrator_prompt(OBJECTIVE, [])
		assert planning[1]["main_text"] == build_orchestrator_prompt(OBJECTIVE, ["result 1"])
		assert planning[2]["main_text"] == build_orchestrator_prompt(OBJECTIVE, ["result 1", "result 2"])

	@pytest.mark.asyncio
	async def test_executor_sees_prior_task_summaries(self):
		client = ScriptedClient(
			planning=["task 1", "task 2", "The task is complete: ok"],
			executing=["result 1", "result 2"],
			refining=["merged"],
		)
		await RunLoop.build(client).run(OBJECTIVE)

		executing = client.calls_for(ModelRole.EXECUTING)
		assert executing[0]["side_context"] is None
		assert "Task: task 1\nResult: result 1" in executing[1]["side_context"]

	@pytest.mark.asyncio
	async def test_hello_world_scenario(self):
		client = ScriptedClient(
			planning=["Write it in Python", "The task is complete: done"],
			executing=["def hello(): print('hi')"],
			refining=["Consolidated hello world in Python"],
		)
		loop = RunLoop.build(client)
		transcript = await loop.run(OBJECTIVE)

		assert loop.state == RunState.TERMINATED
		assert transcript.completed
		assert transcript.completion_note == "done"
		assert client.calls_for(ModelRole.PLANNING)[1]["main_text"] == build_orchestrator_prompt(
			OBJECTIVE, ["def hello(): print('hi')"]
		)
		assert client.calls_for(ModelRole.REFINING)[0]["main_text"] == build_refiner_prompt(
			OBJECTIVE, ["def hello(): print('hi')"]
		)

		text = transcript.text
		assert text.count("Task 1:") == 1
		assert "Task 2:" not in text
		assert "Prompt: Write it in Python" in text
		assert "Result: def hello(): print('hi')" in text
		assert text.endswith("Consolidated hello world in Python")


class TestFailures:
	@pytest.mark.asyncio
	async def test_planning_failure_on_first_round_still_refines(self):
		client = ScriptedClient(
			planning=[ModelError("unauthorized", role="planning")],
			refining=["partial"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.FAILURE
		assert "unauthorized" in transcript.failure_reason
		assert transcript.exchanges == ()
		assert client.calls_for(ModelRole.REFINING)[0]["main_text"] == build_refiner_prompt(OBJECTIVE, [])
		assert transcript.final_artifact == "partial"

	@pytest.mark.parametrize("k", [1, 2, 3])
	@pytest.mark.asyncio
	async def test_execution_failure_on_round_k(self, k):
		results = [f"result {i}" for i in range(1, k)]
		client = ScriptedClient(
			planning=[f"task {i}" for i in range(1, k + 1)],
			executing=results + [ModelError("network down")],
			refining=["partial"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.FAILURE
		assert len(transcript.exchanges) == k - 1
		assert client.calls_for(ModelRole.REFINING)[0]["main_text"] == build_refiner_prompt(OBJECTIVE, results)

	@pytest.mark.asyncio
	async def test_failed_round_records_no_partial_exchange(self):
		client = ScriptedClient(
			planning=["task 1", "task 2"],
			executing=["result 1", ModelError("boom")],
			refining=["partial"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert [e.instruction for e in transcript.exchanges] == ["task 1"]
		assert "task 2" not in transcript.text

	@pytest.mark.asyncio
	async def test_refinement_failure_keeps_exchanges(self):
		client = ScriptedClient(
			planning=["task 1", "The task is complete: ok"],
			executing=["result 1"],
			refining=[ModelError("overloaded")],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.COMPLETION
		assert transcript.final_artifact is None
		assert transcript.refinement_failed
		text = transcript.text
		assert text
		assert "Result: result 1" in text
		assert REFINEMENT_FAILED_MARKER in text

	@pytest.mark.asyncio
	async def test_failing_progress_sink_does_not_fail_run(self):
		client = ScriptedClient(
			planning=["task 1", "The task is complete: ok"],
			executing=["result 1"],
			refining=["merged"],
		)
		transcript = await RunLoop.build(client, sink=failing_sink).run(OBJECTIVE)
		assert transcript.completed
		assert transcript.final_artifact == "merged"


class TestMaxRounds:
	@pytest.mark.asyncio
	async def test_stops_after_max_rounds_and_refines(self):
		client = ScriptedClient(
			planning=[f"task {i}" for i in range(10)],
			executing=[f"result {i}" for i in range(10)],
			refining=["merged"],
		)
		transcript = await RunLoop.build(client, max_rounds=3).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.MAX_ROUNDS
		assert len(transcript.exchanges) == 3
		assert len(client.calls_for(ModelRole.PLANNING)) == 3
		assert transcript.final_artifact == "merged"
		assert "maximum number of rounds" in transcript.text

	def test_rejects_non_positive_max_rounds(self):
		with pytest.raises(ConfigError):
			RunLoop.build(ScriptedClient(), max_rounds=0)


class TestCancellation:
	@pytest.mark.asyncio
	async def test_cancel_before_start_makes_no_calls(self):
		client = ScriptedClient()
		loop = RunLoop.build(client)
		loop.cancel()

		transcript = await loop.run(OBJECTIVE)

		assert client.calls == []
		assert transcript.termination == TerminationCause.CANCELLED
		assert REFINEMENT_SKIPPED_MARKER in transcript.text

	@pytest.mark.asyncio
	async def test_cancel_during_execution_stops_at_next_boundary(self):
		cancel_event = asyncio.Event()
		client = ScriptedClient(
			planning=["task 1", "task 2"],
			executing=["result 1", "result 2"],
			refining=["merged"],
		)

		def sink(text):
			# Cancel as soon as the first sub-task result arrives
			if "result 1" in text:
				cancel_event.set()

		transcript = await RunLoop.build(client, sink=sink, cancel_event=cancel_event).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.CANCELLED
		assert [e.result for e in transcript.exchanges] == ["result 1"]
		assert len(client.calls_for(ModelRole.PLANNING)) == 1
		assert client.calls_for(ModelRole.REFINING) == []

	@pytest.mark.asyncio
	async def test_cancel_after_planning_skips_execution(self):
		cancel_event = asyncio.Event()
		client = ScriptedClient(
			planning=["task 1"],
			executing=["result 1"],
			refining=["merged"],
		)

		def sink(text):
			if "sending task to the sub-agent" in text:
				cancel_event.set()

		transcript = await RunLoop.build(client, sink=sink, cancel_event=cancel_event).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.CANCELLED
		assert transcript.exchanges == ()
		assert client.calls_for(ModelRole.EXECUTING) == []
		assert client.calls_for(ModelRole.REFINING) == []

	@pytest.mark.asyncio
	async def test_completion_verdict_wins_over_late_cancel(self):
		cancel_event = asyncio.Event()
		client = ScriptedClient(
			planning=["task 1", "The task is complete: done"],
			executing=["result 1"],
			refining=["merged"],
		)

		def sink(text):
			if "objective is complete" in text:
				cancel_event.set()

		transcript = await RunLoop.build(client, sink=sink, cancel_event=cancel_event).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.COMPLETION
		assert transcript.final_artifact == "merged"
		assert REFINEMENT_SKIPPED_MARKER not in transcript.text

	@pytest.mark.asyncio
	async def test_failure_during_cancel_stays_a_failure(self):
		cancel_event = asyncio.Event()
		client = ScriptedClient(
			planning=[ModelError("unauthorized", role="planning")],
			refining=["partial"],
		)

		def sink(text):
			# Cancel while the planning call is in flight
			if text.startswith("Calling the orchestrator"):
				cancel_event.set()

		transcript = await RunLoop.build(client, sink=sink, cancel_event=cancel_event).run(OBJECTIVE)

		assert transcript.termination == TerminationCause.FAILURE
		assert "unauthorized" in transcript.failure_reason
		assert "the run was cancelled" not in transcript.text


class TestTranscriptAssembly:
	@pytest.mark.asyncio
	async def test_rendering_is_idempotent(self):
		client = ScriptedClient(
			planning=["task 1", "task 2", "The task is complete: ok"],
			executing=["result 1", "result 2"],
			refining=["merged"],
		)
		transcript = await RunLoop.build(client).run(OBJECTIVE)
		assert render_transcript(transcript) == render_transcript(transcript)
		assert transcript.text == transcript.text

	@pytest.mark.asyncio
	async def test_progress_is_reported_in_order(self):
		sink = RecordingSink()
		client = ScriptedClient(
			planning=["task 1", "The task is complete: ok"],
			executing=["result 1"],
			refining=["merged"],
		)
		await RunLoop.build(client, sink=sink).run(OBJECTIVE)

		joined = "\n".join(sink.messages)
		assert joined.index("task 1") < joined.index("result 1") < joined.index("merged")

	@pytest.mark.asyncio
	async def test_empty_objective_rejected(self):
		with pytest.raises(ValueError):
			await RunLoop.build(ScriptedClient()).run("")
