"""Smoke tests for simulated matches and the simulation CLI."""

from __future__ import annotations

import json

from framework.agents.random_agent import RandomAgent
from framework.agents.scripted_agent import QueueAgent, ScriptedAgent
from framework.events import EventType, read_jsonl
from framework.result import TerminationReason
from tentaizu.tentaizu_config import MatchConfig
from tentaizu.tentaizu_moves import EndTurn
from tentaizu.tentaizu_simulation import SimulationConfig, main, run_simulated_match


def test_seeded_random_matches_finish_and_converge() -> None:
    for seed in (11, 12, 13):
        run = run_simulated_match(seed)

        assert run.result is not None
        assert run.result.termination_reason in set(TerminationReason)
        assert run.converged
        assert run.events[0].event_type is EventType.BOARD_BUILT
        assert run.events[-1].event_type in {EventType.GUESS_APPLIED, EventType.MATCH_ENDED}


def test_idle_agents_hit_turn_deadlines() -> None:
    agents = {
        "1": RandomAgent("idle-1", pass_probability=0.9),
        "2": RandomAgent("idle-2", pass_probability=0.9),
    }
    config = MatchConfig(turn_duration=2.0, countdown=0.5)

    run = run_simulated_match(4, config, agents, sim_config=SimulationConfig(tick_interval=0.5))

    assert run.result is not None
    assert run.converged
    turn_events = [event for event in run.events if event.event_type is EventType.TURN_STARTED]
    assert any(event.payload.get("reason") == "timeout" for event in turn_events)


def test_agents_that_only_end_turns_never_finish() -> None:
    agents = {
        player_id: ScriptedAgent(f"passive-{player_id}", policy=lambda observation, legal_moves: EndTurn())
        for player_id in ("1", "2")
    }

    run = run_simulated_match(
        9,
        MatchConfig(turn_duration=5.0),
        agents,
        sim_config=SimulationConfig(tick_interval=1.0, max_seconds=20.0),
    )

    assert run.result is None
    assert run.converged


def test_event_log_written_to_configured_directory(tmp_path) -> None:
    run = run_simulated_match(21, sim_config=SimulationConfig(event_log_dir=tmp_path), match_id="logged")

    path = tmp_path / "logged.jsonl"
    assert path.exists()
    assert read_jsonl(path) == run.events


def test_cli_prints_result_json(tmp_path, capsys) -> None:
    log_path = tmp_path / "cli.jsonl"

    exit_code = main(["--seed", "3", "--grid-size", "5", "--star-count", "4", "--log-path", str(log_path)])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["converged"] is True
    assert payload["result"]["termination_reason"] in {reason.value for reason in TerminationReason}
    assert log_path.exists()


def test_queue_agents_play_their_intents_then_pass() -> None:
    agents = {player_id: QueueAgent(f"queue-{player_id}", [EndTurn()]) for player_id in ("1", "2")}

    run = run_simulated_match(
        2,
        MatchConfig(turn_duration=3.0),
        agents,
        sim_config=SimulationConfig(tick_interval=1.0, max_seconds=15.0),
    )

    assert run.result is None
    assert all(agent.remaining == 0 for agent in agents.values())
    reasons = [event.payload.get("reason") for event in run.events if event.event_type is EventType.TURN_STARTED]
    assert reasons[:3] == ["first_turn", "end_requested", "end_requested"]
    assert "timeout" in reasons
