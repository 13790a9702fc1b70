"""LangGraph flows used by the orchestrator."""

from companion_core.flows.state import TurnState
from companion_core.flows.turn_graph import build_turn_graph

__all__ = ["TurnState", "build_turn_graph"]
