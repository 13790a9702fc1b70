"""LangGraph construction for a single user turn.

context → primary → persist → (persona_commentary, default level only) → END

primary 失败时异常直接从 invoke() 抛出，persist 与 commentary 都不会执行；
commentary 节点自身吞掉失败，只把 commentary 置为 None。
"""

from __future__ import annotations

from typing import Protocol

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from companion_core.domain.conversation import ConversationLevel
from companion_core.flows.state import TurnState


class TurnSteps(Protocol):
    def context_node(self, state: TurnState) -> TurnState:
        ...

    def primary_node(self, state: TurnState) -> TurnState:
        ...

    def persist_node(self, state: TurnState) -> TurnState:
        ...

    def commentary_node(self, state: TurnState) -> TurnState:
        ...


def commentary_router(state: TurnState) -> str:
    if state.get("level") == ConversationLevel.DEFAULT:
        return "commentary"
    return "end"


def build_turn_graph(steps: TurnSteps) -> CompiledStateGraph:
    graph = StateGraph(TurnState)
    graph.add_node("context", lambda s: steps.context_node(s))
    graph.add_node("primary", lambda s: steps.primary_node(s))
    graph.add_node("persist", lambda s: steps.persist_node(s))
    graph.add_node("persona_commentary", lambda s: steps.commentary_node(s))
    graph.set_entry_point("context")
    graph.add_edge("context", "primary")
    graph.add_edge("primary", "persist")
    graph.add_conditional_edges("persist", commentary_router, {"commentary": "persona_commentary", "end": END})
    graph.add_edge("persona_commentary", END)
    return graph.compile()
