from companion_core.domain.conversation import ConversationLevel
from companion_core.flows.turn_graph import build_turn_graph, commentary_router


class RecordingSteps:
    def __init__(self):
        self.calls = []

    def context_node(self, state):
        self.calls.append("context")
        return {"messages": []}

    def primary_node(self, state):
        self.calls.append("primary")
        return {"main_response": "answer"}

    def persist_node(self, state):
        self.calls.append("persist")
        return {"persisted": []}

    def commentary_node(self, state):
        self.calls.append("commentary")
        return {"commentary": "nice"}


def _run(level):
    steps = RecordingSteps()
    final = build_turn_graph(steps).invoke({"trace_id": "tr-test", "text": "hi", "level": level, "commentary": None})
    return steps.calls, final


def test_default_level_runs_commentary():
    calls, final = _run(ConversationLevel.DEFAULT)
    assert calls == ["context", "primary", "persist", "commentary"]
    assert final["main_response"] == "answer"
    assert final["commentary"] == "nice"


def test_other_levels_stop_after_persist():
    for level in (ConversationLevel.DIALOGUE, ConversationLevel.ANALYSIS):
        calls, final = _run(level)
        assert calls == ["context", "primary", "persist"]
        assert final["commentary"] is None


def test_router():
    assert commentary_router({"level": ConversationLevel.DEFAULT}) == "commentary"
    assert commentary_router({"level": ConversationLevel.DIALOGUE}) == "end"
