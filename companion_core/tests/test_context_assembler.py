import pytest

from companion_core.agents.context_assembler import (
    ContextAssembler,
    build_analysis_messages,
    build_analysis_transcript,
    build_commentary_messages,
)
from companion_core.domain.conversation import ChatMessage, ConversationLevel, Role
from companion_core.domain.exceptions import ValidationError


def _m(role, content, level=ConversationLevel.DEFAULT):
    return ChatMessage(timestamp="2026-01-01T00:00:00+00:00", role=role, content=content, level=level)


ALL_ROLES_HISTORY = [
    _m(Role.USER, "u"),
    _m(Role.ASSISTANT, "a"),
    _m(Role.PERSONA, "p"),
    _m(Role.ANALYST, "x", ConversationLevel.ANALYSIS),
]


def _history_part(messages):
    # 去掉首条 system 和末条当前输入
    return messages[1:-1]


@pytest.mark.parametrize(
    "level, expected",
    [
        (ConversationLevel.DEFAULT, ["u", "a", "[Miku]: p"]),
        (
            ConversationLevel.DIALOGUE,
            ["u", "[AI Assistant Response]: a", "[Miku's Inner Thoughts]: p"],
        ),
        (ConversationLevel.ANALYSIS, ["u", "[Analysis]: x"]),
    ],
)
def test_assemble_filters_and_tags_by_level(level, expected):
    assembler = ContextAssembler("Miku")
    messages = assembler.assemble(level, "sys", ALL_ROLES_HISTORY, "now")
    assert messages[0].role == "system"
    assert messages[0].content == "sys"
    assert [m.content for m in _history_part(messages)] == expected
    assert messages[-1].role == "user"
    assert messages[-1].content == "now"
    # 协议只允许三种角色
    assert {m.role for m in messages} <= {"system", "user", "assistant"}


def test_user_and_assistant_scenario():
    history = [_m(Role.USER, "hi"), _m(Role.ASSISTANT, "hello"), _m(Role.ANALYST, "note")]
    assembler = ContextAssembler()

    default = assembler.assemble(ConversationLevel.DEFAULT, "sys", history, "next")
    assert [(m.role, m.content) for m in _history_part(default)] == [("user", "hi"), ("assistant", "hello")]

    analysis = assembler.assemble(ConversationLevel.ANALYSIS, "sys", history, "next")
    assert [(m.role, m.content) for m in _history_part(analysis)] == [
        ("user", "hi"),
        ("assistant", "[Analysis]: note"),
    ]


def test_empty_history_still_has_system_and_input():
    messages = ContextAssembler().assemble(ConversationLevel.DIALOGUE, "sys", [], "hey")
    assert [(m.role, m.content) for m in messages] == [("system", "sys"), ("user", "hey")]


def test_screenshot_becomes_multi_part_content():
    messages = ContextAssembler().assemble(ConversationLevel.DEFAULT, "sys", [], "look", screenshot=b"png")
    last = messages[-1]
    assert last.role == "user"
    assert [p.type for p in last.content] == ["text", "image"]
    assert last.content[0].text == "look"
    assert last.content[1].image == b"png"
    assert last.text == "look"


def test_screenshot_rejected_outside_default_level():
    with pytest.raises(ValidationError):
        ContextAssembler().assemble(ConversationLevel.ANALYSIS, "sys", [], "look", screenshot=b"png")


def test_invalid_level_rejected():
    with pytest.raises(ValidationError):
        ContextAssembler().assemble(7, "sys", [], "x")


def test_persona_name_is_configurable():
    messages = ContextAssembler("Rin").assemble(
        ConversationLevel.DEFAULT, "sys", [_m(Role.PERSONA, "yay")], "x"
    )
    assert messages[1].content == "[Rin]: yay"


def test_commentary_and_analysis_messages():
    commentary = build_commentary_messages("be cute", "The answer")
    assert commentary[0].content == "be cute"
    assert commentary[1].content == "Here is the AI response to comment on:\n\nThe answer"

    history = [_m(Role.USER, "hi"), _m(Role.PERSONA, "yo")]
    assert build_analysis_transcript(history) == "[user]: hi\n\n[persona]: yo"
    analysis = build_analysis_messages("reflect", history)
    assert analysis[1].content.startswith("Analyze this conversation history:\n\n[user]: hi")
