from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from src.chat.convert import to_langchain_messages
from src.chat.models import Attachment, Message, Role, ToolInvocation, ToolState


def test_session_log_exports_tool_calls_and_results():
    messages = [
        Message(
            id="m1",
            role=Role.USER,
            session_id="s1",
            content="What's the weather in Paris?",
            attachments=(Attachment(url="https://files/a.png", name="a.png", content_type="image/png"),),
        ),
        Message(
            id="m2",
            role=Role.ASSISTANT,
            session_id="s1",
            content="It is 18 degrees.",
            tool_invocations=[
                ToolInvocation("t1", "getWeather", ToolState.RESULT, {"temp": 18}),
                ToolInvocation("t2", "searchFlights", ToolState.CANCELLED),
            ],
        ),
    ]

    converted = to_langchain_messages(messages)

    assert [type(message) for message in converted] == [HumanMessage, AIMessage, ToolMessage]
    human, ai, tool = converted
    assert human.content[0] == {"type": "text", "text": "What's the weather in Paris?"}
    assert human.content[1]["image_url"]["url"] == "https://files/a.png"
    assert [call["id"] for call in ai.tool_calls] == ["t1"]
    assert tool.tool_call_id == "t1"
    assert tool.content == '{"temp": 18}'


def test_plain_user_message_keeps_text_content():
    converted = to_langchain_messages([Message(id="m1", role=Role.USER, session_id="s1", content="hi")])
    assert converted[0].content == "hi"
