import pytest

from src.chat.attachments import AttachmentBuffer, AttachmentCandidate
from src.chat.errors import ValidationError
from src.chat.reducer import MessageStreamReducer
from src.config.loader import get_int_env
from src.config.settings import ChatSettings


def test_defaults():
    settings = ChatSettings()
    assert settings.max_attachment_bytes == 5 * 1024 * 1024
    assert settings.allowed_content_types == ("image/jpeg", "image/png", "application/pdf")
    assert settings.canonical_url("abc") == "/chat/abc"


def test_from_env(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_MAX_BYTES", "1024")
    monkeypatch.setenv("ATTACHMENT_ALLOWED_TYPES", "image/png, image/gif,")
    monkeypatch.setenv("HISTORY_PREVIEW_LENGTH", "12")
    monkeypatch.setenv("CHAT_URL_PREFIX", "/c/")

    settings = ChatSettings.from_env()

    assert settings.max_attachment_bytes == 1024
    assert settings.allowed_content_types == ("image/png", "image/gif")
    assert settings.preview_length == 12
    assert settings.canonical_url("abc") == "/c/abc"


def test_invalid_int_falls_back(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_MAX_BYTES", "lots")
    assert get_int_env("ATTACHMENT_MAX_BYTES", 7) == 7


def test_core_defaults_follow_the_environment(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_MAX_BYTES", "100")
    monkeypatch.setenv("ATTACHMENT_ALLOWED_TYPES", "image/png")
    monkeypatch.setenv("CHAT_URL_PREFIX", "/c")

    buffer = AttachmentBuffer()
    with pytest.raises(ValidationError) as excinfo:
        buffer.add(AttachmentCandidate(url="u1", name="big.png", content_type="image/png", size=101))
    assert excinfo.value.reason == "size"
    with pytest.raises(ValidationError) as excinfo:
        buffer.add(AttachmentCandidate(url="u2", name="doc.pdf", content_type="application/pdf", size=10))
    assert excinfo.value.reason == "type"

    reducer = MessageStreamReducer("s1")
    reducer.append_user_message("hello")
    assert reducer.finish_turn().url == "/c/s1"
