import pytest

from src.chat.attachments import AttachmentBuffer, AttachmentCandidate
from src.chat.errors import ValidationError
from src.config.settings import ChatSettings

MIB = 1024 * 1024


def _candidate(name: str = "a.png", content_type: str = "image/png", size: int = MIB) -> AttachmentCandidate:
    return AttachmentCandidate(url=f"https://files/{name}", name=name, content_type=content_type, size=size)


def test_six_mib_file_is_rejected_for_size():
    buffer = AttachmentBuffer()
    with pytest.raises(ValidationError) as excinfo:
        buffer.add(_candidate(size=6 * MIB))
    assert excinfo.value.reason == "size"
    assert excinfo.value.limit == 5 * MIB
    assert buffer.items == ()


def test_plain_text_file_is_rejected_for_type():
    buffer = AttachmentBuffer()
    with pytest.raises(ValidationError) as excinfo:
        buffer.add(_candidate(name="notes.txt", content_type="text/plain"))
    assert excinfo.value.reason == "type"
    assert "image/png" in excinfo.value.limit


def test_size_is_checked_before_type():
    buffer = AttachmentBuffer()
    with pytest.raises(ValidationError) as excinfo:
        buffer.add(_candidate(content_type="text/plain", size=6 * MIB))
    assert excinfo.value.reason == "size"


def test_png_is_accepted():
    buffer = AttachmentBuffer()
    attachment = buffer.add(_candidate())
    assert attachment.content_type == "image/png"
    assert buffer.items == (attachment,)


def test_exactly_five_mib_is_accepted():
    AttachmentBuffer().add(_candidate(size=5 * MIB))


def test_flush_drains_in_order():
    buffer = AttachmentBuffer()
    first = buffer.add(_candidate("a.png"))
    second = buffer.add(_candidate("b.pdf", "application/pdf"))

    assert buffer.flush() == (first, second)
    assert buffer.flush() == ()


def test_remove_by_url():
    buffer = AttachmentBuffer()
    buffer.add(_candidate("a.png"))
    kept = buffer.add(_candidate("b.jpg", "image/jpeg"))

    buffer.remove("https://files/a.png")
    buffer.remove("https://files/missing.png")

    assert buffer.items == (kept,)


def test_flush_refused_while_uploading():
    buffer = AttachmentBuffer()
    buffer.begin_upload("big.pdf")
    assert buffer.is_uploading
    with pytest.raises(ValidationError) as excinfo:
        buffer.flush()
    assert excinfo.value.reason == "uploading"

    buffer.end_upload("big.pdf")
    assert buffer.flush() == ()


def test_limits_come_from_settings():
    settings = ChatSettings(max_attachment_bytes=MIB, allowed_content_types=("text/plain",))
    buffer = AttachmentBuffer(settings)
    buffer.add(_candidate("notes.txt", "text/plain", size=MIB))
    with pytest.raises(ValidationError):
        buffer.add(_candidate(size=MIB))
