# Unit Tests for the Chat Message Pipeline
import base64

import pytest

from order_chat_service.app.service.chat.models import ChatSession
from order_chat_service.app.service.chat.pipeline import ChatMessagePipeline
from order_chat_service.app.service.files import MAX_FILE_SIZE
from order_chat_service.tests.fakes import FakeConnection, FakeObjectStorage


async def _join(registry, name="user", order_id="order-a", user_id="user-1", user_type="user"):
    conn = FakeConnection(name)
    role = "user" if user_type == "user" else "app_admin"
    await registry.register(conn, ChatSession(order_id=order_id, user_id=user_id, user_type=user_type, role=role))
    return conn


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


@pytest.fixture
async def room(registry):
    origin = await _join(registry, "origin")
    peer = await _join(registry, "peer", user_id="admin-1", user_type="admin")
    elsewhere = await _join(registry, "elsewhere", order_id="order-b", user_id="user-2")
    return origin, peer, elsewhere


# --- text messages ---

@pytest.mark.asyncio
async def test_text_message_is_persisted_then_broadcast_to_room(pipeline, chat_store, room):
    origin, peer, elsewhere = room

    message = await pipeline.handle_event(origin, {"message": "  hello there  "})

    assert chat_store.messages[message.id].content == "hello there"
    assert message.sender == "user-1"
    assert message.sender_type == "user"
    assert message.message_type == "text"
    expected = {"type": "message", "data": message.model_dump(mode="json")}
    assert origin.sent == [expected]
    assert peer.sent == [expected]
    assert elsewhere.sent == []


@pytest.mark.asyncio
async def test_client_supplied_identity_is_ignored(pipeline, room):
    origin, _, _ = room

    message = await pipeline.handle_event(
        origin, {"message": "hi", "sender": "admin-9", "senderType": "admin", "orderId": "order-b"}
    )

    assert (message.sender, message.sender_type, message.order_id) == ("user-1", "user", "order-a")


@pytest.mark.asyncio
@pytest.mark.parametrize("event, detail", [
    ({"message": "   "}, "Message cannot be empty"),
    ({}, "Message cannot be empty"),
    ({"message": "x" * 5001}, "Message cannot exceed 5000 characters"),
    ({"file": "not-an-object"}, "Invalid message format"),
])
async def test_rejected_text_errors_only_the_origin(pipeline, chat_store, room, event, detail):
    origin, peer, _ = room

    assert await pipeline.handle_event(origin, event) is None

    assert origin.sent == [{"type": "error", "message": detail}]
    assert peer.sent == []
    assert chat_store.messages == {}


@pytest.mark.asyncio
async def test_unbound_connection_is_rejected(pipeline, chat_store):
    stray = FakeConnection("stray")

    assert await pipeline.handle_event(stray, {"message": "hi"}) is None

    assert stray.frames("error") == [{"type": "error", "message": "Not connected to an order chat"}]
    assert chat_store.messages == {}


# --- file messages ---

@pytest.mark.asyncio
async def test_generic_binary_pdf_is_resolved_from_extension(pipeline, chat_store, object_storage, room):
    origin, peer, _ = room

    message = await pipeline.handle_event(origin, {"file": {
        "data": _b64(b"%PDF-1.7 minimal"),
        "name": "scan.pdf",
        "type": "application/octet-stream",
        "size": 16,
    }})

    assert message.message_type == "pdf"
    assert message.mime_type == "application/pdf"
    assert message.content == "scan.pdf"
    assert message.file_name == "scan.pdf"
    assert message.file_size == 16
    assert message.file_key == object_storage.puts[0]["key"]
    assert message.file_url.endswith(message.file_key)
    assert peer.frames("message")[0]["data"]["file_url"] == message.file_url
    assert message.id in chat_store.messages


@pytest.mark.asyncio
async def test_data_url_supplies_the_type(pipeline, room):
    origin, _, _ = room

    message = await pipeline.handle_event(origin, {"file": {
        "data": "data:image/png;base64," + _b64(b"\x89PNG\r\n"),
        "name": "photo.png",
    }})

    assert message.message_type == "image"
    assert message.mime_type == "image/png"


@pytest.mark.asyncio
async def test_word_and_spreadsheet_types_map_to_message_types(pipeline, room):
    origin, _, _ = room
    docx = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

    document = await pipeline.handle_event(origin, {"file": {"data": _b64(b"PK"), "name": "cv.docx", "type": docx}})
    sheet = await pipeline.handle_event(origin, {"file": {"data": _b64(b"PK"), "name": "q.xls", "type": "application/vnd.ms-excel"}})
    archive = await pipeline.handle_event(origin, {"file": {"data": _b64(b"PK"), "name": "a.zip", "type": "application/zip"}})

    assert (document.message_type, sheet.message_type, archive.message_type) == ("document", "spreadsheet", "file")


@pytest.mark.asyncio
async def test_oversized_file_is_rejected_before_any_upload(pipeline, chat_store, object_storage, room):
    origin, peer, _ = room

    result = await pipeline.handle_event(origin, {"file": {
        "data": _b64(b"0" * 64),
        "name": "big.pdf",
        "type": "application/pdf",
        "size": MAX_FILE_SIZE + 1,
    }})

    assert result is None
    assert origin.sent == [{"type": "error", "message": "File size exceeds 10MB limit"}]
    assert object_storage.puts == []
    assert chat_store.messages == {}
    assert peer.sent == []


@pytest.mark.asyncio
async def test_decoded_size_is_checked_when_size_is_understated(pipeline, object_storage, room):
    origin, _, _ = room

    result = await pipeline.handle_event(origin, {"file": {
        "data": _b64(b"0" * (MAX_FILE_SIZE + 1)),
        "name": "big.pdf",
        "type": "application/pdf",
        "size": 10,
    }})

    assert result is None
    assert origin.frames("error")[0]["message"] == "File size exceeds 10MB limit"
    assert object_storage.puts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("file_frame, detail", [
    ({"data": _b64(b"x"), "name": "archive.xyz", "type": "application/octet-stream"}, 'File type "application/octet-stream" not allowed'),
    ({"data": _b64(b"x"), "name": "run.exe", "type": "application/x-msdownload"}, 'File type "application/x-msdownload" not allowed'),
    ({"data": "%%% not base64 %%%", "name": "a.pdf", "type": "application/pdf"}, "File data is not valid base64"),
    ({"name": "a.pdf", "type": "application/pdf"}, "No file data provided"),
    ({"data": _b64(b"x"), "name": "mystery"}, "File type could not be determined"),
])
async def test_invalid_files_are_reported_to_origin(pipeline, object_storage, room, file_frame, detail):
    origin, peer, _ = room

    assert await pipeline.handle_event(origin, {"file": file_frame}) is None

    assert origin.sent == [{"type": "error", "message": detail}]
    assert peer.sent == []
    assert object_storage.puts == []


@pytest.mark.asyncio
async def test_storage_failure_sends_generic_error(registry, chat_store, room):
    origin, peer, _ = room
    pipeline = ChatMessagePipeline(registry, chat_store, FakeObjectStorage(fail=True))

    result = await pipeline.handle_event(origin, {"file": {"data": _b64(b"%PDF"), "name": "a.pdf", "type": "application/pdf"}})

    assert result is None
    assert origin.sent == [{"type": "error", "message": "File upload failed"}]
    assert peer.sent == []
    assert chat_store.messages == {}


# --- persistence and delivery ---

@pytest.mark.asyncio
async def test_persistence_failure_means_no_broadcast(pipeline, chat_store, room):
    origin, peer, _ = room
    chat_store.fail_insert = ConnectionError("mongo unreachable")

    assert await pipeline.handle_event(origin, {"message": "hello"}) is None

    assert origin.sent == [{"type": "error", "message": "Failed to save message"}]
    assert peer.sent == []


@pytest.mark.asyncio
async def test_peer_dropping_mid_broadcast_does_not_fail_the_event(pipeline, chat_store, room):
    origin, peer, _ = room
    peer.drop_mid_send()

    message = await pipeline.handle_event(origin, {"message": "still here"})

    assert message.id in chat_store.messages
    assert origin.frames("message")[0]["data"]["content"] == "still here"


@pytest.mark.asyncio
async def test_error_to_closed_origin_is_dropped(pipeline, room):
    origin, _, _ = room
    origin.close()

    assert await pipeline.handle_event(origin, {"message": ""}) is None
    assert origin.sent == []
