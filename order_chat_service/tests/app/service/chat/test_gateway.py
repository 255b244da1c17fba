import json

import pytest
from starlette.websockets import WebSocketDisconnect

from order_chat_service.app.service.auth import TokenAuthenticator
from order_chat_service.app.service.chat.gateway import ChatGateway
from order_chat_service.app.service.exceptions import (
    AuthenticationError,
    AuthorizationError,
    OrderNotFoundError,
    ValidationError,
)
from order_chat_service.tests.fakes import TEST_JWT_SECRET, FakeConnection, make_token, seed_order


@pytest.fixture
def gateway(order_store, registry, pipeline):
    return ChatGateway(TokenAuthenticator(TEST_JWT_SECRET, "HS256"), order_store, registry, pipeline)


@pytest.mark.asyncio
async def test_owner_joins_room_and_receives_connection_frame(gateway, order_store, registry):
    order = await seed_order(order_store)
    conn = FakeConnection()

    session = await gateway.connect(conn, make_token("user-1"), order.id, "user")

    assert (session.order_id, session.user_id, session.user_type) == (order.id, "user-1", "user")
    assert conn.sent == [{"type": "connection", "status": "connected", "orderId": order.id, "userType": "user"}]
    assert await registry.get(conn) == session


@pytest.mark.asyncio
async def test_user_type_comes_from_role_not_the_client(gateway, order_store):
    order = await seed_order(order_store)

    admin_session = await gateway.connect(FakeConnection("a"), make_token("admin-2", "web_admin"), order.id, "user")
    user_session = await gateway.connect(FakeConnection("u"), make_token("user-1"), order.id, "admin")

    assert admin_session.user_type == "admin"
    assert user_session.user_type == "user"


@pytest.mark.asyncio
async def test_bearer_prefix_is_accepted(gateway, order_store):
    order = await seed_order(order_store)
    session = await gateway.connect(FakeConnection(), "Bearer " + make_token("user-1"), order.id)
    assert session.user_id == "user-1"


@pytest.mark.asyncio
async def test_handshake_failures_register_nothing(gateway, order_store, registry):
    order = await seed_order(order_store)
    disabled = await seed_order(order_store, chat_status="Disabled")

    with pytest.raises(AuthenticationError):
        await gateway.connect(FakeConnection(), None, order.id)
    with pytest.raises(AuthenticationError):
        await gateway.connect(FakeConnection(), make_token("user-1", secret="some-other-secret-0123456789abcdef"), order.id)
    with pytest.raises(ValidationError):
        await gateway.connect(FakeConnection(), make_token("user-1"), None)
    with pytest.raises(OrderNotFoundError):
        await gateway.connect(FakeConnection(), make_token("user-1"), "missing")
    with pytest.raises(AuthorizationError):
        await gateway.connect(FakeConnection(), make_token("user-1"), disabled.id)
    with pytest.raises(AuthorizationError):
        await gateway.connect(FakeConnection(), make_token("user-2"), order.id)

    assert await registry.connection_count() == 0


@pytest.mark.asyncio
async def test_frames_flow_through_pipeline(gateway, order_store, chat_store):
    order = await seed_order(order_store)
    user_conn, admin_conn = FakeConnection("u"), FakeConnection("a")
    await gateway.connect(user_conn, make_token("user-1"), order.id)
    await gateway.connect(admin_conn, make_token("admin-1", "app_admin"), order.id)

    message = await gateway.handle_frame(admin_conn, json.dumps({"message": "Documents received"}))

    assert message.sender_type == "admin"
    assert user_conn.frames("message")[0]["data"]["content"] == "Documents received"
    assert len(chat_store.messages) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "\"just a string\""])
async def test_malformed_frames_error_the_origin(gateway, order_store, raw):
    order = await seed_order(order_store)
    conn = FakeConnection()
    await gateway.connect(conn, make_token("user-1"), order.id)

    assert await gateway.handle_frame(conn, raw) is None
    assert conn.frames("error") == [{"type": "error", "message": "Invalid message format"}]


@pytest.mark.asyncio
async def test_disconnect_removes_membership(gateway, order_store, registry):
    order = await seed_order(order_store)
    conn = FakeConnection()
    await gateway.connect(conn, make_token("user-1"), order.id)

    await gateway.disconnect(conn)
    await gateway.disconnect(conn)

    assert await registry.get(conn) is None
    assert await registry.connection_count() == 0


@pytest.mark.asyncio
async def test_client_lost_before_connection_frame_is_unregistered(gateway, order_store, registry):
    order = await seed_order(order_store)
    conn = FakeConnection()
    conn.drop_mid_send()

    with pytest.raises(WebSocketDisconnect):
        await gateway.connect(conn, make_token("user-1"), order.id)

    assert await registry.get(conn) is None
    assert await registry.connection_count() == 0
