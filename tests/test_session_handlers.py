import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from formcall.errors import (
    CallConnectionError,
    HandshakeTimeoutError,
    HandshakeValidationError,
    ServerError,
)
from formcall.handlers.session_handlers import (
    CLOSE_CODE_INTERNAL_ERROR,
    handle_error,
    wait_for_params,
)
from formcall.models.form_schema import default_schema
from formcall.models.message_schemas import CallParams


@pytest.mark.asyncio
class TestWaitForParams:

    async def test_valid_params(self):
        # Setup
        websocket = AsyncMock()
        payload = json.dumps(CallParams(formSchema=default_schema()).to_payload())
        websocket.receive.return_value = {"type": "websocket.receive", "text": payload}

        # Execute
        params = await wait_for_params(websocket, timeout=1)

        # Assert
        assert [f.name for f in params.formSchema.fields][:2] == ["firstName", "lastName"]

    async def test_params_without_schema(self):
        websocket = AsyncMock()
        websocket.receive.return_value = {"type": "websocket.receive", "text": "{}"}

        params = await wait_for_params(websocket, timeout=1)

        assert params.formSchema is None

    async def test_timeout(self):
        websocket = AsyncMock()

        async def never():
            await asyncio.sleep(10)

        websocket.receive.side_effect = never

        with pytest.raises(HandshakeTimeoutError) as exc_info:
            await wait_for_params(websocket, timeout=0.05)
        assert exc_info.value.code.value == "MissingParams"

    async def test_invalid_json(self):
        websocket = AsyncMock()
        websocket.receive.return_value = {"type": "websocket.receive", "text": "{not json"}

        with pytest.raises(HandshakeValidationError) as exc_info:
            await wait_for_params(websocket, timeout=1)
        assert exc_info.value.code.value == "BadRequest"

    async def test_invalid_field_shape(self):
        websocket = AsyncMock()
        field = {"id": "a", "name": "a", "type": "text", "label": "A", "required": False, "order": "1"}
        payload = {"formSchema": {"fields": [field]}}
        websocket.receive.return_value = {"type": "websocket.receive", "text": json.dumps(payload)}

        with pytest.raises(HandshakeValidationError):
            await wait_for_params(websocket, timeout=1)

    async def test_binary_payload(self):
        websocket = AsyncMock()
        websocket.receive.return_value = {"type": "websocket.receive", "bytes": b"\x00\x01"}

        with pytest.raises(HandshakeValidationError):
            await wait_for_params(websocket, timeout=1)

    async def test_disconnect(self):
        websocket = AsyncMock()
        websocket.receive.return_value = {"type": "websocket.disconnect", "code": 1000}

        with pytest.raises(CallConnectionError):
            await wait_for_params(websocket, timeout=1)


@pytest.mark.asyncio
class TestHandleError:

    async def test_handshake_error_closes_with_bad_params_code(self):
        websocket = AsyncMock()

        await handle_error(websocket, HandshakeTimeoutError("Call parameters were not received in time"))

        sent = json.loads(websocket.send_text.call_args[0][0])
        assert sent == {
            "type": "call.error",
            "code": "MissingParams",
            "reason": "Call parameters were not received in time",
        }
        websocket.close.assert_called_once_with(code=4400, reason="MissingParams")

    async def test_validation_error(self):
        websocket = AsyncMock()

        await handle_error(websocket, HandshakeValidationError("Invalid call parameters"))

        sent = json.loads(websocket.send_text.call_args[0][0])
        assert sent["code"] == "BadRequest"
        websocket.close.assert_called_once_with(code=4400, reason="BadRequest")

    async def test_other_error_uses_internal_close_code(self):
        websocket = AsyncMock()

        await handle_error(websocket, ServerError())

        sent = json.loads(websocket.send_text.call_args[0][0])
        assert sent["reason"] == "InternalServer"
        websocket.close.assert_called_once_with(code=CLOSE_CODE_INTERNAL_ERROR, reason="InternalServer")

    async def test_already_closed_connection(self):
        websocket = AsyncMock()
        websocket.send_text.side_effect = RuntimeError("closed")

        await handle_error(websocket, HandshakeValidationError("bad"))

        websocket.close.assert_not_called()
