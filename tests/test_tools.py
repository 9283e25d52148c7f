"""Tests for Command, Response and ObjectRef."""

import json
from typing import Union

import pytest
from pydantic import BaseModel, Field

from autopilot.exceptions import ToolValidationError
from autopilot.messages import Function, ToolCall
from autopilot.schema import ParamType, ToolParam
from autopilot.tools import Command, ObjectRef, PendingResponse, Response


# --- Test fixtures ---


class RenameInput(BaseModel):
    target: Union[int, str] = Field(..., description="Object id or path")
    new_name: str


class RenameCommand(Command):
    name = "rename_object"
    description = "Rename an object"
    input_model = RenameInput

    async def execute(self) -> Response:
        args = self.parse_arguments()
        return Response.success(f"Renamed to {args.new_name}")


class ManualParamsCommand(Command):
    name = "manual"
    description = "Declares its parameters by hand"
    params = (ToolParam("count", "How many", required=True, type=ParamType.INTEGER),)


# --- Tests ---


class TestResponse:
    def test_success_and_error_constructors(self):
        ok = Response.success("done", data={"id": 3})
        err = Response.error("nope")
        assert ok.is_success is True
        assert ok.data == {"id": 3}
        assert err.is_success is False
        assert err.data is None

    def test_orchestration_fields_not_serialized(self):
        response = Response.success("done")
        response.reload_required = True
        response.tool_call_id = "call_1"

        payload = json.loads(response.to_content())

        assert payload == {"is_success": True, "message": "done"}

    def test_data_serialized_when_present(self):
        payload = json.loads(Response.error("bad", data=[1, 2]).to_content())
        assert payload == {"is_success": False, "message": "bad", "data": [1, 2]}

    def test_str_is_content(self):
        response = Response.success("ok")
        assert str(response) == response.to_content()


class TestPendingResponse:
    def test_reload_flag_does_not_survive_serialization(self):
        call = ToolCall(id="call_1", function=Function(name="write_script", arguments="{}"))
        response = Response(is_success=True, message="written", reload_required=True)

        restored = PendingResponse.model_validate_json(
            PendingResponse(tool_call=call, response=response).model_dump_json()
        )

        assert restored.tool_call == call
        assert restored.response.message == "written"
        assert restored.response.reload_required is False


class TestCommand:
    def test_params_from_input_model(self):
        names = [p.name for p in RenameCommand.tool_params()]
        assert names == ["target", "new_name"]

    def test_hand_written_params(self):
        params = ManualParamsCommand.tool_params()
        assert len(params) == 1
        assert params[0].type == ParamType.INTEGER

    def test_argument_data_starts_unbound(self):
        assert RenameCommand().argument_data is None

    def test_parse_arguments(self):
        command = RenameCommand()
        command.set_argument_data('{"target": 7, "new_name": "Cube"}')
        args = command.parse_arguments()
        assert args.target == 7
        assert args.new_name == "Cube"

    def test_parse_arguments_invalid_payload(self):
        command = RenameCommand()
        command.set_argument_data('{"target": 7}')
        with pytest.raises(ToolValidationError, match="Invalid arguments for 'rename_object'"):
            command.parse_arguments()

    def test_parse_arguments_malformed_json(self):
        command = RenameCommand()
        command.set_argument_data("{not json")
        with pytest.raises(ToolValidationError):
            command.parse_arguments()

    def test_parse_arguments_without_model(self):
        command = ManualParamsCommand()
        command.set_argument_data('{"count": 1}')
        with pytest.raises(ToolValidationError, match="declares no input model"):
            command.parse_arguments()

    @pytest.mark.asyncio
    async def test_execute(self):
        command = RenameCommand()
        command.set_argument_data('{"target": "Scene/Cube", "new_name": "Box"}')
        result = await command.execute()
        assert result.is_success is True
        assert result.message == "Renamed to Box"

    @pytest.mark.asyncio
    async def test_base_methods_not_implemented(self):
        command = ManualParamsCommand()
        with pytest.raises(NotImplementedError):
            await command.execute()
        with pytest.raises(NotImplementedError):
            await command.undo()


class TestObjectRef:
    def test_int_is_id(self):
        ref = ObjectRef.parse(42)
        assert ref.is_id
        assert ref.value == 42

    def test_string_is_path(self):
        ref = ObjectRef.parse("Scene/Cube")
        assert ref.is_path
        assert ref.value == "Scene/Cube"

    def test_numeric_string_stays_path(self):
        ref = ObjectRef.parse("42")
        assert ref.is_path
        assert ref.value == "42"

    @pytest.mark.parametrize("raw", [True, "", None, 1.5, ["a"]])
    def test_invalid_references(self, raw):
        with pytest.raises(ToolValidationError):
            ObjectRef.parse(raw)
