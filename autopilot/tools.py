from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, ValidationError

from autopilot.exceptions import ToolValidationError
from autopilot.messages import ToolCall
from autopilot.schema import ToolParam, params_from_model


class Response(BaseModel):
    """Result of a command run, sent back to the model as a tool reply.

    ``reload_required`` and ``tool_call_id`` are orchestration-only and are
    excluded from serialization.
    """

    is_success: bool
    message: str
    data: Any = None

    # If True, the reply is delivered after the environment reloads
    reload_required: bool = Field(default=False, exclude=True)
    tool_call_id: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def success(cls, message: str, data: Any = None) -> "Response":
        return cls(is_success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, data: Any = None) -> "Response":
        return cls(is_success=False, message=message, data=data)

    def to_content(self) -> str:
        """JSON text used as the tool-role message body."""
        return self.model_dump_json(exclude_none=True)

    def __str__(self) -> str:
        return self.to_content()


class PendingResponse(BaseModel):
    """A tool result held back until the host environment has reloaded."""

    tool_call: ToolCall
    response: Response


class ToolInput(BaseModel):
    """Subclass this for command-specific argument validation."""


class Command:
    """A tool the model can call.

    Subclasses set ``name``, ``description`` and either ``input_model`` (a
    pydantic model, preferred) or ``params`` (hand-written descriptors), and
    implement ``execute`` and ``undo``. The raw argument payload is bound with
    ``set_argument_data`` before either is called; the command decodes it
    itself, usually through ``parse_arguments``.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    input_model: ClassVar[Optional[type[BaseModel]]] = None
    params: ClassVar[Sequence[ToolParam]] = ()

    def __init__(self):
        self.argument_data: Optional[str] = None

    @classmethod
    def tool_params(cls) -> list[ToolParam]:
        """Descriptors the registry derives the schema from."""
        if cls.input_model is not None:
            return params_from_model(cls.input_model)
        return list(cls.params)

    def set_argument_data(self, argument_data: Optional[str]) -> None:
        self.argument_data = argument_data

    def parse_arguments(self) -> BaseModel:
        """Validate the bound payload against ``input_model``.

        Raises:
            ToolValidationError: If there is no input model or the payload
                does not match it.
        """
        if self.input_model is None:
            raise ToolValidationError(f"Tool '{self.name}' declares no input model")
        try:
            return self.input_model.model_validate_json(self.argument_data or "{}")
        except ValidationError as e:
            raise ToolValidationError(f"Invalid arguments for '{self.name}': {e}") from e

    async def execute(self) -> Response:
        raise NotImplementedError

    async def undo(self) -> Response:
        raise NotImplementedError


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a host object either by integer id or by path/name."""

    kind: Literal["id", "path"]
    value: Union[int, str]

    @classmethod
    def parse(cls, raw: Any) -> "ObjectRef":
        """Discriminate a raw ``int | str`` argument.

        Numeric strings stay paths: only JSON integers are ids.
        """
        if isinstance(raw, bool):
            raise ToolValidationError(f"Object reference cannot be a boolean: {raw!r}")
        if isinstance(raw, int):
            return cls("id", raw)
        if isinstance(raw, str) and raw:
            return cls("path", raw)
        raise ToolValidationError(f"Object reference must be an int or a non-empty string: {raw!r}")

    @property
    def is_id(self) -> bool:
        return self.kind == "id"

    @property
    def is_path(self) -> bool:
        return self.kind == "path"
