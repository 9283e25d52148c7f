import copy
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from autopilot.exceptions import ToolRegistrationError
from autopilot.messages import Function, ToolCall
from autopilot.schema import ToolParam, derive_schema
from autopilot.tools import Command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolMetadata:
    name: str
    description: str
    params: tuple[ToolParam, ...]
    schema: dict
    command_cls: type[Command]


class ToolRegistry:
    """Maps tool names to command types and owns the advertised catalog.

    Schemas are derived once, when a command is registered. Catalog order is
    registration order, and each entry's ``index`` is its position in it.

    Usage:
        registry = ToolRegistry()

        @registry.tool()
        class CreateObject(Command):
            name = "create_object"
            ...
    """

    def __init__(self):
        self._tools: dict[str, ToolMetadata] = {}

    def register(
        self,
        command_cls: type[Command],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> type[Command]:
        """Register a command type.

        Raises:
            ToolRegistrationError: If ``command_cls`` is not a Command subclass
                or has no name.
        """
        if not isinstance(command_cls, type) or not issubclass(command_cls, Command):
            raise ToolRegistrationError(f"{command_cls!r} is not a Command subclass")

        tool_name = name or command_cls.name
        if not tool_name:
            raise ToolRegistrationError(f"{command_cls.__name__} has no tool name")

        params = tuple(command_cls.tool_params())
        self._tools[tool_name] = ToolMetadata(
            name=tool_name,
            description=description if description is not None else command_cls.description,
            params=params,
            schema=derive_schema(params),
            command_cls=command_cls,
        )
        logger.debug("Registered tool '%s' -> %s", tool_name, command_cls.__name__)
        return command_cls

    def tool(
        self, name: Optional[str] = None, description: Optional[str] = None
    ) -> Callable[[type[Command]], type[Command]]:
        """Class decorator form of ``register``."""

        def decorator(command_cls: type[Command]) -> type[Command]:
            return self.register(command_cls, name=name, description=description)

        return decorator

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolMetadata]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get_registered_tools(self) -> list[ToolCall]:
        """Return the catalog advertised to the model."""
        return [
            ToolCall(
                index=index,
                type="function",
                function=Function(
                    name=meta.name,
                    description=meta.description,
                    parameters=copy.deepcopy(meta.schema),
                    strict=False,
                ),
            )
            for index, meta in enumerate(self._tools.values())
        ]

    def get_command(self, name: str, argument_payload: Optional[str]) -> Optional[Command]:
        """Instantiate the command registered as ``name``.

        The payload is bound as-is; the command decodes it. Returns None when
        no tool has that name.
        """
        meta = self._tools.get(name)
        if meta is None:
            return None
        command = meta.command_cls()
        command.set_argument_data(argument_payload)
        return command
