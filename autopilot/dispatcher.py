from autopilot.tools import Command, Response


class ToolManager:
    """Runs commands and keeps their undo/redo history."""

    def __init__(self):
        self._undo_stack: list[Command] = []
        self._redo_stack: list[Command] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    async def execute_command(self, command: Command) -> Response:
        """Execute ``command`` and record the attempt.

        The command is recorded whatever its Response says. A new action
        invalidates the redo history.
        """
        result = await command.execute()
        self._undo_stack.append(command)
        self._redo_stack.clear()
        return result

    async def undo(self) -> Response:
        if not self._undo_stack:
            return Response.error("Undo stack is empty, nothing to undo.")

        command = self._undo_stack.pop()
        result = await command.undo()
        self._redo_stack.append(command)
        return result

    async def redo(self) -> Response:
        if not self._redo_stack:
            return Response.error("Redo stack is empty, nothing to redo.")

        command = self._redo_stack.pop()
        result = await command.execute()
        self._undo_stack.append(command)
        return result

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
