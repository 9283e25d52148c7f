"""Shared scene tools for the session examples.

The "scene" is a plain in-memory dict standing in for a host application
(a game editor, a CAD tool, ...). Every command supports undo.
"""

import itertools
from typing import Optional, Union

from pydantic import Field

from autopilot import Command, ObjectRef, Response, ToolInput, ToolRegistry, Vector3


class Scene:
    """Objects keyed by integer id; each object has a unique path."""

    def __init__(self):
        self.objects: dict[int, dict] = {}
        self.scripts: dict[str, str] = {}
        self._ids = itertools.count(1)

    def find(self, ref: ObjectRef) -> Optional[int]:
        if ref.is_id:
            return ref.value if ref.value in self.objects else None
        for object_id, obj in self.objects.items():
            if obj["path"] == ref.value:
                return object_id
        return None

    def add(self, name: str, position: Vector3, parent_id: Optional[int]) -> int:
        object_id = next(self._ids)
        prefix = self.objects[parent_id]["path"] + "/" if parent_id else ""
        self.objects[object_id] = {
            "name": name,
            "path": prefix + name,
            "position": position.as_tuple(),
            "parent": parent_id,
        }
        return object_id


scene = Scene()
registry = ToolRegistry()


class CreateObjectInput(ToolInput):
    name: str = Field(..., description="Name of the new object")
    position: Vector3 = Field(..., description="World position")
    parent: Optional[Union[int, str]] = Field(None, description="Parent object id or path")


@registry.tool()
class CreateObject(Command):
    name = "create_object"
    description = "Create an empty object in the scene, optionally under a parent."
    input_model = CreateObjectInput

    def __init__(self):
        super().__init__()
        self.created_id: Optional[int] = None

    async def execute(self) -> Response:
        args = self.parse_arguments()
        parent_id = None
        if args.parent is not None:
            parent_id = scene.find(ObjectRef.parse(args.parent))
            if parent_id is None:
                return Response.error(f"Parent '{args.parent}' not found.")

        self.created_id = scene.add(args.name, args.position, parent_id)
        return Response.success(
            f"Created '{args.name}'.", data={"id": self.created_id, "path": scene.objects[self.created_id]["path"]}
        )

    async def undo(self) -> Response:
        if self.created_id is None or self.created_id not in scene.objects:
            return Response.error("Nothing to undo.")
        removed = scene.objects.pop(self.created_id)
        return Response.success(f"Removed '{removed['name']}'.")


class DeleteObjectInput(ToolInput):
    target: Union[int, str] = Field(..., description="Object id or path")


@registry.tool()
class DeleteObject(Command):
    name = "delete_object"
    description = "Delete an object from the scene."
    input_model = DeleteObjectInput

    def __init__(self):
        super().__init__()
        self.removed: Optional[tuple[int, dict]] = None

    async def execute(self) -> Response:
        args = self.parse_arguments()
        object_id = scene.find(ObjectRef.parse(args.target))
        if object_id is None:
            return Response.error(f"Object '{args.target}' not found.")
        self.removed = (object_id, scene.objects.pop(object_id))
        return Response.success(f"Deleted '{self.removed[1]['path']}'.")

    async def undo(self) -> Response:
        if self.removed is None:
            return Response.error("Nothing to undo.")
        object_id, obj = self.removed
        scene.objects[object_id] = obj
        return Response.success(f"Restored '{obj['path']}'.")


class WriteScriptInput(ToolInput):
    file_name: str = Field(..., description="Script file name, e.g. Rotate.cs")
    source: str = Field(..., description="Full script source")


@registry.tool()
class WriteScript(Command):
    """Scripts take effect only after the host recompiles, so the reply waits."""

    name = "write_script"
    description = "Create or overwrite a script file."
    input_model = WriteScriptInput

    def __init__(self):
        super().__init__()
        self.previous: Optional[str] = None

    async def execute(self) -> Response:
        args = self.parse_arguments()
        self.previous = scene.scripts.get(args.file_name)
        scene.scripts[args.file_name] = args.source
        return Response(
            is_success=True,
            message=f"Wrote {args.file_name}; it compiles on the next reload.",
            reload_required=True,
        )

    async def undo(self) -> Response:
        args = self.parse_arguments()
        if self.previous is None:
            scene.scripts.pop(args.file_name, None)
        else:
            scene.scripts[args.file_name] = self.previous
        return Response.success(f"Reverted {args.file_name}.")
