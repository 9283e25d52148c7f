"""Parameter descriptors and the model-facing JSON schema derived from them.

Every tool advertises its arguments to the backend as a JSON schema object.
The schema is derived once, at registration, from a list of ``ToolParam``
descriptors. Descriptors are either declared by hand on a command or built
from the command's pydantic input model with ``params_from_model``.

Special cases:
- dict / Mapping fields become an open ``object`` (no fixed properties).
- ``Vector3`` fields become an object with required numeric x, y and z.
- ``Union[int, str]`` style fields become a union of JSON types.
"""

import collections.abc
import types
from dataclasses import dataclass
from enum import Enum, Flag, auto
from functools import reduce
from operator import or_
from typing import Any, Literal, Optional, Sequence, Union, get_args, get_origin

from pydantic import BaseModel


class ParamType(Flag):
    """JSON schema types. Combine with ``|`` for multi-type parameters."""

    STRING = auto()
    INTEGER = auto()
    NUMBER = auto()
    BOOLEAN = auto()
    ARRAY = auto()
    OBJECT = auto()
    NULL = auto()


_TYPE_NAMES = [
    (ParamType.STRING, "string"),
    (ParamType.INTEGER, "integer"),
    (ParamType.NUMBER, "number"),
    (ParamType.BOOLEAN, "boolean"),
    (ParamType.ARRAY, "array"),
    (ParamType.OBJECT, "object"),
    (ParamType.NULL, "null"),
]

_ARRAY_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class ToolParam:
    """Declarative description of one tool parameter.

    Args:
        name: Argument name as the model must send it.
        description: Human description shown to the model.
        required: Whether the argument is listed in the schema's required set.
        type: JSON type, or a union of types.
        enum: Closed set of allowed values.
        items: Item type for arrays.
        properties: Nested parameters for objects. ``None`` on an object
            parameter means an open object with no fixed property set.
    """

    name: str
    description: str = ""
    required: bool = False
    type: ParamType = ParamType.STRING
    enum: Optional[Sequence[Any]] = None
    items: Optional[ParamType] = None
    properties: Optional[Sequence["ToolParam"]] = None


class Vector3(BaseModel):
    """Fixed 3-component numeric vector."""

    x: float
    y: float
    z: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


VECTOR3_PARAMS = (
    ToolParam("x", required=True, type=ParamType.NUMBER),
    ToolParam("y", required=True, type=ParamType.NUMBER),
    ToolParam("z", required=True, type=ParamType.NUMBER),
)


def enum_values(enum_cls: type[Enum]) -> tuple:
    """Return the closed value set of an Enum."""
    return tuple(member.value for member in enum_cls)


def type_names(param_type: ParamType) -> Union[str, list[str]]:
    """Return the JSON schema ``type`` value for a (possibly combined) type."""
    names = [name for flag, name in _TYPE_NAMES if flag in param_type]
    if not names:
        raise ValueError(f"Parameter type {param_type!r} has no JSON equivalent")
    if len(names) == 1:
        return names[0]
    return names


def derive_schema(params: Sequence[ToolParam]) -> dict:
    """Build the JSON schema object for a parameter list.

    Pure function: the same descriptors always give an equal schema.
    """
    properties = {}
    required = []
    for param in params:
        properties[param.name] = _param_schema(param)
        if param.required:
            required.append(param.name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def _param_schema(param: ToolParam) -> dict:
    schema: dict[str, Any] = {"type": type_names(param.type)}
    if param.description:
        schema["description"] = param.description
    if param.enum is not None:
        schema["enum"] = list(param.enum)
    if param.items is not None:
        schema["items"] = {"type": type_names(param.items)}
    if param.properties is not None:
        nested = derive_schema(param.properties)
        schema["properties"] = nested["properties"]
        schema["required"] = nested["required"]
        schema["additionalProperties"] = False
    return schema


def params_from_model(model: type[BaseModel]) -> list[ToolParam]:
    """Build parameter descriptors from a pydantic model's fields."""
    params = []
    for name, field in model.model_fields.items():
        params.append(
            _param_from_annotation(
                field.alias or name,
                field.annotation,
                field.description or "",
                field.is_required(),
            )
        )
    return params


def _param_from_annotation(
    name: str, annotation: Any, description: str, required: bool
) -> ToolParam:
    members = _union_members(annotation)
    if len(members) > 1:
        param_type = reduce(or_, (_type_of(member) for member in members))
        return ToolParam(name, description, required, param_type)

    annotation = members[0]
    origin = get_origin(annotation)

    if annotation is Vector3:
        return ToolParam(
            name, description, required, ParamType.OBJECT, properties=VECTOR3_PARAMS
        )

    if _is_class(annotation) and issubclass(annotation, Enum):
        values = enum_values(annotation)
        return ToolParam(name, description, required, _type_of_values(values), enum=values)

    if origin is Literal:
        values = get_args(annotation)
        return ToolParam(name, description, required, _type_of_values(values), enum=values)

    param_type = _type_of(annotation)

    if param_type == ParamType.ARRAY:
        args = [arg for arg in get_args(annotation) if arg is not Ellipsis]
        items = _type_of(args[0]) if args else None
        return ToolParam(name, description, required, param_type, items=items)

    if _is_class(annotation) and issubclass(annotation, BaseModel):
        return ToolParam(
            name,
            description,
            required,
            ParamType.OBJECT,
            properties=tuple(params_from_model(annotation)),
        )

    return ToolParam(name, description, required, param_type)


def _is_class(annotation: Any) -> bool:
    # Parametrized generics like list[int] pass isinstance(..., type) on 3.10
    return get_origin(annotation) is None and isinstance(annotation, type)


def _union_members(annotation: Any) -> list:
    """Split ``Union``/``X | Y`` annotations, dropping ``None``."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        return members or [type(None)]
    return [annotation]


def _type_of(annotation: Any) -> ParamType:
    members = _union_members(annotation)
    if len(members) > 1:
        return reduce(or_, (_type_of(member) for member in members))
    annotation = members[0]

    if annotation is type(None):
        return ParamType.NULL
    if annotation is Any:
        return ParamType.OBJECT

    origin = get_origin(annotation)
    if origin is Literal:
        return _type_of_values(get_args(annotation))

    base = origin or annotation
    if not isinstance(base, type):
        return ParamType.OBJECT

    # bool before int: bool is an int subclass
    if issubclass(base, bool):
        return ParamType.BOOLEAN
    if issubclass(base, Enum):
        return _type_of_values(enum_values(base))
    if issubclass(base, int):
        return ParamType.INTEGER
    if issubclass(base, float):
        return ParamType.NUMBER
    if issubclass(base, str):
        return ParamType.STRING
    if issubclass(base, _ARRAY_TYPES):
        return ParamType.ARRAY
    if issubclass(base, collections.abc.Mapping):
        return ParamType.OBJECT
    return ParamType.OBJECT


def _type_of_values(values: Sequence[Any]) -> ParamType:
    if not values:
        return ParamType.STRING
    return reduce(or_, (_type_of(type(value)) for value in values))
