# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# JSON Patch (RFC 6902) over plain python documents.
#
# A patch document is a list of operations. Each operation is one of
# six tagged variants, told apart by its `op` member. `apply` never
# mutates its input, so a patch either applies completely or not at all.

from typing import Annotated, Any, List, Literal, Optional, Sequence, Union
import copy
import re

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import PatchError


class AddOperation(BaseModel):
    op: Literal["add"]
    path: str
    value: Any


class RemoveOperation(BaseModel):
    op: Literal["remove"]
    path: str


class ReplaceOperation(BaseModel):
    op: Literal["replace"]
    path: str
    value: Any


class MoveOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    op: Literal["move"]
    from_: str = Field(alias="from")
    path: str


class CopyOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    op: Literal["copy"]
    from_: str = Field(alias="from")
    path: str


class TestOperation(BaseModel):
    __test__ = False  # not a pytest class

    op: Literal["test"]
    path: str
    value: Any


Operation = Annotated[
    Union[
        AddOperation,
        RemoveOperation,
        ReplaceOperation,
        MoveOperation,
        CopyOperation,
        TestOperation,
    ],
    Field(discriminator="op"),
]

_operations = TypeAdapter(List[Operation])


def parse_operations(raw: Any) -> List[Operation]:
    """Turn a decoded JSON body into a list of operations"""
    if isinstance(raw, list) and all(isinstance(o, BaseModel) for o in raw):
        return list(raw)

    try:
        return _operations.validate_python(raw)
    except ValidationError as e:
        raise PatchError(f"Invalid patch document ({e.error_count()} errors)") from e


# ----------------------
# JSON Pointer (RFC 6901)
# ----------------------


def parse_pointer(pointer: str) -> List[str]:
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        raise PatchError(f"Invalid JSON pointer {pointer!r}")

    # ~1 must be decoded before ~0
    return [t.replace("~1", "/").replace("~0", "~") for t in pointer[1:].split("/")]


def _list_index(container: list, token: str, allow_end: bool) -> int:
    if allow_end and token == "-":
        return len(container)
    if not re.fullmatch(r"0|[1-9][0-9]*", token):
        raise PatchError(f"Invalid array index {token!r}")

    index = int(token)
    upper = len(container) if allow_end else len(container) - 1
    if index > upper:
        raise PatchError(f"Array index {index} out of range")
    return index


def _child(node: Any, token: str) -> Any:
    if isinstance(node, dict):
        if token not in node:
            raise PatchError(f"Path member {token!r} does not exist")
        return node[token]
    if isinstance(node, list):
        return node[_list_index(node, token, False)]
    raise PatchError(f"Can not look up {token!r} in a scalar value")


def _parent(document: Any, tokens: List[str]) -> Any:
    node = document
    for token in tokens[:-1]:
        node = _child(node, token)
    return node


def _get(document: Any, tokens: List[str]) -> Any:
    if not tokens:
        return document
    return _child(_parent(document, tokens), tokens[-1])


def _add(document: Any, tokens: List[str], value: Any) -> Any:
    if not tokens:
        return value

    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        parent[key] = value
    elif isinstance(parent, list):
        parent.insert(_list_index(parent, key, True), value)
    else:
        raise PatchError(f"Can not add {key!r} to a scalar value")
    return document


def _remove(document: Any, tokens: List[str]) -> Any:
    """Remove the value at tokens and return it"""
    if not tokens:
        raise PatchError("Can not remove the whole document")

    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        if key not in parent:
            raise PatchError(f"Path member {key!r} does not exist")
        return parent.pop(key)
    if isinstance(parent, list):
        return parent.pop(_list_index(parent, key, False))
    raise PatchError(f"Can not remove {key!r} from a scalar value")


def _replace(document: Any, tokens: List[str], value: Any) -> Any:
    if not tokens:
        return value

    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        if key not in parent:
            raise PatchError(f"Path member {key!r} does not exist")
        parent[key] = value
    elif isinstance(parent, list):
        parent[_list_index(parent, key, False)] = value
    else:
        raise PatchError(f"Can not replace {key!r} in a scalar value")
    return document


def json_equal(a: Any, b: Any) -> bool:
    """Equality the way JSON sees it: true is not 1, 1 is 1.0"""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def _apply_one(document: Any, operation: Operation) -> Any:
    path = parse_pointer(operation.path)

    if isinstance(operation, AddOperation):
        return _add(document, path, copy.deepcopy(operation.value))
    if isinstance(operation, RemoveOperation):
        _remove(document, path)
        return document
    if isinstance(operation, ReplaceOperation):
        return _replace(document, path, copy.deepcopy(operation.value))
    if isinstance(operation, MoveOperation):
        source = parse_pointer(operation.from_)
        if source == path:
            _get(document, source)
            return document
        if path[: len(source)] == source:
            raise PatchError("Can not move a value into one of its children")
        value = _remove(document, source)
        return _add(document, path, value)
    if isinstance(operation, CopyOperation):
        value = copy.deepcopy(_get(document, parse_pointer(operation.from_)))
        return _add(document, path, value)
    if isinstance(operation, TestOperation):
        if not json_equal(_get(document, path), operation.value):
            raise PatchError(f"Test failed for {operation.path!r}")
        return document

    raise PatchError(f"Unknown operation {operation!r}")


def apply(operations: Sequence[Union[Operation, dict]], document: Any) -> Any:
    """Apply operations in order and return the patched copy of document"""
    result = copy.deepcopy(document)
    for operation in parse_operations(list(operations)):
        result = _apply_one(result, operation)
    return result


def validate(
    operations: Sequence[Union[Operation, dict]], document: Any
) -> Optional[PatchError]:
    """Return why operations can not be applied to document, or None"""
    try:
        apply(operations, document)
    except PatchError as e:
        return e
    return None
