"""
严格的 JSON 文档解码：拒绝任意层级的未知字段，拒绝多个顶层文档。
"""

from __future__ import annotations

import json
import types
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Type, TypeVar, Union, get_args, get_origin

from pydantic import AliasChoices, AliasPath, BaseModel, ValidationError

from .errors import DecodeError, MultipleDocuments, UnknownField

ModelT = TypeVar("ModelT", bound=BaseModel)

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, Sequence)
_MAPPING_ORIGINS = (dict, Mapping)


def _alias_keys(alias: Any) -> set[str]:
    if isinstance(alias, str):
        return {alias}
    if isinstance(alias, AliasPath):
        # 只有路径的第一段对应当前对象的键
        first = alias.path[0] if alias.path else None
        return {first} if isinstance(first, str) else set()
    if isinstance(alias, AliasChoices):
        keys: set[str] = set()
        for choice in alias.choices:
            keys |= _alias_keys(choice)
        return keys
    return set()


def _declared_keys(model: Type[BaseModel]) -> set[str]:
    keys: set[str] = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
        keys |= _alias_keys(field.validation_alias)
    return keys


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _field_for_key(model: Type[BaseModel], key: str):
    for name, field in model.model_fields.items():
        if key == name or key == field.alias or key in _alias_keys(field.validation_alias):
            return field
    return None


def _check_model(obj: dict, model: Type[BaseModel], path: str) -> None:
    declared = _declared_keys(model)
    for key, value in obj.items():
        key_path = f"{path}.{key}" if path else str(key)
        if key not in declared:
            raise UnknownField(key_path)
        _check_value(value, _field_for_key(model, key).annotation, key_path)


def _check_value(value: Any, annotation: Any, path: str) -> None:
    """按字段注解向下检查嵌套模型中的未知字段。"""
    if _is_model(annotation):
        if isinstance(value, dict):
            _check_model(value, annotation, path)
        return

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin is Annotated:
        _check_value(value, args[0], path)
    elif origin is Union or origin is types.UnionType:
        _check_union(value, [a for a in args if a is not type(None)], path)
    elif origin in _SEQUENCE_ORIGINS and isinstance(value, list):
        if origin is tuple and args and args[-1] is not Ellipsis:
            for idx, (item, item_ann) in enumerate(zip(value, args)):
                _check_value(item, item_ann, f"{path}.{idx}")
        elif args:
            for idx, item in enumerate(value):
                _check_value(item, args[0], f"{path}.{idx}")
    elif origin in _MAPPING_ORIGINS and isinstance(value, dict) and len(args) == 2:
        for key, item in value.items():
            _check_value(item, args[1], f"{path}.{key}")


def _check_union(value: Any, options: list, path: str) -> None:
    if len(options) == 1:
        _check_value(value, options[0], path)
        return
    if not isinstance(value, dict):
        for option in options:
            _check_value(value, option, path)
        return

    models = [o for o in options if _is_model(o)]
    if not models:
        for option in options:
            _check_value(value, option, path)
        return
    # 多个候选模型时，选第一个声明了全部键的模型继续检查
    for candidate in models:
        if set(value) <= _declared_keys(candidate):
            _check_model(value, candidate, path)
            return
    _check_model(value, models[0], path)


def _load_single_document(data: bytes | str) -> Any:
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    decoder = json.JSONDecoder()
    start = len(text) - len(text.lstrip())
    if start == len(text):
        raise DecodeError("empty document")
    try:
        obj, end = decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid json: {e}") from e
    if text[end:].strip():
        raise MultipleDocuments()
    return obj


def strict_decode(data: bytes | str, model: Type[ModelT]) -> ModelT:
    """
    将 data 中唯一的 JSON 文档解码为 model。
    未知字段在任意层级都会被拒绝，与嵌套模型是否设置 extra="forbid" 无关。
    :param data: JSON 文本。
    :param model: 目标 pydantic 模型类。
    :return: 模型实例。
    :raises UnknownField: 文档包含模型未声明的字段，field 为以 "." 连接的路径。
    :raises MultipleDocuments: 第一个文档之后仍有非空白内容。
    :raises DecodeError: 空输入、非法 JSON、顶层不是对象或字段类型不符。
    """
    try:
        obj = _load_single_document(data)
    except UnicodeDecodeError as e:
        raise DecodeError("document is not valid utf-8") from e

    if not isinstance(obj, dict):
        raise DecodeError(f"expected a json object, got {type(obj).__name__}")

    _check_model(obj, model, "")

    try:
        return model.model_validate(obj)
    except ValidationError as e:
        for err in e.errors():
            if err["type"] == "extra_forbidden":
                raise UnknownField(".".join(str(p) for p in err["loc"])) from e
        raise DecodeError(str(e)) from e
