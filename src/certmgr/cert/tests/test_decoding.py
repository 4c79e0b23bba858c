"""
测试 decoding.py 中的严格解码。
"""

import pytest
from pydantic import AliasChoices, AliasPath, BaseModel, ConfigDict, Field

from src.certmgr.cert.decoding import strict_decode
from src.certmgr.cert.errors import DecodeError, MultipleDocuments, UnknownField
from src.certmgr.cert.schemas import CA


class Inner(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str


class Lenient(BaseModel):
    """未声明 extra="forbid" 的模型，顶层未知字段同样会被拒绝。"""
    name: str
    inner: Inner | None = None


def test_decode_valid_document():
    ca = strict_decode(b'{"name": "test_ca", "remote": "127.0.0.1:8888", "auth_key": "1111"}', CA)
    assert ca.name == "test_ca"
    assert ca.remote == "127.0.0.1:8888"
    assert ca.auth_key == "1111"
    assert ca.label == ""


def test_decode_accepts_surrounding_whitespace():
    ca = strict_decode('\n  {"name": "x"}  \n\n', CA)
    assert ca.name == "x"


def test_decode_unknown_field():
    with pytest.raises(UnknownField) as ei:
        strict_decode(b'{"name": "test_ca", "unexpected": true}', CA)
    assert ei.value.field == "unexpected"


def test_decode_unknown_field_lenient_model():
    with pytest.raises(UnknownField):
        strict_decode(b'{"name": "a", "extra": 1}', Lenient)


def test_decode_unknown_nested_field():
    with pytest.raises(UnknownField) as ei:
        strict_decode(b'{"name": "a", "inner": {"path": "/x", "mode": 1}}', Lenient)
    assert ei.value.field == "inner.mode"


def test_decode_multiple_documents():
    with pytest.raises(MultipleDocuments):
        strict_decode(b'{"name": "a"}{"name": "b"}', CA)
    with pytest.raises(MultipleDocuments):
        strict_decode(b'{"name": "a"}\n{"name": "b"}\n', CA)


def test_unknown_field_and_multiple_documents_are_decode_errors():
    assert issubclass(UnknownField, DecodeError)
    assert issubclass(MultipleDocuments, DecodeError)
    assert issubclass(DecodeError, ValueError)


@pytest.mark.parametrize(
    "data",
    [b"", b"   \n", b"{not json", b"[1, 2]", b'"text"', b'{"name": 5}', b"\xff\xfe"],
)
def test_decode_invalid(data):
    with pytest.raises(DecodeError):
        strict_decode(data, CA)


def test_decode_missing_required_field():
    with pytest.raises(DecodeError) as ei:
        strict_decode(b"{}", Lenient)
    assert not isinstance(ei.value, UnknownField)


class Plain(BaseModel):
    """未设置 extra="forbid" 的嵌套模型。"""
    path: str


class Outer(BaseModel):
    inner: Plain
    optional: Plain | None = None
    items: list[Plain] = []
    by_name: dict[str, Plain] = {}


def test_decode_unknown_field_in_lenient_nested_model():
    """测试嵌套模型未设置 extra="forbid" 时未知字段同样被拒绝"""
    with pytest.raises(UnknownField) as ei:
        strict_decode(b'{"inner": {"path": "/x", "mode": 1}}', Outer)
    assert ei.value.field == "inner.mode"


@pytest.mark.parametrize(
    "data, field",
    [
        (b'{"inner": {"path": "/x"}, "optional": {"path": "/y", "mode": 1}}', "optional.mode"),
        (b'{"inner": {"path": "/x"}, "items": [{"path": "/a"}, {"path": "/b", "mode": 1}]}', "items.1.mode"),
        (b'{"inner": {"path": "/x"}, "by_name": {"a": {"path": "/a", "mode": 1}}}', "by_name.a.mode"),
    ],
)
def test_decode_unknown_field_in_containers(data, field):
    with pytest.raises(UnknownField) as ei:
        strict_decode(data, Outer)
    assert ei.value.field == field


def test_decode_nested_lenient_models_valid():
    outer = strict_decode(
        b'{"inner": {"path": "/x"}, "optional": null, "items": [{"path": "/a"}], "by_name": {"b": {"path": "/b"}}}',
        Outer,
    )
    assert outer.inner.path == "/x"
    assert outer.optional is None
    assert [i.path for i in outer.items] == ["/a"]
    assert outer.by_name["b"].path == "/b"


class Aliased(BaseModel):
    key_file: str = Field(default="", validation_alias=AliasChoices("key_file", "keyFile"))
    remote: str = Field(default="", validation_alias=AliasPath("endpoint", "remote"))


def test_decode_alias_choices_and_paths():
    """测试 AliasChoices / AliasPath 声明的键不会被误判为未知字段"""
    assert strict_decode(b'{"keyFile": "/k"}', Aliased).key_file == "/k"
    assert strict_decode(b'{"key_file": "/k"}', Aliased).key_file == "/k"
    assert strict_decode(b'{"endpoint": {"remote": "ca:8888"}}', Aliased).remote == "ca:8888"

    with pytest.raises(UnknownField):
        strict_decode(b'{"keyfile": "/k"}', Aliased)
