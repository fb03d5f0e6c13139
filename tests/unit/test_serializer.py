import pytest
from cryptography.fernet import Fernet, InvalidToken

from ogma.storage.serializer import (
    EncryptedSerializer,
    JSONSerializer,
    MsgpackSerializer,
    PickleSerializer,
    YAMLSerializer,
    get_serializer,
)

DOC = {"Store": [{"Key": 1, "Value": {"name": "a", "tags": ["x", "y"]}}, {"Key": 2, "Value": None}]}


@pytest.mark.parametrize("serializer", [PickleSerializer(), JSONSerializer(), YAMLSerializer(), MsgpackSerializer()])
def test_document_roundtrip(serializer):
    data = serializer.dump(DOC)
    assert isinstance(data, bytes)
    assert serializer.load(data) == DOC


def test_plain_flags():
    assert PickleSerializer().plain is False
    assert JSONSerializer().plain is True
    assert YAMLSerializer().plain is True
    assert MsgpackSerializer().plain is True
    assert EncryptedSerializer(password="pw", base_serializer=JSONSerializer()).plain is True
    assert EncryptedSerializer(password="pw").plain is False


def test_pickle_keeps_python_types():
    s = PickleSerializer()
    value = {"Store": [{"Key": (1, "a"), "Value": {1, 2, 3}}]}
    assert s.load(s.dump(value)) == value


def test_encrypted_with_key():
    key = Fernet.generate_key()
    s = EncryptedSerializer(key=key)
    data = s.dump(DOC)
    assert b"name" not in data
    assert s.load(data) == DOC


def test_encrypted_with_password_uses_fresh_salt():
    s = EncryptedSerializer(password="secret", iterations=1000)
    a = s.dump(DOC)
    b = s.dump(DOC)
    assert a != b
    assert s.load(a) == DOC
    assert s.load(b) == DOC


def test_encrypted_wrong_password_fails():
    data = EncryptedSerializer(password="right", iterations=1000).dump(DOC)
    with pytest.raises(InvalidToken):
        EncryptedSerializer(password="wrong", iterations=1000).load(data)


def test_encrypted_mode_mismatch_fails():
    data = EncryptedSerializer(password="pw", iterations=1000).dump(DOC)
    with pytest.raises(ValueError):
        EncryptedSerializer(key=Fernet.generate_key()).load(data)
    with pytest.raises(ValueError):
        EncryptedSerializer(password="pw").load(b"Zjunk")


def test_encrypted_requires_key_or_password():
    with pytest.raises(ValueError):
        EncryptedSerializer()


def test_get_serializer():
    assert isinstance(get_serializer("pickle"), PickleSerializer)
    assert isinstance(get_serializer("JSON"), JSONSerializer)
    assert isinstance(get_serializer("yaml"), YAMLSerializer)
    assert isinstance(get_serializer("msgpack"), MsgpackSerializer)
    enc = get_serializer("encrypted", password="pw", base="json")
    assert isinstance(enc, EncryptedSerializer)
    assert isinstance(enc.base_serializer, JSONSerializer)
    with pytest.raises(ValueError):
        get_serializer("xml")


def test_get_serializer_rejects_unexpected_options():
    with pytest.raises(ValueError):
        get_serializer("json", indent=2)
    with pytest.raises(ValueError):
        get_serializer("encrypted", password="pw", salt=b"x")
