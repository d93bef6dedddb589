"""Shorthands for building protobuf ``google.protobuf.Struct`` values."""

from __future__ import annotations

from google.protobuf import struct_pb2


def bool_value(v: bool) -> struct_pb2.Value:
    """Wrap a boolean in a struct Value."""
    return struct_pb2.Value(bool_value=v)


def null() -> struct_pb2.Value:
    """Return the struct Value that holds null."""
    return struct_pb2.Value(null_value=struct_pb2.NULL_VALUE)


def number(v: float) -> struct_pb2.Value:
    """Wrap a number in a struct Value."""
    return struct_pb2.Value(number_value=v)


def string(v: str) -> struct_pb2.Value:
    """Wrap a string in a struct Value."""
    return struct_pb2.Value(string_value=v)


class List(list):
    """A list of struct Values that converts to a ListValue or a Value."""

    def to_list_value(self) -> struct_pb2.ListValue:
        return struct_pb2.ListValue(values=list(self))

    def to_value(self) -> struct_pb2.Value:
        return struct_pb2.Value(list_value=self.to_list_value())


class Struct(dict):
    """A mapping of names to struct Values that converts to a Struct or a Value."""

    def to_struct(self) -> struct_pb2.Struct:
        return struct_pb2.Struct(fields=dict(self))

    def to_value(self) -> struct_pb2.Value:
        return struct_pb2.Value(struct_value=self.to_struct())