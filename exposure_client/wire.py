"""
Wire format of the backend: the covidshield protobuf messages

The schema mirrors ``covidshield.proto`` next to this file. It is registered in
the default descriptor pool when this module is imported, the same way a
protoc generated ``_pb2`` module registers its file.
"""

__copyright__ = """
    Copyright 2020 EPFL

    Licensed under the Apache License, Version 2.0 (the "License");
    you may not use this file except in compliance with the License.
    You may obtain a copy of the License at

        http://www.apache.org/licenses/LICENSE-2.0

    Unless required by applicable law or agreed to in writing, software
    distributed under the License is distributed on an "AS IS" BASIS,
    WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
    See the License for the specific language governing permissions and
    limitations under the License.
"""
__license__ = "Apache 2.0"

from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool
from google.protobuf import message_factory
from google.protobuf import timestamp_pb2
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import Message

from exposure_client.errors import DecodeError

_Field = descriptor_pb2.FieldDescriptorProto

PACKAGE = "covidshield"

#: (message name, ((field name, number, type, label, type name), ...))
SCHEMA = (
    (
        "KeyClaimRequest",
        (
            ("one_time_code", 1, _Field.TYPE_STRING, _Field.LABEL_OPTIONAL, None),
            ("app_public_key", 2, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
        ),
    ),
    (
        "KeyClaimResponse",
        (
            ("server_public_key", 1, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
            ("error", 2, _Field.TYPE_STRING, _Field.LABEL_OPTIONAL, None),
        ),
    ),
    (
        "EncryptedUploadRequest",
        (
            ("server_public_key", 1, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
            ("app_public_key", 2, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
            ("nonce", 3, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
            ("payload", 4, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
        ),
    ),
    (
        "EncryptedUploadResponse",
        (("error", 1, _Field.TYPE_STRING, _Field.LABEL_OPTIONAL, None),),
    ),
    (
        "Upload",
        (
            (
                "timestamp",
                1,
                _Field.TYPE_MESSAGE,
                _Field.LABEL_OPTIONAL,
                ".google.protobuf.Timestamp",
            ),
            ("keys", 2, _Field.TYPE_MESSAGE, _Field.LABEL_REPEATED, ".covidshield.Key"),
        ),
    ),
    (
        "Key",
        (
            ("key_data", 1, _Field.TYPE_BYTES, _Field.LABEL_OPTIONAL, None),
            ("rolling_start_number", 2, _Field.TYPE_UINT32, _Field.LABEL_OPTIONAL, None),
            ("rolling_period", 3, _Field.TYPE_UINT32, _Field.LABEL_OPTIONAL, None),
            ("transmission_risk_level", 4, _Field.TYPE_INT32, _Field.LABEL_OPTIONAL, None),
        ),
    ),
)


def _file_descriptor_proto():
    """Build the FileDescriptorProto of the covidshield schema"""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="exposure_client/covidshield.proto",
        package=PACKAGE,
        syntax="proto2",
    )
    file_proto.dependency.append(timestamp_pb2.DESCRIPTOR.name)

    for message_name, fields in SCHEMA:
        message_proto = file_proto.message_type.add(name=message_name)
        for (field_name, number, field_type, label, type_name) in fields:
            field_proto = message_proto.field.add(
                name=field_name, number=number, type=field_type, label=label
            )
            if type_name is not None:
                field_proto.type_name = type_name

    return file_proto


DESCRIPTOR = descriptor_pool.Default().AddSerializedFile(
    _file_descriptor_proto().SerializeToString()
)

KeyClaimRequest = message_factory.GetMessageClass(
    DESCRIPTOR.message_types_by_name["KeyClaimRequest"]
)
KeyClaimResponse = message_factory.GetMessageClass(
    DESCRIPTOR.message_types_by_name["KeyClaimResponse"]
)
EncryptedUploadRequest = message_factory.GetMessageClass(
    DESCRIPTOR.message_types_by_name["EncryptedUploadRequest"]
)
EncryptedUploadResponse = message_factory.GetMessageClass(
    DESCRIPTOR.message_types_by_name["EncryptedUploadResponse"]
)
Upload = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["Upload"])
Key = message_factory.GetMessageClass(DESCRIPTOR.message_types_by_name["Key"])


def encode(message):
    """Serialize a message to its binary wire form

    Args:
        message: A covidshield message instance

    Returns:
        bytes: The serialized message
    """
    return message.SerializeToString()


def _check_strings(message):
    """Raise DecodeError if a string field did not hold valid UTF-8

    The proto2 runtime hands such fields back as bytes instead of failing.
    """
    for field, value in message.ListFields():
        if field.type == field.TYPE_STRING:
            values = [value] if isinstance(value, (str, bytes)) else value
            if not all(isinstance(item, str) for item in values):
                raise DecodeError(
                    "Field {} is not valid UTF-8".format(field.full_name)
                )
        elif field.type == field.TYPE_MESSAGE:
            for item in [value] if isinstance(value, Message) else value:
                _check_strings(item)


def decode(message_class, data):
    """Parse the binary wire form of a message

    Args:
        message_class: The covidshield message class to decode into
        data (bytes): Raw bytes as received from the network

    Returns:
        An instance of message_class

    Raises:
        DecodeError: If data is not a valid encoding of message_class,
            including string fields that are not UTF-8
    """
    try:
        message = message_class.FromString(bytes(data))
    except (ProtobufDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(
            "Malformed {} message".format(message_class.DESCRIPTOR.name)
        ) from exc
    _check_strings(message)
    return message
