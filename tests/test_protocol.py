import pytest

from udpfileserver.protocol import (
    DATAGRAM_SIZE,
    Message,
    MsgType,
    ProtocolError,
    decode,
    encode,
)


@pytest.mark.parametrize("msg_type", list(MsgType))
def test_round_trip_every_type(msg_type):
    message = Message(msg_type, "notes.txt", fid=3, pos=10, size=4, seqno=7, rn=2, payload=b"data")
    assert decode(encode(message)) == message


def test_pinned_wire_bytes():
    message = Message(MsgType.OPEN, "a", fid=1, pos=0, size=0, seqno=2, rn=3)
    expected = (
        b"\x00\x00\x00\x00"
        b"\x00\x00\x00\x01a"
        b"\x00\x00\x00\x01"
        b"\x00\x00\x00\x00"
        b"\x00\x00\x00\x00"
        b"\x00\x00\x00\x02"
        b"\x00\x00\x00\x03"
        b"\x00\x00\x00\x00"
    )
    assert message.encode() == expected


def test_type_code_is_first_field():
    data = Message(MsgType.READ_DONE, "x", size=0, payload=b"").encode()
    assert data[:4] == int(MsgType.READ_DONE).to_bytes(4, "big")


def test_negative_values_round_trip():
    message = Message(MsgType.READ, "f", fid=-1, pos=-1, size=0, seqno=-1, rn=-5, payload=b"")
    assert Message.decode(message.encode()) == message


def test_missing_name_and_payload_decode_empty():
    decoded = decode(encode(Message(MsgType.OPEN, None, fid=0, pos=0, size=9, seqno=0, rn=0)))
    assert decoded.name == ""
    assert decoded.payload == b""
    assert decoded.size == 9


def test_payload_padded_to_size():
    decoded = decode(encode(Message(MsgType.WRITE, "f", fid=0, pos=0, size=4, seqno=0, payload=b"ab")))
    assert decoded.payload == b"ab\0\0"


def test_payload_cut_to_size():
    decoded = decode(encode(Message(MsgType.WRITE, "f", fid=0, pos=0, size=2, seqno=0, payload=b"abcdef")))
    assert decoded.payload == b"ab"


def test_encoded_length_invariant():
    message = Message(MsgType.WRITE, "dir/file.bin", fid=1, pos=2, size=100, seqno=3, payload=b"z" * 100)
    assert len(message.encode()) == 8 * 4 + len("dir/file.bin") + 100


def test_trailing_padding_ignored():
    message = Message(MsgType.TRUNC, "t", fid=4, pos=0, size=12, seqno=1, rn=1, payload=b"\0")
    data = message.encode()
    padded = data.ljust(DATAGRAM_SIZE, b"\0")
    assert decode(padded) == decode(data)


def test_non_ascii_name_round_trip():
    message = Message(MsgType.OPEN, "résumé.txt", fid=0, pos=0, size=0, seqno=0, payload=b"")
    assert decode(encode(message)).name == "résumé.txt"


def test_every_truncation_raises():
    data = Message(MsgType.READ, "abc", fid=1, pos=2, size=3, seqno=4, rn=5, payload=b"xyz").encode()
    for cut in range(len(data)):
        with pytest.raises(ProtocolError):
            decode(data[:cut])


def test_unknown_type_raises():
    data = bytearray(Message(MsgType.OPEN, "a", size=0, payload=b"").encode())
    data[3] = 99
    with pytest.raises(ProtocolError):
        decode(bytes(data))


def test_negative_length_raises():
    data = bytearray(Message(MsgType.OPEN, "a", size=0, payload=b"").encode())
    data[4:8] = b"\xff\xff\xff\xff"
    with pytest.raises(ProtocolError):
        decode(bytes(data))


def test_out_of_range_int_raises():
    with pytest.raises(ProtocolError):
        encode(Message(MsgType.OPEN, "a", fid=2**31))


def test_payload_with_negative_size_raises():
    with pytest.raises(ProtocolError):
        encode(Message(MsgType.WRITE, "a", size=-1, payload=b"x"))