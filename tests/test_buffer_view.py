import gc
import sys
import weakref

import numpy as np
import pytest

from cramffi import ByteRange, DirectBuffer, UnsupportedBufferKind
from cramffi._binder import bind
from cramffi._buffer import as_range, copy_into, view
from cramffi._loader import NativeLibrary

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="needs the C runtime opened with dlopen(NULL)"
)


@pytest.fixture(scope="module")
def memset():
    libc = NativeLibrary("c", None)
    return bind(libc, "memset", "void *memset(void *s, int c, size_t n);")


@pytest.mark.parametrize(
    "obj",
    (
        b"bytes",
        bytearray(b"bytes"),
        memoryview(b"bytes"),
        np.frombuffer(b"bytes", dtype=np.uint8),
    ),
)
def test_byte_range_of_managed(obj):
    byte_range = ByteRange.of(obj)
    assert not byte_range.is_foreign
    assert len(byte_range) == 5
    assert byte_range.tobytes() == b"bytes"
    assert byte_range.slice(1, 3).tobytes() == b"yte"
    assert "managed" in repr(byte_range)


def test_byte_range_of_direct_buffer():
    buf = DirectBuffer.from_bytes(b"bytes")
    byte_range = ByteRange.of(buf, 2)
    assert byte_range.is_foreign
    assert byte_range.owner is buf
    assert byte_range.tobytes() == b"tes"
    assert "foreign" in repr(byte_range)


@pytest.mark.parametrize("offset,length", ((6, None), (-1, None), (0, 6), (3, 3), (2, -1)))
def test_byte_range_out_of_bounds(offset, length):
    with pytest.raises(ValueError):
        ByteRange.of(b"bytes", offset, length)


def test_byte_range_empty_at_end():
    byte_range = ByteRange.of(b"bytes", 5)
    assert len(byte_range) == 0
    assert byte_range.tobytes() == b""


@pytest.mark.parametrize("obj", ("bytes", 5, 5.0, None, object(), [1, 2, 3]))
def test_byte_range_unsupported_kind(obj):
    with pytest.raises(UnsupportedBufferKind):
        ByteRange.of(obj)


def test_byte_range_unsupported_kind_is_type_error():
    with pytest.raises(TypeError):
        ByteRange.of("bytes")


def test_byte_range_non_contiguous():
    arr = np.arange(100, dtype=np.uint8)[::2]
    with pytest.raises(UnsupportedBufferKind, match="C-contiguous"):
        ByteRange.of(arr)


def test_byte_range_multidimensional_is_flattened():
    arr = np.arange(12, dtype=np.int32).reshape((3, 4))
    byte_range = ByteRange.of(arr)
    assert len(byte_range) == arr.nbytes
    assert byte_range.tobytes() == arr.tobytes()


def test_byte_range_foreign_validation():
    with pytest.raises(ValueError):
        ByteRange.foreign(0, 10)
    with pytest.raises(ValueError):
        ByteRange.foreign(1234, -1)

    # A NULL address is fine when nothing will be read
    assert len(ByteRange.foreign(0, 0)) == 0


def test_read_only_destination():
    with pytest.raises(UnsupportedBufferKind, match="Read-only"):
        as_range(b"bytes", writable=True)

    with pytest.raises(UnsupportedBufferKind):
        with view(ByteRange.of(b"bytes"), writable=True):
            pass

    assert as_range(bytearray(b"bytes"), writable=True).readonly is False


@posix_only
@pytest.mark.parametrize("offset", (0, 1, 7))
def test_view_hands_out_offset_address(memset, offset):
    data = bytearray(16)
    byte_range = ByteRange.of(data, offset, 4)

    with view(byte_range, writable=True) as (pointer, length):
        assert length == 4
        memset(pointer, ord("x"), length)

    expected = bytearray(16)
    expected[offset : offset + 4] = b"xxxx"
    assert data == expected


@posix_only
def test_view_over_foreign_memory(memset):
    buf = DirectBuffer(8)
    byte_range = ByteRange.foreign(buf.address, len(buf), owner=buf).slice(2, 3)

    with view(byte_range, writable=True) as (pointer, length):
        memset(pointer, ord("z"), length)

    assert buf.tobytes() == b"\x00\x00zzz\x00\x00\x00"


@posix_only
def test_view_over_numpy(memset):
    arr = np.zeros(8, dtype=np.uint8)
    with view(ByteRange.of(arr, 4), writable=True) as (pointer, length):
        memset(pointer, 1, length)
    assert arr.tolist() == [0, 0, 0, 0, 1, 1, 1, 1]


@pytest.mark.skip_pypy
def test_view_pins_bytearray():
    data = bytearray(b"bytes")
    byte_range = ByteRange.of(data)

    with view(byte_range, writable=True):
        # Can't resize storage out from under an exported pointer
        with pytest.raises(BufferError):
            data.extend(b"more")
    assert data == b"bytes"


def test_view_releases_on_exception():
    byte_range = ByteRange.of(bytearray(b"bytes"))
    with pytest.raises(RuntimeError):
        with view(byte_range, writable=True):
            raise RuntimeError("boom")

    # Still usable afterwards
    assert byte_range.tobytes() == b"bytes"


@pytest.mark.skip_pypy
def test_byte_range_keeps_owner_alive():
    arr = np.frombuffer(b"bytes", dtype=np.uint8).copy()
    ref = weakref.ref(arr)
    byte_range = ByteRange.of(arr)

    del arr
    gc.collect()
    assert ref() is not None
    assert byte_range.tobytes() == b"bytes"

    del byte_range
    gc.collect()
    assert ref() is None


def test_foreign_range_keeps_owner_alive():
    buf = DirectBuffer.from_bytes(b"bytes")
    ref = weakref.ref(buf)
    byte_range = ByteRange.foreign(buf.address, len(buf), owner=buf)

    del buf
    gc.collect()
    assert ref() is not None
    assert byte_range.tobytes() == b"bytes"


def test_copy_into():
    data = bytearray(8)
    assert copy_into(ByteRange.of(data, 2), b"abc") == 3
    assert data == b"\x00\x00abc\x00\x00\x00"

    with pytest.raises(ValueError):
        copy_into(ByteRange.of(data, 6), b"abc")


def test_direct_buffer_dunders():
    buf = DirectBuffer(0)
    assert len(buf) == 0
    assert bool(buf) is False

    buf = DirectBuffer(5)
    assert len(buf) == buf.len() == 5
    assert bool(buf) is True
    assert "len=5" in str(buf)
    assert buf.address != 0


def test_direct_buffer_raises_when_writing_past_data_length_at_once():
    buf = DirectBuffer(5)

    with pytest.raises(OSError, match="Too much to write on direct buffer"):
        buf.write(b"0" * 6)
    assert buf.tobytes() == b"\x00" * 5
    assert buf.tell() == 0


def test_direct_buffer_raises_when_writing_past_data_length_incrementally():
    buf = DirectBuffer(5)

    # This is okay, up to length of underlying buffer
    for _ in range(len(buf)):
        buf.write(b"0")

    # Whoops, one too many bytes
    with pytest.raises(OSError, match="Too much to write on direct buffer"):
        buf.write(b"0")
    assert buf.tobytes() == b"00000"


@pytest.mark.parametrize("whence", (0, 1, 2))
def test_direct_buffer_raises_when_write_after_bad_seek(whence):
    buf = DirectBuffer.from_bytes(b"bytes")

    buf.seek(2, whence=0)  # Seek forward 2 from start, also okay
    buf.seek(2, whence=1)  # Seek forward 2 from current position, okay
    buf.seek(-2, whence=2)  # Seek back -2 from end, okay
    buf.seek(0)  # Set back to start

    # Seeking 10 positions from any point is not possible with len of 5
    msg = "Bad seek: cannot seek outside bounds of direct buffer"
    with pytest.raises(OSError, match=msg):
        buf.seek(10, whence=whence)
    buf.write(b"0")
    assert buf.tobytes() == b"0ytes"


def test_direct_buffer_invalid_whence():
    with pytest.raises(ValueError):
        DirectBuffer(5).seek(0, whence=3)


def test_direct_buffer_cannot_read_passed():
    data = b"bytes"
    buf = DirectBuffer.from_bytes(data)

    # Cannot read pass length of buffer
    # matches read behavior of io.BytesIO
    assert buf.read(len(data) * 2) == data

    # Cannot read pass incrementally either
    b = b""
    buf.seek(0)
    for i in range(0, 10):
        b += buf.read(i)
    assert b == data


def test_direct_buffer_readinto():
    buf = DirectBuffer.from_bytes(b"bytes")
    out = bytearray(3)
    assert buf.readinto(out) == 3
    assert out == b"byt"
    assert buf.readinto(out) == 2
    assert out[:2] == b"es"
    assert buf.readinto(out) == 0
