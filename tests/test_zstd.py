import os

import pytest
from hypothesis import strategies as st, given

from cramffi import BufferTooSmall, CramffiError, MalformedInput, NativeCallFailed, zstd
from cramffi._zstd import ZstdNative, bindings

pytestmark = pytest.mark.requires_library("zstd")

DATA = b"oh what a beautiful morning, oh what a beautiful day!!" * 1000


def test_zstd_levels():
    native = ZstdNative()
    assert native.min_level < 0 < zstd.DEFAULT_COMPRESSION_LEVEL <= native.max_level

    sizes = {}
    for level in (1, 3, 9, native.max_level):
        compressed = zstd.compress(DATA, level=level)
        assert zstd.decompress(compressed) == DATA
        sizes[level] = len(compressed)
    assert sizes[native.max_level] <= sizes[1]


def test_zstd_default_level():
    assert zstd.Compressor().level == zstd.DEFAULT_COMPRESSION_LEVEL
    assert zstd.compress(DATA) == zstd.compress(DATA, level=3)


@pytest.mark.parametrize("offset", (-1, 1))
def test_zstd_invalid_level(offset):
    native = ZstdNative()
    level = native.min_level + offset if offset < 0 else native.max_level + offset
    with pytest.raises(ValueError, match="compression level"):
        zstd.Compressor(level=level)


def test_zstd_version():
    assert bindings().version.count(".") == 2


@given(data=st.binary(max_size=int(1e5)))
def test_zstd_probe(data):
    compressed = zstd.compress(data)
    assert zstd.decompressed_len(compressed) == len(data)
    assert zstd.decompress(compressed) == data


def test_zstd_compress_into():
    out = bytearray(zstd.max_compressed_len(DATA))
    n = zstd.compress_into(DATA, out, level=1)
    decompressed = bytearray(len(DATA))
    assert zstd.decompress_into(out[:n], decompressed) == len(DATA)
    assert decompressed == DATA


def test_zstd_corrupted_magic():
    compressed = bytearray(zstd.compress(DATA))
    compressed[0] ^= 0xFF
    with pytest.raises(MalformedInput):
        zstd.decompressed_len(compressed)
    with pytest.raises(MalformedInput):
        zstd.decompress_into(compressed, bytearray(len(DATA)))
    assert not zstd.Decompressor().validate(compressed)


# Frame without a content size field, holding one empty last raw block
UNSIZED_FRAME = b"\x28\xb5\x2f\xfd\x00\x00\x01\x00\x00"


def test_zstd_decompress_requires_size_when_unrecorded():
    assert zstd.decompressed_len(UNSIZED_FRAME) is None
    assert zstd.Decompressor().validate(UNSIZED_FRAME)
    with pytest.raises(ValueError, match="output_len"):
        zstd.decompress(UNSIZED_FRAME)
    assert zstd.decompress(UNSIZED_FRAME, output_len=16) == b""


def test_zstd_truncated_header():
    with pytest.raises(MalformedInput):
        zstd.decompressed_len(zstd.compress(DATA)[:4])


def test_zstd_validate_concatenated_frames():
    first = zstd.compress(b"foo")
    second = zstd.compress(b"bar")
    decompressor = zstd.Decompressor()
    assert decompressor.validate(first + second)
    assert not decompressor.validate((first + second)[:-1])
    assert not decompressor.validate(b"")

    # Multiple frames decode back to back
    out = bytearray(6)
    assert decompressor.decompress(first + second, out) == 6
    assert out == b"foobar"


@pytest.mark.parametrize(
    "code,error",
    (
        (2**64 - 70, BufferTooSmall),  # dstSize_tooSmall
        (2**64 - 20, MalformedInput),  # corruption_detected
        (2**64 - 64, NativeCallFailed),  # memory_allocation
    ),
)
def test_zstd_error_classification(code, error):
    native = ZstdNative()
    assert native.is_error(code)
    with pytest.raises(error) as exc:
        native._raise("decompression", code, decoding=True)
    assert native.error_name(code) in str(exc.value)


def test_zstd_unknown_error_keeps_diagnostic():
    native = ZstdNative()
    with pytest.raises(NativeCallFailed) as exc:
        native._raise("compression", 2**64 - 20, decoding=False)
    assert exc.value.code == 20
    assert exc.value.diagnostic == native.error_name(2**64 - 20)


def test_zstd_success_is_not_an_error():
    assert not ZstdNative().is_error(1024)


def test_zstd_decompressed_len_sums_frames():
    first = zstd.compress(b"foo")
    second = zstd.compress(b"bar")
    assert zstd.decompressed_len(first + second) == 6
    assert zstd.Decompressor().decompressed_length(first + second) == 6
    assert zstd.decompress(first + second) == b"foobar"

    # Any frame without a recorded size leaves the total unknown
    assert zstd.decompressed_len(UNSIZED_FRAME + first) is None
    assert zstd.decompressed_len(first + UNSIZED_FRAME) is None


def test_zstd_validate_agrees_with_decompress():
    data = os.urandom(2048) + b"oh what a beautiful morning" * 40
    compressed = zstd.compress(data)
    decompressor = zstd.Decompressor()
    assert decompressor.validate(compressed)

    for i in range(len(compressed)):
        corrupted = bytearray(compressed)
        corrupted[i] ^= 0xFF
        valid = decompressor.validate(corrupted)
        try:
            decompressor.decompress(corrupted, bytearray(len(data)))
        except MalformedInput:
            assert not valid, f"validate accepted a frame corrupted at byte {i}"
        except CramffiError:
            # Corrupted headers may claim more content than the output holds
            pass
