"""
Test interoperability with data compressed and decompressed by main stream
third party implementations, separate from this project.
"""

import pytest
from hypothesis import strategies as st, given

import cramffi
from .test_variants import same_same

cramjam = pytest.importorskip("cramjam")


@pytest.mark.requires_library("snappy")
@given(data=st.binary(max_size=int(1e5)))
def test_snappy_raw_compat(data):
    # cramjam can decompress us
    compressed = cramffi.snappy.compress_raw(data)
    assert same_same(bytes(cramjam.snappy.decompress_raw(compressed)), data)

    # and we can decompress cramjam
    compressed = bytes(cramjam.snappy.compress_raw(data))
    assert cramffi.snappy.decompress_raw_len(compressed) == len(data)
    assert same_same(cramffi.snappy.decompress_raw(compressed), data)


@pytest.mark.requires_library("lz4")
@given(data=st.binary(max_size=int(1e5)))
@pytest.mark.parametrize("store_size", (True, False))
def test_lz4_block_compat(data, store_size):
    output_len = None if store_size else len(data)

    compressed = cramffi.lz4.compress_block(data, store_size=store_size)
    out = cramjam.lz4.decompress_block(compressed, output_len=output_len)
    assert same_same(bytes(out), data)

    compressed = bytes(cramjam.lz4.compress_block(data, store_size=store_size))
    assert same_same(cramffi.lz4.decompress_block(compressed, output_len=output_len), data)


@pytest.mark.requires_library("zstd")
@given(data=st.binary(max_size=int(1e5)))
def test_zstd_compat(data):
    compressed = cramffi.zstd.compress(data)
    assert same_same(bytes(cramjam.zstd.decompress(compressed)), data)

    compressed = bytes(cramjam.zstd.compress(data))
    out = cramffi.zstd.decompress(compressed, output_len=len(data))
    assert same_same(out, data)
