#!/usr/bin/python
# -*- coding: utf-8 -*-
import pytest

from NtHive.HiveParse import (FastLeaf, HashLeaf, HiveStore, IndexLeaf, IndexRoot,
                              MalformedHiveException, ParseException, SubKeysList,
                              read_cell, read_subkeys_list)

from fixtures import HiveBuilder


def store_for(builder):
    return HiveStore.from_buffer(builder.build(0x20))


@pytest.mark.parametrize("magic,variant", [
    (b"li", IndexLeaf),
    (b"lf", FastLeaf),
    (b"lh", HashLeaf),
])
def test_leaf_offsets_keep_disk_order(magic, variant):
    b = HiveBuilder()
    offsets = [0x300, 0x100, 0x200, 0x100]
    list_offset = b.subkeys_list(magic, offsets)
    store = store_for(b)

    l = read_subkeys_list(store, list_offset)
    assert isinstance(l, variant)
    assert len(l) == 4
    # no sorting and no deduplication
    assert l.into_offsets(store) == offsets


def test_fast_leaf_entries_carry_name_hint():
    b = HiveBuilder()
    list_offset = b.subkeys_list(b"lf", [0x80])
    store = store_for(b)

    l = read_subkeys_list(store, list_offset)
    assert l.entries() == [(0x80, b"\x00\x00\x00\x00")]


def test_index_root_flattens_in_list_order():
    b = HiveBuilder()
    first = b.subkeys_list(b"lh", [0x500, 0x400])
    second = b.subkeys_list(b"li", [0x600])
    third = b.subkeys_list(b"lf", [0x300])
    root = b.subkeys_list(b"ri", [first, second, third])
    store = store_for(b)

    l = read_subkeys_list(store, root)
    assert isinstance(l, IndexRoot)
    assert l.offsets() == [first, second, third]
    assert l.into_offsets(store) == [0x500, 0x400, 0x600, 0x300]


def test_index_root_referencing_index_root():
    b = HiveBuilder()
    leaf = b.subkeys_list(b"li", [0x500])
    inner = b.subkeys_list(b"ri", [leaf])
    outer = b.subkeys_list(b"ri", [inner])
    store = store_for(b)

    with pytest.raises(MalformedHiveException):
        read_subkeys_list(store, outer).into_offsets(store)


def test_unknown_signature():
    b = HiveBuilder()
    offset = b.cell(b"xx\x01\x00\x20\x00\x00\x00")
    store = store_for(b)

    with pytest.raises(ParseException):
        read_subkeys_list(store, offset)


def test_requested_variant_must_match():
    b = HiveBuilder()
    offset = b.subkeys_list(b"li", [0x20])
    store = store_for(b)

    assert isinstance(read_cell(store, offset, SubKeysList), IndexLeaf)
    with pytest.raises(ParseException):
        read_cell(store, offset, FastLeaf)


def test_count_larger_than_cell():
    b = HiveBuilder()
    offset = b.cell(b"lh\xff\x00")
    store = store_for(b)

    with pytest.raises(MalformedHiveException):
        read_subkeys_list(store, offset)
