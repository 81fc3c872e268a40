import io

import pytest

from NtHive import Hive
from NtHive.HiveParse import RegDWord, RegSZ

from fixtures import CountingStore, HiveBuilder, KEY_HIVE_ENTRY, KEY_NO_DELETE, utf16


@pytest.fixture
def builder():
    return HiveBuilder()


@pytest.fixture
def simple_hive_data():
    """
    ROOT (UTF-16 name) -> FastLeaf -> Child (compressed name, two values).
    """
    b = HiveBuilder()
    values = [
        b.vk("Greeting", RegSZ, utf16("hello")),
        b.vk("Answer", RegDWord, b"\x2a\x00\x00\x00"),
    ]
    child = b.key("Child", values=values)
    root = b.key("ROOT", subkeys=[child], compressed=False, flags=KEY_HIVE_ENTRY | KEY_NO_DELETE)
    return b.build(root)


@pytest.fixture
def tree_hive_data():
    """
    ROOT -> A -> B -> C, with a sibling D under ROOT. A's children sit
    behind an IndexRoot.
    """
    b = HiveBuilder()
    c = b.key("C")
    b_key = b.key("B", subkeys=[c], list_type=b"lh")
    other = b.key("Other")
    first_leaf = b.subkeys_list(b"li", [other])
    second_leaf = b.subkeys_list(b"lf", [b_key])
    a = b.key("A", subkey_count=2, subkeys_list=b.subkeys_list(b"ri", [first_leaf, second_leaf]))
    d = b.key("D")
    root = b.key("ROOT", subkeys=[a, d], compressed=False, flags=KEY_HIVE_ENTRY)
    return b.build(root)


@pytest.fixture
def simple_hive(simple_hive_data):
    return Hive.Hive(simple_hive_data)


@pytest.fixture
def tree_hive(tree_hive_data):
    return Hive.Hive(tree_hive_data)


@pytest.fixture
def counting_store(simple_hive_data):
    return CountingStore(io.BytesIO(simple_hive_data))
