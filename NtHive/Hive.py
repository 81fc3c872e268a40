#!/bin/python

#    This file is part of python-nthive.
#
#   Copyright 2011, 2012 Willi Ballenthin <william.ballenthin@mandiant.com>
#                    while at Mandiant <http://www.mandiant.com>
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
import sys
import logging

from . import HiveParse

logger = logging.getLogger(__name__)


class HiveKeyNotFoundException(HiveParse.HiveException):
    def __str__(self):
        return "Hive key not found: %s" % (self._value)


class HiveValueNotFoundException(HiveParse.HiveException):
    def __str__(self):
        return "Hive value not found: %s" % (self._value)


class KeyValue(object):
    """
    This is a high level structure for working with a hive.
    It represents the 3-tuple of (name, type, value) associated with
      a registry value.
    """
    def __init__(self, vkrecord):
        self._vkrecord = vkrecord

    def __repr__(self):
        return 'KeyValue(name="{0}", type="{1}")'.format(self.name(), self.value_type_str())

    def name(self):
        """
        Get the name of the value as a string.
        The name of the default value is returned as "(default)".
        """
        if self._vkrecord.has_name():
            return self._vkrecord.name()
        else:
            return "(default)"

    def value_type(self):
        """
        Get the type of the value as an integer constant, see the Reg* constants
        in HiveParse.
        """
        return self._vkrecord.data_type()

    def value_type_str(self):
        return self._vkrecord.data_type_str()

    def value(self):
        return self._vkrecord.data()

    def raw_data(self):
        return self._vkrecord.raw_data()


class KeyNode(object):
    """
    A node in the key tree of a hive.
    The values of a KeyNode are read when it is decoded. Its subkeys are read
    the first time they are asked for and remembered by the hive's arena, so
    the same offset always yields the same KeyNode instance.
    """
    def __init__(self, hive, nkrecord, values):
        """
        Arguments:
        - `hive`: The Hive this key belongs to.
        - `nkrecord`: The decoded HiveParse.NKRecord.
        - `values`: The KeyValues of this key, in list order.
        """
        self._hive = hive
        self._nkrecord = nkrecord
        self._values = values

    @classmethod
    def from_offset(cls, hive, offset):
        """
        Decode the key node stored in the cell at `offset`, together with its values.
        """
        store = hive.store()
        nkrecord = HiveParse.read_cell(store, offset, HiveParse.NKRecord)
        values_list = nkrecord.values_list(store)
        values = [KeyValue(v) for v in HiveParse.read_values(store, values_list)]
        logger.debug("Decoded %s with %d values", nkrecord, len(values))
        return cls(hive, nkrecord, values)

    def __str__(self):
        return "Key Node %r with %d values and %d subkeys" % \
            (self._nkrecord.raw_name(), len(self._values), self.subkey_count())

    def __repr__(self):
        return 'KeyNode(offset=0x{0:x}, name={1!r})'.format(self.offset(), self._nkrecord.raw_name())

    def __getitem__(self, key):
        return self.value(key)

    def offset(self):
        """
        Get the cell offset of this key.
        """
        return self._nkrecord.offset()

    def name(self):
        """
        Get the name of the key as a string.
        Raises HiveParse.StringEncodingException if the name can not be decoded.
        """
        return self._nkrecord.name()

    def raw_name(self):
        return self._nkrecord.raw_name()

    def timestamp(self):
        """
        Get the last written timestamp as a Python datetime.
        """
        return self._nkrecord.timestamp()

    def flags(self):
        return self._nkrecord.flags()

    def user_flags(self):
        return self._nkrecord.user_flags()

    def is_root(self):
        return self._nkrecord.is_root()

    def access_bits(self):
        return self._nkrecord.access_bits()

    def parent_offset(self):
        """
        The raw parent offset. It is not followed.
        """
        return self._nkrecord.parent_offset()

    def class_name(self):
        return self._nkrecord.classname(self._hive.store())

    def subkey_count(self):
        return self._nkrecord.subkey_count()

    def values_count(self):
        return self._nkrecord.values_count()

    def values(self):
        """
        Return a list containing the KeyValues of this key.
        """
        return list(self._values)

    def value(self, name):
        """
        Return the value with the given name as a KeyValue.
        The unnamed value is looked up as "(default)".
        Raises HiveValueNotFoundException if the value with
          the given name does not exist.
        """
        for v in self._values:
            if self._hive.names_match(v.name(), name):
                return v
        raise HiveValueNotFoundException("0x%x : %s" % (self.offset(), name))

    def subkeys(self):
        """
        Return a list of the direct subkeys as KeyNodes, in on-disk order.
        The subkey list is read at most once per key.
        """
        arena = self._hive.arena()
        children = arena.children(self.offset())
        if children is None:
            children = self._resolve_subkeys()
            arena.set_children(self.offset(), children)
        return [arena.node(offset) for offset in children]

    def _resolve_subkeys(self):
        store = self._hive.store()
        subkeys_list = self._nkrecord.subkeys_list(store)
        if subkeys_list is None:
            return []

        offsets = subkeys_list.into_offsets(store)
        if len(offsets) != self.subkey_count():
            logger.debug("%s has %d subkeys, while its %s lists %d",
                         self._nkrecord, self.subkey_count(), subkeys_list.__class__.__name__, len(offsets))

        # decode the immediate children now, so a bad child fails this call
        arena = self._hive.arena()
        for offset in offsets:
            arena.node(offset)
        logger.debug("Resolved %d subkeys of %s", len(offsets), self._nkrecord)
        return offsets

    def subkey(self, name):
        """
        Return the first subkey with the given name, or None.
        """
        for key in self.subkeys():
            try:
                candidate = key.name()
            except HiveParse.StringEncodingException:
                logger.debug("Skipping %r while looking for %r: its name can not be decoded", key, name)
                continue
            if self._hive.names_match(candidate, name):
                return key
        return None

    def subpath(self, path):
        """
        Resolve a backslash separated path below this key.
        Empty components are ignored, so leading and trailing backslashes
        are allowed. Returns None when any component is missing, and for a
        path without components.
        """
        components = [c for c in path.split("\\") if c]
        if not components:
            return None

        key = self
        for component in components:
            key = key.subkey(component)
            if key is None:
                return None
        return key


class KeyNodeArena(object):
    """
    All KeyNodes decoded from one hive, by cell offset, plus the resolved
    children of every key whose subkeys have been asked for.
    """
    def __init__(self, hive):
        self._hive = hive
        self._nodes = {}
        self._children = {}

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, offset):
        return offset in self._nodes

    def node(self, offset):
        """
        Get the KeyNode at a cell offset, decoding it on first use.
        """
        try:
            return self._nodes[offset]
        except KeyError:
            pass
        node = KeyNode.from_offset(self._hive, offset)
        self._nodes[offset] = node
        return node

    def children(self, offset):
        """
        The child offsets of the key at `offset`, or None if not resolved yet.
        """
        return self._children.get(offset)

    def set_children(self, offset, offsets):
        if offset in self._children:
            raise ValueError("Subkeys of the key at 0x%x are already resolved" % (offset))
        self._children[offset] = list(offsets)


def open_store(source):
    """
    Build a HiveStore from a path, a bytes-like buffer, a file-like object,
    or pass through an existing HiveStore.
    Returns the store and whether the caller owns (and must close) it.
    A path is opened as a file-backed store, it is not read into memory.
    """
    if isinstance(source, HiveParse.HiveStore):
        return source, False
    if isinstance(source, (bytes, bytearray, memoryview)):
        return HiveParse.HiveStore.from_buffer(source), True
    if hasattr(source, "read"):
        if hasattr(source, "seekable") and source.seekable():
            return HiveParse.HiveStore(source), False
        return HiveParse.HiveStore.from_buffer(source.read()), True
    return HiveParse.HiveStore(open(source, "rb")), True


class Hive(object):
    """
    A class for parsing and reading from a hive file.
    """
    def __init__(self, source, case_sensitive=True):
        """
        Constructor.
        Arguments:
        - `source`: A path, a bytes-like buffer, a seekable binary file-like
              object, or a HiveParse.HiveStore.
        - `case_sensitive`: Compare key and value names exactly (the default),
              or ignoring case.
        A file opened from a path is closed by close(), or when the Hive is
        used as a context manager. Caller supplied file objects are left open.
        """
        self._store, self._owns_store = open_store(source)
        try:
            self._regf = HiveParse.REGFBlock.from_store(self._store)
        except HiveParse.HiveException:
            self.close()
            raise
        self._case_sensitive = case_sensitive
        self._arena = KeyNodeArena(self)

        if not self._regf.validate_checksum():
            logger.warning("Checksum failed, the %r hive is dirty, keys and values may not be read properly",
                           self.hive_name())
        if not self._regf.validate_sequence_numbers():
            logger.warning("The %r hive is undergoing a transaction, keys and values may not be read properly",
                           self.hive_name())

    def __repr__(self):
        return 'Hive(hive_name="{0}")'.format(self.hive_name())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        """
        Close the backing store, if this Hive opened it.
        """
        if self._owns_store:
            self._store.close()

    def hive_name(self):
        """Returns the internal file name"""
        return self._regf.hive_name()

    def regf(self):
        return self._regf

    def store(self):
        return self._store

    def arena(self):
        return self._arena

    def case_sensitive(self):
        return self._case_sensitive

    def names_match(self, a, b):
        if self._case_sensitive:
            return a == b
        return a.lower() == b.lower()

    def key_node(self, offset):
        """
        Return the KeyNode stored at a cell offset.
        """
        return self._arena.node(offset)

    def root(self):
        """
        Return the root KeyNode of the hive.
        """
        return self.key_node(self._regf.root_cell_offset())

    def open(self, path):
        """
        Return a KeyNode by path below the root.
        Subkeys are separated by the backslash character ('\\').
        The name of the root key should not be included.
        An empty path returns the root.
        """
        root = self.root()
        if not [c for c in path.split("\\") if c]:
            return root

        key = root.subpath(path)
        if key is None:
            raise HiveKeyNotFoundException(path)
        return key


def print_all(key, prefix="", _seen=None):
    """
    Print the path of every leaf key below `key`.
    A key whose name can not be decoded is printed by its raw name, and a
    subkey that leads back to a key on the current path is not followed.
    """
    if _seen is None:
        _seen = set()
    try:
        name = key.name()
    except HiveParse.StringEncodingException:
        name = repr(key.raw_name())
    path = name if not prefix else prefix + "\\" + name

    _seen.add(key.offset())
    subkeys = key.subkeys()
    if len(subkeys) == 0:
        print(path)
    else:
        for k in subkeys:
            if k.offset() in _seen:
                logger.warning("Skipping %r below %s: it loops back to its own path", k, path)
                continue
            print_all(k, path, _seen)
    _seen.discard(key.offset())


if __name__ == '__main__':
    with Hive(sys.argv[1]) as h:
        print_all(h.root())
