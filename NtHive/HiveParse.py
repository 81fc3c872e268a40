#!/bin/python

#    This file is part of python-nthive.
#
#   Copyright 2011 Will Ballenthin <william.ballenthin@mandiant.com>
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

import io
import struct
import datetime
import decimal
import binascii
from enum import IntFlag

# Constants
RegSZ = 0x0001
RegExpandSZ = 0x0002
RegBin = 0x0003
RegDWord = 0x0004
RegMultiSZ = 0x0007
RegQWord = 0x000B
RegNone = 0x0000
RegBigEndian = 0x0005
RegLink = 0x0006
RegResourceList = 0x0008
RegFullResourceDescriptor = 0x0009
RegResourceRequirementsList = 0x000A
RegFileTime = 0x0010

REG_TYPE_NAMES = {
    RegSZ: "RegSZ",
    RegExpandSZ: "RegExpandSZ",
    RegBin: "RegBin",
    RegDWord: "RegDWord",
    RegMultiSZ: "RegMultiSZ",
    RegQWord: "RegQWord",
    RegNone: "RegNone",
    RegBigEndian: "RegBigEndian",
    RegLink: "RegLink",
    RegResourceList: "RegResourceList",
    RegFullResourceDescriptor: "RegFullResourceDescriptor",
    RegResourceRequirementsList: "RegResourceRequirementsList",
    RegFileTime: "RegFileTime",
}

# Added in Windows Vista. Must be applied to Registry type.
# see: http://msdn.microsoft.com/en-us/library/windows/hardware/ff543550%28v=vs.85%29.aspx
DEVPROP_MASK_TYPE = 0x00000FFF

# The cell data region starts right after the base block.
HEADER_SIZE = 0x1000
REGF_CHECKED_SIZE = 0x200

# Offsets pointing nowhere.
ABSENT_OFFSET = 0xFFFFFFFF

CELL_HEADER_SIZE = 0x4
BIG_DATA_SEGMENT_SIZE = 0x3FD8
DATA_INLINE_FLAG = 0x80000000

# Bits 12-15 of the NK flags word hold user flags in older hives.
USER_FLAGS_MASK = 0xF000
USER_FLAGS_SHIFT = 12

_WORD = struct.Struct("<H")
_DWORD = struct.Struct("<I")
_INT = struct.Struct("<i")
_QWORD = struct.Struct("<Q")


def parse_timestamp(ticks, resolution, epoch, mode=decimal.ROUND_HALF_EVEN):
    """
    Generalized function for parsing timestamps

    :param ticks: number of time units since the epoch
    :param resolution: number of time units per second
    :param epoch: the datetime of this timestamp's epoch
    :param mode: decimal rounding mode
    :return: datetime.datetime
    """
    # python's datetime.datetime supports microsecond precision
    datetime_resolution = int(1e6)

    # convert ticks since epoch to microseconds since epoch
    us = int((decimal.Decimal(ticks * datetime_resolution) / decimal.Decimal(resolution)).quantize(1, mode))

    return epoch + datetime.timedelta(microseconds=us)


def parse_windows_timestamp(qword):
    """
    :param qword: number of 100-nanoseconds since 1601-01-01
    :return: datetime.datetime
    """
    # see https://msdn.microsoft.com/en-us/library/windows/desktop/ms724290(v=vs.85).aspx
    return parse_timestamp(qword, int(1e7), datetime.datetime(1601, 1, 1))


def decode_utf16le(s):
    """
    decode_utf16le attempts to decode a bytestring as UTF-16LE.
      If the string has an odd length, or trailing garbage after the
      terminating NUL, this function does its best to handle the data.
      It does not catch UnicodeDecodeError, so callers should handle it.

    @type s: bytes
    @rtype: str
    """
    if b"\x00\x00" in s:
        index = s.index(b"\x00\x00")
        if index > 2:
            if s[index - 2] != 0:
                #  61 00 62 00 63 64 00 00
                #                    ^  ^-- end of string
                #                    +-- index
                s = s[:index + 2]
            else:
                #  61 00 62 00 63 00 00 00
                #                 ^     ^-- end of string
                #                 +-- index
                s = s[:index + 3]
    if (len(s) % 2) != 0:
        s = s + b"\x00"
    s = s.decode("utf-16-le")
    return s.partition("\x00")[0]


def decode_name(raw, compressed):
    """
    Decode a key or value name. Compressed names store one ISO-8859-15 byte
    per character, the others are UTF-16LE.
    """
    try:
        if compressed:
            return raw.decode("iso8859-15")
        return raw.decode("utf-16-le")
    except UnicodeDecodeError as e:
        raise StringEncodingException("Unable to decode name %r: %s" % (raw, e))


class HiveException(Exception):
    """
    Base Exception class for hive access.
    """
    def __init__(self, value):
        """
        Constructor.
        Arguments:
        - `value`: A string description.
        """
        super(HiveException, self).__init__(value)
        self._value = value

    def __str__(self):
        return "Hive Exception: %s" % (self._value)


class HiveIOException(HiveException):
    """
    Raised when a seek or read falls outside of the backing store.
    """
    def __str__(self):
        return "Hive IO Exception: %s" % (self._value)


class ParseException(HiveException):
    """
    An exception to be thrown during hive parsing, such as
    when a record carries an unexpected signature.
    """
    def __str__(self):
        return "Hive Parse Exception (%s)" % (self._value)


class MalformedHiveException(HiveException):
    """
    Raised when the hive breaks a structural rule, for example an IndexRoot
    referencing another IndexRoot, or an absent offset being followed.
    """
    def __str__(self):
        return "Malformed Hive Exception (%s)" % (self._value)


class StringEncodingException(HiveException):
    """
    Raised when a name can not be decoded. The record itself is otherwise
    usable, so callers may choose to carry on without the name.
    """
    def __str__(self):
        return "String Encoding Exception (%s)" % (self._value)


class HiveStore(object):
    """
    Random-access view of a hive. Wraps a seekable binary file-like object
    (a file handle or an io.BytesIO) and translates cell offsets, which are
    relative to the end of the base block, into absolute positions.

    A store has a single read cursor. Every read moves it, and nothing
    restores it, so a store must not be shared between threads.
    """
    def __init__(self, filelikeobject, header_size=HEADER_SIZE):
        """
        Constructor.
        Arguments:
        - `filelikeobject`: A binary file-like object with .read(), .seek() and .tell().
        - `header_size`: The size of the base block preceding the cell data.
        """
        self._fh = filelikeobject
        self._header_size = header_size
        self._fh.seek(0, io.SEEK_END)
        self._size = self._fh.tell()
        self._fh.seek(0)

    @classmethod
    def from_buffer(cls, buf, header_size=HEADER_SIZE):
        return cls(io.BytesIO(bytes(buf)), header_size)

    def __repr__(self):
        return "HiveStore(size=0x%x, header_size=0x%x)" % (self._size, self._header_size)

    def size(self):
        return self._size

    def header_size(self):
        return self._header_size

    def tell(self):
        return self._fh.tell()

    def close(self):
        self._fh.close()

    def closed(self):
        return self._fh.closed

    def seek(self, offset):
        """
        Move the read cursor to an absolute offset.
        """
        if offset < 0 or offset > self._size:
            raise HiveIOException("Offset 0x%x is outside of the hive (size 0x%x)" % (offset, self._size))
        self._fh.seek(offset)

    def absolute_offset(self, offset):
        """
        Convert a cell offset into an absolute offset into the store.
        """
        return self._header_size + offset

    def seek_to_cell_offset(self, offset):
        """
        Move the read cursor to the cell at the given cell offset.
        """
        if offset == ABSENT_OFFSET:
            raise MalformedHiveException("Attempted to follow an absent cell offset")
        self.seek(self.absolute_offset(offset))

    def read(self, length):
        """
        Read exactly `length` bytes from the current position.
        """
        position = self._fh.tell()
        data = self._fh.read(length)
        if len(data) != length:
            raise HiveIOException("Short read at 0x%x: wanted %d bytes, got %d" % (position, length, len(data)))
        return data

    def read_struct(self, structure):
        """
        Unpack a struct.Struct from the current position.
        """
        return structure.unpack(self.read(structure.size))

    def read_word(self):
        return self.read_struct(_WORD)[0]

    def read_dword(self):
        return self.read_struct(_DWORD)[0]

    def read_int(self):
        return self.read_struct(_INT)[0]

    def read_qword(self):
        return self.read_struct(_QWORD)[0]

    def read_structure(self, structure, offset):
        """
        Seek to the cell offset and decode one `structure` from there.
        `structure` is any class with a from_store(store, offset) classmethod.
        The previous position is not restored.
        """
        self.seek_to_cell_offset(offset)
        return structure.from_store(self, offset)


class REGFBlock(object):
    """
    The hive base block. It is 4k long, although only the first 0x200 bytes
    are covered by the checksum and used here.
    """
    def __init__(self, buf):
        """
        Constructor.
        Arguments:
        - `buf`: The first 0x200 bytes of the hive.
        """
        self._buf = buf

        _id = self.unpack_dword(0)
        if _id != 0x66676572:
            raise ParseException("Invalid REGF ID")

    @classmethod
    def from_store(cls, store):
        store.seek(0)
        return cls(store.read(REGF_CHECKED_SIZE))

    def unpack_dword(self, offset):
        return _DWORD.unpack_from(self._buf, offset)[0]

    def unpack_qword(self, offset):
        return _QWORD.unpack_from(self._buf, offset)[0]

    def hive_sequence1(self):
        """
        Get first sequence number.
        This is incremented before writing to a primary file.
        """
        return self.unpack_dword(0x4)

    def hive_sequence2(self):
        """
        Get second sequence number.
        This is set to the same value as sequence1 after a primary files has been updated.
        """
        return self.unpack_dword(0x8)

    def validate_sequence_numbers(self):
        return self.hive_sequence1() == self.hive_sequence2()

    def modification_timestamp(self):
        return parse_windows_timestamp(self.unpack_qword(0xC))

    def major_version(self):
        return self.unpack_dword(0x14)

    def minor_version(self):
        return self.unpack_dword(0x18)

    def root_cell_offset(self):
        """
        Cell offset of the root key node.
        """
        return self.unpack_dword(0x24)

    def hbins_size(self):
        return self.unpack_dword(0x28)

    def hive_name(self):
        """
        Get the embedded file name of the hive as a string.
        """
        return self._buf[0x30:0x30 + 64].decode("utf-16-le", "replace").rstrip("\x00")

    def calculate_checksum(self):
        """
        Checksum is calculated over the first 0x200 bytes:
        XOR of all D-Words from 0x00000000 to 0x000001FB with two edge cases.
        """
        xsum = 0
        for idx in range(0, 0x1FC, 4):
            xsum ^= self.unpack_dword(idx)
        if xsum == 0:
            return 1
        if xsum == 0xFFFFFFFF:
            return 0xFFFFFFFE
        return xsum

    def checksum(self):
        return self.unpack_dword(0x1FC)

    def validate_checksum(self):
        return self.calculate_checksum() == self.checksum()


class HBINCell(object):
    """
    HBIN data cell: a signed size followed by the payload.
    A negative size marks an allocated cell, a positive size a free one.
    """
    def __init__(self, offset, size):
        """
        Constructor.
        Arguments:
        - `offset`: The cell offset of the size field.
        - `size`: The raw, signed size field.
        """
        self._offset = offset
        self._size = size

    @classmethod
    def from_store(cls, store, offset):
        return cls(offset, store.read_int())

    def __str__(self):
        if self.is_free():
            return "HBIN Cell (free) at 0x%x" % (self._offset)
        else:
            return "HBIN Cell at 0x%x" % (self._offset)

    def is_free(self):
        return self._size > 0

    def size(self):
        """
        Size of this cell including the size field, as an unsigned integer.
        """
        return abs(self._size)

    def offset(self):
        return self._offset

    def data_offset(self):
        return self._offset + CELL_HEADER_SIZE

    def data_size(self):
        return self.size() - CELL_HEADER_SIZE


def read_cell(store, offset, structure, *args):
    """
    Read the allocated cell at `offset` and decode its payload as `structure`,
    which must provide a from_cell(store, cell, *args) classmethod. The
    store is left positioned right after the size field when the payload
    decoder starts.
    """
    cell = store.read_structure(HBINCell, offset)
    if cell.is_free():
        raise MalformedHiveException("Expected an allocated cell at 0x%x, found a free one" % (offset))
    if cell.size() < CELL_HEADER_SIZE:
        raise MalformedHiveException("Cell at 0x%x has an invalid size of %d bytes" % (offset, cell.size()))
    if store.absolute_offset(offset) + cell.size() > store.size():
        raise HiveIOException("Cell at 0x%x (size 0x%x) runs past the end of the hive" % (offset, cell.size()))
    return structure.from_cell(store, cell, *args)


class DataRecord(object):
    """
    A cell without further structure, such as the data of a value.
    """
    def __init__(self, offset, data):
        self._offset = offset
        self._data = data

    @classmethod
    def from_cell(cls, store, cell):
        return cls(cell.offset(), store.read(cell.data_size()))

    def __str__(self):
        return "Data Record at 0x%x" % (self._offset)

    def offset(self):
        return self._offset

    def data(self):
        return self._data


class DBRecord(object):
    """
    A DBRecord describes value data too large for a single cell. It points
    to a list of segment cells, each holding up to 0x3FD8 bytes.
    """
    MAGIC = b"db"
    _HEADER = struct.Struct("<HI")

    def __init__(self, offset, count, segments_offset):
        self._offset = offset
        self._count = count
        self._segments_offset = segments_offset

    @classmethod
    def from_cell(cls, store, cell):
        _id = store.read(2)
        if _id != cls.MAGIC:
            raise ParseException("Invalid DB Record ID at 0x%x" % (cell.offset()))
        count, segments_offset = store.read_struct(cls._HEADER)
        return cls(cell.offset(), count, segments_offset)

    def __str__(self):
        return "Large Data Block at 0x%x" % (self._offset)

    def large_data(self, store, length):
        """
        Gather `length` bytes from the segments.
        """
        segments = read_cell(store, self._segments_offset, DataRecord).data()
        if len(segments) < 4 * self._count:
            raise MalformedHiveException("Segment list of DB Record at 0x%x is too small for %d segments" %
                                         (self._offset, self._count))

        b = bytearray()
        for index in range(self._count):
            if len(b) >= length:
                break
            segment_offset = _DWORD.unpack_from(segments, 4 * index)[0]
            segment = read_cell(store, segment_offset, DataRecord).data()
            b += segment[:min(BIG_DATA_SEGMENT_SIZE, length - len(b))]

        if len(b) < length:
            raise MalformedHiveException("DB Record at 0x%x holds %d bytes, expected %d" %
                                         (self._offset, len(b), length))
        return bytes(b)


class VKRecord(object):
    """
    The VKRecord holds one name-value pair. The name and type are decoded
    right away, the data is read from the store when asked for.
    """
    MAGIC = b"vk"
    _HEADER = struct.Struct("<HIIIHH")

    def __init__(self, store, offset, header, raw_name):
        self._store = store
        self._offset = offset
        (self._name_length,
         self._data_size,
         self._data_offset,
         self._data_type,
         self._flags,
         _) = header
        self._raw_name = raw_name

    @classmethod
    def from_cell(cls, store, cell):
        _id = store.read(2)
        if _id != cls.MAGIC:
            raise ParseException("Invalid VK Record ID at 0x%x" % (cell.offset()))
        header = store.read_struct(cls._HEADER)
        name_length = header[0]
        if 2 + cls._HEADER.size + name_length > cell.data_size():
            raise MalformedHiveException("VK Record name at 0x%x overruns its cell" % (cell.offset()))
        return cls(store, cell.offset(), header, store.read(name_length))

    def __str__(self):
        return "VKRecord(Name: %r, Type: %s) at 0x%x" % (self._raw_name, self.data_type_str(), self._offset)

    def offset(self):
        return self._offset

    def has_name(self):
        return self._name_length != 0

    def has_ascii_name(self):
        return self._flags & 0x0001 == 0x0001

    def name(self):
        """
        Get the name, or the empty string for the default value.
        """
        return decode_name(self._raw_name, self.has_ascii_name())

    def data_type(self):
        return self._data_type & DEVPROP_MASK_TYPE

    def data_type_str(self):
        data_type = self.data_type()
        return REG_TYPE_NAMES.get(data_type, "Unknown type: %s" % (hex(data_type)))

    def is_inline(self):
        """
        Is the data stored in the data offset field itself?
        """
        return self._data_size & DATA_INLINE_FLAG == DATA_INLINE_FLAG

    def raw_data_length(self):
        return self._data_size

    def data_length(self):
        return self._data_size & ~DATA_INLINE_FLAG

    def raw_data(self):
        """
        Get the unparsed data as bytes.
        """
        length = self.data_length()
        if self.is_inline():
            return _DWORD.pack(self._data_offset)[:min(length, 4)]
        if length == 0:
            return b""

        data = read_cell(self._store, self._data_offset, DataRecord).data()
        if length > BIG_DATA_SEGMENT_SIZE and data[:2] == DBRecord.MAGIC:
            db = read_cell(self._store, self._data_offset, DBRecord)
            return db.large_data(self._store, length)

        if len(data) < length:
            raise MalformedHiveException("Data cell of VK Record at 0x%x holds %d bytes, expected %d" %
                                         (self._offset, len(data), length))
        return data[:length]

    def data(self):
        """
        Get the parsed data.

        RegSZ, RegExpandSZ:
          A string, cut at the first NUL. Variables are not expanded.
        RegMultiSZ:
          A list of strings.
        RegDWord, RegQWord, RegBigEndian:
          An unsigned integer.
        RegFileTime:
          A datetime.datetime.
        Anything else:
          The raw bytes.
        """
        data_type = self.data_type()
        d = self.raw_data()

        try:
            if data_type == RegSZ or data_type == RegExpandSZ:
                return decode_utf16le(d)
            elif data_type == RegMultiSZ:
                if len(d) % 2 != 0:
                    d = d + b"\x00"
                s = d.decode("utf-16-le").rstrip("\x00")
                if not s:
                    return []
                return s.split("\x00")
            elif data_type == RegDWord:
                return _DWORD.unpack_from(d, 0)[0]
            elif data_type == RegQWord:
                return _QWORD.unpack_from(d, 0)[0]
            elif data_type == RegBigEndian:
                return struct.unpack_from(">I", d, 0)[0]
            elif data_type == RegFileTime:
                return parse_windows_timestamp(_QWORD.unpack_from(d, 0)[0])
        except UnicodeDecodeError as e:
            raise StringEncodingException("Unable to decode data of VK Record at 0x%x: %s" % (self._offset, e))
        except struct.error:
            raise MalformedHiveException("VK Record at 0x%x holds %d bytes, too few for %s" %
                                         (self._offset, len(d), self.data_type_str()))
        return d


class KeyValueList(object):
    """
    A KeyValueList is a simple structure of fixed length offsets to VKRecords.
    The number of entries is kept by the owning NKRecord.
    """
    def __init__(self, offset, offsets):
        self._offset = offset
        self._offsets = offsets

    @classmethod
    def from_cell(cls, store, cell, number):
        if 4 * number > cell.data_size():
            raise MalformedHiveException("Value list at 0x%x is too small for %d values" % (cell.offset(), number))
        offsets = [store.read_dword() for _ in range(number)]
        return cls(cell.offset(), offsets)

    def __str__(self):
        return "KeyValueList(Length: %d) at 0x%x" % (len(self._offsets), self._offset)

    def __len__(self):
        return len(self._offsets)

    def offsets(self):
        return list(self._offsets)


def read_values(store, values_list):
    """
    Decode the VKRecords referenced by a KeyValueList, in list order.
    `values_list` may be None, meaning there are no values.
    A single bad record fails the whole list.
    """
    if values_list is None:
        return []
    return [read_cell(store, offset, VKRecord) for offset in values_list.offsets()]


class SubKeysList(object):
    """
    Base class of the four subkey list shapes. Reading through this class
    dispatches on the two-byte signature; reading through a subclass also
    checks that the signature is the expected one.
    """
    MAGIC = None
    ENTRY = struct.Struct("<I")

    def __init__(self, offset, entries):
        self._offset = offset
        self._entries = entries

    @classmethod
    def from_cell(cls, store, cell):
        _id = store.read(2)
        variant = SUBKEYS_LIST_VARIANTS.get(_id)
        if variant is None:
            raise ParseException("Subkey list with type 0x%s encountered at 0x%x, but not supported." %
                                 (binascii.hexlify(_id).decode("ascii"), cell.offset()))
        if cls is not SubKeysList and variant is not cls:
            raise ParseException("Expected %s at 0x%x, found %s" % (cls.__name__, cell.offset(), variant.__name__))

        count = store.read_word()
        if 4 + count * variant.ENTRY.size > cell.data_size():
            raise MalformedHiveException("%s at 0x%x is too small for %d entries" %
                                         (variant.__name__, cell.offset(), count))
        entries = [store.read_struct(variant.ENTRY) for _ in range(count)]
        return variant(cell.offset(), entries)

    def __str__(self):
        return "%s(Length: %d) at 0x%x" % (self.__class__.__name__, len(self._entries), self._offset)

    def __len__(self):
        return len(self._entries)

    def offset(self):
        return self._offset

    def entries(self):
        """
        The on-disk entries as tuples, offset first.
        """
        return list(self._entries)

    def offsets(self):
        return [entry[0] for entry in self._entries]

    def into_offsets(self, store):
        """
        The cell offsets of the key nodes listed here, in on-disk order.
        """
        return self.offsets()


class IndexLeaf(SubKeysList):
    """
    List of offsets to subkey NKRecords.
    """
    MAGIC = b"li"


class FastLeaf(SubKeysList):
    """
    List of offsets to subkey NKRecords, each paired with the first four
    characters of the subkey name.
    """
    MAGIC = b"lf"
    ENTRY = struct.Struct("<I4s")


class HashLeaf(SubKeysList):
    """
    List of offsets to subkey NKRecords, each paired with a hash of the
    subkey name.
    """
    MAGIC = b"lh"
    ENTRY = struct.Struct("<II")


class IndexRoot(SubKeysList):
    """
    List of offsets to other subkey lists. The referenced lists are leaves,
    never IndexRoots themselves.
    """
    MAGIC = b"ri"

    def into_offsets(self, store):
        offsets = []
        for list_offset in self.offsets():
            sublist = read_subkeys_list(store, list_offset)
            if isinstance(sublist, IndexRoot):
                raise MalformedHiveException("IndexRoot at 0x%x references another IndexRoot at 0x%x" %
                                             (self._offset, list_offset))
            offsets.extend(sublist.into_offsets(store))
        return offsets


SUBKEYS_LIST_VARIANTS = {
    IndexLeaf.MAGIC: IndexLeaf,
    FastLeaf.MAGIC: FastLeaf,
    HashLeaf.MAGIC: HashLeaf,
    IndexRoot.MAGIC: IndexRoot,
}


def read_subkeys_list(store, offset):
    return read_cell(store, offset, SubKeysList)


class KeyNodeFlags(IntFlag):
    # This is a volatile key (not stored on disk).
    KEY_IS_VOLATILE = 0x0001
    # This is the mount point of another hive (not stored on disk).
    KEY_HIVE_EXIT = 0x0002
    # This is the root key.
    KEY_HIVE_ENTRY = 0x0004
    # This key cannot be deleted.
    KEY_NO_DELETE = 0x0008
    # This key is a symbolic link.
    KEY_SYM_LINK = 0x0010
    # The key name is in (extended) ASCII instead of UTF-16LE.
    KEY_COMP_NAME = 0x0020
    # This key is a predefined handle.
    KEY_PREDEF_HANDLE = 0x0040
    # This key was virtualized at least once.
    KEY_VIRT_MIRRORED = 0x0080
    # This is a virtual key.
    KEY_VIRT_TARGET = 0x0100
    # This key is part of a virtual store path.
    KEY_VIRTUAL_STORE = 0x0200

    @classmethod
    def from_word(cls, word):
        """
        Decode the low 12 bits of an NK flags word.
        The upper 4 bits hold the user flags of older hives and are ignored here.
        """
        known = 0
        for flag in cls:
            known |= flag.value
        if word & ~known & ~USER_FLAGS_MASK:
            raise ParseException("Invalid NK flags 0x%04x" % (word))
        return cls(word & ~USER_FLAGS_MASK)


class NKRecord(object):
    """
    The NKRecord defines the tree-like structure of the hive.
    It contains offsets to the KeyValueList (values associated with the given record),
    and to the subkey list.
    """
    MAGIC = b"nk"
    _HEADER = struct.Struct("<HQ15IHH")

    def __init__(self, offset, header, raw_name):
        """
        Constructor.
        Arguments:
        - `offset`: The cell offset of the record.
        - `header`: The unpacked fixed-size fields following the signature.
        - `raw_name`: The undecoded name.
        """
        self._offset = offset
        (flags,
         self._timestamp,
         self._access_bits,
         self._parent_offset,
         self._subkey_count,
         self._volatile_subkey_count,
         self._subkeys_list_offset,
         self._volatile_subkeys_list_offset,
         self._values_count,
         self._values_list_offset,
         self._security_offset,
         self._class_name_offset,
         self._max_subkey_name,
         self._max_subkey_class_name,
         self._max_value_name,
         self._max_value_data,
         _,
         self._name_length,
         self._class_name_length) = header
        self._flags = KeyNodeFlags.from_word(flags)
        self._user_flags = (flags & USER_FLAGS_MASK) >> USER_FLAGS_SHIFT
        self._raw_name = raw_name

    @classmethod
    def from_cell(cls, store, cell):
        _id = store.read(2)
        if _id != cls.MAGIC:
            raise ParseException("Invalid NK Record ID at 0x%x" % (cell.offset()))
        header = store.read_struct(cls._HEADER)
        name_length = header[-2]
        if 2 + cls._HEADER.size + name_length > cell.data_size():
            raise MalformedHiveException("NK Record name at 0x%x overruns its cell" % (cell.offset()))
        return cls(cell.offset(), header, store.read(name_length))

    def __str__(self):
        if self.is_root():
            return "Root NKRecord(Name: %r) at 0x%x" % (self._raw_name, self._offset)
        return "NKRecord(Name: %r) at 0x%x" % (self._raw_name, self._offset)

    def offset(self):
        return self._offset

    def flags(self):
        return self._flags

    def user_flags(self):
        """
        The user flags stored in bits 12-15 of the flags word (e.g. 1 for a
        32-bit key under Wow64). Newer hives keep them elsewhere and leave these bits zero.
        """
        return self._user_flags

    def is_root(self):
        return KeyNodeFlags.KEY_HIVE_ENTRY in self._flags

    def has_ascii_name(self):
        return KeyNodeFlags.KEY_COMP_NAME in self._flags

    def raw_name(self):
        return self._raw_name

    def name(self):
        """
        Return the key name as a string.
        Raises StringEncodingException if the name can not be decoded.
        """
        return decode_name(self._raw_name, self.has_ascii_name())

    def raw_timestamp(self):
        return self._timestamp

    def timestamp(self):
        return parse_windows_timestamp(self._timestamp)

    def access_bits(self):
        """
        The field is used as of Windows 8.
        """
        return self._access_bits

    def parent_offset(self):
        return self._parent_offset

    def security_offset(self):
        return self._security_offset

    def subkey_count(self):
        return self._subkey_count

    def volatile_subkey_count(self):
        return self._volatile_subkey_count

    def subkeys_list_offset(self):
        return self._subkeys_list_offset

    def volatile_subkeys_list_offset(self):
        return self._volatile_subkeys_list_offset

    def values_count(self):
        return self._values_count

    def values_list_offset(self):
        return self._values_list_offset

    def max_subkey_name_length(self):
        return self._max_subkey_name

    def max_subkey_class_name_length(self):
        return self._max_subkey_class_name

    def max_value_name_length(self):
        return self._max_value_name

    def max_value_data_length(self):
        return self._max_value_data

    def has_classname(self):
        return self._class_name_length > 0 and self._class_name_offset != ABSENT_OFFSET

    def classname(self, store):
        """
        If this has a classname, get it as a string. Otherwise, return the empty string.
        """
        if not self.has_classname():
            return ""
        data = read_cell(store, self._class_name_offset, DataRecord).data()
        if len(data) < self._class_name_length:
            raise MalformedHiveException("Class name of NK Record at 0x%x overruns its cell" % (self._offset))
        return decode_name(data[:self._class_name_length], False)

    def values_list(self, store):
        """
        Get the KeyValueList, or None when there are no values.
        A zero count or an absent offset both mean no values.
        """
        if self._values_count == 0 or self._values_list_offset == ABSENT_OFFSET:
            return None
        return read_cell(store, self._values_list_offset, KeyValueList, self._values_count)

    def subkeys_list(self, store):
        """
        Get the stable subkey list, or None when there are no subkeys.
        The list offset is not followed when the subkey count is zero.
        """
        if self._subkey_count == 0 or self._subkeys_list_offset == ABSENT_OFFSET:
            return None
        return read_subkeys_list(store, self._subkeys_list_offset)
