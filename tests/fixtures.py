import struct

from NtHive.HiveParse import ABSENT_OFFSET, HiveStore

HBIN_HEADER_SIZE = 0x20
BIG_DATA_SEGMENT_SIZE = 0x3FD8

# 2016-07-17 10:40:00.041865
DEFAULT_TIMESTAMP = 131132256000418650

KEY_HIVE_ENTRY = 0x0004
KEY_NO_DELETE = 0x0008
KEY_COMP_NAME = 0x0020


class HiveBuilder(object):
    """
    Lays out a minimal hive in memory: a base block, one hbin and whatever
    cells the test asks for. Cells are appended in call order, so build
    children before the lists and keys that point at them.
    """
    def __init__(self, hive_name="\\??\\C:\\TEST.DAT"):
        self._hive_name = hive_name
        self._cells = bytearray(HBIN_HEADER_SIZE)

    def cell(self, payload, free=False):
        offset = len(self._cells)
        size = (4 + len(payload) + 7) & ~7
        self._cells += struct.pack("<i", size if free else -size)
        self._cells += payload
        self._cells += b"\x00" * (size - 4 - len(payload))
        return offset

    def nk(self, name, compressed=False, flags=0, timestamp=DEFAULT_TIMESTAMP, parent=0,
           subkey_count=0, subkeys_list=ABSENT_OFFSET, values_count=0, values_list=ABSENT_OFFSET,
           class_name=ABSENT_OFFSET, class_name_length=0, access_bits=0, raw_name=None):
        if raw_name is None:
            raw_name = name.encode("iso8859-15") if compressed else name.encode("utf-16-le")
        if compressed:
            flags |= KEY_COMP_NAME
        header = struct.pack("<2sHQ15IHH", b"nk", flags, timestamp, access_bits, parent,
                             subkey_count, 0, subkeys_list, ABSENT_OFFSET,
                             values_count, values_list, ABSENT_OFFSET, class_name,
                             0, 0, 0, 0, 0, len(raw_name), class_name_length)
        return self.cell(header + raw_name)

    def key(self, name, subkeys=(), values=(), list_type=b"lf", **kwargs):
        """
        Build a key node along with its subkey list and value list.
        """
        subkeys = list(subkeys)
        values = list(values)
        if subkeys:
            kwargs.setdefault("subkey_count", len(subkeys))
            kwargs.setdefault("subkeys_list", self.subkeys_list(list_type, subkeys))
        if values:
            kwargs.setdefault("values_count", len(values))
            kwargs.setdefault("values_list", self.value_list(values))
        kwargs.setdefault("compressed", True)
        return self.nk(name, **kwargs)

    def subkeys_list(self, magic, offsets):
        if magic == b"lf":
            entries = b"".join(struct.pack("<I4s", o, b"\x00" * 4) for o in offsets)
        elif magic == b"lh":
            entries = b"".join(struct.pack("<II", o, 0) for o in offsets)
        else:
            entries = b"".join(struct.pack("<I", o) for o in offsets)
        return self.cell(magic + struct.pack("<H", len(offsets)) + entries)

    def value_list(self, offsets):
        return self.cell(b"".join(struct.pack("<I", o) for o in offsets))

    def vk(self, name, data_type, data, compressed=True):
        raw_name = name.encode("iso8859-15") if compressed else name.encode("utf-16-le")
        if len(data) <= 4:
            data_size = len(data) | 0x80000000
            data_offset = struct.unpack("<I", data.ljust(4, b"\x00"))[0]
        else:
            data_size = len(data)
            data_offset = self.cell(data)
        header = struct.pack("<2sHIIIHH", b"vk", len(raw_name), data_size, data_offset,
                             data_type, 1 if compressed else 0, 0)
        return self.cell(header + raw_name)

    def big_vk(self, name, data_type, data):
        segments = [self.cell(data[i:i + BIG_DATA_SEGMENT_SIZE])
                    for i in range(0, len(data), BIG_DATA_SEGMENT_SIZE)]
        segment_list = self.value_list(segments)
        db = self.cell(struct.pack("<2sHI", b"db", len(segments), segment_list))
        raw_name = name.encode("iso8859-15")
        header = struct.pack("<2sHIIIHH", b"vk", len(raw_name), len(data), db, data_type, 1, 0)
        return self.cell(header + raw_name)

    def build(self, root, sequence=(1, 1), checksum=None):
        hbin_size = (len(self._cells) + 0xFFF) & ~0xFFF
        cells = bytearray(self._cells) + b"\x00" * (hbin_size - len(self._cells))
        struct.pack_into("<4sII", cells, 0, b"hbin", 0, hbin_size)

        base = bytearray(0x1000)
        struct.pack_into("<4sIIQIIIIIII", base, 0, b"regf", sequence[0], sequence[1],
                         DEFAULT_TIMESTAMP, 1, 5, 0, 1, root, hbin_size, 1)
        name = self._hive_name.encode("utf-16-le")[:64]
        base[0x30:0x30 + len(name)] = name

        if checksum is None:
            checksum = 0
            for idx in range(0, 0x1FC, 4):
                checksum ^= struct.unpack_from("<I", base, idx)[0]
            if checksum == 0:
                checksum = 1
            elif checksum == 0xFFFFFFFF:
                checksum = 0xFFFFFFFE
        struct.pack_into("<I", base, 0x1FC, checksum)
        return bytes(base + cells)


class CountingStore(HiveStore):
    """
    A HiveStore that counts the reads made against it.
    """
    def __init__(self, *args, **kwargs):
        super(CountingStore, self).__init__(*args, **kwargs)
        self.reads = 0

    def read(self, length):
        self.reads += 1
        return super(CountingStore, self).read(length)


def utf16(s):
    return s.encode("utf-16-le") + b"\x00\x00"
