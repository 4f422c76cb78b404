# This library is free software; you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as
# published by the Free Software Foundation; either version 3 of the
# License, or (at your option) any later version.
#
# This library is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this library; if not, see
# <http://www.gnu.org/licenses/>.


"""
Bounds-checked, big-endian cursor over an in-memory buffer. Every
structure in a class file is read through a `BufferUnpacker`.

Slices handed out by the unpacker are memoryviews sharing the
storage of the original buffer, so decoded structures keep that
buffer alive for as long as they are referenced.

:license: LGPL v.3
"""


from struct import Struct


__all__ = (
    "compile_struct", "unpack",
    "BufferUnpacker",
    "UnpackException", "BoundsError",
)


# pylint: disable=C0103
_struct_cache = dict()


def compile_struct(fmt, cache=None):
    """
    returns a struct.Struct instance compiled from fmt. If fmt has
    already been compiled, it will return the previously compiled
    Struct instance from the cache.
    """

    if cache is None:
        cache = _struct_cache

    sfmt = cache.get(fmt, None)
    if not sfmt:
        sfmt = Struct(fmt)
        cache[fmt] = sfmt
    return sfmt


_B = compile_struct(">B")
_H = compile_struct(">H")
_I = compile_struct(">I")


class UnpackException(Exception):
    """
    base for every error raised while decoding a class file
    """

    pass


class BoundsError(UnpackException):
    """
    raised when a read, peek, or skip would run past the end of the
    buffer. Nothing is consumed when this is raised.
    """

    template = "%i bytes wanted at offset %i, only %i present"


    def __init__(self, offset, wanted, present):
        msg = self.template % (wanted, offset, present)
        super(BoundsError, self).__init__(msg)

        self.offset = offset
        self.bytes_wanted = wanted
        self.bytes_present = present


class BufferUnpacker(object):
    """
    Sequential reader over a bytes-like buffer.

    `base` is the absolute position of the first byte of `data`
    within the outermost buffer. Unpackers created by `read_unpacker`
    carry it along so that errors always report absolute offsets.
    """

    def __init__(self, data, offset=0, base=0):
        self.data = memoryview(data)
        self.offset = offset
        self.base = base


    def __enter__(self):
        return self


    def __exit__(self, exc_type, _exc_val, _exc_tb):
        self.close()
        return exc_type is None


    def remaining(self):
        """
        count of bytes not yet consumed
        """

        if self.data is None:
            return 0
        return len(self.data) - self.offset


    def position(self):
        """
        absolute offset of the next byte to be read
        """

        return self.base + self.offset


    def _check(self, size):
        if size < 0:
            raise ValueError("negative size %i" % size)

        avail = self.remaining()
        if avail < size:
            raise BoundsError(self.position(), size, avail)


    def unpack(self, fmt):
        """
        unpacks the given fmt from the underlying buffer and returns the
        results. Will raise a BoundsError if there is not enough data
        to satisfy the fmt
        """

        return self.unpack_struct(compile_struct(fmt))


    def unpack_struct(self, struct):
        """
        unpacks the given struct from the underlying buffer and returns
        the results, advancing past it
        """

        result = self.peek_struct(struct)
        self.offset += struct.size
        return result


    def peek_struct(self, struct):
        """
        unpacks the given struct at the current offset without
        advancing
        """

        self._check(struct.size)
        return struct.unpack_from(self.data, self.offset)


    def read_u1(self):
        return self.unpack_struct(_B)[0]


    def read_u2(self):
        return self.unpack_struct(_H)[0]


    def read_u4(self):
        return self.unpack_struct(_I)[0]


    def peek_u1(self):
        return self.peek_struct(_B)[0]


    def peek_u2(self):
        return self.peek_struct(_H)[0]


    def peek_u4(self):
        return self.peek_struct(_I)[0]


    def read_slice(self, count):
        """
        a memoryview over the next count bytes of the underlying
        buffer. No data is copied.
        """

        self._check(count)

        offset = self.offset
        self.offset = offset + count
        return self.data[offset:self.offset]


    def read_unpacker(self, count):
        """
        consumes count bytes and returns a new BufferUnpacker confined to
        them. Reads on the new unpacker can never run past that region.
        """

        base = self.position()
        return BufferUnpacker(self.read_slice(count), base=base)


    def skip(self, count):
        """
        advance past count bytes without reading them
        """

        self._check(count)
        self.offset += count
        return count


    def unpack_struct_array(self, struct):
        """
        reads a u2 count from the unpacker, and unpacks the precompiled
        struct count times. Yields a sequence of the unpacked data
        tuples
        """

        count = self.read_u2()
        for _i in range(count):
            yield self.unpack_struct(struct)


    def unpack_sequence(self, reader, *params):
        """
        reads a u2 count from the unpacker, then calls reader with this
        unpacker and params that many times. Yields each result.
        """

        count = self.read_u2()
        for _i in range(count):
            yield reader(self, *params)


    def unpack_objects(self, atype, *params, **kwds):
        """
        reads a u2 count from the unpacker, and instanciates that many
        calls to atype, with the given params and kwds passed
        along. Each instance then has its unpack method called with this
        unpacker instance passed along. Yields a squence of the unpacked
        instances
        """

        def reader(unpacker):
            obj = atype(*params, **kwds)
            obj.unpack(unpacker)
            return obj

        return self.unpack_sequence(reader)


    def close(self):
        """
        release the underlying buffer
        """

        self.data = None
        self.offset = 0


def unpack(data):
    """
    returns a BufferUnpacker over data, which may be bytes, bytearray,
    or a memoryview. The unpacker supports the managed context
    interface, so may be used eg: `with unpack(my_data) as unpacker:`
    """

    if isinstance(data, (bytes, bytearray, memoryview)):
        return BufferUnpacker(data)

    else:
        raise TypeError("unpack requires bytes, bytearray, or memoryview,"
                        " not %s" % type(data).__name__)


#
# The end.
