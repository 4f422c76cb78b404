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
The class file constant pool, and the fourteen kinds of record that
may be found in it.

Records are small immutable tuples carrying the raw fields as they
appear in the class file. Indexes into the pool are never followed at
decode time; they are resolved (and their tags checked) through the
`JavaConstantPool` accessors when asked for.

References
----------
* https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.4

:license: LGPL v.3
"""  # noqa


import logging

from collections import namedtuple

from .pack import compile_struct, UnpackException


__all__ = (
    "JavaConstantPool", "unpack_const_item", "decode_modified_utf8",
    "tag_name", "reference_kind_name",
    "ConstantClass", "ConstantFieldref", "ConstantMethodref",
    "ConstantInterfaceMethodref", "ConstantString", "ConstantInteger",
    "ConstantFloat", "ConstantLong", "ConstantDouble",
    "ConstantNameAndType", "ConstantUtf8", "ConstantMethodHandle",
    "ConstantMethodType", "ConstantInvokeDynamic",
    "UnknownConstantTag", "UnknownReferenceKind", "EmptySlot",
    "IndexOutOfRange", "TagMismatch", "InvalidText",
    "CONST_Utf8", "CONST_Integer", "CONST_Float",
    "CONST_Long", "CONST_Double", "CONST_Class",
    "CONST_String", "CONST_Fieldref", "CONST_Methodref",
    "CONST_InterfaceMethodref", "CONST_NameAndType",
    "CONST_MethodHandle", "CONST_MethodType", "CONST_InvokeDynamic",
    "REF_getField", "REF_getStatic", "REF_putField", "REF_putStatic",
    "REF_invokeVirtual", "REF_invokeStatic", "REF_invokeSpecial",
    "REF_newInvokeSpecial", "REF_invokeInterface",
)


_log = logging.getLogger(__name__)


# The constant pool types
# pylint: disable=C0103
CONST_Utf8 = 1
CONST_Integer = 3
CONST_Float = 4
CONST_Long = 5
CONST_Double = 6
CONST_Class = 7
CONST_String = 8
CONST_Fieldref = 9
CONST_Methodref = 10
CONST_InterfaceMethodref = 11
CONST_NameAndType = 12
CONST_MethodHandle = 15
CONST_MethodType = 16
CONST_InvokeDynamic = 18


_tag_names = {
    CONST_Utf8: "Utf8",
    CONST_Integer: "Integer",
    CONST_Float: "Float",
    CONST_Long: "Long",
    CONST_Double: "Double",
    CONST_Class: "Class",
    CONST_String: "String",
    CONST_Fieldref: "Fieldref",
    CONST_Methodref: "Methodref",
    CONST_InterfaceMethodref: "InterfaceMethodref",
    CONST_NameAndType: "NameAndType",
    CONST_MethodHandle: "MethodHandle",
    CONST_MethodType: "MethodType",
    CONST_InvokeDynamic: "InvokeDynamic",
}


# MethodHandle reference kinds
REF_getField = 1
REF_getStatic = 2
REF_putField = 3
REF_putStatic = 4
REF_invokeVirtual = 5
REF_invokeStatic = 6
REF_invokeSpecial = 7
REF_newInvokeSpecial = 8
REF_invokeInterface = 9


_ref_kind_names = {
    REF_getField: "getField",
    REF_getStatic: "getStatic",
    REF_putField: "putField",
    REF_putStatic: "putStatic",
    REF_invokeVirtual: "invokeVirtual",
    REF_invokeStatic: "invokeStatic",
    REF_invokeSpecial: "invokeSpecial",
    REF_newInvokeSpecial: "newInvokeSpecial",
    REF_invokeInterface: "invokeInterface",
}


_B = compile_struct(">B")
_BH = compile_struct(">BH")
_H = compile_struct(">H")
_HH = compile_struct(">HH")
_I = compile_struct(">I")
_II = compile_struct(">II")
_i = compile_struct(">i")
_f = compile_struct(">f")
_d = compile_struct(">d")


def tag_name(tag):
    """
    the name of a constant pool tag, eg. "Utf8" for CONST_Utf8
    """

    return _tag_names.get(tag, "<tag %r>" % (tag, ))


def reference_kind_name(kind):
    """
    the name of a MethodHandle reference kind, eg. "invokeStatic"
    """

    return _ref_kind_names.get(kind, "<kind %r>" % (kind, ))


class UnknownConstantTag(UnpackException):
    """
    raised when a constant pool entry starts with a tag byte that
    isn't one of the known CONST_ values
    """

    def __init__(self, tag, offset):
        msg = "unknown constant pool tag %i at offset %i" % (tag, offset)
        super(UnknownConstantTag, self).__init__(msg)
        self.tag = tag
        self.offset = offset


class UnknownReferenceKind(UnpackException):
    """
    raised when a MethodHandle carries a reference kind outside of
    1..9
    """

    def __init__(self, kind, offset):
        msg = "unknown method handle reference kind %i at offset %i" % \
              (kind, offset)
        super(UnknownReferenceKind, self).__init__(msg)
        self.kind = kind
        self.offset = offset


class EmptySlot(UnpackException, IndexError):
    """
    raised when requesting constant 0, or the unusable slot following
    a Long or Double constant
    """

    def __init__(self, index):
        msg = "constant pool slot %i is empty" % index
        super(EmptySlot, self).__init__(msg)
        self.index = index


class IndexOutOfRange(UnpackException, IndexError):
    """
    raised when requesting a constant at or beyond the declared
    constant pool count
    """

    def __init__(self, index, count):
        msg = "constant pool index %i out of range (count %i)" % \
              (index, count)
        super(IndexOutOfRange, self).__init__(msg)
        self.index = index
        self.count = count


class TagMismatch(UnpackException):
    """
    raised when a constant is not of the kind its referrer requires
    """

    def __init__(self, index, expected, actual):
        msg = "constant pool index %i is %s, expected %s" % \
              (index, tag_name(actual), tag_name(expected))
        super(TagMismatch, self).__init__(msg)
        self.index = index
        self.expected = expected
        self.actual = actual


class InvalidText(UnpackException, ValueError):
    """
    raised when a Utf8 constant isn't valid modified UTF-8
    """

    def __init__(self, data, reason):
        msg = "invalid modified UTF-8 %r: %s" % (data, reason)
        super(InvalidText, self).__init__(msg)
        self.data = data


def decode_modified_utf8(data):
    """
    decodes the JVM's modified UTF-8. This differs from the standard
    encoding in two ways: NUL is stored as the two bytes C0 80, and
    characters outside of the BMP are stored as a pair of separately
    encoded surrogates.
    """

    data = bytes(data)

    # neither a raw NUL nor a four byte sequence is ever emitted
    if b"\x00" in data:
        raise InvalidText(data, "raw NUL byte")
    if any(b >= 0xF0 for b in data):
        raise InvalidText(data, "four byte sequence")

    try:
        return data.decode("utf8")
    except UnicodeDecodeError:
        pass

    try:
        text = data.replace(b"\xC0\x80", b"\x00")
        text = text.decode("utf8", "surrogatepass")

        # glue any surrogate pairs back together
        text = text.encode("utf-16-be", "surrogatepass")
        return text.decode("utf-16-be", "surrogatepass")

    except UnicodeError as ue:
        raise InvalidText(data, ue) from ue


class _ConstRecord(object):
    """
    mixin for the constant records which are simply a fixed struct
    """

    __slots__ = ()

    tag = None
    _struct = None


    @classmethod
    def unpack(cls, unpacker):
        return cls._make(unpacker.unpack_struct(cls._struct))


    def tag_name(self):
        return tag_name(self.tag)


class ConstantClass(_ConstRecord, namedtuple("ConstantClass",
                                             ("name_index", ))):
    __slots__ = ()
    tag = CONST_Class
    _struct = _H


class ConstantFieldref(_ConstRecord, namedtuple(
        "ConstantFieldref", ("class_index", "name_and_type_index"))):
    __slots__ = ()
    tag = CONST_Fieldref
    _struct = _HH


class ConstantMethodref(_ConstRecord, namedtuple(
        "ConstantMethodref", ("class_index", "name_and_type_index"))):
    __slots__ = ()
    tag = CONST_Methodref
    _struct = _HH


class ConstantInterfaceMethodref(_ConstRecord, namedtuple(
        "ConstantInterfaceMethodref",
        ("class_index", "name_and_type_index"))):
    __slots__ = ()
    tag = CONST_InterfaceMethodref
    _struct = _HH


class ConstantString(_ConstRecord, namedtuple("ConstantString",
                                              ("string_index", ))):
    __slots__ = ()
    tag = CONST_String
    _struct = _H


class ConstantInteger(_ConstRecord, namedtuple("ConstantInteger",
                                               ("bits", ))):
    """
    a 32-bit int, kept as its unsigned bits
    """

    __slots__ = ()
    tag = CONST_Integer
    _struct = _I


    @property
    def value(self):
        return _i.unpack(_I.pack(self.bits))[0]


class ConstantFloat(_ConstRecord, namedtuple("ConstantFloat",
                                             ("bits", ))):
    """
    a 32-bit IEEE 754 float, kept as its unsigned bits
    """

    __slots__ = ()
    tag = CONST_Float
    _struct = _I


    @property
    def value(self):
        return _f.unpack(_I.pack(self.bits))[0]


class ConstantLong(_ConstRecord, namedtuple("ConstantLong",
                                            ("high", "low"))):
    """
    a 64-bit long as its high and low 32-bit halves. Occupies two
    slots in the pool.
    """

    __slots__ = ()
    tag = CONST_Long
    _struct = _II


    @property
    def value(self):
        val = (self.high << 32) | self.low
        if val & 0x8000000000000000:
            val -= 0x10000000000000000
        return val


class ConstantDouble(_ConstRecord, namedtuple("ConstantDouble",
                                              ("high", "low"))):
    """
    a 64-bit IEEE 754 double as its high and low 32-bit
    halves. Occupies two slots in the pool.
    """

    __slots__ = ()
    tag = CONST_Double
    _struct = _II


    @property
    def value(self):
        return _d.unpack(_II.pack(self.high, self.low))[0]


class ConstantNameAndType(_ConstRecord, namedtuple(
        "ConstantNameAndType", ("name_index", "descriptor_index"))):
    __slots__ = ()
    tag = CONST_NameAndType
    _struct = _HH


class ConstantUtf8(_ConstRecord, namedtuple("ConstantUtf8", ("data", ))):
    """
    modified UTF-8 text. data is a memoryview into the class buffer,
    and is only decoded when asked for.
    """

    __slots__ = ()
    tag = CONST_Utf8


    @classmethod
    def unpack(cls, unpacker):
        # the length prefix is part of the record
        length = unpacker.peek_u2()
        record = unpacker.read_slice(2 + length)
        return cls(record[2:])


    def decode(self):
        return decode_modified_utf8(self.data)


class ConstantMethodHandle(_ConstRecord, namedtuple(
        "ConstantMethodHandle", ("reference_kind", "reference_index"))):
    __slots__ = ()
    tag = CONST_MethodHandle
    _struct = _BH


    @classmethod
    def unpack(cls, unpacker):
        offset = unpacker.position()
        kind, index = unpacker.peek_struct(_BH)
        if kind not in _ref_kind_names:
            raise UnknownReferenceKind(kind, offset)

        unpacker.skip(_BH.size)
        return cls(kind, index)


    def reference_kind_name(self):
        return reference_kind_name(self.reference_kind)


class ConstantMethodType(_ConstRecord, namedtuple("ConstantMethodType",
                                                  ("descriptor_index", ))):
    __slots__ = ()
    tag = CONST_MethodType
    _struct = _H


class ConstantInvokeDynamic(_ConstRecord, namedtuple(
        "ConstantInvokeDynamic",
        ("bootstrap_method_attr_index", "name_and_type_index"))):
    __slots__ = ()
    tag = CONST_InvokeDynamic
    _struct = _HH


_const_types = {
    CONST_Utf8: ConstantUtf8,
    CONST_Integer: ConstantInteger,
    CONST_Float: ConstantFloat,
    CONST_Long: ConstantLong,
    CONST_Double: ConstantDouble,
    CONST_Class: ConstantClass,
    CONST_String: ConstantString,
    CONST_Fieldref: ConstantFieldref,
    CONST_Methodref: ConstantMethodref,
    CONST_InterfaceMethodref: ConstantInterfaceMethodref,
    CONST_NameAndType: ConstantNameAndType,
    CONST_MethodHandle: ConstantMethodHandle,
    CONST_MethodType: ConstantMethodType,
    CONST_InvokeDynamic: ConstantInvokeDynamic,
}


def unpack_const_item(unpacker):
    """
    unpack a constant pool item, which will consist of a tag byte
    (see the CONST_ values in this module) followed by the record of
    the appropriate type
    """

    offset = unpacker.position()
    typecode = unpacker.read_u1()

    ctype = _const_types.get(typecode)
    if ctype is None:
        raise UnknownConstantTag(typecode, offset)

    return ctype.unpack(unpacker)


class JavaConstantPool(object):
    """
    A constants pool. Slot 0 and the slot after each Long or Double
    are empty (None).

    reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.4
    """  # noqa

    def __init__(self):
        self.consts = tuple()


    def __eq__(self, other):
        return (isinstance(other, JavaConstantPool) and
                (self.consts == other.consts))


    def __ne__(self, other):
        return not self.__eq__(other)


    def __len__(self):
        return len(self.consts)


    def unpack(self, unpacker):
        """
        Unpacks the constant pool from an unpacker stream
        """

        count = unpacker.read_u2()

        # first item is never present in the actual data buffer, but
        # the count number acts like it would be.
        items = [None] if count else []

        # Long and Double const types will "consume" an item count,
        # but not data
        hackpass = False

        for _i in range(1, count):

            if hackpass:
                # previous item was a long or double
                hackpass = False
                items.append(None)

            else:
                item = unpack_const_item(unpacker)
                items.append(item)

                # if this item was a long or double, skip the next
                # counter.
                if item.tag in (CONST_Long, CONST_Double):
                    hackpass = True

        self.consts = tuple(items)
        _log.debug("unpacked constant pool of %i slots", count)


    def get(self, index):
        """
        the record at index. Raises IndexOutOfRange if index is beyond
        the declared count, or EmptySlot if there is no record there.
        """

        if not 0 <= index < len(self.consts):
            raise IndexOutOfRange(index, len(self.consts))

        item = self.consts[index]
        if item is None:
            raise EmptySlot(index)

        return item


    def get_typed(self, index, tag):
        """
        the record at index, which must have the given tag
        """

        item = self.get(index)
        if item.tag != tag:
            raise TagMismatch(index, tag, item.tag)
        return item


    def get_utf8(self, index):
        return self.get_typed(index, CONST_Utf8)


    def get_class(self, index):
        return self.get_typed(index, CONST_Class)


    def get_name_and_type(self, index):
        return self.get_typed(index, CONST_NameAndType)


    def deref_utf8(self, index):
        """
        the decoded text of the Utf8 constant at index
        """

        return self.get_utf8(index).decode()


    def deref_class_name(self, index):
        """
        the binary name of the Class constant at index, eg.
        "java/lang/Object"
        """

        return self.deref_utf8(self.get_class(index).name_index)


    def deref_name_and_type(self, index):
        """
        (name, descriptor) of the NameAndType constant at index
        """

        nat = self.get_name_and_type(index)
        return (self.deref_utf8(nat.name_index),
                self.deref_utf8(nat.descriptor_index))


    def deref_const(self, index):
        """
        returns the dereferenced value from the const pool. For simple
        types, this will be a single value indicating the constant.
        For more complex types, such as fieldref, methodref, etc, this
        will return a tuple.
        """

        item = self.get(index)
        t = item.tag

        if t == CONST_Utf8:
            return item.decode()

        elif t in (CONST_Integer, CONST_Float, CONST_Long, CONST_Double):
            return item.value

        elif t == CONST_Class:
            return self.deref_utf8(item.name_index)

        elif t == CONST_String:
            return self.deref_utf8(item.string_index)

        elif t == CONST_MethodType:
            return self.deref_utf8(item.descriptor_index)

        elif t in (CONST_Fieldref, CONST_Methodref,
                   CONST_InterfaceMethodref):
            cn = self.deref_class_name(item.class_index)
            return (cn, ) + self.deref_name_and_type(item.name_and_type_index)

        elif t == CONST_NameAndType:
            return self.deref_name_and_type(index)

        elif t == CONST_MethodHandle:
            return (item.reference_kind,
                    self.deref_const(self._method_handle_ref(item)))

        else:
            # CONST_InvokeDynamic. The bootstrap index points into the
            # BootstrapMethods attribute, not into this pool.
            nat = self.deref_name_and_type(item.name_and_type_index)
            return (item.bootstrap_method_attr_index, ) + nat


    def _method_handle_ref(self, item):
        """
        the reference_index of a MethodHandle record, checked against
        the member kind its reference_kind requires
        """

        kind = item.reference_kind
        index = item.reference_index
        ref = self.get(index)

        if kind <= REF_putStatic:
            allowed = (CONST_Fieldref, )
        elif kind == REF_invokeInterface:
            allowed = (CONST_InterfaceMethodref, )
        elif kind in (REF_invokeStatic, REF_invokeSpecial):
            allowed = (CONST_Methodref, CONST_InterfaceMethodref)
        else:
            allowed = (CONST_Methodref, )

        if ref.tag not in allowed:
            raise TagMismatch(index, allowed[0], ref.tag)
        return index


    def constants(self):
        """
        sequence of tuples (index, type, dereferenced value) of the
        constant pool entries.
        """

        for i in range(1, len(self.consts)):
            item = self.consts[i]
            if item is not None:
                yield (i, item.tag, self.deref_const(i))


    def pretty_const(self, index):
        """
        a tuple of the pretty type and val, or (None, None) for empty
        slots (such as the second part of a long or double value)
        """

        if not 0 <= index < len(self.consts):
            raise IndexOutOfRange(index, len(self.consts))

        item = self.consts[index]
        if item is None:
            return None, None
        else:
            return _pretty_const_type_val(item)


def _pretty_const_type_val(item):
    """
    given a record, returns the appropriate javap-like type name and
    value for it (not the dereferenced data)
    """

    t = item.tag

    if t == CONST_Utf8:
        val = repr(item.decode())[1:-1]
    elif t == CONST_Integer:
        val = "%i" % item.value
    elif t == CONST_Float:
        val = "%ff" % item.value
    elif t == CONST_Long:
        val = "%il" % item.value
    elif t == CONST_Double:
        val = "%fd" % item.value
    elif t in (CONST_Class, CONST_String, CONST_MethodType):
        val = "#%i" % item[0]
    elif t in (CONST_Fieldref, CONST_Methodref, CONST_InterfaceMethodref):
        val = "#%i.#%i" % item
    elif t == CONST_NameAndType:
        val = "#%i:#%i" % item
    elif t == CONST_MethodHandle:
        val = "%s:#%i" % (item.reference_kind_name(), item.reference_index)
    else:
        val = "#%i:#%i" % item

    return tag_name(t), val


#
# The end.
