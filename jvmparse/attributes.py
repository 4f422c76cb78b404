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
Attributes, as attached to classes, fields, methods, and Code
attributes.

An attribute is identified by its name, which is a Utf8 constant in
the pool. ConstantValue, Code, and SourceFile are understood; every
other attribute is kept as a `JavaRawAttribute` holding its body
untouched.

Each attribute is decoded from an unpacker confined to exactly the
number of bytes its length field declares. Reading past that region
raises `BoundsError`, and leaving bytes unread raises
`AttributeLengthMismatch`.

References
----------
* https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7

:license: LGPL v.3
"""  # noqa


import logging

from .descriptors import pretty_class
from .pack import compile_struct, unpack, UnpackException


__all__ = (
    "JavaAttributes", "JavaAttributeInfo", "JavaRawAttribute",
    "JavaConstantValueInfo", "JavaSourceFileInfo",
    "JavaCodeInfo", "JavaExceptionInfo",
    "AttributeLengthMismatch", "AttributeNestingError",
    "ATTRIBUTE_TYPES",
    "unpack_attribute", "read_attributes",
)


_log = logging.getLogger(__name__)


_HH = compile_struct(">HH")
_HHHH = compile_struct(">HHHH")
_HHI = compile_struct(">HHI")


class AttributeLengthMismatch(UnpackException):
    """
    raised when a recognized attribute is fully decoded without
    consuming its declared length
    """

    def __init__(self, name, declared, consumed, offset):
        msg = ("attribute %r at offset %i declares %i bytes,"
               " but %i were decoded" % (name, offset, declared, consumed))
        super(AttributeLengthMismatch, self).__init__(msg)
        self.name = name
        self.declared = declared
        self.consumed = consumed
        self.offset = offset


class AttributeNestingError(UnpackException):
    """
    raised when Code attributes are nested too deeply for the
    interpreter to follow
    """

    pass


class JavaAttributes(list):
    """
    attributes table, as used in class, member, and code
    structures. Holds the attributes in file order, and the
    JavaConstantPool their names were resolved against.
    """

    def __init__(self, cpool):
        list.__init__(self)
        self.cpool = cpool


    def unpack(self, unpacker):
        """
        Unpack an attributes table from an unpacker stream. Modifies the
        structure of this instance.
        """

        self.extend(unpacker.unpack_sequence(unpack_attribute, self.cpool))


    def get_attribute(self, name):
        """
        the first attribute with the given name, or None
        """

        for attr in self:
            if attr.name == name:
                return attr
        return None


    def get_attributes(self, name):
        """
        all of the attributes with the given name
        """

        return tuple(attr for attr in self if attr.name == name)


    def get_code(self):
        """
        the first Code attribute, or None
        """

        for attr in self:
            if isinstance(attr, JavaCodeInfo):
                return attr
        return None


class JavaAttributeInfo(object):
    """
    Common base of the attribute types
    """

    def __init__(self, cpool, name):
        self.cpool = cpool
        self.name = name


    def unpack(self, unpacker):  # pragma: no cover
        """
        decode the attribute body. unpacker covers exactly the declared
        length of this attribute.
        """

        raise NotImplementedError()


class JavaRawAttribute(JavaAttributeInfo):
    """
    An attribute this module doesn't interpret. info is the whole
    attribute body, as a memoryview into the class data.
    """

    def __init__(self, cpool, name):
        super(JavaRawAttribute, self).__init__(cpool, name)
        self.info = None


    def unpack(self, unpacker):
        self.info = unpacker.read_slice(unpacker.remaining())
        _log.debug("kept %i bytes of raw attribute %r",
                   len(self.info), self.name)


class JavaConstantValueInfo(JavaAttributeInfo):
    """
    The 'ConstantValue' attribute of a field

    reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7.2
    """  # noqa

    def __init__(self, cpool, name):
        super(JavaConstantValueInfo, self).__init__(cpool, name)
        self.constantvalue_ref = 0


    def unpack(self, unpacker):
        self.constantvalue_ref = unpacker.read_u2()


    def deref_constantvalue(self):
        return self.cpool.deref_const(self.constantvalue_ref)


class JavaSourceFileInfo(JavaAttributeInfo):
    """
    The 'SourceFile' attribute of a class

    reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7.10
    """  # noqa

    def __init__(self, cpool, name):
        super(JavaSourceFileInfo, self).__init__(cpool, name)
        self.sourcefile_ref = 0


    def unpack(self, unpacker):
        self.sourcefile_ref = unpacker.read_u2()


    def get_sourcefile(self):
        return self.cpool.deref_utf8(self.sourcefile_ref)


class JavaCodeInfo(JavaAttributeInfo):
    """
    The 'Code' attribute of a method member of a java class. Carries
    its own attributes table, unpacked with the same reader as the
    class and member tables.

    reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7.3
    """  # noqa

    def __init__(self, cpool, name="Code"):
        super(JavaCodeInfo, self).__init__(cpool, name)
        self.attribs = JavaAttributes(cpool)
        self.max_stack = 0
        self.max_locals = 0
        self.code = None
        self.exceptions = tuple()

        # cache of linenumbertable
        self._lnt = None


    def get_attribute(self, name):
        """
        get a nested attribute by name
        """

        return self.attribs.get_attribute(name)


    def unpack(self, unpacker):
        """
        unpacks a code block from a buffer. Updates the internal structure
        of this instance
        """

        (a, b, c) = unpacker.unpack_struct(_HHI)

        self.max_stack = a
        self.max_locals = b
        self.code = unpacker.read_slice(c)

        uobjs = unpacker.unpack_objects
        self.exceptions = tuple(uobjs(JavaExceptionInfo, self.cpool))

        self.attribs.unpack(unpacker)


    def get_linenumbertable(self):
        """
        a sequence of (code_offset, line_number) pairs.

        reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7.12
        """  # noqa

        lnt = self._lnt
        if lnt is None:
            attr = self.get_attribute("LineNumberTable")
            if attr is None:
                lnt = tuple()
            else:
                with unpack(attr.info) as up:
                    lnt = tuple(up.unpack_struct_array(_HH))
            self._lnt = lnt
        return lnt


    def get_line_for_offset(self, code_offset):
        """
        returns the line number given a code offset
        """

        prev_line = 0

        for (offset, line) in self.get_linenumbertable():
            if offset < code_offset:
                prev_line = line
            elif offset == code_offset:
                return line
            else:
                return prev_line

        return prev_line


class JavaExceptionInfo(object):
    """
    An entry in the exception table of a Code attribute
    """

    def __init__(self, cpool):
        self.cpool = cpool

        self.start_pc = 0
        self.end_pc = 0
        self.handler_pc = 0
        self.catch_type_ref = 0


    def unpack(self, unpacker):
        """
        unpacks an exception handler entry in an exception table. Updates
        the internal structure of this instance
        """

        (a, b, c, d) = unpacker.unpack_struct(_HHHH)

        self.start_pc = a
        self.end_pc = b
        self.handler_pc = c
        self.catch_type_ref = d


    def get_catch_type(self):
        """
        dereferences the catch_type_ref to its class name, or None if
        this handler catches everything
        """

        if self.catch_type_ref:
            return self.cpool.deref_class_name(self.catch_type_ref)
        else:
            return None


    def pretty_catch_type(self):
        """
        "any" for a catch-all handler, otherwise "Class " and the pretty
        class name, as javap shows them
        """

        ct = self.get_catch_type()
        if ct:
            return "Class " + pretty_class(ct)
        else:
            return "any"


    def info(self):
        """
        tuple of the start_pc, end_pc, handler_pc and catch_type_ref
        """

        return (self.start_pc, self.end_pc,
                self.handler_pc, self.catch_type_ref)


    def __eq__(self, other):
        return (isinstance(other, JavaExceptionInfo) and
                (self.info() == other.info()))


    def __ne__(self, other):
        return not self.__eq__(other)


    def __repr__(self):
        return "<JavaExceptionInfo %i-%i -> %i catch #%i>" % self.info()


# attribute name to the type which decodes it. Names not present
# here are kept as JavaRawAttribute
ATTRIBUTE_TYPES = {
    "ConstantValue": JavaConstantValueInfo,
    "Code": JavaCodeInfo,
    "SourceFile": JavaSourceFileInfo,
}


def unpack_attribute(unpacker, cpool):
    """
    unpack a single attribute: its name reference, its length, and a
    body of exactly that length
    """

    offset = unpacker.position()

    name = cpool.deref_utf8(unpacker.read_u2())
    length = unpacker.read_u4()
    body = unpacker.read_unpacker(length)

    atype = ATTRIBUTE_TYPES.get(name, JavaRawAttribute)
    attr = atype(cpool, name)
    attr.unpack(body)

    left = body.remaining()
    if left:
        raise AttributeLengthMismatch(name, length, length - left, offset)

    return attr


def read_attributes(unpacker, cpool):
    """
    a new JavaAttributes unpacked from unpacker
    """

    attribs = JavaAttributes(cpool)
    attribs.unpack(unpacker)
    return attribs


#
# The end.
