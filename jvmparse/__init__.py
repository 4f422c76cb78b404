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
Java class file decoding. Turns the bytes of a class file into a
`JavaClassInfo` whose constant pool, members, and attributes can be
queried, eg. by a bytecode interpreter looking for its entry point.

References
----------
* https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html
* http://en.wikipedia.org/wiki/Class_(file_format)

:license: LGPL v.3
"""  # noqa


import logging

from .attributes import (
    JavaAttributes, JavaCodeInfo, JavaConstantValueInfo,
    JavaSourceFileInfo, JavaRawAttribute, JavaExceptionInfo,
    AttributeLengthMismatch, AttributeNestingError)
from .constants import (
    JavaConstantPool, UnknownConstantTag, UnknownReferenceKind,
    EmptySlot, IndexOutOfRange, TagMismatch, InvalidText,
    CONST_Utf8, CONST_Integer, CONST_Float, CONST_Long, CONST_Double,
    CONST_Class, CONST_String, CONST_Fieldref, CONST_Methodref,
    CONST_InterfaceMethodref, CONST_NameAndType, CONST_MethodHandle,
    CONST_MethodType, CONST_InvokeDynamic)
from .descriptors import (
    InvalidDescriptor, next_type, split_method_descriptor,
    pretty_class, pretty_type)
from .pack import compile_struct, unpack, BoundsError, UnpackException


__all__ = (
    "JavaClassInfo", "JavaConstantPool", "JavaMemberInfo",
    "JavaAttributes", "JavaCodeInfo", "JavaExceptionInfo",
    "JavaConstantValueInfo", "JavaSourceFileInfo", "JavaRawAttribute",
    "UnpackException", "BoundsError", "ClassUnpackException",
    "UnknownConstantTag", "UnknownReferenceKind", "EmptySlot",
    "IndexOutOfRange", "TagMismatch", "InvalidText",
    "EntryPointNotFound", "AttributeLengthMismatch",
    "AttributeNestingError", "InvalidDescriptor",
    "platform_from_version", "is_class", "unpack_class",
    "MAIN_METHOD_NAME", "MAIN_METHOD_DESCRIPTOR",
    "CONST_Utf8", "CONST_Integer", "CONST_Float",
    "CONST_Long", "CONST_Double", "CONST_Class",
    "CONST_String", "CONST_Fieldref", "CONST_Methodref",
    "CONST_InterfaceMethodref", "CONST_NameAndType",
    "CONST_MethodHandle", "CONST_MethodType", "CONST_InvokeDynamic",
    "ACC_PUBLIC", "ACC_PRIVATE", "ACC_PROTECTED",
    "ACC_STATIC", "ACC_FINAL", "ACC_SYNCHRONIZED",
    "ACC_SUPER", "ACC_VOLATILE", "ACC_BRIDGE",
    "ACC_TRANSIENT", "ACC_VARARGS", "ACC_NATIVE",
    "ACC_INTERFACE", "ACC_ABSTRACT", "ACC_STRICT",
    "ACC_SYNTHETIC", "ACC_ANNOTATION", "ACC_ENUM",
    "ACC_MODULE",
)


_log = logging.getLogger(__name__)


# the four bytes at the start of every class file
JAVA_CLASS_MAGIC = 0xCAFEBABE


# the entry point a launcher looks for: public static void main(String[])
MAIN_METHOD_NAME = "main"
MAIN_METHOD_DESCRIPTOR = "([Ljava/lang/String;)V"


# class and member flags
ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_PROTECTED = 0x0004
ACC_STATIC = 0x0008
ACC_FINAL = 0x0010
ACC_SYNCHRONIZED = 0x0020
ACC_SUPER = 0x0020
ACC_VOLATILE = 0x0040
ACC_BRIDGE = 0x0040
ACC_TRANSIENT = 0x0080
ACC_VARARGS = 0x0080
ACC_NATIVE = 0x0100
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_STRICT = 0x0800
ACC_SYNTHETIC = 0x1000
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000
ACC_MODULE = 0x8000


_HH = compile_struct(">HH")
_HHH = compile_struct(">HHH")


class ClassUnpackException(UnpackException):
    """
    raised when the data isn't a Java class file at all
    """

    pass


class EntryPointNotFound(UnpackException, LookupError):
    """
    raised when a class has no public static void main(String[])
    method
    """

    pass


class JavaClassInfo(object):
    """
    Information from a disassembled Java class file.

    reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.1
    """  # noqa

    def __init__(self):
        self.cpool = JavaConstantPool()
        self.attribs = JavaAttributes(self.cpool)

        self.magic = JAVA_CLASS_MAGIC
        self.minor_version = 0
        self.major_version = 0
        self.access_flags = 0
        self.this_ref = 0
        self.super_ref = 0
        self.interfaces = tuple()
        self.fields = tuple()
        self.methods = tuple()


    def deref_const(self, index):
        """
        dereference a value from the parent constant pool
        """

        return self.cpool.deref_const(index)


    def get_attribute(self, name):
        """
        get the first class attribute of the given name
        """

        return self.attribs.get_attribute(name)


    def unpack(self, unpacker):
        """
        Unpacks a Java class from an unpacker stream. Updates the
        structure of this instance.

        The order of the sections is fixed, and the constant pool is
        complete before anything which refers to it is read.
        """

        magic = unpacker.read_u4()
        if magic != JAVA_CLASS_MAGIC:
            raise ClassUnpackException("Not a Java class file, magic"
                                       " is 0x%08X" % magic)

        self.magic = magic

        (self.minor_version,
         self.major_version) = unpacker.unpack_struct(_HH)

        # unpack constant pool
        self.cpool.unpack(unpacker)

        (a, b, c) = unpacker.unpack_struct(_HHH)
        self.access_flags = a
        self.this_ref = b
        self.super_ref = c

        # unpack interfaces
        count = unpacker.read_u2()
        self.interfaces = unpacker.unpack(">%iH" % count)

        uobjs = unpacker.unpack_objects

        # unpack fields
        self.fields = tuple(uobjs(JavaMemberInfo,
                                  self.cpool, is_method=False))

        # unpack methods
        self.methods = tuple(uobjs(JavaMemberInfo,
                                   self.cpool, is_method=True))

        # unpack attributes
        self.attribs.unpack(unpacker)


    def get_version(self):
        """
        the (major, minor) version of Java required by this Java class
        """

        return (self.major_version, self.minor_version)


    def get_platform(self):
        """
        The platform as a string, derived from the major and minor version
        number
        """

        return platform_from_version(*self.get_version())


    def get_name(self):
        """
        the binary name of this class, eg. "java/lang/String"
        """

        return self.cpool.deref_class_name(self.this_ref)


    def get_super_name(self):
        """
        the binary name of the parent class. java/lang/Object has a
        super_ref of 0, so for it this raises EmptySlot
        """

        return self.cpool.deref_class_name(self.super_ref)


    def get_interfaces(self):
        """
        tuple of the binary names of the interfaces this class implements
        """

        return tuple(self.cpool.deref_class_name(i) for i in self.interfaces)


    def pretty_name(self):
        return pretty_class(self.get_name())


    def get_sourcefile(self):
        """
        the name of the file this class was compiled from, or None if not
        indicated
        """

        attr = self.get_attribute("SourceFile")
        if attr is None:
            return None
        return attr.get_sourcefile()


    def is_public(self):
        return self.access_flags & ACC_PUBLIC


    def is_final(self):
        return self.access_flags & ACC_FINAL


    def is_super(self):
        """
        class has the Super flag set.

        This flag is used by the JVM to differentiate the behavior in
        the method resolution order of the class.
        """

        return self.access_flags & ACC_SUPER


    def is_interface(self):
        return self.access_flags & ACC_INTERFACE


    def is_abstract(self):
        return self.access_flags & ACC_ABSTRACT


    def is_synthetic(self):
        return self.access_flags & ACC_SYNTHETIC


    def is_annotation(self):
        return self.access_flags & ACC_ANNOTATION


    def is_enum(self):
        return self.access_flags & ACC_ENUM


    def is_module(self):
        return self.access_flags & ACC_MODULE


    def get_field_by_name(self, name):
        """
        the field member matching name, or None if no such field is found
        """

        for f in self.fields:
            if f.get_name() == name:
                return f
        return None


    def get_methods_by_name(self, name):
        """
        generator of methods matching name. This will include any bridges
        present.
        """

        return (m for m in self.methods if m.get_name() == name)


    def get_method(self, name, descriptor=None):
        """
        the first method with the given name, and the given descriptor
        if one is specified. None if no method matches.
        """

        for m in self.get_methods_by_name(name):
            if descriptor is None or m.get_descriptor() == descriptor:
                return m
        return None


    def get_main_method(self):
        """
        the `public static void main(String[])` method. Only the name
        and descriptor are compared. Raises EntryPointNotFound if there
        is no such method.
        """

        for m in self.methods:
            if ((m.get_name() == MAIN_METHOD_NAME and
                 m.get_descriptor() == MAIN_METHOD_DESCRIPTOR)):
                return m

        raise EntryPointNotFound("no method %s%s in class" %
                                 (MAIN_METHOD_NAME, MAIN_METHOD_DESCRIPTOR))


class JavaMemberInfo(object):
    """
    A field or method of a java class. The name and descriptor are
    kept as constant pool indexes and resolved when asked for.
    """

    def __init__(self, cpool, is_method=False):
        self.cpool = cpool
        self.attribs = JavaAttributes(cpool)
        self.access_flags = 0
        self.name_ref = 0
        self.descriptor_ref = 0
        self.is_method = is_method


    def unpack(self, unpacker):
        """
        unpack the contents of this instance from the values in unpacker
        """

        (a, b, c) = unpacker.unpack_struct(_HHH)

        self.access_flags = a
        self.name_ref = b
        self.descriptor_ref = c
        self.attribs.unpack(unpacker)


    def deref_const(self, index):
        """
        Dereference a constant in the parent constant pool
        """

        return self.cpool.deref_const(index)


    def get_attribute(self, name):
        """
        Get the first attribute of the given name
        """

        return self.attribs.get_attribute(name)


    def get_name(self):
        """
        the name of this member
        """

        return self.cpool.deref_utf8(self.name_ref)


    def get_descriptor(self):
        """
        the descriptor of this member
        """

        return self.cpool.deref_utf8(self.descriptor_ref)


    def get_code_attribute(self):
        """
        the JavaCodeInfo of this member if it is a non-abstract method,
        None otherwise. Should there somehow be more than one, the first
        is returned.

        reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.7.3
        """  # noqa

        return self.attribs.get_code()


    def get_constantvalue(self):
        """
        the constant pool index for this field, or None if this is not a
        contant field
        """

        attr = self.get_attribute("ConstantValue")
        if attr is None:
            return None
        return attr.constantvalue_ref


    def deref_constantvalue(self):
        """
        the value in the constant pool at the get_constantvalue() index
        """

        attr = self.get_attribute("ConstantValue")
        if attr is None:
            return None
        return attr.deref_constantvalue()


    def get_type_descriptor(self):
        """
        the type descriptor for a field, or the return type descriptor for
        a method.
        """

        desc = self.get_descriptor()

        if self.is_method:
            return split_method_descriptor(desc)[1]

        t, end = next_type(desc)
        if end != len(desc):
            raise InvalidDescriptor(desc, end)
        return t


    def get_arg_type_descriptors(self):
        """
        The parameter type descriptors of a method, or an empty tuple
        for a field.
        """

        if not self.is_method:
            return tuple()

        return split_method_descriptor(self.get_descriptor())[0]


    def pretty_type(self):
        """
        The pretty version of get_type_descriptor.
        """

        return pretty_type(self.get_type_descriptor())


    def pretty_arg_types(self):
        """
        Sequence of pretty argument types.
        """

        return tuple(pretty_type(t) for t in self.get_arg_type_descriptors())


    def pretty_descriptor(self):
        """
        assemble a long member name from access flags, type, and argument
        types as applicable, eg. "public static void main(java.lang.String[])"
        """

        f = " ".join(self.pretty_access_flags())
        p = self.pretty_type()
        n = self.get_name()

        if n == "<init>":
            # we pretend that there's no return type, even though it's
            # V for constructors
            p = None

        if self.is_method:
            n = "%s(%s)" % (n, ",".join(self.pretty_arg_types()))

        return " ".join(z for z in (f, p, n) if z)


    def pretty_access_flags(self):
        """
        generator of the keywords determined from the access flags
        """

        if self.is_public():
            yield "public"
        if self.is_private():
            yield "private"
        if self.is_protected():
            yield "protected"
        if self.is_static():
            yield "static"
        if self.is_final():
            yield "final"
        if self.is_native():
            yield "native"
        if self.is_abstract():
            yield "abstract"

        if self.is_method:
            if self.is_synchronized():
                yield "synchronized"
        else:
            if self.is_transient():
                yield "transient"
            if self.is_volatile():
                yield "volatile"


    def is_public(self):
        return self.access_flags & ACC_PUBLIC


    def is_private(self):
        return self.access_flags & ACC_PRIVATE


    def is_protected(self):
        return self.access_flags & ACC_PROTECTED


    def is_static(self):
        return self.access_flags & ACC_STATIC


    def is_final(self):
        return self.access_flags & ACC_FINAL


    def is_synchronized(self):
        return self.is_method and self.access_flags & ACC_SYNCHRONIZED


    def is_volatile(self):
        return not self.is_method and self.access_flags & ACC_VOLATILE


    def is_transient(self):
        return not self.is_method and self.access_flags & ACC_TRANSIENT


    def is_bridge(self):
        """
        is this method a bridge to another method
        """

        return self.is_method and self.access_flags & ACC_BRIDGE


    def is_varargs(self):
        return self.is_method and self.access_flags & ACC_VARARGS


    def is_native(self):
        return self.access_flags & ACC_NATIVE


    def is_abstract(self):
        return self.access_flags & ACC_ABSTRACT


    def is_strict(self):
        return self.access_flags & ACC_STRICT


    def is_synthetic(self):
        """
        is this a synthetic member, either by flag or by attribute
        """

        return ((self.access_flags & ACC_SYNTHETIC) or
                self.get_attribute("Synthetic") is not None)


    def is_enum(self):
        return self.access_flags & ACC_ENUM


# -----
# Utility functions for turning major/minor versions into JVM releases
# Each entry is a tuple of minimum version and maxiumum version,
# inclusive, and the string of the platform version.


_platforms = (
    ((45, 0), (45, 3), "1.0.2"),
    ((45, 4), (45, 65535), "1.1"),
    ((46, 0), (46, 65535), "1.2"),
    ((47, 0), (47, 65535), "1.3"),
    ((48, 0), (48, 65535), "1.4"),
    ((49, 0), (49, 65535), "1.5"),
    ((50, 0), (50, 65535), "1.6"),
    ((51, 0), (51, 65535), "1.7"),
    ((52, 0), (52, 65535), "1.8"), ) + tuple(
        # from Java 9 on, major version 44 + N is release N
        ((major, 0), (major, 65535), str(major - 44))
        for major in range(53, 70))


def platform_from_version(major, minor):
    """
    returns the minimum platform version that can load the given class
    version indicated by major.minor or None if no known platforms
    match the given version
    """

    v = (major, minor)
    for low, high, name in _platforms:
        if low <= v <= high:
            return name
    return None


# -----
# Functions for dealing with buffers


def is_class(data):
    """
    checks that the data (bytes, bytearray, or memoryview) has the
    magic numbers indicating it is a Java class file. Returns False if
    the magic numbers do not match, or if there is too little data.
    """

    try:
        with unpack(data) as up:
            return up.read_u4() == JAVA_CLASS_MAGIC

    except BoundsError:
        return False


def unpack_class(data):
    """
    unpacks a Java class from data, which can be bytes, bytearray, or
    a memoryview holding the complete class file. Returns a populated
    JavaClassInfo instance.

    Raises an UnpackException (or one of its subclasses) if the class
    data is malformed. A partially decoded class is never returned.
    """

    with unpack(data) as up:
        o = JavaClassInfo()
        try:
            o.unpack(up)
        except RecursionError:
            raise AttributeNestingError("attributes nested too deeply"
                                        " to decode") from None

        _log.debug("unpacked class version %i.%i, %i fields, %i methods,"
                   " %i trailing bytes", o.major_version, o.minor_version,
                   len(o.fields), len(o.methods), up.remaining())

    return o


#
# The end.
