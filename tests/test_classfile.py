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
unit tests for jvmparse's class and member decoding

license: LGPL v.3
"""


from struct import pack
from unittest import TestCase

import jvmparse as jp

from jvmparse.pack import unpack

from . import (ClassBuilder, attribute_table, build_main_class,
               ACC_PUBLIC, ACC_STATIC, MAIN_DESCRIPTOR)


class HelloTest(TestCase):


    def setUp(self):
        self.data = build_main_class("Hello")
        self.ci = jp.unpack_class(self.data)


    def test_consumes_everything(self):
        with unpack(self.data) as up:
            ci = jp.JavaClassInfo()
            ci.unpack(up)
            self.assertEqual(up.offset, len(self.data))
            self.assertEqual(up.remaining(), 0)


    def test_header(self):
        ci = self.ci

        self.assertEqual(type(ci), jp.JavaClassInfo)
        self.assertEqual(ci.magic, 0xCAFEBABE)
        self.assertEqual(ci.major_version, 52)
        self.assertEqual(ci.minor_version, 0)
        self.assertEqual(ci.get_version(), (52, 0))
        self.assertEqual(ci.get_platform(), "1.8")

        self.assertTrue(ci.is_public())
        self.assertTrue(ci.is_super())
        self.assertFalse(ci.is_final())
        self.assertFalse(ci.is_interface())
        self.assertFalse(ci.is_abstract())
        self.assertFalse(ci.is_enum())


    def test_names(self):
        ci = self.ci

        self.assertEqual(ci.get_name(), "Hello")
        self.assertEqual(ci.pretty_name(), "Hello")
        self.assertEqual(ci.get_super_name(), "java/lang/Object")
        self.assertEqual(ci.interfaces, ())
        self.assertEqual(ci.get_interfaces(), ())
        self.assertEqual(ci.get_sourcefile(), "Hello.java")


    def test_members(self):
        ci = self.ci

        self.assertEqual(ci.fields, ())
        self.assertEqual(len(ci.methods), 2)

        names = [m.get_name() for m in ci.methods]
        self.assertEqual(names, ["<init>", "main"])

        for m in ci.methods:
            self.assertTrue(m.is_method)
            self.assertTrue(m.cpool is ci.cpool)


    def test_main_method(self):
        ci = self.ci
        main = ci.get_main_method()

        self.assertTrue(main is ci.methods[1])
        self.assertEqual(main.get_name(), "main")
        self.assertEqual(main.get_descriptor(), MAIN_DESCRIPTOR)
        self.assertEqual(main.access_flags, ACC_PUBLIC | ACC_STATIC)
        self.assertTrue(main.is_static())

        self.assertEqual(main.get_arg_type_descriptors(),
                         ("[Ljava/lang/String;", ))
        self.assertEqual(main.get_type_descriptor(), "V")
        self.assertEqual(main.pretty_descriptor(),
                         "public static void main(java.lang.String[])")

        code = main.get_code_attribute()
        self.assertEqual(type(code), jp.JavaCodeInfo)
        self.assertEqual(code.max_stack, 2)
        self.assertEqual(bytes(code.code),
                         b"\xb2\x00\x00\x12\x00\xb6\x00\x00\xb1")
        self.assertEqual(code.get_linenumbertable(), ((0, 3), (8, 4)))


    def test_constructor(self):
        ctor = self.ci.get_method("<init>", "()V")

        self.assertEqual(ctor.pretty_descriptor(), "public <init>()")
        self.assertEqual(ctor.get_arg_type_descriptors(), ())

        code = ctor.get_code_attribute()
        ref = code.code[2] << 8 | code.code[3]
        self.assertEqual(self.ci.deref_const(ref),
                         ("java/lang/Object", "<init>", "()V"))


    def test_lookup(self):
        ci = self.ci

        self.assertEqual(ci.get_method("main").get_name(), "main")
        self.assertEqual(ci.get_method("main", "()V"), None)
        self.assertEqual(ci.get_method("nope"), None)
        self.assertEqual(len(list(ci.get_methods_by_name("main"))), 1)
        self.assertEqual(ci.get_field_by_name("main"), None)


    def test_is_class(self):
        self.assertTrue(jp.is_class(self.data))
        self.assertTrue(jp.is_class(bytearray(self.data)))
        self.assertFalse(jp.is_class(b"\xCA\xFE"))
        self.assertFalse(jp.is_class(b"PK\x03\x04"))


    def test_truncated(self):
        data = self.data

        for end in range(len(data)):
            self.assertRaises(jp.BoundsError,
                              lambda: jp.unpack_class(data[:end]))


    def test_memoryview(self):
        ci = jp.unpack_class(memoryview(self.data))
        self.assertEqual(ci.get_main_method().get_name(), "main")


class MinimalMainTest(TestCase):


    def test_bare_main(self):
        cb = ClassBuilder()
        cb.utf8("main")
        cb.utf8(MAIN_DESCRIPTOR)

        data = cb.build(methods=[cb.member(ACC_PUBLIC | ACC_STATIC,
                                           "main", MAIN_DESCRIPTOR)])
        ci = jp.unpack_class(data)

        main = ci.get_main_method()
        self.assertTrue(main is ci.methods[0])
        self.assertEqual(main.get_code_attribute(), None)


    def test_no_main(self):
        cb = ClassBuilder()
        data = cb.build(methods=[
            cb.member(ACC_PUBLIC | ACC_STATIC, "main", "()V"),
            cb.member(ACC_PUBLIC | ACC_STATIC, "start", MAIN_DESCRIPTOR),
            cb.member(ACC_PUBLIC, "main", "([Ljava/lang/Object;)V")])

        ci = jp.unpack_class(data)
        self.assertRaises(jp.EntryPointNotFound, ci.get_main_method)
        self.assertRaises(LookupError, ci.get_main_method)


    def test_no_methods(self):
        ci = jp.unpack_class(ClassBuilder().build())
        self.assertEqual(ci.methods, ())
        self.assertRaises(jp.EntryPointNotFound, ci.get_main_method)


class ClassShapeTest(TestCase):


    def test_fields(self):
        cb = ClassBuilder()
        value = cb.integer(-12)
        wide = cb.long(1 << 40)

        cval = cb.attribute("ConstantValue", pack(">H", value))
        fields = [
            cb.member(0x0019, "LIMIT", "I", [cval]),
            cb.member(0x0002, "names", "[[Ljava/lang/String;"),
            cb.member(0x0080, "count", "J"),
        ]

        ci = jp.unpack_class(cb.build(fields=fields))
        self.assertEqual(len(ci.fields), 3)

        limit = ci.get_field_by_name("LIMIT")
        self.assertFalse(limit.is_method)
        self.assertEqual(limit.get_constantvalue(), value)
        self.assertEqual(limit.deref_constantvalue(), -12)
        self.assertEqual(limit.get_type_descriptor(), "I")
        self.assertEqual(limit.get_arg_type_descriptors(), ())
        self.assertEqual(limit.pretty_descriptor(),
                         "public static final int LIMIT")

        names = ci.get_field_by_name("names")
        self.assertEqual(names.pretty_type(), "java.lang.String[][]")
        self.assertEqual(names.get_constantvalue(), None)
        self.assertEqual(names.deref_constantvalue(), None)
        self.assertEqual(names.pretty_descriptor(),
                         "private java.lang.String[][] names")

        count = ci.get_field_by_name("count")
        self.assertTrue(count.is_transient())
        self.assertEqual(count.pretty_descriptor(), "transient long count")

        # the long occupies two slots
        self.assertEqual(ci.deref_const(wide), 1 << 40)
        self.assertRaises(jp.EmptySlot, lambda: ci.deref_const(wide + 1))


    def test_interfaces(self):
        cb = ClassBuilder()
        data = cb.build(name="pkg/Task", access=0x0411,
                        interfaces=["java/lang/Runnable",
                                    "java/io/Serializable"])

        ci = jp.unpack_class(data)

        self.assertEqual(len(ci.interfaces), 2)
        self.assertEqual(ci.get_interfaces(),
                         ("java/lang/Runnable", "java/io/Serializable"))
        self.assertEqual(ci.pretty_name(), "pkg.Task")
        self.assertTrue(ci.is_final())
        self.assertTrue(ci.is_abstract())


    def test_object(self):
        ci = jp.unpack_class(ClassBuilder().build(name="java/lang/Object",
                                                  super_name=None))

        self.assertEqual(ci.super_ref, 0)
        with self.assertRaises(jp.EmptySlot) as ctx:
            ci.get_super_name()
        self.assertEqual(ctx.exception.index, 0)


    def test_class_attributes(self):
        cb = ClassBuilder()
        attributes = [cb.attribute("InnerClasses", b"\x00\x00"),
                      cb.attribute("SourceFile",
                                   pack(">H", cb.utf8("Odd.java")))]

        ci = jp.unpack_class(cb.build(attributes=attributes))

        self.assertEqual(len(ci.attribs), 2)
        raw = ci.get_attribute("InnerClasses")
        self.assertEqual(type(raw), jp.JavaRawAttribute)
        self.assertEqual(bytes(raw.info), b"\x00\x00")
        self.assertEqual(ci.get_sourcefile(), "Odd.java")


    def test_no_sourcefile(self):
        ci = jp.unpack_class(ClassBuilder().build())
        self.assertEqual(ci.get_sourcefile(), None)


    def test_newer_version(self):
        ci = jp.unpack_class(ClassBuilder().build(major=65))
        self.assertEqual(ci.get_platform(), "21")


class BrokenClassTest(TestCase):


    def test_magic(self):
        data = b"\xCA\xFE\xBA\xBF" + ClassBuilder().build()[4:]

        with self.assertRaises(jp.ClassUnpackException) as ctx:
            jp.unpack_class(data)
        self.assertIn("0xCAFEBABF", str(ctx.exception))


    def test_not_bytes(self):
        self.assertRaises(TypeError, lambda: jp.unpack_class(None))


    def test_this_class_not_a_class(self):
        cb = ClassBuilder()
        data = bytearray(cb.build(name="Broken"))

        # point this_class at the Utf8 "Broken" rather than its Class
        offset = 8 + len(cb.pool_bytes()) + 2
        data[offset:offset + 2] = pack(">H", cb.utf8("Broken"))

        ci = jp.unpack_class(bytes(data))

        with self.assertRaises(jp.TagMismatch) as ctx:
            ci.get_name()
        self.assertEqual(ctx.exception.actual, jp.CONST_Utf8)
        self.assertEqual(ctx.exception.expected, jp.CONST_Class)


    def test_member_name_broken(self):
        cb = ClassBuilder()
        number = cb.integer(5)

        member = pack(">HHH", ACC_PUBLIC, number, cb.utf8("()V"))
        member += attribute_table([])

        ci = jp.unpack_class(cb.build(methods=[member]))
        method = ci.methods[0]

        self.assertRaises(jp.TagMismatch, method.get_name)
        self.assertEqual(method.get_descriptor(), "()V")

        # resolution is on demand, so the entry point scan hits it
        self.assertRaises(jp.TagMismatch, ci.get_main_method)


    def test_member_name_out_of_range(self):
        cb = ClassBuilder()
        member = pack(">HHH", ACC_PUBLIC, 999, 0) + attribute_table([])

        ci = jp.unpack_class(cb.build(methods=[member]))
        self.assertRaises(jp.IndexOutOfRange, ci.methods[0].get_name)
        self.assertRaises(jp.EmptySlot, ci.methods[0].get_descriptor)


    def test_attribute_name_broken(self):
        cb = ClassBuilder()
        number = cb.integer(5)
        attr = pack(">HI", number, 0)

        self.assertRaises(jp.TagMismatch, lambda: jp.unpack_class(
            cb.build(attributes=[attr])))


    def test_unknown_constant(self):
        data = bytearray(ClassBuilder().build(name="A"))

        # the first constant's tag byte
        data[10] = 2

        with self.assertRaises(jp.UnknownConstantTag) as ctx:
            jp.unpack_class(bytes(data))
        self.assertEqual(ctx.exception.offset, 10)


    def test_deep_nesting(self):
        cb = ClassBuilder()

        # max_stack, max_locals, empty code, empty exception table
        header = pack(">HHIH", 0, 0, 0, 0)
        name = pack(">H", cb.utf8("Code"))

        # each Code attribute holds one more, far past any stack
        body = cb.code(b"")
        for _i in range(3000):
            inner = name + pack(">I", len(body)) + body
            body = header + pack(">H", 1) + inner

        attr = name + pack(">I", len(body)) + body
        method = cb.member(ACC_PUBLIC, "deep", "()V", [attr])

        self.assertRaises(jp.AttributeNestingError,
                          lambda: jp.unpack_class(cb.build(methods=[method])))


class PlatformTest(TestCase):


    def test_platforms(self):
        self.assertEqual(jp.platform_from_version(45, 3), "1.0.2")
        self.assertEqual(jp.platform_from_version(45, 4), "1.1")
        self.assertEqual(jp.platform_from_version(50, 0), "1.6")
        self.assertEqual(jp.platform_from_version(53, 0), "9")
        self.assertEqual(jp.platform_from_version(61, 0), "17")
        self.assertEqual(jp.platform_from_version(44, 0), None)
        self.assertEqual(jp.platform_from_version(200, 0), None)


#
# The end.
