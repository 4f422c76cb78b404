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
unit tests for jvmparse

Class files used by the tests are assembled in memory by
`ClassBuilder`, so no compiled fixtures are needed.

license: LGPL v.3
"""


from struct import pack


ACC_PUBLIC = 0x0001
ACC_STATIC = 0x0008
ACC_SUPER = 0x0020


MAIN_DESCRIPTOR = "([Ljava/lang/String;)V"


class ClassBuilder(object):
    """
    Assembles the bytes of a class file. Constants are added as they
    are referenced and Utf8 constants are shared, the way javac lays
    them out.
    """

    def __init__(self):
        self.entries = []
        self.next_index = 1
        self._utf8 = {}


    def add_const(self, data, slots=1):
        """
        append the raw bytes of a constant (tag included), returning its
        index
        """

        index = self.next_index
        self.entries.append(data)
        self.next_index += slots
        return index


    def utf8(self, text):
        index = self._utf8.get(text)
        if index is None:
            data = text.encode("utf8")
            index = self.add_const(pack(">BH", 1, len(data)) + data)
            self._utf8[text] = index
        return index


    def integer(self, value):
        return self.add_const(pack(">Bi", 3, value))


    def long(self, value):
        return self.add_const(pack(">Bq", 5, value), slots=2)


    def double(self, value):
        return self.add_const(pack(">Bd", 6, value), slots=2)


    def cls(self, name):
        return self.add_const(pack(">BH", 7, self.utf8(name)))


    def string(self, text):
        return self.add_const(pack(">BH", 8, self.utf8(text)))


    def name_and_type(self, name, descriptor):
        return self.add_const(pack(">BHH", 12, self.utf8(name),
                                   self.utf8(descriptor)))


    def methodref(self, owner, name, descriptor):
        return self.add_const(pack(">BHH", 10, self.cls(owner),
                                   self.name_and_type(name, descriptor)))


    def attribute(self, name, body):
        return pack(">HI", self.utf8(name), len(body)) + body


    def code(self, code, max_stack=1, max_locals=1,
             exceptions=(), attributes=()):
        """
        body of a Code attribute. exceptions is a sequence of
        (start_pc, end_pc, handler_pc, catch_type) tuples
        """

        body = pack(">HHI", max_stack, max_locals, len(code)) + code
        body += pack(">H", len(exceptions))
        for exc in exceptions:
            body += pack(">HHHH", *exc)
        return body + attribute_table(attributes)


    def member(self, access, name, descriptor, attributes=()):
        return (pack(">HHH", access, self.utf8(name), self.utf8(descriptor))
                + attribute_table(attributes))


    def pool_bytes(self):
        """
        the constant pool as it would appear in the class file
        """

        return pack(">H", self.next_index) + b"".join(self.entries)


    def build(self, name="Sample", super_name="java/lang/Object",
              access=ACC_PUBLIC | ACC_SUPER, interfaces=(),
              fields=(), methods=(), attributes=(),
              major=52, minor=0):

        this_ref = self.cls(name)
        super_ref = self.cls(super_name) if super_name else 0
        iface_refs = [self.cls(i) for i in interfaces]

        data = pack(">IHH", 0xCAFEBABE, minor, major)
        data += self.pool_bytes()
        data += pack(">HHH", access, this_ref, super_ref)
        data += pack(">H", len(iface_refs))
        data += b"".join(pack(">H", i) for i in iface_refs)
        data += attribute_table(fields)
        data += attribute_table(methods)
        data += attribute_table(attributes)
        return data


def attribute_table(items):
    """
    a u2 count followed by the already packed items
    """

    return pack(">H", len(items)) + b"".join(items)


def build_main_class(name="Hello"):
    """
    a class with a constructor and a main method, as javac would
    produce for the usual Hello World
    """

    cb = ClassBuilder()

    ctor_code = cb.code(b"\x2a\xb7" + pack(">H", cb.methodref(
        "java/lang/Object", "<init>", "()V")) + b"\xb1")
    ctor = cb.member(ACC_PUBLIC, "<init>", "()V",
                     [cb.attribute("Code", ctor_code)])

    lnt = pack(">HHHHH", 2, 0, 3, 8, 4)
    main_code = cb.code(b"\xb2\x00\x00\x12\x00\xb6\x00\x00\xb1",
                        max_stack=2,
                        attributes=[cb.attribute("LineNumberTable", lnt)])
    main = cb.member(ACC_PUBLIC | ACC_STATIC, "main", MAIN_DESCRIPTOR,
                     [cb.attribute("Code", main_code)])

    source = cb.attribute("SourceFile",
                          pack(">H", cb.utf8(name + ".java")))

    return cb.build(name=name, methods=[ctor, main], attributes=[source])


#
# The end.
