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
Field and method descriptors, the class file's compact encoding of
types. eg. "I" is an int, "[Ljava/lang/String;" is a String array,
and "(IJ)V" is a method taking an int and a long and returning void.

reference: https://docs.oracle.com/javase/specs/jvms/se8/html/jvms-4.html#jvms-4.3

:license: LGPL v.3
"""  # noqa


from .pack import UnpackException


__all__ = (
    "InvalidDescriptor",
    "next_type", "split_types", "split_method_descriptor",
    "pretty_type", "pretty_class",
)


_base_types = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
    "V": "void",
}


class InvalidDescriptor(UnpackException, ValueError):
    """
    raised when a descriptor string cannot be parsed
    """

    def __init__(self, descriptor, offset=0):
        msg = "invalid descriptor %r at character %i" % (descriptor, offset)
        super(InvalidDescriptor, self).__init__(msg)
        self.descriptor = descriptor
        self.offset = offset


def next_type(s, offset=0):
    """
    the single type descriptor starting at offset in s, and the
    offset just past it
    """

    if offset >= len(s):
        raise InvalidDescriptor(s, offset)

    c = s[offset]

    if c in _base_types:
        return c, offset + 1

    elif c == "[":
        t, end = next_type(s, offset + 1)
        return c + t, end

    elif c == "L":
        end = s.find(";", offset)
        if end < 0:
            raise InvalidDescriptor(s, offset)
        return s[offset:end + 1], end + 1

    else:
        raise InvalidDescriptor(s, offset)


def split_types(s):
    """
    tuple of the type descriptors concatenated in s
    """

    result = []
    offset = 0
    while offset < len(s):
        t, offset = next_type(s, offset)
        result.append(t)
    return tuple(result)


def split_method_descriptor(desc):
    """
    (argument type descriptors, return type descriptor) of a method
    descriptor
    """

    close = desc.find(")")
    if not desc.startswith("(") or close < 0:
        raise InvalidDescriptor(desc)

    args = split_types(desc[1:close])

    ret, end = next_type(desc, close + 1)
    if end != len(desc):
        raise InvalidDescriptor(desc, end)

    return args, ret


def pretty_type(t):
    """
    the Java source spelling of a single type descriptor
    """

    if not t:
        raise InvalidDescriptor(t)

    c = t[0]

    if c in _base_types and len(t) == 1:
        return _base_types[c]

    elif c == "[":
        return "%s[]" % pretty_type(t[1:])

    elif c == "L" and t.endswith(";"):
        return pretty_class(t[1:-1])

    else:
        raise InvalidDescriptor(t)


def pretty_class(s):
    """
    convert the internal class name representation into what users
    expect to see. Currently that just means swapping '/' for '.'
    """

    return s.replace("/", ".")


#
# The end.
