#!/usr/bin/env python3
#
# Small/shared types for the XInclude reader, including:
#     Exceptions
#     Enum enhancements
#     Namespace constants
#
from typing import Any, Union
from enum import Enum

__metadata__ = {
    "title"        : "xincludetypes",
    "description"  : "Shared types and exceptions for XIncludeReader.",
    "rightsHolder" : "Steven J. DeRose",
    "creator"      : "http://viaf.org/viaf/50334488",
    "type"         : "http://purl.org/dc/dcmitype/Software",
    "language"     : "Python 3.11",
    "created"      : "2012-06-02",
    "modified"     : "2025-03-09",
    "publisher"    : "http://github.com/sderose",
    "license"      : "https://creativecommons.org/licenses/by-sa/3.0/"
}
__version__ = __metadata__['modified']


###############################################################################
# Exceptions
#
class XmlStreamError(Exception): pass

class NotWellFormedError(XmlStreamError): pass  # parser rejected the input
class XIncludeError(XmlStreamError): pass

class StructuralError(XIncludeError): pass      # bad include directive
class ResolutionError(XIncludeError): pass      # target can't be opened/read
class CircularIncludeError(ResolutionError): pass  # loop, or too deep


###############################################################################
#
class FlexibleEnum(Enum):
    """Subclass from this to make enums that can construct from any of:
        E.XYZ       -- the usual enumclass.name form,
        E(E.XYZ)    -- an instance of the Enum as argument,
        E("XYZ")    -- a string that matches a member name,
        E(1)        -- a value of a member.
    """
    @classmethod
    def _missing_(cls, value: Any):
        """Handle cases where the value isn't a proper instance already.
        """
        if isinstance(value, str):
            try:
                return cls[value]
            except KeyError:
                for member in cls:
                    if member.value == value: return member
        return None


class TokenType(FlexibleEnum):
    """The kinds of token a TokenReader hands back. The values are the
    corresponding DOM nodeType numbers where there is one, so code that
    thinks in DOM terms can compare either way.
    END and XMLDCL have no DOM counterpart.
    """
    START        = 1    # ELEMENT_NODE
    TEXT         = 3    # TEXT_NODE
    CDATA        = 4    # CDATA_SECTION_NODE
    PROC         = 7    # PROCESSING_INSTRUCTION_NODE
    COMMENT      = 8    # COMMENT_NODE
    DOCTYPE      = 10   # DOCUMENT_TYPE_NODE
    END          = 101
    XMLDCL       = 102

    @staticmethod
    def okTokenType(tt:Union[int, str, 'TokenType'], die:bool=True) -> 'TokenType':
        """Accept a TokenType, its name, or its int, and return the TokenType
        (or None on failure if 'die' is off).
        """
        if isinstance(tt, TokenType): return tt
        try:
            return TokenType(tt)
        except ValueError:
            if not die: return None
            raise


###############################################################################
# Namespaces
#
class XmlNamespaces:
    """Commonly-needed namespace URIs.
    """
    XML = "http://www.w3.org/XML/1998/namespace"
    XInclude2001 = "http://www.w3.org/2001/XInclude"
    XInclude2003 = "http://www.w3.org/2003/XInclude"

# Either one marks an include directive; they're treated identically.
XINCLUDE_NAMESPACES = frozenset([
    XmlNamespaces.XInclude2001,
    XmlNamespaces.XInclude2003,
])

XINCLUDE_ELEMENT = "include"
