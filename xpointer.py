#!/usr/bin/env python3
#
# xpointer: Parse XPointer-framework expressions, and use them to pick
# nodes out of a token stream.
# See https://www.w3.org/TR/xptr-framework/
#
#pylint: disable=W1201
#
import logging
from typing import List, Dict, Any

import regex
from lxml import etree as ET

from xincludetypes import TokenType
from tokenreader import TokenReader, TokenListReader, ExpatTokenReader, XmlToken
from identitywriter import XmlIdentityWriter

lg = logging.getLogger("XPointerInfo")

__metadata__ = {
    "title"        : "xpointer",
    "description"  : "XPointer parsing and node selection.",
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

# One scheme part, like xpointer(/a/b[1]). Parentheses in the body must
# balance unless escaped with ^, so the body recurses into itself.
partExpr = regex.compile(r"""
    \s*
    (?P<scheme>[^\s()^]+)
    \(
    (?P<body>(?:\^[()^]|[^()^]|\((?&body)\))*)
    \)
    \s*""", regex.VERBOSE)

unescapeExpr = regex.compile(r"\^([()^])")

ncNameExpr = regex.compile(r"[^\W\d][\w.\-]*")

# How shorthand pointers and element() find an element by ID.
byIdXPath = "(//*[@xml:id=$ptrId or @id=$ptrId])[1]"


###############################################################################
#
class PointerPart:
    """One addressing part of a pointer, already reduced to an XPath
    expression plus whatever it needs to evaluate.
    """
    def __init__(self, scheme:str, data:str, expr:str,
        namespaces:Dict[str, str]=None, variables:Dict[str, Any]=None):
        self.scheme = scheme
        self.data = data
        self.expr = expr
        self.namespaces = dict(namespaces or {})
        self.variables = variables or {}

    def __repr__(self) -> str:
        return f"{self.scheme}({self.data})"


class XPointerInfo:
    """Parse an XPointer and hang on to the parts. Immutable once parsed.

    Supported:
        shorthand     a bare NCName: the element with that xml:id or id
        element()     child sequences, e.g. element(/1/3) or element(intro/2)
        xpointer()    an XPath 1.0 expression (ditto xpath1())
        xmlns()       binds a prefix for the parts that follow
    Parts with other schemes are skipped, as the framework requires.
    If the string doesn't parse at all, isValid is False.
    """
    addressingSchemes = ( "xpointer", "xpath1", "element" )

    def __init__(self, xpointer:str):
        self.source = xpointer
        self.namespaces:Dict[str, str] = {}
        self.parts:List[PointerPart] = []
        self.isValid = False

        if not xpointer or not xpointer.strip(): return
        self.isValid = self.parse(xpointer.strip())

    def parse(self, xpointer:str) -> bool:
        if ncNameExpr.fullmatch(xpointer):
            self.parts.append(PointerPart("shorthand", xpointer, byIdXPath,
                variables={ "ptrId": xpointer }))
            return True

        pos = 0
        while pos < len(xpointer):
            mat = partExpr.match(xpointer, pos)
            if not mat: return False
            pos = mat.end()
            scheme = mat.group("scheme")
            data = unescapeExpr.sub(r"\1", mat.group("body"))
            if scheme == "xmlns":
                if not self.addNamespace(data): return False
            elif scheme in ("xpointer", "xpath1"):
                self.parts.append(PointerPart(scheme, data, data, self.namespaces))
            elif scheme == "element":
                part = self.elementPart(data)
                if part is None: return False
                self.parts.append(part)
            else:
                lg.info("Skipping unsupported XPointer scheme '%s'.", scheme)
        return len(self.parts) > 0

    def addNamespace(self, data:str) -> bool:
        prefix, eq, uri = data.partition("=")
        prefix = prefix.strip()
        if not eq or not ncNameExpr.fullmatch(prefix): return False
        self.namespaces[prefix] = uri.strip()
        return True

    def elementPart(self, data:str) -> PointerPart:
        """element(id), element(id/2/1), or element(/1/2). Returns None
        if it's not one of those.
        """
        steps = data.strip().split("/")
        variables = {}
        if steps[0]:
            if not ncNameExpr.fullmatch(steps[0]): return None
            expr = byIdXPath
            variables["ptrId"] = steps[0]
        elif len(steps) < 2:
            return None
        else:
            expr = ""
        for step in steps[1:]:
            if not step.isdigit() or int(step) < 1: return None
            expr += "/*[%d]" % (int(step))
        return PointerPart("element", data, expr, variables=variables)

    def selectFrom(self, reader:TokenReader) -> List:
        """Read all of 'reader' into a tree, and return the nodes picked out
        by the first part that picks out any. Nodes come back in document
        order. An XPath that won't compile or evaluate counts as
        picking nothing.
        """
        if not self.isValid: return []
        tree = self.buildTree(reader)
        for part in self.parts:
            try:
                found = tree.xpath(part.expr, namespaces=part.namespaces,
                    **part.variables)
            except ET.XPathError as e:
                lg.warning("XPointer part %s failed: %s", part, e)
                continue
            if isinstance(found, list) and found: return found
        return []

    @staticmethod
    def buildTree(reader:TokenReader):
        text = XmlIdentityWriter.toString(reader,
            includeXmlDcl=False, includeDoctype=False)
        parser = ET.XMLParser(resolve_entities=False, no_network=True)
        root = ET.fromstring(text, parser, base_url=reader.baseURI)
        return root.getroottree()

    def __repr__(self) -> str:
        return f"XPointerInfo({self.source!r}, valid={self.isValid})"


###############################################################################
#
def subtreeReader(node:Any, baseURI:str=None) -> TokenReader:
    """Make an independent token stream for one selected node.
    Elements are re-read in full (with whatever namespace declarations
    they need); text and attribute values become a single TEXT token.
    """
    if isinstance(node, str):
        return TokenListReader([ XmlToken(TokenType.TEXT, value=str(node),
            baseURI=baseURI) ], baseURI=baseURI)
    if node.tag is ET.Comment:
        return TokenListReader([ XmlToken(TokenType.COMMENT,
            value=node.text or "", baseURI=baseURI) ], baseURI=baseURI)
    if node.tag is ET.ProcessingInstruction:
        return TokenListReader([ XmlToken(TokenType.PROC, localName=node.target,
            value=node.text or "", baseURI=baseURI) ], baseURI=baseURI)

    # The element's own xml:base will be re-applied when it's re-read,
    # so start from its parent's.
    parent = node.getparent()
    if parent is not None and parent.base: baseURI = parent.base
    text = ET.tostring(node, encoding="unicode", with_tail=False)
    return ExpatTokenReader.fromString(text, baseURI=baseURI)
