#!/usr/bin/env python3
#
# identitywriter: Write a token stream back out as XML.
#
#pylint: disable=W1201
#
import io
from typing import IO, Any

from xincludetypes import TokenType
from tokenreader import TokenReader, XmlToken

__metadata__ = {
    "title"        : "identitywriter",
    "description"  : "Write a token stream back out as XML.",
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
#
class WriterOptions:
    """Options for XmlIdentityWriter. Callers can pass like-named
    keyword args, or construct and pass an object.
    """
    def __init__(self, **kwargs):
        self.newl:str = "\n"            # After the XML dcl and doctype
        self.includeXmlDcl:bool = True
        self.includeDoctype:bool = True
        self.useEmpty:bool = True       # <x/> for start immediately + end
        self.emptySpace:bool = False    # Include a space before the /
        self.quoteChar:str = '"'        # Char to quote attributes
        self.forCOM:str = "-&#x2d;"     # Use in place of -- in comments
        self.forPI:str = "?&gt;"        # Use in place of ?> in PIs
        self.forMSC:str = "]]&gt;"      # Use in place of ]]> in text

        for k, v in kwargs.items():
            self.setOption(k, v)

    def setOption(self, k:str, v:Any) -> None:
        if k not in self.__dict__:
            raise KeyError(f"WriterOptions: Unknown option '{k}'.")
        if not isinstance(v, type(self.__dict__[k])):
            raise TypeError(f"WriterOptions: option '{k}' expected type "
                f"{type(self.__dict__[k])}, not {type(v)}.")
        self.__dict__[k] = v


###############################################################################
#
class XmlIdentityWriter:
    """Take a TokenReader and write out XML representing its contents.
    A start-tag is held back until the next token, so that an element with
    nothing in it can come out as an empty-element tag.
    """
    def __init__(self, out:IO, fo:WriterOptions=None, **kwargs):
        self.out = out
        self.fo = fo or WriterOptions(**kwargs)
        self.pendingStart:str = None

    @staticmethod
    def toString(reader:TokenReader, fo:WriterOptions=None, **kwargs) -> str:
        buf = io.StringIO()
        XmlIdentityWriter(buf, fo=fo, **kwargs).load(reader)
        return buf.getvalue()

    def load(self, reader:TokenReader) -> None:
        """Read through 'reader' and write everything it returns.
        """
        for tok in reader:
            self.writeToken(tok)
        self.flushStart()

    def writeToken(self, tok:XmlToken) -> None:
        fo = self.fo
        nt = tok.nodeType
        if nt == TokenType.END and self.pendingStart is not None:
            self.out.write(self.pendingStart + (" />" if fo.emptySpace else "/>"))
            self.pendingStart = None
            return
        self.flushStart()

        if nt == TokenType.START:
            if fo.useEmpty: self.pendingStart = self.startTag(tok)
            else: self.out.write(self.startTag(tok) + ">")
        elif nt == TokenType.END:
            self.out.write(f"</{tok.name}>")
        elif nt == TokenType.TEXT:
            self.out.write(self.escapeText(tok.value, fo))
        elif nt == TokenType.CDATA:
            self.out.write(f"<![CDATA[{self.escapeCDATA(tok.value)}]]>")
        elif nt == TokenType.COMMENT:
            self.out.write(f"<!--{self.escapeComment(tok.value, fo)}-->")
        elif nt == TokenType.PROC:
            data = self.escapePI(tok.value, fo)
            self.out.write(f"<?{tok.localName} {data}?>" if data
                else f"<?{tok.localName}?>")
        elif nt == TokenType.DOCTYPE:
            if fo.includeDoctype: self.out.write(self.doctype(tok) + fo.newl)
        elif nt == TokenType.XMLDCL:
            if fo.includeXmlDcl: self.out.write(f"<?xml {tok.value}?>" + fo.newl)
        else:
            raise ValueError(f"Unknown token type {nt}.")

    def flushStart(self) -> None:
        if self.pendingStart is None: return
        self.out.write(self.pendingStart + ">")
        self.pendingStart = None

    def startTag(self, tok:XmlToken) -> str:
        """Everything but the closing delimiter.
        """
        buf = "<" + tok.name
        for pfx, uri in tok.nsDecls.items():
            attName = f"xmlns:{pfx}" if pfx else "xmlns"
            buf += f" {attName}={self.escapeAttribute(uri, self.fo)}"
        for att in tok.attributes:
            buf += f" {att.name}={self.escapeAttribute(att.value, self.fo)}"
        return buf

    def doctype(self, tok:XmlToken) -> str:
        buf = "<!DOCTYPE " + tok.localName
        publicId = tok.getAttribute("PUBLIC")
        systemId = tok.getAttribute("SYSTEM")
        if publicId: buf += f' PUBLIC "{publicId}" "{systemId or ""}"'
        elif systemId: buf += f' SYSTEM "{systemId}"'
        return buf + ">"

    ###########################################################################
    # Escapers
    #
    @staticmethod
    def escapeAttribute(s:str, fo:WriterOptions, addQuotes:bool=True) -> str:
        """Turn characters special in attributes, into char refs.
        If 'addQuotes' is set, also add the quotes.
        """
        s = s.replace('&', "&amp;")
        s = s.replace('<', "&lt;")
        if fo.quoteChar == '"':
            s = s.replace('"', "&quot;")
        else:
            s = s.replace(fo.quoteChar, "&#x%x;" % (ord(fo.quoteChar)))
        for c in "\t\n\r":
            s = s.replace(c, "&#x%x;" % (ord(c)))
        if addQuotes: return fo.quoteChar + s + fo.quoteChar
        return s

    @staticmethod
    def escapeText(s:str, fo:WriterOptions) -> str:
        s = s.replace('&',   "&amp;")
        s = s.replace('<',   "&lt;")
        s = s.replace(']]>', fo.forMSC)
        return s

    @staticmethod
    def escapeCDATA(s:str) -> str:
        """There's no escaping inside CDATA, so split the section around
        any ']]>'.
        """
        return s.replace(']]>', "]]]]><![CDATA[>")

    @staticmethod
    def escapeComment(s:str, fo:WriterOptions) -> str:
        """XML Defines no particular escaping for this, we use char-ref syntax,
        although that's not recognized within comments.
        """
        s = s.replace('--', fo.forCOM)
        if s.endswith("-"): s = s[:-1] + "&#x2d;"  # Can't precede "-->"
        return s

    @staticmethod
    def escapePI(s:str, fo:WriterOptions) -> str:
        return s.replace('?>', fo.forPI)
