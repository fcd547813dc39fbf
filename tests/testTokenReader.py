#!/usr/bin/env python3
#
import os
import io
import unittest
import logging

from xincludetypes import (TokenType, XmlNamespaces,
    NotWellFormedError, ResolutionError)
from tokenreader import (ExpatTokenReader, TokenListReader, XmlToken,
    XmlAttribute, openTokenReader, resolveUri, fileUri, splitExpatName)

lg = logging.getLogger("testTokenReader")
logging.basicConfig(level=logging.INFO)

sampleDir = os.path.join(os.path.dirname(__file__), "sampleData", "XInclude")

nsURI = "https://example.com/namespaces/foo"

tdoc = f"""<?xml version="1.0" encoding="utf-8" standalone="yes"?>
<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Strict//EN" "xhtml1-strict.dtd">
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:foo="{nsURI}">
<head><title>Eine Kleine NachtSchrift</title></head>
<body>
<p id="zork" foo:class="big blue">For what it's worth &amp; costs.</p>
<!-- comments, too? -->
<?and a PI?>
<![CDATA[<not>a tag</not>]]>
</body>
</html>"""


###############################################################################
#
class TestTokens(unittest.TestCase):
    def setUp(self):
        self.toks = list(ExpatTokenReader.fromString(tdoc))

    def firstOf(self, nodeType:TokenType, localName:str=None) -> XmlToken:
        for tok in self.toks:
            if tok.nodeType != nodeType: continue
            if localName is None or tok.localName == localName: return tok
        return None

    def testXmlDcl(self):
        dcl = self.toks[0]
        self.assertEqual(dcl.nodeType, TokenType.XMLDCL)
        self.assertEqual(dcl.getAttribute("version"), "1.0")
        self.assertEqual(dcl.getAttribute("encoding"), "utf-8")
        self.assertEqual(dcl.getAttribute("standalone"), "yes")
        self.assertEqual(dcl.value,
            'version="1.0" encoding="utf-8" standalone="yes"')

    def testDoctype(self):
        dt = self.toks[1]
        self.assertEqual(dt.nodeType, TokenType.DOCTYPE)
        self.assertEqual(dt.localName, "html")
        self.assertEqual(dt.getAttribute("PUBLIC"), "-//W3C//DTD XHTML 1.0 Strict//EN")
        self.assertEqual(dt.getAttribute("SYSTEM"), "xhtml1-strict.dtd")

    def testNamespaces(self):
        html = self.firstOf(TokenType.START, "html")
        self.assertEqual(html.namespaceURI, "http://www.w3.org/1999/xhtml")
        self.assertIsNone(html.prefix)
        self.assertEqual(html.nsDecls,
            { "": "http://www.w3.org/1999/xhtml", "foo": nsURI })
        self.assertEqual(self.firstOf(TokenType.START, "head").nsDecls, {})

    def testAttributes(self):
        p = self.firstOf(TokenType.START, "p")
        self.assertEqual([ a.name for a in p.attributes ], [ "id", "foo:class" ])
        self.assertEqual(p.getAttribute("id"), "zork")
        self.assertEqual(p.getAttribute("foo:class"), "big blue")
        self.assertEqual(p.getAttribute("class", namespaceURI=nsURI), "big blue")
        self.assertIsNone(p.getAttribute("class"))
        self.assertIsNone(p.getAttribute("nope"))

    def testText(self):
        idx = self.toks.index(self.firstOf(TokenType.START, "p"))
        text = self.toks[idx + 1]
        self.assertEqual(text.nodeType, TokenType.TEXT)
        self.assertEqual(text.value, "For what it's worth & costs.")
        self.assertEqual(self.toks[idx + 2].nodeType, TokenType.END)

    def testCommentPiCdata(self):
        self.assertEqual(self.firstOf(TokenType.COMMENT).value, " comments, too? ")
        pi = self.firstOf(TokenType.PROC)
        self.assertEqual(pi.localName, "and")
        self.assertEqual(pi.value, "a PI")
        self.assertEqual(self.firstOf(TokenType.CDATA).value, "<not>a tag</not>")

    def testBalanced(self):
        starts = [ t.localName for t in self.toks if t.nodeType == TokenType.START ]
        ends = [ t.localName for t in self.toks if t.nodeType == TokenType.END ]
        self.assertEqual(sorted(starts), sorted(ends))
        self.assertEqual(self.toks[-1].nodeType, TokenType.END)
        self.assertEqual(self.toks[-1].localName, "html")


###############################################################################
#
class TestReading(unittest.TestCase):
    def testSmallChunksCoalesce(self):
        words = " ".join("word%d" % (i) for i in range(500))
        doc = f"<a>{words}<b/>{words}</a>"
        toks = list(ExpatTokenReader.fromString(doc, bufSize=16))
        texts = [ t.value for t in toks if t.nodeType == TokenType.TEXT ]
        self.assertEqual(texts, [ words, words ])

    def testCdataAcrossChunks(self):
        body = "x" * 3000
        doc = f"<a><![CDATA[{body}]]>tail</a>"
        toks = list(ExpatTokenReader.fromString(doc.encode("utf-8"), bufSize=512))
        self.assertEqual([ (t.nodeType, t.value) for t in toks[1:3] ],
            [ (TokenType.CDATA, body), (TokenType.TEXT, "tail") ])

    def testAccessors(self):
        tr = ExpatTokenReader.fromString('<x:a xmlns:x="urn:x" k="v"/>')
        self.assertIsNone(tr.nodeType)
        self.assertTrue(tr.read())
        self.assertEqual(tr.nodeType, TokenType.START)
        self.assertEqual(tr.localName, "a")
        self.assertEqual(tr.prefix, "x")
        self.assertEqual(tr.name, "x:a")
        self.assertEqual(tr.namespaceURI, "urn:x")
        self.assertEqual(tr.getAttribute("k"), "v")
        self.assertEqual(tr.nsDecls, { "x": "urn:x" })
        self.assertTrue(tr.read())
        self.assertEqual(tr.nodeType, TokenType.END)
        self.assertEqual(tr.name, "x:a")

    def testEndIsSticky(self):
        tr = ExpatTokenReader.fromString("<a/>")
        self.assertEqual(len(list(tr)), 2)
        for _i in range(3):
            self.assertFalse(tr.read())
            self.assertIsNone(tr.token)
            self.assertEqual(tr.attributes, [])

    def testClose(self):
        src = io.StringIO("<a><b/></a>")
        tr = ExpatTokenReader(src, closeSource=True)
        self.assertTrue(tr.read())
        tr.close()
        tr.close()
        self.assertTrue(src.closed)
        self.assertFalse(tr.read())

    def testCloseLeavesBorrowedSource(self):
        src = io.StringIO("<a><b/></a>")
        with ExpatTokenReader(src) as tr:
            tr.read()
        self.assertTrue(tr.isClosed)
        self.assertFalse(src.closed)

    def testNotWellFormed(self):
        tr = ExpatTokenReader.fromPath(os.path.join(sampleDir, "broken.xml"))
        with self.assertRaises(NotWellFormedError):
            list(tr)

    def testXmlBase(self):
        base = "http://example.com/docs/main.xml"
        doc = ('<a><b xml:base="sub/"><c xml:base="deeper/x.xml">t</c><d/></b>'
            '<e/></a>')
        tr = ExpatTokenReader.fromString(doc, baseURI=base)
        bases = {}
        for tok in tr:
            if tok.nodeType == TokenType.START: bases[tok.localName] = tok.baseURI
            elif tok.nodeType == TokenType.TEXT: bases["#text"] = tok.baseURI
        self.assertEqual(bases, {
            "a": base,
            "b": "http://example.com/docs/sub/",
            "c": "http://example.com/docs/sub/deeper/x.xml",
            "#text": "http://example.com/docs/sub/deeper/x.xml",
            "d": "http://example.com/docs/sub/",
            "e": base,
        })
        self.assertEqual(tr.baseURI, base)

    def testXmlBaseAttribute(self):
        tr = ExpatTokenReader.fromString('<a xml:base="x/"/>')
        tr.read()
        self.assertEqual(tr.getAttribute("base", XmlNamespaces.XML), "x/")
        self.assertEqual(tr.getAttribute("xml:base"), "x/")


###############################################################################
#
class TestListReader(unittest.TestCase):
    def testReplay(self):
        toks = [ XmlToken(TokenType.START, localName="a"),
            XmlToken(TokenType.TEXT, value="hi"),
            XmlToken(TokenType.END, localName="a") ]
        tr = TokenListReader(toks, baseURI="urn:list")
        self.assertEqual(list(tr), toks)
        self.assertFalse(tr.read())
        self.assertEqual(tr.baseURI, "urn:list")

    def testTokenTypes(self):
        self.assertEqual(XmlToken("TEXT", value="x").nodeType, TokenType.TEXT)
        self.assertEqual(XmlToken(8, value="x").nodeType, TokenType.COMMENT)
        with self.assertRaises(ValueError):
            XmlToken("NOSUCHTYPE")
        self.assertIsNone(TokenType.okTokenType(999, die=False))

    def testAttributeName(self):
        self.assertEqual(XmlAttribute("id", "1").name, "id")
        self.assertEqual(XmlAttribute("id", "1", XmlNamespaces.XML, "xml").name,
            "xml:id")


###############################################################################
#
class TestUris(unittest.TestCase):
    def testResolve(self):
        self.assertEqual(resolveUri("http://example.com/a/b.xml", "c.xml"),
            "http://example.com/a/c.xml")
        self.assertEqual(resolveUri("http://example.com/a/b.xml", "/c.xml"),
            "http://example.com/c.xml")
        self.assertEqual(resolveUri(None, "c.xml"), "c.xml")
        self.assertEqual(resolveUri("file:///x/y.xml", "http://h/z.xml"),
            "http://h/z.xml")

    def testResolveUnparseable(self):
        with self.assertRaises(ResolutionError):
            resolveUri("http://example.com/a/b.xml", "http://[bad/x.xml")

    def testSplitName(self):
        self.assertEqual(splitExpatName("p"), (None, "p", None))
        self.assertEqual(splitExpatName("urn:x p"), ("urn:x", "p", None))
        self.assertEqual(splitExpatName("urn:x p x"), ("urn:x", "p", "x"))

    def testOpenFile(self):
        uri = fileUri(os.path.join(sampleDir, "bfile.xml"))
        with openTokenReader(uri) as tr:
            names = [ t.nodeType for t in tr ]
        self.assertEqual(names, [ TokenType.XMLDCL, TokenType.START, TokenType.END ])

    def testOpenPlainPath(self):
        with openTokenReader(os.path.join(sampleDir, "bfile.xml")) as tr:
            self.assertEqual(len(list(tr)), 3)

    def testOpenMissing(self):
        with self.assertRaises(ResolutionError):
            openTokenReader(fileUri(os.path.join(sampleDir, "noSuchFile.xml")))

    def testOpenBadScheme(self):
        with self.assertRaises(ResolutionError):
            openTokenReader("mailto:someone@example.com")

    def testOpenUnparseable(self):
        with self.assertRaises(ResolutionError):
            openTokenReader("http://[bad/x.xml")


if __name__ == '__main__':
    unittest.main()
