#!/usr/bin/env python3
#
# tokenreader: Pull-style streams of XML tokens.
# Splits expat's push-style callbacks into one-at-a-time tokens, so that
# readers can be stacked and swapped underneath a consumer.
#
#pylint: disable=W1201
#
import io
import logging
import pathlib
from collections import deque
from typing import List, Dict, Tuple, IO, Union, Iterator, Iterable
from urllib.parse import urljoin, urlparse
from urllib.request import urlopen, url2pathname
from xml.parsers import expat

from xincludetypes import (TokenType, XmlNamespaces,
    NotWellFormedError, ResolutionError)

lg = logging.getLogger("TokenReader")

__metadata__ = {
    "title"        : "tokenreader",
    "description"  : "Pull-style streams of XML tokens.",
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

# expat reports namespaced names as "uri local prefix", joined by this.
# A space can't occur in any of the parts.
NS_SEP = " "

DEFAULT_BUFSIZE = 8192


###############################################################################
# URI handling
#
def resolveUri(base:str, href:str) -> str:
    """Resolve 'href' against 'base' (either may be relative).
    """
    if not base: return href
    try:
        return urljoin(base, href)
    except ValueError as e:
        raise ResolutionError(f"Cannot resolve '{href}' against '{base}': {e}") from e

def fileUri(path:str) -> str:
    return pathlib.Path(path).resolve().as_uri()

def placeholderUri(name:str="temporary.xml") -> str:
    """A base URI for streams that don't know where they came from:
    a file of the given name in the current directory.
    """
    return pathlib.Path.cwd().joinpath(name).as_uri()

def openTokenReader(uri:str, encoding:str=None,
    bufSize:int=DEFAULT_BUFSIZE) -> 'ExpatTokenReader':
    """Open whatever 'uri' names and return a reader over it.
    Handles file: URIs (and plain paths), and http(s).
    Anything that can't be opened raises ResolutionError.
    """
    try:
        parsed = urlparse(uri)
    except ValueError as e:
        raise ResolutionError(f"Cannot parse URI '{uri}': {e}") from e
    scheme = parsed.scheme.lower()
    lg.debug("Opening %s.", uri)
    try:
        if scheme == "file":
            fh = open(url2pathname(parsed.path), "rb")
        elif not scheme or len(scheme) == 1:  # plain path, or "C:\..."
            fh = open(uri, "rb")
        elif scheme in ("http", "https"):
            fh = urlopen(uri)
        else:
            raise ResolutionError(f"Unsupported URI scheme '{scheme}' in '{uri}'.")
    except OSError as e:
        raise ResolutionError(f"Cannot open '{uri}': {e}") from e
    return ExpatTokenReader(fh, baseURI=uri, encoding=encoding,
        bufSize=bufSize, closeSource=True)

def splitExpatName(name:str) -> Tuple[str, str, str]:
    """Break an expat name into (namespaceURI, localName, prefix).
    """
    parts = name.split(NS_SEP)
    if len(parts) == 1: return None, parts[0], None
    if len(parts) == 2: return parts[0], parts[1], None
    return parts[0], parts[1], parts[2]


###############################################################################
#
class XmlAttribute:
    __slots__ = ("localName", "value", "namespaceURI", "prefix")

    def __init__(self, localName:str, value:str="",
        namespaceURI:str=None, prefix:str=None):
        self.localName = localName
        self.value = value
        self.namespaceURI = namespaceURI
        self.prefix = prefix

    @property
    def name(self) -> str:
        if self.prefix: return f"{self.prefix}:{self.localName}"
        return self.localName

    def __repr__(self) -> str:
        return f"{self.name}=\"{self.value}\""


class XmlToken:
    """One structural event from an XML document. Depending on nodeType:
        START:   localName, namespaceURI, prefix, attributes, nsDecls
        END:     localName, namespaceURI, prefix
        TEXT, CDATA, COMMENT: value
        PROC:    localName is the target, value the data
        DOCTYPE: localName is the doctype name; attributes SYSTEM, PUBLIC
        XMLDCL:  attributes version, encoding, standalone; value as written
    nsDecls maps prefix to namespace URI ("" for the default namespace).
    """
    def __init__(self, nodeType:TokenType, localName:str=None,
        namespaceURI:str=None, prefix:str=None, value:str=None,
        attributes:List[XmlAttribute]=None, nsDecls:Dict[str, str]=None,
        baseURI:str=None):
        self.nodeType = TokenType.okTokenType(nodeType)
        self.localName = localName
        self.namespaceURI = namespaceURI
        self.prefix = prefix
        self.value = value
        self.attributes = attributes or []
        self.nsDecls = nsDecls or {}
        self.baseURI = baseURI

    @property
    def name(self) -> str:
        if self.prefix: return f"{self.prefix}:{self.localName}"
        return self.localName

    def getAttribute(self, name:str, namespaceURI:str=None) -> str:
        """With 'namespaceURI', match on (namespaceURI, localName);
        otherwise on the qualified name as written.
        Returns None if there's no such attribute.
        """
        for att in self.attributes:
            if namespaceURI is not None:
                if att.namespaceURI == namespaceURI and att.localName == name:
                    return att.value
            elif att.name == name:
                return att.value
        return None

    def signature(self) -> Tuple:
        """Everything but the baseURI, for comparing tokens from
        different sources.
        """
        return (self.nodeType, self.namespaceURI, self.localName, self.prefix,
            self.value, tuple((a.namespaceURI, a.localName, a.value)
            for a in self.attributes))

    def __repr__(self) -> str:
        buf = f"<{self.nodeType.name} {self.name or ''}"
        if self.attributes: buf += " " + " ".join(repr(a) for a in self.attributes)
        if self.value is not None: buf += f" '{self.value}'"
        return buf + ">"


###############################################################################
#
class TokenReader:
    """A pull-style stream of XmlTokens. Call read() to advance; it returns
    False at the end of the stream (and keeps doing so). The accessors
    describe the current token.
    Subclasses implement read(), and usually close().
    """
    def __init__(self, baseURI:str=None):
        self._token:XmlToken = None
        self._baseURI = baseURI
        self.isClosed = False

    def read(self) -> bool:
        raise NotImplementedError("read() must be overridden.")

    def close(self) -> None:
        self.isClosed = True
        self._token = None

    def description(self) -> str:
        """Identify the stream, like in messages.
        """
        return self._baseURI or f"[{type(self).__name__}]"

    @property
    def token(self) -> XmlToken:
        return self._token

    @property
    def nodeType(self) -> TokenType:
        return self.token.nodeType if self.token else None
    @property
    def localName(self) -> str:
        return self.token.localName if self.token else None
    @property
    def namespaceURI(self) -> str:
        return self.token.namespaceURI if self.token else None
    @property
    def prefix(self) -> str:
        return self.token.prefix if self.token else None
    @property
    def name(self) -> str:
        return self.token.name if self.token else None
    @property
    def value(self) -> str:
        return self.token.value if self.token else None
    @property
    def attributes(self) -> List[XmlAttribute]:
        return self.token.attributes if self.token else []
    @property
    def nsDecls(self) -> Dict[str, str]:
        return self.token.nsDecls if self.token else {}

    @property
    def baseURI(self) -> str:
        """The current token's base URI if it has one, else the stream's.
        """
        if self.token and self.token.baseURI: return self.token.baseURI
        return self._baseURI

    def getAttribute(self, name:str, namespaceURI:str=None) -> str:
        if not self.token: return None
        return self.token.getAttribute(name, namespaceURI)

    def __iter__(self) -> Iterator[XmlToken]:
        while self.read():
            yield self.token

    def __enter__(self) -> 'TokenReader':
        return self

    def __exit__(self, excType, excValue, traceback) -> None:
        self.close()


###############################################################################
#
class TokenListReader(TokenReader):
    """Replay a list of already-built tokens.
    """
    def __init__(self, tokens:Iterable[XmlToken], baseURI:str=None):
        super().__init__(baseURI=baseURI)
        self.tokens = deque(tokens)

    def read(self) -> bool:
        if self.isClosed or not self.tokens:
            self._token = None
            return False
        self._token = self.tokens.popleft()
        return True

    def close(self) -> None:
        super().close()
        self.tokens.clear()


###############################################################################
#
class ExpatTokenReader(TokenReader):
    """Feed expat a chunk at a time, queue up the resulting events as
    tokens, and hand them out one per read().

    Adjacent character data is joined into a single TEXT token (even across
    chunk boundaries), so a TEXT token isn't handed out until something
    follows it.
    """
    def __init__(self, source:IO, baseURI:str=None, encoding:str=None,
        bufSize:int=DEFAULT_BUFSIZE, closeSource:bool=False):
        super().__init__(baseURI=baseURI)
        self.source = source
        self.closeSource = closeSource
        self.bufSize = max(bufSize, 512)

        self.pending = deque()       # Tokens parsed but not yet read
        self.tailOpen = False        # Can the last pending token still grow?
        self.inCdata = False
        self.pendingNs = {}          # Namespace dcls for the next start-tag
        self.baseStack = [ baseURI ] # For xml:base
        self.noMoreToRead = False

        self.parser = self.parserSetup(encoding)

    @classmethod
    def fromPath(cls, path:str, **kwargs) -> 'ExpatTokenReader':
        fh = open(path, "rb")
        return cls(fh, baseURI=kwargs.pop("baseURI", None) or fileUri(path),
            closeSource=True, **kwargs)

    @classmethod
    def fromString(cls, s:Union[str, bytes], **kwargs) -> 'ExpatTokenReader':
        src = io.StringIO(s) if isinstance(s, str) else io.BytesIO(s)
        return cls(src, closeSource=True, **kwargs)

    def parserSetup(self, encoding:str=None):
        p = expat.ParserCreate(encoding=encoding, namespace_separator=NS_SEP)
        p.namespace_prefixes = True
        p.ordered_attributes = True
        p.buffer_text = True
        if self._baseURI: p.SetBase(self._baseURI)

        p.XmlDeclHandler               = self.XmlDeclHandler
        p.StartDoctypeDeclHandler      = self.StartDoctypeDeclHandler
        p.StartNamespaceDeclHandler    = self.StartNamespaceDeclHandler
        p.StartElementHandler          = self.StartElementHandler
        p.EndElementHandler            = self.EndElementHandler
        p.CharacterDataHandler         = self.CharacterDataHandler
        p.StartCdataSectionHandler     = self.StartCdataSectionHandler
        p.EndCdataSectionHandler       = self.EndCdataSectionHandler
        p.CommentHandler               = self.CommentHandler
        p.ProcessingInstructionHandler = self.ProcessingInstructionHandler
        return p

    ### Reading
    ###
    def read(self) -> bool:
        if self.isClosed: return False
        self.topOff()
        if not self.pending:
            self._token = None
            return False
        self._token = self.pending.popleft()
        return True

    def topOff(self) -> None:
        """Parse more until there's a complete token available, or EOF.
        """
        while not self.noMoreToRead:
            if self.pending and (len(self.pending) > 1 or not self.tailOpen):
                return
            data = self.source.read(self.bufSize)
            isFinal = not data
            try:
                self.parser.Parse(data, isFinal)
            except expat.ExpatError as e:
                raise NotWellFormedError(
                    f"{e} (in {self.description()})") from e
            if isFinal:
                self.noMoreToRead = True
                self.tailOpen = False
                self.releaseSource()

    def releaseSource(self) -> None:
        if self.source is not None and self.closeSource:
            self.source.close()
        self.source = None

    def close(self) -> None:
        if self.isClosed: return
        super().close()
        self.pending.clear()
        self.releaseSource()

    def queue(self, tok:XmlToken) -> None:
        self.pending.append(tok)
        self.tailOpen = tok.nodeType in (TokenType.TEXT, TokenType.CDATA)

    ### expat handlers
    ###
    def XmlDeclHandler(self, version:str, encoding:str, standalone:int) -> None:
        attrs = []
        if version: attrs.append(XmlAttribute("version", version))
        if encoding: attrs.append(XmlAttribute("encoding", encoding))
        if standalone != -1:
            attrs.append(XmlAttribute("standalone", "yes" if standalone else "no"))
        self.queue(XmlToken(TokenType.XMLDCL, localName="xml",
            value=" ".join(f"{a.localName}=\"{a.value}\"" for a in attrs),
            attributes=attrs, baseURI=self.baseStack[-1]))

    def StartDoctypeDeclHandler(self, doctypeName:str, systemId:str,
        publicId:str, has_internal_subset:bool) -> None:
        attrs = []
        if publicId: attrs.append(XmlAttribute("PUBLIC", publicId))
        if systemId: attrs.append(XmlAttribute("SYSTEM", systemId))
        self.queue(XmlToken(TokenType.DOCTYPE, localName=doctypeName,
            attributes=attrs, baseURI=self.baseStack[-1]))

    def StartNamespaceDeclHandler(self, prefix:str, uri:str) -> None:
        self.pendingNs[prefix or ""] = uri or ""

    def StartElementHandler(self, name:str, attrList:List[str]) -> None:
        uri, local, prefix = splitExpatName(name)
        attributes = []
        for i in range(0, len(attrList), 2):
            aUri, aLocal, aPrefix = splitExpatName(attrList[i])
            attributes.append(XmlAttribute(aLocal, attrList[i+1], aUri, aPrefix))

        base = self.baseStack[-1]
        for att in attributes:
            if att.namespaceURI == XmlNamespaces.XML and att.localName == "base":
                base = resolveUri(base, att.value)
        self.baseStack.append(base)

        self.queue(XmlToken(TokenType.START, localName=local, namespaceURI=uri,
            prefix=prefix, attributes=attributes, nsDecls=self.pendingNs,
            baseURI=base))
        self.pendingNs = {}

    def EndElementHandler(self, name:str) -> None:
        uri, local, prefix = splitExpatName(name)
        base = self.baseStack.pop()
        self.queue(XmlToken(TokenType.END, localName=local, namespaceURI=uri,
            prefix=prefix, baseURI=base))

    def CharacterDataHandler(self, data:str) -> None:
        if self.inCdata:
            self.pending[-1].value += data
        elif (self.pending and self.tailOpen
            and self.pending[-1].nodeType == TokenType.TEXT):
            self.pending[-1].value += data
        else:
            self.queue(XmlToken(TokenType.TEXT, value=data,
                baseURI=self.baseStack[-1]))

    def StartCdataSectionHandler(self) -> None:
        self.queue(XmlToken(TokenType.CDATA, value="",
            baseURI=self.baseStack[-1]))
        self.inCdata = True

    def EndCdataSectionHandler(self) -> None:
        self.inCdata = False
        self.tailOpen = False

    def CommentHandler(self, data:str) -> None:
        self.queue(XmlToken(TokenType.COMMENT, value=data,
            baseURI=self.baseStack[-1]))

    def ProcessingInstructionHandler(self, target:str, data:str) -> None:
        self.queue(XmlToken(TokenType.PROC, localName=target, value=data,
            baseURI=self.baseStack[-1]))
