#!/usr/bin/env python3
#
# XIncludeReader: A token reader that expands XInclude directives.
# Keeps a stack of open input frames, and switches to a new one whenever
# the current one hits an xi:include, so the caller sees one continuous
# stream of tokens.
#
#pylint: disable=W1201
#
import sys
import logging
from typing import List, Tuple, Iterable

from xincludetypes import (TokenType, XINCLUDE_NAMESPACES, XINCLUDE_ELEMENT,
    StructuralError, CircularIncludeError)
from tokenreader import (TokenReader, XmlToken, ExpatTokenReader,
    resolveUri, placeholderUri, openTokenReader, DEFAULT_BUFSIZE)
from xpointer import XPointerInfo, subtreeReader

lg = logging.getLogger("XIncludeReader")

__metadata__ = {
    "title"        : "XIncludeReader",
    "description"  : "A token reader that expands XInclude directives.",
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

descr = """
=Usage=

    xincludereader.py [options] file.xml...

Read each file, replace every XInclude directive (`include` in either the
2001 or the 2003 XInclude namespace) with the document (or the parts of it
picked out by `xpointer`) that its `href` refers to, and write the
result to stdout.

Includes nest: an included document can itself include others.
XML declarations of included documents are dropped.

=Options=
"""


###############################################################################
#
class XIncludeOptions:
    """Options for XIncludeReader. Callers can pass like-named
    keyword args, or construct and pass an object.
    """
    def __init__(self, **kwargs):
        self.bufSize:int = DEFAULT_BUFSIZE  # Bytes per read of included files
        self.encoding:str = None            # Force encoding for included files
        self.detectCycles:bool = True       # Refuse includes already being read
        self.maxDepth:int = 0               # Max include nesting, 0 for no limit
        self.placeholderName:str = "temporary.xml"  # For streams with no baseURI
        self.warnBadPointer:bool = True     # Log xpointers that don't parse

        for k, v in kwargs.items():
            if k not in self.__dict__:
                raise KeyError(f"XIncludeOptions: Unknown option '{k}'.")
            self.__dict__[k] = v


###############################################################################
#
class IncludeFrame:
    """One entry on the include stack: an open reader, plus which include
    (if any) opened it. The frame owns the reader.
    """
    def __init__(self, reader:TokenReader, uri:str=None, xpointer:str=None):
        self.reader = reader
        self.uri = uri
        self.xpointer = xpointer

    @property
    def source(self) -> Tuple[str, str]:
        """What was included to make this frame, or None for the outermost.
        """
        if self.uri is None: return None
        return (self.uri, self.xpointer)

    def description(self) -> str:
        if self.uri is None: return self.reader.description()
        if self.xpointer: return f"'{self.uri}' (xpointer '{self.xpointer}')"
        return f"'{self.uri}'"

    def close(self) -> None:
        self.reader.close()


###############################################################################
#
class XIncludeReader(TokenReader):
    """Wrap a TokenReader, and expand any xi:include elements it contains,
    so the caller just sees the combined stream.

    self.frames[0] is the frame currently being read. The last frame is the
    outermost document, and is never popped, so that after the end, queries
    such as baseURI still work against it.

    Includes inside included documents are handled by wrapping each included
    reader in another XIncludeReader.

    Not thread-safe. Call close() (or use 'with') to release everything
    that's open.
    """
    def __init__(self, reader:TokenReader, options:XIncludeOptions=None,
        ancestry:Tuple=(), level:int=0):
        super().__init__()
        self.options = options or XIncludeOptions()
        self.level = level              # How many includes deep 'reader' is
        self.frames:List[IncludeFrame] = [ IncludeFrame(reader) ]

        # (uri, xpointer) of every document open around this one,
        # outermost first.
        if not ancestry and reader.baseURI:
            ancestry = ((reader.baseURI, None),)
        self.ancestry = tuple(ancestry)

    @classmethod
    def fromPath(cls, path:str, options:XIncludeOptions=None) -> 'XIncludeReader':
        options = options or XIncludeOptions()
        return cls(ExpatTokenReader.fromPath(path,
            encoding=options.encoding, bufSize=options.bufSize), options)

    @classmethod
    def fromString(cls, s:str, baseURI:str=None,
        options:XIncludeOptions=None) -> 'XIncludeReader':
        return cls(ExpatTokenReader.fromString(s, baseURI=baseURI), options)

    @property
    def curFrame(self) -> IncludeFrame:
        return self.frames[0]

    @property
    def depth(self) -> int:
        return len(self.frames)

    @property
    def token(self) -> XmlToken:
        return self.curFrame.reader.token

    @property
    def baseURI(self) -> str:
        return self.curFrame.reader.baseURI

    @property
    def normalizedBaseURI(self) -> str:
        """The base URI to resolve hrefs against. Always set.
        """
        return self.baseURI or placeholderUri(self.options.placeholderName)

    def description(self) -> str:
        return self.frames[-1].description()

    def wholeLoc(self, sep:str="\n    ") -> str:
        """Describe the entire include stack, innermost first.
        """
        return "".join(sep + frame.description() for frame in self.frames)

    ### Reading
    ###
    def read(self) -> bool:
        """Move to the next token, wherever it comes from.
        Returns False only when the outermost document is used up.
        """
        if self.isClosed: return False
        while True:
            if not self.curFrame.reader.read():
                if len(self.frames) == 1: return False
                self.popFrame()
                continue

            # Included documents don't get to contribute declarations.
            if (self.nodeType in (TokenType.XMLDCL, TokenType.DOCTYPE)
                and len(self.frames) > 1):
                continue

            if self.isIncludeDirective():
                if self.nodeType == TokenType.START: self.startInclude()
                continue
            return True

    def isIncludeDirective(self) -> bool:
        return (self.localName == XINCLUDE_ELEMENT
            and self.namespaceURI in XINCLUDE_NAMESPACES)

    def startInclude(self) -> None:
        """We're at the start-tag of an include. Open what it points to, get
        past the rest of the directive, and make the new reader(s) current.
        """
        uri, xpointer = self.includeTarget()
        self.checkForCycle(uri, xpointer)
        readers = self.createIncludedReaders()
        try:
            self.skipDirective()
        except BaseException:
            # Not on the stack yet, so close() wouldn't reach them.
            for reader in readers:
                reader.close()
            raise
        self.pushFrames(readers, uri=uri, xpointer=xpointer)

    def includeTarget(self) -> Tuple[str, str]:
        """Return the absolute URI and the xpointer (if any) of the
        current include directive.
        """
        href = self.getAttribute("href")
        if href is None:
            raise StructuralError("Cannot locate href attribute on the "
                f"XInclude tag, in {self.curFrame.description()}.")
        return resolveUri(self.normalizedBaseURI, href), self.getAttribute("xpointer")

    def createIncludedReaders(self) -> List[TokenReader]:
        """Make the reader(s) for the current include directive. Subclasses
        can override this to get content from somewhere else.
        """
        uri, xpointer = self.includeTarget()
        lg.info("Including %s%s.", uri, f" ({xpointer})" if xpointer else "")
        reader = openTokenReader(uri,
            encoding=self.options.encoding, bufSize=self.options.bufSize)
        includeReader = XIncludeReader(reader, options=self.options,
            ancestry=self.activeIncludes() + ((uri, xpointer),),
            level=self.includeLevel + 1)

        if xpointer:
            pointer = XPointerInfo(xpointer)
            if pointer.isValid:
                try:
                    nodes = pointer.selectFrom(includeReader)
                finally:
                    includeReader.close()
                if not nodes:
                    lg.warning("xpointer '%s' selected nothing in '%s'.",
                        xpointer, uri)
                return [ subtreeReader(node, baseURI=uri) for node in nodes ]
            if self.options.warnBadPointer:
                lg.warning("Ignoring unparseable xpointer '%s' (in %s); "
                    "including all of '%s'.",
                    xpointer, self.curFrame.description(), uri)

        return [ includeReader ]

    def frameSources(self) -> List[Tuple[str, str]]:
        """The includes that made the frames now open, outermost first.
        Frames other than the head are either enclosing documents, or
        siblings from the same include, so each one is a nesting level.
        """
        sources = []
        for frame in reversed(self.frames):
            if frame.source and frame.source not in sources:
                sources.append(frame.source)
        return sources

    def activeIncludes(self) -> Tuple:
        """Every (uri, xpointer) that's open, from the outermost document
        to the current frame.
        """
        return self.ancestry + tuple(self.frameSources())

    @property
    def includeLevel(self) -> int:
        """How many includes deep the current frame is.
        """
        return self.level + len(self.frameSources())

    def checkForCycle(self, uri:str, xpointer:str) -> None:
        if self.options.detectCycles and (uri, xpointer) in self.activeIncludes():
            raise CircularIncludeError(f"'{uri}' includes itself"
                f"{' (xpointer ' + xpointer + ')' if xpointer else ''}, "
                f"via:{self.wholeLoc()}")
        if self.options.maxDepth and self.includeLevel >= self.options.maxDepth:
            raise CircularIncludeError(f"Including '{uri}' would exceed "
                f"maxDepth {self.options.maxDepth}, via:{self.wholeLoc()}")

    def skipDirective(self) -> None:
        """Consume the rest of the include element (its end-tag, and any
        content such as xi:fallback) from the frame it's in.
        """
        reader = self.curFrame.reader
        depth = 1
        while depth > 0:
            if not reader.read():
                raise StructuralError("Unterminated XInclude directive in "
                    f"{self.curFrame.description()}.")
            if reader.nodeType == TokenType.START: depth += 1
            elif reader.nodeType == TokenType.END: depth -= 1

    ### Stack management
    ###
    def pushFrames(self, readers:Iterable[TokenReader], uri:str=None,
        xpointer:str=None) -> None:
        """Put the readers at the head of the stack, as a block, so the
        first one gets read first.
        """
        newFrames = [ IncludeFrame(r, uri=uri, xpointer=xpointer) for r in readers ]
        self.frames[0:0] = newFrames

    def popFrame(self) -> None:
        """Close and remove the current frame. Never pops the outermost.
        """
        if len(self.frames) < 2: return
        frame = self.frames.pop(0)
        lg.debug("Finished frame %s.", frame.description())
        frame.close()

    def close(self) -> None:
        """Close every frame, innermost first.
        """
        if self.isClosed: return
        for frame in self.frames:
            frame.close()
        self.isClosed = True


###############################################################################
#
if __name__ == "__main__":
    import argparse
    from identitywriter import XmlIdentityWriter

    def processOptions() -> argparse.Namespace:
        parser = argparse.ArgumentParser(description=descr)

        parser.add_argument(
            "--bufSize", type=int, default=DEFAULT_BUFSIZE,
            help="Bytes to read at a time from included files.")
        parser.add_argument(
            "--iencoding", type=str, default=None,
            help="Encoding to assume for input files. Default: detect.")
        parser.add_argument(
            "--maxDepth", type=int, default=0,
            help="Fail if includes nest deeper than this. Default: no limit.")
        parser.add_argument(
            "--noCycleCheck", action="store_true",
            help="Don't check for documents that include themselves.")
        parser.add_argument(
            "--omitXmlDeclaration", action="store_true",
            help="Don't write out the XML declaration.")
        parser.add_argument(
            "--quiet", "-q", action="store_true",
            help="Suppress most messages.")
        parser.add_argument(
            "--verbose", "-v", action="count", default=0,
            help="Add more messages (repeatable).")
        parser.add_argument(
            "--version", action="version", version=__version__,
            help="Display version information, then exit.")

        parser.add_argument(
            "files", nargs=argparse.REMAINDER,
            help="Path(s) to input file(s).")

        args0 = parser.parse_args()
        if args0.quiet: lvl = logging.ERROR
        elif args0.verbose > 1: lvl = logging.DEBUG
        elif args0.verbose: lvl = logging.INFO
        else: lvl = logging.WARNING
        logging.basicConfig(level=lvl, format='%(message)s')
        return args0

    args = processOptions()
    if not args.files:
        lg.error("No files specified.")
        sys.exit(1)

    xopts = XIncludeOptions(
        bufSize=args.bufSize,
        encoding=args.iencoding,
        detectCycles=not args.noCycleCheck,
        maxDepth=args.maxDepth)

    for thePath in args.files:
        with XIncludeReader.fromPath(thePath, options=xopts) as xr:
            XmlIdentityWriter(sys.stdout,
                includeXmlDcl=not args.omitXmlDeclaration).load(xr)
        sys.stdout.write("\n")
