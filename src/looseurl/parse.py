"""looseurl.parse
A permissive URL decomposer.
Splits whatever it is given into scheme, authority, userinfo, host, port, path, query and fragment,
guessing its way through the links people actually write instead of rejecting them.
"""

import dataclasses
import re

from typing import Self, Sequence
from urllib.parse import SplitResult

# Each of these patterns is a deliberately loose version of the RFC 3986 rule it is named after.
# Every group is optional, so matching at the start of a string always succeeds.

# primitive-path = *( ALPHA / DIGIT / "-" / "." )
_PRIMITIVE_PATH: str = r"[A-Za-z0-9\-.]*"
_PRIMITIVE_PATH_PAT: re.Pattern[str] = re.compile(_PRIMITIVE_PATH)

# scheme = 1*( any char but ":" / "?" / "/" / "." ) ":"
# (RFC 3986 requires a scheme, but we allow it to be omitted)
_SCHEME: str = r"(?P<scheme_prefix>(?P<scheme>[^:?/.]+):)?"

_DOUBLE_SLASH: str = r"(?P<double_slash>(?://)?)"

# hier-part = 1*( any char but "?" / "#" )
_OPAQUE: str = r"(?P<opaque>[^?#]+)?"

# query = 1*( any char but "#" )
_QUERY: str = r"(?:\?(?P<query>[^#]+))?"

_FRAGMENT: str = r"(?:#(?P<fragment>.*))?"

# URI = [ scheme ":" ] [ "//" ] hier-part [ "?" query ] [ "#" fragment ]
_URI: str = rf"\A{_SCHEME}{_DOUBLE_SLASH}{_OPAQUE}{_QUERY}{_FRAGMENT}"
_URI_PAT: re.Pattern[str] = re.compile(_URI)

# hier-part = [ authority ] [ "/" path ]
_HIER_PART: str = r"\A(?P<authority>[^/]+)?(?P<path>/.*)?"
_HIER_PART_PAT: re.Pattern[str] = re.compile(_HIER_PART)

# IP-literal = "[" 1*( any char but "]" ) "]"
_IP_LITERAL: str = r"\[(?P<ip_literal>[^\]]+)\]"

# host = IP-literal / 1*( any char but ":" )
_HOST: str = rf"(?:{_IP_LITERAL}|(?P<host>[^:]+))?"

# port = 1*DIGIT
_PORT: str = r"(?::(?P<port>[0-9]+))?"

_HOST_PORT: str = rf"\A{_HOST}{_PORT}"
_HOST_PORT_PAT: re.Pattern[str] = re.compile(_HOST_PORT)

# Text before the first "/" that contains one of these is a file name, not a host.
FILENAME_EXTENSIONS: tuple[str, ...] = (".php", ".html", ".htm")

# Tokens that look like a scheme but never are one ("localhost:8080" is a host and a port).
RESERVED_SCHEME_TOKENS: tuple[str, ...] = ("localhost",)

_DIRECTORY_REFERENCES: tuple[str, ...] = (".", "..")


@dataclasses.dataclass(frozen=True)
class Userinfo:
    """The username and password of an authority.
    password_set is False both when there is no password and when the password is empty.
    """

    username: str = ""
    password: str | None = None
    password_set: bool = False


@dataclasses.dataclass(frozen=True)
class URL:
    """A decomposed URL. You should not instantiate this directly. Instead use decompose().
    Every string field is a raw, un-decoded substring of input.
    """

    input: str
    scheme: str = ""
    double_slash: str = ""
    opaque: str = ""
    query: str = ""
    fragment: str = ""
    authority: str = ""
    path: str = ""
    user: Userinfo | None = None
    host: str = ""
    port: str = ""
    relative: bool = False

    def serialize(self: Self) -> str:
        result: str = ""
        if len(self.scheme) > 0:
            result += f"{self.scheme}:"
        result += self.double_slash + self.authority + self.path
        if len(self.query) > 0:
            result += f"?{self.query}"
        if len(self.fragment) > 0:
            result += f"#{self.fragment}"
        return result

    def join(self: Self, r: Self, strict: bool = True) -> Self:
        """Resolves r against self, after the "Transform References" algorithm from RFC 3986 section 5.2.2.
        A reference with neither a scheme nor "//" is always a path reference, whatever its authority captured.
        """

        scheme: str
        double_slash: str
        authority: str
        path: str
        query: str

        r_scheme: str = r.scheme
        if not strict and r.scheme == self.scheme:
            r_scheme = ""
        if len(r_scheme) > 0:
            scheme = r_scheme
            double_slash = r.double_slash
            authority = r.authority
            path = _remove_dot_segments(r.path)
            query = r.query
        else:
            if len(r.double_slash) > 0:
                double_slash = r.double_slash
                authority = r.authority
                path = _remove_dot_segments(r.path)
                query = r.query
            else:
                # "" comes back from decompose() as the primitive path "./", but it still means "this document".
                r_path: str = r.authority + r.path if len(r.input) > 0 else ""
                if len(r_path) == 0:
                    path = self.path
                    if len(r.query) > 0:
                        query = r.query
                    else:
                        query = self.query
                else:
                    if r_path.startswith("/"):
                        path = _remove_dot_segments(r_path)
                    else:
                        path = _merge_paths(self, r_path)
                        path = _remove_dot_segments(path)
                    query = r.query
                double_slash = self.double_slash
                authority = self.authority
            scheme = self.scheme

        result: str = ""
        if len(scheme) > 0:
            result += f"{scheme}:"
        result += double_slash + authority + path
        if len(query) > 0:
            result += f"?{query}"
        if len(r.fragment) > 0:
            result += f"#{r.fragment}"
        return decompose(result)

    def to_net_url(self: Self) -> "NetURL":
        """Converts this URL into a generic NetURL. Nothing is decoded on the way.
        The NetURL host is host[:port], except that a host containing ":" (an IPv6 literal) is wrapped in brackets again,
        so that "[::1]:80" does not come out as the ambiguous "::1:80".
        """
        host: str = ""
        if len(self.host) > 0:
            host = f"[{self.host}]" if ":" in self.host else self.host
            if len(self.port) > 0:
                host += f":{self.port}"

        return NetURL(
            scheme=self.scheme,
            host=host,
            path=self.path,
            raw_path=self.path,
            raw_query=self.query,
            fragment=self.fragment,
            opaque=self.opaque if len(self.authority) == 0 else "",
        )


def _check_str(raw: object) -> None:
    if not isinstance(raw, str):
        raise TypeError(f"expected str, not {type(raw).__name__}")


def is_primitive_path(raw: str) -> bool:
    """Returns True if raw is nothing but letters, digits, hyphens and dots, e.g. "index.php".
    Note that the empty string is a primitive path.
    """
    return _PRIMITIVE_PATH_PAT.fullmatch(raw) is not None


def split(raw: str, reserved: Sequence[str] = RESERVED_SCHEME_TOKENS) -> tuple[str, str, str, str, str]:
    """Splits raw into (scheme, double_slash, opaque, query, fragment).
    A scheme equal to one of the reserved tokens is folded back into the opaque part.
    reserved may also be a single token.
    """
    _check_str(raw)
    if isinstance(reserved, str):
        reserved = (reserved,)
    m: re.Match[str] | None = _URI_PAT.match(raw)
    if m is None:
        raise ValueError("split failed")
    groups: dict[str, str] = m.groupdict(default="")

    scheme: str = groups["scheme"]
    opaque: str = groups["opaque"]
    if scheme in reserved:
        prefix: str = groups["scheme_prefix"]
        opaque = (prefix if prefix == f"{scheme}:" else scheme) + opaque
        scheme = ""

    return scheme, groups["double_slash"], opaque, groups["query"], groups["fragment"]


def split_authority_from_path(
    opaque: str, filename_extensions: Sequence[str] = FILENAME_EXTENSIONS
) -> tuple[str, str]:
    m: re.Match[str] | None = _HIER_PART_PAT.match(opaque)
    if m is None:
        raise ValueError("failed to split authority from path")
    authority: str = m["authority"] or ""
    path: str = m["path"] or ""

    # "index.php/..." is a file, not a host.
    if any(ext in authority for ext in filename_extensions):
        path = authority + path
        authority = ""
        if "/" not in path and "./" not in path:
            path = f"./{path}"

    # "../somepath", but a lone ".." stays where it is.
    if authority in _DIRECTORY_REFERENCES and path.startswith("/"):
        path = authority + path
        authority = ""

    return authority, path


def split_userinfo_host_port(authority: str) -> tuple[Userinfo, str, str]:
    """Splits an authority into userinfo, host and port.
    The userinfo ends at the last "@", so "j@ne:p@ss@example.com" has the username "j@ne".
    """
    userinfo: Userinfo = Userinfo()
    raw_userinfo, at, host_port = authority.rpartition("@")
    if len(at) == 0:
        host_port = authority
    else:
        username, _, password = raw_userinfo.partition(":")
        if len(password) > 0:
            userinfo = Userinfo(username=username, password=password, password_set=True)
        else:
            userinfo = Userinfo(username=username)

    m: re.Match[str] | None = _HOST_PORT_PAT.match(host_port)
    if m is None:
        raise ValueError("failed to split host from port")
    host: str = m["host"] or m["ip_literal"] or ""
    return userinfo, host, m["port"] or ""


def is_relative(scheme: str, double_slash: str, authority: str, port: str) -> bool:
    """True when there is no scheme, no "//", no authority and no port.
    A bare "example.com:8080" is therefore not relative.
    """
    return len(scheme) == 0 and len(double_slash) == 0 and len(authority) == 0 and len(port) == 0


def decompose(
    raw: str,
    filename_extensions: Sequence[str] = FILENAME_EXTENSIONS,
    reserved: Sequence[str] = RESERVED_SCHEME_TOKENS,
) -> URL:
    """Decomposes any string into a URL. Never fails on str input.
    Bare file names such as "index.php" skip the rest of the work and come back as the relative path "./index.php".
    """
    _check_str(raw)
    if is_primitive_path(raw):
        return URL(input=raw, path=f"./{raw}", relative=True)

    scheme, double_slash, opaque, query, fragment = split(raw, reserved=reserved)
    authority, path = split_authority_from_path(opaque, filename_extensions=filename_extensions)
    user, host, port = split_userinfo_host_port(authority)

    return URL(
        input=raw,
        scheme=scheme,
        double_slash=double_slash,
        opaque=opaque,
        query=query,
        fragment=fragment,
        authority=authority,
        path=path,
        user=user,
        host=host,
        port=port,
        relative=is_relative(scheme, double_slash, authority, port),
    )


def _capitalize_percent_encodings(string: str) -> str:
    """Returns string with all percent-encoded sequences expressed in capital letters.
    e.g. _capitalize_percent_encodings("example%2ecom") == "example%2Ecom"
    """
    # Does not change length of string.
    for m in re.finditer(r"%(?:[a-f][0-9A-Fa-f]|[0-9A-Fa-f][a-f])", string):
        string = string[: m.start()] + string[m.start() : m.end()].upper() + string[m.end() :]
    return string


def _remove_dot_segments(path: str) -> str:
    """Implementation of the "remove_dot_segments" routine from RFC 3986 section 5.2.4"""
    result: str = ""
    while len(path) > 0:
        if path.startswith("./") or path.startswith("../"):
            _, _, path = path.partition("/")
        elif path.startswith("/./") or path == "/.":
            path = f"/{path[len('/./') :]}"
        elif path.startswith("/../") or path == "/..":
            path = f"/{path[len('/../') :]}"
            result, _, _ = result.rpartition("/")
        elif path in (".", ".."):
            path = ""
        else:
            if path.startswith("/"):
                _, _, path = path.partition("/")
                result += "/"
            first_seg, slash, rest = path.partition("/")
            path = slash + rest
            result += first_seg
    return result


def _merge_paths(base: URL, r_path: str) -> str:
    """Implementation of the "merge" routine defined in RFC 3986 section 5.2.3"""
    if len(base.authority) > 0 and len(base.path) == 0:
        return f"/{r_path}"
    dirname, slash, _ = base.path.rpartition("/")
    return dirname + slash + r_path


#######################################################################################################
# ------------ Everything below here is the bridge to generic URL consumers and urllib.parse ---------- #
#######################################################################################################


@dataclasses.dataclass
class NetURL:
    """A generic URL with a single host[:port] field, as most URL libraries model it.
    When opaque is set there is no structured host, and opaque stands in for everything between scheme and query.
    """

    scheme: str = ""
    host: str = ""
    path: str = ""
    raw_path: str = ""
    raw_query: str = ""
    fragment: str = ""
    opaque: str = ""

    def serialize(self: Self) -> str:
        result: str = ""
        if len(self.scheme) > 0:
            result += f"{self.scheme}:"
        if len(self.opaque) > 0:
            result += self.opaque
        else:
            if len(self.scheme) > 0 or len(self.host) > 0:
                if len(self.host) > 0 or len(self.raw_path) > 0:
                    result += "//"
                result += self.host
            path: str = self.raw_path
            if len(path) > 0 and not path.startswith("/") and len(self.host) > 0:
                result += "/"
            if len(result) == 0:
                # "a:b" would read back as a scheme.
                first_seg, _, _ = path.partition("/")
                if ":" in first_seg:
                    result += "./"
            result += path
        if len(self.raw_query) > 0:
            result += f"?{self.raw_query}"
        if len(self.fragment) > 0:
            result += f"#{self.fragment}"
        return result

    def to_split_result(self: Self) -> SplitResult:
        return SplitResult(
            scheme=self.scheme,
            netloc=self.host,
            path=self.opaque if len(self.opaque) > 0 else self.raw_path,
            query=self.raw_query,
            fragment=self.fragment,
        )
