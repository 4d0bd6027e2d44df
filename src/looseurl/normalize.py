"""looseurl.normalize
Turns a decomposed URL into a canonical string: punycode hosts decoded, numeric hosts spelled as dotted quads,
dot segments and default ports dropped, escapes made consistent and the query sorted.
"""

import copy
import dataclasses
import enum
import ipaddress
import logging
import re

from typing import Callable
from urllib.parse import parse_qsl, quote, urlencode

import idna

from .parse import NetURL, URL, _capitalize_percent_encodings, _remove_dot_segments, decompose

LOGGER = logging.getLogger(__name__)


class NormalizationFlags(enum.Flag):
    REMOVE_DEFAULT_PORT = enum.auto()
    DECODE_DWORD_HOST = enum.auto()
    DECODE_OCTAL_HOST = enum.auto()
    DECODE_HEX_HOST = enum.auto()
    REMOVE_UNNECESSARY_HOST_DOTS = enum.auto()
    REMOVE_DOT_SEGMENTS = enum.auto()
    REMOVE_DUPLICATE_SLASHES = enum.auto()
    UPPERCASE_ESCAPES = enum.auto()
    DECODE_UNNECESSARY_ESCAPES = enum.auto()
    ENCODE_NECESSARY_ESCAPES = enum.auto()
    SORT_QUERY = enum.auto()


DEFAULT_FLAGS: NormalizationFlags = (
    NormalizationFlags.REMOVE_DEFAULT_PORT
    | NormalizationFlags.DECODE_DWORD_HOST
    | NormalizationFlags.DECODE_OCTAL_HOST
    | NormalizationFlags.DECODE_HEX_HOST
    | NormalizationFlags.REMOVE_UNNECESSARY_HOST_DOTS
    | NormalizationFlags.REMOVE_DOT_SEGMENTS
    | NormalizationFlags.REMOVE_DUPLICATE_SLASHES
    | NormalizationFlags.UPPERCASE_ESCAPES
    | NormalizationFlags.DECODE_UNNECESSARY_ESCAPES
    | NormalizationFlags.ENCODE_NECESSARY_ESCAPES
    | NormalizationFlags.SORT_QUERY
)

_DEFAULT_PORTS: dict[str, str] = {"http": "80", "https": "443"}

# Each numeric host form may be followed by trailing dots and a port, which are kept as they are.
_HOST_SUFFIX: str = r"(?P<suffix>\.*(?::[0-9]*)?)"

# 3232235521
_DWORD_HOST_PAT: re.Pattern[str] = re.compile(rf"\A(?P<dword>[0-9]+){_HOST_SUFFIX}\Z")

# 0300.0250.00.01
_OCTAL_HOST_PAT: re.Pattern[str] = re.compile(
    rf"\A(?P<a>0[0-7]*)\.(?P<b>0[0-7]*)\.(?P<c>0[0-7]*)\.(?P<d>0[0-7]*){_HOST_SUFFIX}\Z"
)

# 0xC0A80001
_HEX_HOST_PAT: re.Pattern[str] = re.compile(rf"\A0[xX](?P<hex>[0-9A-Fa-f]+){_HOST_SUFFIX}\Z")

_NET_HOST_PORT_PAT: re.Pattern[str] = re.compile(r"\A(?P<hostname>\[[^\]]*\]|[^:]*)(?P<port>:[0-9]*)?\Z")

# unreserved = ALPHA / DIGIT / "-" / "." / "_" / "~"
_UNRESERVED: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# sub-delims and the gen-delims that may appear unescaped in a path (quote() never escapes unreserved)
_PATH_SAFE: str = "!$&'()*+,;=:@/%"

# query and fragment additionally allow "?"
_QUERY_SAFE: str = _PATH_SAFE + "?"

_STRAY_PERCENT_PAT: re.Pattern[str] = re.compile(r"%(?![0-9A-Fa-f]{2})")

_PCT_ENCODED_PAT: re.Pattern[str] = re.compile(r"%(?P<hex>[0-9A-Fa-f]{2})")


def _decode_label(label: str) -> str:
    try:
        return idna.decode(label)
    except idna.IDNAError:
        pass
    # Well-formed punycode that IDNA 2008 disallows (e.g. emoji) is still decoded.
    encoded: str = label[len("xn--") :]
    if len(encoded) == 0:
        raise idna.IDNAError(f"no punycode after the ACE prefix in {label!r}")
    try:
        return encoded.encode("ascii").decode("punycode")
    except UnicodeError as e:
        raise idna.IDNAError(f"malformed punycode label {label!r}") from e


def decode_idn_host(host: str) -> str:
    """Decodes the punycode labels of host ("xn--bcher-kva.example" becomes "bücher.example").
    Raises idna.IDNAError on malformed punycode.
    """
    return ".".join(
        _decode_label(label.lower()) if label[:4].lower() == "xn--" else label for label in host.split(".")
    )


def _split_host_port(host: str) -> tuple[str, str]:
    m: re.Match[str] | None = _NET_HOST_PORT_PAT.match(host)
    if m is None:
        return host, ""
    return m["hostname"], m["port"] or ""


def _dotted_quad(address: int) -> str | None:
    if address > 0xFFFFFFFF:
        return None
    return str(ipaddress.IPv4Address(address))


def _set_path(u: NetURL, path: str) -> None:
    u.path = path
    u.raw_path = path


def _remove_default_port(u: NetURL) -> None:
    hostname, port = _split_host_port(u.host)
    if u.scheme in _DEFAULT_PORTS and port == f":{_DEFAULT_PORTS[u.scheme]}":
        u.host = hostname


def _remove_path_dot_segments(u: NetURL) -> None:
    _set_path(u, _remove_dot_segments(u.path))


def _remove_duplicate_slashes(u: NetURL) -> None:
    _set_path(u, re.sub(r"/{2,}", "/", u.path))


def _sort_query(u: NetURL) -> None:
    if len(u.raw_query) == 0:
        return
    pairs: list[tuple[str, str]] = parse_qsl(u.raw_query, keep_blank_values=True)
    u.raw_query = urlencode(sorted(pairs, key=lambda pair: pair[0]))


def _decode_dword_host(u: NetURL) -> None:
    m: re.Match[str] | None = _DWORD_HOST_PAT.match(u.host)
    if m is None:
        return
    quad: str | None = _dotted_quad(int(m["dword"]))
    if quad is not None:
        u.host = quad + m["suffix"]


def _decode_octal_host(u: NetURL) -> None:
    m: re.Match[str] | None = _OCTAL_HOST_PAT.match(u.host)
    if m is None:
        return
    octets: list[int] = [int(m[part], base=8) for part in ("a", "b", "c", "d")]
    if all(octet <= 255 for octet in octets):
        u.host = ".".join(str(octet) for octet in octets) + m["suffix"]


def _decode_hex_host(u: NetURL) -> None:
    m: re.Match[str] | None = _HEX_HOST_PAT.match(u.host)
    if m is None:
        return
    quad: str | None = _dotted_quad(int(m["hex"], base=16))
    if quad is not None:
        u.host = quad + m["suffix"]


def _remove_unnecessary_host_dots(u: NetURL) -> None:
    hostname, port = _split_host_port(u.host)
    u.host = hostname.strip(".") + port


# Order matters: numeric hosts are decoded before their trailing dots go.
_STEPS: tuple[tuple[NormalizationFlags, Callable[[NetURL], None]], ...] = (
    (NormalizationFlags.REMOVE_DEFAULT_PORT, _remove_default_port),
    (NormalizationFlags.REMOVE_DOT_SEGMENTS, _remove_path_dot_segments),
    (NormalizationFlags.REMOVE_DUPLICATE_SLASHES, _remove_duplicate_slashes),
    (NormalizationFlags.SORT_QUERY, _sort_query),
    (NormalizationFlags.DECODE_DWORD_HOST, _decode_dword_host),
    (NormalizationFlags.DECODE_OCTAL_HOST, _decode_octal_host),
    (NormalizationFlags.DECODE_HEX_HOST, _decode_hex_host),
    (NormalizationFlags.REMOVE_UNNECESSARY_HOST_DOTS, _remove_unnecessary_host_dots),
)


def _decode_unnecessary_escapes(string: str) -> str:
    def _decode(m: re.Match[str]) -> str:
        char: str = chr(int(m["hex"], base=16))
        return char if char in _UNRESERVED else m[0]

    return _PCT_ENCODED_PAT.sub(_decode, string)


def _normalize_escapes(string: str, safe: str, flags: NormalizationFlags) -> str:
    if NormalizationFlags.ENCODE_NECESSARY_ESCAPES in flags:
        string = quote(_STRAY_PERCENT_PAT.sub("%25", string), safe=safe)
    if NormalizationFlags.DECODE_UNNECESSARY_ESCAPES in flags:
        string = _decode_unnecessary_escapes(string)
    if NormalizationFlags.UPPERCASE_ESCAPES in flags:
        string = _capitalize_percent_encodings(string)
    return string


def normalize_net_url(net_url: NetURL, flags: NormalizationFlags = DEFAULT_FLAGS) -> str:
    """Applies the normalizations selected by flags to a copy of net_url and serializes the result."""
    result: NetURL = copy.copy(net_url)
    # "%2E%2E" has to be ".." before dot segments are removed (RFC 3986 section 6.2.2).
    if NormalizationFlags.DECODE_UNNECESSARY_ESCAPES in flags:
        _set_path(result, _decode_unnecessary_escapes(result.path))
    for flag, step in _STEPS:
        if flag in flags:
            step(result)

    _set_path(result, _normalize_escapes(result.path, _PATH_SAFE, flags))
    result.raw_query = _normalize_escapes(result.raw_query, _QUERY_SAFE, flags)
    result.fragment = _normalize_escapes(result.fragment, _QUERY_SAFE, flags)
    return result.serialize()


def normalize(url: URL, flags: NormalizationFlags = DEFAULT_FLAGS) -> str:
    """Returns the normalized form of url.
    The host is decoded from punycode and lowercased, as is the scheme. url itself is left untouched.
    Raises idna.IDNAError, with no partial result, when the host holds malformed punycode.
    """
    host: str = decode_idn_host(url.host)
    lowered: URL = dataclasses.replace(url, host=host.lower(), scheme=url.scheme.lower())
    normalized: str = normalize_net_url(lowered.to_net_url(), flags)
    LOGGER.debug("normalized %r to %r", url.input, normalized)
    return normalized


def normalize_string(raw: str, flags: NormalizationFlags = DEFAULT_FLAGS) -> str:
    """Shortcut for normalize(decompose(raw))."""
    return normalize(decompose(raw), flags)
