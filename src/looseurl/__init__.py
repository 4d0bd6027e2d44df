__version__ = "0.1"

from .parse import FILENAME_EXTENSIONS, NetURL, RESERVED_SCHEME_TOKENS, URL, Userinfo, decompose, is_primitive_path, is_relative, split, split_authority_from_path, split_userinfo_host_port
from .normalize import DEFAULT_FLAGS, NormalizationFlags, decode_idn_host, normalize, normalize_net_url, normalize_string
