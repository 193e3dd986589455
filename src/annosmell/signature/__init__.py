"""
signature package for turning srcML function nodes into normalized
signature strings.

The structural parser lives in ``function_signature_parser``; it depends on
``srcml_reader``, which in turn uses the comment scanner from this package,
so it is not imported here.
"""

from .comment_scanner import remove_comments
from .normalizer import normalize_signature

__all__ = [
    "comment_scanner",
    "function_signature_parser",
    "normalize_signature",
    "normalizer",
    "remove_comments",
]
