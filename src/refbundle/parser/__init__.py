"""Schema document parsing -- decode sources, navigate pointers, resolve ``$ref``.

Sub-modules:

* :mod:`~refbundle.parser.loader` -- locator classification, file, resource
  and URL reads, and JSON/YAML decoding.
* :mod:`~refbundle.parser.pointer` -- RFC 6901 JSON Pointers.
* :mod:`~refbundle.parser.resolver` -- ``$ref`` resolution relative to the
  containing document.
"""

from refbundle.parser.loader import parse_content
from refbundle.parser.pointer import Pointer
from refbundle.parser.resolver import ReferenceResolver, ResolvedRef, split_ref

__all__ = ["parse_content", "Pointer", "ReferenceResolver", "ResolvedRef", "split_ref"]
