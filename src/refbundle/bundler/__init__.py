"""Schema bundling -- collapse a schema and its references into one document.

* :mod:`~refbundle.bundler.bundler` -- :class:`Bundler`, the reference walk.
* :mod:`~refbundle.bundler.naming` -- :class:`NameAllocator`, deterministic
  names for copied fragments.
"""

from refbundle.bundler.bundler import BundleContext, Bundler, Reference, bundle
from refbundle.bundler.naming import NameAllocator

__all__ = ["BundleContext", "Bundler", "Reference", "bundle", "NameAllocator"]
