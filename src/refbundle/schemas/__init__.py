"""Schema documents shipped with refbundle.

Load them through the store with ``data://refbundle.schemas/<file name>``,
for example ``data://refbundle.schemas/draft-07.json``.
"""
