"""Internal modules for routefetch.

These are not intended for direct use in application code; the public
names are re-exported from the routefetch package.

Modules:
    fetchers - Route map models, path resolution and fetcher construction
    http - Option merging and the default httpx transport
"""
