"""
Kindex

Incremental knowledge-source indexing into a vector store and a keyword store.
"""

__version__ = "0.1.0"
