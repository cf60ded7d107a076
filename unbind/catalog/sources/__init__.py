from unbind.catalog.sources.google_books import GoogleBooksSource
from unbind.catalog.sources.open_library import OpenLibrarySource

__all__ = ["GoogleBooksSource", "OpenLibrarySource"]
