"""LegalLens: document analysis and grounded chat over legal documents."""

__version__ = "0.1.0"
