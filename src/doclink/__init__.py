"""doclink - tokenized document collection and mortgage application intake.

Tenants issue time-limited links that let a customer upload requested
documents or fill in a mortgage application. Links expire lazily on access
and in bulk through a scheduled sweep.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
