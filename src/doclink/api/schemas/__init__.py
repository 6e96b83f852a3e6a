"""Request and response models for the doclink HTTP API."""
