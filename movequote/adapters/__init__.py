from .form import QuoteFormV1, context_from_form

__all__ = ["QuoteFormV1", "context_from_form"]
