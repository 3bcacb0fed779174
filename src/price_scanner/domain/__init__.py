from .models import Product, format_vnd

__all__ = ["Product", "format_vnd"]
