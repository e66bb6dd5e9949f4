from .claims import build_display_name, extract_identity

__all__ = ["build_display_name", "extract_identity"]
