from typing import Optional


def mask_secret(text: str, secret: Optional[str]) -> str:
    return text.replace(secret, f"{secret[:2]}****") if secret else text


def request_label(method: Optional[str], path: Optional[str]) -> str:
    """Short "METHOD path" label used to correlate log lines with a request."""
    return f"{(method or '?').upper()} {path or '<no path>'}"
