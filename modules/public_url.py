from starlette.requests import Request


def _first_forwarded(value):
    # Proxy chains append; the left-most entry is the client-facing one.
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


def build_public_url(request: Request, relative_path: str) -> str:
    """
    Absolute URL for a path on this service as Twilio must reach it.

    Prefers X-Forwarded-Host / X-Forwarded-Proto (set by ngrok and reverse
    proxies) over the request's own host and scheme.

    Args:
        request (Request): The inbound webhook request.
        relative_path (str): Path, optionally with a query string, e.g. "/voice/welcome".

    Returns:
        str: "scheme://host/path" with exactly one slash between host and path.
    """
    host = (
        _first_forwarded(request.headers.get("x-forwarded-host"))
        or request.headers.get("host")
        or request.url.netloc
    )
    scheme = _first_forwarded(request.headers.get("x-forwarded-proto")) or request.url.scheme
    return f"{scheme}://{host.rstrip('/')}/{relative_path.lstrip('/')}"
