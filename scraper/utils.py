# scraper/utils.py
from .errors import ParseError


def dig(node, *keys):
    """
    Walk a nested JSON object, returning None at the first missing link.

    Mirrors optional chaining over the loosely-shaped Next.js payload: a
    missing key or a null value ends the walk with None. A value that exists
    but is not an object where one is needed is a shape error, not absence.

    Args:
        node: Parsed JSON value to start from
        *keys (str): Object keys to follow in order

    Returns:
        The value found at the end of the path, or None

    Raises:
        ParseError: If an intermediate value is present but not a dict

    Example:
        dig(data, "props", "pageProps", "search")
    """
    path = []
    for key in keys:
        if node is None:
            return None
        if not isinstance(node, dict):
            raise ParseError(
                f"expected object at '{'.'.join(path) or '<root>'}', "
                f"got {type(node).__name__}"
            )
        path.append(key)
        node = node.get(key)
    return node


def peek(node, *keys):
    """Like dig(), but any shape mismatch also resolves to None."""
    try:
        return dig(node, *keys)
    except ParseError:
        return None


def as_list(value, where):
    """Return value when it is a list, [] when absent; anything else is a ParseError."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"expected array at '{where}', got {type(value).__name__}")
    return value


def as_number(value):
    """Return value when it is an int or float (bools excluded), else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value
