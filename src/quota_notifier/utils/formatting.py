"""Human-readable memory sizes.

Sizes are truncated, never rounded, to match how the platform reports usage:

    >>> format_mb(500)
    '500M'
    >>> format_mb(1536)
    '1G'
"""

MB_PER_GB = 1024


def format_mb(size_mb: int) -> str:
    """Render a size in mebibytes as ``<n>G`` when >= 1024, else ``<n>M``."""
    size_mb = int(size_mb)
    if size_mb >= MB_PER_GB:
        return f"{size_mb // MB_PER_GB}G"
    return f"{size_mb}M"
