"""
Extraction of the CAS execution token from the login page.

The CAS login form carries a single-use hidden `execution` input. Its
markup has changed between CAS releases, so extraction tries an ordered
list of patterns, strictest first; the first match wins. Update the list
here when the login page changes.
"""

import re
from typing import Optional, Sequence


EXECUTION_TOKEN_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r'<input[^>]*name="execution"[^>]*value="([^"]*)"[^>]*>', re.IGNORECASE),
    re.compile(r'<input[^>]*value="([^"]*)"[^>]*name="execution"[^>]*>', re.IGNORECASE),
    re.compile(r'name="execution"\s+value="([^"]+)"', re.IGNORECASE),
    re.compile(r'execution.*?value=["\']([^"\']+)["\']', re.IGNORECASE),
)


def extract_execution_token(
    html: str,
    patterns: Sequence[re.Pattern] = EXECUTION_TOKEN_PATTERNS,
) -> Optional[str]:
    """The execution token found by the first matching pattern, or None."""
    for pattern in patterns:
        match = pattern.search(html)
        if match and match.group(1):
            return match.group(1)
    return None
