"""Split raw style sheet text into independent top-level fragments.

This is a deliberately small scanner, not a CSS parser. It recognises
keyframes blocks, ``@import`` directives and brace blocks with at most one
level of nesting (``@media`` queries). Deeper nesting is not split
correctly.
"""

from __future__ import annotations

import re
from typing import List, Optional

_COMMENTS = re.compile(r"/\*[\s\S]*?\*/")
_KEYFRAMES = re.compile(
    r"((@[\w-]*keyframes\s+[^{]*?)\{([\s\S]*?\}\s*?)\})", re.IGNORECASE
)
_IMPORT = re.compile(
    r"@import[^;{}]*?(?:url\([^)]*\)|\"[^\"]*\"|'[^']*')[^;{}]*;", re.IGNORECASE
)
_BLOCK = re.compile(
    r"((\s*?(?:/\*[\s\S]*?\*/)?\s*?@media[\s\S]*?)\{([\s\S]*?)\}\s*?\})"
    r"|(([\s\S]*?)\{([\s\S]*?)\})",
    re.IGNORECASE,
)


def strip_comments(source: str) -> str:
    return _COMMENTS.sub("", source)


def parse_css(source: Optional[str]) -> List[str]:
    """Return the top-level fragments of ``source`` in source order."""
    if source is None:
        return []

    css_text = strip_comments(source)
    fragments: List[str] = [match.group(0) for match in _KEYFRAMES.finditer(css_text)]
    css_text = _KEYFRAMES.sub("", css_text)

    position = 0
    while True:
        import_match = _IMPORT.search(css_text, position)
        block_match = _BLOCK.search(css_text, position)
        match = _earliest(import_match, block_match)
        if match is None:
            break
        fragments.append(match.group(0))
        position = match.end()

    return fragments


def _earliest(
    import_match: Optional[re.Match[str]], block_match: Optional[re.Match[str]]
) -> Optional[re.Match[str]]:
    # A block match swallows any leading text, so compare the import against
    # the block's opening brace rather than its start.
    if import_match is None:
        return block_match
    if block_match is None:
        return import_match
    brace = block_match.start() + block_match.group(0).index("{")
    if import_match.start() < brace:
        return import_match
    return block_match
