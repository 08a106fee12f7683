"""
Keyword flagging over report text.
"""

from typing import Iterable


def match_keywords(keywords: Iterable[str], texts: Iterable[str]) -> list[str]:
    """
    Return the configured keywords found in any of the texts.

    Matching is case-sensitive substring containment. The result keeps the
    configured keyword order, has no duplicates and skips empty keywords.

    Args:
        keywords: Configured keywords
        texts: Text blocks to scan

    Returns:
        Keywords actually present in the texts

    Examples:
        >>> match_keywords(["损耗", "报修", "Loss"], ["处理叶菜损耗", "loss"])
        ['损耗']
    """
    haystack = "\n".join(texts)
    found: list[str] = []
    for keyword in keywords:
        if keyword and keyword not in found and keyword in haystack:
            found.append(keyword)
    return found
