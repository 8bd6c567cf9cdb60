"""Pure merge helpers for provider results."""

from typing import Dict, Iterable, List, Optional

LINK_TYPES = ("streaming", "purchase", "download")


def union_genres(*sources: Optional[Iterable[str]]) -> List[str]:
    """
    Exact, case-sensitive union keeping first-seen order.

    >>> union_genres(["Rock", "Pop"], ["Pop", "Soul"])
    ['Rock', 'Pop', 'Soul']
    """
    seen = set()
    merged = []
    for source in sources:
        for genre in source or []:
            if genre and genre not in seen:
                seen.add(genre)
                merged.append(genre)
    return merged


def external_links(relations: Optional[Iterable[Dict[str, str]]]) -> Dict[str, str]:
    """Keep streaming/purchase/download relations; the last one of each type wins."""
    links = {}
    for rel in relations or []:
        if rel.get('type') in LINK_TYPES and rel.get('url'):
            links[rel['type']] = rel['url']
    return links


def group_credits(credits: Optional[Iterable[Dict[str, str]]]) -> Dict[str, List[str]]:
    """Group credited names by role."""
    grouped: Dict[str, List[str]] = {}
    for credit in credits or []:
        role = credit.get('role') or 'performer'
        names = grouped.setdefault(role, [])
        if credit.get('name') and credit['name'] not in names:
            names.append(credit['name'])
    return grouped
