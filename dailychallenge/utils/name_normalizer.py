"""Name normalization for matching order record names to stored entities.

Handles common variations between the order feed and the entity tables:
- Accents: "Grüne Welle" → "grune welle"
- Punctuation: "Dr. Greenthumb's" → "dr greenthumbs"
- Case: "PINK KUSH" → "pink kush"
- Extra spaces: "Pink  Kush " → "pink kush"
"""
import re
import unicodedata


def normalize_entity_name(name: str) -> str:
    """
    Normalize an entity display name for comparison.

    Examples:
        >>> normalize_entity_name("Pedanios 22/1 ")
        'pedanios 221'
        >>> normalize_entity_name("Grüne  Welle")
        'grune welle'
    """
    if not name:
        return ""

    # NFD splits accented letters into base letter + combining mark
    name = unicodedata.normalize('NFD', name)
    name = ''.join(c for c in name if unicodedata.category(c) != 'Mn')

    name = name.lower()
    name = re.sub(r'[^\w\s]', '', name)
    return ' '.join(name.split())
