from typing import Iterable, List, Optional, Tuple

import config

# Priority-ordered keyword groups -> stock mockup URL. First hit wins.
MOCKUP_IMAGES: List[Tuple[str, Tuple[str, ...], str]] = [
    ("serum", ("serum", "essence"),
     "https://images.unsplash.com/photo-1620916297593-6e5f6e4c2b27?w=800&h=600&fit=crop&auto=format&q=80"),
    ("cream", ("cream", "moisturizer", "moisturiser", "lotion", "balm"),
     "https://images.unsplash.com/photo-1571019613454-1cb2f99b2d8b?w=800&h=600&fit=crop&auto=format&q=80"),
    ("oil", ("oil",),
     "https://images.unsplash.com/photo-1608248597279-f99d160bfcbc?w=800&h=600&fit=crop&auto=format&q=80"),
    ("sunscreen", ("sunscreen", "spf", "sun protection", "uv filter"),
     "https://images.unsplash.com/photo-1556228453-efd6c1ff04f6?w=800&h=450&fit=crop&auto=format&q=80"),
    ("cleanser", ("cleanser", "foam", "wash"),
     "https://images.unsplash.com/photo-1559056199-641a0ac8b55e?w=800&h=450&fit=crop&auto=format&q=80"),
    ("mask", ("mask",),
     "https://images.unsplash.com/photo-1596755389378-c31d21fd1273?w=800&h=450&fit=crop&auto=format&q=80"),
    ("toner", ("toner", "mist"),
     "https://images.unsplash.com/photo-1620916566398-39f1143ab7be?w=800&h=450&fit=crop&auto=format&q=80"),
]


def _scan(text: str) -> Optional[str]:
    text = text.lower()
    if not text.strip():
        return None
    for category, keywords, _url in MOCKUP_IMAGES:
        if any(k in text for k in keywords):
            return category
    return None


def match_category(product_type: Optional[str], ingredient_functions: Optional[Iterable[str]] = None) -> Optional[str]:
    # product type decides; ingredient functions only break a no-match
    category = _scan(product_type or "")
    if category is None:
        category = _scan(" ".join(f for f in (ingredient_functions or []) if f))
    return category


def select_mockup_image(product_type: Optional[str], ingredient_functions: Optional[Iterable[str]] = None) -> str:
    """Pick a stock mockup URL by keyword; default placeholder when nothing matches."""
    category = match_category(product_type, ingredient_functions)
    for name, _keywords, url in MOCKUP_IMAGES:
        if name == category:
            return url
    return config.PLACEHOLDER_IMAGE_URL
