"""Category classification for new BMV activities."""

from km_bmv_sync.classification.categories import EVENT_CATEGORIES, REHEARSAL_CATEGORIES
from km_bmv_sync.classification.classifier import (
    CategoryClassifier,
    FirstCategoryClassifier,
    OpenAIClassifier,
    build_classifier,
    match_category,
)

__all__ = [
    "REHEARSAL_CATEGORIES",
    "EVENT_CATEGORIES",
    "CategoryClassifier",
    "FirstCategoryClassifier",
    "OpenAIClassifier",
    "build_classifier",
    "match_category",
]
