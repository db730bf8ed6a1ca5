"""Keyword based food classification of stored photo labels."""

from collections.abc import Iterable
from dataclasses import dataclass

from visit_engine.domain.models import FoodDetection, FoodLabel

DEFAULT_FOOD_KEYWORDS = frozenset(
    {
        "food",
        "dish",
        "meal",
        "cuisine",
        "snack",
        "breakfast",
        "lunch",
        "dinner",
        "brunch",
        "appetizer",
        "dessert",
        "tableware",
        "utensil",
        "salad",
        "soup",
        "sandwich",
        "pizza",
        "pasta",
        "sushi",
        "burger",
        "steak",
        "chicken",
        "fish",
        "seafood",
        "meat",
        "vegetable",
        "fruit",
        "bread",
        "cake",
        "pie",
        "biscuit",
        "chopsticks",
        "baked_goods",
        "cookie",
        "ice_cream",
        "fork",
        "drinking_glass",
        "chocolate",
        "candy",
        "beverage",
        "coffee",
        "tea",
        "wine",
        "beer",
        "cocktail",
        "juice",
        "smoothie",
        "menu",
        "plate",
        "bowl",
        "restaurant",
        "cafe",
        "dining",
        "table_setting",
        "cutlery",
    }
)


@dataclass(frozen=True)
class FoodClassification:
    food_detected: FoodDetection
    food_labels: list[FoodLabel]
    food_confidence: float | None


def normalize_keywords(keywords: Iterable[str]) -> frozenset[str]:
    """Lowercase and strip keywords, dropping blanks."""
    return frozenset(
        keyword.strip().lower() for keyword in keywords if keyword.strip()
    )


def classify_labels(
    all_labels: Iterable[FoodLabel], keywords: frozenset[str]
) -> FoodClassification:
    """Keep labels naming an enabled keyword; any match marks the photo as food."""
    matched = [
        label for label in all_labels if label.label.strip().lower() in keywords
    ]
    if not matched:
        return FoodClassification(FoodDetection.FOOD_NEGATIVE, [], None)
    return FoodClassification(
        food_detected=FoodDetection.FOOD_POSITIVE,
        food_labels=matched,
        food_confidence=max(label.confidence for label in matched),
    )
