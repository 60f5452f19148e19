from __future__ import annotations

import re

from life_game.constants import DEFAULT_CATEGORY_COLOR
from life_game.errors import NotFoundError, ValidationError
from life_game.models import Category, Snapshot

COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def add_category(snapshot: Snapshot, name: str, color: str | None = None) -> Category:
    display_name = (name or "").strip()
    if not display_name:
        raise ValidationError("Category name is required")
    color = color or DEFAULT_CATEGORY_COLOR
    if not COLOR_PATTERN.fullmatch(color):
        raise ValidationError(f"Invalid color: {color}")

    slug = slugify(display_name)
    if any(c.id == slug for c in snapshot.categories):
        raise ValidationError(f"Category already exists: {slug}")

    category = Category(id=slug, display_name=display_name, color=color)
    snapshot.categories.append(category)
    return category


def delete_category(snapshot: Snapshot, category_id: str) -> Category:
    if len(snapshot.categories) <= 1:
        raise ValidationError("At least one category must remain")
    for category in snapshot.categories:
        if category.id == category_id:
            snapshot.categories.remove(category)
            return category
    raise NotFoundError(f"Category {category_id} not found")

