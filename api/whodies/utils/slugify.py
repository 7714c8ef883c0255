"""Slug helpers for sources addressed by URL path."""

from slugify import slugify


def title_slug_variants(title: str, year: int | None = None) -> list[str]:
    """Return spoiler-site slugs to try, most specific first."""
    base = slugify(title)
    variants = [f"{base}-{year}"] if year else []
    variants.extend([base, f"{base}-the", f"the-{base}"])
    return variants
