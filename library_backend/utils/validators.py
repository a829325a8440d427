from typing import Optional


class TextValidator:
    """Input checks for the free-text fields of books, students and payments."""

    @staticmethod
    def clean(text: Optional[str]) -> str:
        """Trimmed text, or an empty string for None."""
        if text is None:
            return ""
        return str(text).strip()

    @staticmethod
    def is_present(text: Optional[str]) -> bool:
        return bool(TextValidator.clean(text))

    @staticmethod
    def missing(**fields: Optional[str]) -> list:
        """Names of the given fields that are empty after trimming, in call order."""
        return [name for name, value in fields.items() if not TextValidator.is_present(value)]


class ISBNValidator:
    """ISBNs are optional; blank values count as absent so they never collide."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> Optional[str]:
        s = TextValidator.clean(raw)
        return s or None
