"""Temporary credentials handed out once at first access."""

import secrets
import string

SYMBOLS = "!@#$%&*?"
_CLASSES = (string.ascii_lowercase, string.ascii_uppercase, string.digits, SYMBOLS)
_ALPHABET = "".join(_CLASSES)


def generate_temporary_password(length: int = 8) -> str:
    """
    Generate a random password with at least one character of each class.

    Uses ``secrets`` so the result is suitable as a credential.
    """
    if length < len(_CLASSES):
        raise ValueError(f"Password length must be at least {len(_CLASSES)}")
    chars = [secrets.choice(charset) for charset in _CLASSES]
    chars += [secrets.choice(_ALPHABET) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
