"""Random credential generation for printer PINs and short IDs."""
from __future__ import annotations

import random
import string
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .config import TenantSettings


DIGITS = string.digits
UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
SPECIAL_CHARACTERS = "!@#$%^&*-_+="

_system_random = random.SystemRandom()


def generate_pin(length: int, rng: Optional[random.Random] = None) -> str:
    """Return ``length`` uniformly drawn decimal digits."""

    if length < 0:
        raise ValueError("PIN length cannot be negative.")
    source = rng or _system_random
    return "".join(str(source.randrange(10)) for _ in range(length))


def build_alphabet(
    use_uppercase: bool = True,
    use_lowercase: bool = True,
    use_numbers: bool = True,
    use_special: bool = False,
    exclude: str = "",
) -> str:
    """Return the characters a short code may be drawn from."""

    charset = ""
    if use_uppercase:
        charset += UPPERCASE
    if use_lowercase:
        charset += LOWERCASE
    if use_numbers:
        charset += DIGITS
    if use_special:
        charset += SPECIAL_CHARACTERS
    if not charset:
        charset = DIGITS

    excluded = set(exclude or "")
    filtered = "".join(char for char in charset if char not in excluded)
    return filtered or DIGITS


def generate_short_code(
    length: int,
    use_uppercase: bool = True,
    use_lowercase: bool = True,
    use_numbers: bool = True,
    use_special: bool = False,
    exclude: str = "",
    rng: Optional[random.Random] = None,
) -> str:
    """Return a random code of ``length`` characters from the configured alphabet."""

    if length < 0:
        raise ValueError("Short code length cannot be negative.")
    alphabet = build_alphabet(use_uppercase, use_lowercase, use_numbers, use_special, exclude)
    source = rng or _system_random
    return "".join(source.choice(alphabet) for _ in range(length))


def generate_pin_value(settings: "TenantSettings", rng: Optional[random.Random] = None) -> str:
    return generate_pin(settings.pin_length, rng=rng)


def generate_otp_value(settings: "TenantSettings", rng: Optional[random.Random] = None) -> str:
    policy = settings.short_id
    return generate_short_code(
        policy.length,
        use_uppercase=policy.use_uppercase,
        use_lowercase=policy.use_lowercase,
        use_numbers=policy.use_numbers,
        use_special=policy.use_special,
        exclude=policy.exclude_characters,
        rng=rng,
    )


__all__ = [
    "DIGITS",
    "SPECIAL_CHARACTERS",
    "build_alphabet",
    "generate_otp_value",
    "generate_pin",
    "generate_pin_value",
    "generate_short_code",
]
