"""
generator.py - Random passwords for new entries
"""
import secrets
import string

from .config import DEFAULT_PASSWORD_LENGTH

SYMBOLS = "!@#$%^&*()_+~`|}{[]:;?><,./-="
AMBIGUOUS = "0O1lI|`"


def generate_password(
    length: int = DEFAULT_PASSWORD_LENGTH,
    use_uppercase: bool = True,
    use_digits: bool = True,
    use_symbols: bool = True,
    exclude_ambiguous: bool = False
) -> str:
    """
    Generate a password with a cryptographically secure RNG.

    Lowercase letters are always included. When the password is long
    enough, at least one character of every enabled class is guaranteed.

    Raises:
        ValueError: If length < 1
    """
    if length < 1:
        raise ValueError("Password length must be at least 1")

    groups = [string.ascii_lowercase]
    if use_uppercase:
        groups.append(string.ascii_uppercase)
    if use_digits:
        groups.append(string.digits)
    if use_symbols:
        groups.append(SYMBOLS)

    if exclude_ambiguous:
        groups = ["".join(c for c in group if c not in AMBIGUOUS) for group in groups]

    alphabet = "".join(groups)
    chars = [secrets.choice(alphabet) for _ in range(length)]

    if length >= len(groups):
        # One pick per class, each at a distinct position
        positions = list(range(length))
        for group in groups:
            pos = positions.pop(secrets.randbelow(len(positions)))
            chars[pos] = secrets.choice(group)

    return "".join(chars)
