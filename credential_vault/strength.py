"""Password strength score shown when a credential is entered."""

STRENGTH_LABELS = {
    0: "Weak",
    1: "Weak",
    2: "Medium",
    3: "Medium",
    4: "Strong",
    5: "Strong",
}


def password_strength(password: str) -> int:
    """Score a password from 0 to 5.

    One point each for: at least 8 characters, an uppercase letter, a
    lowercase letter, a digit, and a character that is neither letter
    nor digit.
    """
    score = 0
    if len(password) >= 8:
        score += 1
    if any(c.isupper() for c in password):
        score += 1
    if any(c.islower() for c in password):
        score += 1
    if any(c.isdigit() for c in password):
        score += 1
    if any(not c.isalnum() for c in password):
        score += 1
    return score


def strength_label(score: int) -> str:
    """Return "Weak", "Medium" or "Strong" for a score; "" if out of range."""
    return STRENGTH_LABELS.get(score, "")
