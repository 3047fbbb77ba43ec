import re


def clean_email(email):
    """Lower-case and trim an email address; falsy input becomes ''."""
    if not email:
        return ""

    return str(email).strip().lower()


def clean_text_field(text):
    """Trim a free-text field and collapse internal whitespace runs, e.g. names
    typed with double spaces at the registration desk."""
    if not text:
        return ""

    return re.sub(r'\s+', ' ', str(text).strip())


def emails_match(first, second):
    """Compare two addresses after normalization; empty never matches."""
    first, second = clean_email(first), clean_email(second)
    return bool(first) and first == second
