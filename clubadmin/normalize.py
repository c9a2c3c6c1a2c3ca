import re
from typing import Optional

# "AD-001 - Primeiros Socorros"
CODE_PREFIX = re.compile(r"^[A-Z]+-\d+\s*-\s*")
# "I.", "II.", "IV." ...
ROMAN_CODE = re.compile(r"^[IVX]+\.")


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def strip_code_prefix(name: str) -> str:
    return CODE_PREFIX.sub("", name).strip()


def has_code_prefix(name: Optional[str]) -> bool:
    return bool(name) and CODE_PREFIX.match(name) is not None


def has_roman_code(code: Optional[str]) -> bool:
    return bool(code) and ROMAN_CODE.match(code) is not None


def base_name(name: str) -> str:
    return normalize_text(strip_code_prefix(name))


def description_prefix(text: str, length: int = 50) -> str:
    # Truncate before normalizing so long near-identical texts still collide.
    return normalize_text(text[:length])
