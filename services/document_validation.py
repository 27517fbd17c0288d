import re


def _only_digits(value: str | None) -> str:
    return re.sub(r"\D+", "", value or "")


def validate_cnpj(cnpj: str | None) -> bool:
    digits = _only_digits(cnpj)
    if len(digits) != 14:
        return False
    if digits == digits[0] * 14:
        return False

    def _calc_digit(digs: str) -> str:
        weights = list(range(len(digs) - 7, 1, -1)) + list(range(9, 1, -1))
        total = sum(int(char) * weight for char, weight in zip(digs, weights))
        remainder = total % 11
        return "0" if remainder < 2 else str(11 - remainder)

    first = _calc_digit(digits[:12])
    second = _calc_digit(digits[:12] + first)
    return digits[-2:] == first + second


def validate_phone(phone: str | None) -> bool:
    digits = _only_digits(phone)
    if len(digits) not in {10, 11}:
        return False
    if len(digits) == 11 and digits[2] != "9":
        return False
    return True


def normalize_cnpj(cnpj: str | None) -> str:
    return _only_digits(cnpj)


def normalize_phone(phone: str | None) -> str:
    return _only_digits(phone)
