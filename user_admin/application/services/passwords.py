import secrets
import string

from passlib.context import CryptContext

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = 12) -> str:
    """Random alphanumeric password from the system CSPRNG."""
    if length < 1:
        raise ValueError("Password length must be positive")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class BcryptPasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, plain: str) -> str:
        return self._context.hash(plain)

    def verify(self, plain: str, hashed: str) -> bool:
        return self._context.verify(plain, hashed)
