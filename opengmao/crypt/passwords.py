import bcrypt
import re


class PasswordManager:
    """
    Utility class for password hashing and password policy checks.

    Methods
    -------
    hash_password(text: str) -> str
        Hashes a plaintext password using bcrypt with a generated salt.
    check_password(plain_text: str, hashed: str) -> bool
        Verifies a plaintext password against a stored bcrypt hash.
    is_valid_password(password: str) -> bool
        Validates the password policy used at registration:
        - At least 8 characters
        - At least one letter
        - At least one digit
    """

    def hash_password(self, text: str) -> str:
        """
        Hash a plaintext password using bcrypt.

        Parameters
        ----------
        text : str
            The plaintext password.

        Returns
        -------
        str
            The bcrypt-hashed password (UTF-8 decoded).
        """
        hashed = bcrypt.hashpw(text.encode("utf-8"), bcrypt.gensalt())
        return hashed.decode("utf-8")

    def check_password(self, plain_text: str, hashed: str) -> bool:
        """
        Verify if a plaintext password matches a stored hash.

        Returns
        -------
        bool
            True if the password matches, False otherwise (including a
            malformed stored hash).
        """
        try:
            return bcrypt.checkpw(plain_text.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def is_valid_password(self, password: str) -> bool:
        if len(password) < 8:
            return False
        has_letter = re.search(r"[A-Za-z]", password)
        has_digit = re.search(r"\d", password)
        return all([has_letter, has_digit])
