"""
The `crypt` package provides the password utilities used by registration and
login.

Contents
--------
- passwords
    Utility module exposing the `PasswordManager` class:
        * `hash_password` — hashes plaintext passwords using bcrypt
        * `check_password` — verifies a plaintext password against a stored hash
        * `is_valid_password` — registration policy (8+ chars, a letter, a digit)
"""
