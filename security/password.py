import bcrypt

BCRYPT_ROUNDS = 12

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or not plain_password:
        raise ValueError("Password must be a non-empty string")
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False

def password_problems(pw, min_len: int):
    """Returns a list of reasons the password is rejected (empty when acceptable)."""
    if not isinstance(pw, str):
        return ["Password must be a string"]
    problems = []
    if len(pw) < min_len:
        problems.append(f"Password must be at least {min_len} characters")
    if not any(c.isdigit() for c in pw) or not any(c.isalpha() for c in pw):
        problems.append("Password must include letters and numbers")
    return problems
