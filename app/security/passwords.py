from pwdlib import PasswordHash


password_hasher = PasswordHash.recommended()

# Verified against when the username is unknown so both rejections cost the same.
_UNKNOWN_USER_HASH = password_hasher.hash("crusher-ledger-unknown-user")


def hash_password(raw_password: str) -> str:
    return password_hasher.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        password_hasher.verify(raw_password, _UNKNOWN_USER_HASH)
        return False
    return password_hasher.verify(raw_password, hashed_password)
