from models.users import User
from models.refresh_tokens import RefreshToken
from models.blacklisted_tokens import BlacklistedToken
from models.access_requests import AccessRequest

__all__ = ["User", "RefreshToken", "BlacklistedToken", "AccessRequest"]
