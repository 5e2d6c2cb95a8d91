from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
import re

class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    display_name: str | None = None
    approved: bool
    is_admin: bool


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int


class LoginResponse(Token):
    user: UserSummary


class OAuthTokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    refresh_token: str


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str 
    display_name: str | None = Field(default=None, max_length=255)
    
    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        """
        Password must be at least 8 characters and contain:
        - At least one letter
        - At least one digit
        """
        if len(value) < 8:
            raise ValueError('Password must be at least 8 characters')

        if not re.search(r'[A-Za-z]', value):
            raise ValueError('Password must contain at least one letter')


        if not re.search(r'\d', value):
            raise ValueError('Password must contain at least one digit')

        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshTokenRequest(BaseModel):
    # Optional so a missing token is answered with 400 rather than 422
    refresh_token: str | None = None
    
    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if value is None or not value.strip():
            return None
        return value.strip()

class RevokeTokenRequest(BaseModel):
    refresh_token: str | None = None

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if value is None or not value.strip():
            return None
        return value.strip()


class OAuthTokenRequest(BaseModel):
    grant_type: str | None = None
    code: str | None = None
    code_verifier: str | None = None
