from pydantic import BaseModel, EmailStr, field_validator


class CreateUserRequest(BaseModel):
    email: EmailStr
    name: str
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError('Name is required')
        return value

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if len(value) < 8:
            raise ValueError('Password must be at least 8 characters')
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str | None = None

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if value is not None and not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value


class LogoutRequest(BaseModel):
    logout_all: bool = False


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    avatar_url: str | None = None
    is_verified: bool
