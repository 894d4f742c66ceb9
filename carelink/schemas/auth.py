from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class _PasswordConfirmation(BaseModel):
    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class RegisterRequest(_PasswordConfirmation):
    full_name: str = Field(min_length=2, max_length=100)
    email: EmailStr = Field(max_length=255)
    phone: str = Field(min_length=10, max_length=20)
    country: str = Field(min_length=2, max_length=100)
    password: str = Field(min_length=6, max_length=72)
    confirm_password: str

    @field_validator("full_name", "phone", "country", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(_PasswordConfirmation):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6, max_length=72)
    confirm_password: str
