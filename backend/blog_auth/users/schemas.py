from pydantic import BaseModel, EmailStr

from blog_auth.users.model import Identity, IdentityStatus


class IdentityResponse(BaseModel):
    id: str
    name: str
    email: EmailStr
    phone: str | None = None
    image: str | None = None
    status: str = IdentityStatus.LOGGED_OUT.value

    class Config:
        from_attributes = True

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(**identity.public_view())
