from sqlmodel import Field, SQLModel


class ProviderBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None


class Provider(ProviderBase, table=True):
    __tablename__ = "providers"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str


class ProviderCreate(SQLModel):
    email: str
    password: str
    full_name: str | None = None


class ProviderPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
