from pydantic import BaseModel


class Owner(BaseModel):
    """The identity documents are stored under, anonymous or signed in."""

    id: str
    anonymous: bool = False
