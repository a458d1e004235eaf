import uuid

from pydantic import BaseModel


# Respuesta del endpoint de login
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# Datos contenidos dentro del JWT
class TokenPayload(BaseModel):
    sub: uuid.UUID
