from pydantic import BaseModel


class Msg(BaseModel):
    """Schema genérico para mensajes de respuesta."""
    msg: str


def no_nulo(v):
    """Para actualizaciones parciales: el campo puede omitirse, pero no enviarse como null."""
    if v is None:
        raise ValueError("El campo no puede ser nulo.")
    return v
