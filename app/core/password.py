import bcrypt
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verifica una contraseña plana contra su hash bcrypt.

    Las cuentas sin contraseña (alta por login social) nunca verifican.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError as e:
        # bcrypt.checkpw lanza ValueError si el hash almacenado no es válido
        logger.error(f"Error verificando password (posiblemente hash inválido): {e}")
        return False


def get_password_hash(password: str) -> str:
    """Genera el hash bcrypt de una contraseña, como string para almacenarlo."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')
