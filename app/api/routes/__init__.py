from fastapi import APIRouter

# Importar los routers individuales de cada módulo
from . import auth, usuarios, modulos, submodulos, permisos, auditoria

# Crear el router principal de la API
api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(usuarios.router, prefix="/usuarios", tags=["Usuarios"])
api_router.include_router(modulos.router, prefix="/modulos", tags=["Módulos"])
api_router.include_router(submodulos.router, prefix="/submodulos", tags=["Submódulos"])
api_router.include_router(permisos.router, prefix="/permisos", tags=["Permisos"])
api_router.include_router(auditoria.router, prefix="/auditoria", tags=["Auditoría"])
