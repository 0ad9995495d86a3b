import os
import logging
from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, joinedload
from dotenv import load_dotenv

# Librerías para Seguridad (JWT y Hashing de contraseñas)
from jose import JWTError, jwt
from passlib.context import CryptContext

import models
import database

load_dotenv()

logger = logging.getLogger(__name__)

# ==========================================
# CONFIGURACIÓN DE SEGURIDAD
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY", "Gimnasio_Security_Strong_Key_2025")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))  # 1 día

ROL_ADMIN = "Administrador"
ROL_ENTRENADOR = "Entrenador"
ROL_SOCIO = "Socio"

# sha256_crypt para hashes nuevos; bcrypt solo para verificar hashes antiguos.
pwd_context = CryptContext(
    schemes=["sha256_crypt", "bcrypt"],
    deprecated="auto",
    sha256_crypt__default_rounds=int(os.getenv("PASSWORD_HASH_ROUNDS", 535000)),
)

# Habilita el botón "Authorize" en /docs
auth_scheme = HTTPBearer()
# Para rutas públicas que cambian de comportamiento si viene un token
auth_opcional = HTTPBearer(auto_error=False)


class Principal:
    """Quién hace la petición, tal como lo describe el token."""

    def __init__(self, rol, usuario=None, socio=None):
        self.rol = rol
        self.usuario = usuario
        self.socio = socio

    @property
    def entrenador(self):
        return self.usuario.entrenador if self.usuario else None

    @property
    def es_admin(self):
        return self.rol == ROL_ADMIN


# --- Funciones de Seguridad Auxiliares ---
def verify_password(plain_password, hashed_password):
    """Verifica si la contraseña coincide con el hash guardado"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(str(plain_password).strip(), hashed_password)
    except ValueError as e:
        # Hash con formato desconocido
        logger.warning(f"Hash de contraseña no reconocido: {e}")
        return False


def get_password_hash(password):
    """Genera hash seguro para la contraseña usando sha256_crypt"""
    return pwd_context.hash(str(password).strip())


def create_access_token(data: dict):
    """Genera el token JWT"""
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def token_para_usuario(usuario):
    data = {"sub": usuario.email, "usuario_id": usuario.id, "rol": usuario.rol.nombre}
    if usuario.entrenador:
        data["entrenador_id"] = usuario.entrenador.id
    return create_access_token(data)


def token_para_socio(socio):
    return create_access_token({"sub": socio.email, "socio_id": socio.id, "rol": ROL_SOCIO})


# --- Dependencia para proteger Endpoints ---
def get_current_user(db: Session = Depends(database.get_db), auth: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Valida el token y recarga al usuario o socio desde la base de datos"""
    try:
        payload = jwt.decode(auth.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Sesión expirada o token corrupto")

    rol = payload.get("rol")
    if rol == ROL_SOCIO and payload.get("socio_id"):
        socio = db.query(models.Socio).filter(models.Socio.id == payload["socio_id"]).first()
        if not socio or socio.estado_socio != models.SOCIO_ACTIVO:
            raise HTTPException(status_code=401, detail="Socio no encontrado o inactivo")
        return Principal(ROL_SOCIO, socio=socio)

    if payload.get("usuario_id"):
        usuario = db.query(models.Usuario).options(
            joinedload(models.Usuario.rol),
            joinedload(models.Usuario.entrenador)
        ).filter(models.Usuario.id == payload["usuario_id"]).first()
        if not usuario or not usuario.activo:
            raise HTTPException(status_code=401, detail="Usuario no encontrado o inactivo")
        return Principal(usuario.rol.nombre, usuario=usuario)

    raise HTTPException(status_code=401, detail="Token inválido")


def get_optional_user(db: Session = Depends(database.get_db), auth: Optional[HTTPAuthorizationCredentials] = Depends(auth_opcional)):
    """Como get_current_user, pero sin token devuelve None en vez de 401"""
    if auth is None:
        return None
    return get_current_user(db, auth)


def require_roles(*roles):
    """Devuelve una dependencia que exige alguno de los roles indicados"""
    def checker(principal: Principal = Depends(get_current_user)):
        if principal.rol not in roles:
            raise HTTPException(status_code=403, detail="No tienes permisos para esta operación")
        return principal
    return checker


def get_current_entrenador(principal: Principal = Depends(require_roles(ROL_ENTRENADOR))):
    """Perfil de entrenador del token; 403 si el usuario no tiene uno"""
    if not principal.entrenador:
        raise HTTPException(status_code=403, detail="El usuario no tiene perfil de entrenador")
    return principal.entrenador


def get_current_socio(principal: Principal = Depends(require_roles(ROL_SOCIO))):
    return principal.socio
