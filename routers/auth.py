import logging
from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError

import models
import schemas
import database
from security import (
    verify_password, get_password_hash, token_para_usuario, token_para_socio,
    require_roles, get_optional_user, ROL_ADMIN, ROL_ENTRENADOR, ROL_SOCIO,
)
from validations import validate_rut, limpiar_rut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Autenticacion"])

MENSAJE_RESET = "Si el email está registrado, recibirás instrucciones para restablecer tu contraseña"


@router.post("/auth/login", response_model=schemas.TokenResponse)
def login(data: schemas.LoginRequest, db: Session = Depends(database.get_db)):
    email = data.email.strip().lower()

    # 1. Personal del gimnasio
    user = db.query(models.Usuario).options(
        joinedload(models.Usuario.rol),
        joinedload(models.Usuario.entrenador)
    ).filter(models.Usuario.email == email, models.Usuario.activo == True).first()

    if user:
        if not verify_password(data.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Credenciales inválidas")
        user.ultimo_acceso = datetime.now()
        database.guardar_cambios(db, "registrar el acceso")
        logger.info(f"Login de usuario {user.id} ({user.rol.nombre})")
        return {
            "access_token": token_para_usuario(user),
            "token_type": "bearer",
            "id": user.id,
            "nombre_completo": user.nombre_completo,
            "email": user.email,
            "rol": user.rol.nombre,
            "entrenador_id": user.entrenador.id if user.entrenador else None,
            "requiere_cambio_password": bool(user.requiere_cambio_password),
        }

    # 2. Socios
    socio = db.query(models.Socio).filter(
        models.Socio.email == email,
        models.Socio.estado_socio == models.SOCIO_ACTIVO
    ).first()
    if not socio or not verify_password(data.password, socio.password_hash):
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    logger.info(f"Login de socio {socio.id}")
    return {
        "access_token": token_para_socio(socio),
        "token_type": "bearer",
        "id": socio.id,
        "nombre_completo": socio.nombre_completo,
        "email": socio.email,
        "rol": ROL_SOCIO,
        "requiere_cambio_password": bool(socio.requiere_cambio_password),
    }


@router.post("/auth/register", status_code=201)
def register(data: schemas.RegisterRequest, principal=Depends(get_optional_user), db: Session = Depends(database.get_db)):
    """Alta abierta solo para socios; las cuentas de personal las crea un administrador"""
    requeridos = [data.nombre, data.apellido, data.email, data.nombre_usuario, data.password, data.rol_id]
    if any(v in (None, "") for v in requeridos):
        raise HTTPException(status_code=400, detail="Todos los campos son obligatorios")

    rol = db.query(models.Rol).filter(models.Rol.id == data.rol_id).first()
    if not rol:
        raise HTTPException(status_code=400, detail="Rol no válido")
    if rol.nombre != ROL_SOCIO and not (principal and principal.es_admin):
        raise HTTPException(status_code=403, detail="Solo un administrador puede registrar cuentas de personal")

    email = data.email.strip().lower()
    try:
        if rol.nombre == ROL_SOCIO:
            if db.query(models.Socio).filter(models.Socio.email == email).first():
                raise HTTPException(status_code=400, detail="El email ya está registrado")
            socio = models.Socio(
                # RUT provisorio: el socio debe completarlo desde su perfil
                rut=f"PENDIENTE-{int(datetime.now().timestamp() * 1000)}",
                nombre=data.nombre,
                apellido=data.apellido,
                email=email,
                telefono=data.telefono,
                password_hash=get_password_hash(data.password),
            )
            db.add(socio)
            db.commit()
            logger.info(f"Socio registrado: {socio.id}")
            return {"status": "success", "id": socio.id, "rol": rol.nombre}

        existe = db.query(models.Usuario).filter(
            (models.Usuario.email == email) | (models.Usuario.nombre_usuario == data.nombre_usuario)
        ).first()
        if existe:
            raise HTTPException(status_code=400, detail="El email o nombre de usuario ya está registrado")

        user = models.Usuario(
            rol_id=rol.id,
            nombre_usuario=data.nombre_usuario,
            email=email,
            password_hash=get_password_hash(data.password),
            nombre=data.nombre,
            apellido=data.apellido,
            telefono=data.telefono,
        )
        db.add(user)
        db.flush()
        if rol.nombre == ROL_ENTRENADOR:
            db.add(models.Entrenador(usuario_id=user.id))
        db.commit()
        logger.info(f"Usuario registrado: {user.id} ({rol.nombre})")
        return {"status": "success", "id": user.id, "rol": rol.nombre}

    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="El email o nombre de usuario ya está registrado")
    except Exception as e:
        db.rollback()
        logger.error(f"Error crítico al registrar cuenta: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al registrar la cuenta")


def _buscar_cuenta(db: Session, email: str):
    """Busca primero en usuarios y luego en socios"""
    email = email.strip().lower()
    user = db.query(models.Usuario).filter(models.Usuario.email == email).first()
    if user:
        return user
    return db.query(models.Socio).filter(models.Socio.email == email).first()


@router.post("/auth/change-password")
def change_password(data: schemas.ChangePasswordRequest, db: Session = Depends(database.get_db)):
    if len(data.new_password or "") < 6:
        raise HTTPException(status_code=400, detail="La nueva contraseña debe tener al menos 6 caracteres")

    cuenta = _buscar_cuenta(db, data.email)
    if not cuenta or not verify_password(data.current_password, cuenta.password_hash):
        raise HTTPException(status_code=401, detail="La contraseña actual es incorrecta")

    cuenta.password_hash = get_password_hash(data.new_password)
    cuenta.requiere_cambio_password = False
    database.guardar_cambios(db, "cambiar la contraseña")
    return {"status": "success", "message": "Contraseña actualizada correctamente"}


@router.post("/auth/reset-password")
def request_reset_password(data: schemas.ResetPasswordRequest):
    """Respuesta genérica: nunca revela si el email existe"""
    logger.info("Solicitud de restablecimiento de contraseña recibida")
    return {"status": "success", "message": MENSAJE_RESET}


@router.put("/auth/reset-password")
def admin_reset_password(
    data: schemas.AdminResetPasswordRequest,
    db: Session = Depends(database.get_db),
    _admin=Depends(require_roles(ROL_ADMIN)),
):
    if len(data.new_password or "") < 6:
        raise HTTPException(status_code=400, detail="La nueva contraseña debe tener al menos 6 caracteres")

    cuenta = _buscar_cuenta(db, data.email)
    if not cuenta:
        raise HTTPException(status_code=404, detail="El email no existe en el sistema")

    cuenta.password_hash = get_password_hash(data.new_password)
    cuenta.requiere_cambio_password = True
    database.guardar_cambios(db, "restablecer la contraseña")
    logger.info(f"Contraseña restablecida por administración para {data.email}")
    return {"status": "success", "message": "Contraseña actualizada correctamente"}


@router.post("/auth/validate-account")
def validate_account(data: schemas.ValidateAccountRequest, db: Session = Depends(database.get_db)):
    errors = {}
    tipo = (data.user_type or "").lower()

    if data.email:
        email = data.email.strip().lower()
        q_user = db.query(models.Usuario).filter(models.Usuario.email == email)
        q_socio = db.query(models.Socio).filter(models.Socio.email == email)
        if data.exclude_id and tipo == "usuario":
            q_user = q_user.filter(models.Usuario.id != data.exclude_id)
        if data.exclude_id and tipo == "socio":
            q_socio = q_socio.filter(models.Socio.id != data.exclude_id)
        if q_user.first() or q_socio.first():
            errors["email"] = "El email ya está registrado"

    if data.rut:
        if not validate_rut(data.rut):
            errors["rut"] = "RUT inválido"
        else:
            q_rut = db.query(models.Socio).filter(models.Socio.rut == limpiar_rut(data.rut))
            if data.exclude_id and tipo == "socio":
                q_rut = q_rut.filter(models.Socio.id != data.exclude_id)
            if q_rut.first():
                errors["rut"] = "El RUT ya está registrado"

    return {"valid": not errors, "errors": errors}


@router.get("/roles", response_model=List[schemas.RolResponse])
def get_roles(db: Session = Depends(database.get_db)):
    return db.query(models.Rol).order_by(models.Rol.id).all()
