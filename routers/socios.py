import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError

import models
import schemas
import database
import memberships
from security import get_password_hash, verify_password, require_roles, ROL_ADMIN, ROL_ENTRENADOR
from validations import validate_rut, validate_phone, limpiar_rut, format_rut, format_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_roles(ROL_ADMIN))])


def password_temporal(nombre):
    return f"{nombre.strip().lower()}123"


def socio_a_dict(s, membresia=None):
    return {
        "id": s.id,
        "rut": format_rut(s.rut),
        "nombre": s.nombre,
        "apellido": s.apellido,
        "nombre_completo": s.nombre_completo,
        "email": s.email,
        "telefono": format_phone(s.telefono) if s.telefono else None,
        "fecha_nacimiento": s.fecha_nacimiento,
        "direccion": s.direccion,
        "codigo_qr": s.codigo_qr,
        "estado_socio": s.estado_socio,
        "fecha_registro": s.fecha_registro,
        "membresia": {
            "id": membresia.id,
            "plan": membresia.plan.nombre_plan if membresia.plan else None,
            "estado": membresia.estado,
            "fecha_inicio": membresia.fecha_inicio,
            "fecha_vencimiento": membresia.fecha_vencimiento,
        } if membresia else None,
    }


def _validar_contacto(rut=None, telefono=None):
    if rut is not None and not validate_rut(rut):
        raise HTTPException(status_code=400, detail="RUT inválido")
    if telefono and not validate_phone(telefono):
        raise HTTPException(status_code=400, detail="Teléfono inválido. Usa el formato 9XXXXXXXX")


# --- SOCIOS ---
@router.get("/socios", tags=["Socios"])
def get_socios(db: Session = Depends(database.get_db)):
    socios = db.query(models.Socio).filter(
        models.Socio.estado_socio != models.SOCIO_INACTIVO
    ).order_by(models.Socio.apellido, models.Socio.nombre).all()

    vigentes = db.query(models.Membresia).options(joinedload(models.Membresia.plan)).filter(
        models.Membresia.estado == models.MEMBRESIA_VIGENTE
    ).all()
    por_socio = {m.socio_id: m for m in vigentes}
    return [socio_a_dict(s, por_socio.get(s.id)) for s in socios]


@router.post("/socios", status_code=201, tags=["Socios"])
def create_socio(data: schemas.SocioCreate, db: Session = Depends(database.get_db)):
    _validar_contacto(data.rut, data.telefono)
    rut = limpiar_rut(data.rut)
    email = data.email.strip().lower()

    if db.query(models.Socio).filter(models.Socio.rut == rut).first():
        raise HTTPException(status_code=400, detail="El RUT ya se encuentra registrado")
    if db.query(models.Socio).filter(models.Socio.email == email).first():
        raise HTTPException(status_code=400, detail="El email ya se encuentra registrado")

    temporal = password_temporal(data.nombre)
    socio = models.Socio(
        rut=rut,
        nombre=data.nombre,
        apellido=data.apellido,
        email=email,
        telefono=data.telefono,
        fecha_nacimiento=data.fecha_nacimiento,
        direccion=data.direccion,
        codigo_qr=f"QR-{rut}-{int(datetime.now().timestamp() * 1000)}",
        password_hash=get_password_hash(temporal),
        requiere_cambio_password=True,
    )
    try:
        db.add(socio)
        db.commit()
        db.refresh(socio)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="El RUT o Email ya se encuentra registrado")
    except Exception as e:
        db.rollback()
        logger.error(f"Error crítico al crear socio: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al crear el socio")

    logger.info(f"Socio creado: {socio.id}")
    return {"status": "success", "socio": socio_a_dict(socio), "password_temporal": temporal}


@router.put("/socios/{id}", tags=["Socios"])
def update_socio(id: int, data: schemas.SocioUpdate, db: Session = Depends(database.get_db)):
    socio = db.query(models.Socio).filter(models.Socio.id == id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    # Solo se tocan los campos enviados
    update_data = data.model_dump(exclude_unset=True)
    _validar_contacto(update_data.get("rut"), update_data.get("telefono"))

    if "rut" in update_data:
        update_data["rut"] = limpiar_rut(update_data["rut"])
        if update_data["rut"] != socio.rut:
            if db.query(models.Socio).filter(models.Socio.rut == update_data["rut"]).first():
                raise HTTPException(status_code=400, detail="El RUT ya pertenece a otro socio")
    if update_data.get("email"):
        update_data["email"] = update_data["email"].strip().lower()
        if update_data["email"] != socio.email:
            if db.query(models.Socio).filter(models.Socio.email == update_data["email"]).first():
                raise HTTPException(status_code=400, detail="El email ya pertenece a otro socio")

    for key, value in update_data.items():
        setattr(socio, key, value)

    database.guardar_cambios(db, f"actualizar el socio {id}")
    db.refresh(socio)
    return {"status": "success", "socio": socio_a_dict(socio, memberships.membresia_abierta(db, socio.id))}


@router.delete("/socios/{id}", tags=["Socios"])
def delete_socio(id: int, db: Session = Depends(database.get_db)):
    socio = db.query(models.Socio).filter(models.Socio.id == id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")
    socio.estado_socio = models.SOCIO_INACTIVO
    database.guardar_cambios(db, f"desactivar el socio {id}")
    logger.info(f"Socio {id} marcado como inactivo")
    return {"status": "success"}


# --- ENTRENADORES ---
def entrenador_a_dict(e):
    u = e.usuario
    return {
        "id": e.id,
        "usuario_id": e.usuario_id,
        "nombre": u.nombre if u else None,
        "apellido": u.apellido if u else None,
        "nombre_completo": u.nombre_completo if u else None,
        "email": u.email if u else None,
        "telefono": u.telefono if u else None,
        "especialidad": e.especialidad,
        "certificaciones": e.certificaciones,
        "biografia": e.biografia,
        "foto_url": e.foto_url,
        "activo": e.activo,
    }


@router.get("/entrenadores", tags=["Entrenadores"])
def get_entrenadores(db: Session = Depends(database.get_db)):
    entrenadores = db.query(models.Entrenador).options(joinedload(models.Entrenador.usuario)).filter(
        models.Entrenador.activo == True
    ).all()
    return [entrenador_a_dict(e) for e in entrenadores]


@router.post("/entrenadores", status_code=201, tags=["Entrenadores"])
def create_entrenador(data: schemas.EntrenadorCreate, db: Session = Depends(database.get_db)):
    if data.telefono and not validate_phone(data.telefono):
        raise HTTPException(status_code=400, detail="Teléfono inválido. Usa el formato 9XXXXXXXX")
    rol = db.query(models.Rol).filter(models.Rol.nombre == ROL_ENTRENADOR).first()
    if not rol:
        raise HTTPException(status_code=500, detail="Rol Entrenador no encontrado")

    email = data.email.strip().lower()
    nombre_usuario = data.nombre_usuario or email.split("@")[0]
    if db.query(models.Usuario).filter(
        (models.Usuario.email == email) | (models.Usuario.nombre_usuario == nombre_usuario)
    ).first():
        raise HTTPException(status_code=400, detail="El email o nombre de usuario ya está registrado")

    temporal = password_temporal(data.nombre)
    try:
        user = models.Usuario(
            rol_id=rol.id,
            nombre_usuario=nombre_usuario,
            email=email,
            password_hash=get_password_hash(temporal),
            nombre=data.nombre,
            apellido=data.apellido,
            telefono=data.telefono,
            requiere_cambio_password=True,
        )
        db.add(user)
        db.flush()
        entrenador = models.Entrenador(
            usuario_id=user.id,
            especialidad=data.especialidad,
            certificaciones=data.certificaciones,
            biografia=data.biografia,
            foto_url=data.foto_url,
        )
        db.add(entrenador)
        db.commit()
        db.refresh(entrenador)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="El email o nombre de usuario ya está registrado")
    except Exception as e:
        db.rollback()
        logger.error(f"Error crítico al crear entrenador: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al crear el entrenador")

    logger.info(f"Entrenador creado: {entrenador.id}")
    return {"status": "success", "entrenador": entrenador_a_dict(entrenador), "password_temporal": temporal}


@router.put("/entrenadores/{id}", tags=["Entrenadores"])
def update_entrenador(id: int, data: schemas.EntrenadorUpdate, db: Session = Depends(database.get_db)):
    entrenador = db.query(models.Entrenador).options(joinedload(models.Entrenador.usuario)).filter(
        models.Entrenador.id == id
    ).first()
    if not entrenador:
        raise HTTPException(status_code=404, detail="Entrenador no encontrado")

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("telefono") and not validate_phone(update_data["telefono"]):
        raise HTTPException(status_code=400, detail="Teléfono inválido. Usa el formato 9XXXXXXXX")
    if update_data.get("email"):
        update_data["email"] = update_data["email"].strip().lower()
        if update_data["email"] != entrenador.usuario.email:
            if db.query(models.Usuario).filter(models.Usuario.email == update_data["email"]).first():
                raise HTTPException(status_code=400, detail="El email ya pertenece a otro usuario")

    # Campos de usuario y de perfil viven en tablas distintas
    for key, value in update_data.items():
        if key in ("nombre", "apellido", "email", "telefono"):
            setattr(entrenador.usuario, key, value)
        else:
            setattr(entrenador, key, value)

    database.guardar_cambios(db, f"actualizar el entrenador {id}")
    db.refresh(entrenador)
    return {"status": "success", "entrenador": entrenador_a_dict(entrenador)}


@router.delete("/entrenadores/{id}", tags=["Entrenadores"])
def delete_entrenador(id: int, db: Session = Depends(database.get_db)):
    entrenador = db.query(models.Entrenador).filter(models.Entrenador.id == id).first()
    if not entrenador:
        raise HTTPException(status_code=404, detail="Entrenador no encontrado")
    entrenador.activo = False
    if entrenador.usuario:
        entrenador.usuario.activo = False
    database.guardar_cambios(db, f"desactivar el entrenador {id}")
    logger.info(f"Entrenador {id} desactivado")
    return {"status": "success"}


# --- PERFIL DEL ADMINISTRADOR ---
def _perfil_admin(u):
    return {
        "id": u.id,
        "nombre": u.nombre,
        "apellido": u.apellido,
        "nombre_completo": u.nombre_completo,
        "email": u.email,
        "telefono": u.telefono,
    }


@router.get("/perfil", tags=["Perfil"])
def get_perfil_admin(principal=Depends(require_roles(ROL_ADMIN))):
    return _perfil_admin(principal.usuario)


@router.put("/perfil", tags=["Perfil"])
def update_perfil_admin(data: schemas.PerfilAdminUpdate, principal=Depends(require_roles(ROL_ADMIN)), db: Session = Depends(database.get_db)):
    user = principal.usuario
    update_data = data.model_dump(exclude_unset=True)
    current_password = update_data.pop("current_password", None)
    new_password = update_data.pop("new_password", None)

    # El cambio de contraseña exige la actual
    if new_password:
        if not current_password or not verify_password(current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="La contraseña actual es incorrecta")
        if len(new_password) < 6:
            raise HTTPException(status_code=400, detail="La nueva contraseña debe tener al menos 6 caracteres")

    _validar_contacto(telefono=update_data.get("telefono"))
    if update_data.get("email"):
        update_data["email"] = update_data["email"].strip().lower()
        if update_data["email"] != user.email:
            if db.query(models.Usuario).filter(models.Usuario.email == update_data["email"]).first():
                raise HTTPException(status_code=400, detail="El email ya está registrado")

    for key, value in update_data.items():
        setattr(user, key, value)
    if new_password:
        user.password_hash = get_password_hash(new_password)
        user.requiere_cambio_password = False

    database.guardar_cambios(db, "actualizar el perfil del administrador")
    db.refresh(user)
    logger.info(f"Administrador {user.id} actualizó su perfil")
    return {"status": "success", "perfil": _perfil_admin(user)}
