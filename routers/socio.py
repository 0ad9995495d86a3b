import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
import bookings
import memberships
import notifications
from security import get_current_socio, verify_password, get_password_hash
from validations import validate_phone, format_rut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/socio", tags=["Portal Socio"])


# --- PERFIL ---
@router.get("/perfil")
def get_perfil(socio=Depends(get_current_socio)):
    return {
        "id": socio.id,
        "rut": format_rut(socio.rut),
        "nombre": socio.nombre,
        "apellido": socio.apellido,
        "email": socio.email,
        "telefono": socio.telefono,
        "fecha_nacimiento": socio.fecha_nacimiento,
        "direccion": socio.direccion,
        "codigo_qr": socio.codigo_qr,
        "estado_socio": socio.estado_socio,
        "requiere_cambio_password": bool(socio.requiere_cambio_password),
    }


@router.put("/perfil")
def update_perfil(data: schemas.PerfilSocioUpdate, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("telefono") and not validate_phone(update_data["telefono"]):
        raise HTTPException(status_code=400, detail="Teléfono inválido. Usa el formato 9XXXXXXXX")
    if update_data.get("email"):
        update_data["email"] = update_data["email"].strip().lower()
        if update_data["email"] != socio.email:
            if db.query(models.Socio).filter(models.Socio.email == update_data["email"]).first():
                raise HTTPException(status_code=400, detail="El email ya está registrado")

    for key, value in update_data.items():
        setattr(socio, key, value)
    database.guardar_cambios(db, "actualizar el perfil")
    return {"status": "success", "message": "Perfil actualizado correctamente"}


@router.put("/perfil/password")
def update_password(data: schemas.PasswordUpdate, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    if not verify_password(data.current_password, socio.password_hash):
        raise HTTPException(status_code=400, detail="La contraseña actual es incorrecta")
    if len(data.new_password or "") < 6:
        raise HTTPException(status_code=400, detail="La nueva contraseña debe tener al menos 6 caracteres")
    socio.password_hash = get_password_hash(data.new_password)
    socio.requiere_cambio_password = False
    database.guardar_cambios(db, "cambiar la contraseña")
    return {"status": "success", "message": "Contraseña actualizada correctamente"}


# --- MEMBRESÍA ---
@router.get("/membresia")
def get_mi_membresia(socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    m = memberships.membresia_abierta(db, socio.id)
    if not m:
        return None
    return {
        "id": m.id,
        "estado": m.estado,
        "fecha_inicio": m.fecha_inicio,
        "fecha_vencimiento": m.fecha_vencimiento,
        "dias_restantes": max((m.fecha_vencimiento - date.today()).days, 0),
        "monto_pagado": m.monto_pagado,
        "plan": {
            "id": m.plan.id,
            "nombre_plan": m.plan.nombre_plan,
            "descripcion": m.plan.descripcion,
            "precio": m.plan.precio,
            "duracion_dias": m.plan.duracion_dias,
            "beneficios": m.plan.beneficios,
        } if m.plan else None,
    }


@router.post("/membresia", status_code=201)
def comprar_membresia(data: schemas.CompraMembresia, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    pago = memberships.registrar_compra(db, socio, data.plan_id)
    return {"status": "success", "pago_id": pago.id, "monto": pago.monto_pago, "concepto": pago.concepto}


# --- CLASES ---
@router.get("/clases")
def get_clases_disponibles(socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    hoy = date.today()
    clases = db.query(models.Clase).options(
        joinedload(models.Clase.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.Clase.activa == True).all()
    clases.sort(key=lambda c: (models.DIAS_SEMANA.index(c.dia_semana) if c.dia_semana in models.DIAS_SEMANA else 7, c.hora_inicio))

    proximas = db.query(models.ReservaClase).filter(
        models.ReservaClase.estado == models.RESERVA_RESERVADA,
        models.ReservaClase.fecha_clase >= hoy
    ).all()
    conteo = {}
    for r in proximas:
        conteo[r.clase_id] = conteo.get(r.clase_id, 0) + 1

    mis_reservas = db.query(models.ReservaClase).options(joinedload(models.ReservaClase.clase)).filter(
        models.ReservaClase.socio_id == socio.id,
        models.ReservaClase.estado == models.RESERVA_RESERVADA,
        models.ReservaClase.fecha_clase >= hoy
    ).order_by(models.ReservaClase.fecha_clase).all()

    return {
        "clases": [{
            "id": c.id,
            "nombre_clase": c.nombre_clase,
            "descripcion": c.descripcion,
            "dia_semana": c.dia_semana,
            "hora_inicio": c.hora_inicio,
            "hora_fin": c.hora_fin,
            "cupo_maximo": c.cupo_maximo,
            "reservas_proximas": conteo.get(c.id, 0),
            "tipo_clase": c.tipo_clase,
            "fecha_inicio": c.fecha_inicio,
            "fecha_fin": c.fecha_fin,
            "nombre_entrenador": c.entrenador.usuario.nombre_completo if c.entrenador and c.entrenador.usuario else None,
        } for c in clases],
        "mis_reservas": [{
            "id": r.id,
            "clase_id": r.clase_id,
            "nombre_clase": r.clase.nombre_clase if r.clase else None,
            "fecha_clase": r.fecha_clase,
            "hora_inicio": r.clase.hora_inicio if r.clase else None,
            "estado": r.estado,
        } for r in mis_reservas],
    }


@router.post("/clases", status_code=201)
def reservar(data: schemas.ReservaSocioCreate, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    reserva = bookings.reservar_clase(db, data.clase_id, socio.id, data.fecha_clase)
    return {"status": "success", "reserva": bookings.reserva_a_dict(reserva)}


@router.delete("/clases/reservas/{reserva_id}")
def cancelar_reserva(reserva_id: int, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    reserva = db.query(models.ReservaClase).options(joinedload(models.ReservaClase.clase)).filter(
        models.ReservaClase.id == reserva_id
    ).first()
    if not reserva:
        raise HTTPException(status_code=404, detail="Reserva no encontrada")
    if reserva.socio_id != socio.id:
        raise HTTPException(status_code=403, detail="La reserva no te pertenece")
    if reserva.estado == models.RESERVA_CANCELADA:
        raise HTTPException(status_code=409, detail="La reserva ya está cancelada")

    reserva.estado = models.RESERVA_CANCELADA
    notifications.notificar_admin(
        db, "reserva_cancelada", "Reserva cancelada",
        f"{socio.nombre_completo} canceló {reserva.clase.nombre_clase if reserva.clase else 'una clase'} del {reserva.fecha_clase.isoformat()}"
    )
    database.guardar_cambios(db, f"cancelar la reserva {reserva_id}")
    logger.info(f"Socio {socio.id} canceló la reserva {reserva_id}")
    return {"status": "success"}


# --- SESIONES PERSONALES ---
def sesion_a_dict(s):
    return {
        "id": s.id,
        "entrenador_id": s.entrenador_id,
        "nombre_entrenador": s.entrenador.usuario.nombre_completo if s.entrenador and s.entrenador.usuario else None,
        "fecha_sesion": s.fecha_sesion,
        "hora_inicio": s.hora_inicio,
        "hora_fin": s.hora_fin,
        "estado": s.estado,
        "notas": s.notas,
    }


@router.get("/sesiones")
def get_mis_sesiones(socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    sesiones = db.query(models.SesionPersonal).options(
        joinedload(models.SesionPersonal.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.SesionPersonal.socio_id == socio.id).order_by(
        models.SesionPersonal.fecha_sesion.desc(), models.SesionPersonal.hora_inicio
    ).all()
    return [sesion_a_dict(s) for s in sesiones]


@router.post("/sesiones", status_code=201)
def agendar_sesion(data: schemas.SesionCreate, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    if data.hora_fin <= data.hora_inicio:
        raise HTTPException(status_code=400, detail="La hora de término debe ser posterior a la de inicio")
    if data.fecha_sesion < date.today():
        raise HTTPException(status_code=400, detail="No puedes agendar sesiones en fechas pasadas")

    entrenador = db.query(models.Entrenador).filter(
        models.Entrenador.id == data.entrenador_id, models.Entrenador.activo == True
    ).first()
    if not entrenador:
        raise HTTPException(status_code=400, detail="El entrenador no existe o está inactivo")

    del_dia = db.query(models.SesionPersonal).filter(
        models.SesionPersonal.entrenador_id == entrenador.id,
        models.SesionPersonal.fecha_sesion == data.fecha_sesion,
        models.SesionPersonal.estado != models.SESION_CANCELADA
    ).all()
    for s in del_dia:
        if bookings.se_solapan(data.hora_inicio, data.hora_fin, s.hora_inicio, s.hora_fin):
            raise HTTPException(status_code=400, detail="El entrenador ya tiene una sesión en ese horario")

    sesion = models.SesionPersonal(
        socio_id=socio.id,
        entrenador_id=entrenador.id,
        fecha_sesion=data.fecha_sesion,
        hora_inicio=data.hora_inicio,
        hora_fin=data.hora_fin,
        notas=data.notas,
    )
    db.add(sesion)
    notifications.notificar_entrenador(
        db, entrenador.id, "sesion_agendada", "Nueva sesión personal",
        f"{socio.nombre_completo} agendó una sesión el {data.fecha_sesion.isoformat()} a las {data.hora_inicio.strftime('%H:%M')}"
    )
    database.guardar_cambios(db, "agendar la sesión")
    db.refresh(sesion)
    logger.info(f"Sesión {sesion.id} agendada por socio {socio.id}")
    return {"status": "success", "sesion": sesion_a_dict(sesion)}


@router.delete("/sesiones/{id}")
def cancelar_sesion(id: int, socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    sesion = db.query(models.SesionPersonal).filter(models.SesionPersonal.id == id).first()
    if not sesion:
        raise HTTPException(status_code=404, detail="Sesión no encontrada")
    if sesion.socio_id != socio.id:
        raise HTTPException(status_code=403, detail="La sesión no te pertenece")
    if sesion.estado == models.SESION_CANCELADA:
        raise HTTPException(status_code=409, detail="La sesión ya está cancelada")

    sesion.estado = models.SESION_CANCELADA
    notifications.notificar_entrenador(
        db, sesion.entrenador_id, "sesion_cancelada", "Sesión cancelada",
        f"{socio.nombre_completo} canceló la sesión del {sesion.fecha_sesion.isoformat()}"
    )
    database.guardar_cambios(db, f"cancelar la sesión {id}")
    return {"status": "success"}


# --- PAGOS Y ENTRENADORES ---
@router.get("/pagos")
def get_mis_pagos(socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    pagos = db.query(models.Pago).filter(models.Pago.socio_id == socio.id).order_by(
        models.Pago.fecha_pago.desc(), models.Pago.id.desc()
    ).all()
    return [schemas.PagoResponse.model_validate(p) for p in pagos]


@router.get("/entrenadores")
def get_entrenadores(socio=Depends(get_current_socio), db: Session = Depends(database.get_db)):
    entrenadores = db.query(models.Entrenador).options(joinedload(models.Entrenador.usuario)).filter(
        models.Entrenador.activo == True
    ).all()
    return [{
        "id": e.id,
        "nombre_completo": e.usuario.nombre_completo if e.usuario else None,
        "especialidad": e.especialidad,
        "biografia": e.biografia,
        "foto_url": e.foto_url,
    } for e in entrenadores]
