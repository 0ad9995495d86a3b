import logging
from datetime import date
from fastapi import HTTPException
from sqlalchemy.orm import Session

import models
import database
import memberships
import notifications

logger = logging.getLogger(__name__)

MEMBRESIA_INACTIVA = "MEMBRESIA_INACTIVA"
SIN_CUPO = "SIN_CUPO"
DUPLICADA = "DUPLICADA"
CLASE_NO_DISPONIBLE = "CLASE_NO_DISPONIBLE"


def dia_de(fecha: date):
    """Nombre del día de la semana en español"""
    return models.DIAS_SEMANA[fecha.weekday()]


def se_solapan(inicio, fin, otro_inicio, otro_fin):
    """Intervalos que solo se tocan en un extremo no se consideran solapados"""
    return inicio < otro_fin and fin > otro_inicio


def cupos_ocupados(db: Session, clase_id: int, fecha_clase: date):
    return db.query(models.ReservaClase).filter(
        models.ReservaClase.clase_id == clase_id,
        models.ReservaClase.fecha_clase == fecha_clase,
        models.ReservaClase.estado != models.RESERVA_CANCELADA
    ).count()


def fecha_valida_para(clase, fecha_clase: date, hoy: date):
    if fecha_clase < hoy:
        return False
    if dia_de(fecha_clase) != clase.dia_semana:
        return False
    if clase.tipo_clase == "Temporal":
        if clase.fecha_inicio and fecha_clase < clase.fecha_inicio:
            return False
        if clase.fecha_fin and fecha_clase > clase.fecha_fin:
            return False
    return True


def _rechazar(db: Session, mensaje, code, persistir):
    # Las notificaciones del rechazo se confirman antes de responder
    if persistir:
        database.guardar_cambios(db, "registrar el rechazo de la reserva")
    logger.warning(f"Reserva rechazada ({code}): {mensaje}")
    raise HTTPException(status_code=400, detail={"error": mensaje, "code": code})


def reservar_clase(db: Session, clase_id: int, socio_id: int, fecha_clase: date, hoy=None, persistir_rechazo=True):
    """
    Único punto de entrada para reservar una clase desde cualquier portal.
    Revisa, en orden: clase activa, fecha válida, membresía vigente,
    reserva duplicada y cupo disponible.
    """
    hoy = hoy or date.today()

    clase = db.query(models.Clase).filter(models.Clase.id == clase_id).first()
    if not clase:
        raise HTTPException(status_code=404, detail="Clase no encontrada")
    if not clase.activa:
        _rechazar(db, "La clase no está disponible", CLASE_NO_DISPONIBLE, False)

    if not fecha_valida_para(clase, fecha_clase, hoy):
        _rechazar(db, f"La clase se dicta los {clase.dia_semana}; la fecha elegida no es válida", CLASE_NO_DISPONIBLE, False)

    socio = db.query(models.Socio).filter(models.Socio.id == socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    if not memberships.membresia_activa(db, socio.id, hoy):
        notifications.notificar_admin(
            db, "reserva_rechazada", "Reserva sin membresía",
            f"{socio.nombre_completo} intentó reservar {clase.nombre_clase} sin membresía vigente"
        )
        notifications.notificar_socio(
            db, socio.id, "reserva_rechazada", "Membresía inactiva",
            f"No puedes reservar {clase.nombre_clase}: tu membresía no está vigente"
        )
        _rechazar(db, "El socio no tiene una membresía vigente", MEMBRESIA_INACTIVA, persistir_rechazo)

    duplicada = db.query(models.ReservaClase).filter(
        models.ReservaClase.clase_id == clase.id,
        models.ReservaClase.socio_id == socio.id,
        models.ReservaClase.fecha_clase == fecha_clase,
        models.ReservaClase.estado != models.RESERVA_CANCELADA
    ).first()
    if duplicada:
        notifications.notificar_admin(
            db, "reserva_duplicada", "Reserva duplicada",
            f"{socio.nombre_completo} ya tenía reservada {clase.nombre_clase} el {fecha_clase.isoformat()}"
        )
        _rechazar(db, "Ya existe una reserva para esta clase y fecha", DUPLICADA, persistir_rechazo)

    if cupos_ocupados(db, clase.id, fecha_clase) >= clase.cupo_maximo:
        notifications.notificar_admin(
            db, "clase_llena", "Clase sin cupos",
            f"{clase.nombre_clase} del {fecha_clase.isoformat()} alcanzó su cupo de {clase.cupo_maximo}"
        )
        _rechazar(db, "La clase no tiene cupos disponibles", SIN_CUPO, persistir_rechazo)

    reserva = models.ReservaClase(
        clase_id=clase.id,
        socio_id=socio.id,
        fecha_clase=fecha_clase,
        estado=models.RESERVA_RESERVADA,
    )
    db.add(reserva)
    db.flush()

    notifications.notificar_admin(
        db, "reserva_creada", "Nueva reserva",
        f"{socio.nombre_completo} reservó {clase.nombre_clase} para el {fecha_clase.isoformat()}"
    )
    notifications.notificar_socio(
        db, socio.id, "reserva_creada", "Reserva confirmada",
        f"Reservaste {clase.nombre_clase} el {fecha_clase.isoformat()} a las {clase.hora_inicio.strftime('%H:%M')}"
    )
    database.guardar_cambios(db, "guardar la reserva")
    db.refresh(reserva)
    logger.info(f"Reserva {reserva.id}: socio {socio.id} en clase {clase.id} el {fecha_clase}")
    return reserva


def reserva_a_dict(r):
    return {
        "id": r.id,
        "clase_id": r.clase_id,
        "socio_id": r.socio_id,
        "fecha_clase": r.fecha_clase,
        "estado": r.estado,
        "fecha_reserva": r.fecha_reserva,
        "nombre_socio": r.socio.nombre_completo if r.socio else None,
        "rut_socio": r.socio.rut if r.socio else None,
        "nombre_clase": r.clase.nombre_clase if r.clase else None,
    }
