import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
import bookings
import notifications
from security import require_roles, get_current_entrenador, ROL_ADMIN

logger = logging.getLogger(__name__)

# Turnos de recepción (administración) e intercambios entre entrenadores
admin_router = APIRouter(prefix="/api/admin/recepcion", tags=["Recepcion"], dependencies=[Depends(require_roles(ROL_ADMIN))])
entrenador_router = APIRouter(prefix="/api/entrenador/intercambios", tags=["Intercambios"])


def _orden_dia(dia):
    return models.DIAS_SEMANA.index(dia) if dia in models.DIAS_SEMANA else 7


def horario_a_dict(h):
    u = h.entrenador.usuario if h.entrenador else None
    return {
        "id": h.id,
        "entrenador_id": h.entrenador_id,
        "nombre_entrenador": u.nombre_completo if u else None,
        "dia_semana": h.dia_semana,
        "hora_inicio": h.hora_inicio,
        "hora_fin": h.hora_fin,
        "activo": h.activo,
    }


def _horarios_activos(db: Session):
    horarios = db.query(models.HorarioRecepcion).options(
        joinedload(models.HorarioRecepcion.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.HorarioRecepcion.activo == True).all()
    horarios.sort(key=lambda h: (_orden_dia(h.dia_semana), h.hora_inicio))
    return horarios


# --- ADMINISTRACIÓN ---
@admin_router.get("")
def get_recepcion(db: Session = Depends(database.get_db)):
    entrenadores = db.query(models.Entrenador).options(joinedload(models.Entrenador.usuario)).filter(
        models.Entrenador.activo == True
    ).all()
    return {
        "horarios": [horario_a_dict(h) for h in _horarios_activos(db)],
        "entrenadores": [{
            "id": e.id,
            "nombre_completo": e.usuario.nombre_completo if e.usuario else None,
        } for e in entrenadores],
    }


@admin_router.post("", status_code=201)
def create_horario(data: schemas.HorarioRecepcionCreate, db: Session = Depends(database.get_db)):
    if data.dia_semana not in models.DIAS_SEMANA:
        raise HTTPException(status_code=400, detail="Día de la semana no válido")
    if data.hora_fin <= data.hora_inicio:
        raise HTTPException(status_code=400, detail="La hora de término debe ser posterior a la de inicio")

    entrenador = db.query(models.Entrenador).filter(
        models.Entrenador.id == data.entrenador_id, models.Entrenador.activo == True
    ).first()
    if not entrenador:
        raise HTTPException(status_code=400, detail="El entrenador no existe o está inactivo")

    # Recepción es un único puesto: no se solapa con ningún otro turno ese día
    turnos_dia = db.query(models.HorarioRecepcion).filter(
        models.HorarioRecepcion.dia_semana == data.dia_semana,
        models.HorarioRecepcion.activo == True
    ).all()
    for t in turnos_dia:
        if bookings.se_solapan(data.hora_inicio, data.hora_fin, t.hora_inicio, t.hora_fin):
            raise HTTPException(status_code=400, detail="El turno se solapa con otro turno de recepción")

    clases_dia = db.query(models.Clase).filter(
        models.Clase.entrenador_id == entrenador.id,
        models.Clase.dia_semana == data.dia_semana,
        models.Clase.activa == True
    ).all()
    for c in clases_dia:
        if bookings.se_solapan(data.hora_inicio, data.hora_fin, c.hora_inicio, c.hora_fin):
            raise HTTPException(status_code=400, detail=f"El entrenador dicta {c.nombre_clase} en ese horario")

    horario = models.HorarioRecepcion(
        entrenador_id=entrenador.id,
        dia_semana=data.dia_semana,
        hora_inicio=data.hora_inicio,
        hora_fin=data.hora_fin,
    )
    db.add(horario)
    notifications.notificar_entrenador(
        db, entrenador.id, "recepcion_asignada", "Turno de recepción asignado",
        f"Tienes recepción los {data.dia_semana} de {data.hora_inicio.strftime('%H:%M')} a {data.hora_fin.strftime('%H:%M')}"
    )
    database.guardar_cambios(db, "asignar el turno de recepción")
    db.refresh(horario)
    logger.info(f"Turno de recepción {horario.id} asignado al entrenador {entrenador.id}")
    return {"status": "success", "horario": horario_a_dict(horario)}


@admin_router.delete("/{id}")
def delete_horario(id: int, db: Session = Depends(database.get_db)):
    horario = db.query(models.HorarioRecepcion).filter(models.HorarioRecepcion.id == id).first()
    if not horario:
        raise HTTPException(status_code=404, detail="Turno no encontrado")

    pendiente = db.query(models.IntercambioHorario).filter(
        models.IntercambioHorario.estado == models.INTERCAMBIO_PENDIENTE,
        (models.IntercambioHorario.horario_origen_id == id) | (models.IntercambioHorario.horario_destino_id == id)
    ).first()
    if pendiente:
        raise HTTPException(status_code=409, detail="El turno tiene un intercambio pendiente")

    horario.activo = False
    database.guardar_cambios(db, f"eliminar el turno {id}")
    logger.info(f"Turno de recepción {id} dado de baja")
    return {"status": "success"}


# --- INTERCAMBIOS ENTRE ENTRENADORES ---
def intercambio_a_dict(i):
    return {
        "id": i.id,
        "entrenador_origen_id": i.entrenador_origen_id,
        "entrenador_destino_id": i.entrenador_destino_id,
        "horario_origen": horario_a_dict(i.horario_origen) if i.horario_origen else None,
        "horario_destino": horario_a_dict(i.horario_destino) if i.horario_destino else None,
        "estado": i.estado,
        "fecha_solicitud": i.fecha_solicitud,
        "fecha_respuesta": i.fecha_respuesta,
    }


@entrenador_router.get("")
def get_intercambios(entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    horarios = _horarios_activos(db)
    pendientes = db.query(models.IntercambioHorario).filter(
        models.IntercambioHorario.estado == models.INTERCAMBIO_PENDIENTE,
        (models.IntercambioHorario.entrenador_origen_id == entrenador.id) |
        (models.IntercambioHorario.entrenador_destino_id == entrenador.id)
    ).order_by(models.IntercambioHorario.fecha_solicitud.desc()).all()

    return {
        "mis_horarios": [horario_a_dict(h) for h in horarios if h.entrenador_id == entrenador.id],
        "otros_horarios": [horario_a_dict(h) for h in horarios if h.entrenador_id != entrenador.id],
        "solicitudes_recibidas": [intercambio_a_dict(i) for i in pendientes if i.entrenador_destino_id == entrenador.id],
        "solicitudes_enviadas": [intercambio_a_dict(i) for i in pendientes if i.entrenador_origen_id == entrenador.id],
    }


@entrenador_router.post("", status_code=201)
def solicitar_intercambio(data: schemas.IntercambioCreate, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    activos = db.query(models.HorarioRecepcion).filter(models.HorarioRecepcion.activo == True)
    origen = activos.filter(models.HorarioRecepcion.id == data.horario_origen_id).first()
    destino = activos.filter(models.HorarioRecepcion.id == data.horario_destino_id).first()
    if not origen or not destino:
        raise HTTPException(status_code=404, detail="Turno no encontrado")
    if origen.entrenador_id != entrenador.id:
        raise HTTPException(status_code=403, detail="El turno de origen no te pertenece")
    if destino.entrenador_id == entrenador.id:
        raise HTTPException(status_code=400, detail="El turno de destino debe ser de otro entrenador")

    solicitud = models.IntercambioHorario(
        entrenador_origen_id=entrenador.id,
        entrenador_destino_id=destino.entrenador_id,
        horario_origen_id=origen.id,
        horario_destino_id=destino.id,
        estado=models.INTERCAMBIO_PENDIENTE,
    )
    db.add(solicitud)
    notifications.notificar_entrenador(
        db, destino.entrenador_id, "intercambio_solicitado", "Solicitud de intercambio",
        f"{entrenador.usuario.nombre_completo} quiere cambiar su turno del {origen.dia_semana} por tu turno del {destino.dia_semana}"
    )
    database.guardar_cambios(db, "solicitar el intercambio")
    db.refresh(solicitud)
    logger.info(f"Intercambio {solicitud.id} solicitado por entrenador {entrenador.id}")
    return {"status": "success", "intercambio": intercambio_a_dict(solicitud)}


@entrenador_router.put("/{id}")
def responder_intercambio(id: int, data: schemas.IntercambioRespuesta, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    accion = data.accion.lower()
    if accion not in ("aceptar", "rechazar"):
        raise HTTPException(status_code=400, detail="La acción debe ser 'aceptar' o 'rechazar'")

    solicitud = db.query(models.IntercambioHorario).options(
        joinedload(models.IntercambioHorario.horario_origen),
        joinedload(models.IntercambioHorario.horario_destino)
    ).filter(models.IntercambioHorario.id == id).first()
    if not solicitud:
        raise HTTPException(status_code=404, detail="Solicitud no encontrada")
    if solicitud.entrenador_destino_id != entrenador.id:
        raise HTTPException(status_code=403, detail="Solo el entrenador destinatario puede responder")
    if solicitud.estado != models.INTERCAMBIO_PENDIENTE:
        raise HTTPException(status_code=409, detail="La solicitud ya fue respondida")

    solicitud.fecha_respuesta = datetime.now()
    if accion == "aceptar":
        origen, destino = solicitud.horario_origen, solicitud.horario_destino
        origen.entrenador_id, destino.entrenador_id = destino.entrenador_id, origen.entrenador_id
        solicitud.estado = models.INTERCAMBIO_APROBADO
        notifications.notificar_admin(
            db, "intercambio_aprobado", "Intercambio de recepción",
            f"Se intercambiaron los turnos {origen.id} ({origen.dia_semana}) y {destino.id} ({destino.dia_semana})"
        )
    else:
        solicitud.estado = models.INTERCAMBIO_RECHAZADO
        notifications.notificar_entrenador(
            db, solicitud.entrenador_origen_id, "intercambio_rechazado", "Intercambio rechazado",
            f"{entrenador.usuario.nombre_completo} rechazó tu solicitud de intercambio"
        )

    database.guardar_cambios(db, f"responder el intercambio {id}")
    db.refresh(solicitud)
    logger.info(f"Intercambio {id}: {solicitud.estado}")
    return {"status": "success", "intercambio": intercambio_a_dict(solicitud)}
