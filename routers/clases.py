import logging
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
import bookings
import notifications
from security import require_roles, ROL_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Clases"], dependencies=[Depends(require_roles(ROL_ADMIN))])


def clase_a_dict(c, ocupados=None):
    data = {
        "id": c.id,
        "nombre_clase": c.nombre_clase,
        "descripcion": c.descripcion,
        "entrenador_id": c.entrenador_id,
        "nombre_entrenador": c.entrenador.usuario.nombre_completo if c.entrenador and c.entrenador.usuario else None,
        "dia_semana": c.dia_semana,
        "hora_inicio": c.hora_inicio,
        "hora_fin": c.hora_fin,
        "cupo_maximo": c.cupo_maximo,
        "activa": c.activa,
        "tipo_clase": c.tipo_clase,
        "numero_semanas": c.numero_semanas,
        "fecha_inicio": c.fecha_inicio,
        "fecha_fin": c.fecha_fin,
        "categoria": c.categoria,
    }
    if ocupados is not None:
        data["cupos_ocupados"] = ocupados
        data["cupos_disponibles"] = max(c.cupo_maximo - ocupados, 0)
    return data


def validar_horario(dia_semana, hora_inicio, hora_fin):
    if dia_semana not in models.DIAS_SEMANA:
        raise HTTPException(status_code=400, detail=f"Día de la semana no válido: {dia_semana}")
    if hora_fin <= hora_inicio:
        raise HTTPException(status_code=400, detail="La hora de término debe ser posterior a la de inicio")


def rango_temporal(tipo_clase, numero_semanas, fecha_inicio):
    """Para clases temporales, la fecha de fin es inicio + 7 días por semana"""
    if tipo_clase != "Temporal":
        return None, None
    if not numero_semanas or numero_semanas <= 0:
        raise HTTPException(status_code=400, detail="Las clases temporales requieren número de semanas")
    inicio = fecha_inicio or date.today()
    return inicio, inicio + timedelta(days=7 * numero_semanas)


def _get_clase(db: Session, id: int):
    clase = db.query(models.Clase).options(
        joinedload(models.Clase.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.Clase.id == id).first()
    if not clase:
        raise HTTPException(status_code=404, detail="Clase no encontrada")
    return clase


# --- CLASES ---
@router.get("/clases")
def get_clases(db: Session = Depends(database.get_db)):
    """Clases activas agrupadas por nombre, horario y entrenador"""
    clases = db.query(models.Clase).options(
        joinedload(models.Clase.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.Clase.activa == True).order_by(models.Clase.nombre_clase, models.Clase.hora_inicio).all()

    grupos = {}
    for c in clases:
        key = (c.nombre_clase, c.hora_inicio, c.hora_fin, c.entrenador_id)
        if key not in grupos:
            grupo = clase_a_dict(c)
            grupo["ids"] = []
            grupo["dias_semana"] = []
            grupos[key] = grupo
        grupos[key]["ids"].append(c.id)
        grupos[key]["dias_semana"].append(c.dia_semana)

    for g in grupos.values():
        g["dias_semana"].sort(key=models.DIAS_SEMANA.index)
    return list(grupos.values())


@router.post("/clases", status_code=201)
def create_clase(data: schemas.ClaseCreate, db: Session = Depends(database.get_db)):
    if not data.dias_semana:
        raise HTTPException(status_code=400, detail="Debes indicar al menos un día")
    for dia in data.dias_semana:
        validar_horario(dia, data.hora_inicio, data.hora_fin)
    if data.cupo_maximo <= 0:
        raise HTTPException(status_code=400, detail="El cupo máximo debe ser mayor a 0")

    entrenador = db.query(models.Entrenador).filter(
        models.Entrenador.id == data.entrenador_id, models.Entrenador.activo == True
    ).first()
    if not entrenador:
        raise HTTPException(status_code=404, detail="Entrenador no encontrado")

    fecha_inicio, fecha_fin = rango_temporal(data.tipo_clase, data.numero_semanas, data.fecha_inicio)
    creadas = []
    for dia in data.dias_semana:
        clase = models.Clase(
            nombre_clase=data.nombre_clase,
            descripcion=data.descripcion,
            entrenador_id=entrenador.id,
            dia_semana=dia,
            hora_inicio=data.hora_inicio,
            hora_fin=data.hora_fin,
            cupo_maximo=data.cupo_maximo,
            tipo_clase=data.tipo_clase,
            numero_semanas=data.numero_semanas if fecha_fin else None,
            fecha_inicio=fecha_inicio,
            fecha_fin=fecha_fin,
            categoria=data.categoria,
        )
        db.add(clase)
        creadas.append(clase)

    notifications.notificar_entrenador(
        db, entrenador.id, "clase_asignada", "Nueva clase asignada",
        f"Se te asignó {data.nombre_clase} los días {', '.join(data.dias_semana)}"
    )
    database.guardar_cambios(db, "crear la clase")
    logger.info(f"Clase '{data.nombre_clase}' creada en {len(creadas)} días")
    return {"status": "success", "ids": [c.id for c in creadas]}


@router.get("/clases/{id}")
def get_clase(id: int, db: Session = Depends(database.get_db)):
    clase = _get_clase(db, id)
    ocupados = db.query(models.ReservaClase).filter(
        models.ReservaClase.clase_id == id,
        models.ReservaClase.estado == models.RESERVA_RESERVADA,
        models.ReservaClase.fecha_clase >= date.today()
    ).count()
    return clase_a_dict(clase, ocupados)


@router.put("/clases/{id}")
def update_clase(id: int, data: schemas.ClaseUpdate, db: Session = Depends(database.get_db)):
    clase = _get_clase(db, id)
    update_data = data.model_dump(exclude_unset=True)

    # Se edita una sola fila: se usa el primer día de la lista
    dias = update_data.pop("dias_semana", None)
    if dias:
        update_data["dia_semana"] = dias[0]
    validar_horario(
        update_data.get("dia_semana", clase.dia_semana),
        update_data.get("hora_inicio", clase.hora_inicio),
        update_data.get("hora_fin", clase.hora_fin),
    )
    if "entrenador_id" in update_data:
        if not db.query(models.Entrenador).filter(models.Entrenador.id == update_data["entrenador_id"]).first():
            raise HTTPException(status_code=404, detail="Entrenador no encontrado")

    for key, value in update_data.items():
        setattr(clase, key, value)
    database.guardar_cambios(db, f"actualizar la clase {id}")
    db.refresh(clase)
    return {"status": "success", "clase": clase_a_dict(clase)}


@router.delete("/clases/{id}")
def delete_clase(id: int, db: Session = Depends(database.get_db)):
    clase = _get_clase(db, id)
    clase.activa = False
    notifications.notificar_entrenador(
        db, clase.entrenador_id, "clase_eliminada", "Clase eliminada",
        f"La clase {clase.nombre_clase} del {clase.dia_semana} fue dada de baja"
    )
    database.guardar_cambios(db, f"desactivar la clase {id}")
    logger.info(f"Clase {id} desactivada")
    return {"status": "success"}


# --- RESERVAS DE CLASES ---
@router.get("/clases/{id}/reservas")
def get_reservas_clase(id: int, fecha: Optional[date] = None, db: Session = Depends(database.get_db)):
    _get_clase(db, id)
    query = db.query(models.ReservaClase).options(
        joinedload(models.ReservaClase.socio), joinedload(models.ReservaClase.clase)
    ).filter(models.ReservaClase.clase_id == id)
    if fecha:
        query = query.filter(models.ReservaClase.fecha_clase == fecha)
    reservas = query.order_by(models.ReservaClase.fecha_clase.desc(), models.ReservaClase.id).all()
    return [bookings.reserva_a_dict(r) for r in reservas]


@router.post("/clases/{id}/reservas", status_code=201)
def create_reserva_clase(id: int, data: schemas.ReservaAdminCreate, db: Session = Depends(database.get_db)):
    reserva = bookings.reservar_clase(db, id, data.socio_id, data.fecha_clase)
    return {"status": "success", "reserva": bookings.reserva_a_dict(reserva)}


def _get_reserva(db: Session, clase_id: int, reserva_id: int):
    reserva = db.query(models.ReservaClase).filter(
        models.ReservaClase.id == reserva_id, models.ReservaClase.clase_id == clase_id
    ).first()
    if not reserva:
        raise HTTPException(status_code=404, detail="Reserva no encontrada")
    return reserva


@router.put("/clases/{id}/reservas/{reserva_id}")
def update_reserva_estado(id: int, reserva_id: int, data: schemas.ReservaEstadoUpdate, db: Session = Depends(database.get_db)):
    if data.estado not in models.ESTADOS_RESERVA:
        raise HTTPException(status_code=400, detail="Estado de reserva no válido")
    reserva = _get_reserva(db, id, reserva_id)
    reserva.estado = data.estado
    database.guardar_cambios(db, f"actualizar la reserva {reserva_id}")
    db.refresh(reserva)
    return {"status": "success", "reserva": bookings.reserva_a_dict(reserva)}


@router.delete("/clases/{id}/reservas/{reserva_id}")
def cancel_reserva_clase(id: int, reserva_id: int, db: Session = Depends(database.get_db)):
    reserva = _get_reserva(db, id, reserva_id)
    if reserva.estado == models.RESERVA_CANCELADA:
        raise HTTPException(status_code=409, detail="La reserva ya está cancelada")
    reserva.estado = models.RESERVA_CANCELADA
    notifications.notificar_socio(
        db, reserva.socio_id, "reserva_cancelada", "Reserva cancelada",
        f"Tu reserva del {reserva.fecha_clase.isoformat()} fue cancelada por administración"
    )
    database.guardar_cambios(db, f"cancelar la reserva {reserva_id}")
    return {"status": "success"}


# --- CRONOGRAMA SEMANAL ---
@router.get("/cronograma", tags=["Cronograma"])
def get_cronograma(fecha: Optional[date] = None, db: Session = Depends(database.get_db)):
    fecha = fecha or date.today()
    lunes = fecha - timedelta(days=fecha.weekday())
    domingo = lunes + timedelta(days=6)

    clases = db.query(models.Clase).options(
        joinedload(models.Clase.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.Clase.activa == True).all()

    reservas = db.query(models.ReservaClase).filter(
        models.ReservaClase.estado == models.RESERVA_RESERVADA,
        models.ReservaClase.fecha_clase >= lunes,
        models.ReservaClase.fecha_clase <= domingo
    ).all()
    por_clase = {}
    for r in reservas:
        por_clase[r.clase_id] = por_clase.get(r.clase_id, 0) + 1

    clases.sort(key=lambda c: (models.DIAS_SEMANA.index(c.dia_semana) if c.dia_semana in models.DIAS_SEMANA else 7, c.hora_inicio))
    sesiones = db.query(models.SesionPersonal).options(
        joinedload(models.SesionPersonal.socio),
        joinedload(models.SesionPersonal.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(
        models.SesionPersonal.estado != models.SESION_CANCELADA,
        models.SesionPersonal.fecha_sesion >= lunes,
        models.SesionPersonal.fecha_sesion <= domingo
    ).order_by(models.SesionPersonal.fecha_sesion, models.SesionPersonal.hora_inicio).all()

    return {
        "semana_inicio": lunes,
        "semana_fin": domingo,
        "clases": [clase_a_dict(c, por_clase.get(c.id, 0)) for c in clases],
        "sesiones": [{
            "id": s.id,
            "fecha_sesion": s.fecha_sesion,
            "dia_semana": bookings.dia_de(s.fecha_sesion),
            "hora_inicio": s.hora_inicio,
            "hora_fin": s.hora_fin,
            "estado": s.estado,
            "nombre_socio": s.socio.nombre_completo if s.socio else None,
            "nombre_entrenador": s.entrenador.usuario.nombre_completo if s.entrenador and s.entrenador.usuario else None,
        } for s in sesiones],
    }
