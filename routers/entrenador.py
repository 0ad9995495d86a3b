import logging
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
import bookings
import notifications
from security import get_current_entrenador
from routers.clases import clase_a_dict, validar_horario, rango_temporal
from routers.socios import socio_a_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entrenador", tags=["Entrenador"])

TIPO_PERSONAL = "Personal"
TIPO_GRUPAL = "Grupal"


def _tipo_de(clase):
    return TIPO_PERSONAL if clase.cupo_maximo == 1 else TIPO_GRUPAL


def _clase_propia(db: Session, id: int, entrenador):
    clase = db.query(models.Clase).filter(models.Clase.id == id).first()
    if not clase:
        raise HTTPException(status_code=404, detail="Clase no encontrada")
    if clase.entrenador_id != entrenador.id:
        raise HTTPException(status_code=403, detail="La clase no te pertenece")
    return clase


def _ocupados_desde_hoy(db: Session, clase_id: int):
    return db.query(models.ReservaClase).filter(
        models.ReservaClase.clase_id == clase_id,
        models.ReservaClase.estado == models.RESERVA_RESERVADA,
        models.ReservaClase.fecha_clase >= date.today()
    ).count()


def _verificar_solape(db: Session, entrenador, dia_semana, hora_inicio, hora_fin, excluir_id=None):
    clases = db.query(models.Clase).filter(
        models.Clase.entrenador_id == entrenador.id,
        models.Clase.dia_semana == dia_semana,
        models.Clase.activa == True
    ).all()
    for c in clases:
        if c.id != excluir_id and bookings.se_solapan(hora_inicio, hora_fin, c.hora_inicio, c.hora_fin):
            raise HTTPException(status_code=409, detail=f"Se solapa con tu clase {c.nombre_clase} del {c.dia_semana}")


# --- PERFIL ---
@router.get("/profile")
def get_profile(entrenador=Depends(get_current_entrenador)):
    u = entrenador.usuario
    return {
        "id": entrenador.id,
        "usuario_id": u.id,
        "nombre": u.nombre,
        "apellido": u.apellido,
        "nombre_completo": u.nombre_completo,
        "email": u.email,
        "telefono": u.telefono,
        "especialidad": entrenador.especialidad,
        "certificaciones": entrenador.certificaciones,
        "biografia": entrenador.biografia,
        "foto_url": entrenador.foto_url,
    }


# --- CLASES PROPIAS ---
@router.get("/clases")
def get_mis_clases(entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    clases = db.query(models.Clase).filter(
        models.Clase.entrenador_id == entrenador.id,
        models.Clase.activa == True
    ).all()
    clases.sort(key=lambda c: (models.DIAS_SEMANA.index(c.dia_semana) if c.dia_semana in models.DIAS_SEMANA else 7, c.hora_inicio))
    resultado = []
    for c in clases:
        data = clase_a_dict(c, _ocupados_desde_hoy(db, c.id))
        data["tipo"] = _tipo_de(c)
        resultado.append(data)
    return resultado


@router.post("/clases", status_code=201)
def create_mi_clase(data: schemas.EntrenadorClaseCreate, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    validar_horario(data.dia_semana, data.hora_inicio, data.hora_fin)
    if data.tipo not in (TIPO_PERSONAL, TIPO_GRUPAL):
        raise HTTPException(status_code=400, detail="El tipo debe ser Personal o Grupal")
    _verificar_solape(db, entrenador, data.dia_semana, data.hora_inicio, data.hora_fin)

    personal = data.tipo == TIPO_PERSONAL
    if personal and data.socio_id and not data.fecha_inicio:
        raise HTTPException(status_code=400, detail="Indica la fecha de la sesión personal")
    if not personal and data.cupo_maximo <= 0:
        raise HTTPException(status_code=400, detail="El cupo máximo debe ser mayor a 0")

    fecha_inicio, fecha_fin = rango_temporal(data.tipo_clase, data.numero_semanas, data.fecha_inicio)
    clase = models.Clase(
        nombre_clase=data.nombre_clase,
        descripcion=data.descripcion,
        entrenador_id=entrenador.id,
        dia_semana=data.dia_semana,
        hora_inicio=data.hora_inicio,
        hora_fin=data.hora_fin,
        cupo_maximo=1 if personal else data.cupo_maximo,
        tipo_clase=data.tipo_clase,
        numero_semanas=data.numero_semanas if fecha_fin else None,
        fecha_inicio=fecha_inicio or data.fecha_inicio,
        fecha_fin=fecha_fin,
        categoria=data.categoria,
    )
    db.add(clase)
    db.flush()

    reserva = None
    if personal and data.socio_id:
        try:
            reserva = bookings.reservar_clase(db, clase.id, data.socio_id, data.fecha_inicio, persistir_rechazo=False)
        except HTTPException:
            # Sin reserva no se crea la clase personal
            db.rollback()
            raise
    else:
        database.guardar_cambios(db, "crear la clase")

    db.refresh(clase)
    logger.info(f"Entrenador {entrenador.id} creó la clase {clase.id} ({data.tipo})")
    return {
        "status": "success",
        "clase": clase_a_dict(clase),
        "reserva_id": reserva.id if reserva else None,
    }


@router.get("/clases/{id}")
def get_mi_clase(id: int, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    clase = _clase_propia(db, id, entrenador)
    data = clase_a_dict(clase, _ocupados_desde_hoy(db, clase.id))
    data["tipo"] = _tipo_de(clase)
    return data


@router.put("/clases/{id}")
def update_mi_clase(id: int, data: schemas.EntrenadorClaseUpdate, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    clase = _clase_propia(db, id, entrenador)
    update_data = data.model_dump(exclude_unset=True)
    socio_id = update_data.pop("socio_id", None)

    dia = update_data.get("dia_semana", clase.dia_semana)
    inicio = update_data.get("hora_inicio", clase.hora_inicio)
    fin = update_data.get("hora_fin", clase.hora_fin)
    validar_horario(dia, inicio, fin)
    _verificar_solape(db, entrenador, dia, inicio, fin, excluir_id=clase.id)

    for key, value in update_data.items():
        setattr(clase, key, value)

    # Clase personal: la reserva vigente pasa al nuevo socio o a la nueva fecha
    if _tipo_de(clase) == TIPO_PERSONAL and (socio_id or "fecha_inicio" in update_data):
        actual = db.query(models.ReservaClase).filter(
            models.ReservaClase.clase_id == clase.id,
            models.ReservaClase.estado == models.RESERVA_RESERVADA
        ).first()
        nuevo_socio = socio_id or (actual.socio_id if actual else None)
        if nuevo_socio and clase.fecha_inicio:
            if actual:
                actual.estado = models.RESERVA_CANCELADA
                db.flush()
            try:
                bookings.reservar_clase(db, clase.id, nuevo_socio, clase.fecha_inicio, persistir_rechazo=False)
            except HTTPException:
                db.rollback()
                raise
            db.refresh(clase)
            return {"status": "success", "clase": clase_a_dict(clase)}

    database.guardar_cambios(db, f"actualizar la clase {id}")
    db.refresh(clase)
    return {"status": "success", "clase": clase_a_dict(clase)}


@router.delete("/clases/{id}")
def delete_mi_clase(id: int, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    clase = _clase_propia(db, id, entrenador)
    db.delete(clase)  # las reservas se eliminan en cascada
    database.guardar_cambios(db, f"eliminar la clase {id}")
    logger.info(f"Entrenador {entrenador.id} eliminó la clase {id}")
    return {"status": "success"}


@router.get("/clases/{id}/reservas")
def get_reservas_mi_clase(id: int, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    _clase_propia(db, id, entrenador)
    reservas = db.query(models.ReservaClase).options(
        joinedload(models.ReservaClase.socio), joinedload(models.ReservaClase.clase)
    ).filter(models.ReservaClase.clase_id == id).order_by(models.ReservaClase.fecha_clase.desc()).all()
    return [bookings.reserva_a_dict(r) for r in reservas]


@router.post("/clases/{id}/reservas", status_code=201)
def inscribir_socio(id: int, data: schemas.ReservaAdminCreate, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    clase = _clase_propia(db, id, entrenador)
    reserva = bookings.reservar_clase(db, clase.id, data.socio_id, data.fecha_clase)
    notifications.notificar_entrenador(
        db, entrenador.id, "socio_inscrito", "Socio inscrito",
        f"{reserva.socio.nombre_completo} quedó inscrito en {clase.nombre_clase} el {data.fecha_clase.isoformat()}"
    )
    database.guardar_cambios(db, "notificar la inscripción")
    return {"status": "success", "reserva": bookings.reserva_a_dict(reserva)}


# --- SESIONES PERSONALES ---
@router.get("/sesiones")
def get_mis_sesiones(entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    sesiones = db.query(models.SesionPersonal).options(joinedload(models.SesionPersonal.socio)).filter(
        models.SesionPersonal.entrenador_id == entrenador.id,
        models.SesionPersonal.estado.in_([models.SESION_AGENDADA, models.SESION_CONFIRMADA]),
        models.SesionPersonal.fecha_sesion >= date.today()
    ).order_by(models.SesionPersonal.fecha_sesion, models.SesionPersonal.hora_inicio).all()
    return [{
        "id": s.id,
        "socio_id": s.socio_id,
        "nombre_socio": s.socio.nombre_completo if s.socio else None,
        "fecha_sesion": s.fecha_sesion,
        "dia_semana": bookings.dia_de(s.fecha_sesion),
        "hora_inicio": s.hora_inicio,
        "hora_fin": s.hora_fin,
        "estado": s.estado,
        "notas": s.notas,
    } for s in sesiones]


@router.get("/horario")
def get_horario_semanal(fecha: Optional[date] = None, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    """
    Agenda de lunes a domingo de la semana que contiene la fecha (hoy por
    defecto): sesiones personales y clases activas con su fecha concreta.
    """
    fecha = fecha or date.today()
    lunes = fecha - timedelta(days=fecha.weekday())
    domingo = lunes + timedelta(days=6)

    sesiones = db.query(models.SesionPersonal).options(joinedload(models.SesionPersonal.socio)).filter(
        models.SesionPersonal.entrenador_id == entrenador.id,
        models.SesionPersonal.fecha_sesion >= lunes,
        models.SesionPersonal.fecha_sesion <= domingo
    ).order_by(models.SesionPersonal.fecha_sesion, models.SesionPersonal.hora_inicio).all()

    clases = []
    for c in db.query(models.Clase).filter(
        models.Clase.entrenador_id == entrenador.id,
        models.Clase.activa == True
    ).all():
        if c.dia_semana not in models.DIAS_SEMANA:
            continue
        dia = lunes + timedelta(days=models.DIAS_SEMANA.index(c.dia_semana))
        if bookings.fecha_valida_para(c, dia, lunes):
            clases.append((dia, c))
    clases.sort(key=lambda x: (x[0], x[1].hora_inicio))

    return {
        "semana_inicio": lunes,
        "semana_fin": domingo,
        "sesiones_personales": [{
            "id": s.id,
            "fecha": s.fecha_sesion,
            "dia_semana": bookings.dia_de(s.fecha_sesion),
            "hora_inicio": s.hora_inicio,
            "hora_fin": s.hora_fin,
            "estado": s.estado,
            "notas": s.notas,
            "nombre_socio": s.socio.nombre_completo if s.socio else None,
        } for s in sesiones],
        "clases": [{
            "id": c.id,
            "nombre_clase": c.nombre_clase,
            "tipo": _tipo_de(c),
            "fecha": dia,
            "dia_semana": c.dia_semana,
            "hora_inicio": c.hora_inicio,
            "hora_fin": c.hora_fin,
            "cupos_disponibles": c.cupo_maximo - bookings.cupos_ocupados(db, c.id, dia),
        } for dia, c in clases],
    }


# --- SOCIOS ---
@router.get("/socios")
def get_socios(search: Optional[str] = None, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    if search is not None:
        termino = search.strip()
        if len(termino) < 3:
            raise HTTPException(status_code=400, detail="La búsqueda requiere al menos 3 caracteres")
        patron = f"%{termino}%"
        socios = db.query(models.Socio).filter(
            models.Socio.estado_socio == models.SOCIO_ACTIVO,
            or_(models.Socio.nombre.ilike(patron), models.Socio.apellido.ilike(patron), models.Socio.email.ilike(patron))
        ).order_by(models.Socio.apellido).limit(20).all()
        return [{
            "id": s.id,
            "nombre_completo": s.nombre_completo,
            "email": s.email,
            "rut": s.rut,
        } for s in socios]

    reservas = db.query(models.ReservaClase).join(models.Clase).options(
        joinedload(models.ReservaClase.socio)
    ).filter(models.Clase.entrenador_id == entrenador.id).all()

    resumen = {}
    for r in reservas:
        fila = resumen.setdefault(r.socio_id, {
            "id": r.socio_id,
            "nombre_completo": r.socio.nombre_completo,
            "email": r.socio.email,
            "total_reservas": 0,
            "asistencias": 0,
        })
        if r.estado != models.RESERVA_CANCELADA:
            fila["total_reservas"] += 1
        if r.estado == models.RESERVA_ASISTIO:
            fila["asistencias"] += 1

    if resumen:
        vigentes = db.query(models.Membresia).options(joinedload(models.Membresia.plan)).filter(
            models.Membresia.socio_id.in_(list(resumen.keys())),
            models.Membresia.estado == models.MEMBRESIA_VIGENTE
        ).all()
        for m in vigentes:
            resumen[m.socio_id]["plan"] = m.plan.nombre_plan if m.plan else None
    for fila in resumen.values():
        fila.setdefault("plan", None)
    return sorted(resumen.values(), key=lambda f: f["nombre_completo"])


@router.get("/socios/perfil/{socio_id}")
def get_perfil_socio(socio_id: int, entrenador=Depends(get_current_entrenador), db: Session = Depends(database.get_db)):
    socio = db.query(models.Socio).filter(models.Socio.id == socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    # La más reciente, esté o no vigente
    membresia = db.query(models.Membresia).options(joinedload(models.Membresia.plan)).filter(
        models.Membresia.socio_id == socio.id
    ).order_by(models.Membresia.fecha_vencimiento.desc(), models.Membresia.fecha_creacion.desc()).first()

    pagos = db.query(models.Pago).options(joinedload(models.Pago.registrado_por)).filter(
        models.Pago.socio_id == socio.id
    ).order_by(models.Pago.fecha_pago.desc(), models.Pago.id.desc()).limit(10).all()

    reservas = db.query(models.ReservaClase).options(
        joinedload(models.ReservaClase.clase).joinedload(models.Clase.entrenador).joinedload(models.Entrenador.usuario)
    ).filter(models.ReservaClase.socio_id == socio.id).order_by(
        models.ReservaClase.fecha_clase.desc(), models.ReservaClase.id.desc()
    ).limit(10).all()

    perfil = socio_a_dict(socio, membresia)
    if membresia and membresia.plan:
        perfil["membresia"]["precio_plan"] = membresia.plan.precio
        perfil["membresia"]["monto_pagado"] = membresia.monto_pagado
    perfil["historial_pagos"] = [{
        "monto_pago": p.monto_pago,
        "fecha_pago": p.fecha_pago,
        "medio_pago": p.medio_pago,
        "concepto": p.concepto,
        "registrado_por": p.registrado_por.nombre_completo if p.registrado_por else None,
    } for p in pagos]
    perfil["historial_reservas"] = [{
        "fecha_clase": r.fecha_clase,
        "estado": r.estado,
        "nombre_clase": r.clase.nombre_clase if r.clase else None,
        "entrenador": r.clase.entrenador.usuario.nombre_completo if r.clase and r.clase.entrenador else None,
    } for r in reservas]
    return perfil
