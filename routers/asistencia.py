import logging
from datetime import datetime, date, timedelta
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
from security import require_roles, ROL_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/asistencia", tags=["Asistencia"], dependencies=[Depends(require_roles(ROL_ADMIN))])

DIAS_HISTORIAL = 30


def _inicio_del_dia(hoy=None):
    hoy = hoy or date.today()
    return datetime.combine(hoy, datetime.min.time())


def _visita_abierta(db: Session, socio_id: int):
    """Ingreso de hoy que aún no registra salida"""
    return db.query(models.Asistencia).filter(
        models.Asistencia.socio_id == socio_id,
        models.Asistencia.fecha_hora_ingreso >= _inicio_del_dia(),
        models.Asistencia.fecha_hora_salida == None
    ).order_by(models.Asistencia.fecha_hora_ingreso.desc()).first()


@router.get("/socios")
def get_socios_asistencia(db: Session = Depends(database.get_db)):
    socios = db.query(models.Socio).filter(
        models.Socio.estado_socio.in_([models.SOCIO_ACTIVO, models.SOCIO_SUSPENDIDO])
    ).all()

    abiertas = db.query(models.Asistencia).filter(
        models.Asistencia.fecha_hora_ingreso >= _inicio_del_dia(),
        models.Asistencia.fecha_hora_salida == None
    ).all()
    dentro = {a.socio_id: a for a in abiertas}

    # La última membresía de cada socio, sin importar su estado
    ultimas = {}
    for m in db.query(models.Membresia).options(joinedload(models.Membresia.plan)).order_by(
        models.Membresia.fecha_creacion, models.Membresia.id
    ).all():
        ultimas[m.socio_id] = m

    filas = []
    for s in socios:
        visita = dentro.get(s.id)
        m = ultimas.get(s.id)
        filas.append({
            "id": s.id,
            "rut": s.rut,
            "nombre_completo": s.nombre_completo,
            "estado_socio": s.estado_socio,
            "en_gimnasio": visita is not None,
            "hora_ingreso": visita.fecha_hora_ingreso if visita else None,
            "plan": m.plan.nombre_plan if m and m.plan else None,
            "estado_membresia": m.estado if m else None,
        })
    filas.sort(key=lambda f: (not f["en_gimnasio"], f["nombre_completo"]))
    return filas


@router.post("/marcar")
def marcar_asistencia(data: schemas.AsistenciaMarcar, db: Session = Depends(database.get_db)):
    tipo = data.tipo.lower()
    if tipo not in ("entrada", "salida"):
        raise HTTPException(status_code=400, detail="El tipo debe ser 'entrada' o 'salida'")

    socio = db.query(models.Socio).filter(models.Socio.id == data.socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    abierta = _visita_abierta(db, socio.id)
    if tipo == "entrada":
        if abierta:
            raise HTTPException(status_code=409, detail="El socio ya registró su ingreso hoy")
        visita = models.Asistencia(socio_id=socio.id, fecha_hora_ingreso=datetime.now())
        db.add(visita)
    else:
        if not abierta:
            raise HTTPException(status_code=409, detail="El socio no tiene un ingreso abierto hoy")
        visita = abierta
        visita.fecha_hora_salida = datetime.now()

    database.guardar_cambios(db, f"registrar la {tipo} del socio {socio.id}")
    db.refresh(visita)
    logger.info(f"Asistencia: {tipo} del socio {socio.id}")
    return {
        "status": "success",
        "id": visita.id,
        "tipo": tipo,
        "fecha_hora_ingreso": visita.fecha_hora_ingreso,
        "fecha_hora_salida": visita.fecha_hora_salida,
    }


@router.get("/historial/{socio_id}")
def get_historial(socio_id: int, db: Session = Depends(database.get_db)):
    socio = db.query(models.Socio).filter(models.Socio.id == socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    desde = _inicio_del_dia(date.today() - timedelta(days=DIAS_HISTORIAL))
    visitas = db.query(models.Asistencia).filter(
        models.Asistencia.socio_id == socio_id,
        models.Asistencia.fecha_hora_ingreso >= desde
    ).order_by(models.Asistencia.fecha_hora_ingreso.desc()).all()

    return [{
        "id": v.id,
        "fecha_hora_ingreso": v.fecha_hora_ingreso,
        "fecha_hora_salida": v.fecha_hora_salida,
        "minutos": int((v.fecha_hora_salida - v.fecha_hora_ingreso).total_seconds() // 60) if v.fecha_hora_salida else None,
    } for v in visitas]
