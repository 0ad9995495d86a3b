import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import models
import schemas
import database
import memberships
from security import require_roles, ROL_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/membresias",
    tags=["Membresias"],
    dependencies=[Depends(require_roles(ROL_ADMIN))],
)


def membresia_a_dict(m):
    return {
        "id": m.id,
        "socio_id": m.socio_id,
        "plan_id": m.plan_id,
        "nombre_plan": m.plan.nombre_plan if m.plan else None,
        "fecha_inicio": m.fecha_inicio,
        "fecha_vencimiento": m.fecha_vencimiento,
        "estado": m.estado,
        "monto_pagado": m.monto_pagado,
        "fecha_suspension": m.fecha_suspension,
        "dias_suspension": m.dias_suspension,
        "motivo_estado": m.motivo_estado,
    }


def _validar_oferta(tipo_plan, descuento):
    if tipo_plan not in (models.PLAN_NORMAL, models.PLAN_OFERTA):
        raise HTTPException(status_code=400, detail="Tipo de plan no válido")
    if descuento is not None and (descuento < 0 or descuento >= 100):
        raise HTTPException(status_code=400, detail="El descuento debe estar entre 0 y 99")


# --- PLANES ---
@router.get("", response_model=List[schemas.PlanResponse])
def get_planes(db: Session = Depends(database.get_db)):
    return db.query(models.PlanMembresia).order_by(models.PlanMembresia.precio).all()


@router.post("", status_code=201, response_model=schemas.PlanResponse)
def create_plan(data: schemas.PlanCreate, db: Session = Depends(database.get_db)):
    _validar_oferta(data.tipo_plan, data.descuento)
    if data.precio <= 0 or data.duracion_dias <= 0:
        raise HTTPException(status_code=400, detail="Precio y duración deben ser mayores a 0")

    plan = models.PlanMembresia(**data.model_dump())
    db.add(plan)
    database.guardar_cambios(db, "crear el plan")
    db.refresh(plan)
    logger.info(f"Plan creado: {plan.id} ({plan.nombre_plan})")
    return plan


@router.put("/{id}", response_model=schemas.PlanResponse)
def update_plan(id: int, data: schemas.PlanUpdate, db: Session = Depends(database.get_db)):
    plan = db.query(models.PlanMembresia).filter(models.PlanMembresia.id == id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado")

    update_data = data.model_dump(exclude_unset=True)
    _validar_oferta(update_data.get("tipo_plan", plan.tipo_plan), update_data.get("descuento"))
    for key, value in update_data.items():
        setattr(plan, key, value)

    database.guardar_cambios(db, f"actualizar el plan {id}")
    db.refresh(plan)
    return plan


@router.delete("/{id}")
def delete_plan(id: int, db: Session = Depends(database.get_db)):
    plan = db.query(models.PlanMembresia).filter(models.PlanMembresia.id == id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado")
    plan.activo = False
    database.guardar_cambios(db, f"desactivar el plan {id}")
    return {"status": "success"}


# --- CICLO DE VIDA ---
@router.post("/asignar", status_code=201)
def asignar_membresia(data: schemas.AsignarMembresia, db: Session = Depends(database.get_db)):
    m = memberships.asignar(db, data.socio_id, data.plan_id, data.pago_id)
    return {"status": "success", "membresia": membresia_a_dict(m)}


@router.post("/pausar")
def pausar_membresia(data: schemas.PausarMembresia, db: Session = Depends(database.get_db)):
    m = memberships.pausar(db, data.socio_id, data.dias, data.motivo)
    return {"status": "success", "membresia": membresia_a_dict(m)}


@router.post("/reanudar")
def reanudar_membresia(data: schemas.ReanudarMembresia, db: Session = Depends(database.get_db)):
    m = memberships.reanudar(db, data.socio_id, data.extender_vencimiento)
    return {"status": "success", "membresia": membresia_a_dict(m)}


@router.post("/cancelar")
def cancelar_membresia(data: schemas.CancelarMembresia, db: Session = Depends(database.get_db)):
    m = memberships.cancelar(db, data.socio_id, data.motivo)
    return {"status": "success", "membresia": membresia_a_dict(m)}


@router.post("/expire-offer", response_model=schemas.PlanResponse)
def expire_offer(data: schemas.ExpireOfferRequest, db: Session = Depends(database.get_db)):
    return memberships.expirar_oferta(db, data.plan_id)


@router.post("/expirar")
def expirar_membresias(db: Session = Depends(database.get_db)):
    resultado = memberships.expirar_vencidas(db)
    return {"status": "success", **resultado}
