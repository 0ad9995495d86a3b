import logging
from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import schemas
import database
import notifications
from security import require_roles, ROL_ADMIN

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin/pagos", tags=["Pagos"], dependencies=[Depends(require_roles(ROL_ADMIN))])
router = APIRouter(prefix="/api/pagos", tags=["Pagos"], dependencies=[Depends(require_roles(ROL_ADMIN))])

PLAN_NO_ASOCIADO = "Plan no asociado"


def _milisegundos():
    return int(datetime.now().timestamp() * 1000)


def pago_a_dict(p):
    return {
        "id": p.id,
        "socio_id": p.socio_id,
        "nombre_socio": p.socio.nombre_completo if p.socio else None,
        "membresia_id": p.membresia_id,
        "monto_pago": p.monto_pago,
        "medio_pago": p.medio_pago,
        "fecha_pago": p.fecha_pago,
        "concepto": p.concepto,
        "numero_comprobante": p.numero_comprobante,
        "estado": p.estado,
    }


# --- ADMINISTRACIÓN ---
@admin_router.get("")
def get_pagos(db: Session = Depends(database.get_db)):
    pagos = db.query(models.Pago).options(joinedload(models.Pago.socio)).order_by(
        models.Pago.fecha_pago.desc(), models.Pago.id.desc()
    ).all()
    return [pago_a_dict(p) for p in pagos]


@admin_router.post("", status_code=201)
def create_pago(data: schemas.PagoCreate, principal=Depends(require_roles(ROL_ADMIN)), db: Session = Depends(database.get_db)):
    if data.monto_pago <= 0:
        raise HTTPException(status_code=400, detail="El monto debe ser mayor a 0")
    socio = db.query(models.Socio).filter(models.Socio.id == data.socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")
    if data.membresia_id is not None:
        if not db.query(models.Membresia).filter(models.Membresia.id == data.membresia_id).first():
            raise HTTPException(status_code=404, detail="Membresía no encontrada")

    pago = models.Pago(
        socio_id=socio.id,
        membresia_id=data.membresia_id,
        monto_pago=data.monto_pago,
        medio_pago=data.medio_pago,
        concepto=data.concepto or "Pago registrado en recepción",
        usuario_registro=principal.usuario.id,
        numero_comprobante=f"COMP-{_milisegundos()}-{socio.id}",
    )
    db.add(pago)
    database.guardar_cambios(db, "registrar el pago")
    db.refresh(pago)
    logger.info(f"Pago {pago.id} registrado para socio {socio.id}")
    return {"status": "success", "pago": pago_a_dict(pago)}


# --- PROCESAMIENTO CON COMPROBANTE ---
@router.post("/procesar", status_code=201)
def procesar_pago(data: schemas.ProcesarPago, principal=Depends(require_roles(ROL_ADMIN)), db: Session = Depends(database.get_db)):
    if data.monto is None or data.monto <= 0:
        raise HTTPException(status_code=400, detail="El monto debe ser mayor a 0")

    socio = db.query(models.Socio).filter(models.Socio.id == data.socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    # Datos del plan: venta nueva, membresía existente o pago general
    nombre_plan, duracion, fecha_inicio, fecha_vencimiento = PLAN_NO_ASOCIADO, 0, None, None
    if data.plan_id is not None:
        plan = db.query(models.PlanMembresia).filter(models.PlanMembresia.id == data.plan_id).first()
        if not plan:
            raise HTTPException(status_code=404, detail="Plan no encontrado")
        nombre_plan, duracion = plan.nombre_plan, plan.duracion_dias
    elif data.membresia_id is not None:
        membresia = db.query(models.Membresia).options(joinedload(models.Membresia.plan)).filter(
            models.Membresia.id == data.membresia_id
        ).first()
        if not membresia:
            raise HTTPException(status_code=404, detail="Membresía no encontrada")
        if membresia.plan:
            nombre_plan, duracion = membresia.plan.nombre_plan, membresia.plan.duracion_dias
        fecha_inicio, fecha_vencimiento = membresia.fecha_inicio, membresia.fecha_vencimiento

    concepto = data.concepto or (f"Pago de Membresía: {nombre_plan}" if nombre_plan != PLAN_NO_ASOCIADO else "Pago general")
    try:
        pago = models.Pago(
            socio_id=socio.id,
            membresia_id=data.membresia_id,
            monto_pago=data.monto,
            medio_pago=data.medio_pago,
            concepto=concepto,
            usuario_registro=principal.usuario.id,
        )
        db.add(pago)
        db.flush()
        pago.numero_comprobante = f"COMP-{_milisegundos()}-{pago.id}"

        comprobante = models.Comprobante(
            pago_id=pago.id,
            socio_id=socio.id,
            membresia_id=data.membresia_id,
            numero_comprobante=pago.numero_comprobante,
            monto_pago=data.monto,
            medio_pago=data.medio_pago,
            nombre_socio=socio.nombre_completo,
            email_socio=socio.email,
            telefono_socio=socio.telefono,
            nombre_plan=nombre_plan,
            duracion_plan=duracion,
            fecha_inicio=fecha_inicio,
            fecha_vencimiento=fecha_vencimiento,
            concepto=concepto,
            usuario_registro=principal.usuario.id,
            estado="Emitido",
        )
        db.add(comprobante)
        notifications.notificar_socio(
            db, socio.id, "pago_registrado", "Pago registrado",
            f"Recibimos tu pago de ${data.monto:,.0f}. Comprobante {pago.numero_comprobante}"
        )
        db.commit()
        db.refresh(comprobante)
    except Exception as e:
        db.rollback()
        logger.error(f"Error al procesar el pago: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al procesar el pago")

    logger.info(f"Pago {comprobante.pago_id} procesado con comprobante {comprobante.numero_comprobante}")
    return {
        "status": "success",
        "pago_id": comprobante.pago_id,
        "comprobante": schemas.ComprobanteResponse.model_validate(comprobante),
    }


@router.get("", response_model=List[schemas.ComprobanteResponse])
def get_comprobantes(db: Session = Depends(database.get_db)):
    return db.query(models.Comprobante).order_by(
        models.Comprobante.fecha_emision.desc(), models.Comprobante.id.desc()
    ).all()


@router.get("/{pago_id}")
def get_pago(pago_id: int, db: Session = Depends(database.get_db)):
    pago = db.query(models.Pago).options(
        joinedload(models.Pago.socio),
        joinedload(models.Pago.membresia).joinedload(models.Membresia.plan)
    ).filter(models.Pago.id == pago_id).first()
    if not pago:
        raise HTTPException(status_code=404, detail="Pago no encontrado")

    m = pago.membresia
    data = pago_a_dict(pago)
    data.update({
        "rut_socio": pago.socio.rut if pago.socio else None,
        "email_socio": pago.socio.email if pago.socio else None,
        "nombre_plan": m.plan.nombre_plan if m and m.plan else PLAN_NO_ASOCIADO,
        "fecha_inicio": m.fecha_inicio if m else None,
        "fecha_vencimiento": m.fecha_vencimiento if m else None,
        "estado_membresia": m.estado if m else None,
    })
    return data
