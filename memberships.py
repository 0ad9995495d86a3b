import logging
from datetime import date, timedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

import models
import database
import notifications

logger = logging.getLogger(__name__)

SUFIJO_PENDIENTE = " - PENDIENTE DE ASIGNACIÓN"


def membresia_abierta(db: Session, socio_id: int):
    """Membresía Vigente o Suspendida del socio (a lo sumo hay una)"""
    return db.query(models.Membresia).options(joinedload(models.Membresia.plan)).filter(
        models.Membresia.socio_id == socio_id,
        models.Membresia.estado.in_(models.MEMBRESIAS_ABIERTAS)
    ).order_by(models.Membresia.fecha_creacion.desc(), models.Membresia.id.desc()).first()


def _ultima_con_estado(db: Session, socio_id: int, estados):
    return db.query(models.Membresia).filter(
        models.Membresia.socio_id == socio_id,
        models.Membresia.estado.in_(estados)
    ).order_by(models.Membresia.fecha_creacion.desc(), models.Membresia.id.desc()).first()


def membresia_activa(db: Session, socio_id: int, hoy=None):
    """Membresía Vigente que no ha vencido; requisito para reservar"""
    hoy = hoy or date.today()
    return db.query(models.Membresia).filter(
        models.Membresia.socio_id == socio_id,
        models.Membresia.estado == models.MEMBRESIA_VIGENTE,
        models.Membresia.fecha_vencimiento >= hoy
    ).first()


def registrar_compra(db: Session, socio, plan_id: int):
    """Paso 1 de la compra: deja un pago pendiente de asignación"""
    plan = db.query(models.PlanMembresia).filter(
        models.PlanMembresia.id == plan_id,
        models.PlanMembresia.activo == True
    ).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado o inactivo")

    pago = models.Pago(
        socio_id=socio.id,
        monto_pago=plan.precio,
        medio_pago="Online",
        concepto=f"Pago de Membresía: {plan.nombre_plan}{SUFIJO_PENDIENTE}",
    )
    db.add(pago)
    db.flush()
    notifications.notificar_admin(
        db, "compra_membresia", "Compra de membresía",
        f"{socio.nombre_completo} pagó el plan {plan.nombre_plan}; falta asignarlo"
    )
    database.guardar_cambios(db, "registrar la compra")
    db.refresh(pago)
    logger.info(f"Pago {pago.id} registrado para socio {socio.id}, plan {plan.id}")
    return pago


def asignar(db: Session, socio_id, plan_id, pago_id, hoy=None):
    """Activa una membresía a partir de un pago ya registrado"""
    if not socio_id or not plan_id or not pago_id:
        raise HTTPException(status_code=400, detail="socio_id, plan_id y pago_id son obligatorios")

    plan = db.query(models.PlanMembresia).filter(models.PlanMembresia.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado")
    pago = db.query(models.Pago).filter(models.Pago.id == pago_id).first()
    if not pago:
        raise HTTPException(status_code=404, detail="Pago no encontrado")
    socio = db.query(models.Socio).filter(models.Socio.id == socio_id).first()
    if not socio:
        raise HTTPException(status_code=404, detail="Socio no encontrado")

    if pago.socio_id != socio.id:
        raise HTTPException(status_code=400, detail="El pago no pertenece a este socio")
    if pago.membresia_id is not None:
        raise HTTPException(status_code=409, detail="El pago ya está asociado a una membresía")
    if membresia_abierta(db, socio.id):
        raise HTTPException(status_code=409, detail="El socio ya tiene una membresía vigente o suspendida")

    hoy = hoy or date.today()
    membresia = models.Membresia(
        socio_id=socio.id,
        plan_id=plan.id,
        fecha_inicio=hoy,
        fecha_vencimiento=hoy + timedelta(days=plan.duracion_dias),
        estado=models.MEMBRESIA_VIGENTE,
        monto_pagado=pago.monto_pago,
    )
    db.add(membresia)
    db.flush()

    pago.membresia_id = membresia.id
    if pago.concepto and pago.concepto.endswith(SUFIJO_PENDIENTE):
        pago.concepto = pago.concepto[:-len(SUFIJO_PENDIENTE)]
    if socio.estado_socio == models.SOCIO_INACTIVO:
        socio.estado_socio = models.SOCIO_ACTIVO

    notifications.notificar_socio(
        db, socio.id, "membresia_asignada", "Membresía activada",
        f"Tu plan {plan.nombre_plan} está vigente hasta el {membresia.fecha_vencimiento.isoformat()}"
    )
    database.guardar_cambios(db, "asignar la membresía")
    db.refresh(membresia)
    logger.info(f"Membresía {membresia.id} asignada a socio {socio.id}")
    return membresia


def pausar(db: Session, socio_id: int, dias: int, motivo=None, hoy=None):
    if not dias or dias <= 0:
        raise HTTPException(status_code=400, detail="Los días de suspensión deben ser mayores a 0")
    membresia = _ultima_con_estado(db, socio_id, [models.MEMBRESIA_VIGENTE])
    if not membresia:
        raise HTTPException(status_code=409, detail="El socio no tiene una membresía vigente")

    membresia.estado = models.MEMBRESIA_SUSPENDIDA
    membresia.fecha_suspension = hoy or date.today()
    membresia.dias_suspension = dias
    membresia.motivo_estado = motivo
    notifications.notificar_socio(
        db, socio_id, "membresia_suspendida", "Membresía suspendida",
        f"Tu membresía fue suspendida por {dias} días"
    )
    database.guardar_cambios(db, "pausar la membresía")
    logger.info(f"Membresía {membresia.id} suspendida por {dias} días")
    return membresia


def reanudar(db: Session, socio_id: int, extender_vencimiento=True):
    membresia = _ultima_con_estado(db, socio_id, [models.MEMBRESIA_SUSPENDIDA])
    if not membresia:
        raise HTTPException(status_code=409, detail="El socio no tiene una membresía suspendida")

    if extender_vencimiento and membresia.dias_suspension:
        membresia.fecha_vencimiento = membresia.fecha_vencimiento + timedelta(days=membresia.dias_suspension)
    membresia.estado = models.MEMBRESIA_VIGENTE
    membresia.fecha_suspension = None
    membresia.dias_suspension = None
    membresia.motivo_estado = None
    notifications.notificar_socio(
        db, socio_id, "membresia_reanudada", "Membresía reanudada",
        f"Tu membresía vuelve a estar vigente hasta el {membresia.fecha_vencimiento.isoformat()}"
    )
    database.guardar_cambios(db, "reanudar la membresía")
    logger.info(f"Membresía {membresia.id} reanudada")
    return membresia


def cancelar(db: Session, socio_id: int, motivo):
    if not motivo or not str(motivo).strip():
        raise HTTPException(status_code=400, detail="El motivo de cancelación es obligatorio")
    membresia = _ultima_con_estado(db, socio_id, models.MEMBRESIAS_ABIERTAS)
    if not membresia:
        raise HTTPException(status_code=409, detail="El socio no tiene una membresía activa para cancelar")

    membresia.estado = models.MEMBRESIA_CANCELADA
    membresia.motivo_estado = motivo
    notifications.notificar_socio(
        db, socio_id, "membresia_cancelada", "Membresía cancelada", f"Motivo: {motivo}"
    )
    database.guardar_cambios(db, "cancelar la membresía")
    logger.info(f"Membresía {membresia.id} cancelada: {motivo}")
    return membresia


def precio_original(plan):
    """Precio previo a la oferta, deshaciendo el porcentaje de descuento"""
    descuento = plan.descuento or 0
    if descuento <= 0 or descuento >= 100:
        return plan.precio
    return round(plan.precio / (1 - descuento / 100))


def _revertir_oferta(db: Session, plan):
    plan.precio = precio_original(plan)
    plan.tipo_plan = models.PLAN_NORMAL
    plan.descuento = 0
    plan.fecha_inicio_oferta = None
    plan.fecha_fin_oferta = None
    notifications.notificar_admin(
        db, "oferta_expirada", "Oferta finalizada",
        f"El plan {plan.nombre_plan} volvió a su precio normal de ${plan.precio:,.0f}"
    )


def expirar_oferta(db: Session, plan_id: int):
    plan = db.query(models.PlanMembresia).filter(models.PlanMembresia.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado")
    if plan.tipo_plan != models.PLAN_OFERTA:
        raise HTTPException(status_code=409, detail="El plan no es una oferta")
    _revertir_oferta(db, plan)
    database.guardar_cambios(db, "expirar la oferta")
    db.refresh(plan)
    logger.info(f"Oferta del plan {plan.id} expirada, precio restaurado a {plan.precio}")
    return plan


def expirar_vencidas(db: Session, hoy=None):
    """Marca como Vencida toda membresía Vigente cuyo vencimiento ya pasó"""
    hoy = hoy or date.today()
    vencidas = db.query(models.Membresia).filter(
        models.Membresia.estado == models.MEMBRESIA_VIGENTE,
        models.Membresia.fecha_vencimiento < hoy
    ).all()
    for m in vencidas:
        m.estado = models.MEMBRESIA_VENCIDA
        notifications.notificar_socio(
            db, m.socio_id, "membresia_vencida", "Membresía vencida",
            "Tu membresía venció; renueva tu plan para seguir reservando clases"
        )

    ofertas = db.query(models.PlanMembresia).filter(
        models.PlanMembresia.tipo_plan == models.PLAN_OFERTA,
        models.PlanMembresia.fecha_fin_oferta != None,
        models.PlanMembresia.fecha_fin_oferta < hoy
    ).all()
    for plan in ofertas:
        _revertir_oferta(db, plan)

    database.guardar_cambios(db, "expirar membresías")
    if vencidas or ofertas:
        logger.info(f"Barrido de vencimientos: {len(vencidas)} membresías, {len(ofertas)} ofertas")
    return {"expiradas": len(vencidas), "ofertas_revertidas": len(ofertas)}
