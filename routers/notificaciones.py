from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import models
import schemas
import database
import notifications
from security import get_current_user, ROL_ADMIN, ROL_ENTRENADOR, ROL_SOCIO

router = APIRouter(prefix="/api/notificaciones", tags=["Notificaciones"])


def destinatario(principal):
    """Tipo de usuario e id con que se guardan las notificaciones del llamador"""
    if principal.rol == ROL_ADMIN:
        return notifications.TIPO_ADMIN, None
    if principal.rol == ROL_ENTRENADOR and principal.entrenador:
        return notifications.TIPO_ENTRENADOR, principal.entrenador.id
    if principal.rol == ROL_SOCIO:
        return notifications.TIPO_SOCIO, principal.socio.id
    raise HTTPException(status_code=403, detail="Rol sin bandeja de notificaciones")


def _propias(db: Session, principal):
    tipo, usuario_id = destinatario(principal)
    return notifications.filtro_destinatario(db.query(models.Notificacion), tipo, usuario_id)


@router.get("", response_model=List[schemas.NotificacionResponse])
def get_notificaciones(principal=Depends(get_current_user), db: Session = Depends(database.get_db)):
    return _propias(db, principal).order_by(
        models.Notificacion.fecha_creacion.desc(), models.Notificacion.id.desc()
    ).all()


@router.patch("")
def marcar_leidas(data: schemas.NotificacionPatch, principal=Depends(get_current_user), db: Session = Depends(database.get_db)):
    if data.marcar_todas_leidas:
        total = _propias(db, principal).filter(models.Notificacion.leida == False).update(
            {"leida": True}, synchronize_session=False
        )
        database.guardar_cambios(db, "marcar notificaciones")
        return {"status": "success", "actualizadas": total}

    if data.notificacion_id is None:
        raise HTTPException(status_code=400, detail="Indica notificacion_id o marcar_todas_leidas")

    notif = _propias(db, principal).filter(models.Notificacion.id == data.notificacion_id).first()
    if not notif:
        raise HTTPException(status_code=404, detail="Notificación no encontrada")
    notif.leida = True
    database.guardar_cambios(db, "marcar la notificación")
    return {"status": "success", "actualizadas": 1}
