import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)

TIPO_ADMIN = "Admin"
TIPO_ENTRENADOR = "Entrenador"
TIPO_SOCIO = "Socio"

MAX_POR_DESTINATARIO = 50


def crear_notificacion(db: Session, tipo_usuario, tipo_evento, titulo, mensaje, usuario_id=None):
    """
    Agrega una notificación a la sesión del llamador y poda las más antiguas
    del mismo destinatario. La escritura va en un SAVEPOINT: si falla se
    registra y se descarta sin tocar lo que el llamador tenga pendiente.
    """
    notif = models.Notificacion(
        tipo_usuario=tipo_usuario,
        usuario_id=usuario_id,
        tipo_evento=tipo_evento,
        titulo=titulo,
        mensaje=mensaje,
    )
    # Los cambios propios del llamador se escriben fuera del SAVEPOINT y sus errores son suyos
    db.flush()
    try:
        with db.begin_nested():
            db.add(notif)
            db.flush()
            _podar(db, tipo_usuario, usuario_id)
        return notif
    except SQLAlchemyError as e:
        logger.error(f"No se pudo crear la notificación '{tipo_evento}': {e}")
        return None


def _podar(db: Session, tipo_usuario, usuario_id):
    query = filtro_destinatario(db.query(models.Notificacion), tipo_usuario, usuario_id)
    sobrantes = query.order_by(
        models.Notificacion.fecha_creacion.desc(), models.Notificacion.id.desc()
    ).offset(MAX_POR_DESTINATARIO).all()
    for n in sobrantes:
        db.delete(n)


def filtro_destinatario(query, tipo_usuario, usuario_id):
    query = query.filter(models.Notificacion.tipo_usuario == tipo_usuario)
    if usuario_id is None:
        return query.filter(models.Notificacion.usuario_id.is_(None))
    return query.filter(models.Notificacion.usuario_id == usuario_id)


def notificar_admin(db: Session, tipo_evento, titulo, mensaje):
    return crear_notificacion(db, TIPO_ADMIN, tipo_evento, titulo, mensaje)


def notificar_entrenador(db: Session, entrenador_id, tipo_evento, titulo, mensaje):
    return crear_notificacion(db, TIPO_ENTRENADOR, tipo_evento, titulo, mensaje, usuario_id=entrenador_id)


def notificar_socio(db: Session, socio_id, tipo_evento, titulo, mensaje):
    return crear_notificacion(db, TIPO_SOCIO, tipo_evento, titulo, mensaje, usuario_id=socio_id)
